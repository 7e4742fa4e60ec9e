"""Entry point for serving the Book Library API.

Host and port come from ``HOST`` and ``PORT`` (defaults ``0.0.0.0``
and ``8000``); see ``book_library_api.app.core.config`` for the other
supported variables.

Usage:
    python run.py
"""
import uvicorn

from book_library_api.app.core.config import settings


def main() -> None:
    """Serve the API with Uvicorn until interrupted."""
    uvicorn.run(
        "book_library_api.app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
