"""
Domain exceptions raised by the service layer.

Services never build HTTP responses themselves; they raise one of the
exceptions below and the handlers in ``core.error_handlers`` turn it
into the ``{success, message, errors}`` envelope with the matching
status code.
"""

from typing import Any, Dict, Iterable, List, Optional


class BookLibraryError(Exception):
    """Base exception for expected, client-facing failures."""

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationFailed(BookLibraryError):
    """Malformed or out-of-range input.

    ``errors`` holds one ``{"field": ..., "message": ...}`` entry per
    rejected field.
    """

    status_code = 400

    def __init__(self, errors: List[Dict[str, Any]], message: str = "Validation failed") -> None:
        super().__init__(message)
        self.errors = errors


class ConflictError(BookLibraryError):
    """The write would break a uniqueness rule (duplicate book, taken email)."""

    status_code = 400


class NotFoundError(BookLibraryError, ValueError):
    """The record does not exist or belongs to another user.

    Both cases deliberately produce the same message.
    """

    status_code = 404

    def __init__(self, message: str = "Book not found") -> None:
        super().__init__(message)


_LOCATION_PREFIXES = {"body", "query", "path", "header", "cookie"}


def format_validation_errors(errors: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Flatten Pydantic/FastAPI error dicts into ``{field, message}`` entries.

    The request location (``body``, ``query``...) is dropped from the
    field path; messages produced by custom validators lose Pydantic's
    ``"Value error, "`` prefix.
    """
    formatted: List[Dict[str, Any]] = []
    for error in errors:
        loc = [str(part) for part in error.get("loc", ())]
        if loc and loc[0] in _LOCATION_PREFIXES:
            loc = loc[1:]
        message = str(error.get("msg", "Invalid value"))
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        formatted.append({"field": ".".join(loc) or None, "message": message})
    return formatted
