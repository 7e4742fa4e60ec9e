"""
Simple configuration management.

The ``Settings`` dataclass reads configuration directly from
environment variables.  Defaults are provided for all fields so the
API starts without any configuration; in a production deployment you
should at least override ``SECRET_KEY`` and the email provider
settings.
"""

import os
from dataclasses import dataclass


@dataclass
class Settings:
    """Application settings loaded from environment variables."""

    project_name: str = os.getenv("PROJECT_NAME", "Book Library API")
    api_version: str = os.getenv("API_VERSION", "1.0.0")
    # All routers are mounted below this prefix (``/api/books`` etc.).
    api_prefix: str = os.getenv("API_PREFIX", "/api")
    debug: bool = os.getenv("DEBUG", "false").lower() in {"1", "true", "yes"}
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_file: str = os.getenv("LOG_FILE", "")
    secret_key: str = os.getenv("SECRET_KEY", "change_me")
    access_token_expire_minutes: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 7)))

    # Path to the SQLite database file.  Relative paths are resolved
    # against the package root by the ``db`` module.
    database_url: str = os.getenv("DATABASE_URL", "book_library.db")

    # HTTP email provider used for notifications.  When ``email_api_url``
    # is empty, notifications are skipped and only logged.
    email_api_url: str = os.getenv("EMAIL_API_URL", "")
    email_api_key: str = os.getenv("EMAIL_API_KEY", "")
    email_from: str = os.getenv("EMAIL_FROM", "no-reply@book-library.local")
    email_timeout: float = float(os.getenv("EMAIL_TIMEOUT", "10"))

    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "8000"))


# Instantiate settings once so other modules can import it without
# repeatedly reading environment variables.  Environment variables
# must therefore be set before this module is imported.
settings = Settings()
