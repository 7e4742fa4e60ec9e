"""
The SQLite book store.

Services open a fresh connection per call with ``get_connection``.
``init_db`` brings the schema up to date at startup: the versions
already applied are recorded in the ``migrations`` table and any newer
entry of ``MIGRATIONS`` is executed in order.

Timestamps are stored as fixed-width ISO-8601 UTC strings
(``2024-05-01T09:30:00.000000Z``) so that comparing the text columns
compares the instants they represent.
"""

import logging
import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

from .config import settings


logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"
# Largest value an INTEGER column or bound parameter can hold.
MAX_SQLITE_INTEGER = 2 ** 63 - 1


def get_database_path() -> str:
    """Absolute path of the database file named by ``DATABASE_URL``.

    Relative names are placed inside the ``book_library_api`` package
    directory.  The setting is read on every call.
    """
    db_url = settings.database_url
    if os.path.isabs(db_url):
        return db_url
    base_dir = Path(__file__).resolve().parent.parent.parent  # book_library_api/
    return str((base_dir / db_url).resolve())


def _unicode_lower(value: Optional[str]) -> Optional[str]:
    # SQLite's own lower() only folds ASCII characters.
    if value is None:
        return None
    return str(value).lower()


def get_connection() -> sqlite3.Connection:
    """Create and return a new SQLite connection.

    The connection uses a row factory to access columns by name,
    enforces foreign keys and registers ``unicode_lower`` so queries
    can compare text case-insensitively beyond ASCII.
    """
    conn = sqlite3.connect(get_database_path())
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    conn.create_function("unicode_lower", 1, _unicode_lower, deterministic=True)
    return conn


@contextmanager
def get_cursor() -> Iterator[sqlite3.Cursor]:
    """Yield a cursor, commit when the block succeeds and always close."""
    conn = get_connection()
    try:
        yield conn.cursor()
        conn.commit()
    finally:
        conn.close()


def format_timestamp(value: datetime) -> str:
    """Render a datetime in the storage format (UTC, microsecond precision)."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    """Parse a stored timestamp back into an aware UTC datetime."""
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


MIGRATIONS: list[tuple[int, str]] = [
    # Migration 1: users and their books
    (
        1,
        """
        CREATE TABLE IF NOT EXISTS users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            email TEXT NOT NULL UNIQUE,
            password TEXT NOT NULL,
            is_active INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS books (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            owner_id INTEGER NOT NULL,
            title TEXT NOT NULL,
            author TEXT NOT NULL,
            genre TEXT NOT NULL,
            year INTEGER NOT NULL,
            status TEXT NOT NULL DEFAULT 'Wishlist'
                CHECK (status IN ('Reading', 'Completed', 'Wishlist')),
            rating INTEGER CHECK (rating IS NULL OR rating BETWEEN 1 AND 5),
            notes TEXT NOT NULL DEFAULT '',
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            FOREIGN KEY(owner_id) REFERENCES users(id) ON DELETE CASCADE
        );
        """,
    ),
    # Migration 2: per-owner indexes used by listing and aggregation
    (
        2,
        """
        CREATE INDEX IF NOT EXISTS idx_books_owner_title ON books(owner_id, title);
        CREATE INDEX IF NOT EXISTS idx_books_owner_author ON books(owner_id, author);
        CREATE INDEX IF NOT EXISTS idx_books_owner_genre ON books(owner_id, genre);
        CREATE INDEX IF NOT EXISTS idx_books_owner_status ON books(owner_id, status);
        CREATE INDEX IF NOT EXISTS idx_books_owner_created ON books(owner_id, created_at);
        """,
    ),
]


def init_db() -> None:
    """Create the database if needed and run every pending migration.

    New schema changes go at the end of ``MIGRATIONS`` with the next
    version number; applied entries must never be edited.
    """
    with get_cursor() as cursor:
        cursor.execute(
            "CREATE TABLE IF NOT EXISTS migrations (version INTEGER PRIMARY KEY, applied_at TEXT)"
        )
        cursor.execute("SELECT MAX(version) as version FROM migrations")
        row = cursor.fetchone()
        current_version = row["version"] if row and row["version"] is not None else 0

        for version, sql in MIGRATIONS:
            if version > current_version:
                logger.info("Applying database migration %s", version)
                cursor.executescript(sql)
                cursor.execute(
                    "INSERT INTO migrations (version, applied_at) VALUES (?, ?)",
                    (version, format_timestamp(utcnow())),
                )
                current_version = version
