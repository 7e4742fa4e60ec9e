"""
Business logic for changing a user's books: create, partial update
and delete.

All writes are scoped to ``(id, owner_id)``.  Field rules live in one
place, ``validate_book``, which both the create path and the merged
record of an update go through.  A user may not hold two books with
the same title and author (compared case-insensitively).
"""

import logging
from datetime import timedelta
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from book_library_api.app.core.db import format_timestamp, get_connection, parse_timestamp, utcnow
from book_library_api.app.core.exceptions import (
    ConflictError,
    NotFoundError,
    ValidationFailed,
    format_validation_errors,
)
from book_library_api.app.schemas.book import EDITABLE_FIELDS, BookCreate, BookRead, DeletedBook
from book_library_api.app.services.book_query_service import BOOK_COLUMNS, require_book_id, row_to_book
from book_library_api.app.services.email_service import EmailService


logger = logging.getLogger(__name__)

DUPLICATE_BOOK_MESSAGE = "This book already exists in your library"


def validate_book(fields: Union[BookCreate, Dict[str, Any]]) -> BookCreate:
    """Check a complete set of book fields against the book rules.

    Returns the cleaned ``BookCreate`` (text trimmed, defaults filled
    in) or raises ``ValidationFailed`` listing every rejected field.
    """
    if isinstance(fields, BookCreate):
        fields = fields.model_dump()
    try:
        return BookCreate.model_validate(fields)
    except PydanticValidationError as e:
        raise ValidationFailed(format_validation_errors(e.errors())) from e


def _find_duplicate(cursor, owner_id: int, title: str, author: str, exclude_id: Optional[int] = None):
    query = (
        "SELECT id FROM books WHERE owner_id = ?"
        " AND unicode_lower(title) = ? AND unicode_lower(author) = ?"
    )
    params: list = [owner_id, title.lower(), author.lower()]
    if exclude_id is not None:
        query += " AND id != ?"
        params.append(exclude_id)
    return cursor.execute(query, tuple(params)).fetchone()


class BookMutationService:
    """Service for creating, updating and deleting books."""

    @classmethod
    async def create_book(cls, owner: Dict[str, Any], data: Union[BookCreate, Dict[str, Any]]) -> BookRead:
        """Add a book to the owner's library and return it.

        After the insert a "book added" email is dispatched in the
        background; its outcome never affects this call.

        Parameters
        ----------
        owner : Dict[str, Any]
            The authenticated user (``user_id``, ``email``, ``name``).
        data : Union[BookCreate, Dict[str, Any]]
            The book fields, validated with ``validate_book``.

        Returns
        -------
        BookRead
            The stored book with its id and timestamps.

        Raises
        ------
        ValidationFailed
            If any field breaks the book rules.
        ConflictError
            If the owner already has a book with the same title and
            author, ignoring case.
        """
        book = validate_book(data)
        owner_id = owner["user_id"]
        now = format_timestamp(utcnow())

        conn = get_connection()
        try:
            # Serialises the duplicate check with the insert.
            conn.execute("BEGIN IMMEDIATE")
            cursor = conn.cursor()
            if _find_duplicate(cursor, owner_id, book.title, book.author):
                conn.rollback()
                raise ConflictError(DUPLICATE_BOOK_MESSAGE)
            cursor.execute(
                """
                INSERT INTO books (owner_id, title, author, genre, year, status, rating, notes, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    owner_id,
                    book.title,
                    book.author,
                    book.genre,
                    book.year,
                    book.status.value,
                    book.rating,
                    book.notes,
                    now,
                    now,
                ),
            )
            book_id = cursor.lastrowid
            conn.commit()
            row = cursor.execute(f"SELECT {BOOK_COLUMNS} FROM books WHERE id = ?", (book_id,)).fetchone()
        finally:
            conn.close()

        logger.info("User %s added book %s '%s'", owner_id, book_id, book.title)
        if owner.get("email"):
            EmailService.dispatch(
                EmailService.send_book_added_email(owner["email"], owner.get("name") or "", book.title),
                f"book added email to {owner['email']}",
            )
        return row_to_book(row)

    @classmethod
    async def update_book(cls, owner_id: int, book_id: int, updates: Dict[str, Any]) -> BookRead:
        """Apply a partial update to one of the owner's books.

        Only keys among ``EDITABLE_FIELDS`` are applied; everything
        else keeps its stored value.  The merged record is validated
        with ``validate_book``.  Raises ``NotFoundError`` if the book
        does not exist or belongs to another user, ``ValidationFailed``
        for invalid values and ``ConflictError`` if the new title and
        author collide with another of the owner's books.
        """
        require_book_id(book_id)
        changes = {key: value for key, value in updates.items() if key in EDITABLE_FIELDS}

        conn = get_connection()
        try:
            conn.execute("BEGIN IMMEDIATE")
            cursor = conn.cursor()
            row = cursor.execute(
                f"SELECT {BOOK_COLUMNS} FROM books WHERE id = ? AND owner_id = ?",
                (book_id, owner_id),
            ).fetchone()
            if not row:
                conn.rollback()
                raise NotFoundError()

            merged = {field: row[field] for field in EDITABLE_FIELDS}
            merged.update(changes)
            try:
                book = validate_book(merged)
            except ValidationFailed:
                conn.rollback()
                raise

            renamed = (
                book.title.lower() != row["title"].lower()
                or book.author.lower() != row["author"].lower()
            )
            if renamed and _find_duplicate(cursor, owner_id, book.title, book.author, exclude_id=book_id):
                conn.rollback()
                raise ConflictError(DUPLICATE_BOOK_MESSAGE)

            # updated_at must move forward even if the clock has not ticked.
            previous = parse_timestamp(row["updated_at"])
            updated_at = max(utcnow(), previous + timedelta(microseconds=1))
            cursor.execute(
                """
                UPDATE books
                SET title = ?, author = ?, genre = ?, year = ?, status = ?, rating = ?, notes = ?, updated_at = ?
                WHERE id = ? AND owner_id = ?
                """,
                (
                    book.title,
                    book.author,
                    book.genre,
                    book.year,
                    book.status.value,
                    book.rating,
                    book.notes,
                    format_timestamp(updated_at),
                    book_id,
                    owner_id,
                ),
            )
            conn.commit()
            updated = cursor.execute(f"SELECT {BOOK_COLUMNS} FROM books WHERE id = ?", (book_id,)).fetchone()
        finally:
            conn.close()

        logger.info("User %s updated book %s (%s)", owner_id, book_id, ", ".join(sorted(changes)) or "no changes")
        return row_to_book(updated)

    @classmethod
    async def delete_book(cls, owner_id: int, book_id: int) -> DeletedBook:
        """Permanently delete one of the owner's books.

        Returns the deleted book's id and title.  Raises
        ``NotFoundError`` if the book does not exist or belongs to
        another user.
        """
        require_book_id(book_id)
        conn = get_connection()
        try:
            cursor = conn.cursor()
            row = cursor.execute(
                "SELECT id, title FROM books WHERE id = ? AND owner_id = ?",
                (book_id, owner_id),
            ).fetchone()
            if not row:
                raise NotFoundError()
            cursor.execute("DELETE FROM books WHERE id = ? AND owner_id = ?", (book_id, owner_id))
            conn.commit()
        finally:
            conn.close()

        logger.info("User %s deleted book %s '%s'", owner_id, book_id, row["title"])
        return DeletedBook(id=row["id"], title=row["title"])
