"""
Read access to a user's books: filtered, sorted and paginated listing
plus single-record lookup.

Every query carries ``owner_id = ?`` in its WHERE clause, so a user can
never see another user's books, and a foreign id is indistinguishable
from a missing one.
"""

import logging
import math
import sqlite3
from typing import List, Optional, Tuple

from book_library_api.app.core.db import MAX_SQLITE_INTEGER, get_connection
from book_library_api.app.core.exceptions import NotFoundError, ValidationFailed
from book_library_api.app.schemas.book import BookRead, BookStatus, Pagination


logger = logging.getLogger(__name__)

BOOK_COLUMNS = (
    "id, owner_id, title, author, genre, year, status, rating, notes, created_at, updated_at"
)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100

# Public sort keys (as sent in ``sortBy``) mapped to columns.
SORT_COLUMNS = {
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "title": "title",
    "author": "author",
    "genre": "genre",
    "year": "year",
    "status": "status",
    "rating": "rating",
}
DEFAULT_SORT = "createdAt"


def row_to_book(row: sqlite3.Row) -> BookRead:
    return BookRead(
        id=row["id"],
        owner_id=row["owner_id"],
        title=row["title"],
        author=row["author"],
        genre=row["genre"],
        year=row["year"],
        status=row["status"],
        rating=row["rating"],
        notes=row["notes"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def build_pagination(page: int, limit: int, total: int) -> Pagination:
    """Pagination metadata for ``page`` of a result set of ``total`` rows."""
    total_pages = math.ceil(total / limit)
    return Pagination(
        current_page=page,
        total_pages=total_pages,
        total_books=total,
        has_next_page=page < total_pages,
        has_prev_page=page > 1,
    )


def require_book_id(book_id: int) -> int:
    """Reject ids that cannot name a stored book.

    Ids outside SQLite's INTEGER range would overflow the bound
    parameter; no row can carry them, so they are reported exactly like
    a missing book.

    Raises
    ------
    NotFoundError
        If ``book_id`` is not in ``1..MAX_SQLITE_INTEGER``.
    """
    if not 1 <= book_id <= MAX_SQLITE_INTEGER:
        raise NotFoundError()
    return book_id


def _validate_listing(page: int, limit: int, status: Optional[str]) -> Optional[str]:
    errors = []
    if not isinstance(page, int) or page < 1:
        errors.append({"field": "page", "message": "Page must be a positive integer"})
    if not isinstance(limit, int) or not 1 <= limit <= MAX_LIMIT:
        errors.append({"field": "limit", "message": f"Limit must be between 1 and {MAX_LIMIT}"})
    status_value = None
    if status is not None:
        try:
            status_value = BookStatus(status).value
        except ValueError:
            errors.append({"field": "status", "message": "Invalid status"})
    if errors:
        raise ValidationFailed(errors)
    return status_value


class BookQueryService:
    """Service answering read queries over one owner's books."""

    @classmethod
    async def list_books(
        cls,
        owner_id: int,
        page: int = DEFAULT_PAGE,
        limit: int = DEFAULT_LIMIT,
        search: Optional[str] = None,
        genre: Optional[str] = None,
        status: Optional[str] = None,
        sort_by: str = DEFAULT_SORT,
        sort_order: str = "desc",
    ) -> Tuple[List[BookRead], Pagination]:
        """Return one page of the owner's books and the pagination metadata.

        - ``search`` matches title, author or genre (case-insensitive substring).
        - ``genre`` matches the genre (case-insensitive substring).
        - ``status`` must equal the stored status exactly.
        - ``sort_by`` is one of ``SORT_COLUMNS``; unknown keys sort by
          ``createdAt``.  ``sort_order`` ``asc`` sorts ascending, any
          other value descending.

        Parameters
        ----------
        owner_id : int
            Only books of this user are listed.
        page, limit : int
            1-based page number and page size (at most ``MAX_LIMIT``).
            Pages past the last one come back empty.

        Returns
        -------
        Tuple[List[BookRead], Pagination]
            The page of books and its metadata.

        Raises
        ------
        ValidationFailed
            For an invalid ``page``, ``limit`` or ``status``, before
            touching the database.
        """
        status_value = _validate_listing(page, limit, status)

        where_clauses = ["owner_id = ?"]
        params: list = [owner_id]
        if search:
            needle = search.lower()
            where_clauses.append(
                "(instr(unicode_lower(title), ?) > 0"
                " OR instr(unicode_lower(author), ?) > 0"
                " OR instr(unicode_lower(genre), ?) > 0)"
            )
            params.extend([needle, needle, needle])
        if genre:
            where_clauses.append("instr(unicode_lower(genre), ?) > 0")
            params.append(genre.lower())
        if status_value:
            where_clauses.append("status = ?")
            params.append(status_value)
        where_sql = " WHERE " + " AND ".join(where_clauses)

        column = SORT_COLUMNS.get(sort_by, SORT_COLUMNS[DEFAULT_SORT])
        direction = "ASC" if (sort_order or "").lower() == "asc" else "DESC"
        # Pages past the end are empty; the clamp keeps OFFSET bindable.
        skip = min((page - 1) * limit, MAX_SQLITE_INTEGER)

        conn = get_connection()
        try:
            cursor = conn.cursor()
            total = cursor.execute(
                f"SELECT COUNT(*) FROM books{where_sql}", tuple(params)
            ).fetchone()[0]
            rows = cursor.execute(
                f"SELECT {BOOK_COLUMNS} FROM books{where_sql}"
                f" ORDER BY {column} {direction}, id {direction} LIMIT ? OFFSET ?",
                tuple(params + [limit, skip]),
            ).fetchall()
        finally:
            conn.close()

        books = [row_to_book(row) for row in rows]
        logger.debug("Owner %s listed %s of %s books (page %s)", owner_id, len(books), total, page)
        return books, build_pagination(page, limit, total)

    @classmethod
    async def get_book(cls, owner_id: int, book_id: int) -> BookRead:
        """Retrieve one of the owner's books.

        Raises ``NotFoundError`` if the book does not exist or belongs
        to somebody else.
        """
        require_book_id(book_id)
        conn = get_connection()
        try:
            row = conn.execute(
                f"SELECT {BOOK_COLUMNS} FROM books WHERE id = ? AND owner_id = ?",
                (book_id, owner_id),
            ).fetchone()
        finally:
            conn.close()
        if not row:
            raise NotFoundError()
        return row_to_book(row)
