"""
Service layer for the dashboard summary.

All figures are computed over a single owner's books with read-only,
parameterised aggregate queries.  The sub-aggregations are independent
of each other; ``dashboard_stats`` simply composes their results.
"""

from __future__ import annotations

import math
from datetime import date
from typing import Dict, Optional

from book_library_api.app.core.db import get_connection, utcnow
from book_library_api.app.schemas.book import BookStatus
from book_library_api.app.schemas.dashboard import (
    DashboardStats,
    GenreCount,
    RatingCount,
    ReadingProgress,
    RecentBook,
    StatusCounts,
    YearCount,
)


TOP_GENRES_LIMIT = 10
RECENT_BOOKS_LIMIT = 5
YEAR_WINDOW = 10


def round_half_up(value: float, digits: int = 0) -> float:
    """Round to ``digits`` decimals with halves going up (4.25 -> 4.3), not to even."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


class StatisticsService:
    """Service providing the per-user dashboard summary."""

    @classmethod
    async def dashboard_stats(cls, owner_id: int, today: Optional[date] = None) -> DashboardStats:
        """Return the dashboard summary for ``owner_id``.

        Includes the total count, counts per status (missing statuses
        are 0), the ten most common genres, per-year counts for the
        last ten publication years, the five most recently added
        books, the average rating with the number of rated books and
        the rating distribution.

        Parameters
        ----------
        owner_id : int
            The user whose books are summarised.
        today : Optional[date]
            Reference day for the publication-year window.  Defaults to
            the current UTC date, the same clock used for stored
            timestamps and year validation.

        Returns
        -------
        DashboardStats
            The composed summary.
        """
        current_year = (today or utcnow().date()).year
        conn = get_connection()
        try:
            cursor = conn.cursor()
            total_books = cursor.execute(
                "SELECT COUNT(*) FROM books WHERE owner_id = ?", (owner_id,)
            ).fetchone()[0]

            status_counts: Dict[str, int] = {status.value: 0 for status in BookStatus}
            for row in cursor.execute(
                "SELECT status, COUNT(*) AS count FROM books WHERE owner_id = ? GROUP BY status",
                (owner_id,),
            ).fetchall():
                status_counts[row["status"]] = row["count"]

            genre_rows = cursor.execute(
                "SELECT genre, COUNT(*) AS count FROM books WHERE owner_id = ?"
                " GROUP BY genre ORDER BY count DESC, genre ASC LIMIT ?",
                (owner_id, TOP_GENRES_LIMIT),
            ).fetchall()

            year_rows = cursor.execute(
                "SELECT year, COUNT(*) AS count FROM books WHERE owner_id = ? AND year BETWEEN ? AND ?"
                " GROUP BY year ORDER BY year ASC",
                (owner_id, current_year - (YEAR_WINDOW - 1), current_year),
            ).fetchall()

            recent_rows = cursor.execute(
                "SELECT id, title, author, status, created_at FROM books WHERE owner_id = ?"
                " ORDER BY created_at DESC, id DESC LIMIT ?",
                (owner_id, RECENT_BOOKS_LIMIT),
            ).fetchall()

            progress_row = cursor.execute(
                "SELECT AVG(rating) AS average, COUNT(rating) AS rated FROM books"
                " WHERE owner_id = ? AND rating IS NOT NULL",
                (owner_id,),
            ).fetchone()

            rating_rows = cursor.execute(
                "SELECT rating, COUNT(*) AS count FROM books WHERE owner_id = ? AND rating IS NOT NULL"
                " GROUP BY rating ORDER BY rating ASC",
                (owner_id,),
            ).fetchall()
        finally:
            conn.close()

        if progress_row["rated"]:
            progress = ReadingProgress(
                average_rating=round_half_up(progress_row["average"], 1),
                total_rated_books=progress_row["rated"],
            )
        else:
            progress = ReadingProgress(average_rating=0, total_rated_books=0)

        return DashboardStats(
            total_books=total_books,
            books_by_status=StatusCounts(
                reading=status_counts[BookStatus.READING.value],
                completed=status_counts[BookStatus.COMPLETED.value],
                wishlist=status_counts[BookStatus.WISHLIST.value],
            ),
            top_genres=[GenreCount(genre=row["genre"], count=row["count"]) for row in genre_rows],
            books_by_year=[YearCount(year=row["year"], count=row["count"]) for row in year_rows],
            recent_books=[
                RecentBook(
                    id=row["id"],
                    title=row["title"],
                    author=row["author"],
                    status=row["status"],
                    created_at=row["created_at"],
                )
                for row in recent_rows
            ],
            reading_progress=progress,
            rating_distribution=[RatingCount(rating=row["rating"], count=row["count"]) for row in rating_rows],
        )
