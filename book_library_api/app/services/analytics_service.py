"""
Service layer for period-scoped reading analytics.

The ``period`` selector only moves the cutoff used for
``booksAddedInPeriod``.  ``booksCompletedInPeriod`` always counts from
the start of the current year, whatever period was requested; see
``completed_cutoff``.  Monthly activity, top authors and genre
preferences are computed over all of the owner's books.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from book_library_api.app.core.db import format_timestamp, get_connection, utcnow
from book_library_api.app.schemas.book import BookStatus
from book_library_api.app.schemas.dashboard import (
    AuthorStats,
    DashboardAnalytics,
    GenrePreference,
    MonthlyActivity,
)
from book_library_api.app.services.statistics_service import round_half_up


PERIODS = ("week", "month", "year")
DEFAULT_PERIOD = "year"
MONTHLY_GROUPS_LIMIT = 12
TOP_AUTHORS_LIMIT = 10
TOP_GENRES_LIMIT = 10


def year_start(now: datetime) -> datetime:
    return datetime(now.year, 1, 1, tzinfo=timezone.utc)


def period_start(period: str, now: datetime) -> datetime:
    """Start of the reporting window for ``period``.

    ``week`` is the last seven days up to ``now``, ``month`` starts on
    the first day of the current month and ``year`` on January 1st.
    Any other value is treated as ``year``.
    """
    if period == "week":
        return now - timedelta(days=7)
    if period == "month":
        return datetime(now.year, now.month, 1, tzinfo=timezone.utc)
    return year_start(now)


def completed_cutoff(period: str, now: datetime) -> datetime:
    # Completed books are counted from the start of the year for every
    # period. Pending product decision on whether this should follow
    # period_start() instead.
    return year_start(now)


def completion_rate(completed: int, total: int) -> int:
    """Percentage of ``total`` that is completed, rounded to an integer."""
    if total <= 0:
        return 0
    return int(round_half_up(completed / total * 100))


class AnalyticsService:
    """Service computing the analytics report for one owner."""

    @classmethod
    async def analytics(
        cls,
        owner_id: int,
        period: str = DEFAULT_PERIOD,
        now: Optional[datetime] = None,
    ) -> DashboardAnalytics:
        """Return the analytics report for ``owner_id``.

        - ``booksAddedInPeriod``: books created on or after
          ``period_start(period)``.
        - ``booksCompletedInPeriod``: completed books last updated on or
          after ``completed_cutoff(period)``.
        - ``monthlyActivity``: books added and added-and-completed per
          calendar month of creation, oldest first, first 12 months.
        - ``topAuthors``: ten authors with most books, with completion
          rate.
        - ``genrePreferences``: ten genres with most books, with average
          rating (``None`` when no book of the genre is rated).

        Parameters
        ----------
        owner_id : int
            The user whose books are analysed.
        period : str
            ``week``, ``month`` or ``year`` (the default); anything else
            is treated as ``year``.
        now : Optional[datetime]
            Reference instant, the current UTC time by default.

        Returns
        -------
        DashboardAnalytics
        """
        now = (now or utcnow()).astimezone(timezone.utc)
        added_since = format_timestamp(period_start(period, now))
        completed_since = format_timestamp(completed_cutoff(period, now))
        completed = BookStatus.COMPLETED.value

        conn = get_connection()
        try:
            cursor = conn.cursor()
            books_added = cursor.execute(
                "SELECT COUNT(*) FROM books WHERE owner_id = ? AND created_at >= ?",
                (owner_id, added_since),
            ).fetchone()[0]

            books_completed = cursor.execute(
                "SELECT COUNT(*) FROM books WHERE owner_id = ? AND status = ? AND updated_at >= ?",
                (owner_id, completed, completed_since),
            ).fetchone()[0]

            # created_at is fixed-width ISO text: YYYY at 1-4, MM at 6-7.
            monthly_rows = cursor.execute(
                """
                SELECT CAST(substr(created_at, 1, 4) AS INTEGER) AS added_year,
                       CAST(substr(created_at, 6, 2) AS INTEGER) AS added_month,
                       COUNT(*) AS books_added,
                       SUM(CASE WHEN status = ? THEN 1 ELSE 0 END) AS books_completed
                FROM books
                WHERE owner_id = ?
                GROUP BY substr(created_at, 1, 7)
                ORDER BY added_year ASC, added_month ASC
                LIMIT ?
                """,
                (completed, owner_id, MONTHLY_GROUPS_LIMIT),
            ).fetchall()

            author_rows = cursor.execute(
                """
                SELECT author,
                       COUNT(*) AS book_count,
                       SUM(CASE WHEN status = ? THEN 1 ELSE 0 END) AS completed_count
                FROM books
                WHERE owner_id = ?
                GROUP BY author
                ORDER BY book_count DESC, author ASC
                LIMIT ?
                """,
                (completed, owner_id, TOP_AUTHORS_LIMIT),
            ).fetchall()

            genre_rows = cursor.execute(
                """
                SELECT genre, COUNT(*) AS book_count, AVG(rating) AS average_rating
                FROM books
                WHERE owner_id = ?
                GROUP BY genre
                ORDER BY book_count DESC, genre ASC
                LIMIT ?
                """,
                (owner_id, TOP_GENRES_LIMIT),
            ).fetchall()
        finally:
            conn.close()

        return DashboardAnalytics(
            period=period,
            books_added_in_period=books_added,
            books_completed_in_period=books_completed,
            monthly_activity=[
                MonthlyActivity(
                    year=row["added_year"],
                    month=row["added_month"],
                    books_added=row["books_added"],
                    books_completed=row["books_completed"],
                )
                for row in monthly_rows
            ],
            top_authors=[
                AuthorStats(
                    author=row["author"],
                    book_count=row["book_count"],
                    completed_count=row["completed_count"],
                    completion_rate=completion_rate(row["completed_count"], row["book_count"]),
                )
                for row in author_rows
            ],
            genre_preferences=[
                GenrePreference(
                    genre=row["genre"],
                    book_count=row["book_count"],
                    average_rating=(
                        round_half_up(row["average_rating"], 1)
                        if row["average_rating"] is not None
                        else None
                    ),
                )
                for row in genre_rows
            ],
        )
