"""
Pydantic models for the dashboard endpoints.

``DashboardStats`` is the summary shown on the dashboard landing page;
``DashboardAnalytics`` is the period-scoped activity report.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field

from .book import BookStatus
from .common import ApiResponse, CamelModel


AnalyticsPeriod = Literal["week", "month", "year"]


class StatusCounts(CamelModel):
    # Enum values are capitalised, so the aliases are spelled out.
    reading: int = Field(0, alias="Reading")
    completed: int = Field(0, alias="Completed")
    wishlist: int = Field(0, alias="Wishlist")


class GenreCount(CamelModel):
    genre: str
    count: int


class YearCount(CamelModel):
    year: int
    count: int


class RecentBook(CamelModel):
    id: int
    title: str
    author: str
    status: BookStatus
    created_at: datetime


class ReadingProgress(CamelModel):
    average_rating: float = 0
    total_rated_books: int = 0


class RatingCount(CamelModel):
    rating: int
    count: int


class DashboardStats(CamelModel):
    total_books: int
    books_by_status: StatusCounts
    top_genres: List[GenreCount]
    books_by_year: List[YearCount]
    recent_books: List[RecentBook]
    reading_progress: ReadingProgress
    rating_distribution: List[RatingCount]


class MonthlyActivity(CamelModel):
    year: int
    month: int
    books_added: int
    books_completed: int


class AuthorStats(CamelModel):
    author: str
    book_count: int
    completed_count: int
    completion_rate: int


class GenrePreference(CamelModel):
    genre: str
    book_count: int
    average_rating: Optional[float] = None


class DashboardAnalytics(CamelModel):
    period: str
    books_added_in_period: int
    books_completed_in_period: int
    monthly_activity: List[MonthlyActivity]
    top_authors: List[AuthorStats]
    genre_preferences: List[GenrePreference]


class DashboardStatsResponse(ApiResponse):
    data: DashboardStats


class DashboardAnalyticsResponse(ApiResponse):
    data: DashboardAnalytics
