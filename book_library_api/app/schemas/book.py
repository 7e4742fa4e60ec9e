"""
Pydantic models for book data.

``BookCreate`` holds the full set of field rules and is the single
validator used for both creating a book and re-checking the merged
record after a partial update.  ``BookUpdate`` accepts any subset of
the editable fields with the same per-field rules.  ``BookRead`` is
the stored record as returned by the API.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, List, Optional

from pydantic import AfterValidator, BaseModel, BeforeValidator, Field

from ..core.db import utcnow
from .common import ApiResponse, CamelModel, MessageResponse


MIN_YEAR = 1000
EDITABLE_FIELDS = ("title", "author", "genre", "year", "status", "rating", "notes")


class BookStatus(str, Enum):
    READING = "Reading"
    COMPLETED = "Completed"
    WISHLIST = "Wishlist"


def _strip(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


def _check_year(value: int) -> int:
    # The upper bound moves with the (UTC) calendar, so it cannot be a static Field(le=...).
    if value > utcnow().year:
        raise ValueError("Year cannot be in the future")
    return value


Title = Annotated[str, BeforeValidator(_strip), Field(min_length=1, max_length=200)]
Author = Annotated[str, BeforeValidator(_strip), Field(min_length=1, max_length=100)]
Genre = Annotated[str, BeforeValidator(_strip), Field(min_length=1, max_length=50)]
Year = Annotated[int, Field(ge=MIN_YEAR), AfterValidator(_check_year)]
Rating = Annotated[int, Field(ge=1, le=5)]
Notes = Annotated[str, Field(max_length=1000)]


class BookCreate(BaseModel):
    """Schema for adding a book to the caller's library."""

    title: Title = Field(..., examples=["Dune"])
    author: Author = Field(..., examples=["Frank Herbert"])
    genre: Genre = Field(..., examples=["Sci-Fi"])
    year: Year = Field(..., examples=[1965])
    status: BookStatus = Field(BookStatus.WISHLIST, examples=["Wishlist"])
    rating: Optional[Rating] = Field(None, examples=[5])
    notes: Notes = ""


class BookUpdate(BaseModel):
    """Schema for updating a book.

    All fields are optional; only fields present in the request body
    are applied.  Sending ``"rating": null`` clears the rating.
    """

    title: Optional[Title] = None
    author: Optional[Author] = None
    genre: Optional[Genre] = None
    year: Optional[Year] = None
    status: Optional[BookStatus] = None
    rating: Optional[Rating] = None
    notes: Optional[Notes] = None


class BookRead(CamelModel):
    """Schema for reading a book from the API."""

    id: int
    owner_id: int
    title: str
    author: str
    genre: str
    year: int
    status: BookStatus
    rating: Optional[int] = None
    notes: str = ""
    created_at: datetime
    updated_at: datetime


class Pagination(CamelModel):
    current_page: int
    total_pages: int
    total_books: int
    has_next_page: bool
    has_prev_page: bool


class DeletedBook(CamelModel):
    id: int
    title: str


class BookListResponse(ApiResponse):
    data: List[BookRead]
    pagination: Pagination


class BookResponse(ApiResponse):
    data: BookRead


class BookMutationResponse(MessageResponse):
    data: BookRead


class BookDeleteResponse(MessageResponse):
    data: DeletedBook
