"""
Book endpoints for API v1.

CRUD operations over the authenticated user's own books.  The owner
is resolved from the bearer token and passed explicitly to the
services; a book id that belongs to someone else answers exactly like
an id that does not exist.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from book_library_api.app.core.security import get_current_user
from book_library_api.app.schemas.book import (
    BookCreate,
    BookDeleteResponse,
    BookListResponse,
    BookMutationResponse,
    BookResponse,
    BookStatus,
    BookUpdate,
)
from book_library_api.app.services.book_mutation_service import BookMutationService
from book_library_api.app.services.book_query_service import (
    DEFAULT_LIMIT,
    DEFAULT_PAGE,
    DEFAULT_SORT,
    MAX_LIMIT,
    BookQueryService,
)


router = APIRouter()


@router.get("", response_model=BookListResponse)
async def list_books(
    page: int = Query(DEFAULT_PAGE, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    search: Optional[str] = Query(None),
    genre: Optional[str] = Query(None),
    book_status: Optional[BookStatus] = Query(None, alias="status"),
    sort_by: str = Query(DEFAULT_SORT, alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    current_user: dict = Depends(get_current_user),
) -> BookListResponse:
    """List the caller's books with search, filters, sorting and pagination.

    - **page**, **limit**: pagination (limit 1–100).
    - **search**: substring of title, author or genre (case-insensitive).
    - **genre**: substring of the genre (case-insensitive).
    - **status**: `Reading`, `Completed` or `Wishlist`.
    - **sortBy**: `createdAt` (default), `updatedAt`, `title`, `author`,
      `genre`, `year`, `status` or `rating`.
    - **sortOrder**: `asc` or `desc` (default).
    """
    books, pagination = await BookQueryService.list_books(
        current_user["user_id"],
        page=page,
        limit=limit,
        search=search,
        genre=genre,
        status=book_status.value if book_status else None,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return BookListResponse(data=books, pagination=pagination)


@router.get("/{book_id}", response_model=BookResponse)
async def get_book(book_id: int, current_user: dict = Depends(get_current_user)) -> BookResponse:
    """Retrieve a single book of the caller.  404 if missing or not theirs."""
    book = await BookQueryService.get_book(current_user["user_id"], book_id)
    return BookResponse(data=book)


@router.post("", response_model=BookMutationResponse, status_code=status.HTTP_201_CREATED)
async def create_book(book: BookCreate, current_user: dict = Depends(get_current_user)) -> BookMutationResponse:
    """Add a book to the caller's library.

    Returns 400 when a book with the same title and author (ignoring
    case) is already in the library.  A confirmation email is sent in
    the background.
    """
    created = await BookMutationService.create_book(current_user, book)
    return BookMutationResponse(message="Book added successfully", data=created)


@router.put("/{book_id}", response_model=BookMutationResponse)
async def update_book(
    book_id: int,
    updates: BookUpdate,
    current_user: dict = Depends(get_current_user),
) -> BookMutationResponse:
    """Update a book.

    Partial updates are supported; fields missing from the body keep
    their current value.
    """
    updated = await BookMutationService.update_book(
        current_user["user_id"],
        book_id,
        updates.model_dump(exclude_unset=True),
    )
    return BookMutationResponse(message="Book updated successfully", data=updated)


@router.delete("/{book_id}", response_model=BookDeleteResponse)
async def delete_book(book_id: int, current_user: dict = Depends(get_current_user)) -> BookDeleteResponse:
    """Delete a book permanently and echo its id and title."""
    deleted = await BookMutationService.delete_book(current_user["user_id"], book_id)
    return BookDeleteResponse(message="Book deleted successfully", data=deleted)
