"""
Unit tests for listing and reading books.
"""

import pytest

from book_library_api.app.core.exceptions import NotFoundError, ValidationFailed
from book_library_api.app.services.book_mutation_service import BookMutationService
from book_library_api.app.core.db import MAX_SQLITE_INTEGER
from book_library_api.app.services.book_query_service import BookQueryService, build_pagination, require_book_id


async def add(owner, title, author="Some Author", genre="Fiction", year=2001, **extra):
    data = {"title": title, "author": author, "genre": genre, "year": year, **extra}
    return await BookMutationService.create_book(owner, data)


class TestPagination:
    """Tests for page slicing and metadata."""

    async def test_last_page_is_partial(self, owner):
        for i in range(25):
            await add(owner, f"Book {i:02d}")

        books, pagination = await BookQueryService.list_books(owner["user_id"], page=3, limit=10)

        assert len(books) == 5
        assert pagination.current_page == 3
        assert pagination.total_pages == 3
        assert pagination.total_books == 25
        assert pagination.has_next_page is False
        assert pagination.has_prev_page is True

    async def test_pages_do_not_overlap(self, owner):
        for i in range(7):
            await add(owner, f"Book {i}")

        seen = []
        for page in (1, 2, 3):
            books, _ = await BookQueryService.list_books(owner["user_id"], page=page, limit=3)
            assert len(books) <= 3
            seen.extend(book.id for book in books)

        assert len(seen) == 7
        assert len(set(seen)) == 7

    async def test_page_beyond_end_is_empty(self, owner):
        await add(owner, "Only")

        books, pagination = await BookQueryService.list_books(owner["user_id"], page=5, limit=10)

        assert books == []
        assert pagination.total_books == 1
        assert pagination.has_next_page is False

    async def test_astronomical_page_is_empty(self, owner):
        await add(owner, "Only")

        books, pagination = await BookQueryService.list_books(owner["user_id"], page=10**18, limit=100)

        assert books == []
        assert pagination.current_page == 10**18
        assert pagination.total_pages == 1
        assert pagination.total_books == 1
        assert pagination.has_next_page is False
        assert pagination.has_prev_page is True

    def test_build_pagination_for_empty_result(self):
        pagination = build_pagination(1, 10, 0)

        assert pagination.total_pages == 0
        assert pagination.has_next_page is False
        assert pagination.has_prev_page is False

    def test_build_pagination_rounds_up(self):
        assert build_pagination(1, 10, 21).total_pages == 3
        assert build_pagination(2, 10, 20).has_next_page is False

    @pytest.mark.parametrize("page, limit, field", [(0, 10, "page"), (1, 0, "limit"), (1, 101, "limit")])
    async def test_out_of_range_values_rejected(self, owner, page, limit, field):
        with pytest.raises(ValidationFailed) as exc_info:
            await BookQueryService.list_books(owner["user_id"], page=page, limit=limit)

        assert [error["field"] for error in exc_info.value.errors] == [field]


class TestFiltering:
    """Tests for search and filter parameters."""

    async def test_search_matches_title_author_and_genre(self, owner):
        await add(owner, "The Hobbit", author="J.R.R. Tolkien", genre="Fantasy")
        await add(owner, "Neuromancer", author="William Gibson", genre="Cyberpunk")
        await add(owner, "Hobbies", author="Nobody", genre="Crafts")

        by_title, _ = await BookQueryService.list_books(owner["user_id"], search="HOBB")
        by_author, _ = await BookQueryService.list_books(owner["user_id"], search="gibson")
        by_genre, _ = await BookQueryService.list_books(owner["user_id"], search="fanta")

        assert {book.title for book in by_title} == {"The Hobbit", "Hobbies"}
        assert [book.title for book in by_author] == ["Neuromancer"]
        assert [book.title for book in by_genre] == ["The Hobbit"]

    async def test_search_folds_non_ascii_case(self, owner):
        await add(owner, "Émile", author="Jean-Jacques Rousseau")

        books, _ = await BookQueryService.list_books(owner["user_id"], search="émile")

        assert [book.title for book in books] == ["Émile"]

    async def test_search_treats_wildcards_literally(self, owner):
        await add(owner, "100% Hits")
        await add(owner, "Plain")

        books, _ = await BookQueryService.list_books(owner["user_id"], search="%")

        assert [book.title for book in books] == ["100% Hits"]

    async def test_genre_and_status_filters_combine(self, owner):
        await add(owner, "A", genre="Science Fiction", status="Reading")
        await add(owner, "B", genre="Sci-Fi", status="Reading")
        await add(owner, "C", genre="Science Fiction", status="Completed")

        books, pagination = await BookQueryService.list_books(
            owner["user_id"], genre="science", status="Reading"
        )

        assert [book.title for book in books] == ["A"]
        assert pagination.total_books == 1

    async def test_unknown_status_rejected(self, owner):
        with pytest.raises(ValidationFailed) as exc_info:
            await BookQueryService.list_books(owner["user_id"], status="Finished")

        assert exc_info.value.errors[0]["field"] == "status"

    async def test_other_owners_books_are_invisible(self, owner, make_owner):
        other = await make_owner("other@example.com", "Other")
        await add(other, "Not Yours")

        books, pagination = await BookQueryService.list_books(owner["user_id"])

        assert books == []
        assert pagination.total_books == 0


class TestSorting:
    """Tests for ``sort_by``/``sort_order``."""

    async def test_sort_by_title_ascending(self, owner):
        for title in ("Charlie", "alpha", "Bravo"):
            await add(owner, title)

        books, _ = await BookQueryService.list_books(owner["user_id"], sort_by="title", sort_order="asc")

        # SQLite's default collation is binary: upper case sorts first.
        assert [book.title for book in books] == ["Bravo", "Charlie", "alpha"]

    async def test_default_is_newest_first(self, owner):
        first = await add(owner, "First")
        second = await add(owner, "Second")

        books, _ = await BookQueryService.list_books(owner["user_id"])

        assert [book.id for book in books] == [second.id, first.id]

    async def test_unknown_sort_key_falls_back_to_created_at(self, owner):
        first = await add(owner, "First")
        second = await add(owner, "Second")

        books, _ = await BookQueryService.list_books(owner["user_id"], sort_by="password", sort_order="asc")

        assert [book.id for book in books] == [first.id, second.id]

    async def test_sort_by_year_descending(self, owner):
        await add(owner, "Old", year=1900)
        await add(owner, "New", year=2020)
        await add(owner, "Mid", year=1960)

        books, _ = await BookQueryService.list_books(owner["user_id"], sort_by="year", sort_order="desc")

        assert [book.year for book in books] == [2020, 1960, 1900]


class TestGetBook:
    """Tests for single-book lookup."""

    async def test_returns_owned_book(self, owner):
        created = await add(owner, "Dune", author="Frank Herbert")

        book = await BookQueryService.get_book(owner["user_id"], created.id)

        assert book.title == "Dune"
        assert book.owner_id == owner["user_id"]

    async def test_foreign_and_missing_ids_look_the_same(self, owner, make_owner):
        other = await make_owner("other@example.com", "Other")
        foreign = await add(other, "Secret")

        with pytest.raises(NotFoundError) as foreign_exc:
            await BookQueryService.get_book(owner["user_id"], foreign.id)
        with pytest.raises(NotFoundError) as missing_exc:
            await BookQueryService.get_book(owner["user_id"], 999_999)

        assert foreign_exc.value.message == missing_exc.value.message == "Book not found"

    @pytest.mark.parametrize("book_id", [0, -1, MAX_SQLITE_INTEGER + 1, 10**20])
    async def test_ids_outside_integer_range_are_not_found(self, owner, book_id):
        with pytest.raises(NotFoundError) as exc_info:
            await BookQueryService.get_book(owner["user_id"], book_id)

        assert exc_info.value.message == "Book not found"

    def test_require_book_id_accepts_largest_integer(self):
        assert require_book_id(MAX_SQLITE_INTEGER) == MAX_SQLITE_INTEGER
