"""
Unit tests for creating, updating and deleting books.
"""

from datetime import datetime, timezone

import pytest

from book_library_api.app.core.db import get_connection, parse_timestamp, utcnow
from book_library_api.app.core.exceptions import ConflictError, NotFoundError, ValidationFailed
from book_library_api.app.services.book_mutation_service import BookMutationService, validate_book
from book_library_api.app.services.book_query_service import BookQueryService


def count_books() -> int:
    conn = get_connection()
    try:
        return conn.execute("SELECT COUNT(*) FROM books").fetchone()[0]
    finally:
        conn.close()


class TestValidateBook:
    """Tests for the shared field rules."""

    def test_defaults_and_trimming(self):
        book = validate_book({"title": "  Dune ", "author": "Frank Herbert", "genre": "Sci-Fi", "year": 1965})

        assert book.title == "Dune"
        assert book.status.value == "Wishlist"
        assert book.rating is None
        assert book.notes == ""

    def test_reports_every_bad_field(self):
        with pytest.raises(ValidationFailed) as exc_info:
            validate_book({
                "title": "",
                "author": "x" * 101,
                "genre": "Sci-Fi",
                "year": 999,
                "status": "Finished",
                "rating": 6,
            })

        fields = {error["field"] for error in exc_info.value.errors}
        assert fields == {"title", "author", "year", "status", "rating"}

    def test_future_year_rejected(self):
        with pytest.raises(ValidationFailed) as exc_info:
            validate_book({"title": "T", "author": "A", "genre": "G", "year": utcnow().year + 1})

        assert exc_info.value.errors == [{"field": "year", "message": "Year cannot be in the future"}]

    def test_current_year_accepted(self):
        assert validate_book({"title": "T", "author": "A", "genre": "G", "year": utcnow().year})

    def test_current_year_follows_utc_clock(self, monkeypatch):
        monkeypatch.setattr(
            "book_library_api.app.schemas.book.utcnow",
            lambda: datetime(2020, 6, 1, tzinfo=timezone.utc),
        )

        assert validate_book({"title": "T", "author": "A", "genre": "G", "year": 2020})
        with pytest.raises(ValidationFailed) as exc_info:
            validate_book({"title": "T", "author": "A", "genre": "G", "year": 2021})

        assert [error["field"] for error in exc_info.value.errors] == ["year"]

    def test_missing_required_fields(self):
        with pytest.raises(ValidationFailed) as exc_info:
            validate_book({"title": "Dune"})

        assert {error["field"] for error in exc_info.value.errors} == {"author", "genre", "year"}


class TestCreateBook:
    """Tests for adding books."""

    async def test_create_returns_stored_record(self, owner, dune):
        book = await BookMutationService.create_book(owner, dune)

        assert book.id > 0
        assert book.owner_id == owner["user_id"]
        assert book.title == "Dune"
        assert book.status.value == "Wishlist"
        assert book.created_at == book.updated_at

    async def test_duplicate_for_same_owner_conflicts(self, owner, dune):
        await BookMutationService.create_book(owner, dune)

        with pytest.raises(ConflictError) as exc_info:
            await BookMutationService.create_book(owner, {**dune, "title": "DUNE", "author": "frank herbert"})

        assert exc_info.value.message == "This book already exists in your library"
        assert count_books() == 1

    async def test_same_book_for_different_owners(self, owner, make_owner, dune):
        other = await make_owner("other@example.com", "Other")

        first = await BookMutationService.create_book(owner, dune)
        second = await BookMutationService.create_book(other, dune)

        assert first.id != second.id
        assert count_books() == 2

    async def test_same_title_different_author_allowed(self, owner, dune):
        await BookMutationService.create_book(owner, dune)
        await BookMutationService.create_book(owner, {**dune, "author": "Brian Herbert"})

        assert count_books() == 2

    async def test_invalid_fields_do_not_insert(self, owner, dune):
        with pytest.raises(ValidationFailed):
            await BookMutationService.create_book(owner, {**dune, "rating": 0})

        assert count_books() == 0

    async def test_book_added_email_is_dispatched(self, owner, dune, sent_emails, drain):
        await BookMutationService.create_book(owner, dune)
        await drain()

        added = [email for email in sent_emails if email["subject"] == "New Book Added: Dune"]
        assert len(added) == 1
        assert added[0]["to"] == owner["email"]

    async def test_email_failure_does_not_fail_create(self, owner, dune, monkeypatch, drain):
        from book_library_api.app.services.email_service import EmailService

        async def broken(cls, to, subject, html_body):
            raise RuntimeError("provider down")

        monkeypatch.setattr(EmailService, "send_email", classmethod(broken))

        book = await BookMutationService.create_book(owner, dune)
        await drain()

        assert book.title == "Dune"
        assert count_books() == 1


class TestUpdateBook:
    """Tests for partial updates."""

    async def test_rating_only_update_keeps_other_fields(self, owner, dune):
        created = await BookMutationService.create_book(owner, {**dune, "notes": "spice"})

        updated = await BookMutationService.update_book(owner["user_id"], created.id, {"rating": 4})

        assert updated.rating == 4
        for field in ("title", "author", "genre", "year", "status", "notes", "created_at"):
            assert getattr(updated, field) == getattr(created, field)
        assert updated.updated_at > created.updated_at

    async def test_updated_at_moves_forward_past_clock(self, owner, dune, set_timestamps):
        created = await BookMutationService.create_book(owner, dune)
        set_timestamps(created.id, updated_at="2999-01-01T00:00:00.000000Z")

        updated = await BookMutationService.update_book(owner["user_id"], created.id, {"status": "Reading"})

        assert updated.updated_at == parse_timestamp("2999-01-01T00:00:00.000001Z")

    async def test_rating_can_be_cleared(self, owner, dune):
        created = await BookMutationService.create_book(owner, {**dune, "rating": 5})

        updated = await BookMutationService.update_book(owner["user_id"], created.id, {"rating": None})

        assert updated.rating is None

    async def test_unknown_keys_are_ignored(self, owner, dune, make_owner):
        other = await make_owner("other@example.com", "Other")
        created = await BookMutationService.create_book(owner, dune)

        updated = await BookMutationService.update_book(
            owner["user_id"], created.id, {"owner_id": other["user_id"], "id": 42, "genre": "Classic"}
        )

        assert updated.id == created.id
        assert updated.owner_id == owner["user_id"]
        assert updated.genre == "Classic"

    async def test_merged_record_is_validated(self, owner, dune):
        created = await BookMutationService.create_book(owner, dune)

        with pytest.raises(ValidationFailed) as exc_info:
            await BookMutationService.update_book(owner["user_id"], created.id, {"title": "   "})

        assert exc_info.value.errors[0]["field"] == "title"
        unchanged = await BookQueryService.get_book(owner["user_id"], created.id)
        assert unchanged.title == "Dune"

    async def test_rename_onto_existing_book_conflicts(self, owner, dune):
        await BookMutationService.create_book(owner, dune)
        other = await BookMutationService.create_book(owner, {**dune, "title": "Dune Messiah"})

        with pytest.raises(ConflictError):
            await BookMutationService.update_book(owner["user_id"], other.id, {"title": "dune"})

    async def test_changing_case_of_own_title_allowed(self, owner, dune):
        created = await BookMutationService.create_book(owner, dune)

        updated = await BookMutationService.update_book(owner["user_id"], created.id, {"title": "DUNE"})

        assert updated.title == "DUNE"

    async def test_foreign_book_is_not_found(self, owner, make_owner, dune):
        other = await make_owner("other@example.com", "Other")
        foreign = await BookMutationService.create_book(other, dune)

        with pytest.raises(NotFoundError):
            await BookMutationService.update_book(owner["user_id"], foreign.id, {"rating": 1})

        untouched = await BookQueryService.get_book(other["user_id"], foreign.id)
        assert untouched.rating is None

    async def test_id_beyond_integer_range_is_not_found(self, owner):
        with pytest.raises(NotFoundError):
            await BookMutationService.update_book(owner["user_id"], 10**20, {"rating": 1})


class TestDeleteBook:
    """Tests for deleting books."""

    async def test_delete_returns_id_and_title(self, owner, dune):
        created = await BookMutationService.create_book(owner, dune)

        deleted = await BookMutationService.delete_book(owner["user_id"], created.id)

        assert deleted.id == created.id
        assert deleted.title == "Dune"
        assert count_books() == 0

    async def test_second_delete_is_not_found(self, owner, dune):
        created = await BookMutationService.create_book(owner, dune)
        await BookMutationService.delete_book(owner["user_id"], created.id)

        with pytest.raises(NotFoundError):
            await BookMutationService.delete_book(owner["user_id"], created.id)

    async def test_foreign_delete_leaves_book_in_place(self, owner, make_owner, dune):
        other = await make_owner("other@example.com", "Other")
        foreign = await BookMutationService.create_book(other, dune)

        with pytest.raises(NotFoundError):
            await BookMutationService.delete_book(owner["user_id"], foreign.id)

        assert count_books() == 1

    async def test_id_beyond_integer_range_is_not_found(self, owner, dune):
        await BookMutationService.create_book(owner, dune)

        with pytest.raises(NotFoundError):
            await BookMutationService.delete_book(owner["user_id"], 2**63)

        assert count_books() == 1
