"""
Pytest configuration and fixtures for the Book Library API tests.
"""

import asyncio
from typing import AsyncGenerator, Awaitable, Callable, Dict, List, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from book_library_api.app.core.config import settings
from book_library_api.app.core.db import get_connection, init_db
from book_library_api.app.main import app as application
from book_library_api.app.schemas.user import UserCreate
from book_library_api.app.services.email_service import EmailService
from book_library_api.app.services.user_service import UserService


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(autouse=True)
def database(tmp_path, monkeypatch) -> str:
    """Point every test at a fresh, migrated SQLite file."""
    db_path = str(tmp_path / "library.db")
    monkeypatch.setattr(settings, "database_url", db_path)
    monkeypatch.setattr(settings, "email_api_url", "")
    init_db()
    return db_path


@pytest.fixture
def set_timestamps() -> Callable[..., None]:
    """Rewrite a book's stored timestamps (storage format strings)."""

    def _set(book_id: int, created_at: Optional[str] = None, updated_at: Optional[str] = None) -> None:
        conn = get_connection()
        try:
            if created_at is not None:
                conn.execute("UPDATE books SET created_at = ? WHERE id = ?", (created_at, book_id))
            if updated_at is not None:
                conn.execute("UPDATE books SET updated_at = ? WHERE id = ?", (updated_at, book_id))
            conn.commit()
        finally:
            conn.close()

    return _set


# =============================================================================
# Email Fixtures
# =============================================================================

@pytest.fixture
def sent_emails(monkeypatch) -> List[Dict[str, str]]:
    """Record outgoing emails instead of contacting a provider."""
    sent: List[Dict[str, str]] = []

    async def fake_send_email(cls, to: str, subject: str, html_body: str) -> None:
        sent.append({"to": to, "subject": subject, "html": html_body})

    monkeypatch.setattr(EmailService, "send_email", classmethod(fake_send_email))
    return sent


async def drain_notifications() -> None:
    """Wait for every background notification started so far."""
    pending = list(EmailService._pending)
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)


# =============================================================================
# Owner Fixtures
# =============================================================================

@pytest_asyncio.fixture
async def make_owner(sent_emails) -> Callable[..., Awaitable[dict]]:
    """Create users through the service layer and return owner identities."""

    async def _make(email: str = "reader@example.com", name: str = "Reader") -> dict:
        user = await UserService.create_user(UserCreate(name=name, email=email, password="secret123"))
        return {"user_id": user.id, "email": user.email, "name": user.name}

    yield _make
    await drain_notifications()


@pytest_asyncio.fixture
async def owner(make_owner) -> dict:
    return await make_owner()


# =============================================================================
# Application Fixtures
# =============================================================================

@pytest_asyncio.fixture
async def client(sent_emails) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client talking to the app in-process."""
    transport = ASGITransport(app=application)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    await drain_notifications()


@pytest_asyncio.fixture
async def register(client) -> Callable[..., Awaitable[Dict[str, str]]]:
    """Register a user over HTTP and return their ``Authorization`` header."""

    async def _register(email: str = "reader@example.com", name: str = "Reader") -> Dict[str, str]:
        response = await client.post(
            "/api/auth/register",
            json={"name": name, "email": email, "password": "secret123"},
        )
        assert response.status_code == 201, response.text
        return {"Authorization": f"Bearer {response.json()['data']['token']}"}

    return _register


@pytest.fixture
def dune() -> dict:
    return {
        "title": "Dune",
        "author": "Frank Herbert",
        "genre": "Sci-Fi",
        "year": 1965,
        "status": "Wishlist",
    }


@pytest.fixture
def drain() -> Callable[[], Awaitable[None]]:
    return drain_notifications
