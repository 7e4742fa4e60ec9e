"""
Business logic for users.

Registration stores a PBKDF2 password hash and sends a welcome email
in the background.  Emails are unique and compared in lower case.
"""

import logging
import sqlite3
from typing import Optional

from book_library_api.app.core.db import format_timestamp, get_connection, utcnow
from book_library_api.app.core.exceptions import ConflictError
from book_library_api.app.core.security import hash_password, verify_password
from book_library_api.app.schemas.user import UserCreate, UserRead
from book_library_api.app.services.email_service import EmailService


logger = logging.getLogger(__name__)

USER_COLUMNS = "id, name, email, is_active, created_at"


def _row_to_user(row: sqlite3.Row) -> UserRead:
    return UserRead(
        id=row["id"],
        name=row["name"],
        email=row["email"],
        is_active=bool(row["is_active"]),
        created_at=row["created_at"],
    )


class UserService:
    """Service for registering and authenticating users."""

    @classmethod
    async def create_user(cls, data: UserCreate) -> UserRead:
        """Register a new user and return it.

        Raises ``ConflictError`` if the email is already registered.
        """
        logger.info("Registering user %s", data.email)
        now = format_timestamp(utcnow())
        conn = get_connection()
        try:
            cursor = conn.cursor()
            try:
                cursor.execute(
                    "INSERT INTO users (name, email, password, is_active, created_at, updated_at)"
                    " VALUES (?, ?, ?, 1, ?, ?)",
                    (data.name, data.email, hash_password(data.password), now, now),
                )
            except sqlite3.IntegrityError as e:
                conn.rollback()
                raise ConflictError("User already exists with this email") from e
            user_id = cursor.lastrowid
            conn.commit()
            row = cursor.execute(f"SELECT {USER_COLUMNS} FROM users WHERE id = ?", (user_id,)).fetchone()
        finally:
            conn.close()

        EmailService.dispatch(
            EmailService.send_welcome_email(data.email, data.name),
            f"welcome email to {data.email}",
        )
        return _row_to_user(row)

    @classmethod
    async def authenticate(cls, email: str, password: str) -> Optional[UserRead]:
        """Return the user if ``email``/``password`` match an active account."""
        conn = get_connection()
        try:
            row = conn.execute(
                f"SELECT {USER_COLUMNS}, password FROM users WHERE email = ?",
                (email.strip().lower(),),
            ).fetchone()
        finally:
            conn.close()
        if not row or not row["is_active"]:
            return None
        if not verify_password(password, row["password"]):
            return None
        return _row_to_user(row)

    @classmethod
    async def get_user_by_id(cls, user_id: int) -> Optional[UserRead]:
        """Retrieve a user by ID."""
        conn = get_connection()
        try:
            row = conn.execute(f"SELECT {USER_COLUMNS} FROM users WHERE id = ?", (user_id,)).fetchone()
        finally:
            conn.close()
        return _row_to_user(row) if row else None
