"""
Pydantic models for user data.

Defines schemas for registering, logging in and reading the current
user.  Passwords are only ever accepted, never returned.
"""

from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, BeforeValidator, Field

from .common import ApiResponse, CamelModel


def _normalise_email(value: str) -> str:
    value = value.strip().lower()
    local, _, domain = value.partition("@")
    if not local or "." not in domain or " " in value:
        raise ValueError("Please provide a valid email")
    return value


def _strip(value):
    return value.strip() if isinstance(value, str) else value


Email = Annotated[str, Field(max_length=254), AfterValidator(_normalise_email)]


class UserCreate(BaseModel):
    """Schema for registering a user."""

    name: Annotated[str, BeforeValidator(_strip), Field(min_length=1, max_length=50)] = Field(
        ..., examples=["Jane Reader"]
    )
    email: Email = Field(..., examples=["jane@example.com"])
    password: str = Field(..., min_length=6, max_length=128, examples=["strongpassword"])


class UserLogin(BaseModel):
    email: Email = Field(..., examples=["jane@example.com"])
    password: str = Field(..., min_length=1)


class UserRead(CamelModel):
    """Schema for reading a user from the API."""

    id: int
    name: str
    email: str
    is_active: bool = True
    created_at: datetime


class AuthData(CamelModel):
    token: str
    user: UserRead


class AuthResponse(ApiResponse):
    message: str
    data: AuthData


class UserResponse(ApiResponse):
    data: UserRead
