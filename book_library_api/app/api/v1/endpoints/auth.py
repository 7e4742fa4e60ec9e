"""
Authentication endpoints for API v1.

Registration and login both answer with a bearer token that the book
and dashboard routes expect in the ``Authorization`` header.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from book_library_api.app.core.security import create_access_token, get_current_user
from book_library_api.app.schemas.user import AuthData, AuthResponse, UserCreate, UserLogin, UserResponse
from book_library_api.app.services.user_service import UserService


router = APIRouter()


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register_user(user: UserCreate) -> AuthResponse:
    """Register a new user and return a token.

    Returns 400 if the email is already registered.  A welcome email is
    sent in the background.
    """
    created = await UserService.create_user(user)
    token = create_access_token({"sub": str(created.id)})
    return AuthResponse(
        message="User registered successfully",
        data=AuthData(token=token, user=created),
    )


@router.post("/login", response_model=AuthResponse)
async def login_user(credentials: UserLogin) -> AuthResponse:
    """Authenticate with email and password and return a token."""
    user = await UserService.authenticate(credentials.email, credentials.password)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    token = create_access_token({"sub": str(user.id)})
    return AuthResponse(message="Login successful", data=AuthData(token=token, user=user))


@router.get("/me", response_model=UserResponse)
async def read_current_user(current_user: dict = Depends(get_current_user)) -> UserResponse:
    """Return the profile of the authenticated user."""
    user = await UserService.get_user_by_id(current_user["user_id"])
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return UserResponse(data=user)
