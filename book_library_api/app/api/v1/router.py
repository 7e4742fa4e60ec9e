"""
Top-level router for version 1 of the API.

Aggregates the domain routers under their prefixes.  When a new area
is added, include its router here.
"""

from fastapi import APIRouter

from .endpoints import auth, books, dashboard, health


router = APIRouter()

router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(books.router, prefix="/books", tags=["books"])
router.include_router(dashboard.router, prefix="/dashboard", tags=["dashboard"])
router.include_router(health.router, prefix="/health", tags=["health"])
