"""
Application package initializer.

The project is organised into logical pieces: ``core`` holds settings,
logging, persistence and security helpers, ``services`` the business
logic, ``schemas`` the Pydantic payloads and ``api`` the versioned
routers.  Each domain (auth, books, dashboard) exposes a router
defined in ``api/v1/endpoints``.
"""

from .main import app  # noqa: F401
