"""
Exception handlers producing the API's response envelope.

Every error leaves the API as ``{"success": false, "message": ...}``
with an ``errors`` list for validation failures.  Expected domain
errors are logged as warnings; anything else is logged with its
traceback and reported to the client as a generic server error.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .exceptions import BookLibraryError, ValidationFailed, format_validation_errors


logger = logging.getLogger(__name__)


def error_response(
    status_code: int,
    message: str,
    errors: Optional[List[Dict[str, Any]]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """Build the standard ``{success: false, ...}`` JSON response."""
    content: Dict[str, Any] = {"success": False, "message": message}
    if errors is not None:
        content["errors"] = errors
    return JSONResponse(status_code=status_code, content=content, headers=headers)


async def book_library_error_handler(request: Request, exc: BookLibraryError) -> JSONResponse:
    logger.warning("%s %s rejected: %s", request.method, request.url.path, exc.message)
    errors = exc.errors if isinstance(exc, ValidationFailed) else None
    return error_response(exc.status_code, exc.message, errors)


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = format_validation_errors(exc.errors())
    logger.warning("%s %s failed validation: %s", request.method, request.url.path, errors)
    return error_response(status.HTTP_400_BAD_REQUEST, "Validation failed", errors)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    # Details stay in the server log; the client only learns that it failed.
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Server error")


def register_error_handlers(app: FastAPI) -> None:
    """Attach all envelope-producing handlers to ``app``."""
    app.add_exception_handler(BookLibraryError, book_library_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
