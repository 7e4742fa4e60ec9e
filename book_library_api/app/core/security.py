"""
Security helpers for password hashing and JWT authentication.

Tokens are JSON Web Tokens signed with HMAC‑SHA256 using the
application's secret key.  They carry the user id as ``sub`` and an
expiration timestamp (``exp``).  Passwords are hashed with
PBKDF2‑HMAC‑SHA256 and a random per-password salt.

``get_current_user`` is the FastAPI dependency that turns the bearer
token into the owner identity every book and dashboard route passes
explicitly to the service layer.
"""

import base64
import hashlib
import hmac
import json
import os
import time
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import settings
from .db import get_connection


PBKDF2_ITERATIONS = 100_000

TOKEN_HEADER = {"alg": "HS256", "typ": "JWT"}


def _encode_segment(value: Any) -> str:
    """Serialise ``value`` as one dot-separated token segment.

    Parameters
    ----------
    value : Any
        Raw bytes (the signature) or a JSON-serialisable object (the
        header or the claims).

    Returns
    -------
    str
        Compact JSON, or the bytes themselves, in unpadded URL-safe base64.
    """
    raw = value if isinstance(value, bytes) else json.dumps(value, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _decode_segment(segment: str) -> bytes:
    # Padding was stripped on the way out.
    return base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))


def _signature(header_segment: str, claims_segment: str) -> bytes:
    """HMAC-SHA256 over ``header.claims`` keyed with the application secret.

    Parameters
    ----------
    header_segment, claims_segment : str
        The first two encoded token segments.

    Returns
    -------
    bytes
        The raw digest, before segment encoding.
    """
    signing_input = f"{header_segment}.{claims_segment}".encode("ascii")
    return hmac.new(settings.secret_key.encode("utf-8"), signing_input, hashlib.sha256).digest()


def create_access_token(data: Dict[str, Any], expires_delta: Optional[int] = None) -> str:
    """Issue an HS256 JWT carrying ``data`` plus an ``exp`` claim.

    Clients send the token back as ``Authorization: Bearer <token>``.

    Parameters
    ----------
    data : Dict[str, Any]
        Claims to embed; callers pass the user id as ``sub``.  The dict
        is not modified.
    expires_delta : Optional[int]
        Lifetime in seconds.  Defaults to ``ACCESS_TOKEN_EXPIRE_MINUTES``
        (seven days).

    Returns
    -------
    str
        The signed ``header.claims.signature`` token.
    """
    lifetime = settings.access_token_expire_minutes * 60 if expires_delta is None else expires_delta
    claims = {**data, "exp": int(time.time()) + lifetime}
    segments = [_encode_segment(TOKEN_HEADER), _encode_segment(claims)]
    segments.append(_encode_segment(_signature(*segments)))
    return ".".join(segments)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Verify and decode a token issued by ``create_access_token``.

    Parameters
    ----------
    token : str
        The raw bearer token.

    Returns
    -------
    Optional[Dict[str, Any]]
        The claims when the signature matches and ``exp`` lies in the
        future, otherwise ``None``.
    """
    parts = token.split(".")
    if len(parts) != 3:
        return None
    header_segment, claims_segment, signature_segment = parts
    try:
        if not hmac.compare_digest(_signature(header_segment, claims_segment), _decode_segment(signature_segment)):
            return None
        claims = json.loads(_decode_segment(claims_segment).decode("utf-8"))
    except (ValueError, UnicodeError):
        # binascii.Error and JSONDecodeError are both ValueErrors
        return None
    if not isinstance(claims, dict):
        return None
    expires = claims.get("exp")
    if not isinstance(expires, int) or expires < int(time.time()):
        return None
    return claims


security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)) -> Dict[str, Any]:
    """Dependency that resolves the bearer token to the current user.

    Returns ``{"user_id", "email", "name"}``.  Raises HTTP 401 when the
    header is missing, the token is invalid or expired, or the user no
    longer exists or has been deactivated.
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")
    payload = decode_access_token(credentials.credentials)
    if not payload:
        raise _unauthorized("Invalid or expired token")
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise _unauthorized("Invalid or expired token")

    conn = get_connection()
    try:
        user_row = conn.execute(
            "SELECT id, name, email, is_active FROM users WHERE id = ?",
            (user_id,),
        ).fetchone()
    finally:
        conn.close()
    if not user_row:
        raise _unauthorized("User no longer exists")
    if not user_row["is_active"]:
        raise _unauthorized("User account disabled")
    return {
        "user_id": user_row["id"],
        "email": user_row["email"],
        "name": user_row["name"],
    }


def hash_password(password: str) -> str:
    """Hash a password using PBKDF2‑HMAC with SHA‑256.

    The result is ``"<salt hex>$<hash hex>"`` so the salt can be
    recovered for verification.
    """
    salt = os.urandom(16)
    dk = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, PBKDF2_ITERATIONS)
    return f"{salt.hex()}${dk.hex()}"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against a stored ``salt$hash`` string."""
    try:
        salt_hex, hash_hex = hashed_password.split("$", 1)
        salt = bytes.fromhex(salt_hex)
        stored_hash = bytes.fromhex(hash_hex)
    except (AttributeError, ValueError):
        return False
    dk = hashlib.pbkdf2_hmac("sha256", plain_password.encode("utf-8"), salt, PBKDF2_ITERATIONS)
    return hmac.compare_digest(dk, stored_hash)
