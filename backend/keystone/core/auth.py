"""Authentication helpers for passwords, cookies, and bearer extraction.

Shared utilities used by the credential verifier, the auth service and
the auth endpoints.

Pipeline:
- validate_password_length: Length bounds only (sync)
- hash_password / check_password: bcrypt with a fixed work factor
- DUMMY_HASH: Timing-safe constant for user enumeration defense
- set_auth_cookie / clear_auth_cookie: httpOnly session cookie
- extract_bearer_token: Authorization header first, then cookie
"""

import logging

import bcrypt
from fastapi import Request, Response

from keystone.core.config import settings
from keystone.core.errors import ValidationError

logger = logging.getLogger(__name__)

# bcrypt cost factor for password hashing
BCRYPT_ROUNDS = 12

# bcrypt ignores input beyond 72 bytes (newer releases reject it outright)
_BCRYPT_MAX_BYTES = 72

# Pre-computed bcrypt hash for timing-safe comparison on user-not-found.
# Pre-generated to avoid ~300ms bcrypt computation on every app startup.
DUMMY_HASH = b"$2b$12$ZP2PVB8yI35X.mkRqcUPUuSzJA1CNRt4dZ7X3cyrfJu.2S3w.Qen2"

_BEARER_PREFIX = "bearer "


def validate_password_length(
    password: str,
    *,
    min_length: int,
    max_length: int,
) -> None:
    """Validate password length bounds.

    Args:
        password: Plain-text password to validate.
        min_length: Minimum number of characters.
        max_length: Maximum number of characters.

    Raises:
        ValidationError: If the password is too short or too long.
    """
    if len(password) < min_length:
        raise ValidationError(
            f"Password must be at least {min_length} characters long."
        )
    if len(password) > max_length:
        raise ValidationError(
            f"Password must be at most {max_length} characters long."
        )
    if len(password.encode()) > _BCRYPT_MAX_BYTES:
        raise ValidationError(f"Password must be at most {_BCRYPT_MAX_BYTES} bytes.")


def hash_password(password: str) -> str:
    """Hash a password with bcrypt (salted, cost factor 12).

    Args:
        password: Plain-text password.

    Returns:
        bcrypt hash as a str.
    """
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode(), salt).decode()


def check_password(password: str, password_hash: str | bytes) -> bool:
    """Compare a password against a bcrypt hash.

    Malformed hashes and over-long passwords count as a mismatch instead
    of raising, so callers have a single failure path.

    Args:
        password: Plain-text password.
        password_hash: Stored bcrypt hash.

    Returns:
        True if the password matches.
    """
    if isinstance(password_hash, str):
        password_hash = password_hash.encode()
    try:
        return bcrypt.checkpw(password.encode(), password_hash)
    except ValueError:
        logger.warning("bcrypt comparison rejected its input")
        return False


def set_auth_cookie(response: Response, token: str, *, max_age: int) -> None:
    """Set httpOnly session cookie on response.

    httpOnly keeps the token away from scripts. Secure is on in
    production; SameSite and domain come from settings.

    Args:
        response: FastAPI response object.
        token: JWT token string.
        max_age: Cookie lifetime in seconds (mirrors token expiry).
    """
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=token,
        httponly=True,
        secure=settings.auth_cookie_secure,
        samesite=settings.auth_cookie_samesite,
        path="/",
        max_age=max_age,
        domain=settings.auth_cookie_domain or None,
    )


def clear_auth_cookie(response: Response) -> None:
    """Delete the session cookie.

    Attributes must match set_auth_cookie() for the browser to delete it.
    """
    response.delete_cookie(
        key=settings.auth_cookie_name,
        path="/",
        httponly=True,
        secure=settings.auth_cookie_secure,
        samesite=settings.auth_cookie_samesite,
        domain=settings.auth_cookie_domain or None,
    )


def extract_bearer_token(request: Request) -> str | None:
    """Read the bearer token from the request.

    ``Authorization: Bearer <token>`` wins over the session cookie.

    Args:
        request: Incoming request.

    Returns:
        Token string, or None if neither source carries one.
    """
    header = request.headers.get("authorization", "")
    if header.lower().startswith(_BEARER_PREFIX):
        token = header[len(_BEARER_PREFIX) :].strip()
        if token:
            return token
    return request.cookies.get(settings.auth_cookie_name) or None
