"""Bearer token issuance and verification.

Tokens are stateless HS256 JWTs carrying exactly the user's id (``sub``),
``email`` and ``role``, stamped with ``iat``/``exp``/``iss``. Nothing is
stored server-side: a token stays valid until it expires, and rotating
the signing secret invalidates every outstanding token.

The issuer is built once from an explicit ``TokenConfig``; it never reads
global settings on its own.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import jwt

if TYPE_CHECKING:
    from keystone.core.config import Settings
    from keystone.models.user import User

_ALGORITHM = "HS256"


class TokenIssuerConfigError(RuntimeError):
    """Raised when the issuer cannot sign tokens (missing secret).

    This is a startup-time misconfiguration, not a per-request error.
    """


@dataclass(frozen=True)
class TokenConfig:
    """Signing configuration for bearer tokens.

    Attributes:
        secret: HMAC signing secret.
        expires_in_seconds: Lifetime of each issued token.
        issuer: Value of the ``iss`` claim.
    """

    secret: str
    expires_in_seconds: int
    issuer: str

    @classmethod
    def from_settings(cls, settings: "Settings") -> "TokenConfig":
        """Build the config from application settings."""
        return cls(
            secret=settings.jwt_secret.get_secret_value(),
            expires_in_seconds=settings.jwt_expires_in_seconds,
            issuer=settings.jwt_issuer,
        )


@dataclass(frozen=True)
class IssuedToken:
    """A freshly signed bearer token.

    Attributes:
        token: Encoded JWT string.
        expires_at: Absolute expiry time (UTC).
        expires_in: Lifetime in seconds (mirrors the cookie max-age).
    """

    token: str
    expires_at: datetime
    expires_in: int


@dataclass(frozen=True)
class TokenClaims:
    """Verified claims extracted from a bearer token."""

    user_id: str
    email: str
    role: str
    issued_at: datetime
    expires_at: datetime


class TokenIssuer:
    """Mints and verifies signed, time-limited bearer tokens.

    Args:
        config: Signing configuration.

    Raises:
        TokenIssuerConfigError: If the signing secret is empty.
    """

    def __init__(self, config: TokenConfig) -> None:
        if not config.secret:
            msg = "JWT_SECRET is not configured; bearer tokens cannot be signed"
            raise TokenIssuerConfigError(msg)
        self._config = config

    @property
    def expires_in_seconds(self) -> int:
        """Configured token lifetime in seconds."""
        return self._config.expires_in_seconds

    def issue(self, user: "User") -> IssuedToken:
        """Sign a token for a user.

        Each call stamps the current time, so two tokens for the same user
        differ only in ``iat``/``exp``.

        Args:
            user: User the token identifies.

        Returns:
            IssuedToken with the encoded JWT and its expiry.
        """
        now = datetime.now(UTC)
        expires_at = now + timedelta(seconds=self._config.expires_in_seconds)
        payload = {
            "sub": str(user.id),
            "email": user.email,
            "role": user.role.value,
            "iss": self._config.issuer,
            "iat": now,
            "exp": expires_at,
        }
        token = jwt.encode(payload, self._config.secret, algorithm=_ALGORITHM)
        return IssuedToken(
            token=token,
            expires_at=expires_at,
            expires_in=self._config.expires_in_seconds,
        )

    def decode(self, token: str) -> TokenClaims:
        """Verify a token's signature, expiry and issuer.

        Args:
            token: Encoded JWT string.

        Returns:
            TokenClaims for a valid token.

        Raises:
            jwt.InvalidTokenError: If the token is malformed, tampered,
                expired, from another issuer, or missing required claims.
        """
        payload = jwt.decode(
            token,
            self._config.secret,
            algorithms=[_ALGORITHM],
            issuer=self._config.issuer,
            options={"require": ["sub", "email", "role", "iat", "exp"]},
        )
        return TokenClaims(
            user_id=str(payload["sub"]),
            email=str(payload["email"]),
            role=str(payload["role"]),
            issued_at=datetime.fromtimestamp(payload["iat"], UTC),
            expires_at=datetime.fromtimestamp(payload["exp"], UTC),
        )
