"""Application configuration loaded from environment variables.

Settings for database, API, token signing, email delivery, and OAuth
providers. Uses pydantic-settings for validation and .env file support.

The module-level ``settings`` instance is built once at process start.
Services never read it directly: FastAPI dependencies in ``keystone.api.deps``
build the token issuer and email sender from it and pass them in explicitly.
"""

from typing import Literal

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Known insecure default password that must not be used in production
_INSECURE_DEFAULT_PASSWORD = "keystone_dev_password"  # nosec B105

# Minimum length for JWT_SECRET in production (256 bits = 32 bytes)
_MIN_JWT_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    database_host: str = "localhost"
    database_port: int = 5432
    database_name: str = "keystone"
    database_user: str = "keystone_user"
    database_password: str = _INSECURE_DEFAULT_PASSWORD

    # API
    # 0.0.0.0 binds to all network interfaces (required for Docker containers)
    api_host: str = "0.0.0.0"  # nosec B104
    api_port: int = 3000

    # CORS
    # Never set to ["*"]: the session cookie requires allow_credentials=True
    allowed_origins: list[str] = ["http://localhost:5173"]

    # Application
    environment: str = "development"
    log_level: str = "INFO"

    # Bearer tokens
    jwt_secret: SecretStr = SecretStr("")
    jwt_issuer: str = "keystone-auth"
    jwt_expires_in_seconds: int = 3600
    auth_cookie_name: str = "jwt"
    auth_cookie_samesite: Literal["lax", "strict", "none"] = "lax"
    auth_cookie_domain: str = ""

    # Password policy (length bounds only)
    password_min_length: int = 8
    password_max_length: int = 50

    # Magic links
    magic_link_ttl_minutes: int = 15

    # Frontend URL (magic link URLs and OAuth redirects point here)
    frontend_url: str = "http://localhost:5173"

    # Email relay
    email_api_url: str = "https://api.resend.com/emails"
    email_api_key: SecretStr = SecretStr("")
    email_from: str = "noreply@keystone.dev"
    email_sender_name: str = "Keystone"

    # OAuth providers
    google_client_id: str = ""
    google_client_secret: SecretStr = SecretStr("")
    google_callback_url: str = "http://localhost:3000/api/v1/auth/google/callback"
    github_client_id: str = ""
    github_client_secret: SecretStr = SecretStr("")
    github_callback_url: str = "http://localhost:3000/api/v1/auth/github/callback"

    # Rate limiting
    rate_limit_enabled: bool = True

    @property
    def database_url(self) -> str:
        """Async database URL for SQLAlchemy."""
        return (
            f"postgresql+asyncpg://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @property
    def database_url_sync(self) -> str:
        """Sync database URL for Alembic."""
        return (
            f"postgresql://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @property
    def auth_cookie_secure(self) -> bool:
        """Session cookie carries the Secure flag in production only."""
        return self.environment == "production"

    @model_validator(mode="after")
    def check_production_security(self) -> "Settings":
        """Validate configuration invariants and production security rules.

        Checks:
        - Token expiry and magic link TTL must be positive (all environments)
        - Password length bounds must be ordered (all environments)
        - CORS must not use wildcard origin (incompatible with credentials)
        - SameSite=None requires the Secure flag, which is production-only
        - Database password must not be the default in production
        - JWT_SECRET must be set and >= 32 chars in production
        """
        if self.jwt_expires_in_seconds <= 0:
            msg = (
                "JWT_EXPIRES_IN_SECONDS must be positive. "
                f"Got: {self.jwt_expires_in_seconds}"
            )
            raise ValueError(msg)

        if self.magic_link_ttl_minutes <= 0:
            msg = (
                "MAGIC_LINK_TTL_MINUTES must be positive. "
                f"Got: {self.magic_link_ttl_minutes}"
            )
            raise ValueError(msg)

        if not 0 < self.password_min_length <= self.password_max_length:
            msg = (
                "PASSWORD_MIN_LENGTH must be positive and not exceed "
                "PASSWORD_MAX_LENGTH."
            )
            raise ValueError(msg)

        if "*" in self.allowed_origins:
            msg = (
                "ALLOWED_ORIGINS must not contain '*' (wildcard). "
                "This application uses credentials (cookies) which are "
                "incompatible with wildcard CORS origins."
            )
            raise ValueError(msg)

        if self.auth_cookie_samesite == "none" and not self.auth_cookie_secure:
            msg = (
                "AUTH_COOKIE_SAMESITE=none is only allowed in production. "
                "Browsers reject SameSite=None cookies without the Secure flag."
            )
            raise ValueError(msg)

        if self.environment == "production":
            if self.database_password == _INSECURE_DEFAULT_PASSWORD:
                msg = (
                    "Cannot use default database password in production. "
                    "Set DATABASE_PASSWORD environment variable to a secure value."
                )
                raise ValueError(msg)

            secret_value = self.jwt_secret.get_secret_value()
            if not secret_value:
                msg = (
                    "JWT_SECRET must be set in production. "
                    'Generate with: python -c "import secrets; '
                    'print(secrets.token_hex(32))"'
                )
                raise ValueError(msg)
            if len(secret_value) < _MIN_JWT_SECRET_LENGTH:
                msg = (
                    f"JWT_SECRET must be at least {_MIN_JWT_SECRET_LENGTH} "
                    "characters for adequate security."
                )
                raise ValueError(msg)

        return self


settings = Settings()
