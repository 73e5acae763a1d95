import socket
import uuid
from collections.abc import AsyncGenerator, Iterator
from datetime import UTC, datetime, timedelta

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from keystone.core.config import settings
from keystone.core.tokens import TokenConfig, TokenIssuer
from keystone.models.base import Base
from keystone.models.user import Role, User
from keystone.services.auth_service import AuthResult

# Use separate test database
TEST_DATABASE_URL = settings.database_url.replace(
    settings.database_name, f"{settings.database_name}_test"
)

# Security: This is a test-only secret. Production uses a real secret from env.
TEST_JWT_SECRET = "test-secret-key-that-is-at-least-32-characters-long"  # nosec B105  # gitleaks:allow
TEST_JWT_ISSUER = "keystone-auth"
TEST_TOKEN_TTL_SECONDS = 3600

TEST_PASSWORD = "correct-horse-9"  # nosec B105
TEST_BEARER_TOKEN = "header.payload.signature"  # nosec B105


def make_user(
    *,
    email: str = "user@example.com",
    name: str | None = "Test User",
    password_hash: str | None = None,
    avatar_url: str | None = None,
    role: Role = Role.USER,
    user_id: uuid.UUID | None = None,
) -> User:
    """Build a transient User for tests that never touch the database."""
    now = datetime.now(UTC)
    return User(
        id=user_id or uuid.uuid4(),
        email=email,
        name=name,
        password_hash=password_hash,
        avatar_url=avatar_url,
        role=role,
        created_at=now,
        updated_at=now,
    )


def make_auth_result(user: User, token: str = "issued.jwt.token") -> AuthResult:
    """Build the AuthResult a successful sign-in returns."""
    return AuthResult(
        access_token=token,
        expires_at=datetime.now(UTC) + timedelta(seconds=TEST_TOKEN_TTL_SECONDS),
        expires_in=TEST_TOKEN_TTL_SECONDS,
        user=user,
    )


def _is_postgres_available() -> bool:
    """Check if PostgreSQL is accepting connections.

    Returns:
        True if PostgreSQL is reachable on the configured port, False otherwise.
    """
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.settimeout(1)
        result = sock.connect_ex((settings.database_host, settings.database_port))
        sock.close()
        return result == 0
    except OSError:
        return False


# Check once at module load time
_POSTGRES_AVAILABLE = _is_postgres_available()


def skip_if_no_postgres() -> None:
    """Skip test if PostgreSQL is not available.

    Called by fixtures that require database connection.
    """
    if not _POSTGRES_AVAILABLE:
        pytest.skip(
            f"PostgreSQL not available on port {settings.database_port}. "
            "Start database with: docker compose up -d"
        )


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create test database engine with a fresh schema.

    Skips test if PostgreSQL is not available (e.g., Docker not running).
    """
    skip_if_no_postgres()

    engine = create_async_engine(TEST_DATABASE_URL, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    """Factory for tests that need several independent sessions."""
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def token_issuer() -> TokenIssuer:
    """Token issuer signed with the test secret."""
    return TokenIssuer(
        TokenConfig(
            secret=TEST_JWT_SECRET,
            expires_in_seconds=TEST_TOKEN_TTL_SECONDS,
            issuer=TEST_JWT_ISSUER,
        )
    )


@pytest.fixture(autouse=True)
def disable_rate_limiting() -> Iterator[None]:
    """Disable rate limiting during tests.

    Rate limiting is tested separately; disable for other tests to avoid
    flaky failures from rate limit triggers.
    """
    from keystone.core.rate_limiting import limiter

    original_enabled = limiter.enabled
    limiter.enabled = False

    yield

    limiter.enabled = original_enabled
