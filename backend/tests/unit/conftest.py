"""Shared fixtures for endpoint unit tests.

The app runs with its database session and AuthService replaced by
mocks, so endpoint behaviour is tested without PostgreSQL.
"""

from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from keystone.models.user import Role, User
from keystone.services.auth_service import AuthService
from tests.conftest import make_user


@pytest.fixture
def current_user() -> User:
    """User the mocked AuthService authenticates bearer tokens as."""
    return make_user(email="current@example.com", name="Current", role=Role.USER)


@pytest.fixture
def mock_auth(current_user: User) -> AsyncMock:
    """AuthService double. authenticate() resolves to current_user."""
    service = AsyncMock(spec=AuthService)
    service.authenticate.return_value = current_user
    service.get_profile.return_value = current_user
    return service


@pytest.fixture
def mock_db() -> AsyncMock:
    """Session double injected in place of get_db."""
    return AsyncMock()


@pytest_asyncio.fixture
async def api_client(
    mock_auth: AsyncMock, mock_db: AsyncMock
) -> AsyncGenerator[AsyncClient, None]:
    """Client against the real app with auth and storage mocked out."""
    from keystone.api.deps import get_auth_service
    from keystone.core.database import get_db
    from keystone.main import app

    async def override_get_db() -> AsyncGenerator[AsyncMock, None]:
        yield mock_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_auth_service] = lambda: mock_auth

    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        follow_redirects=False,
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
