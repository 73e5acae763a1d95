"""Tests for OAuth endpoints: initiation and callback.

Provider HTTP calls are patched at the endpoint module; account
resolution is covered by the AuthService mock here and against
PostgreSQL in tests/integration.
"""

import json
from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock, patch
from urllib.parse import parse_qs, urlparse

import httpx
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from pydantic import SecretStr
from sqlalchemy.exc import OperationalError

from keystone.core.config import settings
from keystone.core.errors import ConflictError
from keystone.core.oauth import create_oauth_state_cookie
from keystone.core.oauth_profiles import ProviderProfile
from tests.conftest import TEST_JWT_SECRET, make_auth_result, make_user

# ===================================================================
# Constants
# ===================================================================

_GOOGLE_INITIATE_URL = "/api/v1/auth/google"
_GITHUB_INITIATE_URL = "/api/v1/auth/github"
_GOOGLE_CALLBACK_URL = "/api/v1/auth/google/callback"
_GITHUB_CALLBACK_URL = "/api/v1/auth/github/callback"
_OAUTH_STATE_COOKIE = "oauth_state"
_FRONTEND = "http://frontend.test"
_PATCH_EXCHANGE = "keystone.api.v1.auth_oauth.exchange_code_for_tokens"
_PATCH_USERINFO = "keystone.api.v1.auth_oauth.fetch_userinfo"
_PATCH_EMAILS = "keystone.api.v1.auth_oauth.fetch_email_addresses"

_STATE = "test-state-value"
_VERIFIER = "test-code-verifier"

_MOCK_GOOGLE_USERINFO = {
    "sub": "google-sub-123",
    "email": "oauthuser@example.com",
    "email_verified": True,
    "name": "OAuth User",
    "picture": "https://example.com/photo.jpg",
}

_MOCK_GITHUB_USERINFO = {
    "id": 4242,
    "login": "octo",
    "name": None,
    "email": None,
    "avatar_url": "https://avatars.example.com/4242",
}

_MOCK_GITHUB_EMAILS = [
    {"email": "old@example.com", "primary": False, "verified": True},
    {"email": "octo@example.com", "primary": True, "verified": True},
]

_SETTINGS_OVERRIDES = {
    "jwt_secret": SecretStr(TEST_JWT_SECRET),
    "frontend_url": _FRONTEND,
    "google_client_id": "test-google-client-id",
    "google_client_secret": SecretStr("test-google-client-secret"),
    "github_client_id": "test-github-client-id",
    "github_client_secret": SecretStr("test-github-client-secret"),
}


# ===================================================================
# Fixtures
# ===================================================================


@pytest_asyncio.fixture
async def oauth_client(
    mock_auth: AsyncMock, mock_db: AsyncMock
) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated client with both providers configured."""
    from keystone.api.deps import get_auth_service
    from keystone.core.database import get_db
    from keystone.main import app

    async def override_get_db() -> AsyncGenerator[AsyncMock, None]:
        yield mock_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_auth_service] = lambda: mock_auth

    originals = {name: getattr(settings, name) for name in _SETTINGS_OVERRIDES}
    for name, value in _SETTINGS_OVERRIDES.items():
        setattr(settings, name, value)

    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        follow_redirects=False,
    ) as ac:
        yield ac

    for name, value in originals.items():
        setattr(settings, name, value)
    app.dependency_overrides.clear()


def _state_cookie(state: str = _STATE, secret: str = TEST_JWT_SECRET) -> dict:
    value = create_oauth_state_cookie(
        state=state, code_verifier=_VERIFIER, secret=secret
    )
    return {"Cookie": f"{_OAUTH_STATE_COOKIE}={value}"}


def _query(location: str) -> dict[str, list[str]]:
    return parse_qs(urlparse(location).query)


# ===================================================================
# Initiation
# ===================================================================


class TestOAuthInitiation:
    """Tests for GET /auth/{provider}."""

    async def test_google_redirects_with_pkce(self, oauth_client):
        """Google initiation carries state and an S256 challenge."""
        response = await oauth_client.get(_GOOGLE_INITIATE_URL)
        assert response.status_code == 307
        location = response.headers["location"]
        assert location.startswith("https://accounts.google.com/")
        params = _query(location)
        assert params["client_id"] == ["test-google-client-id"]
        assert params["response_type"] == ["code"]
        assert params["code_challenge_method"] == ["S256"]
        assert params["state"][0]

    async def test_github_redirects_without_pkce(self, oauth_client):
        """GitHub initiation requests user:email and omits PKCE."""
        response = await oauth_client.get(_GITHUB_INITIATE_URL)
        assert response.status_code == 307
        location = response.headers["location"]
        assert location.startswith("https://github.com/login/oauth/authorize")
        params = _query(location)
        assert params["scope"] == ["user:email"]
        assert "code_challenge" not in params

    async def test_sets_state_cookie_scoped_to_callback(self, oauth_client):
        """State cookie is HttpOnly and limited to the callback path."""
        response = await oauth_client.get(_GOOGLE_INITIATE_URL)
        set_cookie = response.headers["set-cookie"]
        assert set_cookie.startswith(f"{_OAUTH_STATE_COOKIE}=")
        assert "HttpOnly" in set_cookie
        assert "Path=/api/v1/auth/google/callback" in set_cookie

    async def test_unconfigured_provider_returns_400(self, oauth_client):
        """Missing client id is a validation error, not a redirect."""
        settings.github_client_id = ""
        response = await oauth_client.get(_GITHUB_INITIATE_URL)
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


# ===================================================================
# Callback
# ===================================================================


class TestOAuthCallbackSuccess:
    """Successful callbacks redirect to the frontend with a token."""

    async def test_google_callback_issues_token(self, oauth_client, mock_auth):
        """Token lands in the redirect URL and the session cookie."""
        user = make_user(email="oauthuser@example.com")
        mock_auth.complete_oauth.return_value = make_auth_result(user, "oauth.jwt")
        exchange = AsyncMock(return_value={"access_token": "provider-at"})

        with (
            patch(_PATCH_EXCHANGE, exchange),
            patch(_PATCH_USERINFO, AsyncMock(return_value=_MOCK_GOOGLE_USERINFO)),
            patch(_PATCH_EMAILS, AsyncMock(return_value=[])),
        ):
            response = await oauth_client.get(
                _GOOGLE_CALLBACK_URL,
                params={"code": "auth-code", "state": _STATE},
                headers=_state_cookie(),
            )

        assert response.status_code == 307
        location = response.headers["location"]
        assert location.startswith(f"{_FRONTEND}/auth/callback/google?")
        assert _query(location)["token"] == ["oauth.jwt"]
        assert response.cookies.get(settings.auth_cookie_name) == "oauth.jwt"
        assert exchange.call_args.kwargs["code_verifier"] == _VERIFIER

    async def test_google_profile_passed_to_service(self, oauth_client, mock_auth):
        """Provider userinfo is normalized before account resolution."""
        mock_auth.complete_oauth.return_value = make_auth_result(make_user())

        with (
            patch(_PATCH_EXCHANGE, AsyncMock(return_value={"access_token": "at"})),
            patch(_PATCH_USERINFO, AsyncMock(return_value=_MOCK_GOOGLE_USERINFO)),
            patch(_PATCH_EMAILS, AsyncMock(return_value=[])),
        ):
            await oauth_client.get(
                _GOOGLE_CALLBACK_URL,
                params={"code": "auth-code", "state": _STATE},
                headers=_state_cookie(),
            )

        provider, profile = mock_auth.complete_oauth.call_args.args
        assert provider == "google"
        assert profile == ProviderProfile(
            provider_account_id="google-sub-123",
            email="oauthuser@example.com",
            display_name="OAuth User",
            avatar_url="https://example.com/photo.jpg",
        )

    async def test_github_uses_primary_verified_email(self, oauth_client, mock_auth):
        """GitHub accounts with a private email resolve via /user/emails."""
        mock_auth.complete_oauth.return_value = make_auth_result(make_user())

        with (
            patch(_PATCH_EXCHANGE, AsyncMock(return_value={"access_token": "at"})),
            patch(_PATCH_USERINFO, AsyncMock(return_value=_MOCK_GITHUB_USERINFO)),
            patch(_PATCH_EMAILS, AsyncMock(return_value=_MOCK_GITHUB_EMAILS)),
        ):
            response = await oauth_client.get(
                _GITHUB_CALLBACK_URL,
                params={"code": "auth-code", "state": _STATE},
                headers=_state_cookie(),
            )

        assert response.status_code == 307
        provider, profile = mock_auth.complete_oauth.call_args.args
        assert provider == "github"
        assert profile.provider_account_id == "4242"
        assert profile.email == "octo@example.com"


class TestOAuthCallbackFailure:
    """Every failed callback redirects to the frontend error page."""

    _ERROR_LOCATION = f"{_FRONTEND}/auth?error=google_oauth_failed"

    async def test_provider_error_param(self, oauth_client, mock_auth):
        """User denied consent at the provider."""
        response = await oauth_client.get(
            _GOOGLE_CALLBACK_URL, params={"error": "access_denied"}
        )
        assert response.status_code == 307
        assert response.headers["location"] == self._ERROR_LOCATION
        mock_auth.complete_oauth.assert_not_awaited()

    async def test_missing_code(self, oauth_client):
        """Callback without a code is rejected."""
        response = await oauth_client.get(
            _GOOGLE_CALLBACK_URL, params={"state": _STATE}, headers=_state_cookie()
        )
        assert response.headers["location"] == self._ERROR_LOCATION

    async def test_missing_state_cookie(self, oauth_client):
        """Callback without the state cookie is rejected."""
        response = await oauth_client.get(
            _GOOGLE_CALLBACK_URL, params={"code": "c", "state": _STATE}
        )
        assert response.headers["location"] == self._ERROR_LOCATION

    async def test_state_mismatch(self, oauth_client):
        """State query param must match the signed cookie."""
        exchange = AsyncMock()
        with patch(_PATCH_EXCHANGE, exchange):
            response = await oauth_client.get(
                _GOOGLE_CALLBACK_URL,
                params={"code": "c", "state": "forged-state"},
                headers=_state_cookie(),
            )
        assert response.headers["location"] == self._ERROR_LOCATION
        exchange.assert_not_awaited()

    async def test_cookie_signed_with_other_secret(self, oauth_client):
        """State cookie must carry our signature."""
        response = await oauth_client.get(
            _GOOGLE_CALLBACK_URL,
            params={"code": "c", "state": _STATE},
            headers=_state_cookie(secret="another-secret-that-is-32-characters-x"),
        )
        assert response.headers["location"] == self._ERROR_LOCATION

    async def test_token_exchange_http_error(self, oauth_client):
        """Provider token endpoint failure."""
        exchange = AsyncMock(side_effect=httpx.ConnectError("boom"))
        with patch(_PATCH_EXCHANGE, exchange):
            response = await oauth_client.get(
                _GOOGLE_CALLBACK_URL,
                params={"code": "c", "state": _STATE},
                headers=_state_cookie(),
            )
        assert response.headers["location"] == self._ERROR_LOCATION

    async def test_userinfo_without_id(self, oauth_client, mock_auth):
        """Userinfo lacking a subject never reaches the service."""
        with (
            patch(_PATCH_EXCHANGE, AsyncMock(return_value={"access_token": "at"})),
            patch(_PATCH_USERINFO, AsyncMock(return_value={"email": "a@x.com"})),
            patch(_PATCH_EMAILS, AsyncMock(return_value=[])),
        ):
            response = await oauth_client.get(
                _GOOGLE_CALLBACK_URL,
                params={"code": "c", "state": _STATE},
                headers=_state_cookie(),
            )
        assert response.headers["location"] == self._ERROR_LOCATION
        mock_auth.complete_oauth.assert_not_awaited()

    async def test_account_conflict_rolls_back(self, oauth_client, mock_auth, mock_db):
        """Service errors roll back the session before redirecting."""
        mock_auth.complete_oauth.side_effect = ConflictError(
            code="ACCOUNT_CONFLICT",
            message="An account for this identity already exists.",
        )
        with (
            patch(_PATCH_EXCHANGE, AsyncMock(return_value={"access_token": "at"})),
            patch(_PATCH_USERINFO, AsyncMock(return_value=_MOCK_GOOGLE_USERINFO)),
            patch(_PATCH_EMAILS, AsyncMock(return_value=[])),
        ):
            response = await oauth_client.get(
                _GOOGLE_CALLBACK_URL,
                params={"code": "c", "state": _STATE},
                headers=_state_cookie(),
            )
        assert response.headers["location"] == self._ERROR_LOCATION
        mock_db.rollback.assert_awaited_once()
        assert settings.auth_cookie_name not in response.cookies

    async def test_non_json_provider_body(self, oauth_client, mock_auth):
        """A provider answering with HTML instead of JSON."""
        exchange = AsyncMock(side_effect=json.JSONDecodeError("Expecting value", "", 0))
        with patch(_PATCH_EXCHANGE, exchange):
            response = await oauth_client.get(
                _GOOGLE_CALLBACK_URL,
                params={"code": "c", "state": _STATE},
                headers=_state_cookie(),
            )
        assert response.status_code == 307
        assert response.headers["location"] == self._ERROR_LOCATION
        mock_auth.complete_oauth.assert_not_awaited()

    async def test_storage_error_rolls_back(self, oauth_client, mock_auth, mock_db):
        """Database failures during resolution still redirect."""
        mock_auth.complete_oauth.side_effect = OperationalError(
            "INSERT", {}, Exception()
        )
        with (
            patch(_PATCH_EXCHANGE, AsyncMock(return_value={"access_token": "at"})),
            patch(_PATCH_USERINFO, AsyncMock(return_value=_MOCK_GOOGLE_USERINFO)),
            patch(_PATCH_EMAILS, AsyncMock(return_value=[])),
        ):
            response = await oauth_client.get(
                _GOOGLE_CALLBACK_URL,
                params={"code": "c", "state": _STATE},
                headers=_state_cookie(),
            )
        assert response.status_code == 307
        assert response.headers["location"] == self._ERROR_LOCATION
        mock_db.rollback.assert_awaited_once()
