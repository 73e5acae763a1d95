"""OAuth authentication endpoints.

Google and GitHub authorization-code flow:
- GET /auth/{provider}: redirect to the provider with state (+ PKCE for Google)
- GET /auth/{provider}/callback: exchange the code, resolve the identity,
  set the session cookie and redirect to the frontend with the token

Every callback failure redirects to ``{frontend}/auth?error={provider}_oauth_failed``
instead of rendering an error body.
"""

import logging
import secrets
from urllib.parse import urlencode

import httpx
from fastapi import APIRouter, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.responses import Response

from keystone.api.deps import AuthServiceDep, DbSession
from keystone.core.auth import set_auth_cookie
from keystone.core.config import settings
from keystone.core.errors import APIError, ValidationError
from keystone.core.oauth import (
    OAUTH_STATE_COOKIE,
    build_authorization_url,
    create_oauth_state_cookie,
    generate_code_verifier,
    get_client_credentials,
    get_provider_config,
    validate_oauth_state_cookie,
)
from keystone.core.oauth_client import (
    OAuthExchangeError,
    exchange_code_for_tokens,
    fetch_email_addresses,
    fetch_userinfo,
)
from keystone.core.oauth_profiles import (
    ProviderProfile,
    ProviderProfileError,
    get_profile_adapter,
)
from keystone.core.rate_limiting import limiter

logger = logging.getLogger(__name__)

router = APIRouter()

# State cookie lifetime; matches the signed state TTL in keystone.core.oauth
_STATE_COOKIE_MAX_AGE = 600


def _state_secret() -> str:
    return settings.jwt_secret.get_secret_value()


def _state_cookie_path(provider: str) -> str:
    return f"/api/v1/auth/{provider}/callback"


def _frontend_error_url(provider: str) -> str:
    params = urlencode({"error": f"{provider}_oauth_failed"})
    return f"{settings.frontend_url.rstrip('/')}/auth?{params}"


def _frontend_success_url(provider: str, token: str) -> str:
    params = urlencode({"token": token})
    return f"{settings.frontend_url.rstrip('/')}/auth/callback/{provider}?{params}"


class _CallbackRejected(Exception):
    """Callback parameters or state cookie failed validation."""


# ===================================================================
# Initiation
# ===================================================================


def _start_oauth(provider: str) -> Response:
    """Redirect to the provider's authorization URL.

    Raises:
        ValidationError: If the provider has no client id configured.
    """
    config = get_provider_config(provider)
    credentials = get_client_credentials(provider, settings)
    if credentials is None:
        raise ValidationError(f"OAuth provider {provider} is not configured")

    code_verifier = generate_code_verifier()
    state = secrets.token_urlsafe(32)
    state_cookie = create_oauth_state_cookie(
        state=state,
        code_verifier=code_verifier,
        secret=_state_secret(),
        ttl_seconds=_STATE_COOKIE_MAX_AGE,
    )
    auth_url = build_authorization_url(
        config=config,
        credentials=credentials,
        state=state,
        code_verifier=code_verifier,
    )

    redirect = RedirectResponse(url=auth_url, status_code=307)
    redirect.set_cookie(
        key=OAUTH_STATE_COOKIE,
        value=state_cookie,
        httponly=True,
        secure=settings.auth_cookie_secure,
        samesite="lax",
        max_age=_STATE_COOKIE_MAX_AGE,
        path=_state_cookie_path(provider),
    )
    return redirect


@router.get("/google")
@limiter.limit("10/hour")
async def google_login(request: Request) -> Response:  # noqa: ARG001
    """Start Google sign-in. Rate limit: 10 per hour per IP."""
    return _start_oauth("google")


@router.get("/github")
@limiter.limit("10/hour")
async def github_login(request: Request) -> Response:  # noqa: ARG001
    """Start GitHub sign-in. Rate limit: 10 per hour per IP."""
    return _start_oauth("github")


# ===================================================================
# Callback
# ===================================================================


async def _fetch_profile(
    provider: str,
    request: Request,
    code: str | None,
    state: str | None,
    error: str | None,
) -> ProviderProfile:
    """Validate the callback and turn the provider response into a profile.

    Raises:
        _CallbackRejected: Provider error, missing params, or bad state.
        httpx.HTTPError: Provider endpoint failure.
        OAuthExchangeError: No access token in the exchange response.
        ValueError: Provider response body is not JSON.
        ProviderProfileError: Userinfo without an account id.
    """
    if error:
        raise _CallbackRejected(f"provider returned error={error}")
    if not code or not state:
        raise _CallbackRejected("missing code or state")

    state_cookie = request.cookies.get(OAUTH_STATE_COOKIE)
    if not state_cookie:
        raise _CallbackRejected("missing state cookie")
    code_verifier = validate_oauth_state_cookie(
        cookie_value=state_cookie,
        expected_state=state,
        secret=_state_secret(),
    )
    if not code_verifier:
        raise _CallbackRejected("invalid or expired state")

    credentials = get_client_credentials(provider, settings)
    if credentials is None:
        raise _CallbackRejected("provider not configured")

    tokens = await exchange_code_for_tokens(
        provider=provider,
        code=code,
        code_verifier=code_verifier,
        credentials=credentials,
    )
    access_token = tokens["access_token"]
    userinfo = await fetch_userinfo(provider=provider, access_token=access_token)
    emails = await fetch_email_addresses(provider=provider, access_token=access_token)
    return get_profile_adapter(provider).to_profile(userinfo, emails)


async def _complete_oauth(
    provider: str,
    request: Request,
    db: DbSession,
    auth: AuthServiceDep,
    code: str | None,
    state: str | None,
    error: str | None,
) -> Response:
    failure = RedirectResponse(url=_frontend_error_url(provider), status_code=307)
    failure.delete_cookie(key=OAUTH_STATE_COOKIE, path=_state_cookie_path(provider))

    try:
        profile = await _fetch_profile(provider, request, code, state, error)
    except _CallbackRejected as exc:
        logger.warning(
            "OAuth callback rejected",
            extra={"provider": provider, "reason": str(exc)},
        )
        return failure
    except (httpx.HTTPError, OAuthExchangeError, ValueError):
        # ValueError covers non-JSON provider bodies
        logger.exception("OAuth provider exchange failed", extra={"provider": provider})
        return failure
    except ProviderProfileError:
        logger.exception(
            "OAuth provider returned an unusable profile",
            extra={"provider": provider},
        )
        return failure

    try:
        result = await auth.complete_oauth(provider, profile)
    except APIError as exc:
        await db.rollback()
        logger.warning(
            "OAuth sign-in failed",
            extra={"provider": provider, "code": exc.code},
        )
        return failure
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("OAuth sign-in storage failure", extra={"provider": provider})
        return failure

    redirect = RedirectResponse(
        url=_frontend_success_url(provider, result.access_token),
        status_code=307,
    )
    set_auth_cookie(redirect, result.access_token, max_age=result.expires_in)
    redirect.delete_cookie(key=OAUTH_STATE_COOKIE, path=_state_cookie_path(provider))
    return redirect


@router.get("/google/callback")
@limiter.limit("20/hour")
async def google_callback(
    request: Request,
    db: DbSession,
    auth: AuthServiceDep,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
) -> Response:
    """Handle the Google redirect after user consent."""
    return await _complete_oauth("google", request, db, auth, code, state, error)


@router.get("/github/callback")
@limiter.limit("20/hour")
async def github_callback(
    request: Request,
    db: DbSession,
    auth: AuthServiceDep,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
) -> Response:
    """Handle the GitHub redirect after user consent."""
    return await _complete_oauth("github", request, db, auth, code, state, error)
