"""OAuth utilities: PKCE, state cookies, and provider configuration.

Covers the redirect leg of the authorization-code flow for Google and
GitHub. The state parameter and PKCE verifier travel between the start
redirect and the callback in a short-lived signed JWT cookie.
"""

import base64
import hashlib
import secrets
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING
from urllib.parse import urlencode

import jwt

if TYPE_CHECKING:
    from keystone.core.config import Settings

# PKCE code verifier length (RFC 7636 allows 43-128)
_VERIFIER_LENGTH = 128

# Characters allowed in PKCE code verifier (RFC 7636 §4.1)
# unreserved = ALPHA / DIGIT / "-" / "." / "_" / "~"
_UNRESERVED_CHARS = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-._~"

# Default TTL for OAuth state cookie (10 minutes)
_DEFAULT_STATE_TTL = 600

OAUTH_STATE_COOKIE = "oauth_state"


def generate_code_verifier() -> str:
    """Generate a 128-character PKCE code verifier (RFC 7636 §4.1)."""
    return "".join(secrets.choice(_UNRESERVED_CHARS) for _ in range(_VERIFIER_LENGTH))


def generate_code_challenge(verifier: str) -> str:
    """Generate a PKCE code challenge from a verifier.

    RFC 7636 §4.2: BASE64URL(SHA256(code_verifier)), no padding.

    Args:
        verifier: PKCE code verifier string.

    Returns:
        Base64url-encoded SHA256 hash without padding.
    """
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def create_oauth_state_cookie(
    *,
    state: str,
    code_verifier: str,
    secret: str,
    ttl_seconds: int = _DEFAULT_STATE_TTL,
) -> str:
    """Create a signed JWT cookie containing OAuth state and PKCE verifier.

    Args:
        state: Random state parameter for CSRF protection.
        code_verifier: PKCE code verifier to use in token exchange.
        secret: HMAC signing secret.
        ttl_seconds: Cookie expiry in seconds (default 10 minutes).

    Returns:
        Signed JWT string.
    """
    payload = {
        "state": state,
        "code_verifier": code_verifier,
        "exp": int(time.time()) + ttl_seconds,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def validate_oauth_state_cookie(
    *,
    cookie_value: str,
    expected_state: str,
    secret: str,
) -> str | None:
    """Validate an OAuth state cookie and return the PKCE code verifier.

    Args:
        cookie_value: JWT string from the oauth_state cookie.
        expected_state: State parameter from the callback query string.
        secret: HMAC signing secret.

    Returns:
        Code verifier string if valid, None if any check fails.
    """
    try:
        payload = jwt.decode(cookie_value, secret, algorithms=["HS256"])
    except jwt.InvalidTokenError:
        return None

    if not secrets.compare_digest(str(payload.get("state", "")), expected_state):
        return None

    return payload.get("code_verifier")


# ===================================================================
# OAuth Provider Configuration
# ===================================================================


@dataclass(frozen=True)
class OAuthProviderConfig:
    """Static endpoints for an OAuth provider.

    Attributes:
        authorization_url: Provider's authorization endpoint.
        token_url: Provider's token exchange endpoint.
        userinfo_url: Provider's userinfo endpoint.
        scopes: OAuth scopes to request.
        supports_pkce: Whether to send a PKCE challenge.
        emails_url: Address listing endpoint (GitHub only).
    """

    authorization_url: str
    token_url: str
    userinfo_url: str
    scopes: tuple[str, ...]
    supports_pkce: bool = True
    emails_url: str | None = None


@dataclass(frozen=True)
class OAuthClientCredentials:
    """Per-deployment client registration for a provider."""

    client_id: str
    client_secret: str
    callback_url: str


_PROVIDERS: dict[str, OAuthProviderConfig] = {
    "google": OAuthProviderConfig(  # nosec B106 - token_url is an endpoint, not a password
        authorization_url="https://accounts.google.com/o/oauth2/v2/auth",
        token_url="https://oauth2.googleapis.com/token",
        userinfo_url="https://openidconnect.googleapis.com/v1/userinfo",
        scopes=("openid", "email", "profile"),
    ),
    "github": OAuthProviderConfig(  # nosec B106 - token_url is an endpoint, not a password
        authorization_url="https://github.com/login/oauth/authorize",
        token_url="https://github.com/login/oauth/access_token",
        userinfo_url="https://api.github.com/user",
        scopes=("user:email",),
        supports_pkce=False,
        emails_url="https://api.github.com/user/emails",
    ),
}

SUPPORTED_PROVIDERS: frozenset[str] = frozenset(_PROVIDERS)


def get_provider_config(provider: str) -> OAuthProviderConfig:
    """Get OAuth configuration for a provider.

    Args:
        provider: Provider name ("google" or "github").

    Returns:
        OAuthProviderConfig for the provider.

    Raises:
        ValueError: If provider is not supported.
    """
    config = _PROVIDERS.get(provider)
    if config is None:
        msg = f"Unsupported OAuth provider: {provider}"
        raise ValueError(msg)
    return config


def get_client_credentials(
    provider: str, settings: "Settings"
) -> OAuthClientCredentials | None:
    """Read a provider's client registration from settings.

    Args:
        provider: Provider name.
        settings: Application settings.

    Returns:
        Credentials, or None if the provider has no client id configured.
    """
    client_id: str = getattr(settings, f"{provider}_client_id", "")
    if not client_id:
        return None
    secret = getattr(settings, f"{provider}_client_secret")
    return OAuthClientCredentials(
        client_id=client_id,
        client_secret=secret.get_secret_value(),
        callback_url=getattr(settings, f"{provider}_callback_url"),
    )


def build_authorization_url(
    *,
    config: OAuthProviderConfig,
    credentials: OAuthClientCredentials,
    state: str,
    code_verifier: str,
) -> str:
    """Build the provider redirect URL for the start of the flow.

    Args:
        config: Provider endpoints.
        credentials: Client registration.
        state: CSRF state parameter.
        code_verifier: PKCE verifier (ignored when the provider lacks PKCE).

    Returns:
        Absolute authorization URL with query parameters.
    """
    params = {
        "client_id": credentials.client_id,
        "redirect_uri": credentials.callback_url,
        "response_type": "code",
        "scope": " ".join(config.scopes),
        "state": state,
    }
    if config.supports_pkce:
        params["code_challenge"] = generate_code_challenge(code_verifier)
        params["code_challenge_method"] = "S256"
    return f"{config.authorization_url}?{urlencode(params)}"
