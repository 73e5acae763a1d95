"""OAuth HTTP client: token exchange and userinfo fetching.

Thin httpx wrappers around the provider endpoints declared in
``keystone.core.oauth``.
"""

from typing import Any

import httpx

from keystone.core.oauth import OAuthClientCredentials, get_provider_config

# HTTP client timeout for OAuth token exchange and userinfo
_OAUTH_HTTP_TIMEOUT = 10.0

# GitHub requires a JSON Accept header to return JSON from its token endpoint
_ACCEPT_JSON = {"Accept": "application/json"}


class OAuthExchangeError(Exception):
    """Raised when the provider returns no access token."""


async def exchange_code_for_tokens(
    *,
    provider: str,
    code: str,
    code_verifier: str,
    credentials: OAuthClientCredentials,
) -> dict[str, Any]:
    """Exchange authorization code for OAuth tokens.

    Args:
        provider: Provider name.
        code: Authorization code from callback.
        code_verifier: PKCE code verifier.
        credentials: Client registration (id, secret, redirect URI).

    Returns:
        Token response dict (access_token, id_token, etc.).

    Raises:
        httpx.HTTPStatusError: If token exchange fails.
        OAuthExchangeError: If the response carries no access token.
    """
    config = get_provider_config(provider)
    data = {
        "grant_type": "authorization_code",
        "code": code,
        "redirect_uri": credentials.callback_url,
        "client_id": credentials.client_id,
        "client_secret": credentials.client_secret,
    }
    if config.supports_pkce:
        data["code_verifier"] = code_verifier

    async with httpx.AsyncClient() as client:
        resp = await client.post(
            config.token_url,
            data=data,
            headers=_ACCEPT_JSON,
            timeout=_OAUTH_HTTP_TIMEOUT,
        )
        resp.raise_for_status()
        result: dict[str, Any] = resp.json()

    # GitHub reports errors with a 200 and an "error" field
    if not result.get("access_token"):
        msg = f"{provider} token response missing access_token: {result.get('error')}"
        raise OAuthExchangeError(msg)
    return result


async def fetch_userinfo(
    *,
    provider: str,
    access_token: str,
) -> dict[str, Any]:
    """Fetch user info from the OAuth provider.

    Args:
        provider: Provider name.
        access_token: OAuth access token.

    Returns:
        Raw userinfo dict in the provider's own shape.

    Raises:
        httpx.HTTPStatusError: If userinfo request fails.
    """
    config = get_provider_config(provider)

    async with httpx.AsyncClient() as client:
        resp = await client.get(
            config.userinfo_url,
            headers={"Authorization": f"Bearer {access_token}", **_ACCEPT_JSON},
            timeout=_OAUTH_HTTP_TIMEOUT,
        )
        resp.raise_for_status()
        result: dict[str, Any] = resp.json()
        return result


async def fetch_email_addresses(
    *,
    provider: str,
    access_token: str,
) -> list[dict[str, Any]]:
    """Fetch the address listing for providers that expose one (GitHub).

    Args:
        provider: Provider name.
        access_token: OAuth access token.

    Returns:
        List of address entries, or an empty list when the provider has
        no listing endpoint.

    Raises:
        httpx.HTTPStatusError: If the request fails.
    """
    config = get_provider_config(provider)
    if config.emails_url is None:
        return []

    async with httpx.AsyncClient() as client:
        resp = await client.get(
            config.emails_url,
            headers={"Authorization": f"Bearer {access_token}", **_ACCEPT_JSON},
            timeout=_OAUTH_HTTP_TIMEOUT,
        )
        resp.raise_for_status()
        result: list[dict[str, Any]] = resp.json()
        return result
