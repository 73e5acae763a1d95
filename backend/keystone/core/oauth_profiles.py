"""Provider profile adapters.

Each provider returns identity data in its own shape. Adapters convert
those payloads into one normalized ``ProviderProfile`` so the identity
resolver never touches provider-specific fields.
"""

from dataclasses import dataclass
from typing import Any, Protocol


class ProviderProfileError(Exception):
    """Provider assertion is missing a required field.

    Indicates a provider misconfiguration (wrong scopes, unverified
    address) rather than a user error.
    """


@dataclass(frozen=True)
class ProviderProfile:
    """Normalized identity asserted by an OAuth provider.

    Attributes:
        provider_account_id: Provider's stable user identifier.
        email: Linking key across providers. None if the provider withheld it.
        display_name: Full display name, if given.
        given_name: First name, if given.
        family_name: Last name, if given.
        avatar_url: Profile picture URL, if given.
    """

    provider_account_id: str
    email: str | None
    display_name: str | None = None
    given_name: str | None = None
    family_name: str | None = None
    avatar_url: str | None = None


class ProfileAdapter(Protocol):
    """Converts raw provider payloads into a ProviderProfile."""

    def to_profile(
        self,
        userinfo: dict[str, Any],
        emails: list[dict[str, Any]] | None = None,
    ) -> ProviderProfile: ...


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _require_id(provider: str, raw_id: Any) -> str:
    account_id = _clean(raw_id)
    if account_id is None:
        msg = f"{provider} userinfo has no account id"
        raise ProviderProfileError(msg)
    return account_id


class GoogleProfileAdapter:
    """OpenID Connect userinfo (``sub``, ``email``, ``name``, ``picture``)."""

    def to_profile(
        self,
        userinfo: dict[str, Any],
        emails: list[dict[str, Any]] | None = None,  # noqa: ARG002
    ) -> ProviderProfile:
        return ProviderProfile(
            provider_account_id=_require_id("google", userinfo.get("sub")),
            email=_clean(userinfo.get("email")),
            display_name=_clean(userinfo.get("name")),
            given_name=_clean(userinfo.get("given_name")),
            family_name=_clean(userinfo.get("family_name")),
            avatar_url=_clean(userinfo.get("picture")),
        )


class GitHubProfileAdapter:
    """GitHub ``/user`` payload plus the ``/user/emails`` listing.

    The public profile email is often null, so the primary verified
    address from the listing wins when present.
    """

    def to_profile(
        self,
        userinfo: dict[str, Any],
        emails: list[dict[str, Any]] | None = None,
    ) -> ProviderProfile:
        return ProviderProfile(
            provider_account_id=_require_id("github", userinfo.get("id")),
            email=self._pick_email(userinfo, emails or []),
            display_name=_clean(userinfo.get("name")),
            avatar_url=_clean(userinfo.get("avatar_url")),
        )

    @staticmethod
    def _pick_email(
        userinfo: dict[str, Any], emails: list[dict[str, Any]]
    ) -> str | None:
        for entry in emails:
            if entry.get("primary") and entry.get("verified"):
                return _clean(entry.get("email"))
        for entry in emails:
            if entry.get("verified"):
                return _clean(entry.get("email"))
        return _clean(userinfo.get("email"))


_ADAPTERS: dict[str, ProfileAdapter] = {
    "google": GoogleProfileAdapter(),
    "github": GitHubProfileAdapter(),
}


def get_profile_adapter(provider: str) -> ProfileAdapter:
    """Look up the adapter for a provider.

    Raises:
        ValueError: If provider is not supported.
    """
    adapter = _ADAPTERS.get(provider)
    if adapter is None:
        msg = f"Unsupported OAuth provider: {provider}"
        raise ValueError(msg)
    return adapter
