"""Tests for auth request schemas."""

import pytest
from pydantic import ValidationError

from keystone.schemas.auth import (
    LoginRequest,
    MagicLinkRequest,
    MagicLinkVerifyRequest,
    SignupRequest,
)

_MIXED_CASE = "Alice@Example.COM"


class TestEmailFields:
    """Email fields validate shape without rewriting the address."""

    def test_signup_keeps_mixed_case_address(self):
        """Domain case survives validation."""
        body = SignupRequest(email=_MIXED_CASE, password="pw123456", name="A")
        assert body.email == _MIXED_CASE

    def test_login_keeps_mixed_case_address(self):
        """Login compares the address exactly as typed."""
        body = LoginRequest(email=_MIXED_CASE, password="pw123456")
        assert body.email == _MIXED_CASE

    def test_magic_link_models_keep_mixed_case_address(self):
        """Request and verify see the same address."""
        requested = MagicLinkRequest(email=_MIXED_CASE)
        verified = MagicLinkVerifyRequest(email=_MIXED_CASE, token="ab" * 32)
        assert requested.email == verified.email == _MIXED_CASE

    @pytest.mark.parametrize(
        "address",
        ["not-an-email", "missing-domain@", "@missing-local.com", "a b@example.com"],
    )
    def test_malformed_address_rejected(self, address):
        """Addresses without a valid shape fail validation."""
        with pytest.raises(ValidationError):
            MagicLinkRequest(email=address)

    def test_overlong_address_rejected(self):
        """Addresses longer than the column are refused."""
        with pytest.raises(ValidationError):
            MagicLinkRequest(email=f"{'a' * 250}@example.com")
