"""Pydantic request/response schemas for API endpoints."""

from keystone.schemas.auth import (
    AuthTokenResponse,
    LoginRequest,
    MagicLinkRequest,
    MagicLinkVerifyRequest,
    MessageResponse,
    SignupRequest,
    UserResponse,
    WaitlistEntryResponse,
    WaitlistRequest,
)

__all__ = [
    # Requests
    "LoginRequest",
    "MagicLinkRequest",
    "MagicLinkVerifyRequest",
    "SignupRequest",
    "WaitlistRequest",
    # Responses
    "AuthTokenResponse",
    "MessageResponse",
    "UserResponse",
    "WaitlistEntryResponse",
]
