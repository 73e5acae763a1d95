"""Auth API request/response schemas.

Request models reject unexpected fields. User payloads never carry the
password hash; they expose ``has_password`` instead.
"""

import uuid
from datetime import datetime
from typing import Annotated

from email_validator import validate_email
from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from keystone.models.user import Role, User
from keystone.services.auth_service import AuthResult


def _check_email_shape(value: str) -> str:
    """Reject malformed addresses but return the value exactly as sent.

    Emails are stored and matched case-sensitively, so the normalized
    form produced by email-validator is discarded.
    """
    validate_email(value, check_deliverability=False)
    return value


EmailAddress = Annotated[
    str, Field(max_length=255), AfterValidator(_check_email_shape)
]


# ===================================================================
# Requests
# ===================================================================


class SignupRequest(BaseModel):
    """Request body for POST /auth/signup.

    Length bounds on the password come from settings and are checked in
    the endpoint; the Field limit here only caps payload size.
    """

    model_config = ConfigDict(extra="forbid")

    email: EmailAddress
    password: str = Field(min_length=1, max_length=128)
    name: str = Field(min_length=1, max_length=100)


class LoginRequest(BaseModel):
    """Request body for POST /auth/login."""

    model_config = ConfigDict(extra="forbid")

    email: EmailAddress
    password: str = Field(min_length=1, max_length=128)


class MagicLinkRequest(BaseModel):
    """Request body for POST /auth/magic-link/request."""

    model_config = ConfigDict(extra="forbid")

    email: EmailAddress


class MagicLinkVerifyRequest(BaseModel):
    """Request body for POST /auth/magic-link/verify."""

    model_config = ConfigDict(extra="forbid")

    email: EmailAddress
    token: str = Field(min_length=1, max_length=128)


class WaitlistRequest(BaseModel):
    """Request body for POST /waitlist."""

    model_config = ConfigDict(extra="forbid")

    email: EmailAddress


# ===================================================================
# Responses
# ===================================================================


class UserResponse(BaseModel):
    """Public view of a user."""

    id: uuid.UUID
    email: str
    name: str | None
    avatar_url: str | None
    role: Role
    has_password: bool
    created_at: datetime | None = None

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            avatar_url=user.avatar_url,
            role=user.role,
            has_password=user.password_hash is not None,
            created_at=user.created_at,
        )


class AuthTokenResponse(BaseModel):
    """Bearer token plus the signed-in user."""

    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    expires_in: int
    user: UserResponse

    @classmethod
    def from_result(cls, result: AuthResult) -> "AuthTokenResponse":
        return cls(
            access_token=result.access_token,
            expires_at=result.expires_at,
            expires_in=result.expires_in,
            user=UserResponse.from_user(result.user),
        )


class MessageResponse(BaseModel):
    """Plain confirmation message."""

    message: str


class WaitlistEntryResponse(BaseModel):
    """A waitlist signup."""

    id: uuid.UUID
    email: str
    created_at: datetime
