"""Authentication endpoints for password credentials and sessions.

Endpoints:
- POST /auth/signup: register with email + password, issue token
- POST /auth/login: verify email + password, issue token
- POST /auth/logout: clear the session cookie (token stays valid until expiry)
- GET /auth/profile: current user, re-read from storage
- GET /auth/admin: ADMIN-only resource

Issued tokens are returned in the body and also set as an httpOnly cookie.
"""

from fastapi import APIRouter, Request, Response

from keystone.api.deps import AdminUser, AuthServiceDep, CurrentUser
from keystone.core.auth import (
    clear_auth_cookie,
    set_auth_cookie,
    validate_password_length,
)
from keystone.core.config import settings
from keystone.core.rate_limiting import limiter
from keystone.core.responses import DataResponse
from keystone.schemas.auth import (
    AuthTokenResponse,
    LoginRequest,
    MessageResponse,
    SignupRequest,
    UserResponse,
)
from keystone.services.auth_service import AuthResult

router = APIRouter()

ADMIN_RESOURCE_MESSAGE = "This is an admin-only resource."


def _token_response(
    response: Response, result: AuthResult
) -> DataResponse[AuthTokenResponse]:
    set_auth_cookie(response, result.access_token, max_age=result.expires_in)
    return DataResponse(data=AuthTokenResponse.from_result(result))


# ===================================================================
# POST /auth/signup
# ===================================================================


@router.post("/signup", status_code=201)
@limiter.limit("3/hour")
async def signup(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: SignupRequest,
    response: Response,
    auth: AuthServiceDep,
) -> DataResponse[AuthTokenResponse]:
    """Register a new password user and sign them in.

    Rate limit: 3 per hour per IP.

    Raises:
        ValidationError: Password outside the configured length bounds.
        ConflictError: Email already registered.
    """
    validate_password_length(
        body.password,
        min_length=settings.password_min_length,
        max_length=settings.password_max_length,
    )
    result = await auth.sign_up(body.email, body.password, body.name)
    return _token_response(response, result)


# ===================================================================
# POST /auth/login
# ===================================================================


@router.post("/login")
@limiter.limit("5/15minute")
async def login(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: LoginRequest,
    response: Response,
    auth: AuthServiceDep,
) -> DataResponse[AuthTokenResponse]:
    """Verify email + password and issue a token.

    Unknown email, missing password and wrong password all produce the
    same 401. Rate limit: 5 per 15 minutes per IP.
    """
    result = await auth.log_in(body.email, body.password)
    return _token_response(response, result)


# ===================================================================
# POST /auth/logout
# ===================================================================


@router.post("/logout")
async def logout(
    user: CurrentUser,  # noqa: ARG001 - authentication required
    response: Response,
) -> DataResponse[MessageResponse]:
    """Clear the session cookie.

    Tokens are stateless, so a copy of the token held elsewhere keeps
    working until it expires.
    """
    clear_auth_cookie(response)
    return DataResponse(data=MessageResponse(message="Logged out successfully."))


# ===================================================================
# GET /auth/profile
# ===================================================================


@router.get("/profile")
async def get_profile(
    user: CurrentUser,
    auth: AuthServiceDep,
) -> DataResponse[UserResponse]:
    """Return the current user, freshly read from storage."""
    fresh = await auth.get_profile(user.id)
    return DataResponse(data=UserResponse.from_user(fresh))


# ===================================================================
# GET /auth/admin
# ===================================================================


@router.get("/admin")
async def admin_resource(user: AdminUser) -> DataResponse[dict]:
    """ADMIN-only resource. Other roles get 403."""
    return DataResponse(
        data={"message": ADMIN_RESOURCE_MESSAGE, "user_id": str(user.id)}
    )
