"""Magic link endpoints.

Endpoints:
- POST /auth/magic-link/request: email a single-use sign-in link
- POST /auth/magic-link/verify: redeem the link, issue token

The request endpoint answers with the same message whether or not the
address is registered and whether or not the email went out.
"""

from fastapi import APIRouter, Request, Response

from keystone.api.deps import AuthServiceDep
from keystone.core.auth import set_auth_cookie
from keystone.core.rate_limiting import limiter
from keystone.core.responses import DataResponse
from keystone.schemas.auth import (
    AuthTokenResponse,
    MagicLinkRequest,
    MagicLinkVerifyRequest,
    MessageResponse,
)

router = APIRouter()


@router.post("/magic-link/request")
@limiter.limit("5/hour")
async def request_magic_link(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: MagicLinkRequest,
    auth: AuthServiceDep,
) -> DataResponse[MessageResponse]:
    """Send a magic link to the given address.

    Unknown addresses get a new user. Rate limit: 5 per hour per IP.
    """
    message = await auth.request_magic_link(body.email)
    return DataResponse(data=MessageResponse(message=message))


@router.post("/magic-link/verify")
@limiter.limit("10/15minute")
async def verify_magic_link(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: MagicLinkVerifyRequest,
    response: Response,
    auth: AuthServiceDep,
) -> DataResponse[AuthTokenResponse]:
    """Redeem a magic link and sign its owner in.

    Unknown, expired, used and mismatched links all produce the same 401.
    """
    result = await auth.verify_magic_link(body.email, body.token)
    set_auth_cookie(response, result.access_token, max_age=result.expires_in)
    return DataResponse(data=AuthTokenResponse.from_result(result))
