"""Waitlist endpoint.

- POST /waitlist: add an email to the pre-launch waitlist
"""

import logging

from fastapi import APIRouter, Request
from sqlalchemy.exc import IntegrityError

from keystone.api.deps import DbSession
from keystone.core.errors import ConflictError
from keystone.core.rate_limiting import limiter
from keystone.core.responses import DataResponse
from keystone.repositories.waitlist_repository import WaitlistRepository
from keystone.schemas.auth import WaitlistEntryResponse, WaitlistRequest

logger = logging.getLogger(__name__)

router = APIRouter()

ALREADY_ON_WAITLIST_MESSAGE = "This email address is already on the waitlist."


@router.post("", status_code=201)
@limiter.limit("5/hour")
async def join_waitlist(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: WaitlistRequest,
    db: DbSession,
) -> DataResponse[WaitlistEntryResponse]:
    """Add an email to the waitlist.

    Raises:
        ConflictError: If the email is already listed.
    """
    try:
        entry = await WaitlistRepository.create(db, email=body.email)
    except IntegrityError as exc:
        raise ConflictError(
            code="ALREADY_ON_WAITLIST",
            message=ALREADY_ON_WAITLIST_MESSAGE,
        ) from exc

    logger.info("Waitlist signup", extra={"entry_id": str(entry.id)})
    return DataResponse(
        data=WaitlistEntryResponse(
            id=entry.id, email=entry.email, created_at=entry.created_at
        )
    )
