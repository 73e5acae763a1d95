"""API v1 router aggregator.

All v1 endpoint routers are included here under the /api/v1 prefix
applied in keystone.main.
"""

from fastapi import APIRouter

from keystone.api.v1 import auth, auth_magic_link, auth_oauth, waitlist

router = APIRouter()

# =============================================================================
# Authentication
# =============================================================================

_AUTH_PREFIX = "/auth"

router.include_router(auth.router, prefix=_AUTH_PREFIX, tags=["auth"])
router.include_router(auth_magic_link.router, prefix=_AUTH_PREFIX, tags=["auth"])
router.include_router(auth_oauth.router, prefix=_AUTH_PREFIX, tags=["auth"])

# =============================================================================
# Waitlist
# =============================================================================

router.include_router(waitlist.router, prefix="/waitlist", tags=["waitlist"])
