"""
API routes - combined router from all domain modules.

Shared infrastructure (limiter, service error mapping) lives here; every
sub-router imports what it needs from this package.
"""

import os

from fastapi import APIRouter, HTTPException
from slowapi import Limiter
from slowapi.util import get_remote_address

from matchday.services.errors import NotFoundError, PermissionDeniedError, ConflictError

# ---------------------------------------------------------------------------
# Shared rate limiter
# ---------------------------------------------------------------------------
IS_TEST_ENV = os.getenv("ENV", "").lower() == "test"
if IS_TEST_ENV:
    limiter = Limiter(key_func=get_remote_address)

    def no_op_limit(*args, **kwargs):
        """No-op decorator for test mode - doesn't apply any rate limiting."""
        def decorator(func):
            return func
        return decorator

    limiter.limit = lambda *args, **kwargs: no_op_limit()
else:
    limiter = Limiter(key_func=get_remote_address)


# ---------------------------------------------------------------------------
# Service error mapping
# ---------------------------------------------------------------------------
def service_error(e: ValueError) -> HTTPException:
    """Translate a refused service operation into the matching HTTP error."""
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, PermissionDeniedError):
        return HTTPException(status_code=403, detail=str(e))
    if isinstance(e, ConflictError):
        return HTTPException(status_code=409, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


# ---------------------------------------------------------------------------
# Import sub-routers and combine
# ---------------------------------------------------------------------------
from matchday.api.routes.teams import router as teams_router  # noqa: E402
from matchday.api.routes.join_requests import router as join_requests_router  # noqa: E402
from matchday.api.routes.invitations import router as invitations_router  # noqa: E402
from matchday.api.routes.matches import router as matches_router  # noqa: E402
from matchday.api.routes.availability import router as availability_router  # noqa: E402
from matchday.api.routes.lineups import router as lineups_router  # noqa: E402
from matchday.api.routes.notifications import router as notifications_router  # noqa: E402
from matchday.api.routes.users import router as users_router  # noqa: E402

router = APIRouter()
router.include_router(teams_router)
router.include_router(join_requests_router)
router.include_router(invitations_router)
router.include_router(matches_router)
router.include_router(availability_router)
router.include_router(lineups_router)
router.include_router(notifications_router)
router.include_router(users_router)
