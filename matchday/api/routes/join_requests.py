"""Join request route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from matchday.database.db import get_db_session
from matchday.services import team_service
from matchday.api.auth_dependencies import require_user, require_verified_user
from matchday.api.routes import limiter, service_error
from matchday.models.schemas import JoinRequestCreate

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/teams/{team_id}/join-requests", status_code=201)
@limiter.limit("10/minute")
async def create_join_request(
    request: Request,
    team_id: int,
    payload: JoinRequestCreate,
    user: dict = Depends(require_verified_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Ask to join a team."""
    try:
        return await team_service.create_join_request(
            session, user["id"], team_id, message=payload.message
        )
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error creating join request for team {team_id}: {e}")
        raise HTTPException(status_code=500, detail="Error creating join request")


@router.get("/api/join-requests/pending")
async def get_pending_join_requests(
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Pending join requests for the teams the current user leads."""
    try:
        return await team_service.get_pending_join_requests_for_user(session, user["id"])
    except Exception as e:
        logger.error(f"Error fetching pending join requests: {e}")
        raise HTTPException(status_code=500, detail="Error fetching join requests")


@router.post("/api/join-requests/{request_id}/accept")
async def accept_join_request(
    request_id: int,
    user: dict = Depends(require_verified_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Accept a join request (leaders only)."""
    try:
        return await team_service.accept_join_request(session, request_id, user["id"])
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error accepting join request {request_id}: {e}")
        raise HTTPException(status_code=500, detail="Error accepting join request")


@router.post("/api/join-requests/{request_id}/reject")
async def reject_join_request(
    request_id: int,
    user: dict = Depends(require_verified_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Reject a join request (leaders only)."""
    try:
        return await team_service.reject_join_request(session, request_id, user["id"])
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error rejecting join request {request_id}: {e}")
        raise HTTPException(status_code=500, detail="Error rejecting join request")


@router.delete("/api/join-requests/{request_id}")
async def cancel_join_request(
    request_id: int,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Withdraw one's own pending join request."""
    try:
        await team_service.cancel_join_request(session, request_id, user["id"])
        return {"status": "ok", "message": "Join request cancelled"}
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error cancelling join request {request_id}: {e}")
        raise HTTPException(status_code=500, detail="Error cancelling join request")
