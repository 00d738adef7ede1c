"""Match lifecycle and match request route handlers."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from matchday.database.db import get_db_session
from matchday.services import match_service, match_request_service
from matchday.api.auth_dependencies import require_user, require_verified_user
from matchday.api.routes import limiter, service_error
from matchday.models.schemas import (
    CreateFootballMatchRequest,
    UpdateFootballMatchRequest,
    UpdateScoreRequest,
    CreateMatchRequestRequest,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/matches", status_code=201)
@limiter.limit("20/minute")
async def create_match(
    request: Request,
    payload: CreateFootballMatchRequest,
    user: dict = Depends(require_verified_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Publish an open match for one of the user's teams."""
    try:
        return await match_service.create_match(
            session,
            user["id"],
            payload.team_id,
            scheduled_at=payload.scheduled_at,
            location=payload.location,
            location_coords=payload.location_coords,
            match_type=payload.match_type.value,
            notes=payload.notes,
        )
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error creating match: {e}")
        raise HTTPException(status_code=500, detail="Error creating match")


@router.get("/api/matches/available")
async def get_available_matches(
    variant: Optional[List[str]] = Query(None),
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Open matches looking for an opponent, optionally filtered by variant."""
    try:
        return await match_service.get_available_matches(session, variants=variant)
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error fetching available matches: {e}")
        raise HTTPException(status_code=500, detail="Error fetching available matches")


@router.get("/api/matches/mine")
async def get_my_matches(
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Matches of every team the current user leads."""
    try:
        return await match_service.get_user_matches(session, user["id"])
    except Exception as e:
        logger.error(f"Error fetching user matches: {e}")
        raise HTTPException(status_code=500, detail="Error fetching matches")


@router.get("/api/matches/{match_id}")
async def get_match(
    match_id: int,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Match details, including the caller's leadership and the opposing leaders' contacts."""
    try:
        details = await match_service.get_match_details(session, match_id)
        match = await match_service.get_match(session, match_id)
        details["is_home_leader"] = await match_service.is_home_team_leader(session, match, user["id"])
        details["is_away_leader"] = await match_service.is_away_team_leader(session, match, user["id"])
        details["leaders"] = await match_service.get_opposing_team_leaders(session, match_id, user["id"])
        return details
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error fetching match {match_id}: {e}")
        raise HTTPException(status_code=500, detail="Error fetching match")


@router.put("/api/matches/{match_id}")
async def update_match(
    match_id: int,
    payload: UpdateFootballMatchRequest,
    user: dict = Depends(require_verified_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Edit match logistics before kickoff (home leaders only)."""
    try:
        data = payload.model_dump(exclude_unset=True)
        if data.get("match_type") is not None:
            data["match_type"] = data["match_type"].value
        return await match_service.update_match(session, match_id, user["id"], data)
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error updating match {match_id}: {e}")
        raise HTTPException(status_code=500, detail="Error updating match")


@router.post("/api/matches/{match_id}/cancel")
async def cancel_match(
    match_id: int,
    user: dict = Depends(require_verified_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Cancel an open match (home leaders only)."""
    try:
        return await match_service.cancel_match(session, match_id, user["id"])
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error cancelling match {match_id}: {e}")
        raise HTTPException(status_code=500, detail="Error cancelling match")


@router.post("/api/matches/{match_id}/start")
async def start_match(
    match_id: int,
    user: dict = Depends(require_verified_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Kick off a confirmed match."""
    try:
        return await match_service.start_match(session, match_id, user["id"])
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error starting match {match_id}: {e}")
        raise HTTPException(status_code=500, detail="Error starting match")


@router.put("/api/matches/{match_id}/score")
async def update_score(
    match_id: int,
    payload: UpdateScoreRequest,
    user: dict = Depends(require_verified_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Write the current score (leaders of either side)."""
    try:
        return await match_service.update_score(
            session, match_id, user["id"], payload.home_score, payload.away_score
        )
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error updating score of match {match_id}: {e}")
        raise HTTPException(status_code=500, detail="Error updating score")


@router.post("/api/matches/{match_id}/complete")
async def complete_match(
    match_id: int,
    user: dict = Depends(require_verified_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Close an in-progress match (leaders of either side)."""
    try:
        return await match_service.complete_match(session, match_id, user["id"])
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error completing match {match_id}: {e}")
        raise HTTPException(status_code=500, detail="Error completing match")


# Match requests


@router.post("/api/matches/{match_id}/requests", status_code=201)
@limiter.limit("10/minute")
async def create_match_request(
    request: Request,
    match_id: int,
    payload: CreateMatchRequestRequest,
    user: dict = Depends(require_verified_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Bid for an open match on behalf of a team the user leads."""
    try:
        return await match_request_service.create_request(
            session, user["id"], match_id, payload.team_id, message=payload.message
        )
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error requesting match {match_id}: {e}")
        raise HTTPException(status_code=500, detail="Error creating match request")


@router.get("/api/matches/{match_id}/requests")
async def list_match_requests(
    match_id: int,
    status: Optional[str] = Query(None, pattern="^(pending|accepted|rejected)$"),
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Requests received by a match."""
    try:
        return await match_request_service.list_match_requests(session, match_id, status=status)
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error listing requests for match {match_id}: {e}")
        raise HTTPException(status_code=500, detail="Error listing match requests")


@router.post("/api/match-requests/{request_id}/accept")
async def accept_match_request(
    request_id: int,
    user: dict = Depends(require_verified_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Accept a request; the match is confirmed and competing requests rejected."""
    try:
        return await match_request_service.accept_request(session, request_id, user["id"])
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error accepting match request {request_id}: {e}")
        raise HTTPException(status_code=500, detail="Error accepting match request")


@router.post("/api/match-requests/{request_id}/reject")
async def reject_match_request(
    request_id: int,
    user: dict = Depends(require_verified_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Reject a request (home leaders only)."""
    try:
        return await match_request_service.reject_request(session, request_id, user["id"])
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error rejecting match request {request_id}: {e}")
        raise HTTPException(status_code=500, detail="Error rejecting match request")
