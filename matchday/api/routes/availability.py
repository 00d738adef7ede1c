"""Match availability route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from matchday.database.db import get_db_session
from matchday.services import availability_service, match_service, team_service
from matchday.api.auth_dependencies import require_user
from matchday.api.routes import service_error
from matchday.models.schemas import UpdateAvailabilityRequest

logger = logging.getLogger(__name__)
router = APIRouter()


@router.put("/api/matches/{match_id}/availability")
async def update_availability(
    match_id: int,
    payload: UpdateAvailabilityRequest,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Report whether the current user can play."""
    try:
        return await availability_service.update_availability(
            session, match_id, user["id"], payload.team_id, payload.status
        )
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error updating availability for match {match_id}: {e}")
        raise HTTPException(status_code=500, detail="Error updating availability")


@router.get("/api/matches/{match_id}/availability/{team_id}")
async def get_team_availability(
    match_id: int,
    team_id: int,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Per-player availability and the side's summary; needs_alert is shown to leaders only."""
    try:
        match = await match_service.get_match(session, match_id)
        players = await availability_service.list_team_availability(session, match_id, team_id)
        summary = await availability_service.get_availability_summary(session, match, team_id)
        if not await team_service.is_leader(session, team_id, user["id"]):
            summary.pop("needs_alert", None)
        return {"summary": summary, "players": players}
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error fetching availability for match {match_id}: {e}")
        raise HTTPException(status_code=500, detail="Error fetching availability")
