"""Lineup and match event route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from matchday.database.db import get_db_session
from matchday.services import lineup_service
from matchday.api.auth_dependencies import require_user, require_verified_user
from matchday.api.routes import service_error
from matchday.models.schemas import SetLineupRequest, RecordEventRequest

logger = logging.getLogger(__name__)
router = APIRouter()


@router.put("/api/matches/{match_id}/lineup")
async def set_lineup(
    match_id: int,
    payload: SetLineupRequest,
    user: dict = Depends(require_verified_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Replace a team's lineup for the match (leaders only)."""
    try:
        players = [player.model_dump(mode="json") for player in payload.players]
        return await lineup_service.set_lineup(session, match_id, payload.team_id, user["id"], players)
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error setting lineup for match {match_id}: {e}")
        raise HTTPException(status_code=500, detail="Error setting lineup")


@router.get("/api/matches/{match_id}/lineup/{team_id}")
async def get_lineup(
    match_id: int,
    team_id: int,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """A team's lineup for the match."""
    try:
        return await lineup_service.get_lineup(session, match_id, team_id)
    except Exception as e:
        logger.error(f"Error fetching lineup for match {match_id}: {e}")
        raise HTTPException(status_code=500, detail="Error fetching lineup")


@router.post("/api/matches/{match_id}/events", status_code=201)
async def record_event(
    match_id: int,
    payload: RecordEventRequest,
    user: dict = Depends(require_verified_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Record a goal, card or substitution."""
    try:
        event_data = payload.model_dump(exclude={"team_id"}, mode="json")
        return await lineup_service.record_event(
            session, match_id, payload.team_id, user["id"], event_data
        )
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error recording event for match {match_id}: {e}")
        raise HTTPException(status_code=500, detail="Error recording event")


@router.get("/api/matches/{match_id}/events")
async def list_events(
    match_id: int,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Events of the match in minute order."""
    try:
        return await lineup_service.list_events(session, match_id)
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error listing events for match {match_id}: {e}")
        raise HTTPException(status_code=500, detail="Error listing events")


@router.delete("/api/events/{event_id}")
async def delete_event(
    event_id: int,
    user: dict = Depends(require_verified_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Delete an event (leaders of the event's team)."""
    try:
        await lineup_service.delete_event(session, event_id, user["id"])
        return {"status": "ok", "message": "Event deleted"}
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error deleting event {event_id}: {e}")
        raise HTTPException(status_code=500, detail="Error deleting event")


@router.get("/api/matches/{match_id}/statistics")
async def get_match_statistics(
    match_id: int,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Goals, cards and lineups per side."""
    try:
        return await lineup_service.get_match_statistics(session, match_id)
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error fetching statistics for match {match_id}: {e}")
        raise HTTPException(status_code=500, detail="Error fetching match statistics")
