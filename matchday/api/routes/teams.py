"""Team and membership route handlers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from matchday.database.db import get_db_session
from matchday.services import team_service, match_service
from matchday.api.auth_dependencies import require_user, require_verified_user
from matchday.api.routes import limiter, service_error
from matchday.models.schemas import (
    CreateTeamRequest,
    UpdateTeamRequest,
    UpdateMemberRoleRequest,
    UpdateMemberPositionRequest,
    TransferCaptaincyRequest,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/teams", status_code=201)
@limiter.limit("20/minute")
async def create_team(
    request: Request,
    payload: CreateTeamRequest,
    user: dict = Depends(require_verified_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Create a team; the creator becomes its captain."""
    try:
        return await team_service.create_team(
            session,
            user["id"],
            name=payload.name,
            variant=payload.variant.value,
            description=payload.description,
            logo_path=payload.logo_path,
            max_members=payload.max_members,
        )
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error creating team: {e}")
        raise HTTPException(status_code=500, detail="Error creating team")


@router.get("/api/teams")
async def search_teams(
    name: Optional[str] = None,
    variant: Optional[str] = Query(None, pattern="^(football_11|football_7|football_5|futsal)$"),
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Search teams by name and/or variant."""
    try:
        return await team_service.search_teams(session, name=name, variant=variant)
    except Exception as e:
        logger.error(f"Error searching teams: {e}")
        raise HTTPException(status_code=500, detail="Error searching teams")


@router.get("/api/teams/mine")
async def get_my_teams(
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Teams the current user belongs to."""
    try:
        return await team_service.get_user_teams(session, user["id"])
    except Exception as e:
        logger.error(f"Error fetching user teams: {e}")
        raise HTTPException(status_code=500, detail="Error fetching teams")


@router.get("/api/teams/{team_id}")
async def get_team(
    team_id: int,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Team details with members and pending join requests."""
    try:
        details = await team_service.get_team_details(session, team_id)
        details["is_leader"] = await team_service.is_leader(session, team_id, user["id"])
        details["is_captain"] = await team_service.is_captain(session, team_id, user["id"])
        return details
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error fetching team {team_id}: {e}")
        raise HTTPException(status_code=500, detail="Error fetching team")


@router.put("/api/teams/{team_id}")
async def update_team(
    team_id: int,
    payload: UpdateTeamRequest,
    user: dict = Depends(require_verified_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Update team information (leaders only)."""
    try:
        data = payload.model_dump(exclude_unset=True, mode="json")
        return await team_service.update_team(session, team_id, user["id"], data)
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error updating team {team_id}: {e}")
        raise HTTPException(status_code=500, detail="Error updating team")


@router.delete("/api/teams/{team_id}")
async def delete_team(
    team_id: int,
    user: dict = Depends(require_verified_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Delete a team and everything attached to it (captain only)."""
    try:
        await team_service.delete_team(session, team_id, user["id"])
        return {"status": "ok", "message": "Team deleted"}
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error deleting team {team_id}: {e}")
        raise HTTPException(status_code=500, detail="Error deleting team")


@router.get("/api/teams/{team_id}/matches")
async def get_team_matches(
    team_id: int,
    status: Optional[str] = Query(
        None, pattern="^(available|confirmed|in_progress|completed|cancelled)$"
    ),
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Matches the team plays, latest first."""
    try:
        await team_service.get_team(session, team_id)
        return await match_service.get_team_matches(session, team_id, status=status)
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error fetching matches for team {team_id}: {e}")
        raise HTTPException(status_code=500, detail="Error fetching team matches")


# Membership


@router.delete("/api/teams/{team_id}/members/{member_user_id}")
async def remove_member(
    team_id: int,
    member_user_id: int,
    user: dict = Depends(require_verified_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Remove a member from the team (leaders only)."""
    try:
        await team_service.remove_member(session, team_id, user["id"], member_user_id)
        return {"status": "ok", "message": "Member removed"}
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error removing member {member_user_id} from team {team_id}: {e}")
        raise HTTPException(status_code=500, detail="Error removing member")


@router.post("/api/teams/{team_id}/leave")
async def leave_team(
    team_id: int,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Leave a team."""
    try:
        await team_service.leave_team(session, team_id, user["id"])
        return {"status": "ok", "message": "You left the team"}
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error leaving team {team_id}: {e}")
        raise HTTPException(status_code=500, detail="Error leaving team")


@router.put("/api/teams/{team_id}/members/{member_user_id}/role")
async def update_member_role(
    team_id: int,
    member_user_id: int,
    payload: UpdateMemberRoleRequest,
    user: dict = Depends(require_verified_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Promote to co-captain or demote to player (captain only)."""
    try:
        return await team_service.update_member_role(
            session, team_id, user["id"], member_user_id, payload.role.value
        )
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error updating role of {member_user_id} in team {team_id}: {e}")
        raise HTTPException(status_code=500, detail="Error updating member role")


@router.put("/api/teams/{team_id}/members/{member_user_id}/position")
async def update_member_position(
    team_id: int,
    member_user_id: int,
    payload: UpdateMemberPositionRequest,
    user: dict = Depends(require_verified_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Set a member's preferred position (leaders only)."""
    try:
        position = payload.position.value if payload.position else None
        return await team_service.update_member_position(
            session, team_id, user["id"], member_user_id, position
        )
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error updating position of {member_user_id} in team {team_id}: {e}")
        raise HTTPException(status_code=500, detail="Error updating member position")


@router.post("/api/teams/{team_id}/transfer-captaincy")
async def transfer_captaincy(
    team_id: int,
    payload: TransferCaptaincyRequest,
    user: dict = Depends(require_verified_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Hand the captaincy to another active member."""
    try:
        await team_service.transfer_captaincy(session, team_id, user["id"], payload.new_captain_id)
        return {"status": "ok", "message": "Captaincy transferred"}
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error transferring captaincy of team {team_id}: {e}")
        raise HTTPException(status_code=500, detail="Error transferring captaincy")
