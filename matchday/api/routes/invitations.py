"""Team invitation route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from matchday.database.db import get_db_session
from matchday.services import invitation_service
from matchday.api.auth_dependencies import require_user, require_verified_user
from matchday.api.routes import limiter, service_error
from matchday.models.schemas import CreateInvitationRequest

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/teams/{team_id}/invitations", status_code=201)
@limiter.limit("20/minute")
async def create_invitation(
    request: Request,
    team_id: int,
    payload: CreateInvitationRequest,
    user: dict = Depends(require_verified_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Create an invitation link (leaders only)."""
    try:
        return await invitation_service.create_invitation(
            session, team_id, user["id"], role=payload.role.value, email=payload.email
        )
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error creating invitation for team {team_id}: {e}")
        raise HTTPException(status_code=500, detail="Error creating invitation")


@router.get("/api/teams/{team_id}/invitations")
async def list_team_invitations(
    team_id: int,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Invitations of a team (leaders only)."""
    try:
        return await invitation_service.list_team_invitations(session, team_id, user["id"])
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error listing invitations for team {team_id}: {e}")
        raise HTTPException(status_code=500, detail="Error listing invitations")


@router.get("/api/invitations/{token}")
async def get_invitation(
    token: str,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Look up an invitation by its token."""
    try:
        return await invitation_service.get_invitation(session, token)
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error fetching invitation: {e}")
        raise HTTPException(status_code=500, detail="Error fetching invitation")


@router.post("/api/invitations/{token}/accept")
async def accept_invitation(
    token: str,
    user: dict = Depends(require_verified_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Join a team through an invitation."""
    try:
        return await invitation_service.accept_invitation(session, token, user["id"])
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error accepting invitation: {e}")
        raise HTTPException(status_code=500, detail="Error accepting invitation")


@router.post("/api/invitations/{invitation_id}/revoke")
async def revoke_invitation(
    invitation_id: int,
    user: dict = Depends(require_verified_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Revoke a pending invitation (leaders only)."""
    try:
        return await invitation_service.revoke_invitation(session, invitation_id, user["id"])
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error revoking invitation {invitation_id}: {e}")
        raise HTTPException(status_code=500, detail="Error revoking invitation")
