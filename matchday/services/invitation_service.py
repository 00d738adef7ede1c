"""
Invitation service for tokenized team invitations.

Leaders hand out a link carrying a random 32-character token. The invitation
stays usable for seven days; a pending invitation read after its expiry is
flipped to expired on that read.
"""

import os
import secrets
import string
from datetime import datetime, timedelta
from typing import Dict, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from matchday.database.models import (
    TeamInvitation,
    InvitationStatus,
    TeamRole,
    User,
    NotificationType,
)
from matchday.services import team_service, notification_service
from matchday.services.errors import NotFoundError, PermissionDeniedError
from matchday.utils.constants import INVITATION_TOKEN_LENGTH, INVITATION_EXPIRY_DAYS
from matchday.utils.datetime_utils import utcnow, ensure_utc, isoformat
import logging

logger = logging.getLogger(__name__)

APP_URL = os.getenv("APP_URL", "http://localhost:3000")

INVITABLE_ROLES = (TeamRole.PLAYER, TeamRole.CO_CAPTAIN)
TOKEN_ALPHABET = string.ascii_letters + string.digits


def generate_token() -> str:
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(INVITATION_TOKEN_LENGTH))


def invitation_url(token: str) -> str:
    return f"{APP_URL.rstrip('/')}/teams/invite/{token}"


def is_expired(invitation: TeamInvitation, now: datetime) -> bool:
    return ensure_utc(invitation.expires_at) <= ensure_utc(now)


def is_valid(invitation: TeamInvitation, now: datetime) -> bool:
    """Pending and not yet past its expiry."""
    return (
        InvitationStatus(invitation.status) == InvitationStatus.PENDING
        and not is_expired(invitation, now)
    )


def _format_invitation(invitation: TeamInvitation) -> Dict:
    return {
        "id": invitation.id,
        "team_id": invitation.team_id,
        "invited_by": invitation.invited_by,
        "email": invitation.email,
        "token": invitation.token,
        "url": invitation_url(invitation.token),
        "role": TeamRole(invitation.role).value,
        "status": InvitationStatus(invitation.status).value,
        "expires_at": isoformat(invitation.expires_at),
        "accepted_by": invitation.accepted_by,
        "accepted_at": isoformat(invitation.accepted_at),
        "created_at": isoformat(invitation.created_at),
    }


async def _mark_expired_if_due(
    session: AsyncSession, invitation: TeamInvitation, now: datetime
) -> None:
    if InvitationStatus(invitation.status) == InvitationStatus.PENDING and is_expired(invitation, now):
        invitation.status = InvitationStatus.EXPIRED
        await session.flush()


async def _get_by_token(session: AsyncSession, token: str) -> TeamInvitation:
    result = await session.execute(select(TeamInvitation).where(TeamInvitation.token == token))
    invitation = result.scalar_one_or_none()
    if not invitation:
        raise NotFoundError("Invitation not found")
    return invitation


async def create_invitation(
    session: AsyncSession,
    team_id: int,
    inviter_id: int,
    role: str = TeamRole.PLAYER.value,
    email: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict:
    """
    Create an invitation link for a team (leaders only).

    If an email is given and belongs to a registered user, that user is also
    notified in-app.
    """
    now = now or utcnow()
    team = await team_service.get_team(session, team_id)
    if not await team_service.is_leader(session, team_id, inviter_id):
        raise PermissionDeniedError("Only team leaders can invite members")
    role = TeamRole(role)
    if role not in INVITABLE_ROLES:
        raise ValueError("Invitations can only grant the player or co_captain role")

    invitation = TeamInvitation(
        team_id=team_id,
        invited_by=inviter_id,
        email=email,
        token=generate_token(),
        role=role,
        status=InvitationStatus.PENDING,
        expires_at=ensure_utc(now) + timedelta(days=INVITATION_EXPIRY_DAYS),
    )
    session.add(invitation)
    await session.flush()
    await session.refresh(invitation)

    if email:
        result = await session.execute(select(User.id).where(User.email == email))
        invitee_id = result.scalar_one_or_none()
        if invitee_id is not None:
            await notification_service.notify_user(
                session,
                invitee_id,
                type=NotificationType.TEAM_INVITATION.value,
                title="Team invitation",
                message=f"You have been invited to join {team.name}",
                data={"team_id": team_id, "token": invitation.token},
                link_url=f"/teams/invite/{invitation.token}",
            )

    logger.info(f"Invitation {invitation.id} for team {team_id} created by user {inviter_id}")
    return _format_invitation(invitation)


async def get_invitation(session: AsyncSession, token: str, now: Optional[datetime] = None) -> Dict:
    """Look an invitation up by token, expiring it if its time has passed."""
    invitation = await _get_by_token(session, token)
    await _mark_expired_if_due(session, invitation, now or utcnow())
    return _format_invitation(invitation)


async def accept_invitation(
    session: AsyncSession, token: str, user_id: int, now: Optional[datetime] = None
) -> Dict:
    """
    Join the invitation's team with the invited role.

    Raises:
        NotFoundError: If the token is unknown
        ValueError: If the invitation is no longer valid, the user is already a
            member or the team is full
    """
    now = now or utcnow()
    invitation = await _get_by_token(session, token)
    await _mark_expired_if_due(session, invitation, now)
    if not is_valid(invitation, now):
        raise ValueError("This invitation is no longer valid")

    team = await team_service.get_team(session, invitation.team_id)
    if await team_service.has_member(session, team.id, user_id):
        raise ValueError("You are already a member of this team")
    if await team_service.is_full(session, team):
        raise ValueError("The team has reached its maximum capacity and cannot accept more members")

    member = await team_service.add_member(session, team, user_id, TeamRole(invitation.role))
    invitation.status = InvitationStatus.ACCEPTED
    invitation.accepted_by = user_id
    invitation.accepted_at = now
    await session.flush()

    logger.info(f"User {user_id} joined team {team.id} through invitation {invitation.id}")
    return team_service.format_member(member)


async def revoke_invitation(session: AsyncSession, invitation_id: int, user_id: int) -> Dict:
    """Revoke a pending invitation (leaders only)."""
    result = await session.execute(select(TeamInvitation).where(TeamInvitation.id == invitation_id))
    invitation = result.scalar_one_or_none()
    if not invitation:
        raise NotFoundError("Invitation not found")
    if not await team_service.is_leader(session, invitation.team_id, user_id):
        raise PermissionDeniedError("Only team leaders can revoke invitations")
    if InvitationStatus(invitation.status) != InvitationStatus.PENDING:
        raise ValueError("Only pending invitations can be revoked")

    invitation.status = InvitationStatus.REVOKED
    await session.flush()
    return _format_invitation(invitation)


async def list_team_invitations(
    session: AsyncSession, team_id: int, user_id: int, now: Optional[datetime] = None
) -> List[Dict]:
    """A team's invitations, newest first, with lazy expiry applied (leaders only)."""
    now = now or utcnow()
    await team_service.get_team(session, team_id)
    if not await team_service.is_leader(session, team_id, user_id):
        raise PermissionDeniedError("Only team leaders can view invitations")

    result = await session.execute(
        select(TeamInvitation)
        .where(TeamInvitation.team_id == team_id)
        .order_by(TeamInvitation.created_at.desc(), TeamInvitation.id.desc())
    )
    invitations = list(result.scalars().all())
    for invitation in invitations:
        await _mark_expired_if_due(session, invitation, now)
    return [_format_invitation(invitation) for invitation in invitations]
