"""
Team service for teams, memberships and join requests.

Owns the membership rules every other service builds on: who leads a team,
how many members it may hold, and the atomic captaincy hand-over.
"""

from datetime import datetime
from typing import Dict, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, func, and_, or_
from matchday.database.models import (
    Team,
    TeamMember,
    TeamRole,
    MemberStatus,
    PlayerPosition,
    Variant,
    User,
    JoinRequest,
    JoinRequestStatus,
    TeamInvitation,
    FootballMatch,
    MatchRequest,
    MatchAvailability,
    MatchLineup,
    MatchEvent,
    NotificationType,
    LEADER_ROLES,
)
from matchday.services import notification_service
from matchday.services.errors import NotFoundError, PermissionDeniedError, ConflictError
from matchday.utils.constants import VARIANT_RULES
from matchday.utils.datetime_utils import utcnow, isoformat
import logging

logger = logging.getLogger(__name__)

UPDATABLE_TEAM_FIELDS = ("name", "variant", "description", "logo_path", "max_members")


# ──────────────────────────────────────────────────────────────
# Lookups and membership rules
# ──────────────────────────────────────────────────────────────


async def get_team(session: AsyncSession, team_id: int) -> Team:
    """
    Load a team by ID.

    Raises:
        NotFoundError: If the team does not exist
    """
    result = await session.execute(select(Team).where(Team.id == team_id))
    team = result.scalar_one_or_none()
    if not team:
        raise NotFoundError("Team not found")
    return team


async def _has_role(
    session: AsyncSession, team_id: int, user_id: int, roles: Optional[tuple]
) -> bool:
    query = select(TeamMember.id).where(
        TeamMember.team_id == team_id,
        TeamMember.user_id == user_id,
        TeamMember.status == MemberStatus.ACTIVE,
    )
    if roles is not None:
        query = query.where(TeamMember.role.in_(roles))
    result = await session.execute(query.limit(1))
    return result.scalar_one_or_none() is not None


async def is_leader(session: AsyncSession, team_id: int, user_id: int) -> bool:
    """True if the user is an active captain or co-captain of the team."""
    return await _has_role(session, team_id, user_id, LEADER_ROLES)


async def is_captain(session: AsyncSession, team_id: int, user_id: int) -> bool:
    """True if the user is the active captain of the team."""
    return await _has_role(session, team_id, user_id, (TeamRole.CAPTAIN,))


async def has_member(session: AsyncSession, team_id: int, user_id: int) -> bool:
    """True if the user is an active member of the team, in any role."""
    return await _has_role(session, team_id, user_id, None)


def max_members(team: Team) -> int:
    """Explicit override if set, otherwise the variant's default squad cap."""
    if team.max_members is not None:
        return team.max_members
    return VARIANT_RULES[Variant(team.variant)].default_max_members


def min_members(team: Team) -> int:
    """Healthy squad size for the variant (display only)."""
    return VARIANT_RULES[Variant(team.variant)].default_min_members


async def get_member_count(session: AsyncSession, team_id: int) -> int:
    """Count active members of a team."""
    result = await session.execute(
        select(func.count())
        .select_from(TeamMember)
        .where(TeamMember.team_id == team_id, TeamMember.status == MemberStatus.ACTIVE)
    )
    return result.scalar_one() or 0


async def is_full(session: AsyncSession, team: Team) -> bool:
    """True if the team has reached its effective maximum."""
    return await get_member_count(session, team.id) >= max_members(team)


async def get_team_capacity(session: AsyncSession, team: Team) -> Dict:
    """Squad-size figures for display: count, limits, free spots and fill level."""
    count = await get_member_count(session, team.id)
    maximum = max_members(team)
    minimum = min_members(team)
    return {
        "member_count": count,
        "max_members": maximum,
        "min_members": minimum,
        "available_spots": max(0, maximum - count),
        "capacity_percentage": round(count / maximum * 100) if maximum else 0,
        "meets_minimum_members": count >= minimum,
        "is_full": count >= maximum,
    }


async def _get_membership(
    session: AsyncSession, team_id: int, user_id: int
) -> Optional[TeamMember]:
    result = await session.execute(
        select(TeamMember).where(
            TeamMember.team_id == team_id, TeamMember.user_id == user_id
        )
    )
    return result.scalar_one_or_none()


async def _require_leader(session: AsyncSession, team_id: int, user_id: int, message: str) -> None:
    if not await is_leader(session, team_id, user_id):
        raise PermissionDeniedError(message)


async def _require_captain(session: AsyncSession, team_id: int, user_id: int, message: str) -> None:
    if not await is_captain(session, team_id, user_id):
        raise PermissionDeniedError(message)


# ──────────────────────────────────────────────────────────────
# Formatting
# ──────────────────────────────────────────────────────────────


async def _format_team(session: AsyncSession, team: Team) -> Dict:
    capacity = await get_team_capacity(session, team)
    return {
        "id": team.id,
        "name": team.name,
        "variant": Variant(team.variant).value,
        "logo_path": team.logo_path,
        "description": team.description,
        "max_members_override": team.max_members,
        "created_by": team.created_by,
        "created_at": isoformat(team.created_at),
        **capacity,
    }


def format_member(member: TeamMember, user_name: Optional[str] = None) -> Dict:
    return {
        "id": member.id,
        "team_id": member.team_id,
        "user_id": member.user_id,
        "name": user_name,
        "role": TeamRole(member.role).value,
        "position": PlayerPosition(member.position).value if member.position else None,
        "status": MemberStatus(member.status).value,
        "joined_at": isoformat(member.joined_at),
    }


def _format_join_request(join_request: JoinRequest) -> Dict:
    return {
        "id": join_request.id,
        "team_id": join_request.team_id,
        "user_id": join_request.user_id,
        "status": JoinRequestStatus(join_request.status).value,
        "message": join_request.message,
        "reviewed_by": join_request.reviewed_by,
        "reviewed_at": isoformat(join_request.reviewed_at),
        "created_at": isoformat(join_request.created_at),
    }


# ──────────────────────────────────────────────────────────────
# Team CRUD
# ──────────────────────────────────────────────────────────────


async def create_team(
    session: AsyncSession,
    user_id: int,
    name: str,
    variant: str,
    description: Optional[str] = None,
    logo_path: Optional[str] = None,
    max_members: Optional[int] = None,
) -> Dict:
    """
    Create a team with its creator as captain.

    The team row and the captain membership are written in the same unit of
    work, so a team never exists without a captain.

    Raises:
        ValueError: If the name is empty or the variant/max_members is invalid
    """
    name = (name or "").strip()
    if not name:
        raise ValueError("Team name cannot be empty")
    variant = Variant(variant)
    if max_members is not None and max_members < 1:
        raise ValueError("max_members must be at least 1")

    team = Team(
        name=name,
        variant=variant,
        description=description,
        logo_path=logo_path,
        max_members=max_members,
        created_by=user_id,
    )
    session.add(team)
    await session.flush()

    session.add(
        TeamMember(
            team_id=team.id,
            user_id=user_id,
            role=TeamRole.CAPTAIN,
            status=MemberStatus.ACTIVE,
        )
    )
    await session.flush()
    await session.refresh(team)

    logger.info(f"Team {team.id} ({team.name!r}) created by user {user_id}")
    return await _format_team(session, team)


async def update_team(
    session: AsyncSession, team_id: int, user_id: int, data: Dict
) -> Dict:
    """
    Update team information (leaders only).

    Args:
        data: Any of name, variant, description, logo_path, max_members

    Raises:
        PermissionDeniedError: If the user is not a leader
        ValueError: If the new max_members or variant would leave the team over capacity
    """
    team = await get_team(session, team_id)
    await _require_leader(session, team_id, user_id, "Only team leaders can update the team")

    updates = {k: v for k, v in data.items() if k in UPDATABLE_TEAM_FIELDS}
    if "name" in updates:
        updates["name"] = (updates["name"] or "").strip()
        if not updates["name"]:
            raise ValueError("Team name cannot be empty")
    if "variant" in updates:
        updates["variant"] = Variant(updates["variant"])
    if "variant" in updates or "max_members" in updates:
        variant = updates.get("variant", Variant(team.variant))
        override = updates.get("max_members", team.max_members)
        effective_max = (
            override if override is not None else VARIANT_RULES[variant].default_max_members
        )
        if effective_max < await get_member_count(session, team_id):
            raise ValueError("max_members cannot be lower than the current number of members")

    for key, value in updates.items():
        setattr(team, key, value)
    await session.flush()
    await session.refresh(team)
    return await _format_team(session, team)


async def delete_team(session: AsyncSession, team_id: int, user_id: int) -> None:
    """
    Delete a team and everything that depends on it (captain only).

    Dependents are removed explicitly, leaves first, in the caller's unit of
    work: match-level rows, match requests, every match the team played on
    either side, then invitations, join requests, memberships and finally
    the team.
    """
    await get_team(session, team_id)
    await _require_captain(session, team_id, user_id, "Only the captain can delete the team")

    match_ids = select(FootballMatch.id).where(
        or_(FootballMatch.home_team_id == team_id, FootballMatch.away_team_id == team_id)
    )
    for model in (MatchAvailability, MatchLineup, MatchEvent):
        await session.execute(
            delete(model).where(or_(model.match_id.in_(match_ids), model.team_id == team_id))
        )
    await session.execute(
        delete(MatchRequest).where(
            or_(MatchRequest.match_id.in_(match_ids), MatchRequest.requesting_team_id == team_id)
        )
    )
    await session.execute(
        delete(FootballMatch).where(
            or_(FootballMatch.home_team_id == team_id, FootballMatch.away_team_id == team_id)
        )
    )
    await session.execute(delete(TeamInvitation).where(TeamInvitation.team_id == team_id))
    await session.execute(delete(JoinRequest).where(JoinRequest.team_id == team_id))
    await session.execute(delete(TeamMember).where(TeamMember.team_id == team_id))
    await session.execute(delete(Team).where(Team.id == team_id))
    await session.flush()

    logger.info(f"Team {team_id} deleted by user {user_id}")


async def get_team_details(session: AsyncSession, team_id: int) -> Dict:
    """Team info with its active members and pending join requests."""
    team = await get_team(session, team_id)
    result = await session.execute(
        select(TeamMember, User.name)
        .join(User, User.id == TeamMember.user_id)
        .where(TeamMember.team_id == team_id, TeamMember.status == MemberStatus.ACTIVE)
        .order_by(TeamMember.joined_at, TeamMember.id)
    )
    members = [format_member(member, name) for member, name in result.all()]

    pending = await session.execute(
        select(JoinRequest).where(
            JoinRequest.team_id == team_id,
            JoinRequest.status == JoinRequestStatus.PENDING,
        )
    )
    return {
        **(await _format_team(session, team)),
        "members": members,
        "pending_join_requests": [_format_join_request(jr) for jr in pending.scalars().all()],
    }


async def get_user_teams(session: AsyncSession, user_id: int) -> List[Dict]:
    """Teams in which the user is an active member, with the user's role."""
    result = await session.execute(
        select(Team, TeamMember.role)
        .join(TeamMember, TeamMember.team_id == Team.id)
        .where(TeamMember.user_id == user_id, TeamMember.status == MemberStatus.ACTIVE)
        .order_by(Team.name)
    )
    teams = []
    for team, role in result.all():
        formatted = await _format_team(session, team)
        formatted["role"] = TeamRole(role).value
        teams.append(formatted)
    return teams


async def search_teams(
    session: AsyncSession, name: Optional[str] = None, variant: Optional[str] = None
) -> List[Dict]:
    """Search teams by (partial, case-insensitive) name and/or variant."""
    query = select(Team)
    if name:
        query = query.where(Team.name.ilike(f"%{name.strip()}%"))
    if variant:
        query = query.where(Team.variant == Variant(variant))
    result = await session.execute(query.order_by(Team.name))
    return [await _format_team(session, team) for team in result.scalars().all()]


# ──────────────────────────────────────────────────────────────
# Members
# ──────────────────────────────────────────────────────────────


async def add_member(
    session: AsyncSession, team: Team, user_id: int, role: TeamRole = TeamRole.PLAYER
) -> TeamMember:
    """
    Add an active member, enforcing capacity.

    The team row is locked before counting so concurrent additions for the
    last free spot are serialised; the lock is held until the caller commits.

    Raises:
        ValueError: If the team is full or the user is already a member
    """
    await session.execute(select(Team.id).where(Team.id == team.id).with_for_update())
    if await has_member(session, team.id, user_id):
        raise ValueError("User is already a member of this team")
    if await is_full(session, team):
        raise ValueError("Team is at maximum capacity")

    existing = await _get_membership(session, team.id, user_id)
    if existing:
        # Reactivate a dormant membership instead of violating (team_id, user_id)
        existing.role = role
        existing.status = MemberStatus.ACTIVE
        existing.joined_at = utcnow()
        member = existing
    else:
        member = TeamMember(
            team_id=team.id, user_id=user_id, role=role, status=MemberStatus.ACTIVE
        )
        session.add(member)
    await session.flush()
    await session.refresh(member)
    return member


async def remove_member(
    session: AsyncSession, team_id: int, acting_user_id: int, member_user_id: int
) -> None:
    """
    Remove a member from the team (leaders only). The captain cannot be removed.
    """
    await get_team(session, team_id)
    await _require_leader(session, team_id, acting_user_id, "Only team leaders can remove members")
    if await is_captain(session, team_id, member_user_id):
        raise ValueError("The captain cannot be removed. Transfer captaincy first.")

    result = await session.execute(
        delete(TeamMember).where(
            TeamMember.team_id == team_id, TeamMember.user_id == member_user_id
        )
    )
    if not result.rowcount:
        raise NotFoundError("Member not found")
    await session.flush()


async def leave_team(session: AsyncSession, team_id: int, user_id: int) -> None:
    """Leave a team. The captain must transfer captaincy before leaving."""
    await get_team(session, team_id)
    if not await has_member(session, team_id, user_id):
        raise ValueError("You are not a member of this team")
    if await is_captain(session, team_id, user_id):
        raise ValueError("You must transfer captaincy before leaving the team")

    await session.execute(
        delete(TeamMember).where(TeamMember.team_id == team_id, TeamMember.user_id == user_id)
    )
    await session.flush()


async def update_member_role(
    session: AsyncSession, team_id: int, acting_user_id: int, member_user_id: int, role: str
) -> Dict:
    """
    Change a member's role between player and co_captain (captain only).

    Captaincy itself only moves through transfer_captaincy.
    """
    await get_team(session, team_id)
    await _require_captain(session, team_id, acting_user_id, "Only the captain can update member roles")
    role = TeamRole(role)
    if role == TeamRole.CAPTAIN:
        raise ValueError("Use captaincy transfer to appoint a new captain")
    if member_user_id == acting_user_id:
        raise ValueError("The captain cannot change their own role")

    member = await _get_membership(session, team_id, member_user_id)
    if not member or member.status != MemberStatus.ACTIVE:
        raise NotFoundError("Member not found")
    member.role = role
    await session.flush()
    return format_member(member)


async def update_member_position(
    session: AsyncSession,
    team_id: int,
    acting_user_id: int,
    member_user_id: int,
    position: Optional[str],
) -> Dict:
    """Set a member's preferred position (leaders only)."""
    await get_team(session, team_id)
    await _require_leader(session, team_id, acting_user_id, "Only team leaders can update positions")

    member = await _get_membership(session, team_id, member_user_id)
    if not member or member.status != MemberStatus.ACTIVE:
        raise NotFoundError("Member not found")
    member.position = PlayerPosition(position) if position else None
    await session.flush()
    return format_member(member)


async def transfer_captaincy(
    session: AsyncSession, team_id: int, current_captain_id: int, new_captain_id: int
) -> None:
    """
    Hand the captain's armband to another active member.

    Demote and promote are conditional updates whose affected-row counts are
    checked. If a concurrent transfer got there first, ConflictError is raised
    and the caller's unit of work rolls back, so the team never ends up with
    zero or two captains.

    Raises:
        PermissionDeniedError: If the invoker is not the active captain
        ValueError: If the target is not an active member
        ConflictError: If the captaincy changed underneath this transfer
    """
    await get_team(session, team_id)
    await _require_captain(session, team_id, current_captain_id, "Only the captain can transfer captaincy")
    if new_captain_id == current_captain_id:
        raise ValueError("You are already the captain")
    if not await has_member(session, team_id, new_captain_id):
        raise ValueError("The new captain must be an active member of the team")

    demoted = await session.execute(
        update(TeamMember)
        .where(
            TeamMember.team_id == team_id,
            TeamMember.user_id == current_captain_id,
            TeamMember.role == TeamRole.CAPTAIN,
            TeamMember.status == MemberStatus.ACTIVE,
        )
        .values(role=TeamRole.PLAYER)
        .execution_options(synchronize_session=False)
    )
    if demoted.rowcount != 1:
        raise ConflictError("Captaincy changed while transferring, please retry")

    promoted = await session.execute(
        update(TeamMember)
        .where(
            TeamMember.team_id == team_id,
            TeamMember.user_id == new_captain_id,
            TeamMember.role != TeamRole.CAPTAIN,
            TeamMember.status == MemberStatus.ACTIVE,
        )
        .values(role=TeamRole.CAPTAIN)
        .execution_options(synchronize_session=False)
    )
    if promoted.rowcount != 1:
        raise ConflictError("Captaincy changed while transferring, please retry")

    for member_user_id in (current_captain_id, new_captain_id):
        member = await _get_membership(session, team_id, member_user_id)
        await session.refresh(member)
    logger.info(
        f"Team {team_id} captaincy transferred from user {current_captain_id} to {new_captain_id}"
    )


# ──────────────────────────────────────────────────────────────
# Join requests
# ──────────────────────────────────────────────────────────────


async def _get_join_request(session: AsyncSession, request_id: int) -> JoinRequest:
    result = await session.execute(select(JoinRequest).where(JoinRequest.id == request_id))
    join_request = result.scalar_one_or_none()
    if not join_request:
        raise NotFoundError("Join request not found")
    return join_request


async def create_join_request(
    session: AsyncSession, user_id: int, team_id: int, message: Optional[str] = None
) -> Dict:
    """
    Ask to join a team.

    Previous accepted/rejected requests of this user for the team are purged
    first so terminal rows do not pile up.

    Raises:
        ValueError: If already a member or the team is full
        ConflictError: If a pending request already exists
    """
    team = await get_team(session, team_id)

    if await has_member(session, team_id, user_id):
        raise ValueError("You are already a member of this team")

    existing = await session.execute(
        select(JoinRequest.id).where(
            JoinRequest.team_id == team_id,
            JoinRequest.user_id == user_id,
            JoinRequest.status == JoinRequestStatus.PENDING,
        )
    )
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("You already have a pending request for this team")

    if await is_full(session, team):
        raise ValueError("This team is currently at maximum capacity")

    await session.execute(
        delete(JoinRequest).where(
            JoinRequest.team_id == team_id,
            JoinRequest.user_id == user_id,
            JoinRequest.status.in_([JoinRequestStatus.ACCEPTED, JoinRequestStatus.REJECTED]),
        )
    )

    join_request = JoinRequest(
        team_id=team_id,
        user_id=user_id,
        status=JoinRequestStatus.PENDING,
        message=message,
    )
    session.add(join_request)
    await session.flush()
    await session.refresh(join_request)

    await notification_service.notify_team(
        session,
        team_id,
        type=NotificationType.JOIN_REQUEST_RECEIVED.value,
        title="New join request",
        message=f"Someone asked to join {team.name}",
        data={"team_id": team_id, "join_request_id": join_request.id, "user_id": user_id},
        link_url=f"/teams/{team_id}",
    )
    return _format_join_request(join_request)


async def accept_join_request(
    session: AsyncSession, request_id: int, reviewer_id: int, now: Optional[datetime] = None
) -> Dict:
    """
    Accept a pending join request (leaders only).

    Capacity is re-checked here since it may have changed since the request
    was made. Marking the request and inserting the membership happen in the
    same unit of work.

    Returns:
        Dict of the new membership
    """
    now = now or utcnow()
    join_request = await _get_join_request(session, request_id)
    team = await get_team(session, join_request.team_id)
    await _require_leader(session, team.id, reviewer_id, "Only team leaders can review join requests")
    if join_request.status != JoinRequestStatus.PENDING:
        raise ValueError("This request has already been processed")
    if await is_full(session, team):
        raise ValueError("Team is at maximum capacity")

    join_request.status = JoinRequestStatus.ACCEPTED
    join_request.reviewed_by = reviewer_id
    join_request.reviewed_at = now
    member = await add_member(session, team, join_request.user_id, TeamRole.PLAYER)

    await notification_service.notify_user(
        session,
        join_request.user_id,
        type=NotificationType.JOIN_REQUEST_ACCEPTED.value,
        title="Join request accepted",
        message=f"You are now a member of {team.name}",
        data={"team_id": team.id},
        link_url=f"/teams/{team.id}",
    )
    return format_member(member)


async def reject_join_request(
    session: AsyncSession, request_id: int, reviewer_id: int, now: Optional[datetime] = None
) -> Dict:
    """Reject a pending join request (leaders only)."""
    join_request = await _get_join_request(session, request_id)
    await _require_leader(
        session, join_request.team_id, reviewer_id, "Only team leaders can review join requests"
    )
    if join_request.status != JoinRequestStatus.PENDING:
        raise ValueError("This request has already been processed")

    join_request.status = JoinRequestStatus.REJECTED
    join_request.reviewed_by = reviewer_id
    join_request.reviewed_at = now or utcnow()
    await session.flush()
    return _format_join_request(join_request)


async def cancel_join_request(session: AsyncSession, request_id: int, user_id: int) -> None:
    """Withdraw one's own pending join request."""
    join_request = await _get_join_request(session, request_id)
    if join_request.user_id != user_id:
        raise PermissionDeniedError("Not authorized to cancel this request")
    if join_request.status != JoinRequestStatus.PENDING:
        raise ValueError("This request has already been processed")
    await session.delete(join_request)
    await session.flush()


async def get_pending_join_requests_for_user(session: AsyncSession, user_id: int) -> List[Dict]:
    """Pending join requests for every team the user leads."""
    led_team_ids = select(TeamMember.team_id).where(
        and_(
            TeamMember.user_id == user_id,
            TeamMember.role.in_(LEADER_ROLES),
            TeamMember.status == MemberStatus.ACTIVE,
        )
    )
    result = await session.execute(
        select(JoinRequest)
        .where(
            JoinRequest.team_id.in_(led_team_ids),
            JoinRequest.status == JoinRequestStatus.PENDING,
        )
        .order_by(JoinRequest.created_at, JoinRequest.id)
    )
    return [_format_join_request(jr) for jr in result.scalars().all()]
