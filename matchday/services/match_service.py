"""
Match service: the match lifecycle.

States move forward only:

    available -> confirmed -> in_progress -> completed
    available -> cancelled

The available -> confirmed step happens when a match request is accepted
(see match_request_service). Every time-dependent precondition takes an
optional ``now`` so callers can pin the clock.
"""

from datetime import datetime
from typing import Dict, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, or_
from matchday.database.models import (
    FootballMatch,
    MatchStatus,
    MatchType,
    MatchRequest,
    MatchRequestStatus,
    Team,
    TeamMember,
    TeamRole,
    MemberStatus,
    User,
    Variant,
    NotificationType,
    LEADER_ROLES,
)
from matchday.services import team_service, notification_service
from matchday.services.errors import NotFoundError, PermissionDeniedError
from matchday.utils.datetime_utils import utcnow, ensure_utc, isoformat
import logging

logger = logging.getLogger(__name__)

UPDATABLE_MATCH_FIELDS = ("location", "location_coords", "scheduled_at", "match_type", "notes")


# ──────────────────────────────────────────────────────────────
# Lookups and derived state
# ──────────────────────────────────────────────────────────────


async def get_match(session: AsyncSession, match_id: int) -> FootballMatch:
    """
    Load a match by ID.

    Raises:
        NotFoundError: If the match does not exist
    """
    result = await session.execute(select(FootballMatch).where(FootballMatch.id == match_id))
    match = result.scalar_one_or_none()
    if not match:
        raise NotFoundError("Match not found")
    return match


def has_started(match: FootballMatch) -> bool:
    return match.started_at is not None


def is_side(match: FootballMatch, team_id: int) -> bool:
    """True if the team is the home or the away side of the match."""
    return team_id is not None and team_id in (match.home_team_id, match.away_team_id)


def is_before_kickoff(match: FootballMatch, now: datetime) -> bool:
    return ensure_utc(match.scheduled_at) > ensure_utc(now)


async def is_home_team_leader(session: AsyncSession, match: FootballMatch, user_id: int) -> bool:
    return await team_service.is_leader(session, match.home_team_id, user_id)


async def is_away_team_leader(session: AsyncSession, match: FootballMatch, user_id: int) -> bool:
    if match.away_team_id is None:
        return False
    return await team_service.is_leader(session, match.away_team_id, user_id)


async def is_team_leader(session: AsyncSession, match: FootballMatch, user_id: int) -> bool:
    """True if the user leads either side of the match."""
    return await is_home_team_leader(session, match, user_id) or await is_away_team_leader(
        session, match, user_id
    )


def get_winner_team_id(match: FootballMatch) -> Optional[int]:
    """Team with the higher score of a completed match; None for a draw or no result."""
    if MatchStatus(match.status) != MatchStatus.COMPLETED:
        return None
    if match.home_score is None or match.away_score is None:
        return None
    if match.home_score > match.away_score:
        return match.home_team_id
    if match.away_score > match.home_score:
        return match.away_team_id
    return None


def is_draw(match: FootballMatch) -> bool:
    return (
        MatchStatus(match.status) == MatchStatus.COMPLETED
        and match.home_score is not None
        and match.away_score is not None
        and match.home_score == match.away_score
    )


def format_match(match: FootballMatch) -> Dict:
    return {
        "id": match.id,
        "home_team_id": match.home_team_id,
        "away_team_id": match.away_team_id,
        "variant": Variant(match.variant).value,
        "scheduled_at": isoformat(match.scheduled_at),
        "location": match.location,
        "location_coords": match.location_coords,
        "match_type": MatchType(match.match_type).value,
        "status": MatchStatus(match.status).value,
        "home_score": match.home_score,
        "away_score": match.away_score,
        "notes": match.notes,
        "created_by": match.created_by,
        "confirmed_at": isoformat(match.confirmed_at),
        "started_at": isoformat(match.started_at),
        "completed_at": isoformat(match.completed_at),
        "winner_team_id": get_winner_team_id(match),
        "is_draw": is_draw(match),
    }


async def _team_summary(session: AsyncSession, team_id: Optional[int]) -> Optional[Dict]:
    if team_id is None:
        return None
    team = await session.get(Team, team_id)
    if team is None:
        return None
    return {"id": team.id, "name": team.name, "logo_path": team.logo_path}


async def _notify_sides(
    session: AsyncSession,
    match: FootballMatch,
    type: str,
    title: str,
    message: str,
    exclude_user_id: Optional[int] = None,
) -> None:
    for team_id in (match.home_team_id, match.away_team_id):
        if team_id is None:
            continue
        await notification_service.notify_team(
            session,
            team_id,
            type=type,
            title=title,
            message=message,
            data={"match_id": match.id},
            link_url=f"/matches/{match.id}",
            leaders_only=False,
            exclude_user_id=exclude_user_id,
        )


# ──────────────────────────────────────────────────────────────
# Transitions
# ──────────────────────────────────────────────────────────────


async def create_match(
    session: AsyncSession,
    user_id: int,
    team_id: int,
    scheduled_at: datetime,
    location: str,
    location_coords: Optional[str] = None,
    match_type: str = MatchType.FRIENDLY.value,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict:
    """
    Publish an open match slot for the home team.

    The match inherits the team's variant and waits, with no away team, for a
    match request to be accepted.

    Raises:
        PermissionDeniedError: If the user does not lead the home team
        ValueError: If the location is empty or the kickoff is in the past
    """
    now = now or utcnow()
    team = await team_service.get_team(session, team_id)
    if not await team_service.is_leader(session, team_id, user_id):
        raise PermissionDeniedError("Only team leaders can create match availability")

    location = (location or "").strip()
    if not location:
        raise ValueError("Location cannot be empty")
    scheduled_at = ensure_utc(scheduled_at)
    if scheduled_at < ensure_utc(now):
        raise ValueError("The match must be scheduled in the future")

    match = FootballMatch(
        home_team_id=team.id,
        away_team_id=None,
        variant=Variant(team.variant),
        scheduled_at=scheduled_at,
        location=location,
        location_coords=location_coords,
        match_type=MatchType(match_type),
        status=MatchStatus.AVAILABLE,
        notes=notes,
        created_by=user_id,
    )
    session.add(match)
    await session.flush()
    await session.refresh(match)

    logger.info(f"Match {match.id} published by team {team_id}")
    return format_match(match)


async def update_match(
    session: AsyncSession,
    match_id: int,
    user_id: int,
    data: Dict,
    now: Optional[datetime] = None,
) -> Dict:
    """
    Edit logistics (location, coordinates, kickoff, type, notes) before kickoff.

    Only the home team's leaders may do this, and only while the match has
    not started. Status never changes here.
    """
    now = now or utcnow()
    match = await get_match(session, match_id)
    if not await is_home_team_leader(session, match, user_id):
        raise PermissionDeniedError("Only the home team leader can update this match")
    if has_started(match):
        raise ValueError("Cannot update a match that has already started")
    if MatchStatus(match.status) not in (MatchStatus.AVAILABLE, MatchStatus.CONFIRMED):
        raise ValueError("Only upcoming matches can be updated")

    updates = {k: v for k, v in data.items() if k in UPDATABLE_MATCH_FIELDS}
    if "location" in updates:
        updates["location"] = (updates["location"] or "").strip()
        if not updates["location"]:
            raise ValueError("Location cannot be empty")
    if "scheduled_at" in updates:
        if updates["scheduled_at"] is None:
            raise ValueError("scheduled_at cannot be empty")
        updates["scheduled_at"] = ensure_utc(updates["scheduled_at"])
        if updates["scheduled_at"] < ensure_utc(now):
            raise ValueError("The match must be scheduled in the future")
    if "match_type" in updates:
        updates["match_type"] = MatchType(updates["match_type"])

    for key, value in updates.items():
        setattr(match, key, value)
    await session.flush()
    await session.refresh(match)
    return format_match(match)


async def cancel_match(session: AsyncSession, match_id: int, user_id: int) -> Dict:
    """
    Withdraw an open match (home team leaders only).

    Pending match requests are deleted and their teams told about it.
    Only matches still waiting for an opponent can be cancelled.
    """
    match = await get_match(session, match_id)
    if not await is_home_team_leader(session, match, user_id):
        raise PermissionDeniedError("Only the home team leader can cancel this match")
    if has_started(match):
        raise ValueError("Cannot cancel a match that has already started")
    if MatchStatus(match.status) != MatchStatus.AVAILABLE:
        raise ValueError("Only matches still waiting for an opponent can be cancelled")

    pending = await session.execute(
        select(MatchRequest.requesting_team_id).where(
            MatchRequest.match_id == match_id,
            MatchRequest.status == MatchRequestStatus.PENDING,
        )
    )
    requesting_team_ids = list(pending.scalars().all())

    await session.execute(
        delete(MatchRequest).where(
            MatchRequest.match_id == match_id,
            MatchRequest.status == MatchRequestStatus.PENDING,
        )
    )
    match.status = MatchStatus.CANCELLED
    await session.flush()
    await session.refresh(match)

    for team_id in requesting_team_ids:
        await notification_service.notify_team(
            session,
            team_id,
            type=NotificationType.MATCH_CANCELLED.value,
            title="Match cancelled",
            message=f"The match at {match.location} you requested was cancelled",
            data={"match_id": match.id},
            link_url=f"/matches/{match.id}",
        )

    logger.info(f"Match {match.id} cancelled by user {user_id}")
    return format_match(match)


async def start_match(
    session: AsyncSession, match_id: int, user_id: int, now: Optional[datetime] = None
) -> Dict:
    """Kick off a confirmed match once its scheduled time has come. Scores start at 0-0."""
    now = now or utcnow()
    match = await get_match(session, match_id)
    if not await is_team_leader(session, match, user_id):
        raise PermissionDeniedError("Only team leaders can start the match")
    if MatchStatus(match.status) != MatchStatus.CONFIRMED:
        raise ValueError("Only confirmed matches can be started")
    if is_before_kickoff(match, now):
        raise ValueError("Cannot start the match before its scheduled time")

    match.status = MatchStatus.IN_PROGRESS
    match.started_at = now
    match.home_score = 0
    match.away_score = 0
    await session.flush()
    await session.refresh(match)

    logger.info(f"Match {match.id} started")
    return format_match(match)


async def update_score(
    session: AsyncSession,
    match_id: int,
    user_id: int,
    home_score: int,
    away_score: int,
    now: Optional[datetime] = None,
) -> Dict:
    """
    Write the current score.

    Legal for confirmed or in-progress matches whose kickoff has passed. A
    confirmed match is moved to in_progress (and started_at stamped) by the
    same call. Goal events are not consulted.

    Raises:
        PermissionDeniedError: If the user leads neither side
        ValueError: On negative scores, wrong status or before kickoff
    """
    now = now or utcnow()
    if home_score is None or away_score is None or home_score < 0 or away_score < 0:
        raise ValueError("Scores must be non-negative integers")

    match = await get_match(session, match_id)
    if not await is_team_leader(session, match, user_id):
        raise PermissionDeniedError("Only team leaders can update the score")
    status = MatchStatus(match.status)
    if status not in (MatchStatus.CONFIRMED, MatchStatus.IN_PROGRESS):
        raise ValueError("Can only update score for in-progress or confirmed matches")
    if is_before_kickoff(match, now):
        raise ValueError("Cannot update score before the match starts")

    match.home_score = home_score
    match.away_score = away_score
    if status == MatchStatus.CONFIRMED:
        match.status = MatchStatus.IN_PROGRESS
        match.started_at = now
    await session.flush()
    await session.refresh(match)

    await _notify_sides(
        session,
        match,
        type=NotificationType.MATCH_SCORE_UPDATED.value,
        title="Score updated",
        message=f"Score is now {home_score}-{away_score}",
        exclude_user_id=user_id,
    )
    return format_match(match)


async def complete_match(
    session: AsyncSession, match_id: int, user_id: int, now: Optional[datetime] = None
) -> Dict:
    """Close an in-progress match (leaders of either side)."""
    now = now or utcnow()
    match = await get_match(session, match_id)
    if not await is_team_leader(session, match, user_id):
        raise PermissionDeniedError("Only team leaders can complete the match")
    if MatchStatus(match.status) != MatchStatus.IN_PROGRESS:
        raise ValueError("Can only complete in-progress matches")
    if is_before_kickoff(match, now):
        raise ValueError("Cannot complete match before it has started")

    match.status = MatchStatus.COMPLETED
    match.completed_at = now
    await session.flush()
    await session.refresh(match)

    logger.info(f"Match {match.id} completed {match.home_score}-{match.away_score}")
    return format_match(match)


# ──────────────────────────────────────────────────────────────
# Queries
# ──────────────────────────────────────────────────────────────


async def get_match_details(session: AsyncSession, match_id: int) -> Dict:
    """Match with both sides and its request history."""
    match = await get_match(session, match_id)
    result = await session.execute(
        select(MatchRequest, Team.name)
        .join(Team, Team.id == MatchRequest.requesting_team_id)
        .where(MatchRequest.match_id == match_id)
        .order_by(MatchRequest.created_at, MatchRequest.id)
    )
    requests = [
        {
            "id": request.id,
            "requesting_team_id": request.requesting_team_id,
            "requesting_team_name": team_name,
            "status": MatchRequestStatus(request.status).value,
            "message": request.message,
            "reviewed_at": isoformat(request.reviewed_at),
        }
        for request, team_name in result.all()
    ]
    return {
        **format_match(match),
        "home_team": await _team_summary(session, match.home_team_id),
        "away_team": await _team_summary(session, match.away_team_id),
        "requests": requests,
    }


async def get_available_matches(
    session: AsyncSession,
    variants: Optional[List[str]] = None,
    now: Optional[datetime] = None,
) -> List[Dict]:
    """Open match slots scheduled in the future, soonest first."""
    now = now or utcnow()
    query = select(FootballMatch).where(
        FootballMatch.status == MatchStatus.AVAILABLE,
        FootballMatch.scheduled_at > now,
    )
    if variants:
        query = query.where(FootballMatch.variant.in_([Variant(v) for v in variants]))
    result = await session.execute(query.order_by(FootballMatch.scheduled_at))

    matches = []
    for match in result.scalars().all():
        formatted = format_match(match)
        formatted["home_team"] = await _team_summary(session, match.home_team_id)
        matches.append(formatted)
    return matches


async def get_team_matches(
    session: AsyncSession, team_id: int, status: Optional[str] = None
) -> List[Dict]:
    """Matches a team plays on either side, latest first."""
    query = select(FootballMatch).where(
        or_(FootballMatch.home_team_id == team_id, FootballMatch.away_team_id == team_id)
    )
    if status:
        query = query.where(FootballMatch.status == MatchStatus(status))
    result = await session.execute(query.order_by(FootballMatch.scheduled_at.desc()))
    return [format_match(match) for match in result.scalars().all()]


async def get_user_matches(session: AsyncSession, user_id: int) -> List[Dict]:
    """Matches of every team the user leads, latest first."""
    led_team_ids = select(TeamMember.team_id).where(
        TeamMember.user_id == user_id,
        TeamMember.role.in_(LEADER_ROLES),
        TeamMember.status == MemberStatus.ACTIVE,
    )
    result = await session.execute(
        select(FootballMatch)
        .where(
            or_(
                FootballMatch.home_team_id.in_(led_team_ids),
                FootballMatch.away_team_id.in_(led_team_ids),
            )
        )
        .order_by(FootballMatch.scheduled_at.desc())
    )
    return [format_match(match) for match in result.scalars().all()]


async def _team_leaders(session: AsyncSession, team_id: int) -> List[Dict]:
    result = await session.execute(
        select(User.id, User.name, User.phone_number, TeamMember.role)
        .join(TeamMember, TeamMember.user_id == User.id)
        .where(
            TeamMember.team_id == team_id,
            TeamMember.role.in_(LEADER_ROLES),
            TeamMember.status == MemberStatus.ACTIVE,
        )
        .order_by(User.name)
    )
    return [
        {"user_id": uid, "name": name, "phone_number": phone, "role": TeamRole(role).value}
        for uid, name, phone, role in result.all()
    ]


async def get_opposing_team_leaders(session: AsyncSession, match_id: int, user_id: int) -> Dict:
    """
    Contact details of both sides' leaders.

    Only shared once the match is confirmed, and only with a leader of one of
    the two teams; anyone else gets empty lists.
    """
    match = await get_match(session, match_id)
    leaders = {"home_leaders": [], "away_leaders": []}
    if MatchStatus(match.status) != MatchStatus.CONFIRMED:
        return leaders
    if not await is_team_leader(session, match, user_id):
        return leaders

    leaders["home_leaders"] = await _team_leaders(session, match.home_team_id)
    if match.away_team_id is not None:
        leaders["away_leaders"] = await _team_leaders(session, match.away_team_id)
    return leaders
