"""
Availability service: players' self-reported attendance per match.

Aggregates availability for one side of a match against the minimum number
of players the match's variant needs on the pitch.
"""

from datetime import datetime
from typing import Dict, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from matchday.database.models import (
    FootballMatch,
    MatchAvailability,
    AvailabilityStatus,
    MatchStatus,
    TeamMember,
    MemberStatus,
    User,
    Variant,
)
from matchday.services import team_service
from matchday.services.errors import NotFoundError, PermissionDeniedError
from matchday.utils.constants import VARIANT_RULES
from matchday.utils.datetime_utils import utcnow, isoformat
import logging

logger = logging.getLogger(__name__)

# Statuses a player may report; "pending" only means "has not answered yet"
SELF_REPORTED_STATUSES = (
    AvailabilityStatus.AVAILABLE,
    AvailabilityStatus.MAYBE,
    AvailabilityStatus.UNAVAILABLE,
)


def minimum_players(variant: str) -> int:
    """Players a side needs on the pitch for the given variant."""
    return VARIANT_RULES[Variant(variant)].min_players


def is_match_side(match: FootballMatch, team_id: int) -> bool:
    """True if the team is the home or the away side of the match."""
    return team_id in (match.home_team_id, match.away_team_id)


async def _get_match(session: AsyncSession, match_id: int) -> FootballMatch:
    result = await session.execute(select(FootballMatch).where(FootballMatch.id == match_id))
    match = result.scalar_one_or_none()
    if not match:
        raise NotFoundError("Match not found")
    return match


async def available_count(session: AsyncSession, match: FootballMatch, team_id: int) -> int:
    """Number of active members of the team who marked themselves available."""
    result = await session.execute(
        select(func.count())
        .select_from(MatchAvailability)
        .join(
            TeamMember,
            (TeamMember.user_id == MatchAvailability.user_id)
            & (TeamMember.team_id == MatchAvailability.team_id),
        )
        .where(
            MatchAvailability.match_id == match.id,
            MatchAvailability.team_id == team_id,
            MatchAvailability.status == AvailabilityStatus.AVAILABLE,
            TeamMember.status == MemberStatus.ACTIVE,
        )
    )
    return result.scalar_one() or 0


async def has_enough_confirmed_players(
    session: AsyncSession, match: FootballMatch, team_id: int
) -> bool:
    """True if the side has at least the variant's minimum available players."""
    return await available_count(session, match, team_id) >= minimum_players(match.variant)


async def needs_player_alert(session: AsyncSession, match: FootballMatch, team_id: int) -> bool:
    """
    True if the side is short of players for a match that is still going ahead.

    Cancelled and completed matches never raise the alert.
    """
    if MatchStatus(match.status) in (MatchStatus.CANCELLED, MatchStatus.COMPLETED):
        return False
    return not await has_enough_confirmed_players(session, match, team_id)


async def get_availability_summary(
    session: AsyncSession, match: FootballMatch, team_id: int
) -> Dict:
    """
    Count each availability status among the side's active members.

    Active members without an availability row are counted as pending.
    Rows left behind by players who have since left the team are ignored.
    """
    result = await session.execute(
        select(TeamMember.user_id, MatchAvailability.status)
        .outerjoin(
            MatchAvailability,
            (MatchAvailability.user_id == TeamMember.user_id)
            & (MatchAvailability.team_id == TeamMember.team_id)
            & (MatchAvailability.match_id == match.id),
        )
        .where(TeamMember.team_id == team_id, TeamMember.status == MemberStatus.ACTIVE)
    )
    counts = {status.value: 0 for status in AvailabilityStatus}
    for _, status in result.all():
        key = AvailabilityStatus(status).value if status else AvailabilityStatus.PENDING.value
        counts[key] += 1

    minimum = minimum_players(match.variant)
    enough = await has_enough_confirmed_players(session, match, team_id)
    return {
        "match_id": match.id,
        "team_id": team_id,
        **counts,
        "total_members": sum(counts.values()),
        "minimum_players": minimum,
        "has_enough_players": enough,
        "needs_alert": await needs_player_alert(session, match, team_id),
    }


async def upsert_availability(
    session: AsyncSession,
    match_id: int,
    user_id: int,
    team_id: int,
    status: AvailabilityStatus,
    now: datetime,
) -> MatchAvailability:
    """
    Create or overwrite the (match, user, team) availability row.

    Stamps confirmed_at; reminded_at is never touched here.
    """
    result = await session.execute(
        select(MatchAvailability).where(
            MatchAvailability.match_id == match_id,
            MatchAvailability.user_id == user_id,
            MatchAvailability.team_id == team_id,
        )
    )
    availability = result.scalar_one_or_none()
    if availability is None:
        availability = MatchAvailability(
            match_id=match_id, user_id=user_id, team_id=team_id
        )
        session.add(availability)
    availability.status = status
    availability.confirmed_at = now
    await session.flush()
    await session.refresh(availability)
    return availability


def _format_availability(availability: MatchAvailability) -> Dict:
    return {
        "id": availability.id,
        "match_id": availability.match_id,
        "user_id": availability.user_id,
        "team_id": availability.team_id,
        "status": AvailabilityStatus(availability.status).value,
        "confirmed_at": isoformat(availability.confirmed_at),
        "reminded_at": isoformat(availability.reminded_at),
    }


async def update_availability(
    session: AsyncSession,
    match_id: int,
    user_id: int,
    team_id: int,
    status: str,
    now: Optional[datetime] = None,
) -> Dict:
    """
    Record a player's availability for a match.

    Args:
        session: Database session
        match_id: Match ID
        user_id: The reporting player
        team_id: The side the player reports for
        status: available, maybe or unavailable
        now: Clock override (defaults to utcnow())

    Returns:
        Dict with the availability row under "availability" and, when the
        reporting player leads a side that is short of players, a "warning"
        message.

    Raises:
        ValueError: If the status is not self-reportable
        PermissionDeniedError: If the user is not an active member of the team
            or the team is not playing in the match
    """
    now = now or utcnow()
    status = AvailabilityStatus(status)
    if status not in SELF_REPORTED_STATUSES:
        raise ValueError("Status must be one of: available, maybe, unavailable")

    match = await _get_match(session, match_id)
    await team_service.get_team(session, team_id)
    if not await team_service.has_member(session, team_id, user_id):
        raise PermissionDeniedError("You are not a member of this team")
    if not is_match_side(match, team_id):
        raise PermissionDeniedError("This team is not playing in this match")

    availability = await upsert_availability(session, match_id, user_id, team_id, status, now)

    warning = None
    if await team_service.is_leader(session, team_id, user_id) and await needs_player_alert(
        session, match, team_id
    ):
        count = await available_count(session, match, team_id)
        warning = (
            f"Warning: only {count}/{minimum_players(match.variant)} players confirmed available."
        )

    return {"availability": _format_availability(availability), "warning": warning}


async def list_team_availability(
    session: AsyncSession, match_id: int, team_id: int
) -> List[Dict]:
    """
    Availability of every active member of a side, pending for those who
    have not answered.
    """
    match = await _get_match(session, match_id)
    if not is_match_side(match, team_id):
        raise ValueError("This team is not playing in this match")

    result = await session.execute(
        select(TeamMember.user_id, User.name, MatchAvailability)
        .join(User, User.id == TeamMember.user_id)
        .outerjoin(
            MatchAvailability,
            (MatchAvailability.user_id == TeamMember.user_id)
            & (MatchAvailability.team_id == TeamMember.team_id)
            & (MatchAvailability.match_id == match_id),
        )
        .where(TeamMember.team_id == team_id, TeamMember.status == MemberStatus.ACTIVE)
        .order_by(User.name)
    )
    rows = []
    for member_user_id, name, availability in result.all():
        rows.append(
            {
                "user_id": member_user_id,
                "name": name,
                "status": (
                    AvailabilityStatus(availability.status).value
                    if availability
                    else AvailabilityStatus.PENDING.value
                ),
                "confirmed_at": isoformat(availability.confirmed_at) if availability else None,
            }
        )
    return rows
