"""
Lineup and event recording for matches.

A team's lineup for a match is replaced wholesale on every write. Events are
append-only apart from explicit deletion by a leader of the event's team.
"""

from typing import Dict, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete
from matchday.database.models import (
    MatchLineup,
    MatchEvent,
    MatchEventType,
    MatchStatus,
    PlayerPosition,
    TeamMember,
    MemberStatus,
    User,
)
from matchday.services import team_service, match_service
from matchday.services.errors import NotFoundError, PermissionDeniedError
from matchday.utils.constants import MAX_EVENT_MINUTE
from matchday.utils.datetime_utils import isoformat
import logging

logger = logging.getLogger(__name__)

MAX_EVENT_DESCRIPTION_LENGTH = 500
CARD_EVENTS = (MatchEventType.YELLOW_CARD, MatchEventType.RED_CARD)


def _format_lineup_entry(entry: MatchLineup, name: Optional[str] = None) -> Dict:
    return {
        "id": entry.id,
        "match_id": entry.match_id,
        "team_id": entry.team_id,
        "user_id": entry.user_id,
        "name": name,
        "position": PlayerPosition(entry.position).value if entry.position else None,
        "is_starter": entry.is_starter,
        "is_substitute": entry.is_substitute,
        "minutes_played": entry.minutes_played,
    }


def _format_event(event: MatchEvent) -> Dict:
    return {
        "id": event.id,
        "match_id": event.match_id,
        "team_id": event.team_id,
        "user_id": event.user_id,
        "event_type": MatchEventType(event.event_type).value,
        "minute": event.minute,
        "description": event.description,
        "created_at": isoformat(event.created_at),
    }


async def _active_member_ids(session: AsyncSession, team_id: int) -> set:
    result = await session.execute(
        select(TeamMember.user_id).where(
            TeamMember.team_id == team_id, TeamMember.status == MemberStatus.ACTIVE
        )
    )
    return set(result.scalars().all())


# ──────────────────────────────────────────────────────────────
# Lineups
# ──────────────────────────────────────────────────────────────


async def set_lineup(
    session: AsyncSession, match_id: int, team_id: int, user_id: int, players: List[Dict]
) -> List[Dict]:
    """
    Replace a team's lineup for a match.

    Args:
        players: Dicts with user_id and optional position, is_starter (default
            True) and is_substitute (default False)

    Returns:
        The stored lineup

    Raises:
        PermissionDeniedError: If the user does not lead the team
        ValueError: If the match is not confirmed or in progress, the team is
            not a side, a player is not an active member or is listed twice
    """
    match = await match_service.get_match(session, match_id)
    if not await team_service.is_leader(session, team_id, user_id):
        raise PermissionDeniedError("Only team leaders can set the lineup")
    if MatchStatus(match.status) not in (MatchStatus.CONFIRMED, MatchStatus.IN_PROGRESS):
        raise ValueError("Can only set lineup for confirmed matches")
    if not match_service.is_side(match, team_id):
        raise ValueError("Team is not part of this match")

    player_ids = [player["user_id"] for player in players]
    if len(player_ids) != len(set(player_ids)):
        raise ValueError("A player can only appear once in the lineup")
    members = await _active_member_ids(session, team_id)
    outsiders = [pid for pid in player_ids if pid not in members]
    if outsiders:
        raise ValueError(f"Players {outsiders} are not active members of this team")

    await session.execute(
        delete(MatchLineup).where(MatchLineup.match_id == match_id, MatchLineup.team_id == team_id)
    )
    await session.flush()

    for player in players:
        position = player.get("position")
        session.add(
            MatchLineup(
                match_id=match_id,
                team_id=team_id,
                user_id=player["user_id"],
                position=PlayerPosition(position) if position else None,
                is_starter=player.get("is_starter", True),
                is_substitute=player.get("is_substitute", False),
                minutes_played=0,
            )
        )
    await session.flush()

    logger.info(f"Lineup for team {team_id} in match {match_id} set with {len(players)} player(s)")
    return await get_lineup(session, match_id, team_id)


async def get_lineup(session: AsyncSession, match_id: int, team_id: int) -> List[Dict]:
    """A team's lineup for a match, starters first."""
    result = await session.execute(
        select(MatchLineup, User.name)
        .join(User, User.id == MatchLineup.user_id)
        .where(MatchLineup.match_id == match_id, MatchLineup.team_id == team_id)
        .order_by(MatchLineup.is_starter.desc(), MatchLineup.id)
    )
    return [_format_lineup_entry(entry, name) for entry, name in result.all()]


# ──────────────────────────────────────────────────────────────
# Events
# ──────────────────────────────────────────────────────────────


async def record_event(
    session: AsyncSession, match_id: int, team_id: int, user_id: int, event_data: Dict
) -> Dict:
    """
    Append an in-match event for one of the two sides.

    Args:
        event_data: event_type plus optional user_id (the player involved),
            minute (0-120) and description (up to 500 chars)

    Raises:
        PermissionDeniedError: If the user does not lead the team
        ValueError: If the match is not in progress, the team is not a side
            or the event data is invalid
    """
    event_type = MatchEventType(event_data.get("event_type"))
    minute = event_data.get("minute")
    if minute is not None and not 0 <= minute <= MAX_EVENT_MINUTE:
        raise ValueError(f"Minute must be between 0 and {MAX_EVENT_MINUTE}")
    description = event_data.get("description")
    if description is not None and len(description) > MAX_EVENT_DESCRIPTION_LENGTH:
        raise ValueError(f"Description cannot exceed {MAX_EVENT_DESCRIPTION_LENGTH} characters")

    match = await match_service.get_match(session, match_id)
    if not await team_service.is_leader(session, team_id, user_id):
        raise PermissionDeniedError("Only team leaders can record events")
    if MatchStatus(match.status) != MatchStatus.IN_PROGRESS:
        raise ValueError("Can only record events for in-progress matches")
    if not match_service.is_side(match, team_id):
        raise ValueError("Team is not part of this match")

    event = MatchEvent(
        match_id=match_id,
        team_id=team_id,
        user_id=event_data.get("user_id"),
        event_type=event_type,
        minute=minute,
        description=description,
    )
    session.add(event)
    await session.flush()
    await session.refresh(event)
    return _format_event(event)


async def delete_event(session: AsyncSession, event_id: int, user_id: int) -> None:
    """Remove an event. Only leaders of the event's own team may do so."""
    result = await session.execute(select(MatchEvent).where(MatchEvent.id == event_id))
    event = result.scalar_one_or_none()
    if not event:
        raise NotFoundError("Event not found")

    match = await match_service.get_match(session, event.match_id)
    if not await team_service.is_leader(session, event.team_id, user_id):
        raise PermissionDeniedError("Only team leaders can delete events")
    if MatchStatus(match.status) not in (MatchStatus.IN_PROGRESS, MatchStatus.COMPLETED):
        raise ValueError("Can only delete events of in-progress or completed matches")

    await session.delete(event)
    await session.flush()


async def list_events(session: AsyncSession, match_id: int) -> List[Dict]:
    """All events of a match in match-minute order."""
    await match_service.get_match(session, match_id)
    result = await session.execute(
        select(MatchEvent)
        .where(MatchEvent.match_id == match_id)
        .order_by(MatchEvent.minute.is_(None), MatchEvent.minute, MatchEvent.id)
    )
    return [_format_event(event) for event in result.scalars().all()]


async def get_match_statistics(session: AsyncSession, match_id: int) -> Dict:
    """Goals, cards and lineups of each side."""
    match = await match_service.get_match(session, match_id)
    events = await list_events(session, match_id)

    def side_events(team_id, types):
        values = {t.value for t in types}
        return [e for e in events if e["team_id"] == team_id and e["event_type"] in values]

    stats = {"match_id": match.id}
    for side, team_id in (("home", match.home_team_id), ("away", match.away_team_id)):
        stats[f"{side}_goals"] = side_events(team_id, (MatchEventType.GOAL,))
        stats[f"{side}_cards"] = side_events(team_id, CARD_EVENTS)
        stats[f"{side}_lineup"] = (
            await get_lineup(session, match.id, team_id) if team_id is not None else []
        )
    return stats
