"""
Match request service: binding an away team to an open match.

A team's leader bids for an available match; the home team's leader accepts
one bid or rejects it. Acceptance is first-committer-wins: the match row is
flipped with a conditional UPDATE and the affected-row count decides who won.
"""

from datetime import datetime
from typing import Dict, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from matchday.database.models import (
    FootballMatch,
    MatchRequest,
    MatchRequestStatus,
    MatchStatus,
    Team,
    Variant,
    NotificationType,
)
from matchday.services import team_service, match_service, notification_service
from matchday.services.errors import (
    NotFoundError,
    PermissionDeniedError,
    ConflictError,
    MatchRequestConflictError,
)
from matchday.utils.datetime_utils import utcnow, isoformat
import logging

logger = logging.getLogger(__name__)


def _format_request(match_request: MatchRequest, team_name: Optional[str] = None) -> Dict:
    return {
        "id": match_request.id,
        "match_id": match_request.match_id,
        "requesting_team_id": match_request.requesting_team_id,
        "requesting_team_name": team_name,
        "status": MatchRequestStatus(match_request.status).value,
        "message": match_request.message,
        "reviewed_by": match_request.reviewed_by,
        "reviewed_at": isoformat(match_request.reviewed_at),
        "created_at": isoformat(match_request.created_at),
    }


async def get_request(session: AsyncSession, request_id: int) -> MatchRequest:
    result = await session.execute(select(MatchRequest).where(MatchRequest.id == request_id))
    match_request = result.scalar_one_or_none()
    if not match_request:
        raise NotFoundError("Match request not found")
    return match_request


async def create_request(
    session: AsyncSession,
    user_id: int,
    match_id: int,
    team_id: int,
    message: Optional[str] = None,
) -> Dict:
    """
    Bid for the away slot of an available match.

    Raises:
        PermissionDeniedError: If the user does not lead the requesting team
        ValueError: If the match is not available, the variants differ or the
            team is the home team
        ConflictError: If the team already has a pending request for the match
    """
    match = await match_service.get_match(session, match_id)
    team = await team_service.get_team(session, team_id)

    if not await team_service.is_leader(session, team_id, user_id):
        raise PermissionDeniedError("Only team leaders can request matches")
    if MatchStatus(match.status) != MatchStatus.AVAILABLE:
        raise ValueError("This match is no longer available")
    if Variant(team.variant) != Variant(match.variant):
        raise ValueError("Team variant must match the match variant")
    if team_id == match.home_team_id:
        raise ValueError("A team cannot request its own match")

    existing = await session.execute(
        select(MatchRequest.id).where(
            MatchRequest.match_id == match_id,
            MatchRequest.requesting_team_id == team_id,
            MatchRequest.status == MatchRequestStatus.PENDING,
        )
    )
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("You already have a pending request for this match")

    match_request = MatchRequest(
        match_id=match_id,
        requesting_team_id=team_id,
        status=MatchRequestStatus.PENDING,
        message=message,
    )
    session.add(match_request)
    await session.flush()
    await session.refresh(match_request)

    await notification_service.notify_team(
        session,
        match.home_team_id,
        type=NotificationType.MATCH_REQUEST_RECEIVED.value,
        title="New match request",
        message=f"{team.name} wants to play your match at {match.location}",
        data={"match_id": match_id, "match_request_id": match_request.id, "team_id": team_id},
        link_url=f"/matches/{match_id}",
    )

    logger.info(f"Team {team_id} requested match {match_id}")
    return _format_request(match_request, team.name)


async def accept_request(
    session: AsyncSession, request_id: int, reviewer_id: int, now: Optional[datetime] = None
) -> Dict:
    """
    Accept a pending request and confirm the match against that team.

    In the caller's unit of work:
      1. the match is moved available -> confirmed with a conditional UPDATE;
         zero affected rows means another acceptance committed first
      2. this request is marked accepted
      3. every other pending request for the match is rejected with the same
         reviewer and timestamp

    Returns:
        Dict of the confirmed match

    Raises:
        PermissionDeniedError: If the reviewer does not lead the home team
        ValueError: If the request was already reviewed or the match is not available
        MatchRequestConflictError: If the match was confirmed concurrently
    """
    now = now or utcnow()
    match_request = await get_request(session, request_id)
    match = await match_service.get_match(session, match_request.match_id)

    if not await match_service.is_home_team_leader(session, match, reviewer_id):
        raise PermissionDeniedError("Only the home team leader can accept requests")
    if MatchRequestStatus(match_request.status) != MatchRequestStatus.PENDING:
        raise ValueError("This request has already been reviewed")
    if MatchStatus(match.status) != MatchStatus.AVAILABLE:
        raise ValueError("This match is no longer available")

    confirmed = await session.execute(
        update(FootballMatch)
        .where(
            FootballMatch.id == match.id,
            FootballMatch.status == MatchStatus.AVAILABLE,
        )
        .values(
            away_team_id=match_request.requesting_team_id,
            status=MatchStatus.CONFIRMED,
            confirmed_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if confirmed.rowcount != 1:
        raise MatchRequestConflictError("Another request was accepted for this match first")

    match_request.status = MatchRequestStatus.ACCEPTED
    match_request.reviewed_by = reviewer_id
    match_request.reviewed_at = now

    sibling_result = await session.execute(
        select(MatchRequest).where(
            MatchRequest.match_id == match.id,
            MatchRequest.id != match_request.id,
            MatchRequest.status == MatchRequestStatus.PENDING,
        )
    )
    rejected = list(sibling_result.scalars().all())
    for sibling in rejected:
        sibling.status = MatchRequestStatus.REJECTED
        sibling.reviewed_by = reviewer_id
        sibling.reviewed_at = now

    await session.flush()
    await session.refresh(match)

    await notification_service.notify_team(
        session,
        match_request.requesting_team_id,
        type=NotificationType.MATCH_REQUEST_ACCEPTED.value,
        title="Match request accepted",
        message=f"Your match at {match.location} is confirmed",
        data={"match_id": match.id, "match_request_id": match_request.id},
        link_url=f"/matches/{match.id}",
    )
    for sibling in rejected:
        await notification_service.notify_team(
            session,
            sibling.requesting_team_id,
            type=NotificationType.MATCH_REQUEST_REJECTED.value,
            title="Match request rejected",
            message=f"The match at {match.location} was given to another team",
            data={"match_id": match.id, "match_request_id": sibling.id},
            link_url=f"/matches/{match.id}",
        )

    logger.info(
        f"Match {match.id} confirmed against team {match_request.requesting_team_id}; "
        f"{len(rejected)} other request(s) rejected"
    )
    return match_service.format_match(match)


async def reject_request(
    session: AsyncSession, request_id: int, reviewer_id: int, now: Optional[datetime] = None
) -> Dict:
    """Reject a pending request (home team leaders only). The match is untouched."""
    match_request = await get_request(session, request_id)
    match = await match_service.get_match(session, match_request.match_id)

    if not await match_service.is_home_team_leader(session, match, reviewer_id):
        raise PermissionDeniedError("Only the home team leader can reject requests")
    if MatchRequestStatus(match_request.status) != MatchRequestStatus.PENDING:
        raise ValueError("This request has already been reviewed")

    match_request.status = MatchRequestStatus.REJECTED
    match_request.reviewed_by = reviewer_id
    match_request.reviewed_at = now or utcnow()
    await session.flush()
    await session.refresh(match_request)

    await notification_service.notify_team(
        session,
        match_request.requesting_team_id,
        type=NotificationType.MATCH_REQUEST_REJECTED.value,
        title="Match request rejected",
        message=f"Your request for the match at {match.location} was declined",
        data={"match_id": match.id, "match_request_id": match_request.id},
        link_url=f"/matches/{match.id}",
    )
    return _format_request(match_request)


async def list_match_requests(
    session: AsyncSession, match_id: int, status: Optional[str] = None
) -> List[Dict]:
    """Requests for a match, oldest first."""
    await match_service.get_match(session, match_id)
    query = (
        select(MatchRequest, Team.name)
        .join(Team, Team.id == MatchRequest.requesting_team_id)
        .where(MatchRequest.match_id == match_id)
    )
    if status:
        query = query.where(MatchRequest.status == MatchRequestStatus(status))
    result = await session.execute(query.order_by(MatchRequest.created_at, MatchRequest.id))
    return [_format_request(request, name) for request, name in result.all()]
