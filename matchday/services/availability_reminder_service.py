"""
Availability reminder service: nudges players 48 hours before kickoff.

A sweep finds available/confirmed matches scheduled within a window around
now + 48h and reminds every active member of each side who has not answered
yet. ``reminded_at`` is stamped per recipient after the notification is
written, so a player is reminded at most once per match no matter how often
the sweep runs.

The sweep runs as a background worker inside the API process and can also be
triggered once from scripts/send_availability_reminders.py.
"""

import asyncio
import logging
import os
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from matchday.database import db
from matchday.database.models import (
    FootballMatch,
    MatchStatus,
    MatchAvailability,
    AvailabilityStatus,
    Team,
    TeamMember,
    MemberStatus,
    NotificationType,
)
from matchday.services import notification_service
from matchday.utils.constants import REMINDER_LEAD_HOURS, DEFAULT_REMINDER_WINDOW_MINUTES
from matchday.utils.datetime_utils import utcnow, ensure_utc

logger = logging.getLogger(__name__)

REMINDER_WINDOW_MINUTES = int(
    os.getenv("REMINDER_WINDOW_MINUTES", str(DEFAULT_REMINDER_WINDOW_MINUTES))
)

# How often the worker sweeps (seconds); shorter than the window so no match slips through
POLL_INTERVAL_SECONDS = 600  # 10 minutes


async def _send_team_reminders(
    session: AsyncSession, match: FootballMatch, team: Team, now: datetime
) -> int:
    members_result = await session.execute(
        select(TeamMember.user_id).where(
            TeamMember.team_id == team.id, TeamMember.status == MemberStatus.ACTIVE
        )
    )
    sent = 0
    for user_id in members_result.scalars().all():
        result = await session.execute(
            select(MatchAvailability).where(
                MatchAvailability.match_id == match.id,
                MatchAvailability.user_id == user_id,
                MatchAvailability.team_id == team.id,
            )
        )
        availability = result.scalar_one_or_none()
        if availability is None:
            availability = MatchAvailability(
                match_id=match.id,
                user_id=user_id,
                team_id=team.id,
                status=AvailabilityStatus.PENDING,
            )
            session.add(availability)
            await session.flush()

        if AvailabilityStatus(availability.status) != AvailabilityStatus.PENDING:
            continue
        if availability.reminded_at is not None:
            continue

        try:
            await notification_service.create_notification(
                session=session,
                user_id=user_id,
                type=NotificationType.AVAILABILITY_REMINDER.value,
                title="Are you playing?",
                message=(
                    f"{team.name} plays at {match.location} on "
                    f"{ensure_utc(match.scheduled_at):%Y-%m-%d %H:%M} UTC. "
                    "Please confirm your availability."
                ),
                data={"match_id": match.id, "team_id": team.id},
                link_url=f"/matches/{match.id}",
            )
        except Exception as e:
            logger.error(f"Failed to remind user {user_id} about match {match.id}: {e}")
            continue

        availability.reminded_at = now
        await session.flush()
        sent += 1
    return sent


async def send_availability_reminders(
    session: AsyncSession,
    now: Optional[datetime] = None,
    window_minutes: int = DEFAULT_REMINDER_WINDOW_MINUTES,
) -> int:
    """
    Remind unanswered players of matches kicking off in about 48 hours.

    Args:
        session: Database session (the caller commits)
        now: Clock override (defaults to utcnow())
        window_minutes: Half-width of the window around now + 48h

    Returns:
        Number of reminders sent
    """
    now = ensure_utc(now or utcnow())
    target = now + timedelta(hours=REMINDER_LEAD_HOURS)
    window = timedelta(minutes=window_minutes)

    result = await session.execute(
        select(FootballMatch)
        .where(
            FootballMatch.scheduled_at.between(target - window, target + window),
            FootballMatch.status.in_([MatchStatus.CONFIRMED, MatchStatus.AVAILABLE]),
        )
        .order_by(FootballMatch.scheduled_at)
    )
    matches = result.scalars().all()
    if not matches:
        logger.debug("No matches found requiring reminders")
        return 0

    sent = 0
    for match in matches:
        for team_id in (match.home_team_id, match.away_team_id):
            if team_id is None:
                continue
            team = await session.get(Team, team_id)
            if team is None:
                continue
            sent += await _send_team_reminders(session, match, team, now)

    logger.info(f"Sent {sent} availability reminder(s) for {len(matches)} match(es)")
    return sent


class AvailabilityReminderService:
    """Background service that periodically sweeps for availability reminders."""

    def __init__(self, window_minutes: int = REMINDER_WINDOW_MINUTES):
        self.window_minutes = window_minutes
        self._worker_task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

    def start(self) -> None:
        """Start the background reminder worker."""
        if self._worker_task is None or self._worker_task.done():
            self._stop_event.clear()
            self._worker_task = asyncio.create_task(self._poll_loop())
            logger.info("Availability reminder worker started")

    def stop(self) -> None:
        """Stop the background reminder worker."""
        self._stop_event.set()
        if self._worker_task and not self._worker_task.done():
            self._worker_task.cancel()
            logger.info("Availability reminder worker stopped")

    async def _poll_loop(self) -> None:
        """Main loop: sweep, then sleep. Repeats until stopped."""
        while not self._stop_event.is_set():
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Error in availability reminder worker: {e}", exc_info=True)

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=POLL_INTERVAL_SECONDS)
                break
            except asyncio.TimeoutError:
                pass

    async def run_once(self, now: Optional[datetime] = None) -> int:
        """Run one sweep in its own session and commit it."""
        async with db.AsyncSessionLocal() as session:
            try:
                sent = await send_availability_reminders(
                    session, now=now, window_minutes=self.window_minutes
                )
                await session.commit()
                return sent
            except Exception:
                await session.rollback()
                raise


# Global singleton
_reminder_service = AvailabilityReminderService()


def get_availability_reminder_service() -> AvailabilityReminderService:
    """Get the global availability reminder service instance."""
    return _reminder_service
