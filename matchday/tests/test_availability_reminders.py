"""
Tests for the availability reminder sweep (48 hours before kickoff).
"""

from datetime import timedelta

import pytest
from sqlalchemy import select, func

from matchday.database.models import MatchAvailability, Notification
from matchday.services import availability_service
from matchday.services.availability_reminder_service import (
    AvailabilityReminderService,
    send_availability_reminders,
)

from matchday.tests.clock import KICKOFF

REMINDER_TIME = KICKOFF - timedelta(hours=48)


async def _reminder_recipients(session):
    result = await session.execute(
        select(Notification.user_id).where(Notification.type == "availability_reminder")
    )
    return sorted(result.scalars().all())


@pytest.mark.asyncio
async def test_reminds_unanswered_players_of_both_sides(db_session, confirmed_match, add_players):
    home_players = await add_players(confirmed_match["home_team_id"], 2)
    await availability_service.update_availability(
        db_session,
        confirmed_match["match_id"],
        home_players[0],
        confirmed_match["home_team_id"],
        "available",
    )

    sent = await send_availability_reminders(db_session, now=REMINDER_TIME)

    assert sent == 3
    assert await _reminder_recipients(db_session) == sorted(
        [confirmed_match["home_captain_id"], home_players[1], confirmed_match["away_captain_id"]]
    )
    stamped = await db_session.execute(
        select(func.count()).select_from(MatchAvailability).where(MatchAvailability.reminded_at.isnot(None))
    )
    assert stamped.scalar_one() == 3


@pytest.mark.asyncio
async def test_each_player_reminded_at_most_once(db_session, confirmed_match):
    assert await send_availability_reminders(db_session, now=REMINDER_TIME) == 2
    assert await send_availability_reminders(db_session, now=REMINDER_TIME + timedelta(minutes=10)) == 0
    assert len(await _reminder_recipients(db_session)) == 2


@pytest.mark.asyncio
async def test_matches_outside_window_are_skipped(db_session, confirmed_match, open_match):
    assert await send_availability_reminders(db_session, now=REMINDER_TIME - timedelta(hours=1)) == 0
    assert await send_availability_reminders(db_session, now=REMINDER_TIME + timedelta(minutes=16)) == 0
    assert await _reminder_recipients(db_session) == []


@pytest.mark.asyncio
async def test_open_match_reminds_home_side_only(db_session, open_match):
    assert await send_availability_reminders(db_session, now=REMINDER_TIME) == 1
    assert await _reminder_recipients(db_session) == [open_match["home_captain_id"]]


@pytest.mark.asyncio
async def test_run_once_commits_in_own_session(db_session, confirmed_match):
    await db_session.commit()

    service = AvailabilityReminderService(window_minutes=15)
    assert await service.run_once(now=REMINDER_TIME) == 2
    assert await service.run_once(now=REMINDER_TIME) == 0

    assert len(await _reminder_recipients(db_session)) == 2
