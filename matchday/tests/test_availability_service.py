"""
Tests for availability reporting and the per-side aggregation.
"""

from datetime import timedelta

import pytest
from sqlalchemy import select, func

from matchday.database.models import MatchAvailability
from matchday.services import availability_service, match_service, team_service
from matchday.services.availability_reminder_service import send_availability_reminders
from matchday.services.errors import PermissionDeniedError
from matchday.utils.datetime_utils import ensure_utc

from matchday.tests.clock import KICKOFF


@pytest.mark.asyncio
async def test_changing_answer_keeps_one_row(db_session, confirmed_match, add_players):
    """available -> maybe overwrites the same (match, user, team) row."""
    match_id = confirmed_match["match_id"]
    team_id = confirmed_match["home_team_id"]
    [player_id] = await add_players(team_id, 1)

    await availability_service.update_availability(db_session, match_id, player_id, team_id, "available")
    result = await availability_service.update_availability(
        db_session, match_id, player_id, team_id, "maybe"
    )
    assert result["availability"]["status"] == "maybe"
    assert result["warning"] is None  # Players never get the shortage warning

    count = await db_session.execute(
        select(func.count()).select_from(MatchAvailability).where(
            MatchAvailability.match_id == match_id, MatchAvailability.user_id == player_id
        )
    )
    assert count.scalar_one() == 1


@pytest.mark.asyncio
async def test_alert_until_variant_minimum_reached(db_session, confirmed_match, add_players):
    """A football_11 side with 5 available players is short; with 11 it is not."""
    match_id = confirmed_match["match_id"]
    team_id = confirmed_match["home_team_id"]
    players = await add_players(team_id, 11)
    match = await match_service.get_match(db_session, match_id)

    for player_id in players[:5]:
        await availability_service.update_availability(db_session, match_id, player_id, team_id, "available")
    assert await availability_service.needs_player_alert(db_session, match, team_id) is True

    summary = await availability_service.get_availability_summary(db_session, match, team_id)
    assert summary["available"] == 5
    assert summary["pending"] == 7  # 6 silent players plus the captain
    assert summary["total_members"] == 12
    assert summary["minimum_players"] == 11
    assert summary["has_enough_players"] is False
    assert summary["needs_alert"] is True

    for player_id in players[5:]:
        await availability_service.update_availability(db_session, match_id, player_id, team_id, "available")
    assert await availability_service.needs_player_alert(db_session, match, team_id) is False
    assert await availability_service.has_enough_confirmed_players(db_session, match, team_id)


@pytest.mark.asyncio
async def test_leader_gets_shortage_warning(db_session, confirmed_match):
    result = await availability_service.update_availability(
        db_session,
        confirmed_match["match_id"],
        confirmed_match["home_captain_id"],
        confirmed_match["home_team_id"],
        "available",
    )
    assert result["warning"] == "Warning: only 1/11 players confirmed available."


@pytest.mark.asyncio
async def test_no_alert_for_completed_match(db_session, confirmed_match):
    match_id = confirmed_match["match_id"]
    team_id = confirmed_match["home_team_id"]
    await match_service.update_score(db_session, match_id, confirmed_match["home_captain_id"], 1, 0, now=KICKOFF)
    await match_service.complete_match(db_session, match_id, confirmed_match["home_captain_id"], now=KICKOFF)

    match = await match_service.get_match(db_session, match_id)
    assert await availability_service.needs_player_alert(db_session, match, team_id) is False


@pytest.mark.asyncio
async def test_update_availability_rejections(db_session, confirmed_match, make_team, make_user):
    match_id = confirmed_match["match_id"]
    team_id = confirmed_match["home_team_id"]
    outsider = await make_user()
    other_team_id, other_captain_id = await make_team(name="Bystanders")

    with pytest.raises(ValueError):
        await availability_service.update_availability(
            db_session, match_id, confirmed_match["home_captain_id"], team_id, "pending"
        )
    with pytest.raises(PermissionDeniedError, match="not a member"):
        await availability_service.update_availability(db_session, match_id, outsider, team_id, "available")
    with pytest.raises(PermissionDeniedError, match="not playing"):
        await availability_service.update_availability(
            db_session, match_id, other_captain_id, other_team_id, "available"
        )


@pytest.mark.asyncio
async def test_list_team_availability_defaults_to_pending(db_session, confirmed_match, add_players):
    match_id = confirmed_match["match_id"]
    team_id = confirmed_match["away_team_id"]
    [player_id] = await add_players(team_id, 1)
    await availability_service.update_availability(db_session, match_id, player_id, team_id, "unavailable")

    rows = {row["user_id"]: row for row in await availability_service.list_team_availability(
        db_session, match_id, team_id
    )}
    assert rows[player_id]["status"] == "unavailable"
    assert rows[player_id]["confirmed_at"] is not None
    assert rows[confirmed_match["away_captain_id"]]["status"] == "pending"
    assert rows[confirmed_match["away_captain_id"]]["confirmed_at"] is None


@pytest.mark.asyncio
async def test_players_who_left_no_longer_count(db_session, confirmed_match, add_players):
    """A side back under the minimum after a departure raises the alert again."""
    match_id = confirmed_match["match_id"]
    team_id = confirmed_match["home_team_id"]
    captain_id = confirmed_match["home_captain_id"]
    players = await add_players(team_id, 10)
    for user_id in [captain_id, *players]:
        await availability_service.update_availability(db_session, match_id, user_id, team_id, "available")

    match = await match_service.get_match(db_session, match_id)
    assert await availability_service.available_count(db_session, match, team_id) == 11
    assert await availability_service.needs_player_alert(db_session, match, team_id) is False

    await team_service.leave_team(db_session, team_id, players[0])

    assert await availability_service.available_count(db_session, match, team_id) == 10
    assert await availability_service.has_enough_confirmed_players(db_session, match, team_id) is False
    summary = await availability_service.get_availability_summary(db_session, match, team_id)
    assert summary["available"] == 10
    assert summary["has_enough_players"] is False
    assert summary["needs_alert"] is True

    result = await availability_service.update_availability(
        db_session, match_id, captain_id, team_id, "available"
    )
    assert result["warning"] == "Warning: only 10/11 players confirmed available."


@pytest.mark.asyncio
async def test_update_stamps_confirmed_at_and_keeps_reminded_at(db_session, confirmed_match):
    """An answer after a reminder records when it was given and leaves the reminder stamp alone."""
    match_id = confirmed_match["match_id"]
    team_id = confirmed_match["home_team_id"]
    captain_id = confirmed_match["home_captain_id"]
    reminder_time = KICKOFF - timedelta(hours=48)
    answered_at = reminder_time + timedelta(hours=3)

    assert await send_availability_reminders(db_session, now=reminder_time) == 2

    result = await availability_service.update_availability(
        db_session, match_id, captain_id, team_id, "maybe", now=answered_at
    )
    assert result["availability"]["status"] == "maybe"

    row = (
        await db_session.execute(
            select(MatchAvailability).where(
                MatchAvailability.match_id == match_id,
                MatchAvailability.user_id == captain_id,
                MatchAvailability.team_id == team_id,
            )
        )
    ).scalar_one()
    assert ensure_utc(row.confirmed_at) == answered_at
    assert ensure_utc(row.reminded_at) == reminder_time

    later = answered_at + timedelta(hours=1)
    await availability_service.update_availability(
        db_session, match_id, captain_id, team_id, "available", now=later
    )
    await db_session.refresh(row)
    assert ensure_utc(row.confirmed_at) == later
    assert ensure_utc(row.reminded_at) == reminder_time
