"""
Tests for the match lifecycle: publication, logistics edits, cancellation,
kickoff, scoring and completion.
"""

from datetime import timedelta

import pytest
from sqlalchemy import select, func

from matchday.database.models import MatchRequest, Notification, TeamRole
from matchday.services import match_service, match_request_service
from matchday.services.errors import PermissionDeniedError

from matchday.tests.clock import KICKOFF, BEFORE_KICKOFF


@pytest.mark.asyncio
async def test_create_match_inherits_team_variant(db_session, make_team):
    team_id, captain_id = await make_team(variant="futsal")
    match = await match_service.create_match(
        db_session,
        captain_id,
        team_id,
        scheduled_at=KICKOFF,
        location="Sports Hall B",
        match_type="competitive",
        now=BEFORE_KICKOFF,
    )
    assert match["status"] == "available"
    assert match["variant"] == "futsal"
    assert match["match_type"] == "competitive"
    assert match["away_team_id"] is None
    assert match["home_score"] is None
    assert match["scheduled_at"] == KICKOFF.isoformat()


@pytest.mark.asyncio
async def test_create_match_preconditions(db_session, make_team, add_players):
    team_id, captain_id = await make_team()
    [player_id] = await add_players(team_id, 1)

    with pytest.raises(PermissionDeniedError, match="Only team leaders can create match availability"):
        await match_service.create_match(
            db_session, player_id, team_id, KICKOFF, "Pitch 1", now=BEFORE_KICKOFF
        )
    with pytest.raises(ValueError, match="future"):
        await match_service.create_match(
            db_session, captain_id, team_id, BEFORE_KICKOFF - timedelta(hours=1), "Pitch 1", now=BEFORE_KICKOFF
        )
    with pytest.raises(ValueError, match="Location"):
        await match_service.create_match(
            db_session, captain_id, team_id, KICKOFF, "  ", now=BEFORE_KICKOFF
        )


@pytest.mark.asyncio
async def test_update_match_home_leader_only(db_session, confirmed_match):
    match_id = confirmed_match["match_id"]
    with pytest.raises(PermissionDeniedError):
        await match_service.update_match(
            db_session, match_id, confirmed_match["away_captain_id"], {"location": "Elsewhere"}, now=BEFORE_KICKOFF
        )

    updated = await match_service.update_match(
        db_session,
        match_id,
        confirmed_match["home_captain_id"],
        {"location": "North Pitch", "notes": "Bring dark shirts", "status": "completed"},
        now=BEFORE_KICKOFF,
    )
    assert updated["location"] == "North Pitch"
    assert updated["notes"] == "Bring dark shirts"
    assert updated["status"] == "confirmed"


@pytest.mark.asyncio
async def test_cancel_available_match_drops_pending_requests(db_session, make_team, open_match):
    match_id = open_match["match_id"]
    requester_team_id, requester_captain_id = await make_team(name="Requesters")
    await match_request_service.create_request(db_session, requester_captain_id, match_id, requester_team_id)

    cancelled = await match_service.cancel_match(db_session, match_id, open_match["home_captain_id"])
    assert cancelled["status"] == "cancelled"

    remaining = await db_session.execute(
        select(func.count()).select_from(MatchRequest).where(MatchRequest.match_id == match_id)
    )
    assert remaining.scalar_one() == 0
    notified = await db_session.execute(
        select(Notification.type).where(Notification.user_id == requester_captain_id)
    )
    assert "match_cancelled" in notified.scalars().all()


@pytest.mark.asyncio
async def test_cannot_cancel_confirmed_match(db_session, confirmed_match):
    with pytest.raises(ValueError, match="waiting for an opponent"):
        await match_service.cancel_match(
            db_session, confirmed_match["match_id"], confirmed_match["home_captain_id"]
        )


@pytest.mark.asyncio
async def test_score_before_kickoff_then_first_score_starts_match(db_session, confirmed_match):
    """Scoring is refused before kickoff; at kickoff the first score moves the match in progress."""
    match_id = confirmed_match["match_id"]
    home_captain = confirmed_match["home_captain_id"]

    with pytest.raises(ValueError, match="Cannot update score before the match starts"):
        await match_service.update_score(
            db_session, match_id, home_captain, 1, 0, now=KICKOFF - timedelta(minutes=1)
        )

    match = await match_service.update_score(db_session, match_id, home_captain, 2, 1, now=KICKOFF)
    assert match["status"] == "in_progress"
    assert (match["home_score"], match["away_score"]) == (2, 1)
    assert match["started_at"] == KICKOFF.isoformat()

    # The away captain was told about the new score, the home captain was not
    result = await db_session.execute(
        select(Notification.user_id).where(Notification.type == "match_score_updated")
    )
    assert result.scalars().all() == [confirmed_match["away_captain_id"]]


@pytest.mark.asyncio
async def test_score_rejected_on_open_match(db_session, open_match):
    with pytest.raises(ValueError, match="in-progress or confirmed"):
        await match_service.update_score(
            db_session, open_match["match_id"], open_match["home_captain_id"], 1, 0, now=KICKOFF
        )


@pytest.mark.asyncio
async def test_score_requires_leader_of_either_side(db_session, confirmed_match, add_players):
    [player_id] = await add_players(confirmed_match["home_team_id"], 1)
    with pytest.raises(PermissionDeniedError):
        await match_service.update_score(
            db_session, confirmed_match["match_id"], player_id, 1, 0, now=KICKOFF
        )

    match = await match_service.update_score(
        db_session, confirmed_match["match_id"], confirmed_match["away_captain_id"], 0, 3, now=KICKOFF
    )
    assert match["away_score"] == 3


@pytest.mark.asyncio
async def test_start_then_complete_home_win(db_session, confirmed_match):
    match_id = confirmed_match["match_id"]
    home_captain = confirmed_match["home_captain_id"]

    with pytest.raises(ValueError, match="before its scheduled time"):
        await match_service.start_match(db_session, match_id, home_captain, now=BEFORE_KICKOFF)
    with pytest.raises(ValueError, match="in-progress"):
        await match_service.complete_match(db_session, match_id, home_captain, now=KICKOFF)

    started = await match_service.start_match(db_session, match_id, home_captain, now=KICKOFF)
    assert started["status"] == "in_progress"
    assert (started["home_score"], started["away_score"]) == (0, 0)

    await match_service.update_score(
        db_session, match_id, home_captain, 3, 1, now=KICKOFF + timedelta(minutes=50)
    )
    completed = await match_service.complete_match(
        db_session, match_id, confirmed_match["away_captain_id"], now=KICKOFF + timedelta(minutes=95)
    )
    assert completed["status"] == "completed"
    assert completed["winner_team_id"] == confirmed_match["home_team_id"]
    assert completed["is_draw"] is False

    with pytest.raises(ValueError):
        await match_service.update_score(db_session, match_id, home_captain, 4, 1, now=KICKOFF)


@pytest.mark.asyncio
async def test_completed_level_score_is_draw(db_session, confirmed_match):
    match_id = confirmed_match["match_id"]
    home_captain = confirmed_match["home_captain_id"]
    await match_service.update_score(db_session, match_id, home_captain, 2, 2, now=KICKOFF)
    completed = await match_service.complete_match(db_session, match_id, home_captain, now=KICKOFF)
    assert completed["is_draw"] is True
    assert completed["winner_team_id"] is None


@pytest.mark.asyncio
async def test_available_matches_filter_by_variant(db_session, make_team, open_match):
    futsal_team_id, futsal_captain_id = await make_team(name="Indoor", variant="futsal")
    await match_service.create_match(
        db_session, futsal_captain_id, futsal_team_id, KICKOFF, "Hall", now=BEFORE_KICKOFF
    )

    all_open = await match_service.get_available_matches(db_session, now=BEFORE_KICKOFF)
    assert len(all_open) == 2
    futsal_only = await match_service.get_available_matches(
        db_session, variants=["futsal"], now=BEFORE_KICKOFF
    )
    assert [m["variant"] for m in futsal_only] == ["futsal"]
    assert futsal_only[0]["home_team"]["name"] == "Indoor"

    with pytest.raises(ValueError):
        await match_service.get_available_matches(db_session, variants=["rugby"], now=BEFORE_KICKOFF)


@pytest.mark.asyncio
async def test_opposing_leaders_shared_only_when_confirmed(db_session, confirmed_match, add_players, make_user):
    match_id = confirmed_match["match_id"]
    [co_captain_id] = await add_players(confirmed_match["away_team_id"], 1, role=TeamRole.CO_CAPTAIN)

    leaders = await match_service.get_opposing_team_leaders(
        db_session, match_id, confirmed_match["home_captain_id"]
    )
    assert [leader["user_id"] for leader in leaders["home_leaders"]] == [confirmed_match["home_captain_id"]]
    assert {leader["user_id"] for leader in leaders["away_leaders"]} == {
        confirmed_match["away_captain_id"],
        co_captain_id,
    }

    outsider = await make_user()
    assert await match_service.get_opposing_team_leaders(db_session, match_id, outsider) == {
        "home_leaders": [],
        "away_leaders": [],
    }


@pytest.mark.asyncio
async def test_match_details_and_team_matches(db_session, confirmed_match):
    details = await match_service.get_match_details(db_session, confirmed_match["match_id"])
    assert details["home_team"]["name"] == "Home FC"
    assert details["away_team"]["name"] == "Away United"
    assert [r["status"] for r in details["requests"]] == ["accepted"]

    away_matches = await match_service.get_team_matches(db_session, confirmed_match["away_team_id"])
    assert [m["id"] for m in away_matches] == [confirmed_match["match_id"]]
    assert await match_service.get_team_matches(
        db_session, confirmed_match["away_team_id"], status="completed"
    ) == []

    mine = await match_service.get_user_matches(db_session, confirmed_match["home_captain_id"])
    assert [m["id"] for m in mine] == [confirmed_match["match_id"]]
