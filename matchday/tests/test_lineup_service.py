"""
Tests for lineups and in-match events.
"""

from datetime import timedelta

import pytest

from matchday.services import lineup_service, match_service
from matchday.services.errors import PermissionDeniedError

from matchday.tests.clock import KICKOFF


@pytest.mark.asyncio
async def test_set_lineup_replaces_previous_lineup(db_session, confirmed_match, add_players):
    """Lineup A followed by a disjoint lineup B leaves exactly B."""
    match_id = confirmed_match["match_id"]
    team_id = confirmed_match["home_team_id"]
    captain_id = confirmed_match["home_captain_id"]
    players = await add_players(team_id, 5)

    lineup_a = [{"user_id": pid, "position": "defender"} for pid in players[:3]]
    stored = await lineup_service.set_lineup(db_session, match_id, team_id, captain_id, lineup_a)
    assert sorted(entry["user_id"] for entry in stored) == sorted(players[:3])

    lineup_b = [
        {"user_id": players[3], "position": "goalkeeper"},
        {"user_id": players[4], "is_starter": False, "is_substitute": True},
    ]
    stored = await lineup_service.set_lineup(db_session, match_id, team_id, captain_id, lineup_b)

    assert [entry["user_id"] for entry in stored] == [players[3], players[4]]
    assert stored[0]["position"] == "goalkeeper"
    assert stored[1]["is_substitute"] is True
    assert await lineup_service.get_lineup(db_session, match_id, team_id) == stored


@pytest.mark.asyncio
async def test_set_lineup_rejections(db_session, confirmed_match, add_players, make_user):
    match_id = confirmed_match["match_id"]
    team_id = confirmed_match["home_team_id"]
    captain_id = confirmed_match["home_captain_id"]
    [player_id] = await add_players(team_id, 1)
    outsider = await make_user()

    with pytest.raises(ValueError, match="not active members"):
        await lineup_service.set_lineup(db_session, match_id, team_id, captain_id, [{"user_id": outsider}])
    with pytest.raises(ValueError, match="only appear once"):
        await lineup_service.set_lineup(
            db_session, match_id, team_id, captain_id, [{"user_id": player_id}, {"user_id": player_id}]
        )
    with pytest.raises(PermissionDeniedError):
        await lineup_service.set_lineup(db_session, match_id, team_id, player_id, [{"user_id": player_id}])


@pytest.mark.asyncio
async def test_lineup_needs_confirmed_match(db_session, open_match):
    with pytest.raises(ValueError, match="Can only set lineup for confirmed matches"):
        await lineup_service.set_lineup(
            db_session,
            open_match["match_id"],
            open_match["home_team_id"],
            open_match["home_captain_id"],
            [{"user_id": open_match["home_captain_id"]}],
        )


@pytest.mark.asyncio
async def test_events_only_while_in_progress(db_session, confirmed_match):
    match_id = confirmed_match["match_id"]
    team_id = confirmed_match["home_team_id"]
    captain_id = confirmed_match["home_captain_id"]

    with pytest.raises(ValueError, match="Can only record events for in-progress matches"):
        await lineup_service.record_event(
            db_session, match_id, team_id, captain_id, {"event_type": "goal", "minute": 3}
        )

    await match_service.start_match(db_session, match_id, captain_id, now=KICKOFF)
    event = await lineup_service.record_event(
        db_session, match_id, team_id, captain_id,
        {"event_type": "goal", "user_id": captain_id, "minute": 3, "description": "Header"},
    )
    assert event["event_type"] == "goal"
    assert event["minute"] == 3


@pytest.mark.asyncio
async def test_event_validation(db_session, confirmed_match, make_team):
    match_id = confirmed_match["match_id"]
    team_id = confirmed_match["home_team_id"]
    captain_id = confirmed_match["home_captain_id"]
    await match_service.start_match(db_session, match_id, captain_id, now=KICKOFF)

    with pytest.raises(ValueError, match="Minute"):
        await lineup_service.record_event(
            db_session, match_id, team_id, captain_id, {"event_type": "goal", "minute": 121}
        )
    with pytest.raises(ValueError):
        await lineup_service.record_event(
            db_session, match_id, team_id, captain_id, {"event_type": "own_goal"}
        )
    with pytest.raises(ValueError, match="Description"):
        await lineup_service.record_event(
            db_session, match_id, team_id, captain_id, {"event_type": "goal", "description": "x" * 501}
        )

    other_team_id, other_captain_id = await make_team(name="Not Playing")
    with pytest.raises(ValueError, match="not part of this match"):
        await lineup_service.record_event(
            db_session, match_id, other_team_id, other_captain_id, {"event_type": "goal"}
        )


@pytest.mark.asyncio
async def test_events_ordering_statistics_and_deletion(db_session, confirmed_match):
    match_id = confirmed_match["match_id"]
    home_id, away_id = confirmed_match["home_team_id"], confirmed_match["away_team_id"]
    home_captain, away_captain = confirmed_match["home_captain_id"], confirmed_match["away_captain_id"]
    await match_service.start_match(db_session, match_id, home_captain, now=KICKOFF)

    late = await lineup_service.record_event(
        db_session, match_id, home_id, home_captain, {"event_type": "goal", "minute": 80}
    )
    no_minute = await lineup_service.record_event(
        db_session, match_id, away_id, away_captain, {"event_type": "yellow_card"}
    )
    early = await lineup_service.record_event(
        db_session, match_id, away_id, away_captain, {"event_type": "goal", "minute": 12}
    )

    events = await lineup_service.list_events(db_session, match_id)
    assert [e["id"] for e in events] == [early["id"], late["id"], no_minute["id"]]

    stats = await lineup_service.get_match_statistics(db_session, match_id)
    assert [e["id"] for e in stats["home_goals"]] == [late["id"]]
    assert [e["id"] for e in stats["away_goals"]] == [early["id"]]
    assert [e["id"] for e in stats["away_cards"]] == [no_minute["id"]]
    assert stats["home_cards"] == []

    with pytest.raises(PermissionDeniedError):
        await lineup_service.delete_event(db_session, late["id"], away_captain)
    await lineup_service.delete_event(db_session, late["id"], home_captain)

    await match_service.update_score(
        db_session, match_id, home_captain, 0, 1, now=KICKOFF + timedelta(minutes=85)
    )
    assert len(await lineup_service.list_events(db_session, match_id)) == 2
