"""
Tests for commendations and profile comments.
"""

import pytest

from matchday.services import social_service, availability_service, user_service
from matchday.services.errors import ConflictError, NotFoundError, PermissionDeniedError


@pytest.fixture
def teammates(confirmed_match):
    """Home and away captains, who share the confirmed match once both answered."""
    return confirmed_match["home_captain_id"], confirmed_match["away_captain_id"]


async def _both_answer(session, confirmed_match):
    for user_key, team_key in (("home_captain_id", "home_team_id"), ("away_captain_id", "away_team_id")):
        await availability_service.update_availability(
            session, confirmed_match["match_id"], confirmed_match[user_key], confirmed_match[team_key], "available"
        )


@pytest.mark.asyncio
async def test_commendation_requires_shared_match(db_session, confirmed_match, teammates):
    giver, recipient = teammates
    with pytest.raises(ValueError, match="played with"):
        await social_service.give_commendation(db_session, giver, recipient, "friendly")

    await _both_answer(db_session, confirmed_match)
    assert await social_service.has_played_with(db_session, giver, recipient)

    stats = await social_service.give_commendation(db_session, giver, recipient, "friendly")
    assert stats["friendly"] == 1
    assert stats["total"] == 1

    with pytest.raises(ConflictError):
        await social_service.give_commendation(db_session, giver, recipient, "friendly")

    stats = await social_service.give_commendation(db_session, giver, recipient, "teamwork")
    assert stats["total"] == 2
    assert await social_service.get_given_commendations(db_session, giver, recipient) == [
        "friendly",
        "teamwork",
    ]


@pytest.mark.asyncio
async def test_cannot_commend_self(db_session, teammates):
    giver, _ = teammates
    with pytest.raises(ValueError, match="yourself"):
        await social_service.give_commendation(db_session, giver, giver, "skilled")


@pytest.mark.asyncio
async def test_remove_commendation(db_session, confirmed_match, teammates):
    giver, recipient = teammates
    await _both_answer(db_session, confirmed_match)
    await social_service.give_commendation(db_session, giver, recipient, "leadership")

    stats = await social_service.remove_commendation(db_session, giver, recipient, "leadership")
    assert stats["total"] == 0
    with pytest.raises(NotFoundError):
        await social_service.remove_commendation(db_session, giver, recipient, "leadership")


@pytest.mark.asyncio
async def test_profile_shows_commendations(db_session, confirmed_match, teammates):
    giver, recipient = teammates
    await _both_answer(db_session, confirmed_match)
    await social_service.give_commendation(db_session, giver, recipient, "skilled")

    profile = await user_service.get_user_profile(db_session, recipient, viewer_id=giver)
    assert "email" not in profile
    assert "phone_number" not in profile
    assert profile["commendations"]["skilled"] == 1
    assert profile["given_commendations"] == ["skilled"]


@pytest.mark.asyncio
async def test_profile_comments(db_session, make_user):
    owner = await make_user(name="Owner")
    author = await make_user(name="Author")
    stranger = await make_user()

    with pytest.raises(ValueError, match="own profile"):
        await social_service.add_profile_comment(db_session, owner, owner, "Looking sharp")
    with pytest.raises(ValueError, match="empty"):
        await social_service.add_profile_comment(db_session, author, owner, "   ")
    with pytest.raises(ValueError, match="1000"):
        await social_service.add_profile_comment(db_session, author, owner, "x" * 1001)

    first = await social_service.add_profile_comment(db_session, author, owner, "Great keeper")
    second = await social_service.add_profile_comment(db_session, author, owner, "Solid again")
    assert first["author"]["name"] == "Author"

    page = await social_service.get_profile_comments(db_session, owner, limit=1)
    assert page["total_count"] == 2
    assert page["has_more"] is True
    assert [c["id"] for c in page["comments"]] == [second["id"]]

    with pytest.raises(PermissionDeniedError):
        await social_service.delete_profile_comment(db_session, first["id"], stranger)
    await social_service.delete_profile_comment(db_session, first["id"], owner)
    await social_service.delete_profile_comment(db_session, second["id"], author)

    assert (await social_service.get_profile_comments(db_session, owner))["total_count"] == 0
