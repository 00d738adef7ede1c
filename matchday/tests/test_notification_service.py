"""
Unit tests for notification service.
Tests notification creation, retrieval, marking as read, and team fan-out.
"""

import pytest
from sqlalchemy import select, func

from matchday.database.models import Notification, NotificationType, TeamRole, User
from matchday.services import notification_service


@pytest.mark.asyncio
async def test_create_notification(db_session, make_user):
    """Test creating a single notification."""
    user_id = await make_user()
    notification = await notification_service.create_notification(
        session=db_session,
        user_id=user_id,
        type=NotificationType.MATCH_REQUEST_RECEIVED.value,
        title="New match request",
        message="Rovers want to play",
        data={"match_id": 1},
        link_url="/matches/1",
    )

    assert notification["user_id"] == user_id
    assert notification["type"] == "match_request_received"
    assert notification["data"] == {"match_id": 1}
    assert notification["link_url"] == "/matches/1"
    assert notification["is_read"] is False
    assert notification["id"] > 0


@pytest.mark.asyncio
async def test_create_notification_validation(db_session, make_user):
    """Test notification creation validation."""
    user_id = await make_user()
    with pytest.raises(ValueError, match="user_id is required"):
        await notification_service.create_notification(
            session=db_session, user_id=None, type="x", title="t", message="m"
        )
    with pytest.raises(ValueError, match="title is required"):
        await notification_service.create_notification(
            session=db_session, user_id=user_id, type="x", title="", message="m"
        )


@pytest.mark.asyncio
async def test_read_flow(db_session, make_user):
    """Unread count, single mark-as-read and mark-all."""
    user_id = await make_user()
    other_id = await make_user()
    created = await notification_service.create_notifications_bulk(
        db_session,
        [
            {"user_id": user_id, "type": "match_cancelled", "title": f"T{i}", "message": "m"}
            for i in range(3)
        ],
    )
    assert await notification_service.get_unread_count(db_session, user_id) == 3

    read = await notification_service.mark_as_read(db_session, created[0]["id"], user_id)
    assert read["is_read"] is True
    assert read["read_at"] is not None
    assert await notification_service.get_unread_count(db_session, user_id) == 2

    with pytest.raises(ValueError, match="not found"):
        await notification_service.mark_as_read(db_session, created[1]["id"], other_id)

    assert await notification_service.mark_all_as_read(db_session, user_id) == 2
    assert await notification_service.get_unread_count(db_session, user_id) == 0


@pytest.mark.asyncio
async def test_get_user_notifications_pagination(db_session, make_user):
    user_id = await make_user()
    for i in range(5):
        await notification_service.create_notification(
            db_session, user_id, "match_cancelled", f"Title {i}", "message"
        )

    page = await notification_service.get_user_notifications(db_session, user_id, limit=2, offset=0)
    assert page["total_count"] == 5
    assert page["has_more"] is True
    assert [n["title"] for n in page["notifications"]] == ["Title 4", "Title 3"]

    last = await notification_service.get_user_notifications(db_session, user_id, limit=2, offset=4)
    assert last["has_more"] is False
    assert len(last["notifications"]) == 1


@pytest.mark.asyncio
async def test_notify_team_leaders_only_by_default(db_session, make_team, add_players):
    team_id, captain_id = await make_team()
    [co_captain_id] = await add_players(team_id, 1, role=TeamRole.CO_CAPTAIN)
    [player_id] = await add_players(team_id, 1)

    await notification_service.notify_team(
        db_session, team_id, type="match_request_received", title="Request", message="m"
    )
    assert await notification_service.get_unread_count(db_session, captain_id) == 1
    assert await notification_service.get_unread_count(db_session, co_captain_id) == 1
    assert await notification_service.get_unread_count(db_session, player_id) == 0

    await notification_service.notify_team(
        db_session,
        team_id,
        type="match_score_updated",
        title="Score",
        message="1-0",
        leaders_only=False,
        exclude_user_id=captain_id,
    )
    assert await notification_service.get_unread_count(db_session, captain_id) == 1
    assert await notification_service.get_unread_count(db_session, player_id) == 1


@pytest.mark.asyncio
async def test_failed_notification_keeps_session_usable(db_session, make_user, monkeypatch):
    """A notification write that fails in the database is rolled back on its own."""
    user_id = await make_user()

    async def failing_create_notification(session, **kwargs):
        # user_id is NOT NULL, so the flush fails inside the database
        session.add(Notification(user_id=None, type=kwargs["type"], title=kwargs["title"], message=kwargs["message"]))
        await session.flush()

    monkeypatch.setattr(notification_service, "create_notification", failing_create_notification, raising=True)

    await notification_service.notify_user(
        db_session,
        user_id,
        type=NotificationType.PROFILE_COMMENT.value,
        title="New profile comment",
        message="Someone commented on your profile",
    )
    await db_session.commit()

    users = await db_session.execute(select(func.count()).select_from(User).where(User.id == user_id))
    assert users.scalar_one() == 1
    notifications = await db_session.execute(select(func.count()).select_from(Notification))
    assert notifications.scalar_one() == 0
