"""
Notification service for managing user notifications.

Handles creation, retrieval, and status updates for in-app notifications.
This is the delivery transport for every event the match and team services
emit; push delivery is out of scope.
"""

from typing import List, Dict, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func, and_
from matchday.database.models import (
    Notification,
    TeamMember,
    MemberStatus,
    LEADER_ROLES,
)
from matchday.utils.datetime_utils import utcnow, isoformat
import json
import logging

logger = logging.getLogger(__name__)


def _notification_to_dict(notification: Notification) -> Dict:
    return {
        "id": notification.id,
        "user_id": notification.user_id,
        "type": notification.type,
        "title": notification.title,
        "message": notification.message,
        "data": json.loads(notification.data) if notification.data else None,
        "is_read": notification.is_read,
        "read_at": isoformat(notification.read_at),
        "link_url": notification.link_url,
        "created_at": isoformat(notification.created_at),
    }


def _build_notification(
    user_id: int,
    type: str,
    title: str,
    message: str,
    data: Optional[Dict] = None,
    link_url: Optional[str] = None,
) -> Notification:
    if not user_id:
        raise ValueError("user_id is required")
    if not type:
        raise ValueError("type is required")
    if not title:
        raise ValueError("title is required")
    if not message:
        raise ValueError("message is required")

    return Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        data=json.dumps(data) if data is not None else None,
        link_url=link_url,
        is_read=False,
    )


async def create_notification(
    session: AsyncSession,
    user_id: int,
    type: str,
    title: str,
    message: str,
    data: Optional[Dict] = None,
    link_url: Optional[str] = None
) -> Dict:
    """
    Create a single notification for a user.

    Args:
        session: Database session
        user_id: ID of the user to notify
        type: Notification type (NotificationType enum value)
        title: Notification title
        message: Notification message text
        data: Optional JSON metadata (dict will be serialized to JSON string)
        link_url: Optional URL for navigation when notification is clicked

    Returns:
        Dict containing the created notification data

    Raises:
        ValueError: If required fields are missing or invalid
    """
    notification = _build_notification(user_id, type, title, message, data, link_url)

    session.add(notification)
    await session.flush()
    await session.refresh(notification)

    return _notification_to_dict(notification)


async def create_notifications_bulk(
    session: AsyncSession,
    notifications_list: List[Dict]
) -> List[Dict]:
    """
    Create multiple notifications efficiently using bulk insert.

    Args:
        session: Database session
        notifications_list: List of notification dicts, each containing:
            - user_id (int, required)
            - type (str, required)
            - title (str, required)
            - message (str, required)
            - data (dict, optional) - will be serialized to JSON
            - link_url (str, optional)

    Returns:
        List of created notification dicts

    Raises:
        ValueError: If any notification data is invalid
    """
    if not notifications_list:
        return []

    notification_objects = [
        _build_notification(
            notif_data.get("user_id"),
            notif_data.get("type"),
            notif_data.get("title"),
            notif_data.get("message"),
            notif_data.get("data"),
            notif_data.get("link_url"),
        )
        for notif_data in notifications_list
    ]

    session.add_all(notification_objects)
    await session.flush()
    for notif in notification_objects:
        await session.refresh(notif)

    return [_notification_to_dict(notif) for notif in notification_objects]


async def get_user_notifications(
    session: AsyncSession,
    user_id: int,
    limit: int = 50,
    offset: int = 0,
    unread_only: bool = False
) -> Dict:
    """
    Fetch user notifications with pagination.

    Args:
        session: Database session
        user_id: ID of the user
        limit: Maximum number of notifications to return (default: 50)
        offset: Number of notifications to skip (default: 0)
        unread_only: If True, only return unread notifications (default: False)

    Returns:
        Dict containing:
            - notifications: List of notification dicts (newest first)
            - total_count: Total number of notifications matching the criteria
            - has_more: Boolean indicating if there are more notifications
    """
    query = select(Notification).where(Notification.user_id == user_id)

    if unread_only:
        query = query.where(Notification.is_read == False)  # noqa: E712

    count_query = select(func.count()).select_from(query.subquery())
    total_result = await session.execute(count_query)
    total_count = total_result.scalar_one() or 0

    query = (
        query.order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
        .offset(offset)
    )
    result = await session.execute(query)
    notification_dicts = [_notification_to_dict(n) for n in result.scalars().all()]

    return {
        "notifications": notification_dicts,
        "total_count": total_count,
        "has_more": (offset + len(notification_dicts)) < total_count,
    }


async def get_unread_count(session: AsyncSession, user_id: int) -> int:
    """Get count of unread notifications for a user."""
    result = await session.execute(
        select(func.count())
        .select_from(Notification)
        .where(
            and_(
                Notification.user_id == user_id,
                Notification.is_read == False  # noqa: E712
            )
        )
    )
    return result.scalar_one() or 0


async def mark_as_read(
    session: AsyncSession,
    notification_id: int,
    user_id: int
) -> Dict:
    """
    Mark a single notification as read.

    Args:
        session: Database session
        notification_id: ID of the notification
        user_id: ID of the user (ensures user owns the notification)

    Returns:
        Updated notification dict

    Raises:
        ValueError: If notification not found or doesn't belong to user
    """
    result = await session.execute(
        select(Notification).where(
            and_(
                Notification.id == notification_id,
                Notification.user_id == user_id
            )
        )
    )
    notification = result.scalar_one_or_none()

    if not notification:
        raise ValueError("Notification not found or access denied")

    if not notification.is_read:
        notification.is_read = True
        notification.read_at = utcnow()
        await session.flush()
        await session.refresh(notification)

    return _notification_to_dict(notification)


async def mark_all_as_read(session: AsyncSession, user_id: int) -> int:
    """
    Mark all user notifications as read.

    Returns:
        Count of notifications marked as read
    """
    result = await session.execute(
        update(Notification)
        .where(
            and_(
                Notification.user_id == user_id,
                Notification.is_read == False  # noqa: E712
            )
        )
        .values(is_read=True, read_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    await session.flush()
    return result.rowcount or 0


#
# Business logic helpers: fan a single event out to a team's members
#

async def _team_user_ids(
    session: AsyncSession, team_id: int, leaders_only: bool
) -> List[int]:
    query = select(TeamMember.user_id).where(
        TeamMember.team_id == team_id,
        TeamMember.status == MemberStatus.ACTIVE,
    )
    if leaders_only:
        query = query.where(TeamMember.role.in_(LEADER_ROLES))
    result = await session.execute(query)
    return list(result.scalars().all())


async def notify_team(
    session: AsyncSession,
    team_id: int,
    type: str,
    title: str,
    message: str,
    data: Optional[Dict] = None,
    link_url: Optional[str] = None,
    leaders_only: bool = True,
    exclude_user_id: Optional[int] = None,
) -> None:
    """
    Notify a team's leaders (or all active members) about an event.

    The rows are written inside a savepoint. A failure rolls back only the
    savepoint, is logged and swallowed, and the triggering operation still
    commits.
    """
    try:
        async with session.begin_nested():
            user_ids = await _team_user_ids(session, team_id, leaders_only)
            await create_notifications_bulk(
                session,
                [
                    {
                        "user_id": uid,
                        "type": type,
                        "title": title,
                        "message": message,
                        "data": data,
                        "link_url": link_url,
                    }
                    for uid in user_ids
                    if uid != exclude_user_id
                ],
            )
    except Exception as e:
        logger.warning(f"Failed to notify team {team_id} ({type}): {e}")


async def notify_user(
    session: AsyncSession,
    user_id: int,
    type: str,
    title: str,
    message: str,
    data: Optional[Dict] = None,
    link_url: Optional[str] = None,
) -> None:
    """Notify one user inside a savepoint, logging instead of raising on failure."""
    try:
        async with session.begin_nested():
            await create_notification(
                session=session,
                user_id=user_id,
                type=type,
                title=title,
                message=message,
                data=data,
                link_url=link_url,
            )
    except Exception as e:
        logger.warning(f"Failed to notify user {user_id} ({type}): {e}")
