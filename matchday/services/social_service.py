"""
Social service: commendations between players and profile comments.
"""

from typing import Dict, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, delete
from sqlalchemy.exc import IntegrityError
from matchday.database.models import (
    User,
    UserCommendation,
    CommendationCategory,
    ProfileComment,
    MatchAvailability,
    NotificationType,
)
from matchday.services import notification_service
from matchday.services.errors import NotFoundError, PermissionDeniedError, ConflictError
from matchday.utils.datetime_utils import isoformat
import logging

logger = logging.getLogger(__name__)

MAX_COMMENT_LENGTH = 1000


async def _get_user(session: AsyncSession, user_id: int) -> User:
    user = await session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


async def has_played_with(session: AsyncSession, user_id: int, other_user_id: int) -> bool:
    """True if both users have an availability entry for at least one common match."""
    other_matches = select(MatchAvailability.match_id).where(
        MatchAvailability.user_id == other_user_id
    )
    result = await session.execute(
        select(MatchAvailability.id)
        .where(
            MatchAvailability.user_id == user_id,
            MatchAvailability.match_id.in_(other_matches),
        )
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


# ──────────────────────────────────────────────────────────────
# Commendations
# ──────────────────────────────────────────────────────────────


async def get_commendation_stats(session: AsyncSession, user_id: int) -> Dict:
    """Commendations received by a user, per category plus total."""
    result = await session.execute(
        select(UserCommendation.category, func.count())
        .where(UserCommendation.to_user_id == user_id)
        .group_by(UserCommendation.category)
    )
    stats = {category.value: 0 for category in CommendationCategory}
    for category, count in result.all():
        stats[CommendationCategory(category).value] = count
    stats["total"] = sum(stats.values())
    return stats


async def get_given_commendations(
    session: AsyncSession, from_user_id: int, to_user_id: int
) -> List[str]:
    """Categories the first user has already given to the second."""
    result = await session.execute(
        select(UserCommendation.category).where(
            UserCommendation.from_user_id == from_user_id,
            UserCommendation.to_user_id == to_user_id,
        )
    )
    return sorted(CommendationCategory(c).value for c in result.scalars().all())


async def give_commendation(
    session: AsyncSession, from_user_id: int, to_user_id: int, category: str
) -> Dict:
    """
    Commend a teammate or opponent in one category.

    Raises:
        ValueError: On self-commendation or if the users never played together
        ConflictError: If this category was already given to this player
    """
    category = CommendationCategory(category)
    if from_user_id == to_user_id:
        raise ValueError("You cannot commend yourself")
    recipient = await _get_user(session, to_user_id)
    giver = await _get_user(session, from_user_id)
    if not await has_played_with(session, from_user_id, to_user_id):
        raise ValueError("You can only commend players you have played with")

    existing = await session.execute(
        select(UserCommendation.id).where(
            UserCommendation.from_user_id == from_user_id,
            UserCommendation.to_user_id == to_user_id,
            UserCommendation.category == category,
        )
    )
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("You have already given this commendation to this player")

    session.add(
        UserCommendation(from_user_id=from_user_id, to_user_id=to_user_id, category=category)
    )
    try:
        await session.flush()
    except IntegrityError:
        raise ConflictError("You have already given this commendation to this player")

    await notification_service.notify_user(
        session,
        recipient.id,
        type=NotificationType.COMMENDATION_RECEIVED.value,
        title="New commendation",
        message=f"{giver.name} commended you as {category.value}",
        data={"from_user_id": from_user_id, "category": category.value},
        link_url=f"/users/{recipient.id}",
    )
    return await get_commendation_stats(session, to_user_id)


async def remove_commendation(
    session: AsyncSession, from_user_id: int, to_user_id: int, category: str
) -> Dict:
    """Take back a commendation the user gave."""
    category = CommendationCategory(category)
    result = await session.execute(
        delete(UserCommendation).where(
            UserCommendation.from_user_id == from_user_id,
            UserCommendation.to_user_id == to_user_id,
            UserCommendation.category == category,
        )
    )
    if not result.rowcount:
        raise NotFoundError("Commendation not found")
    await session.flush()
    return await get_commendation_stats(session, to_user_id)


# ──────────────────────────────────────────────────────────────
# Profile comments
# ──────────────────────────────────────────────────────────────


def _format_comment(comment: ProfileComment, author: User) -> Dict:
    return {
        "id": comment.id,
        "profile_user_id": comment.profile_user_id,
        "comment": comment.comment,
        "created_at": isoformat(comment.created_at),
        "author": {"id": author.id, "name": author.name, "avatar_path": author.avatar_path},
    }


async def add_profile_comment(
    session: AsyncSession, author_id: int, profile_user_id: int, comment: str
) -> Dict:
    comment = (comment or "").strip()
    if not comment:
        raise ValueError("Comment cannot be empty")
    if len(comment) > MAX_COMMENT_LENGTH:
        raise ValueError(f"Comment cannot exceed {MAX_COMMENT_LENGTH} characters")
    if author_id == profile_user_id:
        raise ValueError("You cannot comment on your own profile")

    profile_owner = await _get_user(session, profile_user_id)
    author = await _get_user(session, author_id)

    profile_comment = ProfileComment(
        user_id=author_id, profile_user_id=profile_user_id, comment=comment
    )
    session.add(profile_comment)
    await session.flush()
    await session.refresh(profile_comment)

    await notification_service.notify_user(
        session,
        profile_owner.id,
        type=NotificationType.PROFILE_COMMENT.value,
        title="New profile comment",
        message=f"{author.name} commented on your profile",
        data={"comment_id": profile_comment.id, "author_id": author_id},
        link_url=f"/users/{profile_owner.id}",
    )
    return _format_comment(profile_comment, author)


async def delete_profile_comment(session: AsyncSession, comment_id: int, user_id: int) -> None:
    """Delete a comment. Allowed for its author and for the profile owner."""
    comment = await session.get(ProfileComment, comment_id)
    if comment is None:
        raise NotFoundError("Comment not found")
    if user_id not in (comment.user_id, comment.profile_user_id):
        raise PermissionDeniedError("You do not have permission to delete this comment")
    await session.delete(comment)
    await session.flush()


async def get_profile_comments(
    session: AsyncSession, profile_user_id: int, limit: int = 20, offset: int = 0
) -> Dict:
    """Comments on a profile, newest first."""
    total_result = await session.execute(
        select(func.count())
        .select_from(ProfileComment)
        .where(ProfileComment.profile_user_id == profile_user_id)
    )
    total_count = total_result.scalar_one() or 0

    result = await session.execute(
        select(ProfileComment, User)
        .join(User, User.id == ProfileComment.user_id)
        .where(ProfileComment.profile_user_id == profile_user_id)
        .order_by(ProfileComment.created_at.desc(), ProfileComment.id.desc())
        .limit(limit)
        .offset(offset)
    )
    comments = [_format_comment(comment, author) for comment, author in result.all()]
    return {
        "comments": comments,
        "total_count": total_count,
        "has_more": (offset + len(comments)) < total_count,
    }
