"""
User service: read access to the accounts owned by the identity provider.
"""

from typing import Dict, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from matchday.database.models import User, PlayerPosition
from matchday.services import social_service
from matchday.utils.datetime_utils import isoformat
import logging

logger = logging.getLogger(__name__)


def _user_to_dict(user: User) -> Dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "email_verified_at": isoformat(user.email_verified_at),
        "is_verified": user.email_verified_at is not None,
        "phone_number": user.phone_number,
        "avatar_path": user.avatar_path,
        "bio": user.bio,
        "position": PlayerPosition(user.position).value if user.position else None,
        "created_at": isoformat(user.created_at),
    }


async def get_user_by_id(session: AsyncSession, user_id: int) -> Optional[Dict]:
    """
    Get user by ID.

    Args:
        session: Database session
        user_id: User ID

    Returns:
        User dictionary or None if not found
    """
    result = await session.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    return _user_to_dict(user) if user else None


async def get_user_profile(
    session: AsyncSession, user_id: int, viewer_id: Optional[int] = None
) -> Optional[Dict]:
    """
    Public profile: user fields without contact details, plus commendation stats.

    When a viewer is given, the categories they already gave are included.
    """
    user = await get_user_by_id(session, user_id)
    if user is None:
        return None
    profile = {k: v for k, v in user.items() if k not in ("email", "phone_number")}
    profile["commendations"] = await social_service.get_commendation_stats(session, user_id)
    if viewer_id is not None and viewer_id != user_id:
        profile["given_commendations"] = await social_service.get_given_commendations(
            session, viewer_id, user_id
        )
    return profile
