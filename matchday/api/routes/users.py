"""User profile, commendation and profile comment route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from matchday.database.db import get_db_session
from matchday.services import user_service, social_service
from matchday.api.auth_dependencies import require_user, require_verified_user
from matchday.api.routes import limiter, service_error
from matchday.models.schemas import CommendationRequest, ProfileCommentRequest

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/users/me")
async def get_me(user: dict = Depends(require_user)):
    """The authenticated user."""
    return user


@router.get("/api/users/{user_id}")
async def get_user_profile(
    user_id: int,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Public profile of a user with commendation stats."""
    try:
        profile = await user_service.get_user_profile(session, user_id, viewer_id=user["id"])
    except Exception as e:
        logger.error(f"Error fetching profile of user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Error fetching profile")
    if profile is None:
        raise HTTPException(status_code=404, detail="User not found")
    return profile


# Commendations


@router.get("/api/users/{user_id}/commendations")
async def get_commendations(
    user_id: int,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Commendation stats for a user and the categories the caller already gave."""
    try:
        return {
            "stats": await social_service.get_commendation_stats(session, user_id),
            "given_commendations": await social_service.get_given_commendations(
                session, user["id"], user_id
            ),
        }
    except Exception as e:
        logger.error(f"Error fetching commendations of user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Error fetching commendations")


@router.post("/api/users/{user_id}/commendations", status_code=201)
@limiter.limit("30/minute")
async def give_commendation(
    request: Request,
    user_id: int,
    payload: CommendationRequest,
    user: dict = Depends(require_verified_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Commend a player the caller has played with."""
    try:
        stats = await social_service.give_commendation(
            session, user["id"], user_id, payload.category.value
        )
        return {"status": "ok", "stats": stats}
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error commending user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Error giving commendation")


@router.delete("/api/users/{user_id}/commendations/{category}")
async def remove_commendation(
    user_id: int,
    category: str,
    user: dict = Depends(require_verified_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Take back a commendation."""
    try:
        stats = await social_service.remove_commendation(session, user["id"], user_id, category)
        return {"status": "ok", "stats": stats}
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error removing commendation for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Error removing commendation")


# Profile comments


@router.get("/api/users/{user_id}/comments")
async def get_profile_comments(
    user_id: int,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Comments on a user's profile, newest first."""
    try:
        offset = (page - 1) * page_size
        return await social_service.get_profile_comments(
            session, user_id, limit=page_size, offset=offset
        )
    except Exception as e:
        logger.error(f"Error fetching comments of user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Error fetching comments")


@router.post("/api/users/{user_id}/comments", status_code=201)
@limiter.limit("20/minute")
async def add_profile_comment(
    request: Request,
    user_id: int,
    payload: ProfileCommentRequest,
    user: dict = Depends(require_verified_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Comment on another user's profile."""
    try:
        return await social_service.add_profile_comment(session, user["id"], user_id, payload.comment)
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error commenting on user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Error posting comment")


@router.delete("/api/comments/{comment_id}")
async def delete_profile_comment(
    comment_id: int,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Delete a comment (its author or the profile owner)."""
    try:
        await social_service.delete_profile_comment(session, comment_id, user["id"])
        return {"status": "ok", "message": "Comment deleted"}
    except ValueError as e:
        raise service_error(e)
    except Exception as e:
        logger.error(f"Error deleting comment {comment_id}: {e}")
        raise HTTPException(status_code=500, detail="Error deleting comment")
