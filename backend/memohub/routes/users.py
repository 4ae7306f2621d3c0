"""
MemoHub Backend — Profile Routes
=================================
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from memohub.database import get_db_session
from memohub.schemas.common import ErrorResponse
from memohub.schemas.user import ProfileUpdateRequest, UserResponse
from memohub.security import CurrentUser, get_current_user
from memohub.services.user_service import user_service

router = APIRouter(prefix="/api/users", tags=["Users"])


@router.get("/me", response_model=UserResponse, summary="Current user's profile")
async def get_me(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> UserResponse:
    return await user_service.get_profile(db, user.id)


@router.patch(
    "/me",
    response_model=UserResponse,
    responses={400: {"description": "Blank name", "model": ErrorResponse}},
    summary="Update name and avatar URL",
)
async def update_me(
    body: ProfileUpdateRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> UserResponse:
    return await user_service.update_profile(db, user.id, name=body.name, avatar=body.avatar)
