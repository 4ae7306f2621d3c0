"""
MemoHub Backend — Tag Routes
=============================
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from memohub.database import get_db_session
from memohub.schemas.common import ErrorResponse
from memohub.schemas.memo import MemoListResponse
from memohub.schemas.tag import TagCreate, TagResponse, TagUpdate, TagWithCountResponse
from memohub.security import CurrentUser, get_current_user
from memohub.services.memo_service import memo_service
from memohub.services.tag_service import tag_service

router = APIRouter(prefix="/api/tags", tags=["Tags"])


@router.get("", response_model=List[TagWithCountResponse], summary="List the caller's tags")
async def list_tags(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> List[TagWithCountResponse]:
    return await tag_service.list_tags(db, user.id)


@router.post(
    "",
    response_model=TagResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"description": "Tag name already used", "model": ErrorResponse}},
    summary="Create a tag",
)
async def create_tag(
    body: TagCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> TagResponse:
    return await tag_service.create_tag(db, user.id, name=body.name, color=body.color)


@router.put(
    "/{tag_id}",
    response_model=TagResponse,
    responses={
        404: {"description": "Tag not found", "model": ErrorResponse},
        409: {"description": "Another tag already has this name", "model": ErrorResponse},
    },
    summary="Rename or recolour a tag",
)
async def update_tag(
    tag_id: UUID,
    body: TagUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> TagResponse:
    return await tag_service.update_tag(db, user.id, tag_id, name=body.name, color=body.color)


@router.delete(
    "/{tag_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"description": "Tag not found", "model": ErrorResponse}},
    summary="Delete a tag and unlink it from memos",
)
async def delete_tag(
    tag_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await tag_service.delete_tag(db, user.id, tag_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/{tag_id}/memos",
    response_model=MemoListResponse,
    responses={404: {"description": "Tag not found", "model": ErrorResponse}},
    summary="Memos carrying this tag",
)
async def list_tag_memos(
    tag_id: UUID,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MemoListResponse:
    await tag_service.ensure_owned(db, user.id, tag_id)
    return await memo_service.list_memos_with_tag(db, user.id, tag_id, page=page, limit=limit)
