"""
MemoHub Backend — Personal Memo Routes
=======================================

What:  CRUD for the caller's personal memos (memos without a team).
Who:   Memo list, editor and detail pages.

Listing:
    GET /api/memos?search=&tag_id=&tag_id=&start_date=&end_date=
                  &sort_by=updated_at&sort_order=desc&page=1&limit=20
    Repeated tag_id narrows to memos carrying ALL of the tags. Dates are
    inclusive UTC calendar days on created_at.
"""

import logging
from datetime import date
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from memohub.database import get_db_session
from memohub.enums import MemoSortField, SortOrder
from memohub.schemas.common import ErrorResponse
from memohub.schemas.memo import MemoCreate, MemoListResponse, MemoResponse, MemoUpdate
from memohub.security import CurrentUser, get_current_user
from memohub.services.memo_service import memo_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/memos", tags=["Memos"])


@router.get(
    "",
    response_model=MemoListResponse,
    summary="List the caller's memos",
)
async def list_memos(
    response: Response,
    search: str | None = Query(default=None, max_length=200, description="Title/content contains"),
    tag_id: List[UUID] = Query(default=[], description="Repeatable; memo must carry all"),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    sort_by: MemoSortField = Query(default=MemoSortField.UPDATED_AT),
    sort_order: SortOrder = Query(default=SortOrder.DESC),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MemoListResponse:
    result = await memo_service.list_memos(
        db,
        user.id,
        search=search,
        tag_ids=tag_id,
        start_date=start_date,
        end_date=end_date,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    response.headers["X-Total-Count"] = str(result.pagination.total)
    return result


@router.post(
    "",
    response_model=MemoResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"description": "Blank title/content or foreign tag", "model": ErrorResponse}},
    summary="Create a memo",
)
async def create_memo(
    body: MemoCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MemoResponse:
    return await memo_service.create_memo(
        db, user.id, title=body.title, content=body.content,
        is_public=body.is_public, tag_ids=body.tag_ids,
    )


@router.get(
    "/{memo_id}",
    response_model=MemoResponse,
    responses={404: {"description": "Memo not found", "model": ErrorResponse}},
    summary="Get one of the caller's memos",
)
async def get_memo(
    memo_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MemoResponse:
    return await memo_service.get_memo(db, user.id, memo_id)


@router.put(
    "/{memo_id}",
    response_model=MemoResponse,
    responses={
        400: {"description": "Blank title/content or foreign tag", "model": ErrorResponse},
        404: {"description": "Memo not found", "model": ErrorResponse},
    },
    summary="Replace a memo's fields and tag set",
)
async def update_memo(
    memo_id: UUID,
    body: MemoUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MemoResponse:
    return await memo_service.update_memo(
        db, user.id, memo_id, title=body.title, content=body.content,
        is_public=body.is_public, tag_ids=body.tag_ids,
    )


@router.delete(
    "/{memo_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"description": "Memo not found", "model": ErrorResponse}},
    summary="Delete a memo",
)
async def delete_memo(
    memo_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await memo_service.delete_memo(db, user.id, memo_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
