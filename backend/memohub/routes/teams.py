"""
MemoHub Backend — Team Routes
==============================

What:  Teams, their members, outgoing invitations, team memos and team
       statistics.
Who:   Team list, team settings, member management and team workspace pages.

Route Map:
    GET/POST            /api/teams
    GET/PUT/DELETE      /api/teams/{team_id}
    GET/POST            /api/teams/{team_id}/members
    PATCH/DELETE        /api/teams/{team_id}/members/{member_id}
    GET/POST            /api/teams/{team_id}/invitations
    DELETE              /api/teams/{team_id}/invitations/{invitation_id}
    GET                 /api/teams/{team_id}/memos/stats
    GET/POST            /api/teams/{team_id}/memos
    GET/PUT/DELETE      /api/teams/{team_id}/memos/{memo_id}

Every handler passes the caller's id to the service, which loads the
membership and asks the permission evaluator.
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
from memohub.schemas.invitation import InvitationCreate, InvitationResponse
from memohub.schemas.memo import MemoCreate, MemoListResponse, MemoResponse, MemoUpdate
from memohub.schemas.team import (
    MemberAddRequest,
    MemberRoleUpdate,
    TeamCreate,
    TeamDetail,
    TeamMemberResponse,
    TeamMemoStats,
    TeamSummary,
    TeamUpdate,
)
from memohub.security import CurrentUser, get_current_user
from memohub.services.invitation_service import invitation_service
from memohub.services.memo_service import memo_service
from memohub.services.stats_service import DEFAULT_PERIOD_DAYS, MAX_PERIOD_DAYS, stats_service
from memohub.services.team_service import team_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/teams", tags=["Teams"])

_TEAM_ERRORS = {
    403: {"description": "Caller lacks the required team permission", "model": ErrorResponse},
    404: {"description": "Team not found", "model": ErrorResponse},
}


# ══════════════════════════════════════════════════════════════════════════
# Teams
# ══════════════════════════════════════════════════════════════════════════

@router.get("", response_model=List[TeamSummary], summary="Teams the caller belongs to")
async def list_teams(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> List[TeamSummary]:
    return await team_service.list_teams(db, user.id)


@router.post(
    "",
    response_model=TeamDetail,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"description": "Team name already taken", "model": ErrorResponse}},
    summary="Create a team (caller becomes owner)",
)
async def create_team(
    body: TeamCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> TeamDetail:
    return await team_service.create_team(db, user.id, name=body.name, description=body.description)


@router.get("/{team_id}", response_model=TeamDetail, responses=_TEAM_ERRORS, summary="Team detail")
async def get_team(
    team_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> TeamDetail:
    return await team_service.get_team(db, team_id, user.id)


@router.put(
    "/{team_id}",
    response_model=TeamDetail,
    responses={**_TEAM_ERRORS, 409: {"description": "Team name already taken", "model": ErrorResponse}},
    summary="Rename or describe a team",
)
async def update_team(
    team_id: UUID,
    body: TeamUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> TeamDetail:
    return await team_service.update_team(
        db, team_id, user.id, name=body.name, description=body.description
    )


@router.delete(
    "/{team_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=_TEAM_ERRORS,
    summary="Delete a team (owners only)",
)
async def delete_team(
    team_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    """Members and invitations are removed; team memos stay with their creators."""
    await team_service.delete_team(db, team_id, user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ══════════════════════════════════════════════════════════════════════════
# Members
# ══════════════════════════════════════════════════════════════════════════

@router.get(
    "/{team_id}/members",
    response_model=List[TeamMemberResponse],
    responses=_TEAM_ERRORS,
    summary="Team members ordered by join time",
)
async def list_members(
    team_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> List[TeamMemberResponse]:
    return await team_service.list_members(db, team_id, user.id)


@router.post(
    "/{team_id}/members",
    response_model=TeamMemberResponse,
    status_code=status.HTTP_201_CREATED,
    responses={**_TEAM_ERRORS, 409: {"description": "Already a member", "model": ErrorResponse}},
    summary="Add a registered user directly",
)
async def add_member(
    team_id: UUID,
    body: MemberAddRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> TeamMemberResponse:
    return await team_service.add_member(db, team_id, user.id, email=body.email, role=body.role)


@router.patch(
    "/{team_id}/members/{member_id}",
    response_model=TeamMemberResponse,
    responses={**_TEAM_ERRORS, 409: {"description": "Would leave the team without an owner", "model": ErrorResponse}},
    summary="Change a member's role (owners only)",
)
async def change_member_role(
    team_id: UUID,
    member_id: UUID,
    body: MemberRoleUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> TeamMemberResponse:
    return await team_service.change_member_role(db, team_id, user.id, member_id, body.role)


@router.delete(
    "/{team_id}/members/{member_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        **_TEAM_ERRORS,
        400: {"description": "Tried to remove yourself", "model": ErrorResponse},
        409: {"description": "Would leave the team without an owner", "model": ErrorResponse},
    },
    summary="Remove a member",
)
async def remove_member(
    team_id: UUID,
    member_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await team_service.remove_member(db, team_id, user.id, member_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ══════════════════════════════════════════════════════════════════════════
# Invitations (inviter side)
# ══════════════════════════════════════════════════════════════════════════

@router.post(
    "/{team_id}/invitations",
    response_model=InvitationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        **_TEAM_ERRORS,
        409: {"description": "Pending invitation exists, or already a member", "model": ErrorResponse},
    },
    summary="Invite an email address to the team",
)
async def create_invitation(
    team_id: UUID,
    body: InvitationCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> InvitationResponse:
    """
    The response carries the invitation token; no email is sent, so the
    inviter shares the accept link themselves.
    """
    return await invitation_service.create_invitation(
        db, team_id, user.id, email=body.email, role=body.role
    )


@router.get(
    "/{team_id}/invitations",
    response_model=List[InvitationResponse],
    responses=_TEAM_ERRORS,
    summary="All invitations of the team, oldest first",
)
async def list_team_invitations(
    team_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> List[InvitationResponse]:
    return await invitation_service.list_team_invitations(db, team_id, user.id)


@router.delete(
    "/{team_id}/invitations/{invitation_id}",
    response_model=InvitationResponse,
    responses={
        403: {"description": "Only the inviter can cancel", "model": ErrorResponse},
        404: {"description": "Invitation not found", "model": ErrorResponse},
        409: {"description": "Invitation already processed", "model": ErrorResponse},
    },
    summary="Cancel a pending invitation",
)
async def cancel_invitation(
    team_id: UUID,
    invitation_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> InvitationResponse:
    return await invitation_service.cancel_invitation(db, invitation_id, user.id, team_id=team_id)


# ══════════════════════════════════════════════════════════════════════════
# Team memos
# ══════════════════════════════════════════════════════════════════════════

# Declared before /{team_id}/memos/{memo_id} so "stats" is not parsed as a memo id
@router.get(
    "/{team_id}/memos/stats",
    response_model=TeamMemoStats,
    responses={**_TEAM_ERRORS, 400: {"description": "Bad date window", "model": ErrorResponse}},
    summary="Team memo activity statistics",
)
async def team_memo_stats(
    team_id: UUID,
    period: int = Query(default=DEFAULT_PERIOD_DAYS, ge=1, le=MAX_PERIOD_DAYS, description="Days back from now"),
    start_date: date | None = Query(default=None, description="With end_date, overrides period"),
    end_date: date | None = Query(default=None),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> TeamMemoStats:
    return await stats_service.team_memo_stats(
        db, team_id, user.id, period=period, start_date=start_date, end_date=end_date
    )


@router.get(
    "/{team_id}/memos",
    response_model=MemoListResponse,
    responses=_TEAM_ERRORS,
    summary="List team memos",
)
async def list_team_memos(
    team_id: UUID,
    response: Response,
    search: str | None = Query(default=None, max_length=200),
    tag_id: List[UUID] = Query(default=[]),
    author_id: UUID | None = Query(default=None),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    sort_by: MemoSortField = Query(default=MemoSortField.UPDATED_AT),
    sort_order: SortOrder = Query(default=SortOrder.DESC),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MemoListResponse:
    result = await memo_service.list_team_memos(
        db,
        team_id,
        user.id,
        search=search,
        tag_ids=tag_id,
        author_id=author_id,
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
    "/{team_id}/memos",
    response_model=MemoResponse,
    status_code=status.HTTP_201_CREATED,
    responses={**_TEAM_ERRORS, 400: {"description": "Blank title/content or foreign tag", "model": ErrorResponse}},
    summary="Create a team memo",
)
async def create_team_memo(
    team_id: UUID,
    body: MemoCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MemoResponse:
    return await memo_service.create_team_memo(
        db, team_id, user.id, title=body.title, content=body.content,
        is_public=body.is_public, tag_ids=body.tag_ids,
    )


@router.get(
    "/{team_id}/memos/{memo_id}",
    response_model=MemoResponse,
    responses=_TEAM_ERRORS,
    summary="Get a team memo",
)
async def get_team_memo(
    team_id: UUID,
    memo_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MemoResponse:
    return await memo_service.get_team_memo(db, team_id, user.id, memo_id)


@router.put(
    "/{team_id}/memos/{memo_id}",
    response_model=MemoResponse,
    responses=_TEAM_ERRORS,
    summary="Update a team memo (creator, admin or owner)",
)
async def update_team_memo(
    team_id: UUID,
    memo_id: UUID,
    body: MemoUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MemoResponse:
    return await memo_service.update_team_memo(
        db, team_id, user.id, memo_id, title=body.title, content=body.content,
        is_public=body.is_public, tag_ids=body.tag_ids,
    )


@router.delete(
    "/{team_id}/memos/{memo_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=_TEAM_ERRORS,
    summary="Delete a team memo (creator, admin or owner)",
)
async def delete_team_memo(
    team_id: UUID,
    memo_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await memo_service.delete_team_memo(db, team_id, user.id, memo_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
