"""
MemoHub Backend — Invitation Routes (Invitee Side)
===================================================

Credentials per route:
    GET  /api/invitations                  session (inbox by session email)
    GET  /api/invitations/{token}          token only
    POST /api/invitations/{token}/accept   token + session
    POST /api/invitations/{token}/decline  token only

The token-only routes do not depend on get_current_user:
an invitee without an account can still look at or turn down the offer.
"""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from memohub.database import get_db_session
from memohub.schemas.common import ErrorResponse
from memohub.schemas.invitation import (
    InvitationAcceptResponse,
    InvitationDetail,
    InvitationResponse,
)
from memohub.security import CurrentUser, get_current_user
from memohub.services.invitation_service import invitation_service

router = APIRouter(prefix="/api/invitations", tags=["Invitations"])


_TOKEN_ERRORS = {
    404: {"description": "Unknown token", "model": ErrorResponse},
    409: {"description": "Invitation already processed", "model": ErrorResponse},
}


@router.get(
    "",
    response_model=List[InvitationDetail],
    summary="Invitations addressed to the caller, any status",
)
async def my_invitations(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> List[InvitationDetail]:
    return await invitation_service.list_user_invitations(db, user.email)


@router.get(
    "/{token}",
    response_model=InvitationDetail,
    responses={**_TOKEN_ERRORS, 410: {"description": "Invitation expired", "model": ErrorResponse}},
    summary="Invitation details by token",
)
async def invitation_details(
    token: str,
    db: AsyncSession = Depends(get_db_session),
) -> InvitationDetail:
    return await invitation_service.get_invitation_details(db, token)


@router.post(
    "/{token}/accept",
    response_model=InvitationAcceptResponse,
    responses={
        **_TOKEN_ERRORS,
        401: {"description": "Not logged in", "model": ErrorResponse},
        410: {"description": "Invitation expired", "model": ErrorResponse},
    },
    summary="Accept an invitation and join the team",
)
async def accept_invitation(
    token: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> InvitationAcceptResponse:
    return await invitation_service.accept_invitation(db, token, user.id)


@router.post(
    "/{token}/decline",
    response_model=InvitationResponse,
    responses=_TOKEN_ERRORS,
    summary="Decline an invitation",
)
async def decline_invitation(
    token: str,
    db: AsyncSession = Depends(get_db_session),
) -> InvitationResponse:
    return await invitation_service.decline_invitation(db, token)
