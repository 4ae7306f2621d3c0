"""
MemoHub Backend — Authentication Routes
========================================

POST /api/auth/register  create an account (201)
POST /api/auth/login     exchange email + password for a bearer token
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from memohub.database import get_db_session
from memohub.schemas.common import ErrorResponse
from memohub.schemas.user import LoginRequest, RegisterRequest, TokenResponse, UserResponse
from memohub.services.user_service import user_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post(
    "/register",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Invalid name, email or password", "model": ErrorResponse},
        409: {"description": "Email already registered", "model": ErrorResponse},
    },
    summary="Register a new account",
)
async def register(
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db_session),
) -> UserResponse:
    return await user_service.register(db, name=body.name, email=body.email, password=body.password)


@router.post(
    "/login",
    response_model=TokenResponse,
    responses={401: {"description": "Wrong email or password", "model": ErrorResponse}},
    summary="Log in and receive a session token",
)
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_db_session),
) -> TokenResponse:
    """The same 401 is returned for an unknown email and a wrong password."""
    return await user_service.authenticate(db, email=body.email, password=body.password)
