"""
MemoHub Backend — User, Auth and Profile Schemas
=================================================
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class RegisterRequest(BaseModel):
    name: str = Field(max_length=100)
    email: str = Field(max_length=255)
    password: str = Field(max_length=128)


class LoginRequest(BaseModel):
    email: str = Field(max_length=255)
    password: str = Field(max_length=128)


class ProfileUpdateRequest(BaseModel):
    name: str = Field(max_length=100)
    avatar: Optional[str] = Field(default=None, max_length=2048)


class UserResponse(BaseModel):
    id: uuid.UUID
    name: str
    email: str
    avatar: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class TokenResponse(BaseModel):
    """
    What:  Login result.
    How:   Clients send `Authorization: Bearer <access_token>` on every
           session-scoped request.
    """
    access_token: str
    token_type: str = "bearer"
    expires_in: int = Field(description="Token lifetime in seconds")
    user: UserResponse
