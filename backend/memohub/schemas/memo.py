"""
MemoHub Backend — Memo Schemas
===============================

What:  Request/response contracts for personal and team memos.

Blank-title / blank-content checks live in memo_service (400 via
ValidationError); the schemas only bound lengths and types (422).
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from memohub.schemas.common import PaginationMeta
from memohub.schemas.tag import TagResponse


class MemoCreate(BaseModel):
    title: str = Field(max_length=255)
    content: str
    is_public: bool = False
    tag_ids: List[uuid.UUID] = Field(default_factory=list)


class MemoUpdate(MemoCreate):
    """Full replacement: title, content, visibility and the complete tag set."""


class MemoAuthor(BaseModel):
    id: uuid.UUID
    name: str
    email: str
    avatar: Optional[str] = None

    model_config = {"from_attributes": True}


class MemoResponse(BaseModel):
    id: uuid.UUID
    title: str
    content: str
    is_public: bool
    user_id: uuid.UUID
    team_id: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: datetime
    tags: List[TagResponse] = Field(default_factory=list)
    author: Optional[MemoAuthor] = None

    model_config = {"from_attributes": True}


class MemoListResponse(BaseModel):
    memos: List[MemoResponse]
    pagination: PaginationMeta
