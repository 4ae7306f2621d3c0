"""
MemoHub Backend — Tag Schemas
==============================
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from memohub.models.tag import DEFAULT_TAG_COLOR

# #RRGGBB only; the UI colour picker never produces shorthand or alpha
HEX_COLOR_PATTERN = r"^#[0-9a-fA-F]{6}$"


class TagCreate(BaseModel):
    name: str = Field(max_length=50)
    color: str = Field(default=DEFAULT_TAG_COLOR, pattern=HEX_COLOR_PATTERN)


class TagUpdate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=50)
    color: Optional[str] = Field(default=None, pattern=HEX_COLOR_PATTERN)


class TagResponse(BaseModel):
    id: uuid.UUID
    name: str
    color: str

    model_config = {"from_attributes": True}


class TagWithCountResponse(TagResponse):
    created_at: datetime
    memo_count: int = 0
