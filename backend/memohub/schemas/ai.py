"""
MemoHub Backend — AI Analysis and Semantic Search Schemas
==========================================================
"""

import uuid
from datetime import datetime
from typing import List

from pydantic import BaseModel, Field

from memohub.enums import AnalysisType
from memohub.schemas.memo import MemoResponse


class AnalyzeRequest(BaseModel):
    memo_id: uuid.UUID
    # Plain str: an unknown type is a 400 business error, not a 422
    type: str = Field(max_length=32, description="grammar | style | structure | summary")


class AISuggestionResponse(BaseModel):
    id: uuid.UUID
    memo_id: uuid.UUID
    type: AnalysisType
    content: str
    applied: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class SemanticSearchRequest(BaseModel):
    query: str = Field(max_length=500)
    limit: int = Field(default=10, ge=1, le=50)


class SemanticSearchResult(BaseModel):
    memo: MemoResponse
    score: float = Field(ge=0.0, le=1.0)


class SemanticSearchResponse(BaseModel):
    results: List[SemanticSearchResult]
    query: str
    total_found: int
