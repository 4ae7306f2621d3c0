"""
MemoHub Backend — AI Routes
============================

What:  Memo analysis, stored suggestions and semantic search.
How:   The AIService is a dependency (`get_ai_service`) so tests can swap
       the Gemini-backed LLM for a stub.

Failure Mode:
    No GEMINI_API_KEY, open circuit, exhausted retries or unreadable model
    output → 503 with Retry-After when known.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from memohub.database import get_db_session
from memohub.schemas.ai import (
    AISuggestionResponse,
    AnalyzeRequest,
    SemanticSearchRequest,
    SemanticSearchResponse,
)
from memohub.schemas.common import ErrorResponse
from memohub.security import CurrentUser, get_current_user
from memohub.services.ai_service import AIService, get_ai_service

router = APIRouter(prefix="/api/ai", tags=["AI"])

_AI_ERRORS = {
    503: {"description": "AI service unavailable or not configured", "model": ErrorResponse},
}


@router.post(
    "/analyze",
    response_model=AISuggestionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        **_AI_ERRORS,
        400: {"description": "Unknown analysis type", "model": ErrorResponse},
        404: {"description": "Memo not found", "model": ErrorResponse},
    },
    summary="Analyse a memo (grammar, style, structure or summary)",
)
async def analyze_memo(
    body: AnalyzeRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    ai: AIService = Depends(get_ai_service),
) -> AISuggestionResponse:
    return await ai.analyze_memo(db, user.id, body.memo_id, body.type)


@router.get(
    "/memos/{memo_id}/suggestions",
    response_model=List[AISuggestionResponse],
    responses={404: {"description": "Memo not found", "model": ErrorResponse}},
    summary="Stored AI suggestions for a memo, newest first",
)
async def list_suggestions(
    memo_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    ai: AIService = Depends(get_ai_service),
) -> List[AISuggestionResponse]:
    return await ai.list_suggestions(db, user.id, memo_id)


@router.post(
    "/suggestions/{suggestion_id}/apply",
    response_model=AISuggestionResponse,
    responses={404: {"description": "Suggestion not found", "model": ErrorResponse}},
    summary="Mark a suggestion as applied",
)
async def apply_suggestion(
    suggestion_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    ai: AIService = Depends(get_ai_service),
) -> AISuggestionResponse:
    return await ai.apply_suggestion(db, user.id, suggestion_id)


@router.post(
    "/semantic-search",
    response_model=SemanticSearchResponse,
    responses={**_AI_ERRORS, 400: {"description": "Blank query", "model": ErrorResponse}},
    summary="Rank the caller's memos by meaning",
)
async def semantic_search(
    body: SemanticSearchRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    ai: AIService = Depends(get_ai_service),
) -> SemanticSearchResponse:
    return await ai.semantic_search(db, user.id, body.query, limit=body.limit)
