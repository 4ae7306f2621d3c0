"""
MemoHub Backend — AI Service (Memo Analysis + Semantic Search)
===============================================================

What:  Builds prompts, calls the LLM, and turns its answers into stored
       suggestions or ranked search results.
Who:   AI routes. The LLM is injected (GeminiService in production, a stub
       in tests).

Analysis types:
    grammar    corrected text plus a list of fixes
    style      clarity/tone rewrite suggestions
    structure  proposed outline and reordering
    summary    key points and a short summary

Semantic search output:
    The model is asked for one JSON object {"<memo id>": score}. The first
    {...} block in the answer is parsed; scores on a 0-100 scale are
    rescaled to 0-1. Anything unparseable is a DependencyFailure (503).
"""

import json
import logging
import re
import uuid
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from memohub.config import settings
from memohub.enums import AnalysisType
from memohub.exceptions import LLMServiceError, NotFoundError, ValidationError
from memohub.models.ai_suggestion import AISuggestion
from memohub.models.memo import Memo
from memohub.schemas.ai import (
    AISuggestionResponse,
    SemanticSearchResponse,
    SemanticSearchResult,
)
from memohub.schemas.memo import MemoResponse
from memohub.services.base import db_errors
from memohub.services.llm_base import LLMService
from memohub.services.memo_service import memo_service

logger = logging.getLogger(__name__)

_JSON_OBJECT = re.compile(r"\{[\s\S]*?\}")

ANALYSIS_PROMPTS: Dict[AnalysisType, str] = {
    AnalysisType.GRAMMAR: (
        "Review the grammar and spelling of the note below.\n"
        "Respond with:\n"
        "1. Corrected text: the full note with every error fixed, wording otherwise unchanged\n"
        "2. Fixes: a bullet list of each change as `original → corrected (reason)`\n"
        "If there is nothing to fix, say so in one line."
    ),
    AnalysisType.STYLE: (
        "Analyse the writing style of the note below.\n"
        "Respond with:\n"
        "1. Assessment: two or three sentences on clarity, tone and concision\n"
        "2. Suggestions: a bullet list of concrete rewrites as `before → after`"
    ),
    AnalysisType.STRUCTURE: (
        "Analyse the structure of the note below.\n"
        "Respond with:\n"
        "1. Current outline: the note's sections in order\n"
        "2. Proposed outline: a more logical order with headings\n"
        "3. Rationale: one bullet per change"
    ),
    AnalysisType.SUMMARY: (
        "Summarise the note below.\n"
        "Respond with:\n"
        "1. Key points: three to five bullets\n"
        "2. Summary: at most three sentences"
    ),
}


def parse_analysis_type(value: str) -> AnalysisType:
    try:
        return AnalysisType((value or "").strip().lower())
    except ValueError:
        allowed = ", ".join(t.value for t in AnalysisType)
        raise ValidationError(
            message=f"Unsupported analysis type '{value}'. Use one of: {allowed}",
            field="type",
        )


def build_analysis_prompt(analysis_type: AnalysisType, title: str, content: str) -> str:
    return f"{ANALYSIS_PROMPTS[analysis_type]}\n\nTitle: {title}\n\nNote:\n{content}"


def build_semantic_prompt(query: str, memos: List[Memo], excerpt_chars: int) -> str:
    lines = [
        f'Rate how relevant each note below is to the search query "{query}".',
        'Return ONLY a JSON object mapping note ID to a score between 0 and 1, '
        'for example {"<id>": 0.8}. Omit notes that are not relevant at all.',
        "",
        "Notes:",
    ]
    for memo in memos:
        content = memo.content or ""
        excerpt = content[:excerpt_chars] + ("..." if len(content) > excerpt_chars else "")
        lines.append(f"ID: {memo.id}\nTitle: {memo.title}\nContent: {excerpt}\n---")
    return "\n".join(lines)


def parse_scores(text: str) -> Dict[str, float]:
    """
    Extract {id: score} from model output.

    Raises LLMServiceError when no JSON object can be decoded. Entries with
    non-numeric scores are dropped; scores are clamped to [0, 1].
    """
    match = _JSON_OBJECT.search(text or "")
    if match is None:
        raise LLMServiceError(message="The AI service returned an unreadable ranking")
    try:
        raw = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        logger.warning("Semantic search output is not valid JSON: %s", e)
        raise LLMServiceError(message="The AI service returned an unreadable ranking")
    if not isinstance(raw, dict):
        raise LLMServiceError(message="The AI service returned an unreadable ranking")

    scores: Dict[str, float] = {}
    for key, value in raw.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            continue
        score = float(value)
        if score > 1:
            score = score / 100
        scores[str(key).strip()] = min(max(score, 0.0), 1.0)
    return scores


class AIService:
    """AI features on top of an injected LLMService."""

    def __init__(self, llm: LLMService):
        self.llm = llm

    def _ensure_enabled(self) -> None:
        if not settings.ai_enabled:
            raise LLMServiceError(message="AI features are not configured on this server")

    @db_errors("analyze the memo")
    async def analyze_memo(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        memo_id: uuid.UUID,
        analysis_type: str,
    ) -> AISuggestionResponse:
        kind = parse_analysis_type(analysis_type)
        self._ensure_enabled()
        memo = await memo_service.get_visible_memo(db, user_id, memo_id)

        text = await self.llm.generate_text(build_analysis_prompt(kind, memo.title, memo.content))
        if not text:
            raise LLMServiceError(message="The AI service returned an empty analysis")

        suggestion = AISuggestion(memo_id=memo.id, type=kind, content=text)
        db.add(suggestion)
        await db.flush()
        logger.info("AI %s analysis stored for memo %s (%d chars)", kind.value, memo.id, len(text))
        return AISuggestionResponse.model_validate(suggestion)

    @db_errors("list AI suggestions")
    async def list_suggestions(
        self, db: AsyncSession, user_id: uuid.UUID, memo_id: uuid.UUID
    ) -> List[AISuggestionResponse]:
        await memo_service.get_visible_memo(db, user_id, memo_id)
        result = await db.execute(
            select(AISuggestion)
            .where(AISuggestion.memo_id == memo_id)
            .order_by(AISuggestion.created_at.desc())
        )
        return [AISuggestionResponse.model_validate(s) for s in result.scalars().all()]

    @db_errors("apply the AI suggestion")
    async def apply_suggestion(
        self, db: AsyncSession, user_id: uuid.UUID, suggestion_id: uuid.UUID
    ) -> AISuggestionResponse:
        suggestion = await db.get(AISuggestion, suggestion_id)
        if suggestion is None:
            raise NotFoundError(resource="suggestion", resource_id=str(suggestion_id))
        try:
            await memo_service.get_visible_memo(db, user_id, suggestion.memo_id)
        except NotFoundError:
            raise NotFoundError(resource="suggestion", resource_id=str(suggestion_id))

        suggestion.applied = True
        await db.flush()
        return AISuggestionResponse.model_validate(suggestion)

    @db_errors("run the semantic search")
    async def semantic_search(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        query: str,
        limit: int = 10,
        excerpt_chars: Optional[int] = None,
    ) -> SemanticSearchResponse:
        """Rank every memo the caller created against `query` with the LLM."""
        query = (query or "").strip()
        if not query:
            raise ValidationError(message="Search query is required", field="query")
        self._ensure_enabled()

        result = await db.execute(
            select(Memo)
            .where(Memo.user_id == user_id)
            .order_by(Memo.updated_at.desc())
            .execution_options(populate_existing=True)
        )
        memos = list(result.scalars().all())
        if not memos:
            return SemanticSearchResponse(results=[], query=query, total_found=0)

        prompt = build_semantic_prompt(
            query, memos, excerpt_chars or settings.semantic_search_excerpt_chars
        )
        scores = parse_scores(await self.llm.generate_text(prompt))

        by_id = {str(m.id): m for m in memos}
        ranked = sorted(
            ((by_id[key], score) for key, score in scores.items() if key in by_id),
            key=lambda pair: pair[1],
            reverse=True,
        )[:limit]

        results = [
            SemanticSearchResult(memo=MemoResponse.model_validate(memo), score=score)
            for memo, score in ranked
        ]
        logger.info("Semantic search by %s: %d/%d memos ranked", user_id, len(results), len(memos))
        return SemanticSearchResponse(results=results, query=query, total_found=len(results))


def get_ai_service() -> AIService:
    """FastAPI dependency; tests override it with a stubbed LLM."""
    from memohub.services.gemini_service import gemini_service

    return AIService(gemini_service)
