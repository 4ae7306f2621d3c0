"""
MemoHub Backend — Search Log Service
=====================================

What:  Records searches, reports popular queries, and serves autocomplete
       suggestions (memo titles, tag names, the caller's own past queries).
How:   Plain SQL aggregates over `search_logs`; matching is case-insensitive
       substring (ILIKE on PostgreSQL, LIKE on SQLite).
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from memohub.exceptions import ValidationError
from memohub.models.common import as_utc, utc_now
from memohub.models.memo import Memo
from memohub.models.search_log import SearchLog
from memohub.models.tag import Tag
from memohub.schemas.search import PopularSearch, SearchSuggestions
from memohub.services.base import db_errors

logger = logging.getLogger(__name__)

POPULAR_WINDOW_DAYS = 30
SUGGESTION_LIMIT = 5


class SearchService:

    @db_errors("record the search")
    async def log_search(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        query: str,
        search_type: str,
        result_count: int = 0,
    ) -> None:
        query = (query or "").strip()
        if not query:
            raise ValidationError(message="Search query is required", field="query")
        search_type = (search_type or "").strip().lower()
        if not search_type:
            raise ValidationError(message="Search type is required", field="search_type")

        db.add(
            SearchLog(
                user_id=user_id,
                query=query,
                search_type=search_type,
                result_count=max(result_count, 0),
            )
        )
        await db.flush()
        logger.debug("Search logged for %s: type=%s results=%d", user_id, search_type, result_count)

    @db_errors("load popular searches")
    async def popular_searches(
        self, db: AsyncSession, limit: int = 10, now: Optional[datetime] = None
    ) -> List[PopularSearch]:
        """Most frequent queries across all users in the last 30 days."""
        since = (now or utc_now()) - timedelta(days=POPULAR_WINDOW_DAYS)
        search_count = func.count(SearchLog.id).label("search_count")
        result = await db.execute(
            select(
                SearchLog.query,
                search_count,
                func.avg(SearchLog.result_count),
                func.max(SearchLog.created_at),
            )
            .where(SearchLog.created_at >= since)
            .group_by(SearchLog.query)
            .order_by(search_count.desc(), func.max(SearchLog.created_at).desc())
            .limit(limit)
        )
        return [
            PopularSearch(
                query=query,
                search_count=count,
                avg_results=round(float(avg or 0), 2),
                last_searched=as_utc(last),
            )
            for query, count, avg, last in result.all()
        ]

    @db_errors("load search suggestions")
    async def suggestions(self, db: AsyncSession, user_id: uuid.UUID, q: str) -> SearchSuggestions:
        q = (q or "").strip()
        if not q:
            return SearchSuggestions()

        titles = await db.execute(
            select(Memo.title)
            .where(Memo.user_id == user_id, Memo.title.icontains(q, autoescape=True))
            .order_by(Memo.updated_at.desc())
            .limit(SUGGESTION_LIMIT)
        )
        tags = await db.execute(
            select(Tag.name)
            .where(Tag.user_id == user_id, Tag.name.icontains(q, autoescape=True))
            .order_by(Tag.name.asc())
            .limit(SUGGESTION_LIMIT)
        )
        recent = await db.execute(
            select(SearchLog.query)
            .where(SearchLog.user_id == user_id, SearchLog.query.icontains(q, autoescape=True))
            .group_by(SearchLog.query)
            .order_by(func.max(SearchLog.created_at).desc())
            .limit(SUGGESTION_LIMIT)
        )
        return SearchSuggestions(
            titles=list(dict.fromkeys(titles.scalars().all())),
            tags=list(tags.scalars().all()),
            recent_searches=list(recent.scalars().all()),
        )


search_service = SearchService()
