"""
MemoHub Backend — Team Memo Statistics
=======================================

What:  Activity summary for one team over a time window.
How:   Two narrow SELECTs (window rows, tag links) and the aggregation in
       Python. Day bucketing happens on UTC dates in Python, which keeps
       the result identical on PostgreSQL and SQLite (no dialect-specific
       date functions).

Windows:
    period      [now - period days, now]         (default 30, 1..365)
    start/end   [start 00:00 UTC, end 23:59:59.999999 UTC]  both or neither
    recent      [now - 7 days, now]               recent_memos, top_authors
"""

import logging
import uuid
from collections import Counter
from datetime import date, datetime, timedelta
from typing import Dict, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from memohub.exceptions import ValidationError
from memohub.models.common import as_utc, utc_now
from memohub.models.memo import Memo, memo_tags
from memohub.models.tag import Tag
from memohub.models.user import User
from memohub.schemas.team import (
    AuthorStat,
    DailyStat,
    LongestMemo,
    TagStat,
    TeamMemoStats,
)
from memohub.services.base import db_errors
from memohub.services.memo_service import day_start
from memohub.services.team_service import team_service

logger = logging.getLogger(__name__)

DEFAULT_PERIOD_DAYS = 30
MAX_PERIOD_DAYS = 365
RECENT_DAYS = 7
TOP_AUTHOR_LIMIT = 5


def resolve_window(
    now: datetime,
    period: int = DEFAULT_PERIOD_DAYS,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> Tuple[datetime, datetime]:
    """(start, end) of the statistics window; raises ValidationError on bad input."""
    if (start_date is None) != (end_date is None):
        raise ValidationError(
            message="start_date and end_date must be given together", field="start_date"
        )
    if start_date is not None:
        if start_date > end_date:
            raise ValidationError(message="start_date must not be after end_date", field="start_date")
        return day_start(start_date), day_start(end_date + timedelta(days=1)) - timedelta(microseconds=1)
    if not 1 <= period <= MAX_PERIOD_DAYS:
        raise ValidationError(
            message=f"period must be between 1 and {MAX_PERIOD_DAYS} days", field="period"
        )
    return now - timedelta(days=period), now


def _author_stats(counts: Counter, names: Dict[uuid.UUID, str], limit: Optional[int] = None):
    ranked = sorted(counts.items(), key=lambda item: (-item[1], names.get(item[0], "")))
    if limit is not None:
        ranked = ranked[:limit]
    return [AuthorStat(user_id=uid, name=names.get(uid, ""), memo_count=n) for uid, n in ranked]


class StatsService:

    @db_errors("compute team statistics")
    async def team_memo_stats(
        self,
        db: AsyncSession,
        team_id: uuid.UUID,
        user_id: uuid.UUID,
        period: int = DEFAULT_PERIOD_DAYS,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        now: Optional[datetime] = None,
    ) -> TeamMemoStats:
        await team_service.require(db, team_id, user_id, "can_view_team")
        now = now or utc_now()
        window_start, window_end = resolve_window(now, period, start_date, end_date)
        recent_start = now - timedelta(days=RECENT_DAYS)

        total = (
            await db.execute(select(func.count(Memo.id)).where(Memo.team_id == team_id))
        ).scalar_one()

        # Window rows plus the 7-day rows in one pass
        fetch_from = min(window_start, recent_start)
        rows = (
            await db.execute(
                select(Memo.id, Memo.title, Memo.content, Memo.user_id, Memo.created_at, User.name)
                .join(User, User.id == Memo.user_id)
                .where(Memo.team_id == team_id, Memo.created_at >= fetch_from)
            )
        ).all()

        names: Dict[uuid.UUID, str] = {}
        window_ids = set()
        authors: Counter = Counter()
        recent_authors: Counter = Counter()
        days: Counter = Counter()
        lengths = []
        longest: Optional[LongestMemo] = None

        for memo_id, title, content, author_id, created_at, author_name in rows:
            created_at = as_utc(created_at)
            names[author_id] = author_name
            if created_at >= recent_start and created_at <= now:
                recent_authors[author_id] += 1
            if not window_start <= created_at <= window_end:
                continue
            window_ids.add(memo_id)
            authors[author_id] += 1
            days[created_at.date()] += 1
            length = len(content or "")
            lengths.append(length)
            if longest is None or length > longest.length:
                longest = LongestMemo(id=memo_id, title=title, length=length)

        tag_counts: Counter = Counter()
        tag_info: Dict[uuid.UUID, Tuple[str, str]] = {}
        if window_ids:
            tag_rows = await db.execute(
                select(Tag.id, Tag.name, Tag.color, memo_tags.c.memo_id)
                .join(memo_tags, memo_tags.c.tag_id == Tag.id)
                .where(memo_tags.c.memo_id.in_(window_ids))
            )
            for tag_id, name, color, _memo_id in tag_rows.all():
                tag_counts[tag_id] += 1
                tag_info[tag_id] = (name, color)

        return TeamMemoStats(
            period_start=window_start,
            period_end=window_end,
            total_memos=total,
            period_memos=len(window_ids),
            recent_memos=sum(recent_authors.values()),
            avg_length=round(sum(lengths) / len(lengths), 2) if lengths else 0.0,
            author_stats=_author_stats(authors, names),
            tag_stats=[
                TagStat(tag_id=tid, name=tag_info[tid][0], color=tag_info[tid][1], memo_count=n)
                for tid, n in sorted(tag_counts.items(), key=lambda item: (-item[1], tag_info[item[0]][0]))
            ],
            daily_stats=[DailyStat(date=day, count=days[day]) for day in sorted(days)],
            top_authors=_author_stats(recent_authors, names, limit=TOP_AUTHOR_LIMIT),
            longest_memo=longest,
        )


stats_service = StatsService()
