"""
MemoHub Backend — Team, Membership and Team Statistics Schemas
===============================================================
"""

import uuid
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from memohub.enums import TeamRole
from memohub.services.permissions import TeamPermissions


class TeamCreate(BaseModel):
    name: str = Field(max_length=100)
    description: Optional[str] = Field(default=None, max_length=2000)


class TeamUpdate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = Field(default=None, max_length=2000)


class TeamMemberResponse(BaseModel):
    id: uuid.UUID = Field(description="Membership id (used in member routes)")
    user_id: uuid.UUID
    name: str
    email: str
    avatar: Optional[str] = None
    role: TeamRole
    joined_at: datetime


class TeamSummary(BaseModel):
    """One entry of GET /api/teams."""
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    member_count: int
    memo_count: int
    current_user_role: TeamRole


class TeamDetail(TeamSummary):
    members: List[TeamMemberResponse]
    permissions: TeamPermissions


class MemberAddRequest(BaseModel):
    email: str = Field(max_length=255)
    role: TeamRole = TeamRole.MEMBER


class MemberRoleUpdate(BaseModel):
    role: TeamRole


# ══════════════════════════════════════════════════════════════════════════
# Team memo statistics
# ══════════════════════════════════════════════════════════════════════════


class AuthorStat(BaseModel):
    user_id: uuid.UUID
    name: str
    memo_count: int


class TagStat(BaseModel):
    tag_id: uuid.UUID
    name: str
    color: str
    memo_count: int


class DailyStat(BaseModel):
    date: date
    count: int


class LongestMemo(BaseModel):
    id: uuid.UUID
    title: str
    length: int


class TeamMemoStats(BaseModel):
    """
    Aggregates over the team's memos.

    total_memos counts all time; everything else is limited to the
    requested window, except recent_memos and top_authors which always
    look at the last 7 days.
    """
    period_start: datetime
    period_end: datetime
    total_memos: int
    period_memos: int
    recent_memos: int
    avg_length: float
    author_stats: List[AuthorStat]
    tag_stats: List[TagStat]
    daily_stats: List[DailyStat]
    top_authors: List[AuthorStat]
    longest_memo: Optional[LongestMemo] = None
