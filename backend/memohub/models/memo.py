"""
MemoHub Backend — Memo SQLAlchemy Model
========================================

What:  ORM model for `memos` plus the `memo_tags` association table.

Ownership:
    user_id is the creator. A memo with team_id set is a *team memo*: any
    team member may read it, and edit/delete rights extend to team admins
    and owners (see services/permissions.py). Personal memos (team_id NULL)
    are visible to their creator only.

Relationships:
    `tags` and `author` use selectin loading, so every SELECT of memos
    fetches both in one extra round trip each. Async sessions cannot lazy
    load on attribute access, so services re-SELECT a memo with
    populate_existing before reading these attributes.

Query Patterns:
    - Personal list:  WHERE user_id = :uid ORDER BY updated_at DESC
      → idx_memos_user_updated
    - Team list:      WHERE team_id = :tid ORDER BY updated_at DESC
      → idx_memos_team_updated
"""

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    Table,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from memohub.database import Base
from memohub.models.common import utc_now
from memohub.models.tag import Tag
from memohub.models.user import User

memo_tags = Table(
    "memo_tags",
    Base.metadata,
    Column("memo_id", Uuid, ForeignKey("memos.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", Uuid, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


class Memo(Base):
    __tablename__ = "memos"
    __table_args__ = (
        Index("idx_memos_user_updated", "user_id", "updated_at"),
        Index("idx_memos_team_updated", "team_id", "updated_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    team_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("teams.id", ondelete="SET NULL"), nullable=True
    )
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    tags: Mapped[List[Tag]] = relationship(
        Tag, secondary=memo_tags, lazy="selectin", order_by=Tag.name
    )
    author: Mapped[User] = relationship(User, lazy="selectin")

    def __repr__(self) -> str:
        return f"<Memo(id={self.id}, title='{self.title[:30]}', team_id={self.team_id})>"
