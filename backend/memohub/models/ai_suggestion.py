"""
MemoHub Backend — AISuggestion SQLAlchemy Model
================================================

One stored result of an AI analysis run on a memo. The memo itself is never
rewritten by the analysis; the client decides whether to apply the
suggestion and reports it back (`applied`).
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from memohub.database import Base
from memohub.enums import AnalysisType
from memohub.models.common import str_enum, utc_now


class AISuggestion(Base):
    __tablename__ = "ai_suggestions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    memo_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("memos.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type: Mapped[AnalysisType] = mapped_column(str_enum(AnalysisType), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    applied: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    def __repr__(self) -> str:
        return f"<AISuggestion(id={self.id}, memo_id={self.memo_id}, type={self.type.value})>"
