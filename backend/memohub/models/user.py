"""
MemoHub Backend — User SQLAlchemy Model
========================================

What:  ORM model for the `users` table.
Why:   Every memo, tag, membership and invitation points back at a user.

Table Design Rationale:
    - email: unique, stored stripped and lower-cased (see user_service)
    - password_hash: bcrypt output, never the raw password
    - avatar: free-form URL; optional
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from memohub.database import Base
from memohub.models.common import utc_now


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    avatar: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}')>"
