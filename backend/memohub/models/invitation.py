"""
MemoHub Backend — TeamInvitation SQLAlchemy Model
==================================================

What:  ORM model for `team_invitations`, an outstanding offer to join a team.

Table Design Rationale:
    - email: the invitee may not be registered yet, so this is not a user FK.
      Stored stripped + lower-cased.
    - token: 64 hex chars (256 random bits); the only key the invitee uses.
    - status: pending → exactly one terminal state, never reused.
    - expires_at: created_at + INVITATION_EXPIRY_DAYS (default 7).

Indexes:
    uq_team_invitations_pending: partial UNIQUE (team_id, email)
    WHERE status = 'pending'. At most one open invitation per address and
    team, even when two inviters race. Resolved invitations are excluded,
    so re-inviting after a decline/expiry works.

    idx_team_invitations_status_expires: serves the cleanup sweep
    (WHERE status = 'pending' AND expires_at < now).
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from memohub.database import Base
from memohub.enums import InvitationStatus, TeamRole
from memohub.models.common import str_enum, utc_now
from memohub.models.team import Team
from memohub.models.user import User


class TeamInvitation(Base):
    __tablename__ = "team_invitations"
    __table_args__ = (
        Index(
            "uq_team_invitations_pending",
            "team_id",
            "email",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
        Index("idx_team_invitations_status_expires", "status", "expires_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    team_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    role: Mapped[TeamRole] = mapped_column(str_enum(TeamRole), nullable=False, default=TeamRole.MEMBER)
    invited_by: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    token: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    status: Mapped[InvitationStatus] = mapped_column(
        str_enum(InvitationStatus), nullable=False, default=InvitationStatus.PENDING
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    team: Mapped[Team] = relationship(Team, lazy="selectin")
    inviter: Mapped[User] = relationship(User, lazy="selectin")

    def __repr__(self) -> str:
        return (
            f"<TeamInvitation(id={self.id}, team_id={self.team_id}, "
            f"email='{self.email}', status={self.status.value})>"
        )
