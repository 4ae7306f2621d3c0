"""
MemoHub Backend — Closed Value Sets
====================================

Roles, invitation states and AI analysis types. Kept free of any import
from the rest of the package so the permission evaluator, the ORM models
and the Pydantic schemas can all share them.
"""

import enum


class TeamRole(str, enum.Enum):
    """Role of a user inside one team."""

    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


class InvitationStatus(str, enum.Enum):
    """
    Invitation lifecycle. PENDING is the only non-terminal state:

        pending ─┬─▶ accepted
                 ├─▶ declined
                 ├─▶ expired
                 └─▶ cancelled
    """

    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class AnalysisType(str, enum.Enum):
    GRAMMAR = "grammar"
    STYLE = "style"
    STRUCTURE = "structure"
    SUMMARY = "summary"


class SortOrder(str, enum.Enum):
    ASC = "asc"
    DESC = "desc"


class MemoSortField(str, enum.Enum):
    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"
    TITLE = "title"
