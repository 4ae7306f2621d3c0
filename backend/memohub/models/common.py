"""
Column helpers shared by every model.

SQLite (used by the test-suite) hands timestamps back without tzinfo even
when the column is declared timezone-aware, so anything that compares a
stored timestamp with "now" goes through `as_utc` first.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Enum


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes; convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def str_enum(enum_cls, length: int = 20) -> Enum:
    """
    VARCHAR-backed enum column storing member *values* ("owner", "pending"),
    not member names. No native PostgreSQL ENUM type, so adding a state is
    a code change rather than an ALTER TYPE migration.
    """
    return Enum(
        enum_cls,
        native_enum=False,
        length=length,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )
