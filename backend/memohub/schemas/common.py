"""
MemoHub Backend — Shared Response Schemas
==========================================

What:  Error envelope, health payload and pagination metadata used across
       every router.
"""

from typing import Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Standardized error response format for all API errors.

    Example:
        {
            "error": "duplicate_invitation",
            "message": "A pending invitation for 'c@example.com' already exists for this team",
            "details": {"email": "c@example.com"},
            "request_id": "1f2e3d4c"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class PaginationMeta(BaseModel):
    """Offset pagination state: `pages` is ceil(total / limit), 0 for an empty result."""
    page: int = Field(ge=1)
    limit: int = Field(ge=1)
    total: int = Field(ge=0)
    pages: int = Field(ge=0)

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "PaginationMeta":
        return cls(page=page, limit=limit, total=total, pages=(total + limit - 1) // limit)


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    gemini: str = Field(
        description="Gemini API status: available, unavailable, circuit_open, not_configured"
    )
    uptime_seconds: float = Field(description="Seconds since service started")
