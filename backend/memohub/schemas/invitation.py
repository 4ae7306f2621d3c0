"""
MemoHub Backend — Team Invitation Schemas
==========================================

Two views of an invitation:
    InvitationResponse  inviter side; includes the token so the inviter
                        can pass the link on (no mail delivery here)
    InvitationDetail    invitee side (inbox and token lookup); carries
                        team and inviter names for display
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from memohub.enums import InvitationStatus, TeamRole


class InvitationCreate(BaseModel):
    email: str = Field(max_length=255)
    role: TeamRole = TeamRole.MEMBER


class InvitationResponse(BaseModel):
    id: uuid.UUID
    team_id: uuid.UUID
    email: str
    role: TeamRole
    status: InvitationStatus
    invited_by: uuid.UUID
    token: str
    expires_at: datetime
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class InvitationDetail(BaseModel):
    id: uuid.UUID
    team_id: uuid.UUID
    team_name: str
    team_description: Optional[str] = None
    email: str
    role: TeamRole
    status: InvitationStatus
    inviter_name: str
    inviter_email: str
    expires_at: datetime
    created_at: datetime
    token: Optional[str] = Field(
        default=None, description="Present in the invitee's inbox so the client can accept/decline"
    )


class InvitationAcceptResponse(BaseModel):
    team_id: uuid.UUID
    member_id: uuid.UUID
    role: TeamRole
    invitation: InvitationResponse
