"""
MemoHub Backend — Invitation Service (Team Invitation Workflow)
================================================================

What:  Create, inspect, accept, decline and cancel team invitations, plus
       the bulk sweep that expires stale ones.
Who:   Team invitation routes (inviter side) and invitation token routes
       (invitee side).

State machine:
    pending ──accept──▶ accepted
            ──decline─▶ declined
            ──cancel──▶ cancelled
            ──sweep───▶ expired
    Every non-pending state is terminal. An expired-but-unswept invitation
    is still `pending` in the table; accept refuses it by comparing
    expires_at with the clock, decline still allows it.

Accept is a check-and-set:
    1. SELECT ... FOR UPDATE on the token row
    2. UPDATE ... SET status='accepted' WHERE id=:id AND status='pending'
    3. rowcount 0 → someone else got there first → AlreadyProcessedError
    4. INSERT team_members (unique on team_id, user_id)
    All inside the request transaction, so a failure in (4) also undoes (2).

Clock:
    Every time-dependent method takes an optional `now` (defaults to the
    current UTC time) so expiry can be exercised without sleeping.
"""

import logging
import secrets
import uuid
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from memohub.config import settings
from memohub.enums import InvitationStatus, TeamRole
from memohub.exceptions import (
    AlreadyMemberError,
    AlreadyProcessedError,
    DuplicateInvitationError,
    InvitationExpiredError,
    NotFoundError,
    PermissionDeniedError,
)
from memohub.models.common import as_utc, utc_now
from memohub.models.invitation import TeamInvitation
from memohub.models.team import Team, TeamMember
from memohub.models.user import User
from memohub.schemas.invitation import (
    InvitationAcceptResponse,
    InvitationDetail,
    InvitationResponse,
)
from memohub.services.base import db_errors
from memohub.services.permissions import can_invite_with_role
from memohub.services.team_service import team_service
from memohub.services.user_service import validate_email

logger = logging.getLogger(__name__)


def generate_invitation_token() -> str:
    """64 hex characters, 256 bits from the OS CSPRNG."""
    return secrets.token_hex(32)


def invitation_expiry(now: datetime) -> datetime:
    return now + timedelta(days=settings.invitation_expiry_days)


def _detail(
    invitation: TeamInvitation, team: Team, inviter: User, include_token: bool = False
) -> InvitationDetail:
    return InvitationDetail(
        id=invitation.id,
        team_id=invitation.team_id,
        team_name=team.name,
        team_description=team.description,
        email=invitation.email,
        role=invitation.role,
        status=invitation.status,
        inviter_name=inviter.name,
        inviter_email=inviter.email,
        expires_at=as_utc(invitation.expires_at),
        created_at=as_utc(invitation.created_at),
        token=invitation.token if include_token else None,
    )


class InvitationService:
    """Invitation workflow. Stateless; the session is passed per call."""

    # ── Lookups ───────────────────────────────────────────────────────────

    async def _lock_by_token(self, db: AsyncSession, token: str) -> TeamInvitation:
        result = await db.execute(
            select(TeamInvitation)
            .where(TeamInvitation.token == token)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        invitation = result.scalar_one_or_none()
        if invitation is None:
            raise NotFoundError(resource="invitation")
        return invitation

    async def _transition(
        self,
        db: AsyncSession,
        invitation: TeamInvitation,
        new_status: InvitationStatus,
        now: datetime,
    ) -> None:
        """Conditional pending → new_status; losing a race raises AlreadyProcessedError."""
        result = await db.execute(
            update(TeamInvitation)
            .where(
                TeamInvitation.id == invitation.id,
                TeamInvitation.status == InvitationStatus.PENDING,
            )
            .values(status=new_status, updated_at=now)
            .execution_options(synchronize_session="evaluate")
        )
        if result.rowcount == 0:
            await db.refresh(invitation)
            raise AlreadyProcessedError(status=invitation.status.value)

    # ── Inviter side ──────────────────────────────────────────────────────

    @db_errors("create the invitation")
    async def create_invitation(
        self,
        db: AsyncSession,
        team_id: uuid.UUID,
        actor_id: uuid.UUID,
        email: str,
        role: TeamRole = TeamRole.MEMBER,
        now: Optional[datetime] = None,
    ) -> InvitationResponse:
        """
        Invite `email` to the team with `role`.

        Raises:
            NotFoundError: team does not exist
            PermissionDeniedError: caller cannot invite, or cannot grant `role`
            ValidationError: malformed email
            AlreadyMemberError: the address already belongs to a member
            DuplicateInvitationError: a pending invitation already exists
        """
        now = now or utc_now()
        access = await team_service.require(db, team_id, actor_id, "can_invite_members")
        if not can_invite_with_role(access.role, role):
            raise PermissionDeniedError(
                message=f"Your role cannot grant the '{role.value}' role",
                action="grant_role",
            )
        email = validate_email(email)

        existing_member = await db.execute(
            select(TeamMember.id)
            .join(User, User.id == TeamMember.user_id)
            .where(TeamMember.team_id == team_id, User.email == email)
        )
        if existing_member.scalar_one_or_none() is not None:
            raise AlreadyMemberError(message=f"'{email}' is already a member of this team")

        # Stale pending rows would otherwise hold the (team, email) slot
        await self.cleanup_expired(db, now=now)

        pending = await db.execute(
            select(TeamInvitation.id).where(
                TeamInvitation.team_id == team_id,
                TeamInvitation.email == email,
                TeamInvitation.status == InvitationStatus.PENDING,
            )
        )
        if pending.scalar_one_or_none() is not None:
            raise DuplicateInvitationError(email=email)

        invitation = TeamInvitation(
            team_id=team_id,
            email=email,
            role=role,
            invited_by=actor_id,
            token=generate_invitation_token(),
            status=InvitationStatus.PENDING,
            expires_at=invitation_expiry(now),
            created_at=now,
            updated_at=now,
        )
        try:
            async with db.begin_nested():
                db.add(invitation)
                await db.flush()
        except IntegrityError:
            # Concurrent invite for the same address won the partial unique index
            raise DuplicateInvitationError(email=email)

        logger.info(
            "Invitation %s created: team=%s role=%s by=%s",
            invitation.id, team_id, role.value, actor_id,
        )
        return InvitationResponse.model_validate(invitation)

    @db_errors("list team invitations")
    async def list_team_invitations(
        self,
        db: AsyncSession,
        team_id: uuid.UUID,
        actor_id: uuid.UUID,
        now: Optional[datetime] = None,
    ) -> List[InvitationResponse]:
        await team_service.require(db, team_id, actor_id, "can_invite_members")
        await self.cleanup_expired(db, now=now)
        result = await db.execute(
            select(TeamInvitation)
            .where(TeamInvitation.team_id == team_id)
            .order_by(TeamInvitation.created_at.asc())
        )
        return [InvitationResponse.model_validate(i) for i in result.scalars().all()]

    @db_errors("cancel the invitation")
    async def cancel_invitation(
        self,
        db: AsyncSession,
        invitation_id: uuid.UUID,
        user_id: uuid.UUID,
        team_id: Optional[uuid.UUID] = None,
        now: Optional[datetime] = None,
    ) -> InvitationResponse:
        """Only the original inviter may cancel, and only while pending."""
        now = now or utc_now()
        result = await db.execute(
            select(TeamInvitation)
            .where(TeamInvitation.id == invitation_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        invitation = result.scalar_one_or_none()
        if invitation is None or (team_id is not None and invitation.team_id != team_id):
            raise NotFoundError(resource="invitation", resource_id=str(invitation_id))
        if invitation.invited_by != user_id:
            raise PermissionDeniedError(
                message="Only the member who sent this invitation can cancel it",
                action="cancel_invitation",
            )
        if invitation.status is not InvitationStatus.PENDING:
            raise AlreadyProcessedError(status=invitation.status.value)

        await self._transition(db, invitation, InvitationStatus.CANCELLED, now)
        logger.info("Invitation %s cancelled by %s", invitation.id, user_id)
        return InvitationResponse.model_validate(invitation)

    # ── Invitee side ──────────────────────────────────────────────────────

    @db_errors("load the invitation")
    async def get_invitation_details(
        self, db: AsyncSession, token: str, now: Optional[datetime] = None
    ) -> InvitationDetail:
        """Token-only read for the invitation landing page."""
        now = now or utc_now()
        result = await db.execute(
            select(TeamInvitation, Team, User)
            .join(Team, Team.id == TeamInvitation.team_id)
            .join(User, User.id == TeamInvitation.invited_by)
            .where(TeamInvitation.token == token)
        )
        row = result.first()
        if row is None:
            raise NotFoundError(resource="invitation")
        invitation, team, inviter = row
        if invitation.status is not InvitationStatus.PENDING:
            raise AlreadyProcessedError(status=invitation.status.value)
        if as_utc(invitation.expires_at) <= now:
            raise InvitationExpiredError(context={"expires_at": as_utc(invitation.expires_at).isoformat()})
        return _detail(invitation, team, inviter)

    @db_errors("list your invitations")
    async def list_user_invitations(
        self, db: AsyncSession, email: str, now: Optional[datetime] = None
    ) -> List[InvitationDetail]:
        """
        Every invitation addressed to `email`, newest first, across teams.

        Stale pending rows are swept first so they read as expired. Only
        pending invitations carry their token.
        """
        await self.cleanup_expired(db, now=now)
        result = await db.execute(
            select(TeamInvitation, Team, User)
            .join(Team, Team.id == TeamInvitation.team_id)
            .join(User, User.id == TeamInvitation.invited_by)
            .where(TeamInvitation.email == email.strip().lower())
            .order_by(TeamInvitation.created_at.desc())
        )
        return [
            _detail(
                invitation, team, inviter,
                include_token=invitation.status is InvitationStatus.PENDING,
            )
            for invitation, team, inviter in result.all()
        ]

    @db_errors("accept the invitation")
    async def accept_invitation(
        self,
        db: AsyncSession,
        token: str,
        user_id: uuid.UUID,
        now: Optional[datetime] = None,
    ) -> InvitationAcceptResponse:
        """
        Join the team named by the invitation, with the invitation's role.

        The session email does not have to match the invited address: the
        token is the credential.

        Raises, in check order:
            NotFoundError, AlreadyProcessedError, InvitationExpiredError,
            AlreadyMemberError
        """
        now = now or utc_now()
        invitation = await self._lock_by_token(db, token)

        if invitation.status is not InvitationStatus.PENDING:
            raise AlreadyProcessedError(status=invitation.status.value)
        if as_utc(invitation.expires_at) <= now:
            raise InvitationExpiredError(context={"expires_at": as_utc(invitation.expires_at).isoformat()})
        if await team_service.get_membership(db, invitation.team_id, user_id) is not None:
            raise AlreadyMemberError()

        await self._transition(db, invitation, InvitationStatus.ACCEPTED, now)

        member = TeamMember(
            team_id=invitation.team_id,
            user_id=user_id,
            role=invitation.role,
            joined_at=now,
        )
        try:
            async with db.begin_nested():
                db.add(member)
                await db.flush()
        except IntegrityError:
            raise AlreadyMemberError()

        logger.info(
            "Invitation %s accepted: user=%s team=%s role=%s",
            invitation.id, user_id, invitation.team_id, invitation.role.value,
        )
        return InvitationAcceptResponse(
            team_id=invitation.team_id,
            member_id=member.id,
            role=member.role,
            invitation=InvitationResponse.model_validate(invitation),
        )

    @db_errors("decline the invitation")
    async def decline_invitation(
        self, db: AsyncSession, token: str, now: Optional[datetime] = None
    ) -> InvitationResponse:
        """Token-only. Expired-but-pending invitations may still be declined."""
        now = now or utc_now()
        invitation = await self._lock_by_token(db, token)
        if invitation.status is not InvitationStatus.PENDING:
            raise AlreadyProcessedError(status=invitation.status.value)

        await self._transition(db, invitation, InvitationStatus.DECLINED, now)
        logger.info("Invitation %s declined", invitation.id)
        return InvitationResponse.model_validate(invitation)

    # ── Maintenance ───────────────────────────────────────────────────────

    @db_errors("expire old invitations")
    async def cleanup_expired(self, db: AsyncSession, now: Optional[datetime] = None) -> int:
        """
        Move every pending invitation past its expiry to `expired`.

        Returns the number of rows changed; a second run with the same
        clock returns 0.
        """
        now = now or utc_now()
        result = await db.execute(
            select(TeamInvitation.id).where(
                TeamInvitation.status == InvitationStatus.PENDING,
                TeamInvitation.expires_at < now,
            )
        )
        expired_ids = list(result.scalars().all())
        if not expired_ids:
            return 0

        result = await db.execute(
            update(TeamInvitation)
            .where(
                TeamInvitation.id.in_(expired_ids),
                TeamInvitation.status == InvitationStatus.PENDING,
            )
            .values(status=InvitationStatus.EXPIRED, updated_at=now)
            .execution_options(synchronize_session="evaluate")
        )
        if result.rowcount:
            logger.info("Expired %d stale invitation(s)", result.rowcount)
        return result.rowcount


invitation_service = InvitationService()
