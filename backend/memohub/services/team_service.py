"""
MemoHub Backend — Team Service (Teams and Memberships)
=======================================================

What:  Team CRUD, member listing, direct add, role change and removal.
How:   Loads the caller's membership, asks the permission evaluator, then
       mutates. All writes are flushed into the request transaction.

Owner-count invariant:
    Role changes and removals count the *other* owners with
    SELECT ... FOR UPDATE before deciding. Two owners demoting each other
    at the same moment therefore serialise on those rows: the second
    request sees one owner left and is rejected with LastOwnerError.
    (SQLite ignores FOR UPDATE; it serialises writers on its own.)

Team deletion:
    Allowed to any owner, including a sole owner: deleting the team removes
    the subject of the invariant. Members and invitations go with it; team
    memos are detached (team_id → NULL) and remain with their creators.
"""

import logging
import uuid
from typing import Dict, List, NamedTuple, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from memohub.enums import TeamRole
from memohub.exceptions import (
    AlreadyMemberError,
    DuplicateNameError,
    LastOwnerError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from memohub.models.invitation import TeamInvitation
from memohub.models.memo import Memo
from memohub.models.team import Team, TeamMember
from memohub.models.user import User
from memohub.schemas.team import TeamDetail, TeamMemberResponse, TeamSummary
from memohub.services.base import db_errors
from memohub.services.permissions import (
    TeamPermissions,
    can_change_member_role,
    can_invite_with_role,
    can_remove_member,
    keeps_an_owner,
    permissions_for,
)
from memohub.services.user_service import normalize_email

logger = logging.getLogger(__name__)


class TeamAccess(NamedTuple):
    """A loaded team plus the caller's membership in it (None for outsiders)."""
    team: Team
    member: Optional[TeamMember]

    @property
    def role(self) -> Optional[TeamRole]:
        return self.member.role if self.member else None

    @property
    def permissions(self) -> TeamPermissions:
        return permissions_for(self.role)


def member_response(member: TeamMember, user: Optional[User] = None) -> TeamMemberResponse:
    user = user or member.user
    return TeamMemberResponse(
        id=member.id,
        user_id=member.user_id,
        name=user.name,
        email=user.email,
        avatar=user.avatar,
        role=member.role,
        joined_at=member.joined_at,
    )


class TeamService:
    """
    Business logic for teams and team membership.

    Every public method takes the acting user's id and performs its own
    permission check; routes never call the evaluator directly.
    """

    # ── Access helpers ────────────────────────────────────────────────────

    async def get_membership(
        self, db: AsyncSession, team_id: uuid.UUID, user_id: uuid.UUID
    ) -> Optional[TeamMember]:
        result = await db.execute(
            select(TeamMember).where(TeamMember.team_id == team_id, TeamMember.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def load_access(
        self, db: AsyncSession, team_id: uuid.UUID, user_id: uuid.UUID
    ) -> TeamAccess:
        team = await db.get(Team, team_id)
        if team is None:
            raise NotFoundError(resource="team", resource_id=str(team_id))
        return TeamAccess(team=team, member=await self.get_membership(db, team_id, user_id))

    async def require(
        self,
        db: AsyncSession,
        team_id: uuid.UUID,
        user_id: uuid.UUID,
        capability: str,
    ) -> TeamAccess:
        """
        Load the team and the caller's membership, then demand `capability`
        (a TeamPermissions field name). 404 for a missing team, 403 otherwise.
        """
        access = await self.load_access(db, team_id, user_id)
        if not getattr(access.permissions, capability):
            raise PermissionDeniedError(action=capability, context={"team_id": str(team_id)})
        return access

    async def _count_other_owners(
        self, db: AsyncSession, team_id: uuid.UUID, exclude_member_id: uuid.UUID
    ) -> int:
        # Row lock, not COUNT(*): PostgreSQL refuses FOR UPDATE with aggregates
        result = await db.execute(
            select(TeamMember.id)
            .where(
                TeamMember.team_id == team_id,
                TeamMember.role == TeamRole.OWNER,
                TeamMember.id != exclude_member_id,
            )
            .with_for_update()
        )
        return len(result.scalars().all())

    async def _get_member(
        self, db: AsyncSession, team_id: uuid.UUID, member_id: uuid.UUID
    ) -> TeamMember:
        result = await db.execute(
            select(TeamMember)
            .where(TeamMember.id == member_id, TeamMember.team_id == team_id)
            .with_for_update()
        )
        member = result.scalar_one_or_none()
        if member is None:
            raise NotFoundError(resource="team member", resource_id=str(member_id))
        return member

    async def _ensure_unique_name(
        self, db: AsyncSession, name: str, exclude_team_id: Optional[uuid.UUID] = None
    ) -> None:
        query = select(Team.id).where(Team.name == name)
        if exclude_team_id is not None:
            query = query.where(Team.id != exclude_team_id)
        if (await db.execute(query.limit(1))).scalar_one_or_none() is not None:
            raise DuplicateNameError(resource="team", name=name)

    async def _counts(
        self, db: AsyncSession, team_ids: List[uuid.UUID]
    ) -> tuple[Dict[uuid.UUID, int], Dict[uuid.UUID, int]]:
        """(member_count, memo_count) per team id, two GROUP BY queries."""
        if not team_ids:
            return {}, {}
        members = await db.execute(
            select(TeamMember.team_id, func.count(TeamMember.id))
            .where(TeamMember.team_id.in_(team_ids))
            .group_by(TeamMember.team_id)
        )
        memos = await db.execute(
            select(Memo.team_id, func.count(Memo.id))
            .where(Memo.team_id.in_(team_ids))
            .group_by(Memo.team_id)
        )
        return dict(members.all()), dict(memos.all())

    # ── Teams ─────────────────────────────────────────────────────────────

    @db_errors("list teams")
    async def list_teams(self, db: AsyncSession, user_id: uuid.UUID) -> List[TeamSummary]:
        result = await db.execute(
            select(Team, TeamMember.role)
            .join(TeamMember, TeamMember.team_id == Team.id)
            .where(TeamMember.user_id == user_id)
            .order_by(Team.created_at.desc())
        )
        rows = result.all()
        member_counts, memo_counts = await self._counts(db, [team.id for team, _ in rows])
        return [
            TeamSummary(
                id=team.id,
                name=team.name,
                description=team.description,
                created_at=team.created_at,
                updated_at=team.updated_at,
                member_count=member_counts.get(team.id, 0),
                memo_count=memo_counts.get(team.id, 0),
                current_user_role=role,
            )
            for team, role in rows
        ]

    @db_errors("create the team")
    async def create_team(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        name: str,
        description: Optional[str] = None,
    ) -> TeamDetail:
        """Create a team; the creator becomes its first owner in the same transaction."""
        name = (name or "").strip()
        if not name:
            raise ValidationError(message="Team name is required", field="name")
        await self._ensure_unique_name(db, name)

        team = Team(name=name, description=(description or "").strip() or None)
        try:
            async with db.begin_nested():
                db.add(team)
                await db.flush()
                owner = TeamMember(team_id=team.id, user_id=user_id, role=TeamRole.OWNER)
                db.add(owner)
                await db.flush()
        except IntegrityError:
            raise DuplicateNameError(resource="team", name=name)

        logger.info("Team %s created by %s", team.id, user_id)
        return await self.get_team(db, team.id, user_id)

    @db_errors("load the team")
    async def get_team(self, db: AsyncSession, team_id: uuid.UUID, user_id: uuid.UUID) -> TeamDetail:
        access = await self.require(db, team_id, user_id, "can_view_team")
        members = await self._list_members(db, team_id)
        _, memo_counts = await self._counts(db, [team_id])
        team = access.team
        return TeamDetail(
            id=team.id,
            name=team.name,
            description=team.description,
            created_at=team.created_at,
            updated_at=team.updated_at,
            member_count=len(members),
            memo_count=memo_counts.get(team_id, 0),
            current_user_role=access.role,
            members=members,
            permissions=access.permissions,
        )

    @db_errors("update the team")
    async def update_team(
        self,
        db: AsyncSession,
        team_id: uuid.UUID,
        user_id: uuid.UUID,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> TeamDetail:
        """`None` leaves a field unchanged; an empty description clears it."""
        access = await self.require(db, team_id, user_id, "can_edit_team")
        team = access.team

        if name is not None:
            name = name.strip()
            if not name:
                raise ValidationError(message="Team name is required", field="name")
            if name != team.name:
                await self._ensure_unique_name(db, name, exclude_team_id=team.id)
                team.name = name
        if description is not None:
            team.description = description.strip() or None

        await db.flush()
        logger.info("Team %s updated by %s", team_id, user_id)
        return await self.get_team(db, team_id, user_id)

    @db_errors("delete the team")
    async def delete_team(self, db: AsyncSession, team_id: uuid.UUID, user_id: uuid.UUID) -> None:
        await self.require(db, team_id, user_id, "can_delete_team")

        await db.execute(update(Memo).where(Memo.team_id == team_id).values(team_id=None))
        await db.execute(delete(TeamInvitation).where(TeamInvitation.team_id == team_id))
        await db.execute(delete(TeamMember).where(TeamMember.team_id == team_id))
        await db.execute(delete(Team).where(Team.id == team_id))
        logger.info("Team %s deleted by %s", team_id, user_id)

    # ── Members ───────────────────────────────────────────────────────────

    async def _list_members(self, db: AsyncSession, team_id: uuid.UUID) -> List[TeamMemberResponse]:
        result = await db.execute(
            select(TeamMember, User)
            .join(User, User.id == TeamMember.user_id)
            .where(TeamMember.team_id == team_id)
            .order_by(TeamMember.joined_at.asc())
        )
        return [member_response(member, user) for member, user in result.all()]

    @db_errors("list team members")
    async def list_members(
        self, db: AsyncSession, team_id: uuid.UUID, user_id: uuid.UUID
    ) -> List[TeamMemberResponse]:
        await self.require(db, team_id, user_id, "can_view_team")
        return await self._list_members(db, team_id)

    @db_errors("add the team member")
    async def add_member(
        self,
        db: AsyncSession,
        team_id: uuid.UUID,
        actor_id: uuid.UUID,
        email: str,
        role: TeamRole,
    ) -> TeamMemberResponse:
        """Directly add an already-registered user (no invitation round trip)."""
        access = await self.require(db, team_id, actor_id, "can_invite_members")
        if not can_invite_with_role(access.role, role):
            raise PermissionDeniedError(
                message=f"Your role cannot grant the '{role.value}' role",
                action="grant_role",
            )

        result = await db.execute(select(User).where(User.email == normalize_email(email or "")))
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError(resource="user", context={"email": normalize_email(email or "")})
        if await self.get_membership(db, team_id, user.id) is not None:
            raise AlreadyMemberError()

        member = TeamMember(team_id=team_id, user_id=user.id, role=role)
        try:
            async with db.begin_nested():
                db.add(member)
                await db.flush()
        except IntegrityError:
            raise AlreadyMemberError()

        logger.info("User %s added to team %s as %s by %s", user.id, team_id, role.value, actor_id)
        return member_response(member, user)

    @db_errors("change the member role")
    async def change_member_role(
        self,
        db: AsyncSession,
        team_id: uuid.UUID,
        actor_id: uuid.UUID,
        member_id: uuid.UUID,
        new_role: TeamRole,
    ) -> TeamMemberResponse:
        access = await self.load_access(db, team_id, actor_id)
        if not can_change_member_role(access.role):
            raise PermissionDeniedError(
                message="Only team owners can change member roles",
                action="can_change_member_roles",
            )

        target = await self._get_member(db, team_id, member_id)
        if target.role is new_role:
            return member_response(target, await db.get(User, target.user_id))

        other_owners = await self._count_other_owners(db, team_id, target.id)
        if not keeps_an_owner(target.role, new_role, other_owners):
            raise LastOwnerError(context={"team_id": str(team_id), "member_id": str(member_id)})

        previous = target.role
        target.role = new_role
        await db.flush()
        logger.info(
            "Team %s member %s role %s → %s by %s",
            team_id, member_id, previous.value, new_role.value, actor_id,
        )
        return member_response(target, await db.get(User, target.user_id))

    @db_errors("remove the team member")
    async def remove_member(
        self,
        db: AsyncSession,
        team_id: uuid.UUID,
        actor_id: uuid.UUID,
        member_id: uuid.UUID,
    ) -> None:
        # Outsiders are refused before the member id is looked up
        access = await self.require(db, team_id, actor_id, "can_view_team")
        target = await self._get_member(db, team_id, member_id)

        if target.user_id == actor_id:
            raise ValidationError(
                message="You cannot remove yourself from the team with this operation",
                field="member_id",
            )
        if not can_remove_member(access.role, target.role, is_self=False):
            raise PermissionDeniedError(
                message="You do not have permission to remove this member",
                action="can_remove_members",
            )

        other_owners = await self._count_other_owners(db, team_id, target.id)
        if not keeps_an_owner(target.role, None, other_owners):
            raise LastOwnerError(context={"team_id": str(team_id), "member_id": str(member_id)})

        await db.delete(target)
        await db.flush()
        logger.info("Team %s member %s removed by %s", team_id, member_id, actor_id)


team_service = TeamService()
