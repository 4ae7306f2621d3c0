"""
MemoHub Backend — Team Service Tests
=====================================

Teams, membership and the owner-count invariant against SQLite.
"""

import uuid

import pytest
from sqlalchemy import select

from conftest import membership
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
from memohub.services.invitation_service import invitation_service
from memohub.services.team_service import team_service


@pytest.fixture
async def people(make_user):
    return [await make_user(name) for name in ("Alice", "Bob", "Carol", "Dave")]


class TestTeams:

    async def test_create_makes_creator_owner(self, db_session, people):
        alice = people[0]
        team = await team_service.create_team(db_session, alice.id, "  Research  ", "Notes")
        assert team.name == "Research"
        assert team.current_user_role is TeamRole.OWNER
        assert team.member_count == 1
        assert team.members[0].user_id == alice.id
        assert team.permissions.can_delete_team

    async def test_blank_name(self, db_session, people):
        with pytest.raises(ValidationError):
            await team_service.create_team(db_session, people[0].id, "   ")

    async def test_duplicate_name(self, db_session, people, make_team):
        await make_team(people[0], name="Research")
        with pytest.raises(DuplicateNameError):
            await team_service.create_team(db_session, people[1].id, "Research")

    async def test_list_teams_shows_role_and_counts(self, db_session, people, make_team):
        alice, bob, carol, _ = people
        await make_team(alice, name="Mine", member=[bob])
        await make_team(carol, name="Theirs", admin=[alice])
        await make_team(carol, name="Not mine")

        teams = {t.name: t for t in await team_service.list_teams(db_session, alice.id)}
        assert set(teams) == {"Mine", "Theirs"}
        assert teams["Mine"].current_user_role is TeamRole.OWNER
        assert teams["Mine"].member_count == 2
        assert teams["Theirs"].current_user_role is TeamRole.ADMIN

    async def test_outsider_cannot_view(self, db_session, people, make_team):
        team = await make_team(people[0])
        with pytest.raises(PermissionDeniedError):
            await team_service.get_team(db_session, team.id, people[1].id)

    async def test_missing_team(self, db_session, people):
        with pytest.raises(NotFoundError):
            await team_service.get_team(db_session, uuid.uuid4(), people[0].id)

    async def test_admin_edits_member_cannot(self, db_session, people, make_team):
        alice, bob, carol, _ = people
        team = await make_team(alice, admin=[carol], member=[bob])
        updated = await team_service.update_team(db_session, team.id, carol.id, description="New")
        assert updated.description == "New"
        with pytest.raises(PermissionDeniedError):
            await team_service.update_team(db_session, team.id, bob.id, name="Hijacked")

    async def test_only_owner_deletes(self, db_session, people, make_team):
        alice, _, carol, _ = people
        team = await make_team(alice, admin=[carol])
        with pytest.raises(PermissionDeniedError):
            await team_service.delete_team(db_session, team.id, carol.id)

    async def test_delete_detaches_memos_and_drops_members(self, db_session, people, make_team):
        alice, bob, _, _ = people
        team = await make_team(alice, member=[bob])
        memo = Memo(title="Plan", content="Ship it", user_id=bob.id, team_id=team.id)
        db_session.add(memo)
        await db_session.flush()
        await invitation_service.create_invitation(db_session, team.id, alice.id, "x@example.com")

        await team_service.delete_team(db_session, team.id, alice.id)

        assert await db_session.get(Team, team.id) is None
        members = await db_session.execute(select(TeamMember).where(TeamMember.team_id == team.id))
        assert members.scalars().all() == []
        invitations = await db_session.execute(
            select(TeamInvitation).where(TeamInvitation.team_id == team.id)
        )
        assert invitations.scalars().all() == []
        team_id = (await db_session.execute(select(Memo.team_id).where(Memo.id == memo.id))).scalar_one()
        assert team_id is None


class TestMembers:

    async def test_list_in_join_order(self, db_session, people, make_team):
        alice, bob, carol, _ = people
        team = await make_team(alice, member=[bob])
        await team_service.add_member(db_session, team.id, alice.id, "carol@example.com", TeamRole.ADMIN)
        members = await team_service.list_members(db_session, team.id, bob.id)
        assert [m.name for m in members] == ["Alice", "Bob", "Carol"]

    async def test_add_member_by_email(self, db_session, people, make_team):
        alice, bob, _, _ = people
        team = await make_team(alice)
        added = await team_service.add_member(db_session, team.id, alice.id, " BOB@example.com", TeamRole.MEMBER)
        assert added.user_id == bob.id
        assert added.role is TeamRole.MEMBER

    async def test_add_member_errors(self, db_session, people, make_team):
        alice, bob, carol, dave = people
        team = await make_team(alice, admin=[carol], member=[bob])
        with pytest.raises(AlreadyMemberError):
            await team_service.add_member(db_session, team.id, alice.id, "bob@example.com", TeamRole.MEMBER)
        with pytest.raises(NotFoundError):
            await team_service.add_member(db_session, team.id, alice.id, "ghost@example.com", TeamRole.MEMBER)
        with pytest.raises(PermissionDeniedError):
            await team_service.add_member(db_session, team.id, carol.id, "dave@example.com", TeamRole.OWNER)
        with pytest.raises(PermissionDeniedError):
            await team_service.add_member(db_session, team.id, bob.id, "dave@example.com", TeamRole.MEMBER)

    async def test_owner_promotes_and_demotes(self, db_session, people, make_team):
        alice, bob, _, _ = people
        team = await make_team(alice, member=[bob])
        bob_member = await membership(db_session, team, bob)
        promoted = await team_service.change_member_role(db_session, team.id, alice.id, bob_member.id, TeamRole.OWNER)
        assert promoted.role is TeamRole.OWNER
        assert promoted.name == "Bob"

        # Two owners now: alice may step down
        alice_member = await membership(db_session, team, alice)
        demoted = await team_service.change_member_role(
            db_session, team.id, alice.id, alice_member.id, TeamRole.MEMBER
        )
        assert demoted.role is TeamRole.MEMBER

    async def test_sole_owner_cannot_demote_self(self, db_session, people, make_team):
        alice, bob, _, _ = people
        team = await make_team(alice, member=[bob])
        alice_member = await membership(db_session, team, alice)
        with pytest.raises(LastOwnerError):
            await team_service.change_member_role(db_session, team.id, alice.id, alice_member.id, TeamRole.ADMIN)
        assert (await membership(db_session, team, alice)).role is TeamRole.OWNER

    async def test_admin_cannot_change_roles(self, db_session, people, make_team):
        alice, bob, carol, _ = people
        team = await make_team(alice, admin=[carol], member=[bob])
        bob_member = await membership(db_session, team, bob)
        with pytest.raises(PermissionDeniedError):
            await team_service.change_member_role(db_session, team.id, carol.id, bob_member.id, TeamRole.ADMIN)

    async def test_same_role_is_a_no_op(self, db_session, people, make_team):
        alice, bob, _, _ = people
        team = await make_team(alice, member=[bob])
        bob_member = await membership(db_session, team, bob)
        result = await team_service.change_member_role(db_session, team.id, alice.id, bob_member.id, TeamRole.MEMBER)
        assert result.role is TeamRole.MEMBER

    async def test_remove_rules(self, db_session, people, make_team):
        alice, bob, carol, dave = people
        team = await make_team(alice, admin=[carol], member=[bob, dave])
        bob_member = await membership(db_session, team, bob)
        alice_member = await membership(db_session, team, alice)

        # admin removes a member
        await team_service.remove_member(db_session, team.id, carol.id, bob_member.id)
        assert await team_service.get_membership(db_session, team.id, bob.id) is None

        # admin cannot remove the owner; member cannot remove anyone
        with pytest.raises(PermissionDeniedError):
            await team_service.remove_member(db_session, team.id, carol.id, alice_member.id)
        carol_member = await membership(db_session, team, carol)
        with pytest.raises(PermissionDeniedError):
            await team_service.remove_member(db_session, team.id, dave.id, carol_member.id)

    async def test_cannot_remove_self(self, db_session, people, make_team):
        alice, _, carol, _ = people
        team = await make_team(alice, admin=[carol])
        carol_member = await membership(db_session, team, carol)
        with pytest.raises(ValidationError):
            await team_service.remove_member(db_session, team.id, carol.id, carol_member.id)

    async def test_owner_removes_co_owner_but_not_last(self, db_session, people, make_team):
        alice, bob, _, _ = people
        team = await make_team(alice, owner=[bob])
        bob_member = await membership(db_session, team, bob)
        await team_service.remove_member(db_session, team.id, alice.id, bob_member.id)
        owners = await db_session.execute(
            select(TeamMember).where(TeamMember.team_id == team.id, TeamMember.role == TeamRole.OWNER)
        )
        assert len(owners.scalars().all()) == 1

    async def test_unknown_member(self, db_session, people, make_team):
        team = await make_team(people[0])
        with pytest.raises(NotFoundError):
            await team_service.remove_member(db_session, team.id, people[0].id, uuid.uuid4())

    async def test_outsider_gets_403_for_any_member_id(self, db_session, people, make_team):
        alice, bob, _, dave = people
        team = await make_team(alice, member=[bob])
        bob_member = await membership(db_session, team, bob)
        # Same answer whether or not the id exists
        for member_id in (bob_member.id, uuid.uuid4()):
            with pytest.raises(PermissionDeniedError):
                await team_service.remove_member(db_session, team.id, dave.id, member_id)
        assert await team_service.get_membership(db_session, team.id, bob.id) is not None
