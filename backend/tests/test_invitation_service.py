"""
MemoHub Backend — Invitation Workflow Tests
============================================

Runs the invitation service against an in-memory SQLite database. The
clock is passed explicitly (`now=`) so expiry needs no sleeping.

What we test:
    ✅ Create: permissions, role ceiling, email normalisation, duplicates
    ✅ Accept: membership with the invited role, one-shot, expiry
    ✅ Decline / cancel: terminal states, who may do what
    ✅ Expiry sweep: idempotent, frees the (team, email) slot
"""

from datetime import timedelta

import pytest
from sqlalchemy import select

from conftest import membership
from memohub.enums import InvitationStatus, TeamRole
from memohub.exceptions import (
    AlreadyMemberError,
    AlreadyProcessedError,
    DuplicateInvitationError,
    InvitationExpiredError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from memohub.models.common import utc_now
from memohub.models.invitation import TeamInvitation
from memohub.services.invitation_service import generate_invitation_token, invitation_service


@pytest.fixture
async def setup(make_user, make_team):
    alice = await make_user("Alice")
    bob = await make_user("Bob")
    carol = await make_user("Carol")
    dave = await make_user("Dave")
    team = await make_team(alice, name="Writers", admin=[carol], member=[dave])
    return alice, bob, carol, dave, team


class TestCreateInvitation:

    async def test_owner_invites_with_normalised_email(self, db_session, setup):
        alice, bob, _, _, team = setup
        inv = await invitation_service.create_invitation(
            db_session, team.id, alice.id, "  BOB@Example.com ", TeamRole.ADMIN
        )
        assert inv.email == "bob@example.com"
        assert inv.role is TeamRole.ADMIN
        assert inv.status is InvitationStatus.PENDING
        assert inv.invited_by == alice.id
        assert len(inv.token) == 64
        assert inv.expires_at - inv.created_at == timedelta(days=7)

    async def test_member_cannot_invite(self, db_session, setup):
        _, _, _, dave, team = setup
        with pytest.raises(PermissionDeniedError):
            await invitation_service.create_invitation(db_session, team.id, dave.id, "x@example.com")

    async def test_outsider_cannot_invite(self, db_session, setup):
        _, bob, _, _, team = setup
        with pytest.raises(PermissionDeniedError):
            await invitation_service.create_invitation(db_session, team.id, bob.id, "x@example.com")

    async def test_admin_cannot_grant_owner(self, db_session, setup):
        _, _, carol, _, team = setup
        with pytest.raises(PermissionDeniedError):
            await invitation_service.create_invitation(
                db_session, team.id, carol.id, "x@example.com", TeamRole.OWNER
            )
        inv = await invitation_service.create_invitation(
            db_session, team.id, carol.id, "x@example.com", TeamRole.ADMIN
        )
        assert inv.role is TeamRole.ADMIN

    async def test_unknown_team(self, db_session, setup):
        import uuid

        alice = setup[0]
        with pytest.raises(NotFoundError):
            await invitation_service.create_invitation(db_session, uuid.uuid4(), alice.id, "x@example.com")

    async def test_malformed_email(self, db_session, setup):
        alice, _, _, _, team = setup
        with pytest.raises(ValidationError):
            await invitation_service.create_invitation(db_session, team.id, alice.id, "not-an-email")

    async def test_second_pending_invitation_is_rejected(self, db_session, setup):
        alice, _, carol, _, team = setup
        await invitation_service.create_invitation(db_session, team.id, alice.id, "bob@example.com")
        with pytest.raises(DuplicateInvitationError):
            await invitation_service.create_invitation(db_session, team.id, carol.id, "Bob@example.com")

    async def test_existing_member_cannot_be_invited(self, db_session, setup):
        alice, _, _, _, team = setup
        with pytest.raises(AlreadyMemberError):
            await invitation_service.create_invitation(db_session, team.id, alice.id, "dave@example.com")

    async def test_reinvite_after_decline(self, db_session, setup):
        alice, _, _, _, team = setup
        first = await invitation_service.create_invitation(db_session, team.id, alice.id, "bob@example.com")
        await invitation_service.decline_invitation(db_session, first.token)
        second = await invitation_service.create_invitation(db_session, team.id, alice.id, "bob@example.com")
        assert second.id != first.id
        assert second.token != first.token

    async def test_reinvite_after_expiry(self, db_session, setup):
        alice, _, _, _, team = setup
        now = utc_now()
        first = await invitation_service.create_invitation(
            db_session, team.id, alice.id, "bob@example.com", now=now
        )
        later = now + timedelta(days=8)
        second = await invitation_service.create_invitation(
            db_session, team.id, alice.id, "bob@example.com", now=later
        )
        assert second.status is InvitationStatus.PENDING
        stale = await db_session.get(TeamInvitation, first.id)
        assert stale.status is InvitationStatus.EXPIRED


class TestAcceptInvitation:

    async def test_accept_creates_membership_with_invited_role(self, db_session, setup):
        alice, bob, _, _, team = setup
        inv = await invitation_service.create_invitation(
            db_session, team.id, alice.id, "bob@example.com", TeamRole.ADMIN
        )
        result = await invitation_service.accept_invitation(db_session, inv.token, bob.id)

        assert result.team_id == team.id
        assert result.role is TeamRole.ADMIN
        assert result.invitation.status is InvitationStatus.ACCEPTED
        member = await membership(db_session, team, bob)
        assert member.role is TeamRole.ADMIN
        assert member.id == result.member_id

    async def test_second_accept_fails(self, db_session, setup):
        alice, bob, _, _, team = setup
        inv = await invitation_service.create_invitation(db_session, team.id, alice.id, "bob@example.com")
        await invitation_service.accept_invitation(db_session, inv.token, bob.id)
        with pytest.raises(AlreadyProcessedError) as exc_info:
            await invitation_service.accept_invitation(db_session, inv.token, bob.id)
        assert exc_info.value.context["status"] == "accepted"

    async def test_expired_invitation_cannot_be_accepted(self, db_session, setup):
        alice, bob, _, _, team = setup
        now = utc_now()
        inv = await invitation_service.create_invitation(
            db_session, team.id, alice.id, "bob@example.com", now=now
        )
        with pytest.raises(InvitationExpiredError):
            await invitation_service.accept_invitation(
                db_session, inv.token, bob.id, now=now + timedelta(days=7, seconds=1)
            )

    async def test_accept_just_before_expiry(self, db_session, setup):
        alice, bob, _, _, team = setup
        now = utc_now()
        inv = await invitation_service.create_invitation(
            db_session, team.id, alice.id, "bob@example.com", now=now
        )
        result = await invitation_service.accept_invitation(
            db_session, inv.token, bob.id, now=now + timedelta(days=6, hours=23)
        )
        assert result.invitation.status is InvitationStatus.ACCEPTED

    async def test_unknown_token(self, db_session, setup):
        bob = setup[1]
        with pytest.raises(NotFoundError):
            await invitation_service.accept_invitation(db_session, generate_invitation_token(), bob.id)

    async def test_accept_by_existing_member(self, db_session, setup):
        alice, _, _, dave, team = setup
        inv = await invitation_service.create_invitation(db_session, team.id, alice.id, "bob@example.com")
        with pytest.raises(AlreadyMemberError):
            await invitation_service.accept_invitation(db_session, inv.token, dave.id)

    async def test_declined_invitation_cannot_be_accepted(self, db_session, setup):
        alice, bob, _, _, team = setup
        inv = await invitation_service.create_invitation(db_session, team.id, alice.id, "bob@example.com")
        await invitation_service.decline_invitation(db_session, inv.token)
        with pytest.raises(AlreadyProcessedError):
            await invitation_service.accept_invitation(db_session, inv.token, bob.id)


class TestDeclineAndCancel:

    async def test_decline_is_terminal(self, db_session, setup):
        alice, _, _, _, team = setup
        inv = await invitation_service.create_invitation(db_session, team.id, alice.id, "bob@example.com")
        declined = await invitation_service.decline_invitation(db_session, inv.token)
        assert declined.status is InvitationStatus.DECLINED
        with pytest.raises(AlreadyProcessedError):
            await invitation_service.decline_invitation(db_session, inv.token)

    async def test_decline_expired_but_unswept(self, db_session, setup):
        alice, _, _, _, team = setup
        now = utc_now()
        inv = await invitation_service.create_invitation(
            db_session, team.id, alice.id, "bob@example.com", now=now
        )
        declined = await invitation_service.decline_invitation(
            db_session, inv.token, now=now + timedelta(days=30)
        )
        assert declined.status is InvitationStatus.DECLINED

    async def test_only_inviter_cancels(self, db_session, setup):
        alice, _, carol, _, team = setup
        inv = await invitation_service.create_invitation(db_session, team.id, alice.id, "bob@example.com")
        with pytest.raises(PermissionDeniedError):
            await invitation_service.cancel_invitation(db_session, inv.id, carol.id)
        cancelled = await invitation_service.cancel_invitation(db_session, inv.id, alice.id)
        assert cancelled.status is InvitationStatus.CANCELLED

    async def test_cancel_checks_team(self, db_session, setup, make_team):
        alice, _, _, _, team = setup
        other = await make_team(alice, name="Other")
        inv = await invitation_service.create_invitation(db_session, team.id, alice.id, "bob@example.com")
        with pytest.raises(NotFoundError):
            await invitation_service.cancel_invitation(db_session, inv.id, alice.id, team_id=other.id)

    async def test_cancelled_cannot_be_accepted_or_cancelled_again(self, db_session, setup):
        alice, bob, _, _, team = setup
        inv = await invitation_service.create_invitation(db_session, team.id, alice.id, "bob@example.com")
        await invitation_service.cancel_invitation(db_session, inv.id, alice.id)
        with pytest.raises(AlreadyProcessedError):
            await invitation_service.accept_invitation(db_session, inv.token, bob.id)
        with pytest.raises(AlreadyProcessedError):
            await invitation_service.cancel_invitation(db_session, inv.id, alice.id)


class TestLookupsAndSweep:

    async def test_details_by_token(self, db_session, setup):
        alice, _, _, _, team = setup
        inv = await invitation_service.create_invitation(db_session, team.id, alice.id, "bob@example.com")
        detail = await invitation_service.get_invitation_details(db_session, inv.token)
        assert detail.team_name == "Writers"
        assert detail.inviter_name == "Alice"
        assert detail.token is None

    async def test_details_of_expired_invitation(self, db_session, setup):
        alice, _, _, _, team = setup
        now = utc_now()
        inv = await invitation_service.create_invitation(
            db_session, team.id, alice.id, "bob@example.com", now=now
        )
        with pytest.raises(InvitationExpiredError):
            await invitation_service.get_invitation_details(db_session, inv.token, now=now + timedelta(days=8))

    async def test_inbox_lists_every_status(self, db_session, setup, make_team):
        alice, bob, _, _, team = setup
        readers = await make_team(alice, name="Readers")
        editors = await make_team(alice, name="Editors")
        now = utc_now()

        await invitation_service.create_invitation(
            db_session, editors.id, alice.id, "bob@example.com", now=now - timedelta(days=10)
        )
        await invitation_service.create_invitation(db_session, team.id, alice.id, "bob@example.com", now=now)
        declined = await invitation_service.create_invitation(
            db_session, readers.id, alice.id, "bob@example.com", now=now + timedelta(minutes=1)
        )
        await invitation_service.decline_invitation(db_session, declined.token, now=now + timedelta(minutes=1))

        inbox = await invitation_service.list_user_invitations(
            db_session, "Bob@Example.com", now=now + timedelta(minutes=2)
        )
        assert [(i.team_name, i.status) for i in inbox] == [
            ("Readers", InvitationStatus.DECLINED),
            ("Writers", InvitationStatus.PENDING),
            ("Editors", InvitationStatus.EXPIRED),
        ]
        assert [i.token is not None for i in inbox] == [False, True, False]

    async def test_team_list_requires_invite_permission(self, db_session, setup):
        alice, _, _, dave, team = setup
        await invitation_service.create_invitation(db_session, team.id, alice.id, "bob@example.com")
        assert len(await invitation_service.list_team_invitations(db_session, team.id, alice.id)) == 1
        with pytest.raises(PermissionDeniedError):
            await invitation_service.list_team_invitations(db_session, team.id, dave.id)

    async def test_cleanup_is_idempotent(self, db_session, setup):
        alice, _, _, _, team = setup
        now = utc_now()
        for email in ("a1@example.com", "a2@example.com"):
            await invitation_service.create_invitation(db_session, team.id, alice.id, email, now=now)
        fresh = await invitation_service.create_invitation(
            db_session, team.id, alice.id, "a3@example.com", now=now + timedelta(days=5)
        )

        later = now + timedelta(days=8)
        assert await invitation_service.cleanup_expired(db_session, now=later) == 2
        assert await invitation_service.cleanup_expired(db_session, now=later) == 0

        result = await db_session.execute(
            select(TeamInvitation.status).where(TeamInvitation.id == fresh.id)
        )
        assert result.scalar_one() is InvitationStatus.PENDING
