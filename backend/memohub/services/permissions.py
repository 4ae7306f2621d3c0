"""
MemoHub Backend — Team Permission Evaluator
============================================

What:  Pure functions mapping a team role to a capability set, and action
       requests to allow/deny answers.
Who:   Called by team_service, invitation_service and memo_service after
       they have loaded the caller's membership.
How:   One authoritative table (ROLE_PERMISSIONS). Every per-action rule
       below reads from it or from the role ordering; no handler re-derives
       role checks on its own.

Capability table:

    capability              owner  admin  member  none
    ─────────────────────── ─────  ─────  ──────  ────
    can_view_team             ✓      ✓      ✓      ✗
    can_edit_team             ✓      ✓      ✗      ✗
    can_delete_team           ✓      ✗      ✗      ✗
    can_invite_members        ✓      ✓      ✗      ✗
    can_remove_members        ✓      ✓      ✗      ✗
    can_change_member_roles   ✓      ✗      ✗      ✗
    can_create_memos          ✓      ✓      ✓      ✗
    can_edit_memos            ✓      ✓      ✗      ✗
    can_delete_memos          ✓      ✓      ✗      ✗

Failure semantics:
    Every function is total: unknown roles, None and odd combinations all
    come back as False / all-false. Nothing here raises and nothing does
    I/O. Translating a False into PermissionDeniedError or LastOwnerError
    is the caller's job.
"""

from typing import Dict, Optional, Union

from pydantic import BaseModel

from memohub.enums import TeamRole


class TeamPermissions(BaseModel):
    """Fixed-shape capability record. Immutable; also returned in team detail responses."""

    can_view_team: bool = False
    can_edit_team: bool = False
    can_delete_team: bool = False
    can_invite_members: bool = False
    can_remove_members: bool = False
    can_change_member_roles: bool = False
    can_create_memos: bool = False
    can_edit_memos: bool = False
    can_delete_memos: bool = False

    model_config = {"frozen": True}


NO_PERMISSIONS = TeamPermissions()

ROLE_PERMISSIONS: Dict[TeamRole, TeamPermissions] = {
    TeamRole.OWNER: TeamPermissions(
        can_view_team=True,
        can_edit_team=True,
        can_delete_team=True,
        can_invite_members=True,
        can_remove_members=True,
        can_change_member_roles=True,
        can_create_memos=True,
        can_edit_memos=True,
        can_delete_memos=True,
    ),
    TeamRole.ADMIN: TeamPermissions(
        can_view_team=True,
        can_edit_team=True,
        can_invite_members=True,
        can_remove_members=True,
        can_create_memos=True,
        can_edit_memos=True,
        can_delete_memos=True,
    ),
    TeamRole.MEMBER: TeamPermissions(
        can_view_team=True,
        can_create_memos=True,
    ),
}

# Roles an actor may hand out through an invitation or a direct add
_GRANTABLE_ROLES: Dict[TeamRole, frozenset] = {
    TeamRole.OWNER: frozenset({TeamRole.OWNER, TeamRole.ADMIN, TeamRole.MEMBER}),
    TeamRole.ADMIN: frozenset({TeamRole.ADMIN, TeamRole.MEMBER}),
    TeamRole.MEMBER: frozenset(),
}


def parse_role(value: Union[TeamRole, str, None]) -> Optional[TeamRole]:
    """Coerce a stored/requested role to TeamRole; anything unrecognised becomes None."""
    if value is None or isinstance(value, TeamRole):
        return value
    try:
        return TeamRole(str(value).strip().lower())
    except ValueError:
        return None


def permissions_for(role: Union[TeamRole, str, None]) -> TeamPermissions:
    """Capability set of `role`; all-false when the caller holds no (valid) role."""
    parsed = parse_role(role)
    if parsed is None:
        return NO_PERMISSIONS
    return ROLE_PERMISSIONS[parsed]


def can_edit_memo(role: Union[TeamRole, str, None], is_creator: bool) -> bool:
    """The creator may always edit; everyone else needs can_edit_memos."""
    return is_creator or permissions_for(role).can_edit_memos


def can_delete_memo(role: Union[TeamRole, str, None], is_creator: bool) -> bool:
    """The creator may always delete; everyone else needs can_delete_memos."""
    return is_creator or permissions_for(role).can_delete_memos


def can_change_member_role(actor_role: Union[TeamRole, str, None]) -> bool:
    """Only owners change roles (including their own)."""
    return permissions_for(actor_role).can_change_member_roles


def can_remove_member(
    actor_role: Union[TeamRole, str, None],
    target_role: Union[TeamRole, str, None],
    is_self: bool,
) -> bool:
    """
    Removal rule, owner-count aside:
        - nobody removes themselves on this path ("leave team" is separate)
        - owners remove anyone
        - admins remove admins and members, never owners
    """
    if is_self:
        return False
    actor = parse_role(actor_role)
    target = parse_role(target_role)
    if target is None or not permissions_for(actor).can_remove_members:
        return False
    if target is TeamRole.OWNER:
        return actor is TeamRole.OWNER
    return True


def can_invite_with_role(
    actor_role: Union[TeamRole, str, None],
    invited_role: Union[TeamRole, str, None],
) -> bool:
    """Admins may grant member/admin; owners may grant any role; others nothing."""
    actor = parse_role(actor_role)
    invited = parse_role(invited_role)
    if actor is None or invited is None:
        return False
    if not permissions_for(actor).can_invite_members:
        return False
    return invited in _GRANTABLE_ROLES[actor]


def keeps_an_owner(
    target_role: Union[TeamRole, str, None],
    new_role: Union[TeamRole, str, None],
    other_owner_count: int,
) -> bool:
    """
    Owner-count invariant for one mutation of one membership.

    `new_role` is None for a removal. `other_owner_count` counts current
    owners excluding the target. Only an owner losing owner status can
    break the invariant, and only when nobody else is an owner.
    """
    if parse_role(target_role) is not TeamRole.OWNER:
        return True
    if parse_role(new_role) is TeamRole.OWNER:
        return True
    return other_owner_count > 0
