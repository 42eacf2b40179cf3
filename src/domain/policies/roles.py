"""Role model: rank order, default permissions and role normalization.

Pure functions over roles and a workspace's member list. No I/O.
"""

from typing import Any

from core.exceptions import ValidationError
from domain.entities.workspace import MemberPermissions, Workspace, WorkspaceRole

_ROLE_BY_LABEL = {role.label: role for role in WorkspaceRole}


def normalize_role(raw: Any) -> WorkspaceRole:
    """Map any stored role value onto a valid role.

    Case and surrounding whitespace are ignored; anything unrecognised
    becomes ``member``.
    """
    if isinstance(raw, WorkspaceRole):
        return raw
    if isinstance(raw, str):
        return _ROLE_BY_LABEL.get(raw.strip().lower(), WorkspaceRole.MEMBER)
    return WorkspaceRole.MEMBER


def compare_roles(a: WorkspaceRole, b: WorkspaceRole) -> int:
    """Negative if ``a`` ranks below ``b``, zero if equal, positive if above."""
    return int(a) - int(b)


def default_permissions(role: WorkspaceRole) -> MemberPermissions:
    """Default override bag for a role.

    Only the owner holds ``manage_roles``; admins get the other five flags.
    """
    if role == WorkspaceRole.OWNER:
        return MemberPermissions.all_granted()
    if role == WorkspaceRole.ADMIN:
        return MemberPermissions(
            edit_workspace=True,
            delete_workspace=True,
            invite_members=True,
            remove_members=True,
            manage_roles=False,
            move_to_trash=True,
        )
    return MemberPermissions()


def can_assign_role(actor_role: WorkspaceRole, target_role: WorkspaceRole) -> bool:
    """Whether an actor may grant ``target_role`` to someone else.

    The owner may grant anything. Everyone else may only grant roles ranked
    strictly below their own; ``member`` grants nothing beyond the baseline
    and is always assignable.
    """
    if actor_role == WorkspaceRole.OWNER:
        return True
    if target_role == WorkspaceRole.MEMBER:
        return True
    return compare_roles(actor_role, target_role) > 0


def ensure_invariants(workspace: Workspace) -> None:
    """Raise ValidationError if the membership invariants do not hold."""
    problems = workspace.invariant_violations()
    if problems:
        raise ValidationError(
            "Workspace membership is inconsistent",
            details={"workspace_id": str(workspace.id), "violations": problems},
        )
