"""Permission evaluator.

Every authorization decision in the service layer goes through
:func:`evaluate`; call sites never compare raw roles to decide access.
"""

from dataclasses import dataclass
from enum import StrEnum
from uuid import UUID

from core.exceptions import InsufficientPermissionsError, NotAMemberError
from domain.entities.workspace import Capability, Workspace, WorkspaceRole

# Readable by any member, active or not
READ_CAPABILITIES = frozenset(
    {Capability.VIEW_TEAM, Capability.VIEW_TASKS, Capability.VIEW_NOTES}
)

# Held by every member by default, gated by the active flag
BASELINE_CAPABILITIES = frozenset({Capability.MANAGE_TASKS})


class DenyReason(StrEnum):
    NOT_A_MEMBER = "not_a_member"
    INSUFFICIENT_PERMISSION = "insufficient_permission"


@dataclass(frozen=True)
class PermissionDecision:
    """Outcome of a permission check, with diagnostics for denials."""

    allowed: bool
    capability: Capability
    role: WorkspaceRole | None = None
    reason: DenyReason | None = None

    def __bool__(self) -> bool:
        return self.allowed


def _owner_reserved(capability: Capability, target_role: WorkspaceRole | None) -> bool:
    if capability == Capability.DELETE_WORKSPACE:
        return True
    return (
        capability == Capability.MANAGE_ROLES
        and target_role is not None
        and target_role >= WorkspaceRole.ADMIN
    )


def evaluate(
    workspace: Workspace,
    user_id: UUID,
    capability: Capability,
    target_role: WorkspaceRole | None = None,
) -> PermissionDecision:
    """Decide whether ``user_id`` may exercise ``capability`` on ``workspace``.

    Args:
        workspace: The workspace with its members loaded.
        user_id: The requesting identity.
        capability: The capability being requested.
        target_role: Role of the member being acted on, for role management.

    Returns:
        A PermissionDecision; falsy when denied.
    """
    if workspace.is_owner(user_id):
        return PermissionDecision(True, capability, WorkspaceRole.OWNER)

    member = workspace.get_member(user_id)
    if member is None:
        return PermissionDecision(False, capability, None, DenyReason.NOT_A_MEMBER)

    if member.role == WorkspaceRole.ADMIN:
        if _owner_reserved(capability, target_role):
            return PermissionDecision(
                False, capability, member.role, DenyReason.INSUFFICIENT_PERMISSION
            )
        return PermissionDecision(True, capability, member.role)

    if capability in READ_CAPABILITIES:
        return PermissionDecision(True, capability, member.role)

    if capability in BASELINE_CAPABILITIES and member.is_active:
        return PermissionDecision(True, capability, member.role)

    if member.is_active and member.permissions.allows(capability):
        return PermissionDecision(True, capability, member.role)

    return PermissionDecision(
        False, capability, member.role, DenyReason.INSUFFICIENT_PERMISSION
    )


def require(
    workspace: Workspace,
    user_id: UUID,
    capability: Capability,
    target_role: WorkspaceRole | None = None,
) -> PermissionDecision:
    """Like :func:`evaluate`, but raise on denial."""
    decision = evaluate(workspace, user_id, capability, target_role)
    if decision.allowed:
        return decision
    if decision.reason == DenyReason.NOT_A_MEMBER:
        raise NotAMemberError(str(workspace.id))
    raise InsufficientPermissionsError(
        capability.value, decision.role.label if decision.role else None
    )
