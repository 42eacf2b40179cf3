"""Workspace domain entities."""

from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import IntEnum, StrEnum
from uuid import UUID, uuid4


class WorkspaceRole(IntEnum):
    """Workspace role hierarchy. Higher value = more authority.

    Use comparison for rank checks:
        actor_role > target_role  # actor outranks target
    """

    MEMBER = 1
    ADMIN = 2
    OWNER = 3

    @property
    def label(self) -> str:
        """Lower-case name used in storage and API payloads."""
        return self.name.lower()


class Capability(StrEnum):
    """Named capabilities checked by the permission evaluator."""

    EDIT_WORKSPACE = "edit-workspace"
    DELETE_WORKSPACE = "delete-workspace"
    INVITE_MEMBERS = "invite-members"
    REMOVE_MEMBERS = "remove-members"
    MANAGE_ROLES = "manage-roles"
    MOVE_TO_TRASH = "move-to-trash"
    VIEW_TEAM = "view-team"
    VIEW_TASKS = "view-tasks"
    VIEW_NOTES = "view-notes"
    MANAGE_TASKS = "manage-tasks"


@dataclass
class MemberPermissions:
    """Per-member permission override bag."""

    edit_workspace: bool = False
    delete_workspace: bool = False
    invite_members: bool = False
    remove_members: bool = False
    manage_roles: bool = False
    move_to_trash: bool = False

    @classmethod
    def all_granted(cls) -> "MemberPermissions":
        return cls(**{f.name: True for f in fields(cls)})

    def allows(self, capability: Capability) -> bool:
        """Return the override flag for a capability (False if it has none)."""
        return bool(getattr(self, capability.value.replace("-", "_"), False))

    def merged(self, overrides: dict[str, bool]) -> "MemberPermissions":
        """Return a copy with the given flags replaced. Unknown keys are rejected."""
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise KeyError(", ".join(sorted(unknown)))
        values = {name: getattr(self, name) for name in known}
        values.update({k: bool(v) for k, v in overrides.items()})
        return MemberPermissions(**values)

    def as_dict(self) -> dict[str, bool]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass
class WorkspaceMember:
    """Domain entity for a workspace membership."""

    user_id: UUID
    role: WorkspaceRole = WorkspaceRole.MEMBER
    permissions: MemberPermissions = field(default_factory=MemberPermissions)
    is_active: bool = True
    joined_at: datetime = field(default_factory=datetime.utcnow)
    invited_by: UUID | None = None
    invitation_id: UUID | None = None


@dataclass
class Workspace:
    """Domain entity for a Workspace with its embedded member list."""

    name: str
    owner_id: UUID
    id: UUID = field(default_factory=uuid4)
    description: str | None = None
    members: list[WorkspaceMember] = field(default_factory=list)
    is_deleted: bool = False
    deleted_at: datetime | None = None
    deleted_by: UUID | None = None
    version: int = 1
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    def __post_init__(self) -> None:
        """Ensure updated_at is always at least as recent as created_at."""
        if self.updated_at < self.created_at:
            self.updated_at = self.created_at

    def is_owner(self, user_id: UUID) -> bool:
        return self.owner_id == user_id

    def get_member(self, user_id: UUID) -> WorkspaceMember | None:
        return next((m for m in self.members if m.user_id == user_id), None)

    def active_members(self) -> list[WorkspaceMember]:
        return [m for m in self.members if m.is_active]

    def remove_member(self, user_id: UUID) -> WorkspaceMember | None:
        member = self.get_member(user_id)
        if member is not None:
            self.members.remove(member)
        return member

    def invariant_violations(self) -> list[str]:
        """List every broken membership invariant (empty when consistent)."""
        problems: list[str] = []
        owners = [m for m in self.members if m.role == WorkspaceRole.OWNER]
        if len(owners) != 1:
            problems.append(f"expected exactly one owner member, found {len(owners)}")
        owner_member = self.get_member(self.owner_id)
        if owner_member is None:
            problems.append("workspace owner is missing from the member list")
        else:
            if owner_member.role != WorkspaceRole.OWNER:
                problems.append("workspace owner does not hold the owner role")
            if owner_member.permissions != MemberPermissions.all_granted():
                problems.append("workspace owner lacks the full permission set")
            if not owner_member.is_active:
                problems.append("workspace owner is inactive")
        seen: set[UUID] = set()
        for member in self.members:
            if member.user_id in seen:
                problems.append(f"duplicate member entry for {member.user_id}")
            seen.add(member.user_id)
            if not isinstance(member.role, WorkspaceRole):
                problems.append(f"member {member.user_id} has an unnormalized role")
        return problems
