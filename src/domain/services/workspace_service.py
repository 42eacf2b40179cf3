"""Workspace service layer: lifecycle and membership management."""

from collections.abc import Callable
from datetime import datetime
from typing import Optional
from uuid import UUID

import structlog

from core.exceptions import (
    AlreadyAMemberError,
    InsufficientPermissionsError,
    InvalidRoleAssignmentError,
    MemberNotFoundError,
    NotAMemberError,
    OwnerImmutableError,
    ValidationError,
    WorkspaceInTrashError,
    WorkspaceNotFoundError,
    WorkspaceNotInTrashError,
)
from domain.entities.activity import Actions
from domain.entities.workspace import (
    Capability,
    MemberPermissions,
    Workspace,
    WorkspaceMember,
    WorkspaceRole,
)
from domain.policies import permissions
from domain.policies.permissions import PermissionDecision
from domain.policies.roles import (
    can_assign_role,
    compare_roles,
    default_permissions,
    ensure_invariants,
)
from domain.repositories.unit_of_work import IUnitOfWork
from domain.services.activity_service import ActivityService

logger = structlog.get_logger()

MAX_NAME_LENGTH = 100

# Override flags only the owner may hand out
OWNER_GRANTED_FLAGS = frozenset({"delete_workspace", "manage_roles"})


class WorkspaceService:
    """Service layer for Workspace business logic.

    Every mutation loads the workspace with its members, re-asserts the
    membership invariants, asks the permission evaluator, mutates, checks
    the invariants again and saves with a version compare-and-swap.
    """

    def __init__(
        self,
        uow_factory: Callable[[], IUnitOfWork],
        activity_service: Optional["ActivityService"] = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._activity = activity_service

    # --- Workspace lifecycle ---

    async def get_all_for_user(self, user_id: UUID) -> list[Workspace]:
        """Get all active (non-trashed) workspaces a user is a member of."""
        async with self._uow_factory() as uow:
            return await uow.workspaces.get_all_for_user(user_id)  # type: ignore[no-any-return]

    async def get_trashed_for_user(self, user_id: UUID) -> list[Workspace]:
        """Get trashed workspaces the user may restore."""
        async with self._uow_factory() as uow:
            trashed = await uow.workspaces.get_trashed_for_user(user_id)
            return [
                ws for ws in trashed
                if permissions.evaluate(ws, user_id, Capability.MOVE_TO_TRASH)
            ]

    async def get_by_id(self, workspace_id: UUID, user_id: UUID) -> Workspace:
        """Get a workspace by ID. Requires view-team. Trashed workspaces are visible."""
        async with self._uow_factory() as uow:
            workspace = await self._load(uow, workspace_id, allow_trashed=True)
            permissions.require(workspace, user_id, Capability.VIEW_TEAM)
            return workspace

    async def create(
        self,
        user_id: UUID,
        name: str,
        description: str | None = None,
    ) -> Workspace:
        """Create a new workspace with the creator as its owner."""
        name = self._clean_name(name)
        async with self._uow_factory() as uow:
            workspace = Workspace(
                name=name,
                owner_id=user_id,
                description=description,
                members=[
                    WorkspaceMember(
                        user_id=user_id,
                        role=WorkspaceRole.OWNER,
                        permissions=default_permissions(WorkspaceRole.OWNER),
                    )
                ],
            )
            ensure_invariants(workspace)

            created = await uow.workspaces.create(workspace)

            if self._activity:
                await self._activity.log(
                    uow=uow,
                    workspace_id=created.id,
                    actor_id=user_id,
                    action=Actions.WORKSPACE_CREATED,
                    entity_type="workspace",
                    entity_id=created.id,
                    summary=f"created workspace '{created.name}'",
                )

            await uow.commit()
            logger.info("workspace_created", workspace_id=str(created.id), owner_id=str(user_id))
            return created

    async def update(
        self,
        workspace_id: UUID,
        user_id: UUID,
        name: str | None = None,
        description: str | None = None,
    ) -> Workspace:
        """Update name and/or description. Requires edit-workspace."""
        async with self._uow_factory() as uow:
            workspace = await self._load(uow, workspace_id)
            permissions.require(workspace, user_id, Capability.EDIT_WORKSPACE)

            old_state = {"name": workspace.name, "description": workspace.description}

            if name is not None:
                workspace.name = self._clean_name(name)
            if description is not None:
                workspace.description = description

            updated = await self._save(uow, workspace)

            if self._activity:
                new_state = {"name": updated.name, "description": updated.description}
                changes = ActivityService.compute_diff(old_state, new_state)
                if changes:
                    await self._activity.log(
                        uow=uow,
                        workspace_id=workspace_id,
                        actor_id=user_id,
                        action=Actions.WORKSPACE_UPDATED,
                        entity_type="workspace",
                        entity_id=workspace_id,
                        summary="updated workspace details",
                        changes=changes,
                    )

            await uow.commit()
            return updated

    async def move_to_trash(self, workspace_id: UUID, user_id: UUID) -> Workspace:
        """Soft-delete a workspace. Requires move-to-trash."""
        async with self._uow_factory() as uow:
            workspace = await self._load(uow, workspace_id)
            permissions.require(workspace, user_id, Capability.MOVE_TO_TRASH)

            workspace.is_deleted = True
            workspace.deleted_at = datetime.utcnow()
            workspace.deleted_by = user_id
            updated = await self._save(uow, workspace)

            if self._activity:
                await self._activity.log(
                    uow=uow,
                    workspace_id=workspace_id,
                    actor_id=user_id,
                    action=Actions.WORKSPACE_TRASHED,
                    entity_type="workspace",
                    entity_id=workspace_id,
                    summary=f"moved workspace '{workspace.name}' to trash",
                )

            await uow.commit()
            logger.info("workspace_trashed", workspace_id=str(workspace_id), actor_id=str(user_id))
            return updated

    async def restore(self, workspace_id: UUID, user_id: UUID) -> Workspace:
        """Restore a trashed workspace. Requires move-to-trash."""
        async with self._uow_factory() as uow:
            workspace = await self._load(uow, workspace_id, allow_trashed=True)
            permissions.require(workspace, user_id, Capability.MOVE_TO_TRASH)
            if not workspace.is_deleted:
                raise WorkspaceNotInTrashError(str(workspace_id))

            workspace.is_deleted = False
            workspace.deleted_at = None
            workspace.deleted_by = None
            updated = await self._save(uow, workspace)

            if self._activity:
                await self._activity.log(
                    uow=uow,
                    workspace_id=workspace_id,
                    actor_id=user_id,
                    action=Actions.WORKSPACE_RESTORED,
                    entity_type="workspace",
                    entity_id=workspace_id,
                    summary=f"restored workspace '{workspace.name}' from trash",
                )

            await uow.commit()
            return updated

    async def delete_permanently(self, workspace_id: UUID, user_id: UUID) -> bool:
        """Hard-delete a workspace. Requires delete-workspace (owner-reserved)."""
        async with self._uow_factory() as uow:
            workspace = await self._load(uow, workspace_id, allow_trashed=True)
            permissions.require(workspace, user_id, Capability.DELETE_WORKSPACE)

            deleted = await uow.workspaces.delete(workspace_id)
            await uow.commit()
            logger.info("workspace_deleted", workspace_id=str(workspace_id), actor_id=str(user_id))
            return deleted  # type: ignore[no-any-return]

    # --- Members ---

    async def get_members(self, workspace_id: UUID, user_id: UUID) -> list[WorkspaceMember]:
        """Get all members of a workspace. Requires view-team."""
        workspace = await self.get_by_id(workspace_id, user_id)
        return workspace.members

    async def add_member(
        self,
        workspace_id: UUID,
        user_id: UUID,
        target_user_id: UUID,
        role: WorkspaceRole = WorkspaceRole.MEMBER,
    ) -> WorkspaceMember:
        """Add a user directly. Requires invite-members.

        Admin grants are owner-only here too; ``owner`` is never assignable.
        """
        async with self._uow_factory() as uow:
            workspace = await self._load(uow, workspace_id)
            actor_role = self._actor_role(workspace, user_id)
            permissions.require(workspace, user_id, Capability.INVITE_MEMBERS)

            if role == WorkspaceRole.OWNER or not can_assign_role(actor_role, role):
                raise InvalidRoleAssignmentError(role.label, actor_role.label)
            if workspace.get_member(target_user_id):
                raise AlreadyAMemberError(str(target_user_id))

            member = WorkspaceMember(
                user_id=target_user_id,
                role=role,
                permissions=default_permissions(role),
                invited_by=user_id,
            )
            workspace.members.append(member)
            await self._save(uow, workspace)

            if self._activity:
                await self._activity.log(
                    uow=uow,
                    workspace_id=workspace_id,
                    actor_id=user_id,
                    action=Actions.MEMBER_ADDED,
                    entity_type="member",
                    entity_id=target_user_id,
                    summary=f"added a {role.label}",
                    metadata={"role": role.label},
                )

            await uow.commit()
            return member

    async def update_member_role(
        self,
        workspace_id: UUID,
        user_id: UUID,
        target_user_id: UUID,
        role: WorkspaceRole,
    ) -> WorkspaceMember:
        """Change a member's role. Requires manage-roles.

        The owner's own membership is immutable. Granting ``owner`` is the
        owner's prerogative and transfers ownership; anyone else gets
        InvalidRoleAssignmentError. The override bag is reset to the new
        role's defaults.
        """
        async with self._uow_factory() as uow:
            workspace = await self._load(uow, workspace_id)
            actor_role = self._actor_role(workspace, user_id)
            target = self._target_member(workspace, target_user_id)

            if not can_assign_role(actor_role, role):
                raise InvalidRoleAssignmentError(role.label, actor_role.label)
            permissions.require(
                workspace, user_id, Capability.MANAGE_ROLES, target_role=max(target.role, role)
            )
            self._require_outranks(actor_role, target, Capability.MANAGE_ROLES)

            old_role = target.role
            if role == WorkspaceRole.OWNER:
                self._swap_owner(workspace, target)
            else:
                target.role = role
                target.permissions = default_permissions(role)
            await self._save(uow, workspace)

            if self._activity:
                action = (
                    Actions.MEMBER_OWNERSHIP_TRANSFERRED
                    if role == WorkspaceRole.OWNER
                    else Actions.MEMBER_ROLE_CHANGED
                )
                await self._activity.log(
                    uow=uow,
                    workspace_id=workspace_id,
                    actor_id=user_id,
                    action=action,
                    entity_type="member",
                    entity_id=target_user_id,
                    summary=f"changed a member's role from {old_role.label} to {role.label}",
                    changes={"role": {"old": old_role.label, "new": role.label}},
                )

            await uow.commit()
            return target

    async def update_member_permissions(
        self,
        workspace_id: UUID,
        user_id: UUID,
        target_user_id: UUID,
        overrides: dict[str, bool],
    ) -> WorkspaceMember:
        """Merge permission override flags into a member's bag. Requires manage-roles."""
        async with self._uow_factory() as uow:
            workspace = await self._load(uow, workspace_id)
            actor_role = self._actor_role(workspace, user_id)
            target = self._target_member(workspace, target_user_id)

            permissions.require(
                workspace, user_id, Capability.MANAGE_ROLES, target_role=target.role
            )
            self._require_outranks(actor_role, target, Capability.MANAGE_ROLES)

            if actor_role != WorkspaceRole.OWNER:
                reserved = sorted(OWNER_GRANTED_FLAGS & {k for k, v in overrides.items() if v})
                if reserved:
                    raise InsufficientPermissionsError(
                        reserved[0].replace("_", "-"), actor_role.label
                    )

            try:
                new_permissions = target.permissions.merged(overrides)
            except KeyError as exc:
                raise ValidationError(
                    "Unknown permission flag", details={"unknown": str(exc.args[0])}
                ) from exc

            old = target.permissions.as_dict()
            target.permissions = new_permissions
            await self._save(uow, workspace)

            if self._activity:
                changes = ActivityService.compute_diff(old, new_permissions.as_dict())
                if changes:
                    await self._activity.log(
                        uow=uow,
                        workspace_id=workspace_id,
                        actor_id=user_id,
                        action=Actions.MEMBER_PERMISSIONS_CHANGED,
                        entity_type="member",
                        entity_id=target_user_id,
                        summary="updated a member's permissions",
                        changes=changes,
                    )

            await uow.commit()
            return target

    async def update_member_status(
        self,
        workspace_id: UUID,
        user_id: UUID,
        target_user_id: UUID,
        is_active: bool,
    ) -> WorkspaceMember:
        """Activate or deactivate a member. Requires remove-members."""
        async with self._uow_factory() as uow:
            workspace = await self._load(uow, workspace_id)
            actor_role = self._actor_role(workspace, user_id)
            target = self._target_member(workspace, target_user_id)

            permissions.require(workspace, user_id, Capability.REMOVE_MEMBERS)
            self._require_outranks(actor_role, target, Capability.REMOVE_MEMBERS)

            if target.is_active == is_active:
                return target

            target.is_active = is_active
            await self._save(uow, workspace)

            if self._activity:
                await self._activity.log(
                    uow=uow,
                    workspace_id=workspace_id,
                    actor_id=user_id,
                    action=Actions.MEMBER_STATUS_CHANGED,
                    entity_type="member",
                    entity_id=target_user_id,
                    summary=f"{'activated' if is_active else 'deactivated'} a member",
                    changes={"is_active": {"old": not is_active, "new": is_active}},
                )

            await uow.commit()
            return target

    async def remove_member(
        self,
        workspace_id: UUID,
        user_id: UUID,
        target_user_id: UUID,
    ) -> bool:
        """Remove a member, or leave the workspace when removing yourself.

        - The owner can never be removed (transfer ownership first)
        - Any member may leave
        - Otherwise requires remove-members and a strictly higher rank
        """
        async with self._uow_factory() as uow:
            workspace = await self._load(uow, workspace_id)
            actor_role = self._actor_role(workspace, user_id)
            target = self._target_member(workspace, target_user_id)

            is_self_leave = user_id == target_user_id
            if not is_self_leave:
                permissions.require(workspace, user_id, Capability.REMOVE_MEMBERS)
                self._require_outranks(actor_role, target, Capability.REMOVE_MEMBERS)

            workspace.remove_member(target_user_id)
            await self._save(uow, workspace)

            if self._activity:
                action = Actions.MEMBER_LEFT if is_self_leave else Actions.MEMBER_REMOVED
                await self._activity.log(
                    uow=uow,
                    workspace_id=workspace_id,
                    actor_id=user_id,
                    action=action,
                    entity_type="member",
                    entity_id=target_user_id,
                    summary="left the workspace" if is_self_leave else "removed a member",
                    metadata={"role": target.role.label},
                )

            await uow.commit()
            return True

    async def transfer_ownership(
        self,
        workspace_id: UUID,
        current_owner_id: UUID,
        new_owner_id: UUID,
    ) -> Workspace:
        """Hand ownership to an active member. The old owner becomes an admin."""
        async with self._uow_factory() as uow:
            workspace = await self._load(uow, workspace_id)
            actor_role = self._actor_role(workspace, current_owner_id)
            if actor_role != WorkspaceRole.OWNER:
                raise InvalidRoleAssignmentError(WorkspaceRole.OWNER.label, actor_role.label)
            target = self._target_member(workspace, new_owner_id)

            self._swap_owner(workspace, target)
            updated = await self._save(uow, workspace)

            if self._activity:
                await self._activity.log(
                    uow=uow,
                    workspace_id=workspace_id,
                    actor_id=current_owner_id,
                    action=Actions.MEMBER_OWNERSHIP_TRANSFERRED,
                    entity_type="member",
                    entity_id=new_owner_id,
                    summary="transferred workspace ownership",
                    changes={
                        "previous_owner": {"old": str(current_owner_id), "new": "admin"},
                        "new_owner": {"old": str(new_owner_id), "new": "owner"},
                    },
                )

            await uow.commit()
            logger.info(
                "workspace_ownership_transferred",
                workspace_id=str(workspace_id),
                new_owner_id=str(new_owner_id),
            )
            return updated

    async def check_permission(
        self,
        workspace_id: UUID,
        user_id: UUID,
        capability: Capability,
        target_role: WorkspaceRole | None = None,
    ) -> PermissionDecision:
        """Evaluate a capability without raising on denial."""
        async with self._uow_factory() as uow:
            workspace = await uow.workspaces.get(workspace_id)
            if not workspace:
                raise WorkspaceNotFoundError(str(workspace_id))
            return permissions.evaluate(workspace, user_id, capability, target_role)

    # --- Internal helpers ---

    @staticmethod
    async def _load(
        uow: IUnitOfWork, workspace_id: UUID, allow_trashed: bool = False
    ) -> Workspace:
        """Load a workspace and re-assert its invariants."""
        workspace = await uow.workspaces.get(workspace_id)
        if not workspace:
            raise WorkspaceNotFoundError(str(workspace_id))
        if workspace.is_deleted and not allow_trashed:
            raise WorkspaceInTrashError(str(workspace_id))
        ensure_invariants(workspace)
        return workspace

    @staticmethod
    async def _save(uow: IUnitOfWork, workspace: Workspace) -> Workspace:
        ensure_invariants(workspace)
        workspace.updated_at = datetime.utcnow()
        return await uow.workspaces.save(workspace)  # type: ignore[no-any-return]

    @staticmethod
    def _actor_role(workspace: Workspace, user_id: UUID) -> WorkspaceRole:
        if workspace.is_owner(user_id):
            return WorkspaceRole.OWNER
        member = workspace.get_member(user_id)
        if member is None:
            raise NotAMemberError(str(workspace.id))
        return member.role

    @staticmethod
    def _target_member(workspace: Workspace, user_id: UUID) -> WorkspaceMember:
        member = workspace.get_member(user_id)
        if member is None:
            raise MemberNotFoundError(str(user_id))
        if workspace.is_owner(user_id):
            raise OwnerImmutableError()
        return member

    @staticmethod
    def _require_outranks(
        actor_role: WorkspaceRole, target: WorkspaceMember, capability: Capability
    ) -> None:
        """Non-owners may only act on members ranked strictly below them."""
        if actor_role == WorkspaceRole.OWNER:
            return
        if compare_roles(actor_role, target.role) <= 0:
            raise InsufficientPermissionsError(capability.value, actor_role.label)

    @staticmethod
    def _swap_owner(workspace: Workspace, new_owner: WorkspaceMember) -> None:
        if not new_owner.is_active:
            raise ValidationError(
                "New owner must be an active member",
                details={"user_id": str(new_owner.user_id)},
            )
        old_owner = workspace.get_member(workspace.owner_id)
        if old_owner is not None:
            old_owner.role = WorkspaceRole.ADMIN
            old_owner.permissions = default_permissions(WorkspaceRole.ADMIN)
        new_owner.role = WorkspaceRole.OWNER
        new_owner.permissions = MemberPermissions.all_granted()
        workspace.owner_id = new_owner.user_id

    @staticmethod
    def _clean_name(name: str) -> str:
        cleaned = (name or "").strip()
        if not cleaned or len(cleaned) > MAX_NAME_LENGTH:
            raise ValidationError(
                f"Workspace name must be 1-{MAX_NAME_LENGTH} characters",
                details={"field": "name"},
            )
        return cleaned
