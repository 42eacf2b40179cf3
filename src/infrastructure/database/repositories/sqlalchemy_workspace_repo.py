"""SQLAlchemy implementation of Workspace repository."""

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from core.exceptions import ConcurrentModificationError
from domain.entities.workspace import MemberPermissions, Workspace, WorkspaceMember
from domain.policies.roles import normalize_role
from infrastructure.database.models import WorkspaceMemberModel, WorkspaceModel

# Permission flag -> column name
_PERMISSION_COLUMNS = {
    flag: f"can_{flag}" for flag in MemberPermissions().as_dict()
}


class SQLAlchemyWorkspaceRepository:
    """SQLAlchemy implementation of IWorkspaceRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, id: UUID) -> Workspace | None:
        """Get a workspace with its members by ID."""
        model = await self._load(id)
        return self._to_entity(model) if model else None

    async def get_all_for_user(self, user_id: UUID) -> list[Workspace]:
        """Get all non-trashed workspaces a user is a member of."""
        return await self._for_user(user_id, trashed=False)

    async def get_trashed_for_user(self, user_id: UUID) -> list[Workspace]:
        """Get trashed workspaces the user is a member of."""
        return await self._for_user(user_id, trashed=True)

    async def create(self, workspace: Workspace) -> Workspace:
        """Create a new workspace with its members."""
        model = self._to_model(workspace)
        self._session.add(model)
        await self._session.flush()
        return self._to_entity(model)

    async def save(self, workspace: Workspace) -> Workspace:
        """Persist workspace fields and members behind a version check."""
        expected = workspace.version
        stmt = (
            update(WorkspaceModel)
            .where(WorkspaceModel.id == workspace.id, WorkspaceModel.version == expected)
            .values(
                name=workspace.name,
                description=workspace.description,
                owner_id=workspace.owner_id,
                is_deleted=workspace.is_deleted,
                deleted_at=workspace.deleted_at,
                deleted_by=workspace.deleted_by,
                updated_at=workspace.updated_at,
                version=expected + 1,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:  # type: ignore[attr-defined]
            raise ConcurrentModificationError("workspace", str(workspace.id))

        model = await self._load(workspace.id)
        if model is None:
            raise ConcurrentModificationError("workspace", str(workspace.id))
        self._sync_members(model, workspace.members)

        await self._session.flush()
        workspace.version = expected + 1
        return workspace

    async def delete(self, id: UUID) -> bool:
        """Delete a workspace (cascade deletes members)."""
        model = await self._load(id)
        if not model:
            return False

        await self._session.delete(model)
        await self._session.flush()
        return True

    async def _load(self, id: UUID) -> WorkspaceModel | None:
        stmt = (
            select(WorkspaceModel)
            .options(selectinload(WorkspaceModel.members))
            .where(WorkspaceModel.id == id)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def _for_user(self, user_id: UUID, trashed: bool) -> list[Workspace]:
        member_of = select(WorkspaceMemberModel.workspace_id).where(
            WorkspaceMemberModel.user_id == user_id
        )
        stmt = (
            select(WorkspaceModel)
            .options(selectinload(WorkspaceModel.members))
            .where(
                WorkspaceModel.id.in_(member_of),
                WorkspaceModel.is_deleted == trashed,
            )
            .order_by(WorkspaceModel.created_at)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return [self._to_entity(model) for model in result.scalars()]

    def _sync_members(self, model: WorkspaceModel, members: list[WorkspaceMember]) -> None:
        """Make the persisted member rows match the entity's member list."""
        wanted = {m.user_id: m for m in members}
        for row in list(model.members):
            if row.user_id not in wanted:
                model.members.remove(row)
        existing = {row.user_id: row for row in model.members}
        for user_id, member in wanted.items():
            row = existing.get(user_id)
            if row is None:
                model.members.append(self._member_to_model(model.id, member))
            else:
                self._apply_member(row, member)

    @staticmethod
    def _apply_member(row: WorkspaceMemberModel, member: WorkspaceMember) -> None:
        row.role = normalize_role(member.role).label
        row.is_active = member.is_active
        row.invited_by = member.invited_by
        row.invitation_id = member.invitation_id
        for flag, column in _PERMISSION_COLUMNS.items():
            setattr(row, column, getattr(member.permissions, flag))

    def _to_entity(self, model: WorkspaceModel) -> Workspace:
        """Convert ORM model to domain entity."""
        return Workspace(
            id=model.id,
            name=model.name,
            description=model.description,
            owner_id=model.owner_id,
            members=[self._member_to_entity(m) for m in model.members],
            is_deleted=model.is_deleted,
            deleted_at=model.deleted_at,
            deleted_by=model.deleted_by,
            version=model.version,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def _to_model(self, entity: Workspace) -> WorkspaceModel:
        """Convert domain entity to ORM model."""
        return WorkspaceModel(
            id=entity.id,
            name=entity.name,
            description=entity.description,
            owner_id=entity.owner_id,
            is_deleted=entity.is_deleted,
            deleted_at=entity.deleted_at,
            deleted_by=entity.deleted_by,
            version=entity.version,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
            members=[self._member_to_model(entity.id, m) for m in entity.members],
        )

    def _member_to_entity(self, model: WorkspaceMemberModel) -> WorkspaceMember:
        """Convert member ORM model to domain entity. Roles are normalized on load."""
        return WorkspaceMember(
            user_id=model.user_id,
            role=normalize_role(model.role),
            permissions=MemberPermissions(
                **{flag: bool(getattr(model, column)) for flag, column in _PERMISSION_COLUMNS.items()}
            ),
            is_active=model.is_active,
            joined_at=model.joined_at,
            invited_by=model.invited_by,
            invitation_id=model.invitation_id,
        )

    def _member_to_model(self, workspace_id: UUID, entity: WorkspaceMember) -> WorkspaceMemberModel:
        """Convert member domain entity to ORM model."""
        model = WorkspaceMemberModel(
            workspace_id=workspace_id,
            user_id=entity.user_id,
            joined_at=entity.joined_at,
        )
        self._apply_member(model, entity)
        return model
