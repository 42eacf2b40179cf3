"""Audit trail of workspace, member and invitation changes."""

from collections.abc import Callable
from typing import Any
from uuid import UUID

import structlog

from core.exceptions import WorkspaceNotFoundError
from domain.entities.activity import ActivityLog
from domain.entities.workspace import Capability
from domain.policies import permissions
from domain.repositories.unit_of_work import IUnitOfWork

logger = structlog.get_logger()


class ActivityService:
    """Records activity inside callers' transactions and serves the feeds."""

    def __init__(self, uow_factory: Callable[[], IUnitOfWork]) -> None:
        self._uow_factory = uow_factory

    async def log(
        self,
        *,
        uow: IUnitOfWork,
        workspace_id: UUID,
        actor_id: UUID,
        action: str,
        entity_type: str,
        entity_id: UUID,
        summary: str = "",
        changes: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> ActivityLog:
        """Append an entry to the caller's open unit of work.

        Never commits: the entry lands or rolls back with the change it
        describes.

        Args:
            uow: The caller's active unit of work.
            action: One of the ``Actions`` constants.
            summary: Short human-readable line for feeds.
            changes: Field-level diff, ``{field: {"old": ..., "new": ...}}``.
        """
        entry = await uow.activities.create(
            ActivityLog(
                workspace_id=workspace_id,
                actor_id=actor_id,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                summary=summary,
                changes=changes,
                metadata=metadata,
            )
        )
        logger.debug("activity_recorded", action=action, workspace_id=str(workspace_id))
        return entry  # type: ignore[no-any-return]

    async def get_workspace_activity(
        self,
        workspace_id: UUID,
        user_id: UUID,
        limit: int = 50,
        offset: int = 0,
        entity_type: str | None = None,
    ) -> list[ActivityLog]:
        """Newest-first feed for a workspace. Requires view-team, so inactive
        members can still read it."""
        async with self._uow_factory() as uow:
            await self._check_readable(uow, workspace_id, user_id)
            return await uow.activities.get_for_workspace(  # type: ignore[no-any-return]
                workspace_id, limit=limit, offset=offset, entity_type=entity_type
            )

    async def get_entity_history(
        self,
        workspace_id: UUID,
        user_id: UUID,
        entity_type: str,
        entity_id: UUID,
        limit: int = 50,
    ) -> list[ActivityLog]:
        """History of one member or invitation. Requires view-team."""
        async with self._uow_factory() as uow:
            await self._check_readable(uow, workspace_id, user_id)
            return await uow.activities.get_for_entity(  # type: ignore[no-any-return]
                workspace_id, entity_type, entity_id, limit=limit
            )

    @staticmethod
    async def _check_readable(uow: IUnitOfWork, workspace_id: UUID, user_id: UUID) -> None:
        workspace = await uow.workspaces.get(workspace_id)
        if not workspace:
            raise WorkspaceNotFoundError(str(workspace_id))
        permissions.require(workspace, user_id, Capability.VIEW_TEAM)

    @staticmethod
    def compute_diff(
        old_dict: dict[str, Any], new_dict: dict[str, Any]
    ) -> dict[str, dict[str, Any]]:
        """``{field: {"old": ..., "new": ...}}`` for every field whose value differs.

        A key missing on one side counts as None there.
        """
        keys = list(old_dict) + [k for k in new_dict if k not in old_dict]
        return {
            key: {"old": old_dict.get(key), "new": new_dict.get(key)}
            for key in keys
            if old_dict.get(key) != new_dict.get(key)
        }
