"""Activity log repository protocol."""

from typing import Protocol
from uuid import UUID

from domain.entities.activity import ActivityLog


class IActivityRepository(Protocol):
    """Append-only store of workspace activity, read newest first."""

    async def create(self, activity: ActivityLog) -> ActivityLog: ...

    async def get_for_workspace(
        self,
        workspace_id: UUID,
        limit: int = 50,
        offset: int = 0,
        entity_type: str | None = None,
    ) -> list[ActivityLog]:
        """Feed for one workspace, optionally narrowed to one entity type."""
        ...

    async def get_for_entity(
        self,
        workspace_id: UUID,
        entity_type: str,
        entity_id: UUID,
        limit: int = 50,
    ) -> list[ActivityLog]:
        """History of one member or invitation within a workspace."""
        ...
