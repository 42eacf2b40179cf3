"""Workspace repository protocol."""

from typing import Protocol
from uuid import UUID

from domain.entities.workspace import Workspace


class IWorkspaceRepository(Protocol):
    """Repository interface for Workspace aggregates (workspace + members).

    Members are always loaded and saved together with their workspace.
    """

    async def get(self, id: UUID) -> Workspace | None:
        """Get a workspace with its members by ID, trashed or not."""
        ...

    async def get_all_for_user(self, user_id: UUID) -> list[Workspace]:
        """Get all non-trashed workspaces a user is a member of."""
        ...

    async def get_trashed_for_user(self, user_id: UUID) -> list[Workspace]:
        """Get trashed workspaces the user owns or administers."""
        ...

    async def create(self, workspace: Workspace) -> Workspace:
        """Create a new workspace with its initial members."""
        ...

    async def save(self, workspace: Workspace) -> Workspace:
        """Persist workspace fields and members.

        Compare-and-swap on ``workspace.version``; raises
        ConcurrentModificationError if the stored version moved on.
        On success ``workspace.version`` is bumped in place and the same
        entity is returned.
        """
        ...

    async def delete(self, id: UUID) -> bool:
        """Hard-delete a workspace and its members."""
        ...
