"""Shared fixtures for unit tests."""

import asyncio
import copy
from collections.abc import Callable
from datetime import datetime
from typing import Any
from unittest.mock import AsyncMock
from uuid import UUID, uuid4

import pytest

from core.exceptions import ConcurrentModificationError
from domain.entities.activity import ActivityLog
from domain.entities.invitation import Invitation, InvitationStatus, LeaderboardEntry
from domain.entities.workspace import Workspace, WorkspaceMember, WorkspaceRole
from domain.policies.roles import default_permissions


class FakeUnitOfWork:
    """Fake Unit of Work with repository mocks for unit testing."""

    def __init__(self) -> None:
        self.workspaces = AsyncMock()
        self.invitations = AsyncMock()
        self.activities = AsyncMock()
        self.committed = False
        self.rolled_back = False

    async def commit(self) -> None:
        self.committed = True

    async def rollback(self) -> None:
        self.rolled_back = True

    async def __aenter__(self) -> "FakeUnitOfWork":
        return self

    async def __aexit__(self, *args: Any) -> None:
        pass


# --- In-memory store ---


class MemoryStore:
    """Shared state behind MemoryUnitOfWork instances."""

    def __init__(self) -> None:
        self.workspaces: dict[UUID, Workspace] = {}
        self.invitations: dict[UUID, Invitation] = {}
        self.activities: list[ActivityLog] = []

    def put_workspace(self, workspace: Workspace) -> Workspace:
        self.workspaces[workspace.id] = copy.deepcopy(workspace)
        return workspace

    def put_invitation(self, invitation: Invitation) -> Invitation:
        self.invitations[invitation.id] = copy.deepcopy(invitation)
        return invitation


class _Repo:
    def __init__(self, store: MemoryStore, journal: list[Callable[[], None]]) -> None:
        self._store = store
        self._journal = journal

    @staticmethod
    async def _yield() -> None:
        # Let concurrent callers interleave between reads and writes
        await asyncio.sleep(0)


class MemoryWorkspaceRepository(_Repo):
    async def get(self, id: UUID) -> Workspace | None:
        await self._yield()
        workspace = self._store.workspaces.get(id)
        return copy.deepcopy(workspace) if workspace else None

    async def get_all_for_user(self, user_id: UUID) -> list[Workspace]:
        return self._for_user(user_id, trashed=False)

    async def get_trashed_for_user(self, user_id: UUID) -> list[Workspace]:
        return self._for_user(user_id, trashed=True)

    async def create(self, workspace: Workspace) -> Workspace:
        self._store.workspaces[workspace.id] = copy.deepcopy(workspace)
        self._journal.append(lambda: self._store.workspaces.pop(workspace.id, None))
        return workspace

    async def save(self, workspace: Workspace) -> Workspace:
        await self._yield()
        stored = self._store.workspaces.get(workspace.id)
        if stored is None or stored.version != workspace.version:
            raise ConcurrentModificationError("workspace", str(workspace.id))
        saved = copy.deepcopy(workspace)
        saved.version += 1
        self._store.workspaces[workspace.id] = saved
        self._journal.append(lambda: self._store.workspaces.__setitem__(workspace.id, stored))
        workspace.version += 1
        return workspace

    async def delete(self, id: UUID) -> bool:
        stored = self._store.workspaces.pop(id, None)
        if stored is None:
            return False
        self._journal.append(lambda: self._store.workspaces.__setitem__(id, stored))
        return True

    def _for_user(self, user_id: UUID, trashed: bool) -> list[Workspace]:
        return [
            copy.deepcopy(ws)
            for ws in self._store.workspaces.values()
            if ws.is_deleted == trashed and ws.get_member(user_id)
        ]


class MemoryInvitationRepository(_Repo):
    async def create(self, invitation: Invitation) -> Invitation:
        self._store.invitations[invitation.id] = copy.deepcopy(invitation)
        self._journal.append(lambda: self._store.invitations.pop(invitation.id, None))
        return invitation

    async def get_by_id(self, id: UUID) -> Invitation | None:
        await self._yield()
        invitation = self._store.invitations.get(id)
        return copy.deepcopy(invitation) if invitation else None

    async def get_by_token_hash(self, token_hash: str) -> Invitation | None:
        await self._yield()
        return self._first(lambda inv: inv.token_hash == token_hash)

    async def get_by_referral_code(self, code: str) -> Invitation | None:
        return self._first(lambda inv: inv.referral_code == code)

    async def get_for_workspace(self, workspace_id: UUID) -> list[Invitation]:
        found = self._where(lambda inv: inv.workspace_id == workspace_id)
        return sorted(found, key=lambda inv: inv.created_at, reverse=True)

    async def get_pending_for_email(self, email: str) -> list[Invitation]:
        return self._where(
            lambda inv: inv.email == email and inv.status == InvitationStatus.PENDING
        )

    async def get_pending_for_workspace_email(
        self, workspace_id: UUID, email: str
    ) -> list[Invitation]:
        return self._where(
            lambda inv: inv.workspace_id == workspace_id
            and inv.email == email
            and inv.status == InvitationStatus.PENDING
        )

    async def transition_status(
        self,
        id: UUID,
        new_status: InvitationStatus,
        responded_at: datetime | None = None,
        referral_code: str | None = None,
    ) -> bool:
        await self._yield()
        stored = self._store.invitations.get(id)
        if stored is None or stored.status != InvitationStatus.PENDING:
            return False
        self._snapshot(stored)
        stored.status = new_status
        if responded_at is not None:
            stored.responded_at = responded_at
        if referral_code is not None:
            stored.referral_code = referral_code
        return True

    async def update_engagement(self, invitation: Invitation) -> None:
        stored = self._store.invitations.get(invitation.id)
        if stored is None:
            return
        self._snapshot(stored)
        stored.reminders_sent = list(invitation.reminders_sent)
        stored.perks = list(invitation.perks)
        stored.achievements = list(invitation.achievements)
        stored.streak_count = invitation.streak_count
        stored.last_active_at = invitation.last_active_at
        stored.invitation_level = invitation.invitation_level

    async def increment_clicks(self, token_hash: str, at: datetime) -> bool:
        stored = next(
            (inv for inv in self._store.invitations.values() if inv.token_hash == token_hash),
            None,
        )
        if stored is None:
            return False
        self._snapshot(stored)
        stored.clicks += 1
        stored.last_clicked_at = at
        return True

    async def increment_referral_count(self, id: UUID) -> int:
        stored = self._store.invitations[id]
        self._snapshot(stored)
        stored.referral_count += 1
        return stored.referral_count

    async def count_accepted_by_inviter(self, inviter_id: UUID) -> int:
        return len(
            self._where(
                lambda inv: inv.invited_by == inviter_id
                and inv.status == InvitationStatus.ACCEPTED
            )
        )

    async def referral_code_exists(self, code: str) -> bool:
        return self._first(lambda inv: inv.referral_code == code) is not None

    async def get_leaderboard(self, limit: int = 10) -> list[LeaderboardEntry]:
        totals: dict[UUID, list[int]] = {}
        for inv in self._store.invitations.values():
            if inv.status != InvitationStatus.ACCEPTED:
                continue
            row = totals.setdefault(inv.invited_by, [0, 0])
            row[0] += inv.referral_count
            row[1] += 1
        entries = [
            LeaderboardEntry(user_id=user_id, total_referrals=r, successful_invites=s)
            for user_id, (r, s) in totals.items()
        ]
        entries.sort(key=lambda e: (e.total_referrals, e.successful_invites), reverse=True)
        return entries[:limit]

    async def expire_old_invitations(self, now: datetime | None = None) -> int:
        now = now or datetime.utcnow()
        count = 0
        for stored in self._store.invitations.values():
            if stored.status == InvitationStatus.PENDING and stored.expires_at <= now:
                self._snapshot(stored)
                stored.status = InvitationStatus.EXPIRED
                count += 1
        return count

    def _snapshot(self, stored: Invitation) -> None:
        before = copy.deepcopy(stored)
        self._journal.append(lambda: self._store.invitations.__setitem__(before.id, before))

    def _where(self, predicate: Callable[[Invitation], bool]) -> list[Invitation]:
        return [copy.deepcopy(i) for i in self._store.invitations.values() if predicate(i)]

    def _first(self, predicate: Callable[[Invitation], bool]) -> Invitation | None:
        found = self._where(predicate)
        return found[0] if found else None


class MemoryActivityRepository(_Repo):
    async def create(self, activity: ActivityLog) -> ActivityLog:
        self._store.activities.append(activity)
        self._journal.append(lambda: self._store.activities.remove(activity))
        return activity

    async def get_for_workspace(
        self,
        workspace_id: UUID,
        limit: int = 50,
        offset: int = 0,
        entity_type: str | None = None,
    ) -> list[ActivityLog]:
        found = [
            a
            for a in reversed(self._store.activities)
            if a.workspace_id == workspace_id
            and (entity_type is None or a.entity_type == entity_type)
        ]
        return found[offset : offset + limit]

    async def get_for_entity(
        self, workspace_id: UUID, entity_type: str, entity_id: UUID, limit: int = 50
    ) -> list[ActivityLog]:
        found = [
            a
            for a in reversed(self._store.activities)
            if a.workspace_id == workspace_id
            and a.entity_type == entity_type
            and a.entity_id == entity_id
        ]
        return found[:limit]


class MemoryUnitOfWork:
    """Unit of Work over a MemoryStore.

    Writes apply immediately; leaving the context without ``commit()`` undoes
    them, like a session that is closed without committing.
    """

    def __init__(self, store: MemoryStore) -> None:
        self._journal: list[Callable[[], None]] = []
        self.workspaces = MemoryWorkspaceRepository(store, self._journal)
        self.invitations = MemoryInvitationRepository(store, self._journal)
        self.activities = MemoryActivityRepository(store, self._journal)
        self.commits = 0

    async def commit(self) -> None:
        self._journal.clear()
        self.commits += 1

    async def rollback(self) -> None:
        while self._journal:
            self._journal.pop()()

    async def __aenter__(self) -> "MemoryUnitOfWork":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.rollback()


# --- Fixtures ---


@pytest.fixture
def uow() -> FakeUnitOfWork:
    """Create a fresh FakeUnitOfWork."""
    return FakeUnitOfWork()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def memory_uow_factory(store: MemoryStore) -> Callable[[], MemoryUnitOfWork]:
    return lambda: MemoryUnitOfWork(store)


@pytest.fixture
def user_id() -> UUID:
    """A random user ID."""
    return uuid4()


@pytest.fixture
def workspace_id() -> UUID:
    """A random workspace ID."""
    return uuid4()


@pytest.fixture
def actor_id() -> UUID:
    """A random actor ID (distinct from user_id)."""
    return uuid4()


def make_member(user_id: UUID, role: WorkspaceRole = WorkspaceRole.MEMBER, **kwargs: Any) -> WorkspaceMember:
    """Build a member carrying the role's default permissions."""
    return WorkspaceMember(
        user_id=user_id, role=role, permissions=default_permissions(role), **kwargs
    )


def make_workspace(
    owner_id: UUID,
    *members: WorkspaceMember,
    workspace_id: UUID | None = None,
    **kwargs: Any,
) -> Workspace:
    """Build a consistent workspace: the owner plus any extra members."""
    return Workspace(
        id=workspace_id or uuid4(),
        name=kwargs.pop("name", "Test Workspace"),
        owner_id=owner_id,
        members=[make_member(owner_id, WorkspaceRole.OWNER), *members],
        **kwargs,
    )
