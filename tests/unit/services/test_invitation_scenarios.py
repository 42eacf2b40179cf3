"""End-to-end invitation flows over the in-memory unit of work."""

import asyncio
import re
from collections.abc import Callable
from datetime import datetime, timedelta
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from core.exceptions import ConcurrentModificationError, InvalidOrExpiredInvitationError
from domain.entities.activity import Actions
from domain.entities.identity import Identity
from domain.entities.invitation import InvitationAction, InvitationStatus, Perk
from domain.entities.workspace import Workspace, WorkspaceRole
from domain.policies.roles import default_permissions
from domain.services.activity_service import ActivityService
from domain.services.invitation_service import InvitationService
from domain.services.referral_service import ReferralService
from domain.services.workspace_service import WorkspaceService
from tests.unit.conftest import (
    MemoryStore,
    MemoryUnitOfWork,
    MemoryWorkspaceRepository,
    make_member,
    make_workspace,
)


@pytest.fixture
def owner() -> Identity:
    return Identity(id=uuid4(), email="alice@example.com", display_name="Alice")


@pytest.fixture
def workspace(store: MemoryStore, owner: Identity) -> Workspace:
    return store.put_workspace(make_workspace(owner.id, name="Design"))


@pytest.fixture
def sender() -> AsyncMock:
    mock = AsyncMock()
    mock.send.return_value = True
    return mock


@pytest.fixture
def service(
    memory_uow_factory: Callable[[], MemoryUnitOfWork], sender: AsyncMock
) -> InvitationService:
    return InvitationService(
        memory_uow_factory,
        activity_service=ActivityService(memory_uow_factory),
        notification_sender=sender,
    )


def person(email: str) -> Identity:
    return Identity(id=uuid4(), email=email)


class TestAcceptFlow:
    @pytest.mark.asyncio
    async def test_invite_then_accept(
        self, service: InvitationService, store: MemoryStore, workspace: Workspace,
        owner: Identity,
    ):
        bob = person("bob@example.com")

        invitation, token = await service.create_invitation(workspace.id, owner, bob.email)
        assert invitation.has_achievement("First Steps")

        result = await service.respond_to_invitation(bob, InvitationAction.ACCEPT, token=token)

        stored_ws = store.workspaces[workspace.id]
        member = stored_ws.get_member(bob.id)
        assert member is not None
        assert member.role == WorkspaceRole.MEMBER
        assert member.permissions == default_permissions(WorkspaceRole.MEMBER)
        assert member.invited_by == owner.id
        assert stored_ws.invariant_violations() == []

        stored_inv = store.invitations[invitation.id]
        assert stored_inv.status == InvitationStatus.ACCEPTED
        assert stored_inv.responded_at is not None
        assert re.fullmatch(r"[0-9A-F]{8}", result.referral_code)
        assert stored_inv.referral_code == result.referral_code

        actions = [a.action for a in store.activities]
        assert actions == [Actions.INVITATION_CREATED, Actions.INVITATION_ACCEPTED]

    @pytest.mark.asyncio
    async def test_second_invitation_skips_first_steps_after_acceptance(
        self, service: InvitationService, workspace: Workspace, owner: Identity,
    ):
        bob = person("bob@example.com")
        _, token = await service.create_invitation(workspace.id, owner, bob.email)
        await service.respond_to_invitation(bob, InvitationAction.ACCEPT, token=token)

        second, _ = await service.create_invitation(workspace.id, owner, "carol@example.com")

        assert second.achievements == []

    @pytest.mark.asyncio
    async def test_accepting_reactivates_an_inactive_member(
        self, service: InvitationService, store: MemoryStore, owner: Identity,
    ):
        bob = person("bob@example.com")
        ws = make_workspace(owner.id)
        ws.members.append(make_member(bob.id, is_active=False))
        store.put_workspace(ws)

        _, token = await service.create_invitation(ws.id, owner, bob.email, role="admin")
        result = await service.respond_to_invitation(bob, InvitationAction.ACCEPT, token=token)

        member = store.workspaces[ws.id].get_member(bob.id)
        assert member.is_active
        assert member.role == WorkspaceRole.ADMIN
        assert result.member.role == WorkspaceRole.ADMIN


class TestExpiryAndTerminalStates:
    @pytest.mark.asyncio
    async def test_expired_invitation_is_gone_and_stays_expired(
        self, service: InvitationService, store: MemoryStore, workspace: Workspace,
        owner: Identity,
    ):
        bob = person("bob@example.com")
        invitation, token = await service.create_invitation(workspace.id, owner, bob.email)
        store.invitations[invitation.id].expires_at = datetime.utcnow() - timedelta(seconds=1)

        with pytest.raises(InvalidOrExpiredInvitationError) as exc_info:
            await service.respond_to_invitation(bob, InvitationAction.ACCEPT, token=token)

        assert exc_info.value.status_code == 410
        assert store.invitations[invitation.id].status == InvitationStatus.EXPIRED
        assert store.workspaces[workspace.id].get_member(bob.id) is None

    @pytest.mark.asyncio
    async def test_rejected_invitation_cannot_be_accepted(
        self, service: InvitationService, store: MemoryStore, workspace: Workspace,
        owner: Identity,
    ):
        bob = person("bob@example.com")
        invitation, token = await service.create_invitation(workspace.id, owner, bob.email)

        result = await service.respond_to_invitation(bob, InvitationAction.REJECT, token=token)
        assert result.member is None

        with pytest.raises(InvalidOrExpiredInvitationError):
            await service.respond_to_invitation(bob, InvitationAction.ACCEPT, token=token)
        assert store.invitations[invitation.id].status == InvitationStatus.REJECTED
        assert store.workspaces[workspace.id].get_member(bob.id) is None

    @pytest.mark.asyncio
    async def test_revoked_invitation_frees_the_email(
        self, service: InvitationService, workspace: Workspace, owner: Identity,
    ):
        invitation, _ = await service.create_invitation(workspace.id, owner, "bob@example.com")
        await service.revoke_invitation(workspace.id, invitation.id, owner.id)

        again, _ = await service.create_invitation(workspace.id, owner, "bob@example.com")

        assert again.id != invitation.id

    @pytest.mark.asyncio
    async def test_sweep_expires_overdue(
        self, service: InvitationService, store: MemoryStore, workspace: Workspace,
        owner: Identity,
    ):
        stale, _ = await service.create_invitation(workspace.id, owner, "a@example.com")
        fresh, _ = await service.create_invitation(workspace.id, owner, "b@example.com")
        store.invitations[stale.id].expires_at = datetime.utcnow() - timedelta(hours=1)

        assert await service.expire_stale_invitations() == 1
        assert store.invitations[stale.id].status == InvitationStatus.EXPIRED
        assert store.invitations[fresh.id].status == InvitationStatus.PENDING


class TestResolvePending:
    @pytest.mark.asyncio
    async def test_returns_valid_and_expires_overdue(
        self, service: InvitationService, store: MemoryStore, workspace: Workspace,
        owner: Identity,
    ):
        other = store.put_workspace(make_workspace(owner.id, name="Research"))
        overdue, _ = await service.create_invitation(workspace.id, owner, "bob@example.com")
        valid, _ = await service.create_invitation(other.id, owner, "bob@example.com")
        store.invitations[overdue.id].expires_at = datetime.utcnow() - timedelta(minutes=5)

        resolved = await service.resolve_pending("  Bob@Example.com ")

        assert [inv.id for inv in resolved] == [valid.id]
        assert store.invitations[overdue.id].status == InvitationStatus.EXPIRED
        assert store.invitations[valid.id].status == InvitationStatus.PENDING

    @pytest.mark.asyncio
    async def test_settled_invitations_are_left_alone(
        self, service: InvitationService, store: MemoryStore, workspace: Workspace,
        owner: Identity,
    ):
        bob = person("bob@example.com")
        invitation, token = await service.create_invitation(workspace.id, owner, bob.email)
        await service.respond_to_invitation(bob, InvitationAction.REJECT, token=token)
        store.invitations[invitation.id].expires_at = datetime.utcnow() - timedelta(minutes=5)

        assert await service.resolve_pending(bob.email) == []
        assert store.invitations[invitation.id].status == InvitationStatus.REJECTED


class TestConcurrency:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "actions",
        [
            (InvitationAction.ACCEPT, InvitationAction.ACCEPT),
            (InvitationAction.ACCEPT, InvitationAction.REJECT),
            (InvitationAction.REJECT, InvitationAction.ACCEPT),
        ],
    )
    async def test_token_is_single_use_under_concurrent_responses(
        self, service: InvitationService, store: MemoryStore, workspace: Workspace,
        owner: Identity, actions: tuple[InvitationAction, InvitationAction],
    ):
        bob = person("bob@example.com")
        invitation, token = await service.create_invitation(workspace.id, owner, bob.email)

        results = await asyncio.gather(
            *(service.respond_to_invitation(bob, action, token=token) for action in actions),
            return_exceptions=True,
        )

        errors = [r for r in results if isinstance(r, Exception)]
        successes = [r for r in results if not isinstance(r, Exception)]
        assert len(successes) == 1
        assert len(errors) == 1
        assert isinstance(errors[0], InvalidOrExpiredInvitationError)

        final_status = store.invitations[invitation.id].status
        assert final_status == successes[0].status
        members = [m for m in store.workspaces[workspace.id].members if m.user_id == bob.id]
        assert len(members) == (1 if final_status == InvitationStatus.ACCEPTED else 0)

    @pytest.mark.asyncio
    async def test_failed_membership_write_rolls_back_status(
        self, service: InvitationService, store: MemoryStore, workspace: Workspace,
        owner: Identity, monkeypatch: pytest.MonkeyPatch,
    ):
        bob = person("bob@example.com")
        invitation, token = await service.create_invitation(workspace.id, owner, bob.email)

        async def conflicting_save(self: MemoryWorkspaceRepository, ws: Workspace) -> Workspace:
            raise ConcurrentModificationError("workspace", str(ws.id))

        monkeypatch.setattr(MemoryWorkspaceRepository, "save", conflicting_save)

        with pytest.raises(ConcurrentModificationError):
            await service.respond_to_invitation(bob, InvitationAction.ACCEPT, token=token)

        stored = store.invitations[invitation.id]
        assert stored.status == InvitationStatus.PENDING
        assert stored.referral_code is None
        assert [a.action for a in store.activities] == [Actions.INVITATION_CREATED]

    @pytest.mark.asyncio
    async def test_concurrent_workspace_edits_conflict(
        self, memory_uow_factory: Callable[[], MemoryUnitOfWork], store: MemoryStore,
        workspace: Workspace, owner: Identity,
    ):
        workspaces = WorkspaceService(memory_uow_factory)

        results = await asyncio.gather(
            workspaces.update(workspace.id, owner.id, name="First"),
            workspaces.update(workspace.id, owner.id, name="Second"),
            return_exceptions=True,
        )

        assert sum(isinstance(r, ConcurrentModificationError) for r in results) == 1
        assert store.workspaces[workspace.id].version == 2


class TestReferrals:
    @pytest.mark.asyncio
    async def test_referral_credit_levels_and_referral_king(
        self, service: InvitationService, memory_uow_factory: Callable[[], MemoryUnitOfWork],
        store: MemoryStore, workspace: Workspace, owner: Identity,
    ):
        bob = person("bob@example.com")
        bob_invite, token = await service.create_invitation(workspace.id, owner, bob.email)
        accepted = await service.respond_to_invitation(bob, InvitationAction.ACCEPT, token=token)
        store.invitations[bob_invite.id].referral_count = 9

        carol = person("carol@example.com")
        carol_invite, carol_token = await service.create_invitation(
            workspace.id, owner, carol.email, referral_code=accepted.referral_code.lower()
        )

        assert carol_invite.referred_by == bob_invite.id
        referrer = store.invitations[bob_invite.id]
        assert referrer.referral_count == 10
        assert referrer.invitation_level == 3
        assert referrer.perks == [Perk.EARLY_ACCESS, Perk.CUSTOM_THEME]
        assert not referrer.has_achievement("Referral King")

        await service.respond_to_invitation(carol, InvitationAction.ACCEPT, token=carol_token)

        assert store.invitations[bob_invite.id].has_achievement("Referral King")

        referrals = ReferralService(memory_uow_factory)
        chain = await referrals.get_referral_chain(carol_invite.id, owner.id)
        assert [inv.id for inv in chain] == [carol_invite.id, bob_invite.id]

        board = await referrals.leaderboard()
        assert len(board) == 1
        assert board[0].user_id == owner.id
        assert board[0].total_referrals == 10
        assert board[0].successful_invites == 2

    @pytest.mark.asyncio
    async def test_pending_referrer_code_is_ignored(
        self, service: InvitationService, store: MemoryStore, workspace: Workspace,
        owner: Identity,
    ):
        first, _ = await service.create_invitation(workspace.id, owner, "bob@example.com")
        store.invitations[first.id].referral_code = "CAFEBABE"

        second, _ = await service.create_invitation(
            workspace.id, owner, "carol@example.com", referral_code="CAFEBABE"
        )

        assert second.referred_by is None
        assert store.invitations[first.id].referral_count == 0


class TestStreaks:
    @pytest.mark.asyncio
    async def test_daily_views_build_a_streak(
        self, service: InvitationService, store: MemoryStore, workspace: Workspace,
        owner: Identity,
    ):
        bob = person("bob@example.com")
        invitation, _ = await service.create_invitation(workspace.id, owner, bob.email)

        for _ in range(7):
            pending = await service.get_user_pending_invitations(bob)

        assert [inv.id for inv in pending] == [invitation.id]
        stored = store.invitations[invitation.id]
        assert stored.streak_count == 7
        assert stored.has_achievement("Streak Master")

    @pytest.mark.asyncio
    async def test_gap_resets_streak(
        self, service: InvitationService, store: MemoryStore, workspace: Workspace,
        owner: Identity,
    ):
        bob = person("bob@example.com")
        invitation, _ = await service.create_invitation(workspace.id, owner, bob.email)
        await service.get_user_pending_invitations(bob)
        await service.get_user_pending_invitations(bob)
        store.invitations[invitation.id].last_active_at = datetime.utcnow() - timedelta(days=2)

        await service.get_user_pending_invitations(bob)

        assert store.invitations[invitation.id].streak_count == 1

    @pytest.mark.asyncio
    async def test_pending_list_drops_expired(
        self, service: InvitationService, store: MemoryStore, workspace: Workspace,
        owner: Identity,
    ):
        bob = person("bob@example.com")
        invitation, _ = await service.create_invitation(workspace.id, owner, bob.email)
        store.invitations[invitation.id].expires_at = datetime.utcnow() - timedelta(seconds=1)

        assert await service.get_user_pending_invitations(bob) == []
        assert store.invitations[invitation.id].status == InvitationStatus.EXPIRED


class TestPreview:
    @pytest.mark.asyncio
    async def test_details_count_clicks(
        self, service: InvitationService, store: MemoryStore, workspace: Workspace,
        owner: Identity,
    ):
        invitation, token = await service.create_invitation(workspace.id, owner, "bob@example.com")

        details = await service.get_invitation_details(token)
        await service.record_click(token)

        assert details.workspace_name == "Design"
        assert details.tier == "bronze"
        assert details.time_remaining > timedelta(days=6)
        assert store.invitations[invitation.id].clicks == 2
