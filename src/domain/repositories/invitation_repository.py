"""Invitation repository protocol."""

from datetime import datetime
from typing import Protocol
from uuid import UUID

from domain.entities.invitation import Invitation, InvitationStatus, LeaderboardEntry


class IInvitationRepository(Protocol):
    """Repository interface for Invitation entities."""

    async def create(self, invitation: Invitation) -> Invitation:
        """Create a new invitation."""
        ...

    async def get_by_id(self, id: UUID) -> Invitation | None:
        """Get an invitation by its primary key."""
        ...

    async def get_by_token_hash(self, token_hash: str) -> Invitation | None:
        """Get an invitation by its hashed token."""
        ...

    async def get_by_referral_code(self, code: str) -> Invitation | None:
        """Get an invitation by its referral code."""
        ...

    async def get_for_workspace(self, workspace_id: UUID) -> list[Invitation]:
        """Get all invitations for a workspace, newest first."""
        ...

    async def get_pending_for_email(self, email: str) -> list[Invitation]:
        """Get invitations for an email still stored as pending (expiry not applied)."""
        ...

    async def get_pending_for_workspace_email(
        self, workspace_id: UUID, email: str
    ) -> list[Invitation]:
        """Get invitations stored as pending for a workspace and email."""
        ...

    async def transition_status(
        self,
        id: UUID,
        new_status: InvitationStatus,
        responded_at: datetime | None = None,
        referral_code: str | None = None,
    ) -> bool:
        """Compare-and-swap ``pending -> new_status``.

        Returns False when the stored status is no longer pending.
        """
        ...

    async def update_engagement(self, invitation: Invitation) -> None:
        """Persist gamification and engagement fields (never status)."""
        ...

    async def increment_clicks(self, token_hash: str, at: datetime) -> bool:
        """Atomically bump the click counter. Returns False for unknown tokens."""
        ...

    async def increment_referral_count(self, id: UUID) -> int:
        """Atomically bump ``referral_count`` and return the new value."""
        ...

    async def count_accepted_by_inviter(self, inviter_id: UUID) -> int:
        """Count accepted invitations sent by a user."""
        ...

    async def referral_code_exists(self, code: str) -> bool:
        """Check whether a referral code is already taken."""
        ...

    async def get_leaderboard(self, limit: int = 10) -> list[LeaderboardEntry]:
        """Aggregate accepted invitations per inviter, best first."""
        ...

    async def expire_old_invitations(self, now: datetime | None = None) -> int:
        """Mark all overdue pending invitations expired. Returns the row count."""
        ...
