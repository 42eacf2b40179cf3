"""Invitation domain entity."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import StrEnum
from uuid import UUID, uuid4

from domain.entities.workspace import WorkspaceRole


class InvitationStatus(StrEnum):
    """Status of a workspace invitation. Everything but PENDING is terminal."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"
    REVOKED = "revoked"


class InvitationAction(StrEnum):
    """Invitee response to a pending invitation."""

    ACCEPT = "accept"
    REJECT = "reject"


class Perk(StrEnum):
    """Fixed vocabulary of perks an invitation can carry."""

    EARLY_ACCESS = "early_access"
    CUSTOM_THEME = "custom_theme"
    PRIORITY_SUPPORT = "priority_support"
    BETA_FEATURES = "beta_features"
    CUSTOM_EMOJI = "custom_emoji"


@dataclass(frozen=True)
class Achievement:
    """An unlocked achievement. Names are unique within an invitation."""

    name: str
    icon: str
    unlocked_at: datetime


# Default invitation expiry: 7 days
INVITATION_EXPIRY_DAYS = 7


@dataclass
class Invitation:
    """Domain entity for a workspace invitation."""

    workspace_id: UUID
    email: str
    role: WorkspaceRole
    token_hash: str
    invited_by: UUID
    inviter_email: str | None = None
    id: UUID = field(default_factory=uuid4)
    status: InvitationStatus = InvitationStatus.PENDING
    created_at: datetime = field(default_factory=datetime.utcnow)
    expires_at: datetime = field(
        default_factory=lambda: datetime.utcnow() + timedelta(days=INVITATION_EXPIRY_DAYS)
    )
    responded_at: datetime | None = None

    # Engagement tracking
    clicks: int = 0
    last_clicked_at: datetime | None = None
    reminders_sent: list[datetime] = field(default_factory=list)

    # Gamification
    perks: list[Perk] = field(default_factory=list)
    achievements: list[Achievement] = field(default_factory=list)
    streak_count: int = 0
    last_active_at: datetime | None = None
    invitation_level: int = 1

    # Referrals
    referral_code: str | None = None
    referred_by: UUID | None = None
    referral_count: int = 0

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check if the invitation has passed its expiry instant."""
        return (now or datetime.utcnow()) >= self.expires_at

    def resolve_expiry(self, now: datetime | None = None) -> bool:
        """Apply lazy expiry. Returns True if the status flipped to EXPIRED.

        Every read path goes through this so that a pending invitation past
        its expiry is never treated as actionable.
        """
        if self.status == InvitationStatus.PENDING and self.is_expired(now):
            self.status = InvitationStatus.EXPIRED
            return True
        return False

    def time_remaining(self, now: datetime | None = None) -> timedelta:
        return max(timedelta(0), self.expires_at - (now or datetime.utcnow()))

    def has_achievement(self, name: str) -> bool:
        return any(a.name == name for a in self.achievements)


@dataclass(frozen=True)
class LeaderboardEntry:
    """Referral totals for one inviter."""

    user_id: UUID
    total_referrals: int
    successful_invites: int
