"""Gamification engine: tiers, perks, levels, achievements and streaks.

Catalogs are immutable module-level data; every function here is pure
apart from mutating the invitation it is handed.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from types import MappingProxyType

from domain.entities.invitation import Achievement, Invitation, Perk

MAX_LEVEL = 5
DEFAULT_STREAK_WINDOW = timedelta(hours=24)

# Level at which each perk unlocks
PERK_UNLOCK_LEVELS = MappingProxyType(
    {
        Perk.EARLY_ACCESS: 2,
        Perk.CUSTOM_THEME: 3,
        Perk.PRIORITY_SUPPORT: 4,
        Perk.BETA_FEATURES: 4,
        Perk.CUSTOM_EMOJI: 5,
    }
)

# Perks every new invitation starts with
INITIAL_PERKS: tuple[Perk, ...] = (Perk.EARLY_ACCESS,)


@dataclass(frozen=True)
class AchievementSpec:
    name: str
    icon: str
    description: str
    threshold: int


class AchievementKind(Enum):
    """Catalog of achievements an invitation can unlock."""

    FIRST_STEPS = AchievementSpec("First Steps", "🌟", "Sent your first workspace invitation", 0)
    POWER_INVITER = AchievementSpec("Power Inviter", "⚡", "Successfully invited 5 members", 5)
    STREAK_MASTER = AchievementSpec("Streak Master", "🔥", "Maintained a 7-day activity streak", 7)
    REFERRAL_KING = AchievementSpec("Referral King", "👑", "Generated 10 successful referrals", 10)

    @property
    def title(self) -> str:
        return self.value.name

    @property
    def icon(self) -> str:
        return self.value.icon

    @property
    def threshold(self) -> int:
        return self.value.threshold


def tier(perks_count: int) -> str:
    """Map a perk count to a display tier."""
    if perks_count >= 4:
        return "diamond"
    if perks_count == 3:
        return "gold"
    if perks_count == 2:
        return "silver"
    return "bronze"


def compute_level(referral_count: int, streak_count: int) -> int:
    """Level from referrals and streak, clamped to 1..5."""
    raw = (max(0, referral_count) * 10 + max(0, streak_count) * 5) // 50 + 1
    return max(1, min(MAX_LEVEL, raw))


def unlock_perks(level: int, current: list[Perk]) -> list[Perk]:
    """Return ``current`` plus every perk unlocked at ``level``.

    Existing perks are kept in order and never removed.
    """
    perks = list(current)
    for perk, required in PERK_UNLOCK_LEVELS.items():
        if level >= required and perk not in perks:
            perks.append(perk)
    return perks


def add_achievement(invitation: Invitation, kind: AchievementKind, now: datetime) -> bool:
    """Append an achievement unless one with the same name exists.

    Returns True if the achievement was added.
    """
    if invitation.has_achievement(kind.title):
        return False
    invitation.achievements.append(Achievement(name=kind.title, icon=kind.icon, unlocked_at=now))
    return True


def touch_streak(
    invitation: Invitation,
    now: datetime,
    window: timedelta = DEFAULT_STREAK_WINDOW,
) -> int:
    """Advance the activity streak and stamp ``last_active_at``.

    The streak resets when the previous activity is older than ``window``.
    """
    if invitation.last_active_at is not None and now - invitation.last_active_at > window:
        invitation.streak_count = 0
    invitation.streak_count += 1
    invitation.last_active_at = now
    return invitation.streak_count


def refresh_progress(invitation: Invitation) -> None:
    """Recompute level from counters and unlock the perks it grants.

    The level always follows the counters, so a corrected or reset counter
    lowers it. Perks already earned are kept.
    """
    invitation.invitation_level = compute_level(invitation.referral_count, invitation.streak_count)
    invitation.perks = unlock_perks(invitation.invitation_level, invitation.perks)
