"""Unit tests for the Invitation entity."""

from datetime import datetime, timedelta
from uuid import uuid4

from domain.entities.invitation import Achievement, Invitation, InvitationStatus
from domain.entities.workspace import WorkspaceRole


def _invitation(**kwargs) -> Invitation:
    return Invitation(
        workspace_id=uuid4(),
        email="invitee@example.com",
        role=WorkspaceRole.MEMBER,
        token_hash="hash",
        invited_by=uuid4(),
        **kwargs,
    )


class TestExpiry:
    def test_default_expiry_is_seven_days(self):
        invitation = _invitation()
        delta = invitation.expires_at - invitation.created_at
        assert timedelta(days=6, hours=23) < delta <= timedelta(days=7, seconds=1)

    def test_expired_at_the_expiry_instant(self):
        now = datetime.utcnow()
        invitation = _invitation(expires_at=now)
        assert invitation.is_expired(now)
        assert not invitation.is_expired(now - timedelta(seconds=1))


class TestResolveExpiry:
    def test_flips_overdue_pending_to_expired(self):
        now = datetime.utcnow()
        invitation = _invitation(expires_at=now - timedelta(days=1))
        assert invitation.resolve_expiry(now) is True
        assert invitation.status == InvitationStatus.EXPIRED

    def test_leaves_valid_pending_alone(self):
        now = datetime.utcnow()
        invitation = _invitation(expires_at=now + timedelta(days=1))
        assert invitation.resolve_expiry(now) is False
        assert invitation.status == InvitationStatus.PENDING

    def test_terminal_statuses_are_untouched(self):
        now = datetime.utcnow()
        invitation = _invitation(
            status=InvitationStatus.ACCEPTED, expires_at=now - timedelta(days=1)
        )
        assert invitation.resolve_expiry(now) is False
        assert invitation.status == InvitationStatus.ACCEPTED


class TestTimeRemaining:
    def test_never_negative(self):
        now = datetime.utcnow()
        invitation = _invitation(expires_at=now - timedelta(hours=1))
        assert invitation.time_remaining(now) == timedelta(0)

    def test_counts_down(self):
        now = datetime.utcnow()
        invitation = _invitation(expires_at=now + timedelta(hours=3))
        assert invitation.time_remaining(now) == timedelta(hours=3)


def test_has_achievement_matches_by_name():
    invitation = _invitation(
        achievements=[Achievement(name="First Steps", icon="🌟", unlocked_at=datetime.utcnow())]
    )
    assert invitation.has_achievement("First Steps")
    assert not invitation.has_achievement("Power Inviter")
