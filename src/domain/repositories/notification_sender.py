"""Outbound notification sender protocol."""

from typing import Any, Protocol


class NotificationTemplates:
    """Template names understood by notification senders."""

    INVITATION_CREATED = "invitation_created"
    INVITATION_REMINDER = "invitation_reminder"
    INVITATION_ACCEPTED = "invitation_accepted"
    INVITATION_REJECTED = "invitation_rejected"


class INotificationSender(Protocol):
    """Delivers a templated message to an email address."""

    async def send(self, email: str, template: str, data: dict[str, Any]) -> bool:
        """Send a notification.

        Returns False on delivery failure; implementations must not raise.
        """
        ...
