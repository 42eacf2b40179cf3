"""Notification senders: HTTP webhook delivery and a log-only fallback."""

from datetime import datetime
from typing import Any, Optional

import httpx
import structlog

from core.config import settings

logger = structlog.get_logger()


class WebhookNotificationSender:
    """POST each notification as JSON to a configured webhook.

    The receiving service owns templating and email delivery. Failures are
    logged and reported as ``False``, never raised.
    """

    def __init__(
        self,
        webhook_url: str = settings.notification_webhook_url,
        timeout: float = settings.notification_timeout_seconds,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._webhook_url = webhook_url
        self._timeout = timeout
        self._transport = transport

    async def send(self, email: str, template: str, data: dict[str, Any]) -> bool:
        payload = {
            "to": email,
            "template": template,
            "data": data,
            "sent_at": datetime.utcnow().isoformat(),
        }
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(self._webhook_url, json=payload)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning(
                "notification_delivery_failed",
                template=template,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return False

        logger.info("notification_sent", template=template)
        return True


class LoggingNotificationSender:
    """Record notifications in the log instead of delivering them."""

    async def send(self, email: str, template: str, data: dict[str, Any]) -> bool:
        logger.info(
            "notification_logged",
            template=template,
            recipient_domain=email.rpartition("@")[2],
            keys=sorted(data),
        )
        return True


def build_notification_sender(
    webhook_url: str = settings.notification_webhook_url,
) -> WebhookNotificationSender | LoggingNotificationSender:
    """Pick the webhook sender when a URL is configured, else the log-only one."""
    if webhook_url:
        return WebhookNotificationSender(webhook_url=webhook_url)
    return LoggingNotificationSender()
