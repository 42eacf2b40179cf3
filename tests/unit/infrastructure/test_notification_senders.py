"""Unit tests for the outbound notification senders."""

import json

import httpx
import pytest

from domain.repositories.notification_sender import NotificationTemplates
from infrastructure.notifications.webhook_sender import (
    LoggingNotificationSender,
    WebhookNotificationSender,
    build_notification_sender,
)

WEBHOOK_URL = "https://hooks.example.com/notify"


def _sender(handler) -> WebhookNotificationSender:
    return WebhookNotificationSender(
        webhook_url=WEBHOOK_URL, timeout=1.0, transport=httpx.MockTransport(handler)
    )


class TestWebhookNotificationSender:
    @pytest.mark.asyncio
    async def test_posts_json_payload(self):
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(202)

        delivered = await _sender(handler).send(
            "bob@example.com",
            NotificationTemplates.INVITATION_CREATED,
            {"workspace_name": "Design", "token": "abc"},
        )

        assert delivered is True
        assert len(captured) == 1
        request = captured[0]
        assert request.method == "POST"
        assert str(request.url) == WEBHOOK_URL
        body = json.loads(request.content)
        assert body["to"] == "bob@example.com"
        assert body["template"] == "invitation_created"
        assert body["data"] == {"workspace_name": "Design", "token": "abc"}
        assert "sent_at" in body

    @pytest.mark.asyncio
    async def test_server_error_reports_failure(self):
        sender = _sender(lambda request: httpx.Response(500))

        assert await sender.send("bob@example.com", "invitation_reminder", {}) is False

    @pytest.mark.asyncio
    async def test_transport_error_reports_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        assert await _sender(handler).send("bob@example.com", "invitation_reminder", {}) is False


class TestLoggingNotificationSender:
    @pytest.mark.asyncio
    async def test_always_succeeds(self):
        sender = LoggingNotificationSender()
        assert await sender.send("bob@example.com", "invitation_accepted", {"a": 1}) is True


class TestBuildNotificationSender:
    def test_webhook_when_url_configured(self):
        assert isinstance(build_notification_sender(WEBHOOK_URL), WebhookNotificationSender)

    def test_logging_fallback(self):
        assert isinstance(build_notification_sender(""), LoggingNotificationSender)
