"""Unit tests for the background invitation expiry sweep."""

import asyncio
import itertools
from unittest.mock import AsyncMock

import pytest

import main


@pytest.mark.asyncio
async def test_sweep_keeps_running_after_failures(monkeypatch: pytest.MonkeyPatch) -> None:
    swept = asyncio.Event()
    outcomes = itertools.chain([RuntimeError("database unavailable")], itertools.repeat(3))

    def expire() -> int:
        outcome = next(outcomes)
        if isinstance(outcome, Exception):
            raise outcome
        swept.set()
        return outcome

    service = AsyncMock()
    service.expire_stale_invitations.side_effect = expire
    monkeypatch.setattr(main, "get_invitation_service", lambda: service)

    task = asyncio.create_task(main.invitation_sweep_loop(0))
    try:
        await asyncio.wait_for(swept.wait(), timeout=1)
    finally:
        task.cancel()

    assert service.expire_stale_invitations.await_count >= 2
