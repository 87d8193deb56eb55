"""Tests for the event hub and subscription handles."""

from __future__ import annotations

import asyncio
import logging

import pytest

from cutboard_browser.scheduling import AsyncioScheduler, Scheduler
from cutboard_browser.services.events import EventHub


def test_emit_reaches_listeners() -> None:
    hub = EventHub()
    received = []
    hub.listen("export-progress", received.append)

    hub.emit("export-progress", 30)
    hub.emit("other", 99)

    assert received == [30]


def test_release_is_idempotent() -> None:
    hub = EventHub()
    received = []
    subscription = hub.listen("evt", received.append)
    hub.listen("evt", received.append)

    subscription.release()
    subscription.release()
    hub.emit("evt", 1)

    assert not subscription.active
    assert hub.listener_count("evt") == 1
    assert received == [1]


def test_failing_listener_does_not_block_others(caplog) -> None:
    hub = EventHub()
    received = []

    def broken(payload):
        raise RuntimeError("listener bug")

    hub.listen("evt", broken)
    hub.listen("evt", received.append)

    with caplog.at_level(logging.ERROR):
        hub.emit("evt", "x")

    assert received == ["x"]
    assert "Listener for evt raised" in caplog.text


@pytest.mark.asyncio
async def test_asyncio_scheduler_fires_and_stops() -> None:
    scheduler = AsyncioScheduler()
    assert isinstance(scheduler, Scheduler)
    fired = []

    scheduler.set_timer(0.01, lambda: fired.append("a"))
    stopped = scheduler.set_timer(0.01, lambda: fired.append("b"))
    stopped.stop()
    stopped.stop()
    await asyncio.sleep(0.05)

    assert fired == ["a"]
