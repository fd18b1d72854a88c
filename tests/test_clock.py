"""Tests for SystemClock and ManualClock."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from pubsub_messaging.clock import Clock, ManualClock, SystemClock


def test_clocks_satisfy_protocol() -> None:
    assert isinstance(SystemClock(), Clock)
    assert isinstance(ManualClock(), Clock)


def test_system_clock_now_is_utc() -> None:
    assert SystemClock().now().tzinfo is timezone.utc


@pytest.mark.asyncio
async def test_system_clock_schedules_without_blocking() -> None:
    clock = SystemClock()
    fired = asyncio.Event()

    async def callback() -> None:
        fired.set()

    clock.schedule(0.01, callback)
    assert clock.pending == 1
    assert not fired.is_set()
    await asyncio.wait_for(fired.wait(), timeout=1.0)
    for _ in range(3):
        await asyncio.sleep(0)
    assert clock.pending == 0


@pytest.mark.asyncio
async def test_system_clock_logs_callback_errors(
    caplog: pytest.LogCaptureFixture,
) -> None:
    clock = SystemClock()
    done = asyncio.Event()

    async def callback() -> None:
        done.set()
        raise RuntimeError("callback bug")

    with caplog.at_level(logging.ERROR, logger="pubsub.clock"):
        clock.schedule(0, callback)
        await done.wait()
        await asyncio.sleep(0)
    assert "Scheduled callback failed" in caplog.text


@pytest.mark.asyncio
async def test_manual_clock_runs_due_callbacks_in_order() -> None:
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    clock = ManualClock(start)
    order: list[str] = []

    def record(label: str) -> Any:
        async def callback() -> None:
            order.append(label)

        return callback

    clock.schedule(2.0, record("late"))
    clock.schedule(1.0, record("early"))
    clock.schedule(1.0, record("early-2"))

    await clock.advance(1.0)
    assert order == ["early", "early-2"]
    assert clock.now() == start + timedelta(seconds=1)
    assert clock.pending == 1

    await clock.advance(5.0)
    assert order == ["early", "early-2", "late"]
    assert clock.now() == start + timedelta(seconds=6)


@pytest.mark.asyncio
async def test_manual_clock_runs_chained_callbacks() -> None:
    clock = ManualClock()
    ticks: list[datetime] = []

    async def tick() -> None:
        ticks.append(clock.now())
        if len(ticks) < 3:
            clock.schedule(1.0, tick)

    clock.schedule(1.0, tick)
    await clock.advance(10.0)
    assert len(ticks) == 3
    assert ticks[2] - ticks[0] == timedelta(seconds=2)
    assert clock.delays == [1.0, 1.0, 1.0]
