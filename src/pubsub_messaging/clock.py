"""Clock and timer abstraction used for timestamps and retry scheduling."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine

logger = logging.getLogger("pubsub.clock")


@runtime_checkable
class Clock(Protocol):
    """Port for wall-clock reads and delayed callbacks."""

    def now(self) -> datetime:
        """Return the current wall-clock time (timezone aware)."""
        ...

    def schedule(
        self,
        delay: float,
        callback: Callable[[], Coroutine[Any, Any, None]],
    ) -> None:
        """Run *callback* once, *delay* seconds from now, without blocking."""
        ...


class SystemClock:
    """Real clock backed by ``datetime.now`` and asyncio tasks."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[None]] = set()

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def schedule(
        self,
        delay: float,
        callback: Callable[[], Coroutine[Any, Any, None]],
    ) -> None:
        task = asyncio.get_running_loop().create_task(
            self._run_later(delay, callback)
        )
        # The loop only keeps weak references to tasks.
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @property
    def pending(self) -> int:
        """Number of scheduled callbacks that have not finished yet."""
        return len(self._tasks)

    async def _run_later(
        self,
        delay: float,
        callback: Callable[[], Coroutine[Any, Any, None]],
    ) -> None:
        if delay > 0:
            await asyncio.sleep(delay)
        try:
            await callback()
        except Exception:
            logger.exception("Scheduled callback failed")


class ManualClock:
    """Deterministic clock for tests.

    Time only moves when :meth:`advance` is awaited; due callbacks run inside
    ``advance`` in schedule order, including callbacks scheduled by callbacks
    as long as they fall due before the new time.

    Usage::

        clock = ManualClock()
        policy = RetryPolicy(max_attempts=3, delay=1.0, clock=clock)
        ...
        await clock.advance(1.0)
    """

    def __init__(self, start: datetime | None = None) -> None:
        self._start = start or datetime(2024, 1, 1, tzinfo=timezone.utc)
        self._elapsed = 0.0
        self._seq = 0
        self._pending: list[
            tuple[float, int, Callable[[], Coroutine[Any, Any, None]]]
        ] = []
        self.delays: list[float] = []

    def now(self) -> datetime:
        return self._start + timedelta(seconds=self._elapsed)

    def schedule(
        self,
        delay: float,
        callback: Callable[[], Coroutine[Any, Any, None]],
    ) -> None:
        self._seq += 1
        self.delays.append(delay)
        self._pending.append((self._elapsed + max(0.0, delay), self._seq, callback))

    @property
    def pending(self) -> int:
        """Number of callbacks still waiting for their due time."""
        return len(self._pending)

    async def advance(self, seconds: float) -> None:
        """Move time forward by *seconds* and run every callback that fell due."""
        target = self._elapsed + seconds
        while True:
            due = [entry for entry in self._pending if entry[0] <= target]
            if not due:
                break
            entry = min(due, key=lambda e: (e[0], e[1]))
            self._pending.remove(entry)
            self._elapsed = entry[0]
            await entry[2]()
        self._elapsed = target
