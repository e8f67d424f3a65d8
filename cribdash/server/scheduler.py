"""
Refresh scheduler: keeps widget refresh tasks live on a timer + resize cadence.

Each registered task runs once immediately, again on every viewport
resize, and again every interval until the scheduler stops. Every
invocation is its own asyncio task, so invocations of one widget may
overlap while waiting on their fetch; widgets guard against that
themselves. A failing invocation is logged and never unregisters the
task or stops its timer.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Set

logger = logging.getLogger("cribdash.scheduler")

RefreshTask = Callable[[], Awaitable[None]]


def _task_name(task: RefreshTask) -> str:
    owner = getattr(task, "__self__", None)
    if owner is not None and hasattr(owner, "name"):
        return owner.name
    return getattr(task, "__qualname__", repr(task))


class ResizeSignal:
    """Process-wide 'viewport resized' signal with isolated subscribers."""

    def __init__(self):
        self._subscribers: List[Callable[[], None]] = []

    def subscribe(self, callback: Callable[[], None]):
        self._subscribers.append(callback)

    def fire(self):
        for callback in list(self._subscribers):
            try:
                callback()
            except Exception:
                logger.exception("Resize subscriber %r failed", callback)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)


class RefreshScheduler:
    """Drives independent refresh tasks. Must be used inside a running loop."""

    def __init__(self, resize_signal: Optional[ResizeSignal] = None):
        self.resize_signal = resize_signal or ResizeSignal()
        self.tasks: List[RefreshTask] = []
        self._stop = asyncio.Event()
        self._timers: List[asyncio.Task] = []
        self._in_flight: Set[asyncio.Task] = set()

    def register(self, task: RefreshTask, interval_ms: float):
        """Run `task` now, on every resize, and every `interval_ms`."""
        self.tasks.append(task)
        self.trigger(task)
        self.resize_signal.subscribe(lambda: self.trigger(task))
        timer = asyncio.create_task(self._run_timer(task, interval_ms / 1000.0))
        self._timers.append(timer)

    def trigger(self, task: RefreshTask) -> Optional[asyncio.Task]:
        """Start one invocation of `task` without waiting for it."""
        if self._stop.is_set():
            return None
        invocation = asyncio.create_task(self._invoke(task))
        self._in_flight.add(invocation)
        invocation.add_done_callback(self._in_flight.discard)
        return invocation

    async def _invoke(self, task: RefreshTask):
        try:
            await task()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Refresh task %s failed", _task_name(task))

    async def _run_timer(self, task: RefreshTask, interval: float):
        while not self._stop.is_set():
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=interval)
                break  # stop was set
            except asyncio.TimeoutError:
                self.trigger(task)

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    async def stop(self):
        """Stop all timers and cancel invocations still running."""
        self._stop.set()
        pending = self._timers + list(self._in_flight)
        for t in pending:
            t.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        self._timers.clear()
