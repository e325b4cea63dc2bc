"""Connection health monitor (core domain).

Two periodic observers read counters that the ingestion path writes:

- ProgressReporter: dial attempts while the client is still negotiating,
  with a single advisory warning when nothing moves for six ticks.
- HeartbeatReporter: uptime and cumulative dispatched updates.

Both are telemetry only. They never touch the client and stop when their
stop event is set.
"""

from __future__ import annotations

import abc
import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

LOGGER = logging.getLogger(__name__)

PROGRESS_INTERVAL = 5.0
HEARTBEAT_INTERVAL = 30.0
STALL_TICKS = 6

Clock = Callable[[], float]


@dataclass(frozen=True)
class MonitorSnapshot:
    dial_attempts: int
    dispatch_count: int
    last_progress_at: Optional[float]


class MonitorState:
    """Monotonic counters shared between the ingestion path and the monitors."""

    def __init__(self, clock: Clock = time.monotonic) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._dial_attempts = 0
        self._dispatch_count = 0
        self._last_progress_at: Optional[float] = None

    def record_dial(self) -> int:
        with self._lock:
            self._dial_attempts += 1
            self._last_progress_at = self._clock()
            return self._dial_attempts

    def record_dispatch(self) -> int:
        with self._lock:
            self._dispatch_count += 1
            self._last_progress_at = self._clock()
            return self._dispatch_count

    @property
    def dial_attempts(self) -> int:
        with self._lock:
            return self._dial_attempts

    @property
    def dispatch_count(self) -> int:
        with self._lock:
            return self._dispatch_count

    def snapshot(self) -> MonitorSnapshot:
        with self._lock:
            return MonitorSnapshot(self._dial_attempts, self._dispatch_count, self._last_progress_at)


def _format_elapsed(seconds: float) -> str:
    minutes, secs = divmod(int(round(seconds)), 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h{minutes:02d}m{secs:02d}s"
    if minutes:
        return f"{minutes}m{secs:02d}s"
    return f"{secs}s"


class _PeriodicReporter(abc.ABC):
    def __init__(self, state: MonitorState, interval: float, clock: Clock) -> None:
        self._state = state
        self._interval = interval
        self._clock = clock
        self._started_at = clock()

    @abc.abstractmethod
    def tick(self) -> object:
        """Take one observation and log it."""

    async def run(self, stop: asyncio.Event) -> None:
        """Tick every interval until ``stop`` is set."""

        while not stop.is_set():
            try:
                await asyncio.wait_for(stop.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                self.tick()


class ProgressReporter(_PeriodicReporter):
    """Reports dial progress and warns once when the dial count stalls."""

    def __init__(
        self,
        state: MonitorState,
        interval: float = PROGRESS_INTERVAL,
        stall_ticks: int = STALL_TICKS,
        clock: Clock = time.monotonic,
    ) -> None:
        super().__init__(state, interval, clock)
        self._stall_ticks = stall_ticks
        self._last_dial_attempts = state.dial_attempts
        self.no_progress_ticks = 0

    def tick(self) -> bool:
        """Run one observation; return True when this tick raised the stall warning."""

        dial_attempts = self._state.dial_attempts
        elapsed = _format_elapsed(self._clock() - self._started_at)
        LOGGER.info("Waiting for connection (elapsed: %s, dial attempts: %s)", elapsed, dial_attempts)

        stalled = False
        if dial_attempts == self._last_dial_attempts:
            self.no_progress_ticks += 1
            # Equality, not >=: warn once per stall, not on every later tick.
            if self.no_progress_ticks == self._stall_ticks:
                stalled = True
                LOGGER.warning(
                    "No connection progress for %s ticks. Consider stopping with Ctrl+C, "
                    "removing the session file and starting again, or checking the proxy.",
                    self.no_progress_ticks,
                )
        else:
            self.no_progress_ticks = 0
        self._last_dial_attempts = dial_attempts
        return stalled


class HeartbeatReporter(_PeriodicReporter):
    """Reports uptime and how many message updates were dispatched."""

    def __init__(
        self,
        state: MonitorState,
        interval: float = HEARTBEAT_INTERVAL,
        clock: Clock = time.monotonic,
    ) -> None:
        super().__init__(state, interval, clock)

    def tick(self) -> MonitorSnapshot:
        snapshot = self._state.snapshot()
        uptime = _format_elapsed(self._clock() - self._started_at)
        LOGGER.info("Uptime: %s | messages: %s", uptime, snapshot.dispatch_count)
        return snapshot
