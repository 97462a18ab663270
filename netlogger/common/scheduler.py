"""
Interval Scheduler

Provides ScheduledLoop, a cooperative repeating timer: sleep for one
interval, run the callback, repeat. Invocations never overlap, because the
next sleep only starts once the callback has returned.

The schedule is kept on the monotonic clock and measured from the start
time, not from when the previous callback finished, so slow callbacks do not
push later ticks back. Wall-clock jumps (NTP, suspend) cannot reorder or
burst ticks.

Usage:
    async def my_callback():
        ...

    loop = ScheduledLoop(5.0, my_callback, name="persist")
    await loop.start()
    ...
    await loop.stop()   # returns once the loop task has fully exited
"""

import asyncio
import time
from typing import Callable, Awaitable

from .exceptions import ConfigError, ControllerStateError
from .logging_setup import get_service_logger

logger = get_service_logger("scheduler")


class ScheduledLoop:
    """
    Repeating timer that fires a coroutine every `interval` seconds.

    Attributes:
        interval: The interval in seconds between executions
        callback: Async function to call each interval
        skipped_count: Number of intervals skipped because a callback overran
    """

    def __init__(
        self,
        interval_seconds: float,
        callback: Callable[[], Awaitable[None]],
        name: str = "unnamed",
    ):
        self._interval = self._validate(interval_seconds)
        self.callback = callback
        self.name = name

        self._next_run: float = 0
        self._running = False
        self._task: asyncio.Task | None = None

        # Observability metrics
        self._skipped_count: int = 0
        self._execution_count: int = 0
        self._error_count: int = 0
        self._last_execution_time: float = 0

    @staticmethod
    def _validate(interval_seconds: float) -> float:
        if isinstance(interval_seconds, bool) or not isinstance(interval_seconds, (int, float)):
            raise ConfigError(f"interval must be a number, got {interval_seconds!r}")
        if interval_seconds <= 0:
            raise ConfigError(f"interval must be positive, got {interval_seconds}")
        return float(interval_seconds)

    @property
    def interval(self) -> float:
        return self._interval

    def set_interval(self, interval_seconds: float) -> None:
        """Change the interval. Only allowed while the loop is stopped."""
        if self._running:
            raise ControllerStateError(
                f"cannot change interval of running scheduler '{self.name}'",
                state="running",
            )
        self._interval = self._validate(interval_seconds)

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the scheduled loop in a background task."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._run(), name=f"scheduler:{self.name}")

    async def stop(self) -> None:
        """Stop the loop and wait for its task to finish."""
        self._running = False
        task, self._task = self._task, None
        if task is None:
            return

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        """Sleep-then-act loop."""
        self._next_run = time.monotonic() + self._interval

        while self._running:
            sleep_duration = self._next_run - time.monotonic()
            if sleep_duration > 0:
                try:
                    await asyncio.sleep(sleep_duration)
                except asyncio.CancelledError:
                    break

            if not self._running:
                break

            try:
                start = time.monotonic()
                await self.callback()
                self._last_execution_time = time.monotonic() - start
                self._execution_count += 1
            except Exception as e:
                self._error_count += 1
                logger.error(f"Scheduled callback '{self.name}' error: {e}")

            # Skip missed intervals instead of queueing them up
            now = time.monotonic()
            skipped = 0
            while self._next_run <= now:
                self._next_run += self._interval
                skipped += 1

            # First skip is expected (the one we just executed)
            if skipped > 1:
                self._skipped_count += skipped - 1
                logger.warning(
                    f"Scheduler '{self.name}' skipped {skipped - 1} intervals "
                    f"(execution took {self._last_execution_time:.3f}s)"
                )

    @property
    def skipped_count(self) -> int:
        return self._skipped_count

    @property
    def execution_count(self) -> int:
        """Total number of completed executions."""
        return self._execution_count

    def get_stats(self) -> dict:
        """Get scheduler statistics for observability."""
        return {
            "name": self.name,
            "interval_s": self._interval,
            "running": self._running,
            "execution_count": self._execution_count,
            "error_count": self._error_count,
            "skipped_count": self._skipped_count,
            "last_execution_s": round(self._last_execution_time, 3),
        }
