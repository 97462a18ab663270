"""
Job Runner

Runs background jobs under a "network available" precondition, with
job-level retry:

- unique periodic jobs, armed once per name ("keep existing" policy: a
  second enqueue for an armed name is ignored)
- one-time jobs, independent of any periodic schedule

A job is an async callable returning JobResult. RETRY re-runs it after an
exponential backoff. Periodic schedules are persisted so restore() can
re-arm them after a process restart with the remaining delay.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

from netlogger.common.config import RETRY_INITIAL_S, RETRY_MAX_S
from netlogger.common.logging_setup import get_service_logger
from netlogger.common.state import SharedState

from .network import is_network_available
from .worker import JobResult

logger = get_service_logger("sync.jobs")

Job = Callable[[], Awaitable[JobResult]]


@dataclass
class PeriodicJob:
    name: str
    period_s: float
    requires_network: bool
    task: asyncio.Task
    next_run_at: float = 0.0


class JobRunner:
    """
    Asyncio job scheduler with network gating and retry.

    Args:
        state: Where periodic schedules are persisted (None = not persisted)
        network_probe: Returns True when the network precondition holds
        network_poll_s: How often to re-check while waiting for network
        retry_initial_s: First retry delay, doubled per attempt
        retry_max_s: Upper bound for the retry delay
    """

    STATE_KEY = "jobs"

    def __init__(
        self,
        state: SharedState | None = None,
        network_probe: Callable[[], bool] = is_network_available,
        network_poll_s: float = 30.0,
        retry_initial_s: float = RETRY_INITIAL_S,
        retry_max_s: float = RETRY_MAX_S,
    ):
        self.state = state
        self.network_probe = network_probe
        self.network_poll_s = network_poll_s
        self.retry_initial_s = retry_initial_s
        self.retry_max_s = retry_max_s

        self._periodic: dict[str, PeriodicJob] = {}
        self._oneshots: set[asyncio.Task] = set()

        self._runs = 0
        self._retries = 0
        self._last_results: dict[str, str] = {}

    # ============================================
    # SCHEDULING
    # ============================================

    def enqueue_unique_periodic(
        self,
        name: str,
        period_s: float,
        job: Job,
        requires_network: bool = True,
        initial_delay_s: float = 0.0,
    ) -> bool:
        """
        Arm a recurring job unless one with this name is already armed.

        The first run happens after `initial_delay_s`, then every `period_s`.

        Returns:
            True if a new schedule was created, False if the existing one was kept
        """
        existing = self._periodic.get(name)
        if existing is not None and not existing.task.done():
            logger.debug(f"Periodic job '{name}' already scheduled, keeping existing")
            return False

        if period_s <= 0:
            raise ValueError(f"period_s must be positive, got {period_s}")

        task = asyncio.create_task(
            self._periodic_loop(name, period_s, job, requires_network, initial_delay_s),
            name=f"job:{name}",
        )
        self._periodic[name] = PeriodicJob(
            name=name,
            period_s=period_s,
            requires_network=requires_network,
            task=task,
            next_run_at=time.time() + max(0.0, initial_delay_s),
        )
        self._persist()
        logger.info(f"Scheduled periodic job '{name}' every {period_s:.0f}s")
        return True

    def enqueue_once(
        self,
        job: Job,
        requires_network: bool = True,
        name: str = "oneshot",
    ) -> asyncio.Task:
        """Run a job once (with retry), independent of periodic schedules."""
        task = asyncio.create_task(
            self._run_with_retry(name, job, requires_network),
            name=f"job:{name}",
        )
        self._oneshots.add(task)
        task.add_done_callback(self._oneshots.discard)
        logger.info(f"Enqueued one-time job '{name}'")
        return task

    def cancel_unique(self, name: str) -> bool:
        periodic = self._periodic.pop(name, None)
        if periodic is None:
            return False
        periodic.task.cancel()
        self._persist()
        logger.info(f"Cancelled periodic job '{name}'")
        return True

    def is_scheduled(self, name: str) -> bool:
        periodic = self._periodic.get(name)
        return periodic is not None and not periodic.task.done()

    def restore(self, jobs: dict[str, Job]) -> list[str]:
        """
        Re-arm persisted periodic schedules.

        Args:
            jobs: Job callables by schedule name; persisted names without an
                entry here are left alone

        Returns:
            Names that were re-armed
        """
        if self.state is None:
            return []

        restored = []
        now = time.time()
        for name, meta in self.state.read(self.STATE_KEY).items():
            if name.startswith("_") or name not in jobs or not isinstance(meta, dict):
                continue
            delay = max(0.0, float(meta.get("next_run_at", now)) - now)
            created = self.enqueue_unique_periodic(
                name,
                float(meta["period_s"]),
                jobs[name],
                requires_network=bool(meta.get("requires_network", True)),
                initial_delay_s=delay,
            )
            if created:
                restored.append(name)
                logger.info(f"Restored periodic job '{name}' (next run in {delay:.0f}s)")
        return restored

    async def shutdown(self) -> None:
        """
        Cancel all running tasks. Persisted schedules are kept so they
        resume after restart.
        """
        tasks = [p.task for p in self._periodic.values()] + list(self._oneshots)
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._periodic.clear()
        self._oneshots.clear()

    # ============================================
    # EXECUTION
    # ============================================

    async def _wait_for_network(self, name: str) -> None:
        if self.network_probe():
            return
        logger.info(f"Job '{name}' waiting for network")
        while not self.network_probe():
            await asyncio.sleep(self.network_poll_s)

    async def _run_with_retry(self, name: str, job: Job, requires_network: bool) -> JobResult:
        attempt = 0
        while True:
            if requires_network:
                await self._wait_for_network(name)

            self._runs += 1
            try:
                result = await job()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Job '{name}' raised {e.__class__.__name__}: {e}")
                result = JobResult.FAILURE

            self._last_results[name] = result.value
            if result != JobResult.RETRY:
                return result

            delay = min(self.retry_initial_s * (2 ** attempt), self.retry_max_s)
            attempt += 1
            self._retries += 1
            logger.info(f"Job '{name}' asked for retry, attempt {attempt} in {delay:.0f}s")
            await asyncio.sleep(delay)

    async def _periodic_loop(
        self,
        name: str,
        period_s: float,
        job: Job,
        requires_network: bool,
        initial_delay_s: float,
    ) -> None:
        delay = max(0.0, initial_delay_s)
        while True:
            if delay > 0:
                await asyncio.sleep(delay)
            await self._run_with_retry(name, job, requires_network)

            delay = period_s
            periodic = self._periodic.get(name)
            if periodic is not None:
                periodic.next_run_at = time.time() + period_s
                self._persist()

    def _persist(self) -> None:
        if self.state is None:
            return
        self.state.write(self.STATE_KEY, {
            name: {
                "period_s": p.period_s,
                "requires_network": p.requires_network,
                "next_run_at": p.next_run_at,
            }
            for name, p in self._periodic.items()
        })

    def get_stats(self) -> dict:
        return {
            "periodic": {
                name: {
                    "period_s": p.period_s,
                    "requires_network": p.requires_network,
                    "next_run_at": p.next_run_at,
                    "active": not p.task.done(),
                }
                for name, p in self._periodic.items()
            },
            "oneshots_pending": len(self._oneshots),
            "runs": self._runs,
            "retries": self._retries,
            "last_results": dict(self._last_results),
        }
