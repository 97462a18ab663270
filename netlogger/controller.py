"""
Logging Controller

Lifecycle state machine for capture and sync:

    Idle --start(interval_ms)--> Logging --stop()--> Idle

start() captures device identity, starts the sensor channel, both samplers
and the persistence scheduler, and arms the recurring sync job. stop() tears
capture down again and discards the aggregate state. The recurring sync job
stays armed across stop/start so the backlog keeps draining while not
capturing.

The controller state is persisted on every transition; restore() uses it to
resume logging after a process restart.
"""

import asyncio
from enum import Enum

from netlogger.common.config import (
    DEFAULT_INTERVAL_MS,
    DEFAULT_RECENT_LIMIT,
    SYNC_JOB_NAME,
    SYNC_PERIOD_S,
    SYNC_REQUIRES_NETWORK,
    validate_interval_ms,
)
from netlogger.common.exceptions import ControllerStateError
from netlogger.common.logging_setup import get_service_logger
from netlogger.common.state import SharedState
from netlogger.services.capture.aggregator import SensorChannel, StateAggregator
from netlogger.services.capture.models import DeviceIdentity, LogRecord
from netlogger.services.capture.persistence import PersistenceScheduler
from netlogger.services.capture.samplers import LocationSampler, SignalSampler
from netlogger.services.storage.local_db import LocalStore
from netlogger.services.sync.jobs import JobRunner
from netlogger.services.sync.worker import SyncWorker

logger = get_service_logger("controller")


class ControllerState(str, Enum):
    IDLE = "idle"
    LOGGING = "logging"


class LoggingController:
    """
    Supervises samplers, persistence scheduler and sync scheduling.

    Args:
        aggregator: Aggregate state owner
        channel: Sensor channel the samplers publish into
        signal_sampler: Modem sampler
        location_sampler: Position sampler
        store: Local store
        persistence: Persistence scheduler
        job_runner: Background job runner
        sync_worker: Drain job; None when remote sync is not configured
        identity_provider: Returns the device identity captured at start()
        state: Persisted controller state (None = not persisted)
    """

    STATE_KEY = "controller"

    def __init__(
        self,
        aggregator: StateAggregator,
        channel: SensorChannel,
        signal_sampler: SignalSampler,
        location_sampler: LocationSampler,
        store: LocalStore,
        persistence: PersistenceScheduler,
        job_runner: JobRunner,
        sync_worker: SyncWorker | None = None,
        identity_provider=None,
        state: SharedState | None = None,
    ):
        self.aggregator = aggregator
        self.channel = channel
        self.signal_sampler = signal_sampler
        self.location_sampler = location_sampler
        self.store = store
        self.persistence = persistence
        self.job_runner = job_runner
        self.sync_worker = sync_worker
        self.identity_provider = identity_provider or DeviceIdentity
        self.state = state

        self._state = ControllerState.IDLE
        self._transition_lock = asyncio.Lock()

    @property
    def current_state(self) -> ControllerState:
        return self._state

    @property
    def is_logging(self) -> bool:
        return self._state == ControllerState.LOGGING

    async def _run_db(self, func, *args):
        """Run a blocking store method in a thread to avoid blocking the event loop."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)

    # ============================================
    # TRANSITIONS
    # ============================================

    async def start(self, interval_ms: int) -> None:
        """
        Idle -> Logging.

        Raises:
            ConfigError: interval_ms is not a positive integer
            ControllerStateError: Already logging
        """
        async with self._transition_lock:
            if self._state != ControllerState.IDLE:
                raise ControllerStateError("logging already active", state=self._state.value)
            interval_ms = validate_interval_ms(interval_ms)

            self.aggregator.reset()
            self.aggregator.set_device(self.identity_provider())
            self.persistence.set_interval(interval_ms)

            await self.channel.start()
            try:
                self.signal_sampler.start()
                self.location_sampler.start(interval_ms)
                await self.persistence.start()
            except Exception:
                await self._stop_capture()
                raise

            self._arm_sync()

            self._state = ControllerState.LOGGING
            self._persist(interval_ms)
            logger.info(f"Logging started (interval: {interval_ms}ms)")

    async def stop(self) -> None:
        """
        Logging -> Idle. No store writes happen after this returns.

        Raises:
            ControllerStateError: Not logging
        """
        async with self._transition_lock:
            if self._state != ControllerState.LOGGING:
                raise ControllerStateError("logging not active", state=self._state.value)

            await self._stop_capture()

            self._state = ControllerState.IDLE
            self._persist(self.persistence.interval_ms)
            logger.info("Logging stopped")

    async def shutdown(self) -> None:
        """
        Tear capture down for process exit. The persisted state is left
        as is, so restore() resumes logging after the next start.
        """
        async with self._transition_lock:
            if self._state != ControllerState.LOGGING:
                return
            await self._stop_capture()
            self._state = ControllerState.IDLE
            logger.info("Capture stopped for shutdown")

    async def _stop_capture(self) -> None:
        self.signal_sampler.stop()
        self.location_sampler.stop()
        await self.persistence.stop()
        await self.channel.stop()
        self.aggregator.reset()

    def _arm_sync(self) -> None:
        if self.sync_worker is None:
            logger.warning("Remote sync not configured, recurring sync not armed")
            return
        self.job_runner.enqueue_unique_periodic(
            SYNC_JOB_NAME,
            SYNC_PERIOD_S,
            self.sync_worker.run,
            requires_network=SYNC_REQUIRES_NETWORK,
        )

    # ============================================
    # COMMANDS (valid in any state)
    # ============================================

    def trigger_sync_now(self) -> bool:
        """
        Enqueue one ad-hoc sync run.

        Returns:
            False if remote sync is not configured
        """
        if self.sync_worker is None:
            logger.warning("Remote sync not configured, ignoring sync request")
            return False
        self.job_runner.enqueue_once(
            self.sync_worker.run,
            requires_network=SYNC_REQUIRES_NETWORK,
            name="sync-now",
        )
        return True

    async def clear_all(self) -> int:
        """Wipe the local store. Irreversible."""
        deleted = await self._run_db(self.store.clear_all)
        logger.info(f"Cleared local store ({deleted} records)")
        return deleted

    async def export_all(self) -> list[LogRecord]:
        return await self._run_db(self.store.all)

    async def recent(self, n: int = DEFAULT_RECENT_LIMIT) -> list[LogRecord]:
        return await self._run_db(self.store.recent, n)

    async def store_stats(self) -> dict:
        return await self._run_db(self.store.get_stats)

    # ============================================
    # RESTART RECOVERY
    # ============================================

    def _persist(self, interval_ms: int) -> None:
        if self.state is None:
            return
        self.state.write(self.STATE_KEY, {
            "state": self._state.value,
            "interval_ms": interval_ms,
        })

    async def restore(self) -> bool:
        """
        Resume logging if the persisted state says it was active.

        Returns:
            True if logging was resumed
        """
        if self.state is None:
            return False

        if self.sync_worker is not None:
            self.job_runner.restore({SYNC_JOB_NAME: self.sync_worker.run})

        saved = self.state.read(self.STATE_KEY)
        if saved.get("state") != ControllerState.LOGGING.value:
            return False

        interval_ms = saved.get("interval_ms", DEFAULT_INTERVAL_MS)
        logger.info(f"Resuming logging from persisted state (interval: {interval_ms}ms)")
        await self.start(interval_ms)
        return True

    def get_stats(self) -> dict:
        return {
            "state": self._state.value,
            "interval_ms": self.persistence.interval_ms,
            "signal_sampler_active": self.signal_sampler.is_active,
            "location_sampler_active": self.location_sampler.is_active,
            "sync_configured": self.sync_worker is not None,
            "sync_scheduled": self.job_runner.is_scheduled(SYNC_JOB_NAME),
        }
