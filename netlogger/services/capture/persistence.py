"""
Persistence Scheduler

Every interval, snapshot the aggregator and append one LogRecord to the
local store. Ticks before the first signal snapshot are skipped so no
half-initialized rows are written. A failed write drops that tick only.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from netlogger.common.config import DEFAULT_INTERVAL_MS, validate_interval_ms
from netlogger.common.exceptions import StoreError
from netlogger.common.logging_setup import get_service_logger
from netlogger.common.scheduler import ScheduledLoop

from .aggregator import StateAggregator
from .models import LogRecord

if TYPE_CHECKING:
    from netlogger.services.storage.local_db import LocalStore

logger = get_service_logger("capture.persistence")


class PersistenceScheduler:
    """
    Periodic snapshot-and-append task.

    The interval is in milliseconds and can only be changed while stopped.
    stop() returns after any in-flight append has landed, so nothing is
    written to the store once it returns.
    """

    def __init__(
        self,
        aggregator: StateAggregator,
        store: LocalStore,
        interval_ms: int = DEFAULT_INTERVAL_MS,
    ):
        self.aggregator = aggregator
        self.store = store
        self._interval_ms = validate_interval_ms(interval_ms)
        self._loop = ScheduledLoop(self._interval_ms / 1000.0, self.tick, name="persist")

        self._appended = 0
        self._skipped = 0
        self._dropped = 0
        self._last_record_id: int | None = None

    @property
    def interval_ms(self) -> int:
        return self._interval_ms

    @property
    def is_running(self) -> bool:
        return self._loop.is_running

    def set_interval(self, interval_ms: int) -> None:
        """
        Raises:
            ConfigError: Non-positive interval
            ControllerStateError: Scheduler is running
        """
        interval_ms = validate_interval_ms(interval_ms)
        self._loop.set_interval(interval_ms / 1000.0)
        self._interval_ms = interval_ms

    async def start(self) -> None:
        await self._loop.start()
        logger.info(f"Persistence scheduler started (interval: {self._interval_ms}ms)")

    async def stop(self) -> None:
        await self._loop.stop()
        logger.info("Persistence scheduler stopped")

    async def tick(self) -> int | None:
        """
        Persist the current snapshot once.

        Returns:
            The new record id, or None if the tick was skipped or dropped
        """
        state = self.aggregator.snapshot()
        if state.signal is None:
            self._skipped += 1
            logger.debug("No signal snapshot yet, skipping tick")
            return None

        record = LogRecord.from_state(state, datetime.now(timezone.utc).isoformat())

        loop = asyncio.get_running_loop()
        write = loop.run_in_executor(None, self.store.append, record)
        try:
            record_id = await asyncio.shield(write)
        except asyncio.CancelledError:
            # Let an append that already started land before stop() returns
            try:
                await write
            except StoreError as e:
                self._dropped += 1
                logger.warning(f"Dropped sample during stop, local store write failed: {e}")
            raise
        except StoreError as e:
            self._dropped += 1
            logger.warning(f"Dropped sample, local store write failed: {e}")
            return None

        self._appended += 1
        self._last_record_id = record_id
        return record_id

    def get_stats(self) -> dict:
        return {
            **self._loop.get_stats(),
            "interval_ms": self._interval_ms,
            "appended": self._appended,
            "skipped_no_signal": self._skipped,
            "dropped_write_failures": self._dropped,
            "last_record_id": self._last_record_id,
        }
