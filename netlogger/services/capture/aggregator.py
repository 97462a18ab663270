"""
State Aggregator

Holds the single current AggregateState and the channel the samplers publish
into.

Writers never edit the state in place: every merge builds a new immutable
AggregateState with one sub-object swapped and replaces the reference under
a lock. Readers just take the current reference, which is always a complete
value, so a snapshot can never mix fields from two different signal (or
position) updates.

Samplers do not call merge directly from their callback threads. They
publish onto SensorChannel, which hops the event onto the event loop and
applies it from a single consumer task.
"""

import asyncio
import threading

from netlogger.common.logging_setup import get_service_logger

from .models import AggregateState, DeviceIdentity, PositionSnapshot, SignalSnapshot

logger = get_service_logger("capture.aggregator")


class StateAggregator:
    """Owner of the current AggregateState (copy-on-write)"""

    def __init__(self, initial: AggregateState | None = None):
        self._state = initial or AggregateState()
        self._lock = threading.Lock()
        self._merge_count = 0

    def merge_signal(self, signal: SignalSnapshot) -> None:
        with self._lock:
            self._state = self._state.with_signal(signal)
            self._merge_count += 1

    def merge_position(self, position: PositionSnapshot) -> None:
        with self._lock:
            self._state = self._state.with_position(position)
            self._merge_count += 1

    def set_device(self, device: DeviceIdentity) -> None:
        with self._lock:
            self._state = self._state.with_device(device)

    def apply(self, event) -> None:
        """Merge a published snapshot by its type"""
        if isinstance(event, SignalSnapshot):
            self.merge_signal(event)
        elif isinstance(event, PositionSnapshot):
            self.merge_position(event)
        else:
            logger.warning(f"Ignoring unknown sensor event: {type(event).__name__}")

    def snapshot(self) -> AggregateState:
        """Current state. Immutable, safe to hold onto."""
        return self._state

    def reset(self) -> None:
        """Discard all sampled data (logging stopped)"""
        with self._lock:
            self._state = AggregateState()

    @property
    def merge_count(self) -> int:
        return self._merge_count


class SensorChannel:
    """
    Thread-safe queue from sampler callbacks to the aggregator.

    publish() may be called from any thread. Events are applied in arrival
    order by one task on the event loop. Events published while the channel
    is stopped are dropped.
    """

    def __init__(self, aggregator: StateAggregator):
        self.aggregator = aggregator
        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue: asyncio.Queue | None = None
        self._task: asyncio.Task | None = None
        self._accepting = False
        self._dropped = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None

    async def start(self) -> None:
        if self._task is not None:
            return
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._accepting = True
        self._task = asyncio.create_task(self._pump(), name="sensor-channel")

    async def stop(self) -> None:
        """Stop accepting events and discard anything still queued."""
        self._accepting = False
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._queue = None
        self._loop = None

    def publish(self, event) -> None:
        """Hand an event to the consumer task. Never blocks."""
        loop = self._loop
        if loop is None or not self._accepting:
            self._dropped += 1
            return
        try:
            loop.call_soon_threadsafe(self._enqueue, event)
        except RuntimeError:
            # Loop already closed
            self._dropped += 1

    def _enqueue(self, event) -> None:
        if not self._accepting or self._queue is None:
            self._dropped += 1
            return
        self._queue.put_nowait(event)

    async def drain(self) -> None:
        """Wait until every event queued so far has been applied."""
        if self._queue is not None:
            await self._queue.join()

    async def _pump(self) -> None:
        queue = self._queue
        while True:
            event = await queue.get()
            try:
                self.aggregator.apply(event)
            except Exception as e:
                logger.error(f"Failed to apply sensor event: {e}")
            finally:
                queue.task_done()

    def get_stats(self) -> dict:
        return {
            "running": self.is_running,
            "pending": self._queue.qsize() if self._queue is not None else 0,
            "dropped": self._dropped,
            "merges": self.aggregator.merge_count,
        }
