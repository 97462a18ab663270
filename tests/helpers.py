"""
Test helpers: record factory, fake sink, fake sensor watchers and a
controller wired to them.
"""

import asyncio

from netlogger.common.exceptions import SyncError
from netlogger.controller import LoggingController
from netlogger.services.capture.aggregator import SensorChannel, StateAggregator
from netlogger.services.capture.models import (
    CellInfo,
    DataSubscription,
    DeviceIdentity,
    LogRecord,
    ModemReport,
    RadioTech,
)
from netlogger.services.capture.persistence import PersistenceScheduler
from netlogger.services.capture.samplers import LocationSampler, SignalSampler
from netlogger.services.sync.jobs import JobRunner
from netlogger.services.sync.worker import SyncWorker

DEVICE = DeviceIdentity("dev-1", "Acme", "X1")


def make_record(index: int, **overrides) -> LogRecord:
    values = dict(
        timestamp=f"2026-01-01T00:00:00.{index:06d}+00:00",
        device_id="dev-1",
        device_make="Acme",
        device_model="X1",
        carrier_name="Carrier",
        network_type="LTE (4G)",
        rsrp=f"-{index} dBm",
        rsrq="-10 dB",
        sinr="12 dB",
        pci="42",
        downlink_speed="45 Mbps",
        uplink_speed="12 Mbps",
        velocity="0.00 km/h",
        latitude="N/A",
        longitude="N/A",
    )
    values.update(overrides)
    return LogRecord(**values)


def lte_report(carrier: str = "Carrier", pci: int = 42, **measurements) -> ModemReport:
    measurements = measurements or {"rsrp": -95, "rsrq": -10, "rssnr": 12}
    cell = CellInfo(RadioTech.LTE, registered=True, pci=pci, measurements=measurements)
    return ModemReport(DataSubscription(carrier, (cell,)))


async def wait_for(predicate, timeout: float = 2.0, step: float = 0.01) -> bool:
    """Poll until predicate() is true or the timeout passes"""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if predicate():
            return True
        await asyncio.sleep(step)
    return predicate()


class FakeSubscription:
    def __init__(self):
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeModemWatcher:
    """Captures the sampler callback so tests can push reports by hand"""

    def __init__(self):
        self.callback = None
        self.subscriptions: list[FakeSubscription] = []

    def subscribe(self, callback):
        self.callback = callback
        subscription = FakeSubscription()
        self.subscriptions.append(subscription)
        return subscription

    def push(self, report: ModemReport):
        if self.callback is not None and not self.subscriptions[-1].cancelled:
            self.callback(report)


class FakePositionWatcher:
    def __init__(self):
        self.callback = None
        self.interval_ms = None
        self.subscriptions: list[FakeSubscription] = []

    def subscribe(self, interval_ms, callback):
        self.interval_ms = interval_ms
        self.callback = callback
        subscription = FakeSubscription()
        self.subscriptions.append(subscription)
        return subscription

    def push(self, fix):
        if self.callback is not None and not self.subscriptions[-1].cancelled:
            self.callback(fix)


class FakeSink:
    """
    In-memory remote sink. Call numbers listed in `fail_on` (1-based)
    raise SyncError without storing anything.
    """

    def __init__(self, fail_on=(), delay_s: float = 0.0):
        self.batches: list[list[dict]] = []
        self.calls = 0
        self.fail_on = set(fail_on)
        self.delay_s = delay_s
        self.on_commit = None
        self.in_flight = 0
        self.max_in_flight = 0

    async def commit_batch(self, documents):
        self.calls += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay_s:
                await asyncio.sleep(self.delay_s)
            if self.on_commit is not None:
                self.on_commit(documents)
            if self.calls in self.fail_on:
                raise SyncError("remote unavailable", operation="commit_batch", status_code=503)
            self.batches.append(list(documents))
        finally:
            self.in_flight -= 1

    @property
    def documents(self) -> list[dict]:
        return [doc for batch in self.batches for doc in batch]




class Rig:
    """A LoggingController wired to fake watchers"""

    def __init__(self, store, sink=None, state=None, network=False):
        self.modem = FakeModemWatcher()
        self.gps = FakePositionWatcher()
        self.store = store
        self.aggregator = StateAggregator()
        self.channel = SensorChannel(self.aggregator)
        self.job_runner = JobRunner(
            state=state,
            network_probe=lambda: network,
            network_poll_s=3600,
        )
        self.controller = LoggingController(
            aggregator=self.aggregator,
            channel=self.channel,
            signal_sampler=SignalSampler(self.modem, self.channel),
            location_sampler=LocationSampler(self.gps, self.channel),
            store=store,
            persistence=PersistenceScheduler(self.aggregator, store, 1000),
            job_runner=self.job_runner,
            sync_worker=SyncWorker(store, sink) if sink is not None else None,
            identity_provider=lambda: DEVICE,
            state=state,
        )

    async def close(self):
        await self.controller.shutdown()
        await self.job_runner.shutdown()
