"""
PersistenceScheduler tick rules and timing.
"""

import asyncio

import pytest

from netlogger.common.exceptions import ConfigError, ControllerStateError, StoreError
from netlogger.services.capture.aggregator import StateAggregator
from netlogger.services.capture.models import (
    NOT_AVAILABLE,
    DeviceIdentity,
    PositionSnapshot,
    SignalSnapshot,
)
from netlogger.services.capture.persistence import PersistenceScheduler


class FailingStore:
    def append(self, record):
        raise StoreError("disk full", operation="append")


def signal(carrier="Carrier"):
    return SignalSnapshot(carrier_name=carrier, network_type="LTE (4G)", rsrp="-95 dBm")


async def test_tick_skips_until_first_signal(store):
    scheduler = PersistenceScheduler(StateAggregator(), store, 1000)

    assert await scheduler.tick() is None
    assert store.count() == 0
    assert scheduler.get_stats()["skipped_no_signal"] == 1


async def test_tick_appends_snapshot(store):
    aggregator = StateAggregator()
    aggregator.set_device(DeviceIdentity("dev-1", "Acme", "X1"))
    aggregator.merge_signal(signal())
    scheduler = PersistenceScheduler(aggregator, store, 1000)

    record_id = await scheduler.tick()

    [record] = store.recent(1)
    assert record.id == record_id
    assert record.carrier_name == "Carrier"
    assert record.device_id == "dev-1"
    # No position fix yet
    assert record.latitude == NOT_AVAILABLE
    assert record.velocity == NOT_AVAILABLE
    assert record.timestamp.endswith("+00:00")


async def test_tick_uses_latest_position(store):
    aggregator = StateAggregator()
    aggregator.merge_signal(signal())
    aggregator.merge_position(PositionSnapshot("1.000000", "2.000000", "3.60 km/h"))
    scheduler = PersistenceScheduler(aggregator, store, 1000)

    await scheduler.tick()
    [record] = store.recent(1)
    assert (record.latitude, record.longitude, record.velocity) == (
        "1.000000", "2.000000", "3.60 km/h",
    )


async def test_write_failure_drops_tick():
    aggregator = StateAggregator()
    aggregator.merge_signal(signal())
    scheduler = PersistenceScheduler(aggregator, FailingStore(), 1000)

    assert await scheduler.tick() is None
    assert scheduler.get_stats()["dropped_write_failures"] == 1


def test_rejects_non_positive_interval(store):
    with pytest.raises(ConfigError):
        PersistenceScheduler(StateAggregator(), store, 0)

    scheduler = PersistenceScheduler(StateAggregator(), store, 1000)
    with pytest.raises(ConfigError):
        scheduler.set_interval(-5)
    assert scheduler.interval_ms == 1000


async def test_interval_cannot_change_while_running(store):
    scheduler = PersistenceScheduler(StateAggregator(), store, 1000)
    await scheduler.start()
    try:
        with pytest.raises(ControllerStateError):
            scheduler.set_interval(500)
    finally:
        await scheduler.stop()

    scheduler.set_interval(500)
    assert scheduler.interval_ms == 500


async def test_ticks_follow_interval_and_stop_is_final(store):
    aggregator = StateAggregator()
    aggregator.merge_signal(signal())
    scheduler = PersistenceScheduler(aggregator, store, 200)

    await scheduler.start()
    await asyncio.sleep(1.05)
    await scheduler.stop()

    # Ticks at 200, 400, 600, 800 and 1000ms
    assert store.count() == 5

    await asyncio.sleep(0.45)
    assert store.count() == 5
    assert not scheduler.is_running
