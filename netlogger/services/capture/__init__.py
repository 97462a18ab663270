"""
Capture Service

Sensor push events -> samplers -> aggregator -> periodic persistence.
"""

from .aggregator import SensorChannel, StateAggregator
from .identity import read_device_identity
from .models import (
    AggregateState,
    CellInfo,
    DataSubscription,
    DeviceIdentity,
    LinkBandwidth,
    LogRecord,
    ModemReport,
    PositionFix,
    PositionSnapshot,
    RadioTech,
    SignalSnapshot,
)
from .persistence import PersistenceScheduler
from .samplers import LocationSampler, SignalSampler, classify, format_position

__all__ = [
    "SensorChannel",
    "StateAggregator",
    "read_device_identity",
    "AggregateState",
    "CellInfo",
    "DataSubscription",
    "DeviceIdentity",
    "LinkBandwidth",
    "LogRecord",
    "ModemReport",
    "PositionFix",
    "PositionSnapshot",
    "RadioTech",
    "SignalSnapshot",
    "PersistenceScheduler",
    "LocationSampler",
    "SignalSampler",
    "classify",
    "format_position",
]
