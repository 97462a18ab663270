"""
Capture Data Model

Immutable snapshots produced by the samplers, the aggregate state they are
merged into, and the LogRecord row that gets persisted.

All field values are preformatted strings ("-95 dBm", "12.50 km/h") with
NOT_AVAILABLE standing in for data the sensors did not provide.
"""

from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any

NOT_AVAILABLE = "N/A"
UNKNOWN = "Unknown"

# Network type labels for the sentinel snapshots
NO_DATA_SIM = "No Data SIM"
NOT_REGISTERED = "Not Registered"


class RadioTech(str, Enum):
    """Radio technology of a cell as reported by the modem watcher"""
    LTE = "lte"
    NR = "nr"
    WCDMA = "wcdma"
    GSM = "gsm"
    OTHER = "other"


@dataclass(frozen=True)
class CellInfo:
    """
    One cell visible to the modem.

    `measurements` holds the raw technology-specific readings keyed by their
    vendor name: rsrp/rsrq/rssnr for LTE, ss_rsrp/ss_rsrq/ss_sinr for NR,
    dbm for WCDMA and GSM.
    """
    tech: RadioTech
    registered: bool = False
    pci: int | None = None
    measurements: dict[str, int] = field(default_factory=dict, hash=False)


@dataclass(frozen=True)
class DataSubscription:
    """The SIM subscription currently selected for data traffic"""
    carrier_name: str
    cells: tuple[CellInfo, ...] = ()


@dataclass(frozen=True)
class LinkBandwidth:
    """Connectivity-layer bandwidth estimate, in kbps"""
    downstream_kbps: int | None = None
    upstream_kbps: int | None = None


@dataclass(frozen=True)
class ModemReport:
    """A modem-state push notification"""
    subscription: DataSubscription | None = None


@dataclass(frozen=True)
class PositionFix:
    """A position-fix push notification"""
    latitude: float
    longitude: float
    speed_mps: float | None = None


@dataclass(frozen=True)
class SignalSnapshot:
    """Classified signal quality of the data-carrying cell"""
    carrier_name: str = NOT_AVAILABLE
    network_type: str = UNKNOWN
    rsrp: str = NOT_AVAILABLE
    rsrq: str = NOT_AVAILABLE
    sinr: str = NOT_AVAILABLE
    pci: str = NOT_AVAILABLE
    downlink_speed: str = NOT_AVAILABLE
    uplink_speed: str = NOT_AVAILABLE


@dataclass(frozen=True)
class PositionSnapshot:
    """Formatted position of the latest fix"""
    latitude: str = NOT_AVAILABLE
    longitude: str = NOT_AVAILABLE
    velocity: str = NOT_AVAILABLE


@dataclass(frozen=True)
class DeviceIdentity:
    id: str = NOT_AVAILABLE
    make: str = NOT_AVAILABLE
    model: str = NOT_AVAILABLE


@dataclass(frozen=True)
class AggregateState:
    """
    Current merged view of all samplers.

    Sub-objects are replaced whole, never edited in place, so any reference
    obtained from the aggregator is a consistent value.
    """
    signal: SignalSnapshot | None = None
    position: PositionSnapshot | None = None
    device: DeviceIdentity = field(default_factory=DeviceIdentity)

    def with_signal(self, signal: SignalSnapshot) -> "AggregateState":
        return replace(self, signal=signal)

    def with_position(self, position: PositionSnapshot) -> "AggregateState":
        return replace(self, position=position)

    def with_device(self, device: DeviceIdentity) -> "AggregateState":
        return replace(self, device=device)

    def to_dict(self) -> dict[str, Any]:
        position = self.position or PositionSnapshot()
        return {
            "signal": _as_dict(self.signal) if self.signal else None,
            "latitude": position.latitude,
            "longitude": position.longitude,
            "velocity": position.velocity,
            "device_id": self.device.id,
            "device_make": self.device.make,
            "device_model": self.device.model,
        }


@dataclass(frozen=True)
class LogRecord:
    """One persisted sample. `id` is assigned by the LocalStore on insert."""
    timestamp: str
    device_id: str
    device_make: str
    device_model: str
    carrier_name: str
    network_type: str
    rsrp: str
    rsrq: str
    sinr: str
    pci: str
    downlink_speed: str
    uplink_speed: str
    velocity: str
    latitude: str
    longitude: str
    id: int | None = None

    @classmethod
    def from_state(cls, state: AggregateState, timestamp: str) -> "LogRecord":
        """
        Build a record from an aggregate snapshot.

        Raises:
            ValueError: If the snapshot has no signal yet
        """
        signal = state.signal
        if signal is None:
            raise ValueError("cannot build a LogRecord without a signal snapshot")
        position = state.position or PositionSnapshot()
        return cls(
            timestamp=timestamp,
            device_id=state.device.id,
            device_make=state.device.make,
            device_model=state.device.model,
            carrier_name=signal.carrier_name,
            network_type=signal.network_type,
            rsrp=signal.rsrp,
            rsrq=signal.rsrq,
            sinr=signal.sinr,
            pci=signal.pci,
            downlink_speed=signal.downlink_speed,
            uplink_speed=signal.uplink_speed,
            velocity=position.velocity,
            latitude=position.latitude,
            longitude=position.longitude,
        )

    @classmethod
    def from_row(cls, row) -> "LogRecord":
        """Build a record from a sqlite3.Row or dict"""
        return cls(**{f.name: row[f.name] for f in fields(cls)})

    def to_dict(self) -> dict[str, Any]:
        return _as_dict(self)

    def to_document(self) -> dict[str, Any]:
        """Remote document: every field except the local surrogate id"""
        document = _as_dict(self)
        document.pop("id")
        return document


# Column order shared by the store schema and inserts
RECORD_COLUMNS = tuple(f.name for f in fields(LogRecord) if f.name != "id")


def _as_dict(obj) -> dict[str, Any]:
    return {f.name: getattr(obj, f.name) for f in fields(obj)}
