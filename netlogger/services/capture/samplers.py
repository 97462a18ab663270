"""
Sampler Adapters

Translate push notifications from the modem watcher and the positioning
watcher into SignalSnapshot / PositionSnapshot values and publish them on
the sensor channel. The samplers hold no state beyond their subscription
handles.

Notifications arrive on whatever thread the watcher uses. Handlers only
classify and publish, they never block.
"""

from dataclasses import dataclass
from typing import Callable, Protocol

from netlogger.common.exceptions import SamplerUnavailable
from netlogger.common.logging_setup import get_service_logger

from .models import (
    NOT_AVAILABLE,
    NO_DATA_SIM,
    NOT_REGISTERED,
    CellInfo,
    DataSubscription,
    LinkBandwidth,
    ModemReport,
    PositionFix,
    PositionSnapshot,
    RadioTech,
    SignalSnapshot,
)

logger = get_service_logger("capture.samplers")

MPS_TO_KMH = 3.6


class Subscription(Protocol):
    def cancel(self) -> None: ...


class ModemWatcher(Protocol):
    """Source of modem-state notifications"""

    def subscribe(self, callback: Callable[[ModemReport], None]) -> Subscription: ...


class PositionWatcher(Protocol):
    """Source of periodic position fixes"""

    def subscribe(
        self,
        interval_ms: int,
        callback: Callable[[PositionFix], None],
    ) -> Subscription: ...


class Publisher(Protocol):
    def publish(self, event) -> None: ...


@dataclass(frozen=True)
class TechFields:
    """Which raw measurements fill the power/quality/noise/cell-id slots"""
    label: str
    power: str
    quality: str | None = None
    noise: str | None = None
    has_pci: bool = False


# Per-technology field map. Technologies missing here classify as "Other".
FIELD_MAP: dict[RadioTech, TechFields] = {
    RadioTech.LTE: TechFields("LTE (4G)", power="rsrp", quality="rsrq", noise="rssnr", has_pci=True),
    RadioTech.NR: TechFields("5G NR", power="ss_rsrp", quality="ss_rsrq", noise="ss_sinr", has_pci=True),
    RadioTech.WCDMA: TechFields("WCDMA (3G)", power="dbm"),
    RadioTech.GSM: TechFields("GSM (2G)", power="dbm"),
}
OTHER_LABEL = "Other"


def _measure(cell: CellInfo, key: str | None, unit: str) -> str:
    if key is None:
        return NOT_AVAILABLE
    value = cell.measurements.get(key)
    if value is None:
        return NOT_AVAILABLE
    return f"{value} {unit}"


def format_bandwidth(kbps: int | None) -> str:
    """Bandwidth estimate in whole Mbps (truncated), or N/A"""
    if kbps is None:
        return NOT_AVAILABLE
    return f"{kbps // 1000} Mbps"


def registered_cell(subscription: DataSubscription) -> CellInfo:
    """
    Pick the serving cell of the data subscription.

    Raises:
        SamplerUnavailable: If no visible cell is registered
    """
    for cell in subscription.cells:
        if cell.registered:
            return cell
    raise SamplerUnavailable("no registered cell", source="modem")


def classify(report: ModemReport, bandwidth: LinkBandwidth | None = None) -> SignalSnapshot:
    """
    Classify a modem report into a SignalSnapshot.

    Missing data never raises: no data subscription yields "No Data SIM",
    no registered cell yields "Not Registered", and any individual missing
    measurement is "N/A".
    """
    subscription = report.subscription
    if subscription is None:
        return SignalSnapshot(network_type=NO_DATA_SIM)

    carrier = subscription.carrier_name or NOT_AVAILABLE

    try:
        cell = registered_cell(subscription)
    except SamplerUnavailable:
        return SignalSnapshot(carrier_name=carrier, network_type=NOT_REGISTERED)

    tech = FIELD_MAP.get(cell.tech)
    if tech is None:
        return SignalSnapshot(carrier_name=carrier, network_type=OTHER_LABEL)

    bandwidth = bandwidth or LinkBandwidth()
    pci = str(cell.pci) if tech.has_pci and cell.pci is not None else NOT_AVAILABLE

    return SignalSnapshot(
        carrier_name=carrier,
        network_type=tech.label,
        rsrp=_measure(cell, tech.power, "dBm"),
        rsrq=_measure(cell, tech.quality, "dB"),
        sinr=_measure(cell, tech.noise, "dB"),
        pci=pci,
        downlink_speed=format_bandwidth(bandwidth.downstream_kbps),
        uplink_speed=format_bandwidth(bandwidth.upstream_kbps),
    )


def format_position(fix: PositionFix) -> PositionSnapshot:
    """6-decimal coordinates and km/h speed (0 when the fix has no speed)"""
    speed_kmh = fix.speed_mps * MPS_TO_KMH if fix.speed_mps is not None else 0.0
    return PositionSnapshot(
        latitude=f"{fix.latitude:.6f}",
        longitude=f"{fix.longitude:.6f}",
        velocity=f"{speed_kmh:.2f} km/h",
    )


class SignalSampler:
    """
    Subscribes to modem notifications and publishes classified snapshots.

    Args:
        watcher: Modem-state notification source
        publisher: Where snapshots go (the sensor channel)
        bandwidth_probe: Returns the current link bandwidth estimate, or None
    """

    def __init__(
        self,
        watcher: ModemWatcher,
        publisher: Publisher,
        bandwidth_probe: Callable[[], LinkBandwidth | None] | None = None,
    ):
        self.watcher = watcher
        self.publisher = publisher
        self.bandwidth_probe = bandwidth_probe
        self._subscription: Subscription | None = None

    @property
    def is_active(self) -> bool:
        return self._subscription is not None

    def start(self) -> None:
        if self._subscription is not None:
            return
        self._subscription = self.watcher.subscribe(self.on_report)
        logger.info("Signal sampler subscribed")

    def stop(self) -> None:
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription.cancel()
            logger.info("Signal sampler unsubscribed")

    def _read_bandwidth(self) -> LinkBandwidth | None:
        if self.bandwidth_probe is None:
            return None
        try:
            return self.bandwidth_probe()
        except Exception as e:
            logger.debug(f"Bandwidth probe failed: {e}")
            return None

    def on_report(self, report: ModemReport) -> None:
        """Watcher callback"""
        snapshot = classify(report, self._read_bandwidth())
        self.publisher.publish(snapshot)


class LocationSampler:
    """Subscribes to position fixes and publishes formatted snapshots"""

    def __init__(
        self,
        watcher: PositionWatcher,
        publisher: Publisher,
        interval_ms: int = 5000,
    ):
        self.watcher = watcher
        self.publisher = publisher
        self.interval_ms = interval_ms
        self._subscription: Subscription | None = None

    @property
    def is_active(self) -> bool:
        return self._subscription is not None

    def start(self, interval_ms: int | None = None) -> None:
        if self._subscription is not None:
            return
        if interval_ms is not None:
            self.interval_ms = interval_ms
        self._subscription = self.watcher.subscribe(self.interval_ms, self.on_fix)
        logger.info(f"Location sampler subscribed (interval: {self.interval_ms}ms)")

    def stop(self) -> None:
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription.cancel()
            logger.info("Location sampler unsubscribed")

    def on_fix(self, fix: PositionFix) -> None:
        """Watcher callback"""
        self.publisher.publish(format_position(fix))
