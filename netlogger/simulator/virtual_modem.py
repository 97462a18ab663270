"""
Virtual Modem

Simulates a cellular modem watcher for running the logger without hardware.
A background thread pushes a ModemReport every `period_s` for one data
subscription whose serving cell wanders around typical LTE or NR values.
Link bandwidth estimates are exposed through `bandwidth()`, matching the
bandwidth probe the signal sampler expects.
"""

import random
import threading
from dataclasses import dataclass
from typing import Callable

from netlogger.common.logging_setup import get_service_logger
from netlogger.services.capture.models import (
    CellInfo,
    DataSubscription,
    LinkBandwidth,
    ModemReport,
    RadioTech,
)

logger = get_service_logger("simulator.modem")


@dataclass
class ModemReadings:
    """Current simulated radio conditions"""
    rsrp: int = -95    # dBm
    rsrq: int = -10    # dB
    sinr: int = 12     # dB
    downstream_kbps: int = 45000
    upstream_kbps: int = 12000


class _ThreadSubscription:
    def __init__(self, thread: threading.Thread, stop_event: threading.Event):
        self._thread = thread
        self._stop_event = stop_event

    def cancel(self) -> None:
        self._stop_event.set()
        if self._thread is not threading.current_thread():
            self._thread.join(timeout=5)


class VirtualModem:
    """
    Simulated modem-state watcher.

    Args:
        carrier_name: Display name of the data subscription
        tech: Serving cell technology (LTE or NR)
        pci: Physical cell id of the serving cell
        period_s: Seconds between notifications
        seed: Random seed for reproducible runs
    """

    def __init__(
        self,
        carrier_name: str = "Virtual Telecom",
        tech: RadioTech = RadioTech.LTE,
        pci: int = 101,
        period_s: float = 1.0,
        seed: int | None = None,
    ):
        self.carrier_name = carrier_name
        self.tech = tech
        self.pci = pci
        self.period_s = period_s
        self.readings = ModemReadings()
        self._random = random.Random(seed)
        self._lock = threading.Lock()

        logger.info(f"Virtual modem initialized ({carrier_name}, {tech.value}, PCI {pci})")

    def _step(self) -> None:
        """Random walk, clamped to plausible ranges"""
        with self._lock:
            r = self.readings
            r.rsrp = max(-140, min(-44, r.rsrp + self._random.randint(-2, 2)))
            r.rsrq = max(-20, min(-3, r.rsrq + self._random.randint(-1, 1)))
            r.sinr = max(-10, min(30, r.sinr + self._random.randint(-1, 1)))
            r.downstream_kbps = max(1000, r.downstream_kbps + self._random.randint(-3000, 3000))
            r.upstream_kbps = max(500, r.upstream_kbps + self._random.randint(-1000, 1000))

    def current_report(self) -> ModemReport:
        with self._lock:
            r = self.readings
            if self.tech == RadioTech.NR:
                measurements = {"ss_rsrp": r.rsrp, "ss_rsrq": r.rsrq, "ss_sinr": r.sinr}
            else:
                measurements = {"rsrp": r.rsrp, "rsrq": r.rsrq, "rssnr": r.sinr}

        serving = CellInfo(self.tech, registered=True, pci=self.pci, measurements=measurements)
        neighbour = CellInfo(self.tech, registered=False, pci=self.pci + 1, measurements={})
        return ModemReport(DataSubscription(self.carrier_name, (neighbour, serving)))

    def bandwidth(self) -> LinkBandwidth:
        with self._lock:
            return LinkBandwidth(self.readings.downstream_kbps, self.readings.upstream_kbps)

    def subscribe(self, callback: Callable[[ModemReport], None]) -> _ThreadSubscription:
        stop_event = threading.Event()

        def run() -> None:
            while not stop_event.wait(self.period_s):
                self._step()
                try:
                    callback(self.current_report())
                except Exception as e:
                    logger.error(f"Modem callback error: {e}")

        thread = threading.Thread(target=run, name="virtual-modem", daemon=True)
        thread.start()
        return _ThreadSubscription(thread, stop_event)
