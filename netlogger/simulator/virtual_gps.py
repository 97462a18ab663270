"""
Virtual GPS

Simulates a positioning watcher: a background thread pushes a PositionFix
every requested interval, moving along a fixed bearing at constant speed.
"""

import math
import threading
from typing import Callable

from netlogger.common.logging_setup import get_service_logger
from netlogger.services.capture.models import PositionFix

from .virtual_modem import _ThreadSubscription

logger = get_service_logger("simulator.gps")

EARTH_RADIUS_M = 6_371_000.0


class VirtualGps:
    """
    Simulated position watcher.

    Args:
        latitude: Start latitude (degrees)
        longitude: Start longitude (degrees)
        speed_mps: Ground speed in m/s
        bearing_deg: Direction of travel, degrees clockwise from north
    """

    def __init__(
        self,
        latitude: float = 52.520008,
        longitude: float = 13.404954,
        speed_mps: float = 13.9,
        bearing_deg: float = 45.0,
    ):
        self.latitude = latitude
        self.longitude = longitude
        self.speed_mps = speed_mps
        self.bearing_deg = bearing_deg
        self._lock = threading.Lock()

    def advance(self, seconds: float) -> PositionFix:
        """Move along the bearing and return the new fix"""
        with self._lock:
            distance = self.speed_mps * seconds
            bearing = math.radians(self.bearing_deg)
            d_lat = distance * math.cos(bearing) / EARTH_RADIUS_M
            d_lon = distance * math.sin(bearing) / (
                EARTH_RADIUS_M * math.cos(math.radians(self.latitude))
            )
            self.latitude += math.degrees(d_lat)
            self.longitude += math.degrees(d_lon)
            return PositionFix(self.latitude, self.longitude, self.speed_mps)

    def subscribe(
        self,
        interval_ms: int,
        callback: Callable[[PositionFix], None],
    ) -> _ThreadSubscription:
        stop_event = threading.Event()
        interval_s = interval_ms / 1000.0

        def run() -> None:
            while not stop_event.wait(interval_s):
                try:
                    callback(self.advance(interval_s))
                except Exception as e:
                    logger.error(f"GPS callback error: {e}")

        thread = threading.Thread(target=run, name="virtual-gps", daemon=True)
        thread.start()
        logger.info(f"Virtual GPS started (interval: {interval_ms}ms)")
        return _ThreadSubscription(thread, stop_event)
