"""
Simulated sensor sources for running the logger without a modem or GPS.
"""

from .virtual_gps import VirtualGps
from .virtual_modem import VirtualModem

__all__ = ["VirtualGps", "VirtualModem"]
