"""
Network Availability

Precondition check for sync jobs: is any non-loopback interface up?
"""

import psutil

from netlogger.common.logging_setup import get_service_logger

logger = get_service_logger("sync.network")


def is_network_available() -> bool:
    try:
        stats = psutil.net_if_stats()
    except OSError as e:
        logger.warning(f"Could not read interface stats: {e}")
        return False

    for name, iface in stats.items():
        if name == "lo" or name.startswith("lo"):
            continue
        if iface.isup:
            return True
    return False
