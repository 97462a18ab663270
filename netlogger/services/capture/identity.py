"""
Device Identity

Best-effort id/make/model of the host, with config overrides taking
precedence. Values that cannot be read fall back to "N/A".
"""

import platform
from pathlib import Path

from netlogger.common.config import DeviceSettings

from .models import NOT_AVAILABLE, DeviceIdentity

MACHINE_ID_PATHS = (Path("/etc/machine-id"), Path("/var/lib/dbus/machine-id"))
DMI_DIR = Path("/sys/class/dmi/id")


def _read_first(paths) -> str | None:
    for path in paths:
        try:
            value = Path(path).read_text(encoding="utf-8").strip()
        except OSError:
            continue
        if value:
            return value
    return None


def read_device_identity(settings: DeviceSettings | None = None) -> DeviceIdentity:
    settings = settings or DeviceSettings()

    device_id = settings.id or _read_first(MACHINE_ID_PATHS)
    make = settings.make or _read_first([DMI_DIR / "sys_vendor"])
    model = settings.model or _read_first([DMI_DIR / "product_name"]) or platform.machine()

    return DeviceIdentity(
        id=device_id or NOT_AVAILABLE,
        make=make or NOT_AVAILABLE,
        model=model or NOT_AVAILABLE,
    )
