"""
Configuration Dataclasses

Type-safe configuration structures for the logger, loaded from a YAML
file (see main.py) with a few environment-variable overrides.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

from .exceptions import ConfigError

# Fixed pipeline constants
CHUNK_SIZE = 100  # Records per remote batch commit
SYNC_PERIOD_S = 5 * 3600  # Recurring sync every 5 hours
SYNC_REQUIRES_NETWORK = True
SYNC_JOB_NAME = "remote-sync"

# Job-level retry backoff: 30s, doubling, capped at the sync period
RETRY_INITIAL_S = 30.0
RETRY_MAX_S = float(SYNC_PERIOD_S)

DEFAULT_INTERVAL_MS = 5000
DEFAULT_RECENT_LIMIT = 10


def validate_interval_ms(interval_ms) -> int:
    """
    Validate a sampling interval in milliseconds.

    Raises:
        ConfigError: If the value is not a positive integer
    """
    if isinstance(interval_ms, bool):
        raise ConfigError(f"interval_ms must be an integer, got {interval_ms!r}")
    if isinstance(interval_ms, float) and interval_ms.is_integer():
        interval_ms = int(interval_ms)
    if not isinstance(interval_ms, int):
        raise ConfigError(f"interval_ms must be an integer, got {interval_ms!r}")
    if interval_ms <= 0:
        raise ConfigError(f"interval_ms must be positive, got {interval_ms}")
    return interval_ms


@dataclass
class CaptureSettings:
    """Sampling configuration"""
    interval_ms: int = DEFAULT_INTERVAL_MS
    recent_limit: int = DEFAULT_RECENT_LIMIT


@dataclass
class StorageSettings:
    """Local store location"""
    db_path: Path = Path("/var/lib/netlogger/netlogger.db")


@dataclass
class RemoteSettings:
    """Remote sink (Supabase/PostgREST) connection"""
    url: str = ""
    key: str = ""
    table: str = "network_logs"
    timeout_s: float = 30.0

    @property
    def enabled(self) -> bool:
        return bool(self.url and self.key)


@dataclass
class ApiSettings:
    """Command/health HTTP server"""
    host: str = "127.0.0.1"
    port: int = 8090


@dataclass
class DeviceSettings:
    """Optional device identity overrides"""
    id: str | None = None
    make: str | None = None
    model: str | None = None


@dataclass
class AppConfig:
    """Complete logger configuration"""
    capture: CaptureSettings = field(default_factory=CaptureSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)
    remote: RemoteSettings = field(default_factory=RemoteSettings)
    api: ApiSettings = field(default_factory=ApiSettings)
    device: DeviceSettings = field(default_factory=DeviceSettings)
    state_dir: Path = Path("/var/lib/netlogger/state")


def load_app_config(data: dict | None, environ: dict | None = None) -> AppConfig:
    """
    Load AppConfig from a dictionary (e.g., parsed YAML).

    Environment overrides: NETLOGGER_REMOTE_URL, NETLOGGER_REMOTE_KEY,
    NETLOGGER_STATE_DIR.

    Raises:
        ConfigError: If a value has the wrong type or is out of range
    """
    data = data or {}
    env = os.environ if environ is None else environ

    if not isinstance(data, dict):
        raise ConfigError("configuration root must be a mapping")

    capture_data = data.get("capture") or {}
    capture = CaptureSettings(
        interval_ms=validate_interval_ms(capture_data.get("interval_ms", DEFAULT_INTERVAL_MS)),
        recent_limit=int(capture_data.get("recent_limit", DEFAULT_RECENT_LIMIT)),
    )
    if capture.recent_limit <= 0:
        raise ConfigError(f"recent_limit must be positive, got {capture.recent_limit}")

    storage_data = data.get("storage") or {}
    storage = StorageSettings(
        db_path=Path(storage_data.get("db_path", StorageSettings.db_path)),
    )

    remote_data = data.get("remote") or {}
    remote = RemoteSettings(
        url=env.get("NETLOGGER_REMOTE_URL") or remote_data.get("url", ""),
        key=env.get("NETLOGGER_REMOTE_KEY") or remote_data.get("key", ""),
        table=remote_data.get("table", "network_logs"),
        timeout_s=float(remote_data.get("timeout_s", 30.0)),
    )

    api_data = data.get("api") or {}
    api = ApiSettings(
        host=api_data.get("host", "127.0.0.1"),
        port=int(api_data.get("port", 8090)),
    )

    device_data = data.get("device") or {}
    device = DeviceSettings(
        id=device_data.get("id"),
        make=device_data.get("make"),
        model=device_data.get("model"),
    )

    state_data = data.get("state") or {}
    state_dir = Path(
        env.get("NETLOGGER_STATE_DIR")
        or state_data.get("dir", "/var/lib/netlogger/state")
    )

    return AppConfig(
        capture=capture,
        storage=storage,
        remote=remote,
        api=api,
        device=device,
        state_dir=state_dir,
    )
