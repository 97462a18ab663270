"""
Common Utilities

Shared modules used across all services:
- config.py - Configuration dataclasses and fixed pipeline constants
- exceptions.py - Custom exception classes
- logging_setup.py - Structured logging setup
- scheduler.py - Cooperative interval timer
- state.py - Persisted file-based state
"""

from .config import (
    AppConfig,
    CaptureSettings,
    StorageSettings,
    RemoteSettings,
    ApiSettings,
    DeviceSettings,
    load_app_config,
    validate_interval_ms,
)
from .exceptions import (
    NetLoggerError,
    ConfigError,
    SamplerUnavailable,
    StoreError,
    SyncError,
    ControllerStateError,
)
from .logging_setup import setup_logging, get_service_logger, configure_service_logs
from .scheduler import ScheduledLoop
from .state import SharedState

__all__ = [
    # Config
    "AppConfig",
    "CaptureSettings",
    "StorageSettings",
    "RemoteSettings",
    "ApiSettings",
    "DeviceSettings",
    "load_app_config",
    "validate_interval_ms",
    # Exceptions
    "NetLoggerError",
    "ConfigError",
    "SamplerUnavailable",
    "StoreError",
    "SyncError",
    "ControllerStateError",
    # Logging
    "setup_logging",
    "get_service_logger",
    "configure_service_logs",
    # Scheduling / state
    "ScheduledLoop",
    "SharedState",
]
