"""
Custom Exception Classes for the Network Stats Logger

Hierarchical exception structure for error handling across services.
"""


class NetLoggerError(Exception):
    """Base exception for all logger errors"""

    def __init__(self, message: str, recoverable: bool = True):
        self.message = message
        self.recoverable = recoverable
        super().__init__(message)


class ConfigError(NetLoggerError):
    """Configuration-related errors (bad interval, bad config file)"""

    def __init__(self, message: str, recoverable: bool = True):
        super().__init__(f"Config Error: {message}", recoverable)


class SamplerUnavailable(NetLoggerError):
    """Sensor data is missing: no data subscription, no registered cell, no fix"""

    def __init__(self, message: str, source: str | None = None):
        self.source = source
        super().__init__(f"Sampler Unavailable: {message}", recoverable=True)


class StoreError(NetLoggerError):
    """Local store write or query failed"""

    def __init__(self, message: str, operation: str | None = None):
        self.operation = operation
        super().__init__(f"Store Error: {message}", recoverable=True)


class SyncError(NetLoggerError):
    """Remote synchronization errors"""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        status_code: int | None = None,
    ):
        self.operation = operation
        self.status_code = status_code
        super().__init__(f"Sync Error: {message}", recoverable=True)


class ControllerStateError(NetLoggerError):
    """Operation not valid in the current lifecycle state"""

    def __init__(self, message: str, state: str | None = None):
        self.state = state
        super().__init__(f"State Error: {message}", recoverable=True)
