"""
Structured Logging Setup

Every component logs through a `netlogger.<service>` logger that writes one
JSON object per line (or a plain line with NETLOGGER_LOG_FORMAT=text).
Service processes log to stdout. netlogger-cli owns stdout for its JSON
result, so it moves every service logger to stderr with
configure_service_logs().
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Iterator, TextIO

LOGGER_PREFIX = "netlogger."

# Attributes of every LogRecord; anything else came in through `extra=`
_RESERVED_ATTRS = frozenset((
    "name", "msg", "args", "levelname", "levelno", "pathname",
    "filename", "module", "exc_info", "exc_text", "stack_info",
    "lineno", "funcName", "created", "msecs", "relativeCreated",
    "thread", "threadName", "processName", "process", "service",
    "message", "taskName",
))

# Process-wide level/stream set by configure_service_logs(); these win over
# the environment for loggers created afterwards too
_overrides: dict = {}


class JsonFormatter(logging.Formatter):
    """One JSON object per record, stamped with the time it was emitted"""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "service": getattr(record, "service", record.name.removeprefix(LOGGER_PREFIX)),
            "message": record.getMessage(),
            "logger": record.name,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        log_data.update(
            (key, value) for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS
        )
        return json.dumps(log_data, default=str)


class ServiceLoggerAdapter(logging.LoggerAdapter):
    """Tags every record with the service name"""

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        kwargs["extra"] = {**kwargs.get("extra", {}), "service": self.extra["service"]}
        return msg, kwargs


def _level(log_level: str) -> int:
    return getattr(logging, log_level.upper(), logging.INFO)


def setup_logging(
    service_name: str,
    log_level: str = "INFO",
    json_format: bool = True,
    stream: TextIO | None = None,
) -> logging.Logger:
    """
    Build the `netlogger.<service_name>` logger with a single stream handler.

    Args:
        service_name: Dotted component name (e.g., "sync.worker", "controller")
        log_level: Logging level name; unknown names fall back to INFO
        json_format: JSON lines (True) or a plain text line (False)
        stream: Destination, stdout when None

    Returns:
        Configured logger instance
    """
    numeric_level = _level(log_level)

    logger = logging.getLogger(f"{LOGGER_PREFIX}{service_name}")
    logger.setLevel(numeric_level)
    logger.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(numeric_level)
    if json_format:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
    logger.addHandler(handler)

    # Don't propagate to root logger
    logger.propagate = False

    return logger


def get_service_logger(service_name: str) -> ServiceLoggerAdapter:
    """
    Logger adapter for one component.

    Level and format come from NETLOGGER_LOG_LEVEL / NETLOGGER_LOG_FORMAT
    unless configure_service_logs() has set them for the whole process.
    """
    log_level = _overrides.get("level") or os.environ.get("NETLOGGER_LOG_LEVEL", "INFO")
    json_format = os.environ.get("NETLOGGER_LOG_FORMAT", "json").lower() == "json"

    logger = setup_logging(service_name, log_level, json_format, _overrides.get("stream"))
    return ServiceLoggerAdapter(logger, {"service": service_name})


def service_loggers() -> Iterator[logging.Logger]:
    """Every netlogger.* logger created so far"""
    for name, logger in list(logging.Logger.manager.loggerDict.items()):
        if name.startswith(LOGGER_PREFIX) and isinstance(logger, logging.Logger):
            yield logger


def configure_service_logs(log_level: str | None = None, stream: TextIO | None = None) -> None:
    """
    Change the level and/or destination of all service logs, including
    loggers that are only created after this call.

    Args:
        log_level: New level name, unchanged when None
        stream: New destination, unchanged when None
    """
    if log_level is not None:
        _overrides["level"] = log_level
    if stream is not None:
        _overrides["stream"] = stream

    for logger in service_loggers():
        if log_level is not None:
            logger.setLevel(_level(log_level))
        for handler in list(logger.handlers):
            if log_level is not None:
                handler.setLevel(_level(log_level))
            if stream is not None and isinstance(handler, logging.StreamHandler):
                # New handler rather than setStream(), which flushes the old stream
                replacement = logging.StreamHandler(stream)
                replacement.setLevel(handler.level)
                replacement.setFormatter(handler.formatter)
                logger.removeHandler(handler)
                logger.addHandler(replacement)
