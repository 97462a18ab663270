#!/usr/bin/env python3
"""
Network Stats Logger - Service Runner

Wires the capture pipeline, local store, sync scheduling, controller and
command server together and runs them until SIGINT/SIGTERM.

Usage:
    netlogger                          # Search default config locations
    netlogger --config my.yaml         # Use custom config file
    netlogger --simulate --start       # Virtual modem/GPS, start logging now
    netlogger --dry-run                # Print config and exit

On start the persisted controller and job state is restored, so logging
resumes if it was active before the restart and the recurring sync keeps
its schedule.
"""

import argparse
import asyncio
import signal
import sys
from pathlib import Path

import yaml

from netlogger import __version__
from netlogger.api import ApiServer
from netlogger.common.config import AppConfig, load_app_config, validate_interval_ms
from netlogger.common.exceptions import ConfigError, ControllerStateError
from netlogger.common.logging_setup import configure_service_logs, get_service_logger
from netlogger.common.state import SharedState
from netlogger.controller import LoggingController
from netlogger.services.capture import (
    LocationSampler,
    PersistenceScheduler,
    SensorChannel,
    SignalSampler,
    StateAggregator,
    read_device_identity,
)
from netlogger.services.storage import LocalStore
from netlogger.services.sync import JobRunner, SupabaseSink, SyncWorker

logger = get_service_logger("main")

CONFIG_SEARCH_PATHS = (
    Path("/etc/netlogger/config.yaml"),
    Path("config.yaml"),
)


def find_config_path() -> Path | None:
    for path in CONFIG_SEARCH_PATHS:
        if path.exists():
            return path
    return None


def load_config(config_path: str | None) -> AppConfig:
    """
    Load configuration from a YAML file.

    An explicit path must exist. Without one, the default locations are
    searched and built-in defaults are used if none is found.

    Raises:
        ConfigError: Missing explicit file, bad YAML or bad values
    """
    if config_path is not None:
        path = Path(config_path)
        if not path.exists():
            raise ConfigError(f"configuration file not found: {config_path}")
    else:
        path = find_config_path()
        if path is None:
            logger.warning("No configuration file found, using defaults")
            return load_app_config({})

    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"error parsing {path}: {e}") from e

    logger.info(f"Loaded configuration from {path}")
    return load_app_config(data)


def print_config_summary(config: AppConfig, simulate: bool) -> None:
    print("\n" + "=" * 60)
    print(f"  NETWORK STATS LOGGER v{__version__}")
    print("=" * 60)

    print("\n  Capture:")
    print(f"    - Interval: {config.capture.interval_ms}ms")
    print(f"    - Sources: {'simulated' if simulate else 'hardware'}")

    print("\n  Storage:")
    print(f"    - Database: {config.storage.db_path}")
    print(f"    - State dir: {config.state_dir}")

    if config.remote.enabled:
        print(f"\n  Remote sync: Enabled ({config.remote.url}, table {config.remote.table})")
    else:
        print("\n  Remote sync: Disabled")

    print(f"\n  API: http://{config.api.host}:{config.api.port}")
    print("=" * 60 + "\n")


class NetLoggerService:
    """
    Owns every long-lived component of one logger process.

    Args:
        config: Loaded configuration
        modem: Modem-state watcher (also the link bandwidth probe)
        gps: Position watcher
    """

    def __init__(self, config: AppConfig, modem, gps):
        self.config = config

        self.state = SharedState(config.state_dir)
        self.store = LocalStore(config.storage.db_path)

        self.aggregator = StateAggregator()
        self.channel = SensorChannel(self.aggregator)
        self.signal_sampler = SignalSampler(
            modem,
            self.channel,
            bandwidth_probe=getattr(modem, "bandwidth", None),
        )
        self.location_sampler = LocationSampler(gps, self.channel, config.capture.interval_ms)
        self.persistence = PersistenceScheduler(
            self.aggregator, self.store, config.capture.interval_ms
        )

        self.sink: SupabaseSink | None = None
        self.sync_worker: SyncWorker | None = None
        if config.remote.enabled:
            self.sink = SupabaseSink(
                config.remote.url,
                config.remote.key,
                table=config.remote.table,
                timeout_s=config.remote.timeout_s,
            )
            self.sync_worker = SyncWorker(self.store, self.sink)
        else:
            logger.warning("Remote url/key not configured, sync disabled")

        self.job_runner = JobRunner(state=self.state)

        self.controller = LoggingController(
            aggregator=self.aggregator,
            channel=self.channel,
            signal_sampler=self.signal_sampler,
            location_sampler=self.location_sampler,
            store=self.store,
            persistence=self.persistence,
            job_runner=self.job_runner,
            sync_worker=self.sync_worker,
            identity_provider=lambda: read_device_identity(config.device),
            state=self.state,
        )

        self.api = ApiServer(self.controller, config.api.host, config.api.port)

        self._shutdown_event = asyncio.Event()

    async def start(self, start_logging: bool = False, interval_ms: int | None = None) -> None:
        self._setup_signal_handlers()

        await self.api.start()

        resumed = await self.controller.restore()
        if start_logging and not resumed:
            await self.controller.start(interval_ms or self.config.capture.interval_ms)

        logger.info(f"Logger running (state: {self.controller.current_state.value})")

    async def run(self, start_logging: bool = False, interval_ms: int | None = None) -> None:
        try:
            await self.start(start_logging, interval_ms)
            await self._shutdown_event.wait()
        finally:
            await self.stop()

    async def stop(self) -> None:
        """
        Stop capture without recording it as a user stop, so restore()
        resumes logging after the next process start.
        """
        await self.controller.shutdown()
        await self.job_runner.shutdown()
        await self.api.stop()
        if self.sink is not None:
            await self.sink.close()
        logger.info("Logger stopped")

    def _setup_signal_handlers(self) -> None:
        """Setup graceful shutdown signal handlers"""
        loop = asyncio.get_running_loop()

        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, self._handle_shutdown)
            except NotImplementedError:
                # Windows doesn't support add_signal_handler
                signal.signal(sig, lambda s, f: self._handle_shutdown())

    def _handle_shutdown(self) -> None:
        logger.info("Received shutdown signal")
        self._shutdown_event.set()


def build_sources(simulate: bool):
    """
    Returns:
        (modem watcher, position watcher)

    Raises:
        ConfigError: No sensor backend available
    """
    if simulate:
        from netlogger.simulator import VirtualGps, VirtualModem

        return VirtualModem(), VirtualGps()
    raise ConfigError("no hardware sensor backend available on this host, run with --simulate")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Network Stats Logger")
    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to configuration file (default: /etc/netlogger/config.yaml, ./config.yaml)",
    )
    parser.add_argument("--simulate", action="store_true", help="Use the virtual modem and GPS")
    parser.add_argument("--start", action="store_true", help="Start logging immediately")
    parser.add_argument("--interval-ms", type=int, default=None, help="Sampling interval for --start")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print configuration and exit without starting",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    args = parser.parse_args(argv)

    if args.verbose:
        configure_service_logs("DEBUG")

    try:
        config = load_config(args.config)
        if args.interval_ms is not None:
            validate_interval_ms(args.interval_ms)
    except ConfigError as e:
        logger.error(e.message)
        return 1

    print_config_summary(config, args.simulate)

    if args.dry_run:
        print("Dry run mode - exiting without starting logger")
        return 0

    try:
        modem, gps = build_sources(args.simulate)
    except ConfigError as e:
        logger.error(e.message)
        return 1

    async def run() -> None:
        service = NetLoggerService(config, modem, gps)
        await service.run(args.start, args.interval_ms)

    print("Press Ctrl+C to stop\n")
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        print("\nStopped by user")
    except (ConfigError, ControllerStateError) as e:
        logger.error(e.message)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
