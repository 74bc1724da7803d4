"""
INDI Device Watchdog - Main Entry Point.

Starts the watchdog that:
1. Loads the devices to monitor from the config file
2. Connects to the INDI server and keeps the connection alive
3. Connects/disconnects devices following their local device nodes
4. Restarts INDI drivers that stopped responding
"""
import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from . import __version__
from .bus.session import BusFactory
from .config import WatchdogSettings, get_watchdog_settings
from .devices.loader import DeviceConfigLoader
from .devices.registry import DeviceRegistry
from .exceptions import DeviceConfigError
from .restart.control_pipe import DriverRestarter
from .restart.coordinator import RestartCoordinator
from .supervision.reconciliation import ReconciliationEngine
from .supervision.supervisor import SessionSupervisor

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO", log_file: Optional[Path] = None) -> None:
    """
    Configure console and optional file logging.

    Args:
        level: Log level name.
        log_file: File receiving a copy of the log output.
    """
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


def compose_startup_message(settings: WatchdogSettings) -> str:
    """Startup banner with name and version."""
    return (
        f"{settings.app_name} {__version__}\n"
        f"INDI server: {settings.broker.host}:{settings.broker.port}, "
        f"devices: {settings.devices_file}"
    )


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command line options."""
    parser = argparse.ArgumentParser(
        prog="indi-device-watchdog",
        description=(
            "Monitors the specified INDI devices and the corresponding Linux "
            "devices, keeps them connected, and restarts INDI drivers without "
            "restarting the complete INDI server."
        ),
    )
    parser.add_argument("--hostname", help="Hostname of the INDI server")
    parser.add_argument("--port", type=int, help="Port of the INDI server")
    parser.add_argument("--config", type=Path, help="Config file with devices to monitor")
    parser.add_argument("--log-level", help="Log level (DEBUG, INFO, WARNING, ERROR)")
    parser.add_argument("--log-file", type=Path, help="Also write the log to this file")
    parser.add_argument("--tick-interval", type=float, help="Seconds between device checks")
    parser.add_argument("--control-pipe", type=Path, help="INDI server control FIFO")
    parser.add_argument("--driver-bin-path", type=Path, help="Directory of the INDI drivers")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def apply_args(settings: WatchdogSettings, args: argparse.Namespace) -> WatchdogSettings:
    """Override settings with the given command line options."""
    if args.hostname is not None:
        settings.broker.host = args.hostname
    if args.port is not None:
        settings.broker.port = args.port
    if args.config is not None:
        settings.devices_file = args.config
    if args.log_level is not None:
        settings.log_level = args.log_level
    if args.log_file is not None:
        settings.log_file = args.log_file
    if args.tick_interval is not None:
        settings.watchdog.tick_interval = args.tick_interval
    if args.control_pipe is not None:
        settings.restart.control_pipe = args.control_pipe
    if args.driver_bin_path is not None:
        settings.restart.driver_bin_path = args.driver_bin_path
    return settings


def indi_bus_factory(settings: WatchdogSettings) -> BusFactory:
    """Bus factory creating a new PyIndi client per session."""
    from .bus.indi import IndiBus

    def create() -> IndiBus:
        return IndiBus(
            host=settings.broker.host,
            port=settings.broker.port,
            timeout=settings.broker.connect_timeout,
        )

    return create


def create_supervisor(
    settings: WatchdogSettings,
    registry: DeviceRegistry,
    bus_factory: BusFactory,
) -> SessionSupervisor:
    """
    Wire up the watchdog components.

    Args:
        settings: Watchdog settings.
        registry: Registry of monitored devices.
        bus_factory: Creates a device bus client per session.

    Returns:
        Ready to run supervisor.
    """
    restarter = DriverRestarter(
        driver_bin_path=settings.restart.driver_bin_path,
        control_pipe=settings.restart.control_pipe,
    )
    coordinator = RestartCoordinator(
        restarter,
        trigger_limit=settings.restart.trigger_limit,
        retain_strikes_on_failure=settings.restart.retain_strikes_on_failure,
    )
    return SessionSupervisor(
        registry=registry,
        bus_factory=bus_factory,
        coordinator=coordinator,
        engine=ReconciliationEngine(coordinator),
        settings=settings,
    )


def setup_signal_handlers(supervisor: SessionSupervisor, loop: asyncio.AbstractEventLoop):
    """Setup signal handlers for graceful shutdown."""
    def signal_handler():
        logger.info("Received shutdown signal")
        loop.create_task(supervisor.stop())

    # Handle both SIGINT and SIGTERM
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, signal_handler)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            signal.signal(sig, lambda s, f: signal_handler())


async def main(
    settings: WatchdogSettings,
    bus_factory: Optional[BusFactory] = None,
) -> int:
    """Main entry point."""
    try:
        records = DeviceConfigLoader().load_from_file(settings.devices_file)
    except DeviceConfigError as e:
        logger.error(f"Invalid device configuration: {e.to_dict()}")
        return 1

    if bus_factory is None:
        try:
            bus_factory = indi_bus_factory(settings)
        except ImportError as e:
            logger.error(
                f"INDI client library not available ({e}). "
                "Install it with: pip install 'indi-device-watchdog[indi]'"
            )
            return 1

    registry = DeviceRegistry(records)
    supervisor = create_supervisor(settings, registry, bus_factory)
    setup_signal_handlers(supervisor, asyncio.get_running_loop())

    try:
        await supervisor.run()
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        await supervisor.stop()

    return 0


def run(argv: Optional[Sequence[str]] = None) -> int:
    """Console script entry point."""
    args = parse_args(argv)
    settings = apply_args(get_watchdog_settings(), args)
    configure_logging(settings.log_level, settings.log_file)
    logger.info(compose_startup_message(settings))
    return asyncio.run(main(settings))


if __name__ == "__main__":
    sys.exit(run())
