"""
Session supervisor.

Outer control loop of the watchdog: keeps a session to the INDI server
alive, runs the periodic reconciliation tick while connected, and
rebuilds the whole session after a driver restart.
"""
import asyncio
import logging
import threading
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from ..bus.session import BrokerSession, BusFactory
from ..config import WatchdogSettings, get_watchdog_settings
from ..devices.device_record import DeviceRecord
from ..devices.registry import DeviceRegistry
from ..restart.coordinator import RestartCoordinator
from ..utils import wait_for_condition
from .events import BusEventAdapter
from .reconciliation import ReconciliationEngine

logger = logging.getLogger(__name__)


class SupervisorState(str, Enum):
    """State of the INDI server connection."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class SessionSupervisor:
    """
    Supervises the INDI server session and the reconciliation loop.

    Lifecycle:
    1. Create a session (new client, fresh subscriptions)
    2. Connect, waiting at most ``connect_timeout`` for readiness
    3. While connected, reconcile all devices every ``tick_interval``
    4. After a fired driver restart, tear the session down and go to 1
    5. After a connection failure, go back to 2

    The loop never gives up on its own; it only ends through :meth:`stop`.
    """

    def __init__(
        self,
        registry: DeviceRegistry,
        bus_factory: BusFactory,
        coordinator: RestartCoordinator,
        engine: Optional[ReconciliationEngine] = None,
        settings: Optional[WatchdogSettings] = None,
    ):
        """
        Initialize the supervisor.

        Args:
            registry: Registry of monitored devices.
            bus_factory: Creates a new device bus client per session.
            coordinator: Restart coordinator.
            engine: Reconciliation engine. Created from the coordinator
                    if not provided.
            settings: Watchdog settings.
        """
        self.registry = registry
        self.bus_factory = bus_factory
        self.coordinator = coordinator
        self.engine = engine or ReconciliationEngine(coordinator)
        self.settings = settings or get_watchdog_settings()

        self.event_adapter = BusEventAdapter(
            registry,
            on_connection_failed=self._on_connection_failed,
        )

        # Session
        self.session: Optional[BrokerSession] = None
        self._session_count = 0
        self._state = SupervisorState.DISCONNECTED

        # Set from the client library thread
        self._connection_lost = threading.Event()

        # Connect call still running in the executor, at most one per session
        self._pending_connect: Optional[Tuple[BrokerSession, asyncio.Future]] = None

        # State
        self._running = False
        self._shutdown_event = asyncio.Event()

        # Statistics
        self._connect_attempts = 0
        self._tick_count = 0
        self._restarts_fired = 0
        self._session_rebuilds = 0
        self._last_restarted_devices: List[str] = []

    @property
    def state(self) -> SupervisorState:
        """Current connection state."""
        return self._state

    @property
    def is_running(self) -> bool:
        return self._running

    def reset_session(self) -> BrokerSession:
        """
        Discard the current session and create a new one.

        The old client is disconnected and all its subscriptions are
        cancelled; all remote handles become invalid.

        Returns:
            The new session.
        """
        if self.session is not None:
            self.session.close()

        logger.debug("Resetting INDI client...")
        self.registry.clear_all_remote_handles()
        self._connection_lost.clear()

        self._session_count += 1
        session = BrokerSession(self.bus_factory(), self._session_count)
        self.event_adapter.attach(session)

        self.session = session
        self._state = SupervisorState.DISCONNECTED
        return session

    def _on_connection_failed(self) -> None:
        """Connection failure reported by the bus."""
        self._connection_lost.set()

    def _connect_session(self, session: BrokerSession) -> None:
        """
        Blocking connect, run in a worker thread.

        A failed attempt is reported like a connection failure event,
        which ends the readiness wait early.
        """
        if session.bus.is_connected():
            return

        try:
            connected = session.bus.connect_server()
        except Exception as e:
            logger.error(f"Error connecting to INDI server: {e}")
            connected = False

        if not connected and self.session is session:
            self._connection_lost.set()

    async def _connect(self) -> bool:
        """
        Try once to connect the current session.

        Returns:
            True if the server connection is ready.
        """
        self._state = SupervisorState.CONNECTING
        self._connect_attempts += 1
        self._connection_lost.clear()

        session = self.session
        timeout = self.settings.broker.connect_timeout
        logger.info(
            f"Trying to connect to INDI server "
            f"{self.settings.broker.host}:{self.settings.broker.port}..."
        )

        loop = asyncio.get_running_loop()
        started = loop.time()
        # The connect call is not awaited. After a timeout it keeps running
        # and the next attempt waits for it instead of starting another one,
        # so a late failure always belongs to the attempt being waited on.
        pending = self._pending_connect
        if pending is not None and pending[0] is session and not pending[1].done():
            logger.debug("Previous connection attempt still running, waiting for it")
        else:
            future = loop.run_in_executor(None, self._connect_session, session)
            self._pending_connect = (session, future)

        def ready() -> bool:
            return (
                not self._running
                or session.bus.is_connected()
                or self._connection_lost.is_set()
            )

        try:
            await wait_for_condition(
                ready,
                timeout=timeout,
                interval=self.settings.broker.ready_poll_interval,
            )
        except asyncio.TimeoutError:
            logger.info("Timeout!")
            return False

        if not self._running:
            return False

        if session.bus.is_connected() and not self._connection_lost.is_set():
            return True

        # Explicit failure: wait out the rest of the window before retrying
        logger.info("Connection attempt failed.")
        remaining = timeout - (loop.time() - started)
        if remaining > 0:
            await self._wait_shutdown(remaining)
        return False

    async def _wait_shutdown(self, timeout: float) -> bool:
        """
        Sleep until the timeout expires or shutdown is requested.

        Returns:
            True if shutdown was requested.
        """
        try:
            await asyncio.wait_for(self._shutdown_event.wait(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            return False

    def run_tick(self) -> bool:
        """
        Reconcile all devices once.

        Holds the registry lock for the whole sweep. The sweep stops at
        the first device whose reconciliation fired a driver restart;
        the session is then rebuilt.

        Returns:
            True if a restart fired and the session was rebuilt.
        """
        session = self.session
        if session is None:
            return False

        self._tick_count += 1
        restarted_devices: List[str] = []

        def reconcile(record: DeviceRecord) -> bool:
            outcome = self.engine.reconcile(record, session.bus)
            if outcome.restart_fired:
                restarted_devices.append(record.device_name)
                return True
            return False

        restarted = self.registry.for_each(reconcile)
        if not restarted:
            return False

        self._restarts_fired += 1
        self._last_restarted_devices = restarted_devices
        logger.info(
            f"Driver restart fired for '{restarted_devices[0]}', "
            f"rebuilding INDI session"
        )
        self.reset_session()
        self._session_rebuilds += 1
        return True

    async def run(self) -> None:
        """Run the supervision loop until stopped."""
        if self._running:
            logger.warning("Supervisor already running")
            return

        logger.info(f"Starting device watchdog for {len(self.registry)} devices")
        self._running = True
        self._shutdown_event.clear()

        if self.session is None or self.session.closed:
            self.reset_session()

        while self._running:
            if not await self._connect():
                continue

            logger.info("Connected!")
            self._state = SupervisorState.CONNECTED

            while self._running and self._state == SupervisorState.CONNECTED:
                if await self._wait_shutdown(self.settings.watchdog.tick_interval):
                    break

                if self._connection_lost.is_set() or not self.session.bus.is_connected():
                    logger.info("Lost connection to INDI server.")
                    self._state = SupervisorState.CONNECTING
                    break

                try:
                    self.run_tick()
                except Exception as e:
                    logger.error(f"Unexpected error in reconciliation tick: {e}")

        self._state = SupervisorState.DISCONNECTED
        logger.info("Device watchdog stopped")

    async def stop(self) -> None:
        """Stop the loop, close the session and forget restart strikes."""
        if not self._running and self.session is None:
            return

        logger.info("Stopping device watchdog...")
        self._running = False
        self._shutdown_event.set()

        if self.session is not None:
            self.session.close()
            self.session = None

        self._pending_connect = None

        self.coordinator.reset()

    def get_stats(self) -> Dict[str, Any]:
        """Get supervisor statistics."""
        return {
            "running": self._running,
            "state": self._state.value,
            "session_id": self.session.session_id if self.session else None,
            "session_created_at": (
                self.session.created_at.isoformat() if self.session else None
            ),
            "connect_attempts": self._connect_attempts,
            "ticks": self._tick_count,
            "restarts_fired": self._restarts_fired,
            "session_rebuilds": self._session_rebuilds,
            "last_restarted_devices": list(self._last_restarted_devices),
            "devices": self.registry.get_stats(),
            "restarts": self.coordinator.get_stats(),
            "events": self.event_adapter.get_stats(),
        }
