"""
Device reconciliation.

Compares the observed state of a monitored device (local device node,
remote INDI device, connection property) with its auto-connect policy
and takes at most one corrective action per device and tick.
"""
import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from ..bus.base import DeviceBus
from ..devices.device_record import DeviceRecord
from ..exceptions import BusError
from ..restart.coordinator import RestartCoordinator

logger = logging.getLogger(__name__)


class ReconcileAction(str, Enum):
    """Action taken for a device during a tick."""
    NONE = "none"
    CONNECT = "connect"
    DISCONNECT = "disconnect"
    RESTART = "restart"


@dataclass
class ReconcileOutcome:
    """Result of reconciling one device."""
    action: ReconcileAction = ReconcileAction.NONE
    restart_fired: bool = False
    send_ok: Optional[bool] = None

    @property
    def restart_requested(self) -> bool:
        return self.action == ReconcileAction.RESTART


class ReconciliationEngine:
    """
    Per-device decision function of the watchdog.

    Decision table (first match wins):

    ============  ============  =========  ============  ===========================
    local node    remote valid  connected  auto-connect  action
    ============  ============  =========  ============  ===========================
    present       no            any        any           restart driver
    present       yes           no         yes           connect, restart on failure
    present       yes           no         no            none
    present       yes           yes        any           none
    missing       any           yes        any           disconnect, clear handle,
                                                         restart on failure
    missing       any           no         any           none
    ============  ============  =========  ============  ===========================

    A sent request is not a state change: the INDI server confirms it
    later with a property update.
    """

    def __init__(
        self,
        coordinator: RestartCoordinator,
        path_exists: Callable[[str], bool] = os.path.exists,
    ):
        """
        Initialize the engine.

        Args:
            coordinator: Restart coordinator for driver restarts.
            path_exists: Probe for the local device node.
        """
        self.coordinator = coordinator
        self.path_exists = path_exists

    def reconcile(self, record: DeviceRecord, bus: DeviceBus) -> ReconcileOutcome:
        """
        Reconcile one device.

        Must be called with the registry lock held, since the record's
        remote handle may be cleared.

        Args:
            record: Device record.
            bus: Bus of the current session, used to send requests.

        Returns:
            Outcome describing the action taken.
        """
        local_node_exists = self.path_exists(record.local_node_path)
        remote_device_valid = record.remote_device_valid
        remote_connected = record.is_connected

        logger.info(
            f"Processing '{record.device_name}' -> "
            f"local device exists? {local_node_exists}, "
            f"INDI device exists? {remote_device_valid}, "
            f"INDI device connected? {remote_connected}"
        )
        logger.debug(f"Details: {record}")

        if local_node_exists:
            if not remote_device_valid:
                # Local device is there but the driver did not announce
                # the INDI device -> driver died or never started
                return self._request_restart(record)

            if not remote_connected and record.auto_connect_enabled:
                sent = self._send_connection_request(record, bus, connect=True)
                if not sent:
                    return self._request_restart(record, send_ok=False)
                return ReconcileOutcome(ReconcileAction.CONNECT, send_ok=True)

            return ReconcileOutcome()

        if remote_connected:
            # Local device is gone but the INDI device still reports
            # connected -> stale registration
            sent = self._send_connection_request(record, bus, connect=False)
            record.remote_handle = None
            if not sent:
                return self._request_restart(record, send_ok=False)
            return ReconcileOutcome(ReconcileAction.DISCONNECT, send_ok=True)

        return ReconcileOutcome()

    def _send_connection_request(
        self,
        record: DeviceRecord,
        bus: DeviceBus,
        connect: bool,
    ) -> bool:
        """
        Send a connect or disconnect request.

        Args:
            record: Device record with a remote handle.
            bus: Bus of the current session.
            connect: True to connect, False to disconnect.

        Returns:
            True if the request was handed to the server.
        """
        logger.info(
            f"Sending INDI device '{'connect' if connect else 'disconnect'}' "
            f"request for device '{record.device_name}'..."
        )

        handle = record.remote_handle
        if handle is None or not handle.is_valid():
            return False

        try:
            return bus.request_connection(handle, connect)
        except BusError as e:
            logger.warning(f"Request for '{record.device_name}' failed: {e.message}")
            return False

    def _request_restart(
        self,
        record: DeviceRecord,
        send_ok: Optional[bool] = None,
    ) -> ReconcileOutcome:
        """
        Request a restart of the device's driver and drop its handle.

        The handle is cleared right away so the now invalid handle is
        not used again before the session is rebuilt.
        """
        fired = self.coordinator.request_restart(record.driver_name)
        record.remote_handle = None
        return ReconcileOutcome(
            ReconcileAction.RESTART,
            restart_fired=fired,
            send_ok=send_ok,
        )
