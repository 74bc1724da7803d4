"""
Device registry for monitored devices.

Shared map of device name to DeviceRecord. Written from the INDI
client thread (device announce/remove) and from the reconciliation
tick, so every access goes through one lock. The lock is reentrant:
a bus may deliver events synchronously on the sweeping thread while a
connect request is being sent.
"""
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from ..bus.base import ConnectionState, RemoteDevice
from .device_record import DeviceRecord

logger = logging.getLogger(__name__)


class DeviceRegistry:
    """
    Tracks the monitored devices and their remote handles.

    The set of devices is fixed at construction. Events for devices
    that are not on the list are logged and ignored.
    """

    def __init__(self, records: Iterable[DeviceRecord]):
        """
        Initialize the registry.

        Args:
            records: Devices to monitor. The first record wins if a
                     device name appears more than once.
        """
        self._records: Dict[str, DeviceRecord] = {}
        for record in records:
            if record.device_name in self._records:
                logger.warning(
                    f"Duplicate device '{record.device_name}' in device list, "
                    f"ignoring later entry"
                )
                continue
            self._records[record.device_name] = record

        self._lock = threading.RLock()

    def upsert_remote_handle(self, device_name: str, handle: RemoteDevice) -> bool:
        """
        Store the remote handle of an announced device.

        Args:
            device_name: INDI device name.
            handle: Remote device handle.

        Returns:
            True if the device is monitored.
        """
        with self._lock:
            record = self._records.get(device_name)
            if record is None:
                logger.info(
                    f"Not handling INDI device '{device_name}' "
                    f"since it is not on the device list."
                )
                return False

            record.remote_handle = handle
            record.announced_at = datetime.now(timezone.utc)
            return True

    def clear_remote_handle(self, device_name: str) -> bool:
        """
        Forget the remote handle of a device.

        Args:
            device_name: INDI device name.

        Returns:
            True if the device is monitored.
        """
        with self._lock:
            record = self._records.get(device_name)
            if record is None:
                logger.info(
                    f"Not handling INDI device '{device_name}' "
                    f"since it is not on the device list."
                )
                return False

            record.remote_handle = None
            return True

    def note_property_update(self, device_name: str, property_name: str) -> bool:
        """
        Record that a property of a monitored device changed.

        Args:
            device_name: INDI device name.
            property_name: Name of the changed property.

        Returns:
            True if the device is monitored.
        """
        with self._lock:
            record = self._records.get(device_name)
            if record is None:
                return False

            record.last_property_update_at = datetime.now(timezone.utc)
            return True

    def clear_all_remote_handles(self) -> None:
        """Invalidate all remote handles, e.g. when the session is rebuilt."""
        with self._lock:
            for record in self._records.values():
                record.remote_handle = None

    def for_each(self, fn: Callable[[DeviceRecord], Any]) -> bool:
        """
        Apply a function to every record while holding the lock.

        The traversal stops at the first record for which ``fn``
        returns a truthy value. ``fn`` must not block. Registry updates
        made by ``fn`` on the same thread are allowed.

        Args:
            fn: Function receiving each record.

        Returns:
            True if the traversal was stopped early.
        """
        with self._lock:
            for record in self._records.values():
                if fn(record):
                    return True
        return False

    def get(self, device_name: str) -> Optional[DeviceRecord]:
        """
        Get a device record by name.

        Args:
            device_name: INDI device name.

        Returns:
            DeviceRecord or None if not monitored.
        """
        with self._lock:
            return self._records.get(device_name)

    def names(self) -> List[str]:
        """Get the names of all monitored devices."""
        with self._lock:
            return list(self._records.keys())

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, device_name: object) -> bool:
        return device_name in self._records

    def get_stats(self) -> Dict[str, Any]:
        """
        Get registry statistics.

        Returns:
            Dictionary of statistics.
        """
        with self._lock:
            by_state: Dict[str, int] = {}
            announced = 0
            for record in self._records.values():
                if record.remote_device_valid:
                    announced += 1
                state = record.connection_state.value
                by_state[state] = by_state.get(state, 0) + 1

            return {
                "total_devices": len(self._records),
                "announced_devices": announced,
                "connected_devices": by_state.get(ConnectionState.CONNECTED.value, 0),
                "by_connection_state": by_state,
                "devices": [r.to_dict() for r in self._records.values()],
            }
