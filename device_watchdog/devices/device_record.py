"""
Monitored device record.

Holds the configured description of one monitored device together
with its live observed state on the INDI bus.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from ..bus.base import ConnectionState, RemoteDevice


@dataclass
class DeviceRecord:
    """
    Configuration and observed state of a monitored device.

    The device name is the identity of the record. The remote handle
    is None until the device is announced by the INDI server and is
    reset on removal or driver restart.
    """
    # Identity and policy (fixed after load)
    device_name: str
    local_node_path: str
    driver_name: str
    auto_connect_enabled: bool = False

    # Observed state
    remote_handle: Optional[RemoteDevice] = field(default=None, repr=False)

    # Bookkeeping
    announced_at: Optional[datetime] = None
    last_property_update_at: Optional[datetime] = None

    @property
    def remote_device_valid(self) -> bool:
        """Check if the remote handle is present and usable."""
        return self.remote_handle is not None and self.remote_handle.is_valid()

    @property
    def connection_state(self) -> ConnectionState:
        """Connection state derived from the remote handle."""
        if not self.remote_device_valid:
            return ConnectionState.UNKNOWN
        return self.remote_handle.connection_state()

    @property
    def is_connected(self) -> bool:
        """Check if the CONNECTION property reads on."""
        return self.connection_state == ConnectionState.CONNECTED

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for status output."""
        return {
            "device_name": self.device_name,
            "local_node_path": self.local_node_path,
            "driver_name": self.driver_name,
            "auto_connect_enabled": self.auto_connect_enabled,
            "remote_device": self.remote_device_valid,
            "connection_state": self.connection_state.value,
            "announced_at": (
                self.announced_at.isoformat() if self.announced_at else None
            ),
            "last_property_update_at": (
                self.last_property_update_at.isoformat()
                if self.last_property_update_at
                else None
            ),
        }

    def __str__(self) -> str:
        remote = (
            self.remote_handle.device_name if self.remote_device_valid else "NOT SET"
        )
        state = self.connection_state
        conn_prop = "NO PROP" if state == ConnectionState.UNKNOWN else state.value.upper()
        return (
            f"Device name: {self.device_name}, "
            f"local device: {self.local_node_path}, "
            f"INDI driver: {self.driver_name}, "
            f"INDI device: {remote}, "
            f"connection prop: {conn_prop}"
        )
