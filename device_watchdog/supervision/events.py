"""
Bus event handling.

Translates device bus events into device registry updates. Handlers
run on the client library thread, update one record and return.
"""
import logging
from typing import Callable, Dict, Optional

from ..bus.base import BusEvent, PropertyEvent, RemoteDevice
from ..bus.session import BrokerSession
from ..devices.registry import DeviceRegistry

logger = logging.getLogger(__name__)


class BusEventAdapter:
    """Subscribes registry updates to the events of a broker session."""

    def __init__(
        self,
        registry: DeviceRegistry,
        on_connection_failed: Optional[Callable[[], None]] = None,
    ):
        """
        Initialize the adapter.

        Args:
            registry: Registry receiving handle updates.
            on_connection_failed: Called when the server connection fails.
        """
        self.registry = registry
        self._on_connection_failed = on_connection_failed
        self._event_counts: Dict[str, int] = {event.value: 0 for event in BusEvent}

    def attach(self, session: BrokerSession) -> None:
        """
        Subscribe all handlers on a session.

        Args:
            session: Newly created broker session.
        """
        session.subscribe(BusEvent.DEVICE_ANNOUNCED, self.on_device_announced)
        session.subscribe(BusEvent.DEVICE_REMOVED, self.on_device_removed)
        session.subscribe(BusEvent.PROPERTY_NEW, self.on_property_new)
        session.subscribe(BusEvent.PROPERTY_UPDATED, self.on_property_updated)
        session.subscribe(BusEvent.PROPERTY_REMOVED, self.on_property_removed)
        session.subscribe(BusEvent.CONNECTION_FAILED, self.on_connection_failed)

    def _count(self, event: BusEvent) -> None:
        self._event_counts[event.value] += 1

    def on_device_announced(self, device: RemoteDevice) -> None:
        self._count(BusEvent.DEVICE_ANNOUNCED)
        logger.debug(f"Adding INDI device '{device.device_name}'.")
        self.registry.upsert_remote_handle(device.device_name, device)

    def on_device_removed(self, device: RemoteDevice) -> None:
        self._count(BusEvent.DEVICE_REMOVED)
        logger.debug(f"Removed INDI device '{device.device_name}'.")
        self.registry.clear_remote_handle(device.device_name)

    def on_property_new(self, event: PropertyEvent) -> None:
        self._count(BusEvent.PROPERTY_NEW)
        self._property_changed(event)

    def on_property_updated(self, event: PropertyEvent) -> None:
        self._count(BusEvent.PROPERTY_UPDATED)
        self._property_changed(event)

    def _property_changed(self, event: PropertyEvent) -> None:
        logger.debug(
            f"Updated property '{event.property_name}' of '{event.device_name}'."
        )
        self.registry.note_property_update(event.device_name, event.property_name)

    def on_property_removed(self, event: PropertyEvent) -> None:
        self._count(BusEvent.PROPERTY_REMOVED)
        logger.debug(
            f"Removed property '{event.property_name}' of '{event.device_name}'."
        )

    def on_connection_failed(self) -> None:
        self._count(BusEvent.CONNECTION_FAILED)
        logger.error("Connection to INDI server failed.")
        if self._on_connection_failed:
            self._on_connection_failed()

    def get_stats(self) -> Dict[str, int]:
        """Get event counts."""
        return dict(self._event_counts)
