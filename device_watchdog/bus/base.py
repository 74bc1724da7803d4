"""
Device bus abstraction.

Describes the capabilities the watchdog consumes from an INDI client
session: event subscriptions for device and property changes,
connect/disconnect requests for a device, and server readiness.
"""
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

CONNECTION_PROPERTY = "CONNECTION"


class BusEvent(str, Enum):
    """Events published by a device bus."""
    DEVICE_ANNOUNCED = "device_announced"
    DEVICE_REMOVED = "device_removed"
    PROPERTY_NEW = "property_new"
    PROPERTY_UPDATED = "property_updated"
    PROPERTY_REMOVED = "property_removed"
    CONNECTION_FAILED = "connection_failed"


class ConnectionState(str, Enum):
    """Connection state of a remote device as reported by its CONNECTION property."""
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class PropertyEvent:
    """Payload of property events."""
    device_name: str
    property_name: str


class RemoteDevice(ABC):
    """
    Broker-side handle of a device.

    A handle only says the device was announced. Whether the device
    is connected is read separately from its CONNECTION property.
    """

    @property
    @abstractmethod
    def device_name(self) -> str:
        """Name of the device on the bus."""

    @abstractmethod
    def is_valid(self) -> bool:
        """Check if the handle still refers to a usable device."""

    @abstractmethod
    def connection_state(self) -> ConnectionState:
        """
        Read the CONNECTION property.

        Returns:
            UNKNOWN when the property is missing or malformed.
        """


class Subscription:
    """Handle returned by :meth:`DeviceBus.subscribe`."""

    def __init__(self, bus: "DeviceBus", event: BusEvent, handler: Callable):
        self.bus = bus
        self.event = event
        self.handler = handler
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        """Stop delivering events to the handler. Safe to call twice."""
        if self._active:
            self.bus._remove_subscription(self)
            self._active = False


class DeviceBus(ABC):
    """
    Base class for device bus implementations.

    Implements the subscription registry; concrete buses call
    :meth:`emit` from whatever thread their client library uses.
    """

    def __init__(self) -> None:
        self._subscriptions: Dict[BusEvent, List[Subscription]] = {
            event: [] for event in BusEvent
        }
        self._subscriptions_lock = threading.Lock()

    def subscribe(self, event: BusEvent, handler: Callable) -> Subscription:
        """
        Register a handler for an event.

        Args:
            event: Event to listen for.
            handler: Callable invoked with the event payload.

        Returns:
            Subscription that can be cancelled.
        """
        subscription = Subscription(self, event, handler)
        with self._subscriptions_lock:
            self._subscriptions[event].append(subscription)
        return subscription

    def _remove_subscription(self, subscription: Subscription) -> None:
        with self._subscriptions_lock:
            handlers = self._subscriptions[subscription.event]
            if subscription in handlers:
                handlers.remove(subscription)

    def unsubscribe_all(self) -> None:
        """Cancel every subscription on this bus."""
        with self._subscriptions_lock:
            subscriptions = [
                s for handlers in self._subscriptions.values() for s in handlers
            ]
        for subscription in subscriptions:
            subscription.cancel()

    def subscriber_count(self, event: BusEvent) -> int:
        """Number of active handlers for an event."""
        with self._subscriptions_lock:
            return len(self._subscriptions[event])

    def emit(self, event: BusEvent, *args: Any) -> None:
        """
        Deliver an event to all handlers.

        Handler errors are logged and never propagate into the
        client library thread.
        """
        with self._subscriptions_lock:
            subscriptions = list(self._subscriptions[event])

        for subscription in subscriptions:
            try:
                subscription.handler(*args)
            except Exception as e:
                logger.error(f"Error in {event.value} handler: {e}")

    @abstractmethod
    def connect_server(self) -> bool:
        """
        Connect to the server. Blocks until connected or failed.

        Returns:
            True if the connection was established.
        """

    @abstractmethod
    def disconnect_server(self) -> None:
        """Disconnect from the server if connected."""

    @abstractmethod
    def is_connected(self) -> bool:
        """Check if the server connection is ready."""

    @abstractmethod
    def request_connection(self, device: RemoteDevice, connect: bool) -> bool:
        """
        Send a connect or disconnect request for a device.

        Success only means the request was handed to the server; the
        state change is confirmed later by a property update.

        Args:
            device: Remote device handle.
            connect: True to connect, False to disconnect.

        Returns:
            False if the device is invalid, has no usable CONNECTION
            property, or the server is not ready.
        """
