"""
Device bus module.

The INDI client adapter lives in :mod:`device_watchdog.bus.indi` and
is not imported here, since it needs the optional ``pyindi-client``
package.
"""
from .base import (
    CONNECTION_PROPERTY,
    BusEvent,
    ConnectionState,
    DeviceBus,
    PropertyEvent,
    RemoteDevice,
    Subscription,
)
from .session import BrokerSession, BusFactory

__all__ = [
    "CONNECTION_PROPERTY",
    "BusEvent",
    "ConnectionState",
    "DeviceBus",
    "PropertyEvent",
    "RemoteDevice",
    "Subscription",
    "BrokerSession",
    "BusFactory",
]
