"""
INDI client adapter.

Implements the device bus on top of ``PyIndi.BaseClient`` from the
``pyindi-client`` package. PyIndi calls the client callbacks from its
own listener thread; they are forwarded as bus events.
"""
import logging
from typing import Optional

import PyIndi

from .base import (
    CONNECTION_PROPERTY,
    BusEvent,
    ConnectionState,
    DeviceBus,
    PropertyEvent,
    RemoteDevice,
)

logger = logging.getLogger(__name__)

CONNECT_SWITCH = "CONNECT"
DISCONNECT_SWITCH = "DISCONNECT"


class IndiRemoteDevice(RemoteDevice):
    """Remote device handle wrapping a ``PyIndi.BaseDevice``."""

    def __init__(self, base_device: "PyIndi.BaseDevice"):
        self.base_device = base_device
        self._name = base_device.getDeviceName()

    @property
    def device_name(self) -> str:
        return self._name

    def is_valid(self) -> bool:
        return bool(self.base_device.isValid())

    def connection_switch(self) -> Optional["PyIndi.PropertySwitch"]:
        """
        Get the CONNECTION switch property.

        Returns:
            None if the property is missing or malformed.
        """
        if not self.is_valid():
            return None

        switch = self.base_device.getSwitch(CONNECTION_PROPERTY)
        if switch is None or not switch.isValid():
            return None

        if (
            switch.findWidgetByName(CONNECT_SWITCH) is None
            or switch.findWidgetByName(DISCONNECT_SWITCH) is None
        ):
            return None

        return switch

    def connection_state(self) -> ConnectionState:
        switch = self.connection_switch()
        if switch is None:
            return ConnectionState.UNKNOWN

        connect = switch.findWidgetByName(CONNECT_SWITCH)
        if connect.getState() == PyIndi.ISS_ON:
            return ConnectionState.CONNECTED
        return ConnectionState.DISCONNECTED


class _IndiClient(PyIndi.BaseClient):
    """PyIndi client forwarding callbacks to an :class:`IndiBus`."""

    def __init__(self, bus: "IndiBus"):
        super().__init__()
        self._bus = bus

    def newDevice(self, d):
        self._bus.emit(BusEvent.DEVICE_ANNOUNCED, IndiRemoteDevice(d))

    def removeDevice(self, d):
        self._bus.emit(BusEvent.DEVICE_REMOVED, IndiRemoteDevice(d))

    def newProperty(self, p):
        self._bus.emit(
            BusEvent.PROPERTY_NEW,
            PropertyEvent(p.getDeviceName(), p.getName()),
        )

    def updateProperty(self, p):
        self._bus.emit(
            BusEvent.PROPERTY_UPDATED,
            PropertyEvent(p.getDeviceName(), p.getName()),
        )

    def removeProperty(self, p):
        self._bus.emit(
            BusEvent.PROPERTY_REMOVED,
            PropertyEvent(p.getDeviceName(), p.getName()),
        )

    def newMessage(self, d, m):
        pass

    def serverConnected(self):
        logger.debug("INDI server connected")

    def serverDisconnected(self, code):
        logger.debug(f"INDI server disconnected (code={code})")
        if code != 0:
            self._bus.emit(BusEvent.CONNECTION_FAILED)


class IndiBus(DeviceBus):
    """Device bus backed by a PyIndi client."""

    def __init__(self, host: str = "localhost", port: int = 7624, timeout: float = 5.0):
        """
        Initialize the bus.

        Args:
            host: INDI server hostname.
            port: INDI server port.
            timeout: Connection timeout in seconds.
        """
        super().__init__()
        self.host = host
        self.port = port

        self._client = _IndiClient(self)
        self._client.setServer(host, port)
        seconds = int(timeout)
        self._client.setConnectionTimeout(seconds, int((timeout - seconds) * 1_000_000))

    def connect_server(self) -> bool:
        if self._client.isServerConnected():
            return True

        connected = bool(self._client.connectServer())
        if not connected:
            self.emit(BusEvent.CONNECTION_FAILED)
        return connected

    def disconnect_server(self) -> None:
        if self._client.isServerConnected():
            self._client.disconnectServer()

    def is_connected(self) -> bool:
        return bool(self._client.isServerConnected())

    def request_connection(self, device: RemoteDevice, connect: bool) -> bool:
        if not self.is_connected():
            return False

        if not isinstance(device, IndiRemoteDevice):
            return False

        switch = device.connection_switch()
        if switch is None:
            return False

        switch.findWidgetByName(CONNECT_SWITCH).setState(
            PyIndi.ISS_ON if connect else PyIndi.ISS_OFF
        )
        switch.findWidgetByName(DISCONNECT_SWITCH).setState(
            PyIndi.ISS_OFF if connect else PyIndi.ISS_ON
        )
        self._client.sendNewSwitch(switch)
        return True
