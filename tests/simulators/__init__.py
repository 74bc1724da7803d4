"""
INDI bus simulators for watchdog testing.

Provide a device bus, remote devices and a driver restarter for end-to-end testing of the
supervisor without an INDI server or hardware.
"""
from .restarter import FakeRestarter
from .simulated_bus import SimulatedBus, SimulatedBusFactory, SimulatedRemoteDevice

__all__ = [
    "FakeRestarter",
    "SimulatedBus",
    "SimulatedBusFactory",
    "SimulatedRemoteDevice",
]
