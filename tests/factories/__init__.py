"""
Test data factories for the device watchdog.
"""
from .device_factory import (
    CcdSimulatorRecordFactory,
    DeviceConfigEntryFactory,
    DeviceRecordFactory,
)

__all__ = [
    "CcdSimulatorRecordFactory",
    "DeviceConfigEntryFactory",
    "DeviceRecordFactory",
]
