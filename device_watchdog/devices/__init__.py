"""
Monitored device module.

Provides the device record, the shared device registry, and the
device configuration loader.
"""
from .device_record import DeviceRecord
from .registry import DeviceRegistry
from .loader import DeviceConfigLoader

__all__ = [
    "DeviceRecord",
    "DeviceRegistry",
    "DeviceConfigLoader",
]
