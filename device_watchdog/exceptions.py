"""
Watchdog Exceptions - Custom exceptions for watchdog-specific errors.
"""
from typing import Any, Dict, Optional


class WatchdogError(Exception):
    """
    Base exception for all watchdog errors.

    All watchdog exceptions inherit from this class to allow
    for consistent error handling across the application.
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for status output."""
        return {
            'error': self.code,
            'message': self.message,
            'details': self.details
        }


class DeviceConfigError(WatchdogError):
    """Raised when the device configuration file is missing or invalid."""

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        entry_index: Optional[int] = None
    ):
        self.source = source
        self.entry_index = entry_index
        super().__init__(
            message=message,
            code='DEVICE_CONFIG_ERROR',
            details={'source': source, 'entry_index': entry_index}
        )


class BusError(WatchdogError):
    """Raised when an operation on the device bus fails."""

    def __init__(self, message: str, device_name: Optional[str] = None):
        self.device_name = device_name
        super().__init__(
            message=message,
            code='BUS_ERROR',
            details={'device_name': device_name}
        )


class RestartChannelError(WatchdogError):
    """
    Raised when the driver restart channel cannot be used.

    Typically the INDI server control pipe does not exist or
    has no reader attached.
    """

    def __init__(self, channel: str, reason: str):
        self.channel = channel
        self.reason = reason
        super().__init__(
            message=f"Cannot open INDI server pipe '{channel}': {reason}",
            code='RESTART_CHANNEL_ERROR',
            details={'channel': channel, 'reason': reason}
        )
