"""
INDI Device Watchdog.

Monitors INDI devices and their local Linux device nodes, keeps them
connected, and restarts individual INDI drivers through the INDI
server control pipe when they stop responding.
"""
from .config import WatchdogSettings, get_watchdog_settings
from .supervision.supervisor import SessionSupervisor

__version__ = "0.2.0"

__all__ = [
    "WatchdogSettings",
    "get_watchdog_settings",
    "SessionSupervisor",
    "__version__",
]
