"""
Driver restart module.
"""
from .control_pipe import DriverRestarter
from .coordinator import RestartCoordinator, RestartPrimitive

__all__ = [
    "DriverRestarter",
    "RestartCoordinator",
    "RestartPrimitive",
]
