"""
Supervision module.

Provides the per-device reconciliation engine, the bus event adapter,
and the session supervisor running the watchdog loop.
"""
from .events import BusEventAdapter
from .reconciliation import ReconcileAction, ReconcileOutcome, ReconciliationEngine
from .supervisor import SessionSupervisor, SupervisorState

__all__ = [
    "BusEventAdapter",
    "ReconcileAction",
    "ReconcileOutcome",
    "ReconciliationEngine",
    "SessionSupervisor",
    "SupervisorState",
]
