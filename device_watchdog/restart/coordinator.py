"""
Restart coordinator for INDI drivers.

Debounces driver restarts with a per-driver strike counter: a known
driver is only restarted once enough restart requests came in, so a
single missed tick does not kill and relaunch a driver.
"""
import logging
import threading
from typing import Dict, Optional, Protocol

logger = logging.getLogger(__name__)


class RestartPrimitive(Protocol):
    """Anything able to restart a driver by name."""

    def restart(self, driver_name: str) -> bool: ...


class RestartCoordinator:
    """
    Decides whether a restart request fires a restart now.

    - First request for an unknown driver: restart immediately.
    - Strike count >= trigger_limit - 1: restart and reset the count.
    - Otherwise: increment the strike count.
    """

    def __init__(
        self,
        restarter: RestartPrimitive,
        trigger_limit: int = 3,
        retain_strikes_on_failure: bool = True,
    ):
        """
        Initialize the coordinator.

        Args:
            restarter: Restart primitive used when a restart fires.
            trigger_limit: Requests needed to restart a known driver.
            retain_strikes_on_failure: If the restart could not be sent,
                keep the count at the trigger boundary instead of 0.
        """
        if trigger_limit < 1:
            raise ValueError(f"trigger_limit must be >= 1, got {trigger_limit}")

        self.restarter = restarter
        self.trigger_limit = trigger_limit
        self.retain_strikes_on_failure = retain_strikes_on_failure

        self._strikes: Dict[str, int] = {}
        self._lock = threading.Lock()

        # Statistics
        self._total_requests = 0
        self._total_fired = 0
        self._total_failed = 0

    def request_restart(self, driver_name: str) -> bool:
        """
        Request a restart of a driver.

        Args:
            driver_name: Driver executable name.

        Returns:
            True if the restart fired.
        """
        with self._lock:
            self._total_requests += 1
            strikes = self._strikes.get(driver_name)

            if strikes is not None and strikes < self.trigger_limit - 1:
                self._strikes[driver_name] = strikes + 1
                logger.info(
                    f"Restart of '{driver_name}' requested "
                    f"({strikes + 1}/{self.trigger_limit - 1} strikes), not restarting yet"
                )
                return False

            # First request for this driver or trigger boundary reached
            restarted = self._fire(driver_name)
            if restarted or not self.retain_strikes_on_failure:
                self._strikes[driver_name] = 0
            else:
                self._strikes[driver_name] = self.trigger_limit - 1
            return True

    def request_immediate_restart(self, driver_name: str) -> bool:
        """
        Restart a driver regardless of its strike count.

        Like :meth:`request_restart`, a restart that could not be sent
        still counts as fired; the failure is logged and counted in
        ``total_failed``.

        Args:
            driver_name: Driver executable name.

        Returns:
            Always True.
        """
        with self._lock:
            self._total_requests += 1
            self._fire(driver_name)
            return True

    def _fire(self, driver_name: str) -> bool:
        """Run the restart primitive. Caller holds the lock."""
        self._total_fired += 1
        restarted = self.restarter.restart(driver_name)
        if not restarted:
            self._total_failed += 1
            logger.error(f"Restart of INDI driver '{driver_name}' was not performed")
        return restarted

    def strike_count(self, driver_name: str) -> Optional[int]:
        """
        Get the strike count of a driver.

        Returns:
            None if no restart was ever requested for the driver.
        """
        with self._lock:
            return self._strikes.get(driver_name)

    def reset(self) -> None:
        """Forget all strike counts."""
        with self._lock:
            self._strikes.clear()

    def get_stats(self) -> Dict[str, object]:
        """Get coordinator statistics."""
        with self._lock:
            return {
                "trigger_limit": self.trigger_limit,
                "strikes": dict(self._strikes),
                "total_requests": self._total_requests,
                "total_fired": self._total_fired,
                "total_failed": self._total_failed,
            }
