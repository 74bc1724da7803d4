"""
INDI driver restart through the INDI server control pipe.

indiserver started with ``-f <fifo>`` accepts ``start``/``stop``
commands for individual drivers on that FIFO, which lets a single
driver be restarted without restarting the whole server.
"""
import logging
import os
from pathlib import Path
from typing import Union

from ..exceptions import RestartChannelError

logger = logging.getLogger(__name__)


class DriverRestarter:
    """Restarts INDI drivers by writing to the server control pipe."""

    def __init__(
        self,
        driver_bin_path: Union[str, Path] = "/usr/bin",
        control_pipe: Union[str, Path] = "/tmp/indiserverFIFO",
    ):
        """
        Initialize the restarter.

        Args:
            driver_bin_path: Directory containing the driver executables.
            control_pipe: Path of the INDI server control FIFO.
        """
        self.driver_bin_path = Path(driver_bin_path)
        self.control_pipe = Path(control_pipe)

    def driver_path(self, driver_name: str) -> Path:
        """Full path of a driver executable."""
        return self.driver_bin_path / driver_name

    def restart(self, driver_name: str) -> bool:
        """
        Restart a driver.

        Args:
            driver_name: Driver executable name.

        Returns:
            True if the stop/start commands were written.
        """
        driver_path = self.driver_path(driver_name)
        try:
            self._write_commands(
                f"stop {driver_path}\n",
                f"start {driver_path}\n",
            )
        except RestartChannelError as e:
            logger.error(f"ERROR: {e.message}")
            return False

        logger.info(f"Restarting INDI driver '{driver_path}'...")
        return True

    def _write_commands(self, *lines: str) -> None:
        """
        Write command lines to the control pipe.

        The pipe is opened non-blocking and never created, so a
        missing pipe or a FIFO without reader fails immediately.

        Raises:
            RestartChannelError: If the pipe cannot be opened or written.
        """
        try:
            fd = os.open(self.control_pipe, os.O_WRONLY | os.O_NONBLOCK)
        except OSError as e:
            raise RestartChannelError(str(self.control_pipe), e.strerror or str(e)) from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as pipe:
                for line in lines:
                    pipe.write(line)
        except OSError as e:
            raise RestartChannelError(str(self.control_pipe), e.strerror or str(e)) from e
