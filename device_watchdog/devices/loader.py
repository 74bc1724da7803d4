"""
Device configuration loader.

Loads the list of devices to monitor from the watchdog configuration
file. ``.json`` files are read as JSON, anything else as YAML.
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, List

import yaml

from ..exceptions import DeviceConfigError
from .device_record import DeviceRecord

logger = logging.getLogger(__name__)

DEVICES_KEY = "indiDevices"
REQUIRED_FIELDS = ("indiDeviceName", "linuxDeviceName", "indiDeviceDriverName")


class DeviceConfigLoader:
    """
    Loads monitored devices from a configuration file.

    Expected format::

        {
          "indiDevices": [
            {
              "indiDeviceName": "CCD Simulator",
              "linuxDeviceName": "/dev/ttyUSB0",
              "indiDeviceDriverName": "indi_simulator_ccd",
              "enableAutoConnect": true
            }
          ]
        }
    """

    def load_from_file(self, file_path: Path) -> List[DeviceRecord]:
        """
        Load devices from a configuration file.

        Args:
            file_path: Path to the configuration file.

        Returns:
            List of DeviceRecord objects in file order.

        Raises:
            DeviceConfigError: If the file is missing, unreadable, or
                               contains an invalid entry.
        """
        file_path = Path(file_path)
        if not file_path.exists():
            raise DeviceConfigError(
                f"Device config file not found: {file_path}",
                source=str(file_path),
            )

        logger.info(f"Loading devices from {file_path}")

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                if file_path.suffix.lower() == ".json":
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise DeviceConfigError(
                f"Cannot read device config {file_path}: {e}",
                source=str(file_path),
            ) from e

        records = self.load_from_dict(data, source=str(file_path))
        logger.info(f"Loaded {len(records)} devices from {file_path}")
        return records

    def load_from_dict(self, data: Any, source: str = "<dict>") -> List[DeviceRecord]:
        """
        Parse devices from already decoded configuration data.

        Args:
            data: Decoded configuration document.
            source: Description of the data origin for error messages.

        Returns:
            List of DeviceRecord objects.

        Raises:
            DeviceConfigError: If the document or an entry is invalid.
        """
        if not isinstance(data, dict) or DEVICES_KEY not in data:
            raise DeviceConfigError(
                f"Missing '{DEVICES_KEY}' list in {source}",
                source=source,
            )

        entries = data[DEVICES_KEY]
        if not isinstance(entries, list):
            raise DeviceConfigError(
                f"'{DEVICES_KEY}' must be a list in {source}",
                source=source,
            )

        if not entries:
            logger.warning(f"No devices defined in {source}")

        return [
            self._parse_device(entry, source, index)
            for index, entry in enumerate(entries)
        ]

    def _parse_device(
        self,
        data: Dict[str, Any],
        source: str,
        index: int,
    ) -> DeviceRecord:
        """
        Parse a single device entry.

        Args:
            data: Dictionary containing the device entry.
            source: Origin of the entry.
            index: Position of the entry in the device list.

        Returns:
            DeviceRecord object.

        Raises:
            DeviceConfigError: If required fields are missing.
        """
        if not isinstance(data, dict):
            raise DeviceConfigError(
                f"Device entry {index} in {source} is not an object",
                source=source,
                entry_index=index,
            )

        missing = [name for name in REQUIRED_FIELDS if not data.get(name)]
        if missing:
            raise DeviceConfigError(
                f"Device entry {index} in {source} is missing {', '.join(missing)}",
                source=source,
                entry_index=index,
            )

        return DeviceRecord(
            device_name=str(data["indiDeviceName"]),
            local_node_path=str(data["linuxDeviceName"]),
            driver_name=str(data["indiDeviceDriverName"]),
            auto_connect_enabled=self._parse_bool(
                data.get("enableAutoConnect", False), source, index
            ),
        )

    @staticmethod
    def _parse_bool(value: Any, source: str, index: int) -> bool:
        """Parse a boolean flag, accepting "true"/"false" strings."""
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.lower() in ("true", "false"):
            return value.lower() == "true"
        raise DeviceConfigError(
            f"Device entry {index} in {source} has invalid enableAutoConnect: {value!r}",
            source=source,
            entry_index=index,
        )
