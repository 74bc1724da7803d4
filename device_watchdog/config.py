"""
Configuration for the INDI Device Watchdog.

Provides settings for the INDI server connection, the reconciliation
loop, and driver restarts through the INDI server control pipe.
"""
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BrokerSettings(BaseSettings):
    """INDI server connection configuration."""

    model_config = SettingsConfigDict(
        env_prefix="INDI_",
        env_file=".env",
        extra="ignore",
    )

    host: str = Field(default="localhost", description="Hostname of the INDI server")
    port: int = Field(default=7624, description="Port of the INDI server")
    connect_timeout: float = Field(
        default=5.0,
        description="Seconds to wait for the server connection to become ready",
    )
    ready_poll_interval: float = Field(
        default=0.1,
        description="Seconds between readiness checks while connecting",
    )


class WatchdogLoopSettings(BaseSettings):
    """Reconciliation loop configuration."""

    model_config = SettingsConfigDict(
        env_prefix="WATCHDOG_",
        env_file=".env",
        extra="ignore",
    )

    tick_interval: float = Field(
        default=5.0,
        description="Seconds between two reconciliation sweeps",
    )


class RestartSettings(BaseSettings):
    """INDI driver restart configuration."""

    model_config = SettingsConfigDict(
        env_prefix="INDI_RESTART_",
        env_file=".env",
        extra="ignore",
    )

    trigger_limit: int = Field(
        default=3,
        ge=1,
        description="Restart requests needed before a known driver is restarted",
    )
    driver_bin_path: Path = Field(
        default=Path("/usr/bin"),
        description="Directory containing the INDI driver executables",
    )
    control_pipe: Path = Field(
        default=Path("/tmp/indiserverFIFO"),
        description="Control FIFO of the INDI server (indiserver -f)",
    )
    retain_strikes_on_failure: bool = Field(
        default=True,
        description="Keep the strike count at the trigger boundary when the restart could not be sent",
    )


class WatchdogSettings(BaseSettings):
    """Main configuration for the device watchdog."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="INDI Device Watchdog")
    log_level: str = Field(default="INFO")
    log_file: Optional[Path] = Field(
        default=None,
        description="Optional file receiving a copy of the log output",
    )

    # Paths
    devices_file: Path = Field(
        default=Path("indi_devices.json"),
        description="Config file with the devices to monitor",
    )

    # Sub-settings
    broker: BrokerSettings = Field(default_factory=BrokerSettings)
    watchdog: WatchdogLoopSettings = Field(default_factory=WatchdogLoopSettings)
    restart: RestartSettings = Field(default_factory=RestartSettings)


@lru_cache()
def get_watchdog_settings() -> WatchdogSettings:
    """
    Get cached watchdog settings.

    Uses LRU cache to avoid re-reading environment variables on every access.
    """
    return WatchdogSettings()
