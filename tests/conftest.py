"""
Shared pytest fixtures for device watchdog tests.

Provides fixtures for:
- Settings with short timeouts
- Restart primitive mock and restart coordinator
- Simulated INDI bus and sessions
- Device records and registry
"""
import pytest

from device_watchdog.bus.session import BrokerSession
from device_watchdog.config import (
    BrokerSettings,
    RestartSettings,
    WatchdogLoopSettings,
    WatchdogSettings,
)
from device_watchdog.devices.registry import DeviceRegistry
from device_watchdog.restart.coordinator import RestartCoordinator
from device_watchdog.supervision.reconciliation import ReconciliationEngine

from tests.factories import CcdSimulatorRecordFactory
from tests.simulators import FakeRestarter, SimulatedBus, SimulatedBusFactory, SimulatedRemoteDevice


# ============================================================================
# Settings Fixtures
# ============================================================================

@pytest.fixture
def fast_settings() -> WatchdogSettings:
    """Settings with timeouts short enough for tests."""
    return WatchdogSettings(
        broker=BrokerSettings(
            host="indi.test",
            port=7624,
            connect_timeout=0.3,
            ready_poll_interval=0.01,
        ),
        watchdog=WatchdogLoopSettings(tick_interval=0.02),
        restart=RestartSettings(trigger_limit=3),
    )


# ============================================================================
# Restart Fixtures
# ============================================================================

@pytest.fixture
def restarter() -> FakeRestarter:
    """Restart primitive that always succeeds."""
    return FakeRestarter()


@pytest.fixture
def failing_restarter() -> FakeRestarter:
    """Restart primitive that can never reach the INDI server."""
    return FakeRestarter(result=False)


@pytest.fixture
def coordinator(restarter) -> RestartCoordinator:
    """Restart coordinator with the default trigger limit."""
    return RestartCoordinator(restarter, trigger_limit=3)


# ============================================================================
# Bus Fixtures
# ============================================================================

@pytest.fixture
def bus() -> SimulatedBus:
    """Simulated bus, already connected."""
    bus = SimulatedBus()
    bus.connect_server()
    return bus


@pytest.fixture
def session(bus) -> BrokerSession:
    """Broker session on the simulated bus."""
    session = BrokerSession(bus, session_id=1)
    yield session
    session.close()


@pytest.fixture
def bus_factory() -> SimulatedBusFactory:
    """Factory creating a connectable simulated bus per session."""
    return SimulatedBusFactory()


@pytest.fixture
def ccd_device() -> SimulatedRemoteDevice:
    """Remote CCD simulator device, disconnected."""
    return SimulatedRemoteDevice("CCD Simulator")


# ============================================================================
# Device Fixtures
# ============================================================================

@pytest.fixture
def ccd_record():
    """Record for the CCD simulator with auto-connect enabled."""
    return CcdSimulatorRecordFactory(auto_connect_enabled=True)


@pytest.fixture
def registry(ccd_record) -> DeviceRegistry:
    """Registry monitoring the CCD simulator only."""
    return DeviceRegistry([ccd_record])


@pytest.fixture
def present_paths():
    """Set of local device node paths reported as existing."""
    return set()


@pytest.fixture
def engine(coordinator, present_paths) -> ReconciliationEngine:
    """Reconciliation engine probing ``present_paths`` instead of the filesystem."""
    return ReconciliationEngine(coordinator, path_exists=present_paths.__contains__)
