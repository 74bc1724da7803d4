"""
Unit tests for SessionSupervisor.

Tests session rebuilds, the reconciliation tick and the connection
loop against the simulated INDI bus.
"""
import asyncio
import threading

import pytest

from device_watchdog.bus.base import BusEvent
from device_watchdog.devices.registry import DeviceRegistry
from device_watchdog.supervision.supervisor import SessionSupervisor, SupervisorState
from device_watchdog.utils import wait_for_condition

from tests.factories import DeviceRecordFactory
from tests.simulators import SimulatedBus, SimulatedBusFactory, SimulatedRemoteDevice


async def wait_until(predicate, timeout: float = 2.0) -> None:
    await wait_for_condition(predicate, timeout=timeout, interval=0.01)


class SlowFirstConnectBus(SimulatedBus):
    """Bus whose first connect call hangs past the connect timeout and then fails."""

    def connect_server(self) -> bool:
        self.connect_calls += 1
        if self.connect_calls == 1:
            self._release.wait(0.6)
            return False
        self._connected = True
        return True


@pytest.fixture
def supervisor(registry, bus_factory, coordinator, engine, fast_settings):
    """Supervisor on simulated buses."""
    return SessionSupervisor(
        registry=registry,
        bus_factory=bus_factory,
        coordinator=coordinator,
        engine=engine,
        settings=fast_settings,
    )


class TestResetSession:
    """Tests for session rebuilds."""

    def test_first_session(self, supervisor, bus_factory):
        """Test a new session subscribes all handlers on a new bus."""
        session = supervisor.reset_session()

        assert session.bus is bus_factory.latest
        assert session.session_id == 1
        assert session.subscription_count == len(BusEvent)
        assert supervisor.state == SupervisorState.DISCONNECTED
        assert supervisor.get_stats()["session_created_at"] == session.created_at.isoformat()

    def test_rebuild_discards_old_session(self, supervisor, bus_factory, registry, ccd_device):
        """Test the old client is disconnected and its handles are dropped."""
        old = supervisor.reset_session()
        old.bus.connect_server()
        old.bus.announce(ccd_device)
        assert registry.get("CCD Simulator").remote_handle is ccd_device

        new = supervisor.reset_session()

        assert new is not old
        assert new.bus is not old.bus
        assert old.closed
        assert old.bus.disconnect_calls == 1
        assert all(old.bus.subscriber_count(event) == 0 for event in BusEvent)
        assert registry.get("CCD Simulator").remote_handle is None

    def test_old_bus_events_ignored(self, supervisor, registry, ccd_device):
        """Test late events from a discarded client do not reach the registry."""
        old = supervisor.reset_session()
        supervisor.reset_session()

        old.bus.announce(ccd_device)

        assert registry.get("CCD Simulator").remote_handle is None


class TestRunTick:
    """Tests for a single reconciliation sweep."""

    def test_tick_without_session(self, supervisor):
        """Test a tick before the first session does nothing."""
        assert supervisor.run_tick() is False

    def test_tick_without_action(self, supervisor, bus_factory):
        """Test a quiet tick keeps the session."""
        session = supervisor.reset_session()

        assert supervisor.run_tick() is False
        assert supervisor.session is session
        assert len(bus_factory.created) == 1

    def test_fired_restart_rebuilds_session(
        self, supervisor, bus_factory, restarter, present_paths, ccd_record
    ):
        """Test a fired restart replaces the session."""
        present_paths.add(ccd_record.local_node_path)
        first = supervisor.reset_session()
        first.bus.connect_server()

        assert supervisor.run_tick() is True

        assert restarter.restarted == ["indi_simulator_ccd"]
        assert first.closed
        assert supervisor.session is not first
        assert len(bus_factory.created) == 2
        assert supervisor.get_stats()["session_rebuilds"] == 1
        assert supervisor.get_stats()["last_restarted_devices"] == ["CCD Simulator"]

    def test_debounced_restart_keeps_session(
        self, supervisor, bus_factory, present_paths, ccd_record
    ):
        """Test a restart request that does not fire keeps the session."""
        present_paths.add(ccd_record.local_node_path)
        supervisor.reset_session()
        supervisor.run_tick()
        session = supervisor.session

        assert supervisor.run_tick() is False
        assert supervisor.session is session

    def test_sweep_stops_after_fired_restart(
        self, bus_factory, coordinator, engine, fast_settings, present_paths, restarter
    ):
        """Test devices after the restarted one wait for the next tick."""
        records = DeviceRecordFactory.build_batch(2)
        for record in records:
            present_paths.add(record.local_node_path)
        supervisor = SessionSupervisor(
            registry=DeviceRegistry(records),
            bus_factory=bus_factory,
            coordinator=coordinator,
            engine=engine,
            settings=fast_settings,
        )
        supervisor.reset_session()

        supervisor.run_tick()

        assert restarter.restarted == [records[0].driver_name]

    def test_sweep_with_events_on_same_thread(
        self, registry, coordinator, engine, fast_settings, present_paths, ccd_record
    ):
        """Test a bus answering a connect request synchronously does not block the sweep."""
        bus_factory = SimulatedBusFactory(apply_requests=True)
        supervisor = SessionSupervisor(
            registry=registry,
            bus_factory=bus_factory,
            coordinator=coordinator,
            engine=engine,
            settings=fast_settings,
        )
        session = supervisor.reset_session()
        session.bus.connect_server()
        device = SimulatedRemoteDevice("CCD Simulator")
        session.bus.announce(device)
        present_paths.add(ccd_record.local_node_path)

        sweep = threading.Thread(target=supervisor.run_tick, daemon=True)
        sweep.start()
        sweep.join(timeout=2.0)

        assert not sweep.is_alive()
        assert device.connected
        assert registry.get("CCD Simulator").last_property_update_at is not None

    def test_events_from_bus_thread_during_sweeps(self, supervisor, registry):
        """Test announce/remove events from another thread interleave with ticks."""
        session = supervisor.reset_session()
        session.bus.connect_server()
        device = SimulatedRemoteDevice("CCD Simulator")

        def deliver_events():
            for _ in range(200):
                session.bus.announce(device)
                session.bus.update_property("CCD Simulator")
                session.bus.remove(device)
            session.bus.announce(device)

        events = threading.Thread(target=deliver_events, daemon=True)
        events.start()
        for _ in range(200):
            supervisor.run_tick()
        events.join(timeout=5.0)

        assert not events.is_alive()
        assert registry.get("CCD Simulator").remote_handle is device
        assert supervisor.session is session


class TestRun:
    """Tests for the supervision loop."""

    @pytest.mark.asyncio
    async def test_connects_and_stops(self, supervisor, bus_factory):
        """Test the loop connects, ticks and shuts down cleanly."""
        task = asyncio.create_task(supervisor.run())

        await wait_until(lambda: supervisor.state == SupervisorState.CONNECTED)
        await wait_until(lambda: supervisor.get_stats()["ticks"] >= 2)

        await supervisor.stop()
        await asyncio.wait_for(task, timeout=2.0)

        assert not supervisor.is_running
        assert supervisor.session is None
        assert supervisor.state == SupervisorState.DISCONNECTED
        assert bus_factory.created[0].disconnect_calls == 1

    @pytest.mark.asyncio
    async def test_auto_connects_announced_device(
        self, registry, coordinator, engine, fast_settings, present_paths, ccd_record
    ):
        """Test an announced device with local node gets connected."""
        bus_factory = SimulatedBusFactory(apply_requests=True)
        supervisor = SessionSupervisor(
            registry=registry,
            bus_factory=bus_factory,
            coordinator=coordinator,
            engine=engine,
            settings=fast_settings,
        )
        device = SimulatedRemoteDevice("CCD Simulator")
        task = asyncio.create_task(supervisor.run())

        await wait_until(lambda: supervisor.state == SupervisorState.CONNECTED)
        bus_factory.latest.announce(device)
        present_paths.add(ccd_record.local_node_path)
        await wait_until(lambda: device.connected)

        await supervisor.stop()
        await asyncio.wait_for(task, timeout=2.0)

        assert bus_factory.created[0].requests == [("CCD Simulator", True)]

    @pytest.mark.asyncio
    async def test_retries_after_connect_timeout(self, registry, coordinator, engine, fast_settings):
        """Test a server that never answers is retried until stopped."""
        bus_factory = SimulatedBusFactory(connect_delay=10.0)
        supervisor = SessionSupervisor(
            registry=registry,
            bus_factory=bus_factory,
            coordinator=coordinator,
            engine=engine,
            settings=fast_settings,
        )
        task = asyncio.create_task(supervisor.run())

        await wait_until(lambda: supervisor.get_stats()["connect_attempts"] >= 2)
        assert supervisor.state == SupervisorState.CONNECTING

        await supervisor.stop()
        await asyncio.wait_for(task, timeout=2.0)

    @pytest.mark.asyncio
    async def test_late_failure_of_timed_out_attempt(
        self, registry, coordinator, engine, fast_settings
    ):
        """Test a connect call failing after its timeout does not drop the next connection."""
        bus_factory = SimulatedBusFactory(bus_class=SlowFirstConnectBus)
        supervisor = SessionSupervisor(
            registry=registry,
            bus_factory=bus_factory,
            coordinator=coordinator,
            engine=engine,
            settings=fast_settings,
        )
        task = asyncio.create_task(supervisor.run())

        await wait_until(lambda: supervisor.state == SupervisorState.CONNECTED, timeout=3.0)
        attempts = supervisor.get_stats()["connect_attempts"]
        await asyncio.sleep(0.8)

        assert supervisor.state == SupervisorState.CONNECTED
        assert supervisor.get_stats()["connect_attempts"] == attempts
        assert bus_factory.latest.connect_calls == 2

        await supervisor.stop()
        await asyncio.wait_for(task, timeout=2.0)

    @pytest.mark.asyncio
    async def test_retries_after_refused_connection(
        self, registry, coordinator, engine, fast_settings
    ):
        """Test a refused connection is retried after the connect window."""
        bus_factory = SimulatedBusFactory(connect_result=False)
        supervisor = SessionSupervisor(
            registry=registry,
            bus_factory=bus_factory,
            coordinator=coordinator,
            engine=engine,
            settings=fast_settings,
        )
        task = asyncio.create_task(supervisor.run())

        await wait_until(lambda: supervisor.get_stats()["connect_attempts"] >= 2)

        assert supervisor.get_stats()["ticks"] == 0
        assert len(bus_factory.created) == 1

        await supervisor.stop()
        await asyncio.wait_for(task, timeout=2.0)

    @pytest.mark.asyncio
    async def test_reconnects_after_connection_loss(self, supervisor, bus_factory):
        """Test a lost server connection is re-established on the same session."""
        task = asyncio.create_task(supervisor.run())
        await wait_until(lambda: supervisor.state == SupervisorState.CONNECTED)

        bus_factory.latest.fail_connection()

        await wait_until(lambda: supervisor.get_stats()["connect_attempts"] >= 2)
        await wait_until(lambda: supervisor.state == SupervisorState.CONNECTED)

        assert len(bus_factory.created) == 1
        assert supervisor.get_stats()["events"]["connection_failed"] == 1

        await supervisor.stop()
        await asyncio.wait_for(task, timeout=2.0)

    @pytest.mark.asyncio
    async def test_restart_starts_new_session(
        self, supervisor, bus_factory, restarter, present_paths, ccd_record
    ):
        """Test the loop reconnects with a new client after a driver restart."""
        present_paths.add(ccd_record.local_node_path)
        task = asyncio.create_task(supervisor.run())

        await wait_until(lambda: len(bus_factory.created) >= 2)
        await wait_until(lambda: supervisor.state == SupervisorState.CONNECTED)

        assert restarter.restarted[0] == "indi_simulator_ccd"
        assert bus_factory.created[0].disconnect_calls == 1
        assert supervisor.session.bus is bus_factory.latest

        await supervisor.stop()
        await asyncio.wait_for(task, timeout=2.0)

    @pytest.mark.asyncio
    async def test_stop_forgets_strikes(self, supervisor, coordinator):
        """Test strike counts do not survive a stop."""
        coordinator.request_restart("indi_simulator_ccd")
        task = asyncio.create_task(supervisor.run())
        await wait_until(lambda: supervisor.state == SupervisorState.CONNECTED)

        await supervisor.stop()
        await asyncio.wait_for(task, timeout=2.0)

        assert coordinator.strike_count("indi_simulator_ccd") is None

    @pytest.mark.asyncio
    async def test_stop_before_run(self, supervisor):
        """Test stopping an idle supervisor is a no-op."""
        await supervisor.stop()

        assert supervisor.session is None
