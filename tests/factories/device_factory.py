"""
Device-related test data factories.
"""
import factory

from device_watchdog.devices.device_record import DeviceRecord


class DeviceRecordFactory(factory.Factory):
    """
    Factory for creating monitored device records.

    Usage:
        record = DeviceRecordFactory()
        record = DeviceRecordFactory(auto_connect_enabled=False)
        records = DeviceRecordFactory.build_batch(3)
    """

    class Meta:
        model = DeviceRecord

    device_name = factory.Sequence(lambda n: f"Device {n}")
    local_node_path = factory.Sequence(lambda n: f"/dev/ttyUSB{n}")
    driver_name = factory.Sequence(lambda n: f"indi_driver_{n}")
    auto_connect_enabled = True
    remote_handle = None


class CcdSimulatorRecordFactory(DeviceRecordFactory):
    """Factory for the INDI CCD simulator device."""

    device_name = "CCD Simulator"
    local_node_path = "/dev/ttyACM0"
    driver_name = "indi_simulator_ccd"


class DeviceConfigEntryFactory(factory.DictFactory):
    """
    Factory for device entries of the configuration file.
    """

    indiDeviceName = factory.Sequence(lambda n: f"Device {n}")
    linuxDeviceName = factory.Sequence(lambda n: f"/dev/ttyUSB{n}")
    indiDeviceDriverName = factory.Sequence(lambda n: f"indi_driver_{n}")
    enableAutoConnect = True
