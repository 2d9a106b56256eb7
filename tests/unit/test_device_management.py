"""Tests for device-management workflows."""

from datetime import timedelta

import pytest

from iotdm_jobs.device_management import (
    FIRMWARE_UPDATE_RESULT_PATH,
    OBSERVED_RESOURCES,
    DeviceCommands,
    DeviceManager,
    DevicePropertyNames,
    find_twin_mismatches,
)
from iotdm_jobs.exceptions import JobOutcomeError, ObservationTimeoutError
from iotdm_jobs.hub.memory import InMemoryJobService
from iotdm_jobs.models import FirmwareUpdate, JobStatus, PropertyRead, PropertyWrite, Reboot
from iotdm_jobs.observations import exec_key, notify_key, write_key


def simulated_device(observations):
    """Record the device-side events a completed job would produce."""

    def on_terminal(request, status):
        if status != JobStatus.COMPLETED:
            return
        payload = request.payload
        if isinstance(payload, PropertyWrite):
            observations.record(write_key(payload.property_name), payload.value)
        elif isinstance(payload, FirmwareUpdate):
            observations.record(exec_key(DeviceCommands.FIRMWARE_UPDATE))
            observations.record(notify_key(FIRMWARE_UPDATE_RESULT_PATH), "1")
        elif isinstance(payload, Reboot):
            observations.record(exec_key(DeviceCommands.REBOOT))
        elif payload.operation == "factoryResetDevice":
            observations.record(exec_key(DeviceCommands.FACTORY_RESET))

    return on_terminal


@pytest.fixture
def device_service(observations):
    return InMemoryJobService(on_terminal=simulated_device(observations))


@pytest.fixture
def manager(make_tracker, device_service, observations):
    return DeviceManager(
        make_tracker(device_service),
        observations,
        "device-1",
        poll_interval=0.01,
        deadline=1.0,
        ack_timeout=0.2,
    )


class TestDeviceManager:
    """Test each device-management operation end to end."""

    @pytest.mark.asyncio
    async def test_write_property(self, manager, device_service, observations):
        status = await manager.write_property(DevicePropertyNames.TIMEZONE, "-10:00")

        assert status == JobStatus.COMPLETED
        request = device_service.submitted[0]
        assert request.target_id == "device-1"
        assert request.payload == PropertyWrite(property_name="Device_Timezone", value="-10:00")
        assert observations.latest("write.Device_Timezone") == "-10:00"

    @pytest.mark.asyncio
    async def test_write_property_requires_matching_value(self, make_tracker, observations):
        service = InMemoryJobService(
            on_terminal=lambda request, status: observations.record(
                "write.Device_Timezone", "+01:00"
            )
        )
        manager = DeviceManager(
            make_tracker(service),
            observations,
            "device-1",
            poll_interval=0.01,
            deadline=1.0,
            ack_timeout=0.05,
        )

        with pytest.raises(ObservationTimeoutError) as exc_info:
            await manager.write_property(DevicePropertyNames.TIMEZONE, "-10:00")

        assert exc_info.value.missing == ["write.Device_Timezone"]

    @pytest.mark.asyncio
    async def test_read_property_needs_no_ack(self, manager, device_service, observations):
        status = await manager.read_property(DevicePropertyNames.TIMEZONE)

        assert status == JobStatus.COMPLETED
        assert isinstance(device_service.submitted[0].payload, PropertyRead)
        assert len(observations) == 0

    @pytest.mark.asyncio
    async def test_reboot(self, manager, observations):
        assert await manager.reboot() == JobStatus.COMPLETED
        assert exec_key("Device_Reboot") in observations

    @pytest.mark.asyncio
    async def test_factory_reset(self, manager, device_service, observations):
        assert await manager.factory_reset() == JobStatus.COMPLETED
        assert device_service.submitted[0].operation == "factoryResetDevice"
        assert exec_key("Device_FactoryReset") in observations

    @pytest.mark.asyncio
    async def test_update_firmware(self, manager, device_service, observations):
        status = await manager.update_firmware(
            "http://www.bing.com", timeout=timedelta(minutes=30)
        )

        assert status == JobStatus.COMPLETED
        payload = device_service.submitted[0].payload
        assert payload.package_uri == "http://www.bing.com"
        assert payload.timeout == timedelta(minutes=30)
        assert observations.latest("notify./5/0/5") == "1"

    @pytest.mark.asyncio
    async def test_missing_ack_times_out(self, make_tracker, observations):
        manager = DeviceManager(
            make_tracker(InMemoryJobService()),
            observations,
            "device-1",
            poll_interval=0.01,
            deadline=1.0,
            ack_timeout=0.05,
        )

        with pytest.raises(ObservationTimeoutError):
            await manager.reboot()

    @pytest.mark.asyncio
    async def test_failed_job_skips_ack(self, make_tracker, observations):
        service = InMemoryJobService(
            sequence=[JobStatus.FAILED], on_terminal=simulated_device(observations)
        )
        manager = DeviceManager(
            make_tracker(service), observations, "device-1", poll_interval=0.01, deadline=1.0
        )

        with pytest.raises(JobOutcomeError) as exc_info:
            await manager.reboot()

        assert exc_info.value.last_status == JobStatus.FAILED
        assert len(observations) == 0

    @pytest.mark.asyncio
    async def test_repeated_reboot_needs_a_fresh_ack(self, make_tracker, observations):
        acks = []

        def device_acks_once(request, status):
            if not acks:
                acks.append(request.job_id)
                observations.record(exec_key(DeviceCommands.REBOOT))

        service = InMemoryJobService(on_terminal=device_acks_once)
        manager = DeviceManager(
            make_tracker(service),
            observations,
            "device-1",
            poll_interval=0.01,
            deadline=1.0,
            ack_timeout=0.05,
        )

        assert await manager.reboot() == JobStatus.COMPLETED
        with pytest.raises(ObservationTimeoutError) as exc_info:
            await manager.reboot()

        assert exc_info.value.missing == ["exec.Device_Reboot"]
        assert len(acks) == 1

    @pytest.mark.asyncio
    async def test_repeated_write_of_same_value_is_acknowledged_again(
        self, manager, observations
    ):
        await manager.write_property(DevicePropertyNames.TIMEZONE, "-10:00")
        await manager.write_property(DevicePropertyNames.TIMEZONE, "-10:00")

        writes = [e for e in observations.entries() if e.key == "write.Device_Timezone"]
        assert len(writes) == 2

    def test_invalid_polling_rejected(self, make_tracker, service, observations):
        with pytest.raises(ValueError):
            DeviceManager(
                make_tracker(service), observations, "device-1", poll_interval=5, deadline=1
            )

    def test_ack_timeout_defaults_to_deadline(self, make_tracker, service, observations):
        manager = DeviceManager(
            make_tracker(service), observations, "device-1", poll_interval=1, deadline=30
        )
        assert manager.ack_timeout == 30


class TestObservedResources:
    """Test registration-time resource notifications."""

    @pytest.mark.asyncio
    async def test_wait_for_observed_resources(self, manager, observations):
        for path in OBSERVED_RESOURCES:
            observations.record(notify_key(path), f"value{path}")

        values = await manager.wait_for_observed_resources()

        assert set(values) == set(OBSERVED_RESOURCES)
        assert values["/3/0/15"] == "value/3/0/15"

    @pytest.mark.asyncio
    async def test_missing_resources_time_out(self, manager, observations):
        observations.record(notify_key("/3/0/0"), "Contoso")

        with pytest.raises(ObservationTimeoutError) as exc_info:
            await manager.wait_for_observed_resources({"/3/0/0": "a", "/3/0/1": "b"})

        assert exc_info.value.missing == ["notify./3/0/1"]

    def test_unexpected_resources(self, manager, observations):
        observations.record(notify_key("/3/0/15"), "-10:00")
        observations.record(notify_key("/4/0/0"), "1")

        assert manager.unexpected_resources() == ["/4/0/0"]

    def test_observed_resources_cover_twin_properties(self):
        assert len(OBSERVED_RESOURCES) == 22
        assert OBSERVED_RESOURCES["/3/0/15"] == DevicePropertyNames.TIMEZONE
        assert OBSERVED_RESOURCES[FIRMWARE_UPDATE_RESULT_PATH] == "FirmwareUpdate_UpdateResult"


class TestTwinMismatches:
    def test_matching_twin_has_no_mismatches(self, observations):
        resources = {"/3/0/15": "Device_Timezone", "/3/0/9": "Device_BatteryLevel"}
        observations.record(notify_key("/3/0/15"), "-10:00")
        observations.record(notify_key("/3/0/9"), "90")

        mismatches = find_twin_mismatches(
            observations,
            {"Device_Timezone": "-10:00", "Device_BatteryLevel": "90"},
            resources,
        )

        assert mismatches == {}

    def test_reports_differing_and_unreported_values(self, observations):
        resources = {"/3/0/15": "Device_Timezone", "/3/0/9": "Device_BatteryLevel"}
        observations.record(notify_key("/3/0/15"), "+01:00")

        mismatches = find_twin_mismatches(
            observations,
            {"Device_Timezone": "-10:00", "Device_BatteryLevel": "90"},
            resources,
        )

        assert mismatches == {
            "/3/0/15": ("+01:00", "-10:00"),
            "/3/0/9": (None, "90"),
        }
