"""Device-management workflows: run a hub job, then confirm the device saw it."""

import logging
from datetime import timedelta
from typing import Dict, List, Mapping, Optional, Tuple

from .config import DEFAULT_DEADLINE, DEFAULT_POLL_INTERVAL, validate_polling
from .models import (
    FactoryReset,
    FirmwareUpdate,
    JobPayload,
    JobRequest,
    JobStatus,
    PropertyRead,
    PropertyWrite,
    Reboot,
)
from .observations import NOTIFY, ObservationLog, exec_key, notify_key, write_key
from .tracker import JobCompletionTracker

log = logging.getLogger(__name__)


class DevicePropertyNames:
    """System property names as exposed by the hub device twin."""

    REGISTRATION_LIFETIME = "Server_Lifetime"
    DEFAULT_MIN_PERIOD = "Server_DefaultMinPeriod"
    DEFAULT_MAX_PERIOD = "Server_DefaultMaxPeriod"
    MANUFACTURER = "Device_Manufacturer"
    MODEL_NUMBER = "Device_ModelNumber"
    SERIAL_NUMBER = "Device_SerialNumber"
    FIRMWARE_VERSION = "Device_FirmwareVersion"
    BATTERY_LEVEL = "Device_BatteryLevel"
    MEMORY_FREE = "Device_MemoryFree"
    CURRENT_TIME = "Device_CurrentTime"
    UTC_OFFSET = "Device_UtcOffset"
    TIMEZONE = "Device_Timezone"
    DEVICE_DESCRIPTION = "Device_Description"
    HARDWARE_VERSION = "Device_HardwareVersion"
    BATTERY_STATUS = "Device_BatteryStatus"
    MEMORY_TOTAL = "Device_MemoryTotal"
    FIRMWARE_UPDATE_STATE = "FirmwareUpdate_State"
    FIRMWARE_UPDATE_RESULT = "FirmwareUpdate_UpdateResult"
    FIRMWARE_PACKAGE_NAME = "FirmwarePackageName"
    FIRMWARE_PACKAGE_VERSION = "FirmwarePackageVersion"
    CONFIGURATION_NAME = "ConfigurationName"
    CONFIGURATION_VALUE = "ConfigurationValue"


class DeviceCommands:
    REBOOT = "Device_Reboot"
    FACTORY_RESET = "Device_FactoryReset"
    FIRMWARE_UPDATE = "FirmwareUpdate_Update"


FIRMWARE_UPDATE_RESULT_PATH = "/5/0/5"

# LWM2M resource path -> device twin property for every readable resource
# the hub observes on registration.
OBSERVED_RESOURCES: Dict[str, str] = {
    "/1/0/1": DevicePropertyNames.REGISTRATION_LIFETIME,
    "/1/0/2": DevicePropertyNames.DEFAULT_MIN_PERIOD,
    "/1/0/3": DevicePropertyNames.DEFAULT_MAX_PERIOD,
    "/3/0/0": DevicePropertyNames.MANUFACTURER,
    "/3/0/1": DevicePropertyNames.MODEL_NUMBER,
    "/3/0/2": DevicePropertyNames.SERIAL_NUMBER,
    "/3/0/3": DevicePropertyNames.FIRMWARE_VERSION,
    "/3/0/9": DevicePropertyNames.BATTERY_LEVEL,
    "/3/0/10": DevicePropertyNames.MEMORY_FREE,
    "/3/0/13": DevicePropertyNames.CURRENT_TIME,
    "/3/0/14": DevicePropertyNames.UTC_OFFSET,
    "/3/0/15": DevicePropertyNames.TIMEZONE,
    "/3/0/17": DevicePropertyNames.DEVICE_DESCRIPTION,
    "/3/0/18": DevicePropertyNames.HARDWARE_VERSION,
    "/3/0/20": DevicePropertyNames.BATTERY_STATUS,
    "/3/0/21": DevicePropertyNames.MEMORY_TOTAL,
    "/5/0/3": DevicePropertyNames.FIRMWARE_UPDATE_STATE,
    FIRMWARE_UPDATE_RESULT_PATH: DevicePropertyNames.FIRMWARE_UPDATE_RESULT,
    "/5/0/6": DevicePropertyNames.FIRMWARE_PACKAGE_NAME,
    "/5/0/7": DevicePropertyNames.FIRMWARE_PACKAGE_VERSION,
    "/10241/0/1": DevicePropertyNames.CONFIGURATION_NAME,
    "/10241/0/2": DevicePropertyNames.CONFIGURATION_VALUE,
}


def find_twin_mismatches(
    observations: ObservationLog,
    twin_properties: Mapping[str, Optional[str]],
    resources: Mapping[str, str] = OBSERVED_RESOURCES,
) -> Dict[str, Tuple[Optional[str], Optional[str]]]:
    """Compare what the device notified against the device twin.

    Returns:
        resource path -> (device value, twin value) for every resource whose
        values differ. Resources never notified count as ``None``.
    """
    mismatches = {}
    for path, property_name in resources.items():
        device_value = observations.get(notify_key(path))
        twin_value = twin_properties.get(property_name)
        if device_value != twin_value:
            mismatches[path] = (device_value, twin_value)
    return mismatches


class DeviceManager:
    """Runs device-management jobs against one device.

    Each operation schedules a hub job, waits for it to complete, then waits
    for the device-side acknowledgement in the observation log. Only events
    recorded after the job was scheduled count as its acknowledgement.
    """

    def __init__(
        self,
        tracker: JobCompletionTracker,
        observations: ObservationLog,
        device_id: str,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        deadline: float = DEFAULT_DEADLINE,
        ack_timeout: Optional[float] = None,
    ):
        validate_polling(poll_interval, deadline)
        self.tracker = tracker
        self.observations = observations
        self.device_id = device_id
        self.poll_interval = poll_interval
        self.deadline = deadline
        self.ack_timeout = ack_timeout if ack_timeout is not None else deadline

    async def run_job(self, payload: JobPayload) -> JobStatus:
        request = JobRequest.create(self.device_id, payload)
        status = await self.tracker.await_job_completion(
            request, poll_interval=self.poll_interval, deadline=self.deadline
        )
        log.info(f"{payload.operation} job completed for {self.device_id}")
        return status

    async def write_property(self, property_name: str, value: str) -> JobStatus:
        since = len(self.observations)
        status = await self.run_job(PropertyWrite(property_name=property_name, value=value))
        await self._await_ack(since, expected={write_key(property_name): value})
        log.info(f"Device received write of {property_name}")
        return status

    async def read_property(self, property_name: str) -> JobStatus:
        return await self.run_job(PropertyRead(property_name=property_name))

    async def reboot(self) -> JobStatus:
        since = len(self.observations)
        status = await self.run_job(Reboot())
        await self._await_ack(since, [exec_key(DeviceCommands.REBOOT)])
        log.info("Device received reboot command")
        return status

    async def factory_reset(self) -> JobStatus:
        since = len(self.observations)
        status = await self.run_job(FactoryReset())
        await self._await_ack(since, [exec_key(DeviceCommands.FACTORY_RESET)])
        log.info("Device received factory reset command")
        return status

    async def update_firmware(
        self, package_uri: str, timeout: timedelta = timedelta(hours=1)
    ) -> JobStatus:
        since = len(self.observations)
        status = await self.run_job(FirmwareUpdate(package_uri=package_uri, timeout=timeout))
        await self._await_ack(
            since,
            [
                exec_key(DeviceCommands.FIRMWARE_UPDATE),
                notify_key(FIRMWARE_UPDATE_RESULT_PATH),
            ],
        )
        log.info("Device received firmware update command and set the result")
        return status

    async def wait_for_observed_resources(
        self, expected: Mapping[str, str] = OBSERVED_RESOURCES
    ) -> Dict[str, Optional[str]]:
        """Wait until the device notified every expected resource path.

        Returns:
            resource path -> last notified value.
        """
        values = await self._await_ack(0, [notify_key(path) for path in expected])
        log.info("Device sent all notify messages")
        prefix_length = len(NOTIFY) + 1
        return {key[prefix_length:]: value for key, value in values.items()}

    def unexpected_resources(
        self, expected: Mapping[str, str] = OBSERVED_RESOURCES
    ) -> List[str]:
        """Resource paths the device notified that are not in ``expected``."""
        return [path for path in self.observations.suffixes(NOTIFY) if path not in expected]

    async def _await_ack(
        self,
        since: int,
        keys: Optional[List[str]] = None,
        expected: Optional[Mapping[str, str]] = None,
    ) -> Dict[str, Optional[str]]:
        return await self.observations.wait_for(
            keys or [],
            poll_interval=self.poll_interval,
            timeout=self.ack_timeout,
            expected=expected,
            since=since,
        )
