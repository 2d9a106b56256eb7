import asyncio

from dotenv import load_dotenv

from iotdm_jobs import (
    DeviceManager,
    InMemoryJobService,
    JobCompletionTracker,
    JobStatus,
    ObservationLog,
    PropertyWrite,
)
from iotdm_jobs.device_management import DevicePropertyNames

# Load environment variables from .env file
load_dotenv()

observations = ObservationLog()


def device_reacts(request, status):
    """Stand in for the device client acknowledging a completed write."""
    if status == JobStatus.COMPLETED and isinstance(request.payload, PropertyWrite):
        observations.record(f"write.{request.payload.property_name}", request.payload.value)


async def main():
    # Swap in HubJobClient.from_config(get_settings().hub) to talk to a real hub
    service = InMemoryJobService(
        sequence=[JobStatus.CREATED, JobStatus.RUNNING, JobStatus.COMPLETED],
        on_terminal=device_reacts,
    )
    tracker = JobCompletionTracker(service)
    manager = DeviceManager(tracker, observations, "device-1", poll_interval=0.5, deadline=10)

    status = await manager.write_property(DevicePropertyNames.TIMEZONE, "-10:00")
    print(f"Timezone write: {status.value}")
    print(f"Device saw: {observations.latest('write.Device_Timezone')}")


if __name__ == "__main__":
    asyncio.run(main())
