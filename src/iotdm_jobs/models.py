import uuid
from datetime import timedelta
from enum import Enum
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class JobStatus(str, Enum):
    """Progression of a hub job.

    Members compare by execution progress, not alphabetically:
    CREATED < RUNNING < COMPLETED < FAILED < CANCELLED.
    """

    CREATED = "created"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)

    @property
    def is_terminal(self) -> bool:
        return self.rank >= JobStatus.COMPLETED.rank

    def __lt__(self, other):
        if not isinstance(other, JobStatus):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, JobStatus):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, JobStatus):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, JobStatus):
            return NotImplemented
        return self.rank >= other.rank

    @classmethod
    def parse(cls, raw: Any) -> "JobStatus":
        """Map a hub status string onto the progression.

        Raises:
            ValueError: If the status is not a known hub job status.
        """
        if isinstance(raw, JobStatus):
            return raw
        if not isinstance(raw, str):
            raise ValueError(f"Job status must be a string, got {type(raw).__name__}")
        try:
            return _WIRE_ALIASES[raw.strip().lower()]
        except KeyError:
            raise ValueError(f"Unknown job status: {raw!r}") from None


_STATUS_ORDER = list(JobStatus)

_WIRE_ALIASES = {
    "created": JobStatus.CREATED,
    "unknown": JobStatus.CREATED,
    "enqueued": JobStatus.CREATED,
    "queued": JobStatus.CREATED,
    "scheduled": JobStatus.CREATED,
    "running": JobStatus.RUNNING,
    "completed": JobStatus.COMPLETED,
    "failed": JobStatus.FAILED,
    "cancelled": JobStatus.CANCELLED,
    "canceled": JobStatus.CANCELLED,
}


class _Payload(BaseModel):
    model_config = ConfigDict(
        frozen=True, alias_generator=to_camel, populate_by_name=True
    )

    def to_parameters(self) -> Dict[str, Any]:
        """Operation parameters as sent on the wire."""
        return self.model_dump(by_alias=True, mode="json", exclude={"operation"})


class PropertyWrite(_Payload):
    operation: Literal["writeDeviceProperty"] = "writeDeviceProperty"
    property_name: str
    value: str


class PropertyRead(_Payload):
    operation: Literal["readDeviceProperty"] = "readDeviceProperty"
    property_name: str


class Reboot(_Payload):
    operation: Literal["rebootDevice"] = "rebootDevice"


class FactoryReset(_Payload):
    operation: Literal["factoryResetDevice"] = "factoryResetDevice"


class FirmwareUpdate(_Payload):
    operation: Literal["firmwareUpdate"] = "firmwareUpdate"
    package_uri: str
    timeout: timedelta = timedelta(hours=1)


JobPayload = Annotated[
    Union[PropertyWrite, PropertyRead, Reboot, FactoryReset, FirmwareUpdate],
    Field(discriminator="operation"),
]


class JobRequest(BaseModel):
    """A job addressed at one device. Immutable once built."""

    model_config = ConfigDict(
        frozen=True, alias_generator=to_camel, populate_by_name=True
    )

    job_id: str
    target_id: str
    payload: JobPayload

    @field_validator("job_id", "target_id")
    @classmethod
    def validate_identifier(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("identifier must be a non-empty string")
        return value

    @classmethod
    def create(
        cls, target_id: str, payload: JobPayload, job_id: Optional[str] = None
    ) -> "JobRequest":
        """Build a request with a fresh UUID job id unless one is given."""
        return cls(job_id=job_id or str(uuid.uuid4()), target_id=target_id, payload=payload)

    @property
    def operation(self) -> str:
        return self.payload.operation

    def __str__(self) -> str:
        return f"{self.operation}:{self.job_id}@{self.target_id}"


class JobHandle(BaseModel):
    """Current status snapshot of a submitted job."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    job_id: str
    status: JobStatus = JobStatus.CREATED

    @field_validator("status", mode="before")
    @classmethod
    def parse_status(cls, value: Any) -> JobStatus:
        return JobStatus.parse(value)
