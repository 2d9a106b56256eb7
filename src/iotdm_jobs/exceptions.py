"""Custom exceptions for device-management job tracking.

Every tracker failure carries the job id, the last status seen and the time
spent waiting so a failure report is diagnosable on its own.
"""

from typing import Optional

from .models import JobStatus


class TrackerError(Exception):
    """Base exception for job tracking failures."""

    def __init__(
        self,
        message: str,
        job_id: Optional[str] = None,
        last_status: Optional[JobStatus] = None,
        elapsed: Optional[float] = None,
    ):
        self.job_id = job_id
        self.last_status = last_status
        self.elapsed = elapsed
        self.reason = message
        super().__init__(self._format(message))

    def _format(self, message: str) -> str:
        details = []
        if self.job_id is not None:
            details.append(f"job_id={self.job_id}")
        if self.last_status is not None:
            details.append(f"last_status={self.last_status.value}")
        if self.elapsed is not None:
            details.append(f"elapsed={self.elapsed:.2f}s")
        if not details:
            return message
        return f"{message} ({', '.join(details)})"


class SubmissionError(TrackerError):
    """Raised when a job could not be submitted. Never retried."""

    pass


class QueryError(TrackerError):
    """Raised when a status query fails. Transient while polling."""

    pass


class JobTimeoutError(TrackerError, TimeoutError):
    """Raised when the deadline passes before a terminal status is observed."""

    pass


class JobOutcomeError(TrackerError):
    """Raised when a job reached FAILED or CANCELLED."""

    pass


class TrackerCancelledError(TrackerError):
    """Raised when the caller cancels a tracking session."""

    pass


class StatusRegressionError(TrackerError):
    """Raised in strict mode when a status moves backwards."""

    pass


class ObservationTimeoutError(TimeoutError):
    """Raised when device-side events do not show up in time."""

    def __init__(self, missing: list, elapsed: float):
        self.missing = list(missing)
        self.elapsed = elapsed
        super().__init__(
            f"Device events not observed after {elapsed:.2f}s: "
            f"{', '.join(self.missing)}"
        )


class HubCredentialsError(Exception):
    """Raised when no hub API token is configured.

    Provides guidance on where the token is read from.
    """

    def __init__(self, message: str | None = None):
        if message is None:
            message = self._default_message()
        super().__init__(message)

    @staticmethod
    def _default_message() -> str:
        return """IOTDM_API_TOKEN environment variable is required but not set.

Set your hub token using one of these methods:

  1. Environment variable:
     export IOTDM_API_TOKEN=your_token_here

  2. In your project's .env file:
     echo "IOTDM_API_TOKEN=your_token_here" >> .env

  3. In the credentials file (~/.config/iotdm/credentials.toml):
     api_token = "your_token_here"
"""
