"""Collaborator contracts the tracker talks to."""

from abc import ABC, abstractmethod

from .models import JobHandle, JobRequest, JobStatus


class JobSubmissionService(ABC):
    @abstractmethod
    async def submit(self, request: JobRequest) -> JobHandle:
        """Schedule a job.

        Job ids are caller-supplied, so a resubmission is never idempotent.

        Raises:
            SubmissionError: If the job could not be scheduled.
        """


class JobStatusService(ABC):
    @abstractmethod
    async def get_status(self, job_id: str) -> JobStatus:
        """Fetch the current status of a job.

        Raises:
            QueryError: If the status could not be read.
        """
