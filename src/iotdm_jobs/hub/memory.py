"""In-process job service that replays scripted status sequences."""

import asyncio
import logging
from typing import Callable, Dict, List, Optional, Sequence, Union

from iotdm_jobs.exceptions import QueryError, SubmissionError
from iotdm_jobs.models import JobHandle, JobRequest, JobStatus
from iotdm_jobs.services import JobStatusService, JobSubmissionService

log = logging.getLogger(__name__)

ScriptStep = Union[JobStatus, Exception]


class InMemoryJobService(JobSubmissionService, JobStatusService):
    """Scripted stand-in for the hub.

    Every submitted job replays ``sequence`` (or its own entry in
    ``scripts``), one step per status query. A step is either a status or an
    exception to raise from that query. Once the script is exhausted the last
    status is repeated.

    ``on_terminal`` is called once per job when its first terminal status is
    served, which lets callers simulate the device reacting to the job.
    """

    def __init__(
        self,
        sequence: Sequence[ScriptStep] = (JobStatus.RUNNING, JobStatus.COMPLETED),
        scripts: Optional[Dict[str, Sequence[ScriptStep]]] = None,
        initial_status: JobStatus = JobStatus.CREATED,
        submit_error: Optional[Exception] = None,
        query_delay: float = 0.0,
        on_terminal: Optional[Callable[[JobRequest, JobStatus], None]] = None,
    ):
        self.sequence = list(sequence)
        self.scripts = {job_id: list(steps) for job_id, steps in (scripts or {}).items()}
        self.initial_status = initial_status
        self.submit_error = submit_error
        self.query_delay = query_delay
        self.on_terminal = on_terminal

        self.submitted: List[JobRequest] = []
        self.query_counts: Dict[str, int] = {}
        self._requests: Dict[str, JobRequest] = {}
        self._pending: Dict[str, List[ScriptStep]] = {}
        self._current: Dict[str, JobStatus] = {}
        self._notified: set = set()

    async def submit(self, request: JobRequest) -> JobHandle:
        if self.submit_error is not None:
            raise SubmissionError(
                f"Failed to submit {request.operation} job: {self.submit_error}",
                job_id=request.job_id,
            ) from self.submit_error
        if request.job_id in self._requests:
            raise SubmissionError("Duplicate job id", job_id=request.job_id)

        self.submitted.append(request)
        self._requests[request.job_id] = request
        self._pending[request.job_id] = list(
            self.scripts.get(request.job_id, self.sequence)
        )
        self._current[request.job_id] = self.initial_status
        self.query_counts[request.job_id] = 0
        log.debug(f"Accepted {request}")

        self._maybe_notify(request.job_id)
        return JobHandle(job_id=request.job_id, status=self.initial_status)

    async def get_status(self, job_id: str) -> JobStatus:
        if job_id not in self._requests:
            raise QueryError("Unknown job", job_id=job_id)

        if self.query_delay:
            await asyncio.sleep(self.query_delay)

        self.query_counts[job_id] += 1
        pending = self._pending[job_id]
        if pending:
            step = pending.pop(0)
            if isinstance(step, Exception):
                if isinstance(step, QueryError):
                    raise step
                raise QueryError(f"Job status check failed: {step}", job_id=job_id) from step
            self._current[job_id] = step

        self._maybe_notify(job_id)
        return self._current[job_id]

    def status_of(self, job_id: str) -> JobStatus:
        return self._current[job_id]

    def _maybe_notify(self, job_id: str) -> None:
        status = self._current[job_id]
        if not status.is_terminal or job_id in self._notified:
            return
        self._notified.add(job_id)
        if self.on_terminal is not None:
            self.on_terminal(self._requests[job_id], status)

    async def close(self) -> None:
        """Nothing to release; mirrors HubJobClient.close."""
