"""Job completion tracking: submit a hub job, then poll it to a terminal status."""

import asyncio
import logging
from typing import Any, Awaitable, Iterable, List, Optional, Union

from .config import (
    DEFAULT_DEADLINE,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_REQUEST_TIMEOUT,
    Settings,
    validate_polling,
)
from .exceptions import (
    JobOutcomeError,
    JobTimeoutError,
    QueryError,
    StatusRegressionError,
    SubmissionError,
    TrackerCancelledError,
    TrackerError,
)
from .metrics import JobMetrics
from .models import JobHandle, JobRequest, JobStatus
from .services import JobStatusService, JobSubmissionService

log = logging.getLogger(__name__)


class JobCompletionTracker:
    """Submits jobs and waits for them to reach a terminal status.

    One tracker can serve any number of concurrent jobs: every call to
    :meth:`await_job_completion` runs its own polling session with its own
    :class:`JobHandle`, and the only suspension points are the sleep between
    polls and the network calls themselves.

    Failure semantics:
        - Submission failures raise :class:`SubmissionError` right away and are
          never retried, since job ids are caller-supplied.
        - Status query failures of any kind are transient; the next tick
          retries them until the deadline. Each query is cut short so the
          deadline is never overrun by more than one poll interval.
        - The deadline raises :class:`JobTimeoutError` carrying the last
          non-terminal status.
        - FAILED or CANCELLED jobs raise :class:`JobOutcomeError`.
        - Setting the session's cancel event raises
          :class:`TrackerCancelledError`.
    """

    def __init__(
        self,
        submission_service: JobSubmissionService,
        status_service: Optional[JobStatusService] = None,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        strict_ordering: bool = False,
        metrics: Optional[JobMetrics] = None,
    ):
        """Initialize the tracker.

        Args:
            submission_service: Where jobs are scheduled.
            status_service: Where job status is read. Defaults to the
                submission service when it implements both contracts.
            request_timeout: Bound on each individual network call, in seconds.
            strict_ordering: Raise :class:`StatusRegressionError` when a status
                moves backwards instead of ignoring the stale snapshot.
            metrics: Metrics helper. Defaults to the global collector.
        """
        if status_service is None:
            if not isinstance(submission_service, JobStatusService):
                raise TypeError(
                    "status_service is required when the submission service "
                    "cannot report job status"
                )
            status_service = submission_service
        if request_timeout <= 0:
            raise ValueError(f"request_timeout must be > 0, got {request_timeout}")

        self.submission_service = submission_service
        self.status_service = status_service
        self.request_timeout = request_timeout
        self.strict_ordering = strict_ordering
        self.metrics = metrics or JobMetrics()

    @classmethod
    def from_settings(
        cls,
        service: Any,
        settings: Settings,
        metrics: Optional[JobMetrics] = None,
    ) -> "JobCompletionTracker":
        """Build a tracker for a service implementing both contracts."""
        return cls(
            service,
            request_timeout=settings.hub.request_timeout,
            strict_ordering=settings.polling.strict_ordering,
            metrics=metrics,
        )

    async def await_job_completion(
        self,
        request: JobRequest,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        deadline: float = DEFAULT_DEADLINE,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> JobStatus:
        """Submit ``request`` and poll until the job is terminal.

        Args:
            request: Job to schedule. Its id must not collide with a job
                still in flight.
            poll_interval: Seconds to sleep between status queries.
            deadline: Seconds to wait for a terminal status, counted from
                just before submission.
            cancel_event: Setting this event stops tracking promptly.

        Returns:
            JobStatus.COMPLETED.

        Raises:
            ValueError: If the interval or deadline are not usable.
            SubmissionError: If the job could not be scheduled.
            JobTimeoutError: If no terminal status was seen before the deadline.
            JobOutcomeError: If the job FAILED or was CANCELLED.
            TrackerCancelledError: If ``cancel_event`` was set.
            StatusRegressionError: In strict mode, if the status moved backwards.
        """
        validate_polling(poll_interval, deadline)
        session = _TrackingSession(
            self, request, poll_interval, deadline, cancel_event or asyncio.Event()
        )
        return await session.run()

    def track(
        self,
        request: JobRequest,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        deadline: float = DEFAULT_DEADLINE,
    ) -> "TrackedJob":
        """Schedule tracking of ``request`` as its own asyncio task.

        Must be called from a running event loop.
        """
        cancel_event = asyncio.Event()
        task = asyncio.create_task(
            self.await_job_completion(request, poll_interval, deadline, cancel_event),
            name=f"track-job-{request.job_id}",
        )
        return TrackedJob(request, task, cancel_event)

    async def await_all(
        self,
        requests: Iterable[JobRequest],
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        deadline: float = DEFAULT_DEADLINE,
    ) -> List[Union[JobStatus, TrackerError]]:
        """Track several jobs concurrently.

        Returns:
            One entry per request, in order: the final status, or the
            :class:`TrackerError` that ended its tracking.
        """
        tracked = [self.track(request, poll_interval, deadline) for request in requests]
        try:
            results = await asyncio.gather(
                *(job.wait() for job in tracked), return_exceptions=True
            )
        finally:
            for job in tracked:
                if not job.done():
                    job.cancel()
        for result in results:
            if isinstance(result, BaseException) and not isinstance(result, TrackerError):
                raise result
        return results


class TrackedJob:
    """A job being tracked in the background."""

    def __init__(
        self, request: JobRequest, task: "asyncio.Task[JobStatus]", cancel_event: asyncio.Event
    ):
        self.request = request
        self._task = task
        self._cancel_event = cancel_event

    @property
    def job_id(self) -> str:
        return self.request.job_id

    def cancel(self) -> None:
        """Stop tracking; the pending wait raises TrackerCancelledError."""
        self._cancel_event.set()

    def done(self) -> bool:
        return self._task.done()

    async def wait(self) -> JobStatus:
        return await self._task

    def __await__(self):
        return self._task.__await__()

    def __repr__(self) -> str:
        state = "done" if self.done() else "pending"
        return f"TrackedJob(job_id={self.job_id}, {state})"


class _TrackingSession:
    """State of one polling session. Owns its JobHandle exclusively."""

    def __init__(
        self,
        tracker: JobCompletionTracker,
        request: JobRequest,
        poll_interval: float,
        deadline: float,
        cancel_event: asyncio.Event,
    ):
        self.tracker = tracker
        self.request = request
        self.poll_interval = poll_interval
        self.deadline = deadline
        self.cancel_event = cancel_event
        self.handle: Optional[JobHandle] = None
        self.log_group = f"Job:{request.job_id}"
        self._loop = asyncio.get_running_loop()
        self._started = self._loop.time()

    def elapsed(self) -> float:
        return self._loop.time() - self._started

    @property
    def last_status(self) -> Optional[JobStatus]:
        return self.handle.status if self.handle else None

    def _error(self, error_cls, message: str) -> TrackerError:
        return error_cls(
            message,
            job_id=self.request.job_id,
            last_status=self.last_status,
            elapsed=self.elapsed(),
        )

    async def run(self) -> JobStatus:
        operation = self.request.operation
        try:
            status = await self._track()
        except TrackerError as e:
            if isinstance(e, JobOutcomeError) and e.last_status is not None:
                outcome = e.last_status.value
            else:
                outcome = _OUTCOMES.get(type(e), "error")
            self.tracker.metrics.job_finished(operation, outcome, self.elapsed())
            log.error(f"{self.log_group} | {e}")
            raise

        self.tracker.metrics.job_finished(operation, status.value, self.elapsed())
        return status

    async def _track(self) -> JobStatus:
        self.handle = await self._submit()

        while not self.handle.status.is_terminal:
            remaining = self.deadline - self.elapsed()
            if remaining <= 0:
                raise self._error(
                    JobTimeoutError,
                    f"Job did not reach a terminal status within {self.deadline}s",
                )

            await self._sleep(min(self.poll_interval, remaining))

            # A query may not push the timeout past deadline + poll_interval
            budget = self.deadline + self.poll_interval - self.elapsed()
            timeout = max(0.0, min(self.tracker.request_timeout, budget))
            try:
                status = await self._query_status(timeout)
            except QueryError as e:
                self.tracker.metrics.query_failed(self.request.operation)
                log.warning(f"{self.log_group} | Status query failed, retrying: {e}")
                continue
            except asyncio.TimeoutError:
                self.tracker.metrics.query_failed(self.request.operation)
                log.warning(
                    f"{self.log_group} | Status query timed out after {timeout:.2f}s, retrying"
                )
                continue

            self._apply(status)

        status = self.handle.status
        if status != JobStatus.COMPLETED:
            raise self._error(JobOutcomeError, f"Job ended with status {status.value}")

        log.info(f"{self.log_group} | Completed in {self.elapsed():.2f}s")
        return status

    async def _query_status(self, timeout: float) -> JobStatus:
        """Read the job status, typing any service failure as QueryError."""
        try:
            return await self._guarded(
                self.tracker.status_service.get_status(self.request.job_id), timeout
            )
        except (QueryError, TrackerCancelledError, asyncio.TimeoutError):
            raise
        except Exception as e:
            raise QueryError(
                f"Job status check failed: {e!r}", job_id=self.request.job_id
            ) from e

    async def _submit(self) -> JobHandle:
        log.info(f"{self.log_group} | Scheduling {self.request.operation} on {self.request.target_id}")
        try:
            submitted = await self._guarded(
                self.tracker.submission_service.submit(self.request),
                self.tracker.request_timeout,
            )
        except SubmissionError as e:
            raise self._error(SubmissionError, e.reason) from e
        except TrackerCancelledError:
            raise
        except asyncio.TimeoutError as e:
            raise self._error(
                SubmissionError,
                f"Submission timed out after {self.tracker.request_timeout}s",
            ) from e
        except Exception as e:
            raise self._error(
                SubmissionError, f"Failed to submit {self.request.operation} job: {e!r}"
            ) from e

        self.tracker.metrics.job_submitted(self.request.operation)
        handle = JobHandle(job_id=self.request.job_id, status=submitted.status)
        log.info(f"{self.log_group} | Status: {handle.status.value}")
        return handle

    def _apply(self, status: JobStatus) -> None:
        current = self.handle.status
        if status < current:
            if self.tracker.strict_ordering:
                raise self._error(
                    StatusRegressionError,
                    f"Status moved backwards from {current.value} to {status.value}",
                )
            log.warning(
                f"{self.log_group} | Ignoring status regression "
                f"{current.value} -> {status.value}"
            )
            return

        if status != current:
            log.info(f"{self.log_group} | Status: {status.value}")
        self.handle.status = status

    async def _sleep(self, delay: float) -> None:
        try:
            await asyncio.wait_for(self.cancel_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        raise self._error(TrackerCancelledError, "Tracking cancelled")

    async def _guarded(self, call: Awaitable[Any], timeout: float) -> Any:
        """Await a network call bounded by ``timeout`` and the cancel event.

        Raises:
            asyncio.TimeoutError: If the call outlived ``timeout``.
            TrackerCancelledError: If the session was cancelled first.
        """
        call_task = asyncio.ensure_future(call)
        cancel_waiter = asyncio.ensure_future(self.cancel_event.wait())
        try:
            done, _ = await asyncio.wait(
                {call_task, cancel_waiter},
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            cancel_waiter.cancel()
            if not call_task.done():
                call_task.cancel()

        if cancel_waiter in done:
            if call_task.done() and not call_task.cancelled():
                call_task.exception()
            raise self._error(TrackerCancelledError, "Tracking cancelled")
        if call_task in done:
            return call_task.result()
        raise asyncio.TimeoutError()


_OUTCOMES = {
    SubmissionError: "submission_error",
    JobTimeoutError: "timeout",
    TrackerCancelledError: "tracker_cancelled",
    StatusRegressionError: "status_regression",
}
