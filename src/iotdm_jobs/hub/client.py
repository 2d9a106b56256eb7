"""HTTP client for the hub device-management jobs API."""

import logging
from typing import Any, Dict, Optional

import httpx

from iotdm_jobs.config import DEFAULT_API_VERSION, DEFAULT_REQUEST_TIMEOUT, HubConfig
from iotdm_jobs.core.credentials import get_api_token
from iotdm_jobs.core.utils.http import get_authenticated_httpx_client
from iotdm_jobs.exceptions import HubCredentialsError, QueryError, SubmissionError
from iotdm_jobs.models import JobHandle, JobRequest, JobStatus
from iotdm_jobs.services import JobStatusService, JobSubmissionService

log = logging.getLogger(__name__)


class HubJobClient(JobSubmissionService, JobStatusService):
    """Schedules device-management jobs and reads their status over HTTP.

    Jobs live at ``{hub_url}/jobs/v2/{job_id}``: a PUT schedules the job,
    a GET returns its current status. Each request is bounded by
    ``request_timeout``, independent of any tracking deadline.
    """

    def __init__(
        self,
        hub_url: str,
        api_token: Optional[str] = None,
        api_version: str = DEFAULT_API_VERSION,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ):
        """Initialize the hub client.

        Args:
            hub_url: Base URL of the hub, e.g. https://myhub.example.net.
            api_token: Bearer token. Defaults to IOTDM_API_TOKEN or the
                credentials file.
            api_version: Jobs API version sent as a query parameter.
            request_timeout: Per-request timeout in seconds.

        Raises:
            HubCredentialsError: If no token can be found.
        """
        if not hub_url:
            raise ValueError("hub_url is required")
        self.hub_url = hub_url.rstrip("/")
        self.api_token = api_token or get_api_token()
        if not self.api_token:
            raise HubCredentialsError()
        self.api_version = api_version
        self.request_timeout = request_timeout
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_config(cls, config: HubConfig) -> "HubJobClient":
        if not config.url:
            raise ValueError(
                "IOTDM_HUB_URL is not set; export it or run `iotdm login --hub-url`"
            )
        return cls(
            hub_url=config.url,
            api_version=config.api_version,
            request_timeout=config.request_timeout,
        )

    async def submit(self, request: JobRequest) -> JobHandle:
        body = {
            "jobId": request.job_id,
            "deviceId": request.target_id,
            "type": request.operation,
            "parameters": request.payload.to_parameters(),
        }
        log.debug(f"Submitting {request} to {self.hub_url}")

        try:
            data = await self._request("PUT", request.job_id, json=body)
            return self._parse_handle(data, request.job_id)
        except (httpx.HTTPError, ValueError) as e:
            raise SubmissionError(
                f"Failed to submit {request.operation} job: {e}",
                job_id=request.job_id,
            ) from e

    async def get_status(self, job_id: str) -> JobStatus:
        try:
            data = await self._request("GET", job_id)
            return self._parse_handle(data, job_id).status
        except (httpx.HTTPError, ValueError) as e:
            raise QueryError(f"Job status check failed: {e}", job_id=job_id) from e

    async def _request(
        self, method: str, job_id: str, json: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        client = await self._get_client()
        response = await client.request(
            method,
            f"/jobs/v2/{job_id}",
            params={"api-version": self.api_version},
            json=json,
        )

        if response.status_code >= 400:
            error_text = response.text[:500]
            raise ValueError(f"HTTP {response.status_code} - {error_text}")

        data = response.json()
        if not isinstance(data, dict):
            raise ValueError(f"Unexpected response format: {type(data).__name__}")
        return data

    @staticmethod
    def _parse_handle(data: Dict[str, Any], job_id: str) -> JobHandle:
        returned_id = data.get("jobId", job_id)
        if returned_id != job_id:
            raise ValueError(f"Response is for job {returned_id}, expected {job_id}")
        if "status" not in data:
            raise ValueError(f"No status in response: {data}")
        return JobHandle(job_id=job_id, status=data["status"])

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client with proper configuration."""
        if self._client is None or self._client.is_closed:
            self._client = get_authenticated_httpx_client(
                base_url=self.hub_url,
                timeout=self.request_timeout,
                api_token=self.api_token,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP session."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
