"""
Test configuration and fixtures for iotdm-jobs tests.

Provides shared fixtures for:
- Job requests for each device-management operation
- Scripted in-memory hub services
- Trackers with metrics captured on a mock collector
- Environment variable management
"""

from typing import Dict
from unittest.mock import Mock

import pytest

from iotdm_jobs.config import Settings, set_settings
from iotdm_jobs.hub.memory import InMemoryJobService
from iotdm_jobs.metrics import JobMetrics, set_metrics_collector
from iotdm_jobs.models import JobRequest, JobStatus, PropertyWrite, Reboot
from iotdm_jobs.observations import ObservationLog
from iotdm_jobs.tracker import JobCompletionTracker


@pytest.fixture
def write_request() -> JobRequest:
    """Provide a timezone write job, as used for US/Hawaii."""
    return JobRequest(
        job_id="abc-1",
        target_id="device-1",
        payload=PropertyWrite(property_name="Device_Timezone", value="-10:00"),
    )


@pytest.fixture
def reboot_request() -> JobRequest:
    return JobRequest.create("device-1", Reboot())


@pytest.fixture
def metrics_collector() -> Mock:
    """Provide a mock collector that records emitted metrics."""
    return Mock()


@pytest.fixture
def job_metrics(metrics_collector) -> JobMetrics:
    return JobMetrics(collector=metrics_collector)


@pytest.fixture
def service() -> InMemoryJobService:
    """Provide a hub stand-in that runs jobs straight to completion."""
    return InMemoryJobService(sequence=[JobStatus.RUNNING, JobStatus.COMPLETED])


@pytest.fixture
def make_tracker(job_metrics):
    """Provide a factory for trackers bound to a scripted service."""

    def _make(service: InMemoryJobService, **kwargs) -> JobCompletionTracker:
        kwargs.setdefault("request_timeout", 1.0)
        kwargs.setdefault("metrics", job_metrics)
        return JobCompletionTracker(service, **kwargs)

    return _make


@pytest.fixture
def observations() -> ObservationLog:
    return ObservationLog()


@pytest.fixture
def mock_env_vars(monkeypatch: pytest.MonkeyPatch, tmp_path) -> Dict[str, str]:
    """Provide patched environment variables for tests.

    Returns:
        Dictionary of environment variables set.
    """
    env_vars = {
        "IOTDM_HUB_URL": "https://hub.example.net",
        "IOTDM_API_TOKEN": "test_token_123",
        "IOTDM_CREDENTIALS_FILE": str(tmp_path / "credentials.toml"),
        "LOG_LEVEL": "ERROR",
    }

    for key, value in env_vars.items():
        monkeypatch.setenv(key, value)

    return env_vars


@pytest.fixture
def fast_settings() -> Settings:
    """Install fast-polling settings as the global configuration."""
    settings = Settings()
    settings.hub.url = "https://hub.example.net"
    settings.polling.poll_interval = 0.01
    settings.polling.deadline = 1.0
    settings.metrics_enabled = False
    set_settings(settings)
    return settings


@pytest.fixture(autouse=True)
def reset_globals():
    """Reset lazily-created global settings and metrics between tests."""
    set_settings(None)
    set_metrics_collector(None)

    yield

    set_settings(None)
    set_metrics_collector(None)
