"""Centralized configuration for hub access and job tracking."""

import os
from dataclasses import dataclass, field
from typing import Optional

from .core.credentials import get_hub_url

# Hub defaults
DEFAULT_API_VERSION = "2021-04-12"
DEFAULT_REQUEST_TIMEOUT = 10.0  # seconds

# Tracking defaults
DEFAULT_POLL_INTERVAL = 2.0  # seconds
DEFAULT_DEADLINE = 180.0  # seconds


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


@dataclass
class HubConfig:
    """Where and how to reach the hub jobs API."""

    url: Optional[str] = None
    api_version: str = DEFAULT_API_VERSION
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT


@dataclass
class PollingConfig:
    """Cadence and limits for job completion tracking."""

    poll_interval: float = DEFAULT_POLL_INTERVAL
    deadline: float = DEFAULT_DEADLINE
    strict_ordering: bool = False

    def validate(self) -> None:
        validate_polling(self.poll_interval, self.deadline)


@dataclass
class Settings:
    hub: HubConfig = field(default_factory=HubConfig)
    polling: PollingConfig = field(default_factory=PollingConfig)
    metrics_enabled: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        """Load configuration from environment variables.

        Environment variables:
        - IOTDM_HUB_URL: Base URL of the hub (default: hub_url saved by
          `iotdm login`)
        - IOTDM_API_VERSION: Jobs API version (default: 2021-04-12)
        - IOTDM_REQUEST_TIMEOUT: Per-request timeout in seconds (default: 10)
        - IOTDM_POLL_INTERVAL: Seconds between status polls (default: 2)
        - IOTDM_DEADLINE: Seconds to wait for a terminal status (default: 180)
        - IOTDM_STRICT_ORDERING: Reject status regressions (default: false)
        - IOTDM_METRICS_ENABLED: Emit metric log records (default: true)

        Raises:
            ValueError: If a numeric variable does not parse or the polling
                limits are inconsistent.
        """
        hub = HubConfig(
            url=get_hub_url(),
            api_version=os.getenv("IOTDM_API_VERSION", DEFAULT_API_VERSION),
            request_timeout=float(
                os.getenv("IOTDM_REQUEST_TIMEOUT", str(DEFAULT_REQUEST_TIMEOUT))
            ),
        )

        polling = PollingConfig(
            poll_interval=float(
                os.getenv("IOTDM_POLL_INTERVAL", str(DEFAULT_POLL_INTERVAL))
            ),
            deadline=float(os.getenv("IOTDM_DEADLINE", str(DEFAULT_DEADLINE))),
            strict_ordering=_env_bool("IOTDM_STRICT_ORDERING", "false"),
        )
        polling.validate()

        return cls(
            hub=hub,
            polling=polling,
            metrics_enabled=_env_bool("IOTDM_METRICS_ENABLED", "true"),
        )


def validate_polling(poll_interval: float, deadline: float) -> None:
    """Check that a poll interval and deadline can be tracked with.

    Raises:
        ValueError: If either is not positive or the deadline is shorter
            than one poll interval.
    """
    if poll_interval <= 0:
        raise ValueError(f"poll_interval must be > 0, got {poll_interval}")
    if deadline <= 0:
        raise ValueError(f"deadline must be > 0, got {deadline}")
    if deadline < poll_interval:
        raise ValueError(
            f"deadline ({deadline}s) must be >= poll_interval ({poll_interval}s)"
        )


# Global default configuration
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get global settings (lazy-loaded from the environment)."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def set_settings(settings: Optional[Settings]) -> None:
    """Set global settings (for testing). ``None`` forces a reload."""
    global _settings
    _settings = settings
