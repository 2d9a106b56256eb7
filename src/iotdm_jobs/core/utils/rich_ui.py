"""
Rich UI components for log output and job status display.
"""

import logging
import os

from rich.console import Console
from rich.logging import RichHandler
from rich.text import Text

from iotdm_jobs.models import JobStatus

STATUS_STYLES = {
    JobStatus.CREATED: "cyan",
    JobStatus.RUNNING: "yellow",
    JobStatus.COMPLETED: "green",
    JobStatus.FAILED: "red",
    JobStatus.CANCELLED: "magenta",
}


def is_rich_enabled() -> bool:
    """Check if Rich log output is requested via IOTDM_RICH_UI."""
    return os.environ.get("IOTDM_RICH_UI", "false").lower() in ("true", "1", "yes")


def get_rich_handler(console: Console | None = None) -> RichHandler:
    return RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
        markup=False,
    )


def format_status(status: JobStatus) -> Text:
    """Render a job status with its color."""
    return Text(status.value.upper(), style=STATUS_STYLES.get(status, "white"))


class RichLoggingFilter(logging.Filter):
    """Filter to suppress verbose third-party logs when Rich UI is active"""

    def filter(self, record):
        if record.levelno <= logging.INFO and record.name.startswith(
            ("httpx", "httpcore", "asyncio")
        ):
            return False
        return True
