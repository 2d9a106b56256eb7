"""User-Agent utilities for hub HTTP clients."""

import platform
from importlib import metadata


def get_user_agent() -> str:
    """
    Generate the User-Agent string for hub requests.

    Format: iotdm-jobs/<version> (<OS> <release>; <arch>) Language/Python <python_version>
    Example: iotdm-jobs/0.1.0 (Linux 6.8.0-49-generic; x86_64) Language/Python 3.12.3
    """
    try:
        version = metadata.version("iotdm-jobs")
    except metadata.PackageNotFoundError:
        version = "unknown"

    system = platform.system()
    release = platform.release()
    machine = platform.machine()
    python_version = platform.python_version()

    return f"iotdm-jobs/{version} ({system} {release}; {machine}) Language/Python {python_version}"
