# Load .env vars from file before everything else
from dotenv import load_dotenv

load_dotenv()

from .logger import setup_logging  # noqa: E402

setup_logging()

# TYPE_CHECKING imports provide full IDE support (autocomplete, type hints)
# while __getattr__ enables lazy loading at runtime for fast CLI startup
from typing import TYPE_CHECKING  # noqa: E402

if TYPE_CHECKING:
    from .device_management import DeviceManager
    from .hub import HubJobClient, InMemoryJobService
    from .models import (
        FactoryReset,
        FirmwareUpdate,
        JobHandle,
        JobRequest,
        JobStatus,
        PropertyRead,
        PropertyWrite,
        Reboot,
    )
    from .observations import ObservationLog
    from .tracker import JobCompletionTracker, TrackedJob

_LAZY_ATTRS = {
    "DeviceManager": "device_management",
    "HubJobClient": "hub",
    "InMemoryJobService": "hub",
    "FactoryReset": "models",
    "FirmwareUpdate": "models",
    "JobHandle": "models",
    "JobRequest": "models",
    "JobStatus": "models",
    "PropertyRead": "models",
    "PropertyWrite": "models",
    "Reboot": "models",
    "ObservationLog": "observations",
    "JobCompletionTracker": "tracker",
    "TrackedJob": "tracker",
}


def __getattr__(name):
    """Lazily import core modules only when accessed."""
    module_name = _LAZY_ATTRS.get(name)
    if module_name is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

    from importlib import import_module

    module = import_module(f".{module_name}", __name__)
    return getattr(module, name)


__all__ = list(_LAZY_ATTRS)
