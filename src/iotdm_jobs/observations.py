"""Device-side observation log.

The device client reports what it saw (notifications it sent, writes and
executes it received) as namespaced events:

    notify.<resourcePath>   e.g. notify./3/0/15
    write.<propertyName>    e.g. write.Device_Timezone
    exec.<commandName>      e.g. exec.Device_Reboot

The log is append-only and safe to write from the device client's threads
while orchestration code reads or awaits it from an event loop.
"""

import asyncio
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional

from .exceptions import ObservationTimeoutError

log = logging.getLogger(__name__)

NOTIFY = "notify"
WRITE = "write"
EXEC = "exec"


def notify_key(resource_path: str) -> str:
    return f"{NOTIFY}.{resource_path}"


def write_key(property_name: str) -> str:
    return f"{WRITE}.{property_name}"


def exec_key(command_name: str) -> str:
    return f"{EXEC}.{command_name}"


@dataclass(frozen=True)
class Observation:
    """A single device-reported event."""

    key: str
    value: Optional[str]
    sequence: int
    observed_at: float = field(default_factory=time.time)


class ObservationLog:
    """Thread-safe, append-only record of device events."""

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: List[Observation] = []
        self._latest: Dict[str, Observation] = {}

    def record(self, key: str, value: Optional[str] = None) -> Observation:
        """Append an event. Later events for the same key shadow earlier ones."""
        if "." not in key:
            raise ValueError(f"Observation key must be namespaced, got {key!r}")
        with self._lock:
            observation = Observation(key=key, value=value, sequence=len(self._entries))
            self._entries.append(observation)
            self._latest[key] = observation
        log.debug(f"Observed {key}={value!r}")
        return observation

    def latest(self, key: str) -> Optional[str]:
        """Value of the most recent event for ``key``.

        Raises:
            KeyError: If nothing was observed for ``key``.
        """
        with self._lock:
            return self._latest[key].value

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        with self._lock:
            observation = self._latest.get(key)
        return observation.value if observation else default

    def contains(self, key: str) -> bool:
        with self._lock:
            return key in self._latest

    __contains__ = contains

    def keys_with_prefix(self, prefix: str) -> List[str]:
        """Distinct observed keys starting with ``prefix``, sorted."""
        with self._lock:
            return sorted(key for key in self._latest if key.startswith(prefix))

    def suffixes(self, namespace: str) -> List[str]:
        """Observed names within a namespace, e.g. resource paths for ``notify``."""
        prefix = f"{namespace}."
        return [key[len(prefix):] for key in self.keys_with_prefix(prefix)]

    def entries(self) -> List[Observation]:
        """Snapshot of every event in arrival order."""
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def missing(
        self,
        keys: Iterable[str],
        expected: Optional[Mapping[str, str]] = None,
        since: int = 0,
    ) -> List[str]:
        """Keys not yet observed, or observed with a value other than expected.

        Only events with a sequence number of at least ``since`` count.
        """
        expected = expected or {}
        with self._lock:
            missing = []
            for key in keys:
                observation = self._latest.get(key)
                if observation is None or observation.sequence < since:
                    missing.append(key)
                elif key in expected and observation.value != expected[key]:
                    missing.append(key)
            return missing

    async def wait_for(
        self,
        keys: Iterable[str],
        poll_interval: float = 1.0,
        timeout: float = 60.0,
        expected: Optional[Mapping[str, str]] = None,
        since: int = 0,
    ) -> Dict[str, Optional[str]]:
        """Poll until every key was observed (with its expected value, if given).

        Args:
            keys: Keys that must all be present.
            poll_interval: Seconds between checks.
            timeout: Seconds to wait overall.
            expected: Optional key -> value the latest event must carry.
            since: Ignore events recorded before this sequence number, e.g.
                ``len(log)`` taken before triggering the device.

        Returns:
            Latest value per key.

        Raises:
            ObservationTimeoutError: If keys are still missing at the timeout.
        """
        keys = list(keys)
        if expected:
            keys.extend(key for key in expected if key not in keys)
        if poll_interval <= 0:
            raise ValueError(f"poll_interval must be > 0, got {poll_interval}")

        loop = asyncio.get_running_loop()
        started = loop.time()
        while True:
            missing = self.missing(keys, expected, since)
            if not missing:
                return {key: self.get(key) for key in keys}

            elapsed = loop.time() - started
            if elapsed >= timeout:
                raise ObservationTimeoutError(missing, elapsed)

            await asyncio.sleep(min(poll_interval, timeout - elapsed))
