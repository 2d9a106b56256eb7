"""Metrics collection via structured logging for observability."""

import logging
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class MetricType(Enum):
    """Types of metrics that can be collected."""

    COUNTER = "counter"
    GAUGE = "gauge"
    HISTOGRAM = "histogram"


@dataclass
class Metric:
    """Representation of a single metric."""

    metric_type: MetricType
    metric_name: str
    value: float
    labels: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["metric_type"] = self.metric_type.value
        return data


class MetricsCollector:
    """Collect metrics via structured logging."""

    def __init__(self, namespace: str = "iotdm.metrics", enabled: bool = True):
        """Initialize metrics collector.

        Args:
            namespace: Namespace for metrics (used in structured logging)
            enabled: Whether metrics collection is enabled
        """
        self.namespace = namespace
        self.enabled = enabled

    def counter(
        self,
        name: str,
        value: float = 1.0,
        labels: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Record a counter metric (cumulative)."""
        if not self.enabled:
            return
        self._emit(Metric(MetricType.COUNTER, name, value, labels or {}))

    def gauge(
        self,
        name: str,
        value: float,
        labels: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Record a gauge metric (point-in-time value)."""
        if not self.enabled:
            return
        self._emit(Metric(MetricType.GAUGE, name, value, labels or {}))

    def histogram(
        self,
        name: str,
        value: float,
        labels: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Record a histogram metric (distribution)."""
        if not self.enabled:
            return
        self._emit(Metric(MetricType.HISTOGRAM, name, value, labels or {}))

    def _emit(self, metric: Metric) -> None:
        logger.info(
            f"[METRIC] {metric.metric_name}={metric.value}",
            extra={
                "namespace": self.namespace,
                "metric": metric.to_dict(),
            },
        )


class JobMetrics:
    """Helper for emitting job tracking metrics."""

    def __init__(self, collector: Optional[MetricsCollector] = None):
        self.collector = collector or get_metrics_collector()

    def job_submitted(self, operation: str) -> None:
        self.collector.counter("jobs_submitted", labels={"operation": operation})

    def query_failed(self, operation: str) -> None:
        self.collector.counter("job_status_query_failures", labels={"operation": operation})

    def job_finished(self, operation: str, outcome: str, elapsed: float) -> None:
        """Emit the outcome counter and the time spent tracking the job.

        Args:
            operation: Job operation name
            outcome: completed, failed, cancelled, timeout, submission_error, ...
            elapsed: Seconds between submission and the outcome
        """
        labels = {"operation": operation, "outcome": outcome}
        self.collector.counter("jobs_finished", labels=labels)
        self.collector.histogram("job_tracking_seconds", value=elapsed, labels=labels)


# Global metrics collector instance
_collector: Optional[MetricsCollector] = None


def get_metrics_collector(
    namespace: str = "iotdm.metrics", enabled: Optional[bool] = None
) -> MetricsCollector:
    """Get global metrics collector (lazy-loaded).

    Args:
        namespace: Namespace for metrics
        enabled: Whether metrics collection is enabled. Defaults to the
            IOTDM_METRICS_ENABLED setting.
    """
    global _collector
    if _collector is None:
        if enabled is None:
            from .config import get_settings

            enabled = get_settings().metrics_enabled
        _collector = MetricsCollector(namespace=namespace, enabled=enabled)
    return _collector


def set_metrics_collector(collector: Optional[MetricsCollector]) -> None:
    """Set global metrics collector (for testing)."""
    global _collector
    _collector = collector
