"""Tests for metrics collection."""

import logging
from unittest.mock import Mock

from iotdm_jobs.config import Settings, set_settings
from iotdm_jobs.metrics import (
    JobMetrics,
    Metric,
    MetricsCollector,
    MetricType,
    get_metrics_collector,
    set_metrics_collector,
)


class TestMetric:
    def test_to_dict(self):
        metric = Metric(MetricType.COUNTER, "jobs_submitted", 1.0, {"operation": "rebootDevice"})

        assert metric.to_dict() == {
            "metric_type": "counter",
            "metric_name": "jobs_submitted",
            "value": 1.0,
            "labels": {"operation": "rebootDevice"},
        }


class TestMetricsCollector:
    """Test MetricsCollector."""

    def test_counter_emits_structured_record(self, caplog):
        collector = MetricsCollector()

        with caplog.at_level(logging.INFO, logger="iotdm_jobs.metrics"):
            collector.counter("jobs_submitted", labels={"operation": "rebootDevice"})

        record = caplog.records[-1]
        assert record.getMessage() == "[METRIC] jobs_submitted=1.0"
        assert record.namespace == "iotdm.metrics"
        assert record.metric["metric_type"] == "counter"
        assert record.metric["labels"] == {"operation": "rebootDevice"}

    def test_histogram_and_gauge(self, caplog):
        collector = MetricsCollector(namespace="custom")

        with caplog.at_level(logging.INFO, logger="iotdm_jobs.metrics"):
            collector.histogram("job_tracking_seconds", 2.5)
            collector.gauge("jobs_in_flight", 3)

        types = [record.metric["metric_type"] for record in caplog.records]
        assert types == ["histogram", "gauge"]
        assert all(record.namespace == "custom" for record in caplog.records)

    def test_disabled_collector_emits_nothing(self, caplog):
        collector = MetricsCollector(enabled=False)

        with caplog.at_level(logging.INFO, logger="iotdm_jobs.metrics"):
            collector.counter("jobs_submitted")
            collector.gauge("jobs_in_flight", 1)
            collector.histogram("job_tracking_seconds", 1)

        assert caplog.records == []


class TestJobMetrics:
    """Test the job tracking metric helpers."""

    def test_job_submitted(self):
        collector = Mock()
        JobMetrics(collector).job_submitted("rebootDevice")

        collector.counter.assert_called_once_with(
            "jobs_submitted", labels={"operation": "rebootDevice"}
        )

    def test_query_failed(self):
        collector = Mock()
        JobMetrics(collector).query_failed("rebootDevice")

        collector.counter.assert_called_once_with(
            "job_status_query_failures", labels={"operation": "rebootDevice"}
        )

    def test_job_finished(self):
        collector = Mock()
        JobMetrics(collector).job_finished("firmwareUpdate", "timeout", 12.5)

        labels = {"operation": "firmwareUpdate", "outcome": "timeout"}
        collector.counter.assert_called_once_with("jobs_finished", labels=labels)
        collector.histogram.assert_called_once_with(
            "job_tracking_seconds", value=12.5, labels=labels
        )

    def test_defaults_to_global_collector(self):
        collector = MetricsCollector()
        set_metrics_collector(collector)

        assert JobMetrics().collector is collector


class TestGlobalCollector:
    def test_enabled_follows_settings(self):
        set_settings(Settings(metrics_enabled=False))

        assert get_metrics_collector().enabled is False

    def test_explicit_enabled_wins(self):
        set_settings(Settings(metrics_enabled=False))

        assert get_metrics_collector(enabled=True).enabled is True

    def test_collector_is_cached(self):
        set_settings(Settings())

        assert get_metrics_collector() is get_metrics_collector()
