"""Tests for Prometheus metrics."""

from __future__ import annotations

from datetime import timedelta

from prometheus_client import REGISTRY

from appsync_operator.metrics import (
    ReconcileCountMetrics,
    ReconcileTimeMetrics,
    reconcile_attempt_total,
    reconcile_time_seconds,
    status_write_suppressed_total,
)

LABELS = {"kind": "App", "name": "metrics-app", "namespace": "metrics-ns"}


def _sample(name: str, labels: dict[str, str]) -> float | None:
    return REGISTRY.get_sample_value(name, labels)


class TestMetricsExist:
    """Test that all expected metrics are defined."""

    def test_reconcile_attempt_total_exists(self):
        """Test reconcile_attempt_total counter exists."""
        # Prometheus counters don't include "_total" in their _name attribute
        assert reconcile_attempt_total._name == "appsync_operator_reconcile_attempt"

    def test_reconcile_time_exists(self):
        """Test reconcile_time_seconds histogram exists."""
        assert reconcile_time_seconds._name == "appsync_operator_reconcile_time_seconds"

    def test_status_write_suppressed_exists(self):
        """Test status_write_suppressed_total counter exists."""
        assert status_write_suppressed_total._name == "appsync_operator_status_write_suppressed"


class TestReconcileCountMetrics:
    """Test cases for ReconcileCountMetrics."""

    def test_init_metrics_exports_zero(self):
        """Test that initialized series are exported at zero."""
        labels = {**LABELS, "name": "init-app"}
        ReconcileCountMetrics().init_metrics(**labels)

        assert _sample("appsync_operator_reconcile_failure_total", labels) == 0.0

    def test_attempts_are_counted(self):
        """Test that attempts are counted locally and exported."""
        labels = {**LABELS, "name": "attempt-app"}
        count = ReconcileCountMetrics()
        before = _sample("appsync_operator_reconcile_attempt_total", labels) or 0.0

        count.register_reconcile_attempt(**labels)
        count.register_reconcile_attempt(**labels)

        assert count.get_reconcile_attempt_count(**labels) == 2
        assert _sample("appsync_operator_reconcile_attempt_total", labels) == before + 2

    def test_delete_metrics_drops_series(self):
        """Test that deleting an App's metrics removes its series."""
        labels = {**LABELS, "name": "deleted-app"}
        count = ReconcileCountMetrics()
        count.register_reconcile_attempt(**labels)
        count.register_reconcile_success(**labels)

        count.delete_metrics(**labels)

        assert count.get_reconcile_attempt_count(**labels) == 0
        assert _sample("appsync_operator_reconcile_success_total", labels) is None

    def test_delete_metrics_unknown_app(self):
        """Test that deleting metrics of an unknown App is harmless."""
        ReconcileCountMetrics().delete_metrics("App", "never-seen", "ns")


class TestReconcileTimeMetrics:
    """Test cases for ReconcileTimeMetrics."""

    def test_stage_time_is_observed(self):
        """Test that stage durations are labelled by stage and first reconcile."""
        labels = {**LABELS, "name": "timed-app"}

        ReconcileTimeMetrics().register_fetch_time(labels["kind"], labels["name"], labels["namespace"], True,
                                                  timedelta(seconds=2))

        sample_labels = {**labels, "stage": "fetch", "first_reconcile": "true"}
        assert _sample("appsync_operator_reconcile_time_seconds_count", sample_labels) == 1.0
        assert _sample("appsync_operator_reconcile_time_seconds_sum", sample_labels) == 2.0

    def test_negative_durations_are_floored(self):
        """Test that clock skew never records negative durations."""
        labels = {**LABELS, "name": "skewed-app"}

        ReconcileTimeMetrics().register_deploy_time(labels["kind"], labels["name"], labels["namespace"], False,
                                                   timedelta(seconds=-1))

        sample_labels = {**labels, "stage": "deploy", "first_reconcile": "false"}
        assert _sample("appsync_operator_reconcile_time_seconds_sum", sample_labels) == 0.0
