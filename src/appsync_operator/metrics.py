"""Prometheus metrics for the App Sync Operator."""

from __future__ import annotations

import threading
from datetime import timedelta

from prometheus_client import Counter, Histogram

_APP_LABELS = ["kind", "name", "namespace"]

# Reconcile count metrics
reconcile_attempt_total = Counter(
    "appsync_operator_reconcile_attempt_total",
    "Total number of attempted reconciles",
    _APP_LABELS,
)

reconcile_success_total = Counter(
    "appsync_operator_reconcile_success_total",
    "Total number of succeeded reconciles",
    _APP_LABELS,
)

reconcile_failure_total = Counter(
    "appsync_operator_reconcile_failure_total",
    "Total number of failed reconciles",
    _APP_LABELS,
)

reconcile_delete_attempt_total = Counter(
    "appsync_operator_reconcile_delete_attempt_total",
    "Total number of attempted deletes",
    _APP_LABELS,
)

reconcile_delete_failed_total = Counter(
    "appsync_operator_reconcile_delete_failed_total",
    "Total number of failed deletes",
    _APP_LABELS,
)

# Reconcile time metrics
reconcile_time_seconds = Histogram(
    "appsync_operator_reconcile_time_seconds",
    "Duration of reconcile stages in seconds",
    ["kind", "name", "namespace", "stage", "first_reconcile"],
    buckets=[0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0, 600.0],
)

# Status persistence metrics
status_write_total = Counter(
    "appsync_operator_status_write_total",
    "Total number of App status writes",
    ["result"],
)

status_write_suppressed_total = Counter(
    "appsync_operator_status_write_suppressed_total",
    "Status write failures that were expected and only logged",
    ["kind", "reason"],
)

# API call metrics
api_call_total = Counter(
    "appsync_operator_api_call_total",
    "Total number of API calls",
    ["api_type", "operation", "result"],
)

api_call_duration_seconds = Histogram(
    "appsync_operator_api_call_duration_seconds",
    "Duration of API calls in seconds",
    ["api_type", "operation"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0],
)

error_total = Counter(
    "appsync_operator_error_total",
    "Total number of unexpected handler errors",
    ["kind", "error_type"],
)

_COUNTERS = (
    reconcile_attempt_total,
    reconcile_success_total,
    reconcile_failure_total,
    reconcile_delete_attempt_total,
    reconcile_delete_failed_total,
)


class ReconcileCountMetrics:
    """Reconcile attempt/success/failure counters keyed by App identity.

    Attempt counts are mirrored locally so the first reconcile of an App can
    be told apart from later ones.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._attempts: dict[tuple[str, str, str], int] = {}

    def init_metrics(self, kind: str, name: str, namespace: str) -> None:
        """Create the label series so they are exported at zero."""
        for counter in _COUNTERS:
            counter.labels(kind=kind, name=name, namespace=namespace)

    def register_reconcile_attempt(self, kind: str, name: str, namespace: str) -> None:
        with self._lock:
            key = (kind, name, namespace)
            self._attempts[key] = self._attempts.get(key, 0) + 1
        reconcile_attempt_total.labels(kind=kind, name=name, namespace=namespace).inc()

    def register_reconcile_success(self, kind: str, name: str, namespace: str) -> None:
        reconcile_success_total.labels(kind=kind, name=name, namespace=namespace).inc()

    def register_reconcile_failure(self, kind: str, name: str, namespace: str) -> None:
        reconcile_failure_total.labels(kind=kind, name=name, namespace=namespace).inc()

    def register_reconcile_delete_attempt(self, kind: str, name: str, namespace: str) -> None:
        reconcile_delete_attempt_total.labels(kind=kind, name=name, namespace=namespace).inc()

    def register_reconcile_delete_failed(self, kind: str, name: str, namespace: str) -> None:
        reconcile_delete_failed_total.labels(kind=kind, name=name, namespace=namespace).inc()

    def get_reconcile_attempt_count(self, kind: str, name: str, namespace: str) -> int:
        with self._lock:
            return self._attempts.get((kind, name, namespace), 0)

    def delete_metrics(self, kind: str, name: str, namespace: str) -> None:
        """Drop every series of a deleted App."""
        with self._lock:
            self._attempts.pop((kind, name, namespace), None)
        for counter in _COUNTERS:
            try:
                counter.remove(kind, name, namespace)
            except KeyError:
                pass


class ReconcileTimeMetrics:
    """Stage duration histograms, split by first reconcile."""

    def _observe(self, stage: str, kind: str, name: str, namespace: str, first: bool, duration: timedelta) -> None:
        reconcile_time_seconds.labels(
            kind=kind,
            name=name,
            namespace=namespace,
            stage=stage,
            first_reconcile=str(first).lower(),
        ).observe(max(duration.total_seconds(), 0.0))

    def register_overall_time(self, kind: str, name: str, namespace: str, first: bool, duration: timedelta) -> None:
        self._observe("overall", kind, name, namespace, first, duration)

    def register_fetch_time(self, kind: str, name: str, namespace: str, first: bool, duration: timedelta) -> None:
        self._observe("fetch", kind, name, namespace, first, duration)

    def register_template_time(self, kind: str, name: str, namespace: str, first: bool, duration: timedelta) -> None:
        self._observe("template", kind, name, namespace, first, duration)

    def register_deploy_time(self, kind: str, name: str, namespace: str, first: bool, duration: timedelta) -> None:
        self._observe("deploy", kind, name, namespace, first, duration)


class AppMetrics:
    """Bundle of the metrics an App reconcile reports into."""

    def __init__(
        self,
        count: ReconcileCountMetrics | None = None,
        time: ReconcileTimeMetrics | None = None,
    ) -> None:
        self.count = count or ReconcileCountMetrics()
        self.time = time or ReconcileTimeMetrics()


# Shared across handler invocations; counters are increment-only.
app_metrics = AppMetrics()
