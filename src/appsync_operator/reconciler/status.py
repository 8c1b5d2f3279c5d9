"""Status transitions driven by reconcile and delete outcomes."""

from __future__ import annotations

from ..constants import (
    DESC_DELETE_FAILED,
    DESC_DELETING,
    DESC_RECONCILE_FAILED,
    DESC_RECONCILE_SUCCEEDED,
    DESC_RECONCILING,
    KIND_APP,
)
from ..metrics import ReconcileCountMetrics
from ..models import App, AppCondition, ConditionType, StageResult


class AppStatusMachine:
    """Owns the condition, counters and summaries of an App's status.

    Every transition replaces the condition wholesale and reports one
    metric. Nothing here persists status; callers decide when to write.
    """

    def __init__(self, app: App, count_metrics: ReconcileCountMetrics, kind: str = KIND_APP):
        self.app = app
        self.count_metrics = count_metrics
        self.kind = kind

    @property
    def _key(self) -> tuple[str, str, str]:
        return self.kind, self.app.name, self.app.namespace

    def mark_observed_latest(self) -> None:
        self.app.status.observed_generation = self.app.generation

    def set_reconciling(self) -> None:
        status = self.app.status
        status.condition = AppCondition(ConditionType.RECONCILING)
        self.count_metrics.register_reconcile_attempt(*self._key)
        status.friendly_description = DESC_RECONCILING

    def set_reconcile_completed(self, result: StageResult) -> None:
        status = self.app.status

        if result.failed:
            status.condition = AppCondition(ConditionType.RECONCILE_FAILED, message=result.error_str())
            status.consecutive_reconcile_failures += 1
            status.consecutive_reconcile_successes = 0
            status.friendly_description = DESC_RECONCILE_FAILED.format(error=result.error_str())
            self.count_metrics.register_reconcile_failure(*self._key)
            self._set_useful_error_message(result)
        else:
            status.condition = AppCondition(ConditionType.RECONCILE_SUCCEEDED)
            status.consecutive_reconcile_successes += 1
            status.consecutive_reconcile_failures = 0
            status.friendly_description = DESC_RECONCILE_SUCCEEDED
            self.count_metrics.register_reconcile_success(*self._key)
            status.useful_error_message = ""

    def set_deleting(self) -> None:
        status = self.app.status
        status.condition = AppCondition(ConditionType.DELETING)
        self.count_metrics.register_reconcile_delete_attempt(*self._key)
        status.friendly_description = DESC_DELETING

    def set_delete_completed(self, result: StageResult) -> None:
        status = self.app.status
        status.condition = None

        if result.failed:
            status.condition = AppCondition(ConditionType.DELETE_FAILED, message=result.error_str())
            status.consecutive_reconcile_failures += 1
            status.consecutive_reconcile_successes = 0
            status.friendly_description = DESC_DELETE_FAILED.format(error=result.error_str())
            self.count_metrics.register_reconcile_delete_failed(*self._key)
            self._set_useful_error_message(result)
        else:
            # The App is about to disappear from storage along with its series
            self.count_metrics.delete_metrics(*self._key)

    def _set_useful_error_message(self, result: StageResult) -> None:
        if result.stderr:
            self.app.status.useful_error_message = result.stderr
        else:
            self.app.status.useful_error_message = result.error_str()
