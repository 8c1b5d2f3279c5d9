"""Handler for App CRD."""

from __future__ import annotations

from typing import Any

import kopf
from kubernetes import client

from .. import metrics
from ..builders.backends import AppBackends
from ..config import OperatorConfig
from ..constants import API_GROUP_VERSION, KIND_APP
from ..models import App, ConditionType
from ..reconciler.app import AppReconciler, ReconcileResult
from ..services.exec.runner import SubprocessCmdRunner
from ..services.k8s.status import KubernetesStatusPersister
from ..services.template.values import AdditionalValues
from ..tracing import set_span_status, trace_span
from ..utils.errors import sanitize_exception
from ..utils.events import (
    emit_delete_failed,
    emit_reconcile_failed,
    emit_reconcile_started,
    emit_reconcile_succeeded,
)
from .base import BaseHandler
from .shared import ResourceLocks, get_core_v1_client, get_k8s_client, load_k8s_config


class AppHandler(BaseHandler):
    """Handler for App resources."""

    def __init__(self, config: OperatorConfig | None = None):
        super().__init__(KIND_APP)
        self._config = config
        self.locks = ResourceLocks()

    @property
    def config(self) -> OperatorConfig:
        if self._config is None:
            self._config = OperatorConfig.from_env()
        return self._config

    def build_reconciler(self, app: App) -> AppReconciler:
        """Wire an AppReconciler to the cluster and local tools."""
        load_k8s_config()
        core_v1 = get_core_v1_client()
        backends = AppBackends(
            app,
            SubprocessCmdRunner(timeout_seconds=self.config.cmd_timeout_seconds),
            self.config,
            core_v1=core_v1,
            additional_values=AdditionalValues(client.VersionApi(), client.ApisApi(), client.CoreApi()),
        )
        return AppReconciler(app, backends, KubernetesStatusPersister(get_k8s_client()), self.config.timer_opts)

    def reconcile(
        self,
        body: dict[str, Any],
        meta: dict[str, Any],
        patch: kopf.Patch,
        force: bool = False,
        blocking: bool = True,
    ) -> None:
        """Reconcile an App that is not being deleted."""
        app = App.from_body(body)
        if app.deletion_timestamp is not None:
            # The delete handler owns Apps marked for deletion
            return

        self.ensure_finalizer(meta, patch)

        with self.locks.hold(app.uid or f"{app.namespace}/{app.name}", blocking=blocking) as acquired:
            if not acquired:
                self.log_info(meta, "Reconcile already in progress, skipping tick", event="skip", reason="Busy")
                return
            result = self._run(body, app, force)

        self._raise_on_error(meta, body, result)

    def delete(self, body: dict[str, Any], meta: dict[str, Any], patch: kopf.Patch) -> None:
        """Run the delete pipeline and release the App once it succeeded."""
        app = App.from_body(body)
        key = app.uid or f"{app.namespace}/{app.name}"

        with self.locks.hold(key):
            result = self._run(body, app, force=False)

        self._raise_on_error(meta, body, result)

        if app.status.has_condition(ConditionType.DELETE_FAILED):
            self.log_warning(meta, "Delete failed, keeping finalizer", event="deletion", reason="DeleteFailed",
                             description=app.status.friendly_description)
            emit_delete_failed(body, app.status.friendly_description)
            raise kopf.TemporaryError(app.status.friendly_description, delay=result.requeue_after.total_seconds())

        self.log_info(meta, "App deleted", event="deletion", reason="Deleted")
        self.remove_finalizer(meta, patch)
        self.locks.forget(key)

    def _run(self, body: dict[str, Any], app: App, force: bool) -> ReconcileResult:
        failures_before = app.status.consecutive_reconcile_failures
        successes_before = app.status.consecutive_reconcile_successes

        with trace_span("reconcile_app", kind=KIND_APP, attributes={"app.name": app.name}):
            result = self.build_reconciler(app).reconcile(force=force)
            set_span_status(result.error is None, sanitize_exception(result.error) if result.error else None)

        status = app.status
        # Errors get their own event from _raise_on_error
        if result.error is None:
            if status.consecutive_reconcile_successes > successes_before:
                emit_reconcile_succeeded(body)
            elif status.consecutive_reconcile_failures > failures_before and not status.has_condition(
                ConditionType.DELETE_FAILED
            ):
                emit_reconcile_failed(body, status.friendly_description)

        self.log_info(
            app.meta,
            "Reconcile finished",
            event="reconcile",
            reason="Requeue",
            requeue_after_seconds=result.requeue_after.total_seconds(),
            description=status.friendly_description,
        )
        return result

    def _raise_on_error(self, meta: dict[str, Any], body: dict[str, Any], result: ReconcileResult) -> None:
        if result.error is None:
            return
        message = f"Reconciliation failed: {sanitize_exception(result.error)}"
        self.log_error(meta, message, error=result.error, reason="ReconciliationFailed")
        metrics.error_total.labels(kind=self.kind, error_type=type(result.error).__name__).inc()
        emit_reconcile_failed(body, message)
        raise kopf.TemporaryError(message, delay=result.requeue_after.total_seconds())


# Global handler instance; kopf needs the timer interval at import time
_handler = AppHandler(OperatorConfig.from_env())

_TIMER_INTERVAL_SECONDS = _handler.config.timer_interval_seconds


@kopf.on.create(API_GROUP_VERSION, KIND_APP)
def handle_app_create(body: dict[str, Any], meta: dict[str, Any], patch: kopf.Patch, **kwargs: Any) -> None:
    """Reconcile a newly created App right away."""
    emit_reconcile_started(body)
    _handler.reconcile(body, meta, patch, force=True)


@kopf.on.update(API_GROUP_VERSION, KIND_APP)
@kopf.on.resume(API_GROUP_VERSION, KIND_APP)
def handle_app(body: dict[str, Any], meta: dict[str, Any], patch: kopf.Patch, **kwargs: Any) -> None:
    """Reconcile an App if it is due."""
    _handler.reconcile(body, meta, patch)


@kopf.timer(API_GROUP_VERSION, KIND_APP, interval=_TIMER_INTERVAL_SECONDS, initial_delay=_TIMER_INTERVAL_SECONDS)
def handle_app_timer(body: dict[str, Any], meta: dict[str, Any], patch: kopf.Patch, **kwargs: Any) -> None:
    """Periodic tick; the reconcile timer decides whether the App is due."""
    _handler.reconcile(body, meta, patch, blocking=False)


@kopf.on.delete(API_GROUP_VERSION, KIND_APP)
def handle_app_delete(body: dict[str, Any], meta: dict[str, Any], patch: kopf.Patch, **kwargs: Any) -> None:
    """Handle App resource deletion."""
    _handler.delete(body, meta, patch)
