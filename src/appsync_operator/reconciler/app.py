"""Reconcile dispatcher plus the deploy and delete pipelines for an App."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Protocol

from .. import metrics
from ..config import ReconcileTimerOpts
from ..constants import DESC_CANCELED_PAUSED, KIND_APP
from ..logging import log_resource_event, log_stage_result
from ..models import App, AssociatedResources, StageResult, StageStatus, utcnow
from ..services.deploy.base import Deployer
from ..services.fetch.base import FetchBackend
from ..services.k8s.status import StatusPersister
from ..services.template.base import TemplateBackend
from ..tracing import trace_span
from ..utils.errors import BackendConfigError, CacheClearError, StatusUpdateError, sanitize_exception
from ..utils.tmpdir import scoped_tmp_dir
from .status import AppStatusMachine
from .timer import ReconcileTimer

logger = logging.getLogger(__name__)


class BackendFactory(Protocol):
    """Backends selected for one App from the shape of its spec."""

    def fetcher(self) -> FetchBackend:
        ...

    def templates(self) -> list[TemplateBackend]:
        """Raises BackendConfigError for an empty or unknown template section."""
        ...

    def deployer(self) -> Deployer:
        """Raises BackendConfigError for an empty or unknown deploy section."""
        ...


@dataclass
class ReconcileResult:
    """What the watch layer needs back from one reconcile."""

    requeue_after: timedelta
    error: BaseException | None = None


class AppReconciler:
    """Drives one App toward its spec.

    Not safe to call concurrently for the same App; the watch layer
    serializes reconciles per resource.
    """

    def __init__(
        self,
        app: App,
        backends: BackendFactory,
        status_persister: StatusPersister,
        timer_opts: ReconcileTimerOpts,
        app_metrics: metrics.AppMetrics | None = None,
        clock: Callable[[], datetime] = utcnow,
        kind: str = KIND_APP,
    ):
        self.app = app
        self.backends = backends
        self.status_persister = status_persister
        self.timer_opts = timer_opts
        self.app_metrics = app_metrics or metrics.app_metrics
        self.clock = clock
        self.kind = kind
        self.status = AppStatusMachine(app, self.app_metrics.count, kind=kind)
        self.is_first_reconcile = False
        self.suppressed_status_errors: list[StatusUpdateError] = []
        self._persisted_status = app.status.to_dict()

    # -- dispatcher -------------------------------------------------------

    def reconcile(self, force: bool = False) -> ReconcileResult:
        """Run whichever branch the App's current intent calls for."""
        err: BaseException | None = None
        self.app_metrics.count.init_metrics(self.kind, self.app.name, self.app.namespace)

        try:
            if self.app.deletion_timestamp is not None:
                self._log("Started delete", event="delete", reason="DeleteStarted")
                err = self.reconcile_delete()
                self._log("Completed delete", event="delete", reason="DeleteCompleted")

            elif self.app.canceled or self.app.paused:
                self._log("App is canceled or paused, not reconciling", event="skip", reason="CanceledOrPaused")
                self.status.mark_observed_latest()
                self.app.status.friendly_description = DESC_CANCELED_PAUSED
                err = self._try_update_status("app canceled/paused")

            elif force or ReconcileTimer(self.app, self.timer_opts).is_ready_at(self.clock()):
                self._log("Started deploy", event="deploy", reason="DeployStarted")
                err = self.reconcile_deploy()
                self._log("Completed deploy", event="deploy", reason="DeployCompleted")

            else:
                self._log("Reconcile noop", event="noop", reason="NotDue", level=logging.DEBUG)

            flush_err = self._flush_status("app reconciled")
            if err is None:
                err = flush_err
        except Exception as e:
            metrics.error_total.labels(kind=self.kind, error_type=type(e).__name__).inc()
            self._log("Reconcile failed unexpectedly", event="error", reason="ReconcileError",
                      level=logging.ERROR, error=sanitize_exception(e))
            err = e

        requeue_after = ReconcileTimer(self.app, self.timer_opts).duration_until_ready(err)
        return ReconcileResult(requeue_after=requeue_after, error=err)

    # -- delete pipeline --------------------------------------------------

    def reconcile_delete(self) -> BaseException | None:
        self.status.mark_observed_latest()
        self.status.set_deleting()

        try:
            self._update_status("marking deleting")
            self.backends.fetcher().clear_cache(self.app.cache_id)
        except (StatusUpdateError, CacheClearError) as e:
            return e

        self._reset_last_deploy_started_at()

        try:
            deployer = self.backends.deployer()
        except BackendConfigError as e:
            result = StageResult.from_error(e)
        else:
            with trace_span("delete", kind=self.kind, attributes={"app.name": self.app.name}):
                result = deployer.delete(lambda progress: self._update_last_deploy(progress, None))
            self._log_stage("delete", result)
        self._update_last_deploy(result, None)

        self.status.set_delete_completed(result)
        self._update_status_tolerating_gone("marking delete completed")
        return None

    # -- deploy pipeline --------------------------------------------------

    def reconcile_deploy(self) -> BaseException | None:
        self.status.mark_observed_latest()
        self.status.set_reconciling()

        err = self._try_update_status("marking reconciling")
        if err is not None:
            return err

        result = self._reconcile_fetch_template_deploy()
        self.status.set_reconcile_completed(result)

        # Inspect regardless of deploy success, but not if deploy was never attempted
        if self.app.status.deploy is not None:
            self._reconcile_inspect()

        return self._try_update_status("marking reconcile completed")

    def _reconcile_fetch_template_deploy(self) -> StageResult:
        started_at = self.clock()
        attempts = self.app_metrics.count.get_reconcile_attempt_count(self.kind, self.app.name, self.app.namespace)
        self.is_first_reconcile = attempts == 1

        try:
            with scoped_tmp_dir("fetch-template-deploy") as tmp_dir:
                return self._fetch_template_deploy(tmp_dir)
        except OSError as e:
            return StageResult.from_error(e)
        finally:
            self.app_metrics.time.register_overall_time(
                self.kind, self.app.name, self.app.namespace, self.is_first_reconcile, self.clock() - started_at
            )

    def _fetch_template_deploy(self, tmp_dir: str) -> StageResult:
        self._reset_last_fetch_started_at()

        with trace_span("fetch", kind=self.kind, attributes={"app.name": self.app.name}):
            assets_path, fetch_result = self.backends.fetcher().fetch(tmp_dir)

        self._log_stage("fetch", fetch_result)
        fetch_status = StageStatus.from_result(fetch_result, started_at=self.app.status.fetch.started_at)
        self.app.status.fetch = fetch_status
        self.app_metrics.time.register_fetch_time(
            self.kind, self.app.name, self.app.namespace, self.is_first_reconcile,
            fetch_status.updated_at - fetch_status.started_at,
        )

        err = self._try_update_status("marking fetch completed")
        if err is not None:
            return StageResult.from_error(err)
        if fetch_result.failed:
            return fetch_result

        template_started_at = self.clock()

        with trace_span("template", kind=self.kind, attributes={"app.name": self.app.name}):
            tpl_result = self._template(assets_path)

        self._log_stage("template", tpl_result)
        template_status = StageStatus.from_result(tpl_result)
        # Rendered manifests are handed to deploy, not kept in status
        template_status.stdout = ""
        self.app.status.template = template_status
        self.app_metrics.time.register_template_time(
            self.kind, self.app.name, self.app.namespace, self.is_first_reconcile,
            template_status.updated_at - template_started_at,
        )

        err = self._try_update_status("marking template completed")
        if err is not None:
            return StageResult.from_error(err)
        if tpl_result.failed:
            return tpl_result

        self._reset_last_deploy_started_at()

        try:
            deployer = self.backends.deployer()
        except BackendConfigError as e:
            return self._update_last_deploy(StageResult.from_error(e), None)

        with trace_span("deploy", kind=self.kind, attributes={"app.name": self.app.name}):
            result = deployer.deploy(tpl_result.stdout, lambda progress: self._update_last_deploy(progress, deployer))
        self._log_stage("deploy", result)
        return self._update_last_deploy(result, deployer)

    def _template(self, assets_path: str) -> StageResult:
        """Run every template step; later steps render the previous step's output."""
        try:
            templates = self.backends.templates()
        except BackendConfigError as e:
            return StageResult.from_error(e)

        result = StageResult()
        for idx, template in enumerate(templates):
            if idx == 0:
                result = template.template_directory(assets_path)
            else:
                result = template.template_stream(result.stdout, assets_path)
            if result.failed:
                break
        return result

    def _update_last_deploy(self, result: StageResult, deployer: Deployer | None) -> StageResult:
        result = result.with_friendly_strings()
        previous = self.app.status.deploy

        deploy_status = StageStatus.from_result(
            result,
            started_at=previous.started_at if previous else None,
            kapp=previous.kapp if previous else None,
        )
        self.app.status.deploy = deploy_status

        deploy_metadata = deployer.metadata() if deployer is not None and result.finished else None
        # Without a recorded change-set (e.g. during delete) keep the previous associated resources
        if deploy_metadata is not None and deploy_metadata.last_change_namespaces:
            deploy_status.kapp = AssociatedResources.from_metadata(deploy_metadata)

        if result.finished and deploy_status.started_at is not None:
            self.app_metrics.time.register_deploy_time(
                self.kind, self.app.name, self.app.namespace, self.is_first_reconcile,
                deploy_status.updated_at - deploy_status.started_at,
            )

        err = self._try_update_status("marking last deploy")
        if err is not None:
            self._log("Unable to record deploy progress", event="warning", reason="StatusUpdateFailed",
                      level=logging.WARNING, error=sanitize_exception(err))
        return result

    def _reconcile_inspect(self) -> None:
        """Best effort: failures are logged and never change the reconcile outcome."""
        try:
            deployer = self.backends.deployer()
        except BackendConfigError:
            return

        with trace_span("inspect", kind=self.kind, attributes={"app.name": self.app.name}):
            inspect_result = deployer.inspect().with_friendly_strings()
        self._log_stage("inspect", inspect_result)

        if inspect_result.is_empty():
            self.app.status.inspect = None
        else:
            self.app.status.inspect = StageStatus.from_result(inspect_result)

        err = self._try_update_status("marking inspect completed")
        if err is not None:
            self._log("Unable to record inspect result", event="warning", reason="StatusUpdateFailed",
                      level=logging.WARNING, error=sanitize_exception(err))

    def _reset_last_fetch_started_at(self) -> None:
        if self.app.status.fetch is None:
            self.app.status.fetch = StageStatus()
        self.app.status.fetch.started_at = self.clock()

    def _reset_last_deploy_started_at(self) -> None:
        if self.app.status.deploy is None:
            self.app.status.deploy = StageStatus()
        self.app.status.deploy.started_at = self.clock()

    # -- status persistence -----------------------------------------------

    def _update_status(self, reason: str) -> None:
        self.status_persister.update_status(self.app, reason)
        self._persisted_status = self.app.status.to_dict()

    def _try_update_status(self, reason: str) -> StatusUpdateError | None:
        try:
            self._update_status(reason)
        except StatusUpdateError as e:
            return e
        return None

    def _flush_status(self, reason: str) -> StatusUpdateError | None:
        """Write status once more if it changed since the last write."""
        if self.app.status.to_dict() == self._persisted_status:
            return None
        return self._try_update_status(reason)

    def _update_status_tolerating_gone(self, reason: str) -> StatusUpdateError | None:
        """Final write of the delete pipeline.

        The App may already be gone from storage, so a failure here is
        expected: it is logged, counted and returned, never surfaced.
        """
        try:
            self._update_status(reason)
        except StatusUpdateError as e:
            self._persisted_status = self.app.status.to_dict()
            self.suppressed_status_errors.append(e)
            metrics.status_write_suppressed_total.labels(kind=self.kind, reason=reason).inc()
            self._log("Ignoring status write failure after delete", event="delete", reason="StatusWriteIgnored",
                      error=sanitize_exception(e))
            return e
        return None

    def _log_stage(self, stage: str, result: StageResult) -> None:
        log_stage_result(
            logger,
            resource_kind=self.kind,
            resource_name=self.app.name,
            namespace=self.app.namespace,
            uid=self.app.uid,
            stage=stage,
            exit_code=result.exit_code,
            error=result.error_str(),
            stderr=result.stderr,
        )

    def _log(self, message: str, event: str, reason: str, level: int = logging.INFO, **kwargs: Any) -> None:
        log_resource_event(
            logger,
            resource_kind=self.kind,
            resource_name=self.app.name,
            namespace=self.app.namespace,
            uid=self.app.uid,
            event=event,
            reason=reason,
            message=message,
            level=level,
            **kwargs,
        )
