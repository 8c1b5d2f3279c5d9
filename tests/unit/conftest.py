"""Shared fixtures: in-memory stand-ins for the reconciler's collaborators."""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Callable

import pytest

from appsync_operator.config import ReconcileTimerOpts
from appsync_operator.metrics import AppMetrics, ReconcileCountMetrics, ReconcileTimeMetrics
from appsync_operator.models import App, DeployMetadata, StageResult
from appsync_operator.reconciler.app import AppReconciler


class FakeStatusPersister:
    """Records every status write; can fail chosen writes."""

    def __init__(self) -> None:
        self.writes: list[tuple[str, dict[str, Any]]] = []
        self.failures: dict[str, Exception] = {}
        self.fail_all: Exception | None = None

    def update_status(self, app: App, reason: str) -> None:
        if self.fail_all is not None:
            raise self.fail_all
        if reason in self.failures:
            raise self.failures[reason]
        self.writes.append((reason, app.status.to_dict()))

    @property
    def reasons(self) -> list[str]:
        return [reason for reason, _ in self.writes]


class FakeFetcher:
    def __init__(self) -> None:
        self.result = StageResult(stdout="fetched")
        self.clear_cache_error: Exception | None = None
        self.fetch_calls: list[str] = []
        self.cleared: list[str] = []

    def fetch(self, target_dir: str) -> tuple[str, StageResult]:
        self.fetch_calls.append(target_dir)
        return target_dir, self.result

    def clear_cache(self, cache_id: str) -> None:
        if self.clear_cache_error is not None:
            raise self.clear_cache_error
        self.cleared.append(cache_id)


class FakeTemplate:
    def __init__(self, result: StageResult | None = None) -> None:
        self.result = result or StageResult(stdout="kind: ConfigMap\n")
        self.calls: list[tuple[str, Any]] = []

    def template_directory(self, path: str) -> StageResult:
        self.calls.append(("directory", path))
        return self.result

    def template_stream(self, stream: str, context_path: str) -> StageResult:
        self.calls.append(("stream", stream))
        return self.result


class FakeDeployer:
    def __init__(self) -> None:
        self.deploy_result = StageResult(stdout="Succeeded")
        self.delete_result = StageResult(stdout="Deleted")
        self.inspect_result = StageResult(stdout="Resources in app")
        self.deploy_metadata: DeployMetadata | None = None
        self.deployed: list[str] = []
        self.delete_calls = 0
        self.inspect_calls = 0
        self._metadata: DeployMetadata | None = None

    def deploy(self, manifests: str, on_progress: Callable[[StageResult], None]) -> StageResult:
        self.deployed.append(manifests)
        on_progress(StageResult(finished=False))
        self._metadata = self.deploy_metadata
        return self.deploy_result

    def delete(self, on_progress: Callable[[StageResult], None]) -> StageResult:
        self.delete_calls += 1
        self._metadata = None
        on_progress(StageResult(finished=False))
        return self.delete_result

    def inspect(self) -> StageResult:
        self.inspect_calls += 1
        return self.inspect_result

    def metadata(self) -> DeployMetadata | None:
        return self._metadata


class FakeBackends:
    def __init__(self) -> None:
        self.fetch = FakeFetcher()
        self.template_steps: list[FakeTemplate] = [FakeTemplate()]
        self.deploy = FakeDeployer()
        self.templates_error: Exception | None = None
        self.deployer_error: Exception | None = None

    def fetcher(self) -> FakeFetcher:
        return self.fetch

    def templates(self) -> list[FakeTemplate]:
        if self.templates_error is not None:
            raise self.templates_error
        return self.template_steps

    def deployer(self) -> FakeDeployer:
        if self.deployer_error is not None:
            raise self.deployer_error
        return self.deploy


@pytest.fixture
def timer_opts() -> ReconcileTimerOpts:
    return ReconcileTimerOpts(
        default_sync_period=timedelta(minutes=5),
        minimum_sync_period=timedelta(seconds=10),
    )


@pytest.fixture
def app() -> App:
    return App(
        name="simple-app",
        namespace="default",
        uid="11111111-2222-3333-4444-555555555555",
        generation=1,
        resource_version="100",
        spec={
            "fetch": [{"inline": {"paths": {"cm.yml": "kind: ConfigMap"}}}],
            "template": [{"ytt": {}}],
            "deploy": [{"kapp": {}}],
        },
    )


@pytest.fixture
def backends() -> FakeBackends:
    return FakeBackends()


@pytest.fixture
def persister() -> FakeStatusPersister:
    return FakeStatusPersister()


@pytest.fixture
def app_metrics() -> AppMetrics:
    return AppMetrics(count=ReconcileCountMetrics(), time=ReconcileTimeMetrics())


@pytest.fixture
def make_reconciler(
    backends: FakeBackends,
    persister: FakeStatusPersister,
    timer_opts: ReconcileTimerOpts,
    app_metrics: AppMetrics,
) -> Callable[[App], AppReconciler]:
    def factory(target: App) -> AppReconciler:
        return AppReconciler(target, backends, persister, timer_opts, app_metrics=app_metrics)

    return factory


@pytest.fixture
def make_template() -> Callable[..., FakeTemplate]:
    return FakeTemplate
