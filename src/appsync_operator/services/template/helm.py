"""Template backend that renders Helm charts with ``helm template``."""

from __future__ import annotations

from typing import Any

from ...constants import NEUTRALIZED_CLUSTER_ENV, STDIN_PATH
from ...models import StageResult
from ...utils.errors import ScopedPathError
from ...utils.tmpdir import scoped_path
from ..exec.runner import CmdRunner
from .values import AdditionalValues, Values


class HelmTemplate:
    """Render a chart directory with ``helm template``.

    Options (``spec.template[].helmTemplate``): ``name``, ``namespace``,
    ``path``, ``valuesFrom``, ``kubernetesVersion`` and ``kubernetesAPIs``.
    """

    def __init__(
        self,
        opts: dict[str, Any],
        app_name: str,
        app_namespace: str,
        cmd_runner: CmdRunner,
        values: Values,
        additional_values: AdditionalValues,
    ):
        self.opts = opts
        self.app_name = app_name
        self.app_namespace = app_namespace
        self.cmd_runner = cmd_runner
        self.values = values
        self.additional_values = additional_values

    def template_directory(self, path: str) -> StageResult:
        return self._template(path, None)

    def template_stream(self, stream: str, context_path: str) -> StageResult:
        return self._template(context_path, stream)

    def _template(self, dir_path: str, stdin: str | None) -> StageResult:
        chart_path = dir_path
        if self.opts.get("path"):
            try:
                chart_path = scoped_path(dir_path, self.opts["path"])
            except ScopedPathError as e:
                return StageResult.from_error(e)

        name = self.opts.get("name") or self.app_name
        namespace = self.opts.get("namespace") or self.app_namespace

        args = ["helm", "template", name, chart_path, "--namespace", namespace, "--include-crds"]

        if self.opts.get("kubernetesVersion") is not None:
            try:
                version = self.additional_values.kubernetes_version(self.opts["kubernetesVersion"])
            except Exception as e:
                return StageResult.from_error(e).attach_error(
                    "Unable to get kubernetes version during helm template: {}", e
                )
            args += ["--kube-version", version]

        if self.opts.get("kubernetesAPIs") is not None:
            try:
                apis = self.additional_values.kubernetes_apis(self.opts["kubernetesAPIs"])
            except Exception as e:
                return StageResult.from_error(e).attach_error(
                    "Unable to get kubernetes APIs during helm template: {}", e
                )
            args += ["--api-versions", ",".join(apis)]

        try:
            paths, cleanup = self.values.as_paths(dir_path)
        except Exception as e:
            return StageResult.from_error(e)

        try:
            for path in paths:
                if path == STDIN_PATH and stdin is None:
                    return StageResult.from_error(
                        ValueError("Expected stdin to be available when using it as path, but was not")
                    )
                args += ["--values", path]

            # helm template should not reach out to the cluster, reset in case it tries
            result = self.cmd_runner.run(args, stdin=stdin, env=NEUTRALIZED_CLUSTER_ENV)
        finally:
            cleanup()

        return result.attach_error("Templating helm chart: {}", result.error)
