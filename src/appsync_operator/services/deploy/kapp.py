"""Deploy backend that applies manifests with kapp."""

from __future__ import annotations

import json
import logging
import time
from typing import Any

from kubernetes import client
from kubernetes.client.exceptions import ApiException

from ... import metrics
from ...models import DeployMetadata, GroupKind, StageResult, utcnow
from ...utils.rate_limit import rate_limit_k8s
from ..exec.runner import CmdRunner
from .base import ProgressCallback

logger = logging.getLogger(__name__)

KAPP_APP_SUFFIX = "-ctrl"


class KappDeployer:
    """Deploy, delete and inspect an App's objects as one kapp app.

    Options (``spec.deploy[].kapp``): ``intoNs``, ``rawOptions``,
    ``inspect`` (default True) and ``delete.rawOptions``.
    """

    def __init__(
        self,
        opts: dict[str, Any],
        app_name: str,
        app_namespace: str,
        cmd_runner: CmdRunner,
        core_v1: client.CoreV1Api | None = None,
    ):
        self.opts = opts
        self.app_name = app_name
        self.app_namespace = app_namespace
        self.cmd_runner = cmd_runner
        self.core_v1 = core_v1
        self._metadata: DeployMetadata | None = None

    @property
    def kapp_app_name(self) -> str:
        return f"{self.app_name}{KAPP_APP_SUFFIX}"

    def _base_args(self, command: str) -> list[str]:
        return [
            "kapp", command,
            "--app", self.kapp_app_name,
            "--namespace", self.app_namespace,
            "--tty=false",
        ]

    def deploy(self, manifests: str, on_progress: ProgressCallback) -> StageResult:
        args = self._base_args("deploy") + ["--file", "-", "--yes", "--diff-changes=false"]
        if self.opts.get("intoNs"):
            args += ["--into-ns", self.opts["intoNs"]]
        args += list(self.opts.get("rawOptions") or [])

        on_progress(StageResult(started_at=utcnow(), finished=False))
        result = self.cmd_runner.run(args, stdin=manifests)
        result.finished = True
        result.attach_error("Deploying: {}", result.error)

        self._metadata = self._load_metadata()
        return result

    def delete(self, on_progress: ProgressCallback) -> StageResult:
        self._metadata = None
        args = self._base_args("delete") + ["--yes"]
        args += list((self.opts.get("delete") or {}).get("rawOptions") or [])

        on_progress(StageResult(started_at=utcnow(), finished=False))
        result = self.cmd_runner.run(args)
        result.finished = True
        return result.attach_error("Deleting: {}", result.error)

    def inspect(self) -> StageResult:
        if self.opts.get("inspect") is False:
            return StageResult()
        result = self.cmd_runner.run(self._base_args("inspect") + ["--tree"])
        return result.attach_error("Inspecting: {}", result.error)

    def metadata(self) -> DeployMetadata | None:
        return self._metadata

    def _load_metadata(self) -> DeployMetadata | None:
        """Read the app record kapp keeps in a ConfigMap named after the app."""
        if self.core_v1 is None:
            return None

        start_time = time.time()
        try:
            config_map = rate_limit_k8s(self.core_v1.read_namespaced_config_map)(
                name=self.kapp_app_name, namespace=self.app_namespace
            )
            metrics.api_call_total.labels(api_type="k8s", operation="read_kapp_app", result="success").inc()
        except ApiException as e:
            metrics.api_call_total.labels(api_type="k8s", operation="read_kapp_app", result="error").inc()
            logger.warning(f"Unable to read kapp app record {self.app_namespace}/{self.kapp_app_name}: {e.reason}")
            return None
        finally:
            metrics.api_call_duration_seconds.labels(api_type="k8s", operation="read_kapp_app").observe(
                time.time() - start_time
            )

        return parse_kapp_app_spec((config_map.data or {}).get("spec"))


def parse_kapp_app_spec(raw: str | None) -> DeployMetadata | None:
    """Parse the JSON ``spec`` kapp stores for an app."""
    if not raw:
        return None
    try:
        spec = json.loads(raw)
    except ValueError:
        logger.warning("kapp app record holds invalid JSON, ignoring it")
        return None

    return DeployMetadata(
        label_key=spec.get("labelKey", ""),
        label_value=spec.get("labelValue", ""),
        last_change_namespaces=tuple((spec.get("lastChange") or {}).get("namespaces") or ()),
        used_group_kinds=tuple(
            GroupKind(group=gk.get("Group", ""), kind=gk.get("Kind", "")) for gk in spec.get("usedGKs") or ()
        ),
    )
