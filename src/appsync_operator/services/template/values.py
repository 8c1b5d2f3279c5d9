"""Resolution of templating values from secrets, config maps and paths."""

from __future__ import annotations

import base64
import json
import os
import shutil
import tempfile
from typing import Any, Callable, Sequence

from kubernetes import client

from ...constants import STDIN_PATH
from ...utils.errors import BackendConfigError
from ...utils.rate_limit import rate_limit_k8s
from ...utils.tmpdir import scoped_path


class AdditionalValues:
    """Values computed from the cluster rather than declared on the App.

    Explicit overrides in the template options win over cluster lookups.
    """

    def __init__(
        self,
        version_api: client.VersionApi | None = None,
        apis_api: client.ApisApi | None = None,
        core_api: client.CoreApi | None = None,
    ):
        self.version_api = version_api
        self.apis_api = apis_api
        self.core_api = core_api

    def kubernetes_version(self, override: dict[str, Any] | None = None) -> str:
        if override and override.get("version"):
            return override["version"]
        if self.version_api is None:
            raise BackendConfigError("Kubernetes version was requested but no cluster client is configured")
        info = rate_limit_k8s(self.version_api.get_code)()
        return info.git_version

    def kubernetes_apis(self, override: dict[str, Any] | None = None) -> list[str]:
        if override and override.get("groupVersions"):
            return list(override["groupVersions"])
        if self.apis_api is None or self.core_api is None:
            raise BackendConfigError("Kubernetes APIs were requested but no cluster client is configured")

        group_versions = list(rate_limit_k8s(self.core_api.get_api_versions)().versions)
        for group in rate_limit_k8s(self.apis_api.get_api_versions)().groups:
            group_versions.extend(version.group_version for version in group.versions)
        return group_versions


class Values:
    """Values files for one templating run, listed in ``valuesFrom`` order."""

    def __init__(
        self,
        values_from: Sequence[dict[str, Any]],
        namespace: str,
        core_v1: client.CoreV1Api | None = None,
    ):
        self.values_from = list(values_from)
        self.namespace = namespace
        self.core_v1 = core_v1

    def as_paths(self, dir_path: str) -> tuple[list[str], Callable[[], None]]:
        """Write referenced values to temporary files.

        Args:
            dir_path: Fetched assets directory that ``path`` sources are relative to

        Returns:
            The value file paths and a cleanup function that removes them
        """
        tmp_dir = tempfile.mkdtemp(prefix="template-values-")

        def cleanup() -> None:
            shutil.rmtree(tmp_dir, ignore_errors=True)

        try:
            paths: list[str] = []
            for idx, source in enumerate(self.values_from):
                paths.extend(self._source_paths(idx, source, dir_path, tmp_dir))
        except Exception:
            cleanup()
            raise

        return paths, cleanup

    def _source_paths(self, idx: int, source: dict[str, Any], dir_path: str, tmp_dir: str) -> list[str]:
        if "secretRef" in source:
            name = source["secretRef"]["name"]
            secret = rate_limit_k8s(self._core().read_namespaced_secret)(name=name, namespace=self.namespace)
            data = {key: base64.b64decode(value).decode("utf-8") for key, value in (secret.data or {}).items()}
            return _write_files(tmp_dir, f"{idx}-secret-{name}", data)

        if "configMapRef" in source:
            name = source["configMapRef"]["name"]
            config_map = rate_limit_k8s(self._core().read_namespaced_config_map)(name=name, namespace=self.namespace)
            return _write_files(tmp_dir, f"{idx}-configmap-{name}", dict(config_map.data or {}))

        if "inline" in source:
            # JSON is valid YAML, which every renderer reads
            return _write_files(tmp_dir, f"{idx}-inline", {"values.yml": json.dumps(source["inline"])})

        if "path" in source:
            if source["path"] == STDIN_PATH:
                return [STDIN_PATH]
            return [scoped_path(dir_path, source["path"])]

        raise BackendConfigError(f"Expected secretRef, configMapRef, inline or path in valuesFrom[{idx}]")

    def _core(self) -> client.CoreV1Api:
        if self.core_v1 is None:
            raise BackendConfigError("valuesFrom references cluster objects but no cluster client is configured")
        return self.core_v1


def _write_files(tmp_dir: str, subdir: str, data: dict[str, str]) -> list[str]:
    target = os.path.join(tmp_dir, subdir)
    os.makedirs(target, exist_ok=True)
    paths = []
    for key in sorted(data):
        path = os.path.join(target, key)
        with open(path, "w", encoding="utf-8") as f:
            f.write(data[key])
        paths.append(path)
    return paths
