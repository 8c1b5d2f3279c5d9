"""Fetch backend that mirrors sources with vendir."""

from __future__ import annotations

import json
import os
import shutil
from typing import Any, Sequence

from ...models import StageResult
from ...utils.errors import BackendConfigError, CacheClearError, ScopedPathError
from ...utils.tmpdir import scoped_path, scoped_tmp_dir
from ..exec.runner import CmdRunner

VENDIR_CONFIG_API_VERSION = "vendir.k14s.io/v1alpha1"
VENDIR_CONFIG_FILE = "vendir.yml"
VENDIR_LOCK_FILE = "vendir.lock.yml"

# Source kinds vendir knows how to mirror
SUPPORTED_SOURCES = ("inline", "image", "imgpkgBundle", "http", "git", "helmChart")


class VendirFetcher:
    """Mirror an App's ``spec.fetch`` sources with ``vendir sync``.

    Each fetch entry lands in its own numbered directory. With a single
    entry its directory is the assets path.
    """

    def __init__(
        self,
        fetch_specs: Sequence[dict[str, Any]],
        cmd_runner: CmdRunner,
        cache_dir: str,
        cache_id: str,
    ):
        self.fetch_specs = list(fetch_specs)
        self.cmd_runner = cmd_runner
        self.cache_dir = cache_dir
        self.cache_id = cache_id

    def config(self) -> dict[str, Any]:
        """Build the vendir config document for the configured sources."""
        if not self.fetch_specs:
            raise BackendConfigError("Expected at least one fetch option")

        contents = []
        for idx, fetch_spec in enumerate(self.fetch_specs):
            sources = [key for key in fetch_spec if key in SUPPORTED_SOURCES]
            if len(sources) != 1:
                raise BackendConfigError(
                    f"Expected exactly one fetch source in fetch[{idx}], got {sorted(fetch_spec)}"
                )
            source = sources[0]
            content: dict[str, Any] = {"path": str(idx), source: fetch_spec[source]}
            if fetch_spec.get("path"):
                content["includePaths"] = [os.path.join(fetch_spec["path"], "**", "*")]
            contents.append(content)

        return {
            "apiVersion": VENDIR_CONFIG_API_VERSION,
            "kind": "Config",
            "directories": [{"path": ".", "contents": contents}],
        }

    def fetch(self, target_dir: str) -> tuple[str, StageResult]:
        try:
            config = self.config()
        except BackendConfigError as e:
            return target_dir, StageResult.from_error(e)

        # vendir owns the contents of target_dir, so its config lives elsewhere
        try:
            with scoped_tmp_dir("vendir-config") as config_dir:
                config_path = os.path.join(config_dir, VENDIR_CONFIG_FILE)
                lock_path = os.path.join(config_dir, VENDIR_LOCK_FILE)
                with open(config_path, "w", encoding="utf-8") as f:
                    # JSON is valid YAML, which vendir reads
                    json.dump(config, f)

                result = self.cmd_runner.run(
                    ["vendir", "sync", "-f", config_path, "--lock-file", lock_path, "--chdir", target_dir],
                    env={"VENDIR_CACHE_DIR": self._cache_path(self.cache_id)},
                )
        except OSError as e:
            return target_dir, StageResult.from_error(e)
        result.attach_error("Fetching resources: {}", result.error)

        if result.failed:
            return target_dir, result

        assets_path = target_dir
        if len(self.fetch_specs) == 1:
            assets_path = os.path.join(target_dir, "0")
            sub_path = self.fetch_specs[0].get("path")
            if sub_path:
                try:
                    assets_path = scoped_path(assets_path, sub_path)
                except ScopedPathError as e:
                    return target_dir, StageResult.from_error(e)
        return assets_path, result

    def clear_cache(self, cache_id: str) -> None:
        path = self._cache_path(cache_id)
        try:
            shutil.rmtree(path)
        except FileNotFoundError:
            return
        except OSError as e:
            raise CacheClearError(f"Clearing fetch cache for {cache_id}: {e}") from e

    def _cache_path(self, cache_id: str) -> str:
        return os.path.join(self.cache_dir, cache_id)
