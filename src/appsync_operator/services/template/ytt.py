"""Template backend that renders configuration with ytt."""

from __future__ import annotations

from typing import Any

from ...constants import NEUTRALIZED_CLUSTER_ENV, STDIN_PATH
from ...models import StageResult
from ...utils.errors import ScopedPathError
from ...utils.tmpdir import scoped_path
from ..exec.runner import CmdRunner
from .values import Values


class YttTemplate:
    """Render with ``ytt``.

    Options (``spec.template[].ytt``): ``paths`` (relative input paths,
    default the whole directory), ``ignoreUnknownComments``, ``strict`` and
    ``valuesFrom`` (passed as ``--data-values-file``).
    """

    def __init__(self, opts: dict[str, Any], cmd_runner: CmdRunner, values: Values):
        self.opts = opts
        self.cmd_runner = cmd_runner
        self.values = values

    def template_directory(self, path: str) -> StageResult:
        return self._template(path, None)

    def template_stream(self, stream: str, context_path: str) -> StageResult:
        return self._template(context_path, stream)

    def _template(self, dir_path: str, stdin: str | None) -> StageResult:
        args = ["ytt"]

        try:
            for rel_path in self.opts.get("paths") or ["."]:
                args += ["-f", scoped_path(dir_path, rel_path)]
        except ScopedPathError as e:
            return StageResult.from_error(e)

        if stdin is not None:
            args += ["-f", STDIN_PATH]
        if self.opts.get("ignoreUnknownComments"):
            args.append("--ignore-unknown-comments")
        if self.opts.get("strict"):
            args.append("--strict")

        try:
            paths, cleanup = self.values.as_paths(dir_path)
        except Exception as e:
            return StageResult.from_error(e)

        try:
            for path in paths:
                if path == STDIN_PATH:
                    # stdin already carries the streamed manifests
                    return StageResult.from_error(
                        ValueError("ytt does not support reading data values from stdin")
                    )
                args += ["--data-values-file", path]

            result = self.cmd_runner.run(args, stdin=stdin, env=NEUTRALIZED_CLUSTER_ENV)
        finally:
            cleanup()

        return result.attach_error("Templating dir: {}", result.error)
