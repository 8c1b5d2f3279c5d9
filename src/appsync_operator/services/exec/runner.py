"""Command execution abstraction used by every pipeline stage."""

from __future__ import annotations

import logging
import os
import subprocess
from typing import Mapping, Protocol, Sequence

from ...models import StageResult, utcnow

logger = logging.getLogger(__name__)


class CmdRunner(Protocol):
    """Protocol for running an external tool and capturing its outcome."""

    def run(
        self,
        args: Sequence[str],
        stdin: str | None = None,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
    ) -> StageResult:
        """Run ``args`` and return its stdout, stderr, exit code and error.

        ``env`` entries are overlaid on the process environment.
        """
        ...


class CommandFailedError(RuntimeError):
    """Raised (and attached to a StageResult) when a tool exits non-zero."""

    def __init__(self, args: Sequence[str], exit_code: int):
        self.exit_code = exit_code
        super().__init__(f"{args[0]}: exit status {exit_code}")


class SubprocessCmdRunner:
    """CmdRunner backed by :mod:`subprocess`."""

    def __init__(self, timeout_seconds: float | None = None):
        self.timeout_seconds = timeout_seconds

    def run(
        self,
        args: Sequence[str],
        stdin: str | None = None,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
    ) -> StageResult:
        started_at = utcnow()
        full_env = {**os.environ, **env} if env else None

        logger.debug("Running %s", args[0])
        try:
            proc = subprocess.run(
                list(args),
                input=stdin,
                capture_output=True,
                text=True,
                env=full_env,
                cwd=cwd,
                timeout=self.timeout_seconds,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            result = StageResult(
                stdout=_as_text(e.stdout),
                stderr=_as_text(e.stderr),
                exit_code=-1,
                started_at=started_at,
                updated_at=utcnow(),
            )
            return result.attach_error("Running command: {}", e)
        except OSError as e:
            result = StageResult(exit_code=-1, started_at=started_at, updated_at=utcnow())
            return result.attach_error("Running command: {}", e)

        result = StageResult(
            stdout=proc.stdout,
            stderr=proc.stderr,
            exit_code=proc.returncode,
            started_at=started_at,
            updated_at=utcnow(),
        )
        if proc.returncode != 0:
            result.error = CommandFailedError(args, proc.returncode)
        return result


def _as_text(value: str | bytes | None) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value
