"""Base template backend interface."""

from __future__ import annotations

from typing import Protocol

from ...models import StageResult


class TemplateBackend(Protocol):
    """Protocol defining template backend operations."""

    def template_directory(self, path: str) -> StageResult:
        """Render the configuration found in ``path``."""
        ...

    def template_stream(self, stream: str, context_path: str) -> StageResult:
        """Render ``stream`` (output of a previous template step).

        ``context_path`` is where additional inputs can be referenced from.
        """
        ...
