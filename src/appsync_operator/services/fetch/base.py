"""Base fetch backend interface."""

from __future__ import annotations

from typing import Protocol

from ...models import StageResult


class FetchBackend(Protocol):
    """Protocol defining fetch backend operations."""

    def fetch(self, target_dir: str) -> tuple[str, StageResult]:
        """Mirror all configured sources into ``target_dir``.

        Returns:
            Path holding the fetched assets (``target_dir`` or a child of it)
            and the stage result
        """
        ...

    def clear_cache(self, cache_id: str) -> None:
        """Drop cached artifacts for ``cache_id``.

        Raises:
            CacheClearError: If cached artifacts could not be removed
        """
        ...
