"""Base deploy backend interface."""

from __future__ import annotations

from typing import Callable, Protocol

from ...models import DeployMetadata, StageResult

ProgressCallback = Callable[[StageResult], None]


class Deployer(Protocol):
    """Protocol defining deploy backend operations."""

    def deploy(self, manifests: str, on_progress: ProgressCallback) -> StageResult:
        """Apply ``manifests`` to the cluster.

        ``on_progress`` receives unfinished snapshots while the deploy runs.
        """
        ...

    def delete(self, on_progress: ProgressCallback) -> StageResult:
        """Remove every object previously deployed for the App."""
        ...

    def inspect(self) -> StageResult:
        """Describe the objects currently deployed for the App."""
        ...

    def metadata(self) -> DeployMetadata | None:
        """Metadata recorded by the last deploy, if any."""
        ...
