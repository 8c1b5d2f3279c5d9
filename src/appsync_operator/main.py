"""Main entry point for the App Sync Operator."""

from __future__ import annotations

import logging
from typing import Any

import kopf

from . import handlers  # noqa: F401  registers the kopf handlers
from . import health
from . import logging as structured_logging
from .config import OperatorConfig
from .tracing import initialize_tracing
from .utils.rate_limit import configure_k8s_rate_limit

logger = logging.getLogger(__name__)


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    """Configure the operator."""
    config = OperatorConfig.from_env()

    structured_logging.setup_structured_logging(config.log_level)
    configure_k8s_rate_limit(config.k8s_rate_limit_per_second)
    initialize_tracing()

    # Use annotations for kopf's own bookkeeping; status belongs to the reconciler
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage()
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage()

    settings.posting.level = logging.WARNING
    settings.networking.request_timeout = 30.0
    settings.execution.max_workers = config.max_workers

    health.start_metrics_server(config.metrics_port)
    health.mark_ready()

    logger.info(
        f"Operator configured: default sync period {config.timer_opts.default_sync_period}, "
        f"minimum sync period {config.timer_opts.minimum_sync_period}, "
        f"backoff policy {config.timer_opts.policy.value}"
    )


@kopf.on.cleanup()
def shutdown(**_: Any) -> None:
    """Report not ready while the operator shuts down."""
    health.mark_not_ready()


def main() -> None:
    """Run the operator in all namespaces."""
    kopf.run(clusterwide=True)


if __name__ == "__main__":
    main()
