"""App status persistence through the Kubernetes API."""

from __future__ import annotations

import logging
import time
from typing import Protocol

from kubernetes import client
from kubernetes.client.exceptions import ApiException
from urllib3.exceptions import HTTPError

from ... import metrics
from ...constants import API_GROUP, API_GROUP_VERSION, API_VERSION, KIND_APP, PLURAL_APP
from ...models import App
from ...utils.errors import StatusConflictError, StatusUpdateError
from ...utils.rate_limit import is_rate_limit_error, rate_limit_k8s

logger = logging.getLogger(__name__)


class StatusPersister(Protocol):
    """Protocol for writing an App's status to durable storage."""

    def update_status(self, app: App, reason: str) -> None:
        """Persist ``app.status``.

        Raises:
            StatusConflictError: If the write was based on a stale resourceVersion
            StatusUpdateError: If the write failed for any other reason
        """
        ...


class KubernetesStatusPersister:
    """Replace the App's status subresource, guarded by resourceVersion."""

    def __init__(self, api: client.CustomObjectsApi):
        self.api = api

    def update_status(self, app: App, reason: str) -> None:
        body = {
            "apiVersion": API_GROUP_VERSION,
            "kind": KIND_APP,
            "metadata": {
                "name": app.name,
                "namespace": app.namespace,
                "resourceVersion": app.resource_version,
            },
            "status": app.status.to_dict(),
        }

        start_time = time.time()
        try:
            updated = rate_limit_k8s(self.api.replace_namespaced_custom_object_status)(
                group=API_GROUP,
                version=API_VERSION,
                namespace=app.namespace,
                plural=PLURAL_APP,
                name=app.name,
                body=body,
            )
        except ApiException as e:
            if e.status == 409:
                metrics.status_write_total.labels(result="conflict").inc()
                raise StatusConflictError(
                    f"Updating status ({reason}): App {app.namespace}/{app.name} was modified concurrently"
                ) from e
            result = "rate_limited" if is_rate_limit_error(e) else "error"
            metrics.status_write_total.labels(result=result).inc()
            raise StatusUpdateError(f"Updating status ({reason}): {e.status} {e.reason}") from e
        except (HTTPError, OSError) as e:
            metrics.status_write_total.labels(result="error").inc()
            raise StatusUpdateError(f"Updating status ({reason}): {e}") from e
        finally:
            metrics.api_call_duration_seconds.labels(api_type="k8s", operation="update_status").observe(
                time.time() - start_time
            )

        metrics.status_write_total.labels(result="success").inc()
        app.resource_version = (updated or {}).get("metadata", {}).get("resourceVersion", app.resource_version)
        logger.debug(f"Updated status of App {app.namespace}/{app.name}: {reason}")
