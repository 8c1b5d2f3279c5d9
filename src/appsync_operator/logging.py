"""Structured logging configuration for the App Sync Operator."""

import json
import logging
import sys
from typing import Any

from .constants import CONTROLLER_NAME
from .utils.errors import sanitize_error_message


def setup_structured_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def log_resource_event(
    logger: logging.Logger,
    resource_kind: str,
    resource_name: str,
    namespace: str,
    uid: str,
    event: str,
    reason: str,
    message: str,
    level: int = logging.INFO,
    controller: str = CONTROLLER_NAME,
    **kwargs: Any,
) -> None:
    """Log a structured resource event."""
    log_data = {
        "controller": controller,
        "resource": resource_kind,
        "name": resource_name,
        "namespace": namespace,
        "uid": uid,
        "event": event,
        "reason": reason,
        "message": message,
    }
    log_data.update(sanitize_secrets(kwargs))
    logger.log(level, json.dumps(log_data, default=str))


def sanitize_secrets(log_data: dict[str, Any]) -> dict[str, Any]:
    """Remove secret fields from log data."""
    secret_fields = {"password", "token", "values", "stdin"}
    sanitized = log_data.copy()
    for field in secret_fields:
        if field in sanitized:
            sanitized[field] = "***REDACTED***"
    return sanitized


# Tool output can be megabytes; only its tail is useful in a log line
_STAGE_OUTPUT_TAIL = 1024


def log_stage_result(
    logger: logging.Logger,
    resource_kind: str,
    resource_name: str,
    namespace: str,
    uid: str,
    stage: str,
    exit_code: int,
    error: str,
    stderr: str,
) -> None:
    """Log the outcome of one pipeline stage (fetch, template, deploy, delete, inspect)."""
    failed = bool(error)
    log_resource_event(
        logger,
        resource_kind=resource_kind,
        resource_name=resource_name,
        namespace=namespace,
        uid=uid,
        event="stage",
        reason=f"{stage.capitalize()}{'Failed' if failed else 'Succeeded'}",
        message=f"Stage {stage} {'failed' if failed else 'succeeded'}",
        level=logging.WARNING if failed else logging.DEBUG,
        stage=stage,
        exit_code=exit_code,
        error=sanitize_error_message(error),
        stderr=sanitize_error_message(stderr[-_STAGE_OUTPUT_TAIL:]),
    )
