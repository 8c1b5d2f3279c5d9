"""Utilities for emitting Kubernetes events."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import (
    EVENT_REASON_DELETE_FAILED,
    EVENT_REASON_RECONCILE_FAILED,
    EVENT_REASON_RECONCILE_STARTED,
    EVENT_REASON_RECONCILE_SUCCEEDED,
)
from .errors import sanitize_error_message


def emit_event(
    body: Any,
    reason: str,
    message: str,
    type_: str = "Normal",
) -> None:
    """Emit a Kubernetes event.

    Args:
        body: Resource body the event refers to
        reason: Event reason
        message: Event message (sanitized before posting)
        type_: Event type (Normal or Warning)
    """
    kopf.event(
        body,
        reason=reason,
        message=sanitize_error_message(message),
        type=type_,
    )


def emit_reconcile_started(body: Any) -> None:
    emit_event(body, EVENT_REASON_RECONCILE_STARTED, "Reconciliation started")


def emit_reconcile_succeeded(body: Any) -> None:
    emit_event(body, EVENT_REASON_RECONCILE_SUCCEEDED, "Reconcile succeeded")


def emit_reconcile_failed(body: Any, message: str) -> None:
    emit_event(body, EVENT_REASON_RECONCILE_FAILED, message, type_="Warning")


def emit_delete_failed(body: Any, message: str) -> None:
    emit_event(body, EVENT_REASON_DELETE_FAILED, message, type_="Warning")
