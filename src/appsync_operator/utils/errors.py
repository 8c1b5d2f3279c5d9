"""Operator exceptions and error sanitization utilities."""

from __future__ import annotations

import re
from typing import Any


class OperatorError(Exception):
    """Base class for operator errors."""


class StatusUpdateError(OperatorError):
    """Raised when an App status write fails."""


class StatusConflictError(StatusUpdateError):
    """Raised when a status write was rejected for a stale resourceVersion.

    Callers treat this as retryable: the next reconcile re-reads the App.
    """


class ScopedPathError(OperatorError):
    """Raised when a relative path escapes its scoped directory."""


class CacheClearError(OperatorError):
    """Raised when fetched artifacts could not be removed from the cache."""


class BackendConfigError(OperatorError):
    """Raised when a fetch, template or deploy section cannot be used."""


# Patterns that might expose credentials in tool output, with their replacement
SENSITIVE_PATTERNS = [
    (r"(https?://)[^/\s:@]+:[^/\s@]+@", r"\1[REDACTED]@"),
    (r"(authorization:\s*bearer)\s+[A-Za-z0-9\-_\.=]+", r"\1 [REDACTED]"),
    (r"(x-auth-token:)\s*[^\s]+", r"\1 [REDACTED]"),
]

# Fields to redact completely
SENSITIVE_FIELDS = {
    "password",
    "secret",
    "token",
    "private_key",
    "privatekey",
    "credentials",
}


def sanitize_error_message(message: str) -> str:
    """Sanitize error message to remove sensitive information.

    Args:
        message: Original error message

    Returns:
        Sanitized error message with sensitive data redacted
    """
    sanitized = message

    for pattern, replacement in SENSITIVE_PATTERNS:
        sanitized = re.sub(pattern, replacement, sanitized, flags=re.IGNORECASE)

    for field in SENSITIVE_FIELDS:
        sanitized = re.sub(
            rf"\b{field}([=:]\s*)([^\s,;\)]+)",
            rf"{field}\1[REDACTED]",
            sanitized,
            flags=re.IGNORECASE,
        )

    return sanitized


def sanitize_exception(error: BaseException) -> str:
    """Sanitize exception message."""
    return sanitize_error_message(str(error))


def sanitize_dict(data: dict[str, Any], sensitive_keys: set[str] | None = None) -> dict[str, Any]:
    """Sanitize dictionary by redacting sensitive fields.

    Args:
        data: Dictionary to sanitize
        sensitive_keys: Additional keys to redact (merged with SENSITIVE_FIELDS)

    Returns:
        Sanitized dictionary with sensitive values redacted
    """
    all_sensitive = SENSITIVE_FIELDS | (sensitive_keys or set())
    sanitized: dict[str, Any] = {}

    for key, value in data.items():
        key_lower = key.lower()
        if any(sensitive in key_lower for sensitive in all_sensitive):
            sanitized[key] = "[REDACTED]"
        elif isinstance(value, dict):
            sanitized[key] = sanitize_dict(value, sensitive_keys)
        elif isinstance(value, str):
            sanitized[key] = sanitize_error_message(value)
        else:
            sanitized[key] = value

    return sanitized
