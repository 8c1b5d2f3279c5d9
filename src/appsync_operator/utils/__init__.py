"""Utility functions for the App Sync Operator."""

from .errors import (
    BackendConfigError,
    CacheClearError,
    OperatorError,
    ScopedPathError,
    StatusConflictError,
    StatusUpdateError,
    sanitize_error_message,
    sanitize_exception,
)
from .rate_limit import is_rate_limit_error, rate_limit_k8s
from .tmpdir import scoped_path, scoped_tmp_dir

__all__ = [
    "BackendConfigError",
    "CacheClearError",
    "OperatorError",
    "ScopedPathError",
    "StatusConflictError",
    "StatusUpdateError",
    "sanitize_error_message",
    "sanitize_exception",
    "is_rate_limit_error",
    "rate_limit_k8s",
    "scoped_path",
    "scoped_tmp_dir",
]
