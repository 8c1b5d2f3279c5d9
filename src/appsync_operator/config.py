"""Operator configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""


class BackoffPolicy(str, Enum):
    """How the retry period grows across consecutive failures."""

    FIXED = "fixed"
    LINEAR = "linear"
    EXPONENTIAL = "exponential"


DEFAULT_SYNC_PERIOD_SECONDS = 300
MINIMUM_SYNC_PERIOD_SECONDS = 10
DEFAULT_TIMER_INTERVAL_SECONDS = 10
DEFAULT_CMD_TIMEOUT_SECONDS = 900
DEFAULT_VENDIR_CACHE_DIR = "/tmp/appsync-operator/vendir-cache"
DEFAULT_K8S_RATE_LIMIT_PER_SECOND = 10.0


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e


@dataclass(frozen=True)
class ReconcileTimerOpts:
    """Sync periods that bound how often an App is reconciled."""

    default_sync_period: timedelta = timedelta(seconds=DEFAULT_SYNC_PERIOD_SECONDS)
    minimum_sync_period: timedelta = timedelta(seconds=MINIMUM_SYNC_PERIOD_SECONDS)
    policy: BackoffPolicy = BackoffPolicy.EXPONENTIAL
    jitter: timedelta = timedelta(0)

    def __post_init__(self) -> None:
        if self.minimum_sync_period <= timedelta(0):
            raise ConfigurationError("minimum sync period must be positive")
        if self.default_sync_period < self.minimum_sync_period:
            raise ConfigurationError(
                f"default sync period ({self.default_sync_period}) must not be shorter "
                f"than minimum sync period ({self.minimum_sync_period})"
            )
        if self.jitter < timedelta(0):
            raise ConfigurationError("jitter must not be negative")


@dataclass(frozen=True)
class OperatorConfig:
    """Process-wide operator settings."""

    timer_opts: ReconcileTimerOpts = ReconcileTimerOpts()
    timer_interval_seconds: float = DEFAULT_TIMER_INTERVAL_SECONDS
    cmd_timeout_seconds: float = DEFAULT_CMD_TIMEOUT_SECONDS
    vendir_cache_dir: str = DEFAULT_VENDIR_CACHE_DIR
    metrics_port: int = 8080
    max_workers: int = 4
    k8s_rate_limit_per_second: float = DEFAULT_K8S_RATE_LIMIT_PER_SECOND
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> OperatorConfig:
        """Load from environment variables."""
        raw_policy = os.getenv("BACKOFF_POLICY", BackoffPolicy.EXPONENTIAL.value).lower()
        try:
            policy = BackoffPolicy(raw_policy)
        except ValueError as e:
            choices = ", ".join(p.value for p in BackoffPolicy)
            raise ConfigurationError(f"BACKOFF_POLICY must be one of {choices}, got {raw_policy!r}") from e

        timer_opts = ReconcileTimerOpts(
            default_sync_period=timedelta(seconds=_env_float("DEFAULT_SYNC_PERIOD_SECONDS", DEFAULT_SYNC_PERIOD_SECONDS)),
            minimum_sync_period=timedelta(seconds=_env_float("MINIMUM_SYNC_PERIOD_SECONDS", MINIMUM_SYNC_PERIOD_SECONDS)),
            policy=policy,
            jitter=timedelta(seconds=_env_float("SYNC_JITTER_SECONDS", 0)),
        )

        timer_interval = _env_float("TIMER_INTERVAL_SECONDS", DEFAULT_TIMER_INTERVAL_SECONDS)
        if timer_interval <= 0:
            raise ConfigurationError("TIMER_INTERVAL_SECONDS must be positive")

        rate_limit = _env_float("K8S_RATE_LIMIT_PER_SECOND", DEFAULT_K8S_RATE_LIMIT_PER_SECOND)
        if rate_limit <= 0:
            raise ConfigurationError("K8S_RATE_LIMIT_PER_SECOND must be positive")

        return cls(
            timer_opts=timer_opts,
            timer_interval_seconds=timer_interval,
            cmd_timeout_seconds=_env_float("CMD_TIMEOUT_SECONDS", DEFAULT_CMD_TIMEOUT_SECONDS),
            vendir_cache_dir=os.getenv("VENDIR_CACHE_DIR", DEFAULT_VENDIR_CACHE_DIR),
            metrics_port=int(_env_float("METRICS_PORT", 8080)),
            max_workers=int(_env_float("MAX_WORKERS", 4)),
            k8s_rate_limit_per_second=rate_limit,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
