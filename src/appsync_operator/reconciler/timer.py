"""Scheduling of the next App reconcile."""

from __future__ import annotations

import random
import re
from datetime import datetime, timedelta
from typing import Callable

from ..config import BackoffPolicy, ReconcileTimerOpts
from ..models import App, ConditionType

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_DURATION_UNITS = {"ms": 0.001, "s": 1, "m": 60, "h": 3600}

# Keeps 2**n finite for very long failure streaks
_MAX_BACKOFF_EXPONENT = 32


def parse_duration(value: str) -> timedelta:
    """Parse a duration such as ``"30s"``, ``"5m"`` or ``"1h30m"``.

    Raises:
        ValueError: If the value is not a duration
    """
    text = value.strip()
    if not text:
        raise ValueError("empty duration")
    if text == "0":
        return timedelta(0)

    seconds = 0.0
    pos = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos != len(text):
        raise ValueError(f"invalid duration {value!r}")
    return timedelta(seconds=seconds)


class ReconcileTimer:
    """Decides when an App is due and how long until the next reconcile.

    Every delay this returns lies within
    ``[minimum_sync_period, default_sync_period]``.
    """

    def __init__(
        self,
        app: App,
        opts: ReconcileTimerOpts,
        rand: Callable[[float, float], float] = random.uniform,
    ):
        self.app = app
        self.opts = opts
        self.rand = rand

    def is_ready_at(self, now: datetime) -> bool:
        status = self.app.status

        if self.app.generation != status.observed_generation:
            return True
        # A previous reconcile was interrupted before completing
        if status.has_condition(ConditionType.RECONCILING):
            return True

        last = self.last_reconcile_time()
        if last is None:
            return True

        if self._is_failing():
            return now >= last + self.failure_sync_period()
        return now >= last + self.sync_period()

    def duration_until_ready(self, err: BaseException | None) -> timedelta:
        if err is not None or self._is_failing():
            return self.failure_sync_period()
        return self._clamp(self.sync_period() - self._jitter())

    def sync_period(self) -> timedelta:
        """Steady-state period: the App's own syncPeriod within the configured bounds."""
        period = self.opts.default_sync_period
        raw = self.app.spec.get("syncPeriod")
        if raw:
            try:
                requested = parse_duration(str(raw))
            except ValueError:
                requested = None
            if requested is not None:
                period = max(self.opts.minimum_sync_period, min(requested, self.opts.default_sync_period))
        return period

    def failure_sync_period(self) -> timedelta:
        """Retry period for the current failure streak."""
        failures = max(self.app.status.consecutive_reconcile_failures, 1)
        minimum = self.opts.minimum_sync_period.total_seconds()

        if self.opts.policy == BackoffPolicy.FIXED:
            seconds = minimum
        elif self.opts.policy == BackoffPolicy.LINEAR:
            seconds = minimum * failures
        else:
            seconds = minimum * (2.0 ** min(failures - 1, _MAX_BACKOFF_EXPONENT))
        # Capped in seconds; a long streak overflows timedelta
        seconds = min(seconds, self.sync_period().total_seconds())
        return self._clamp(timedelta(seconds=seconds))

    def last_reconcile_time(self) -> datetime | None:
        """Latest timestamp recorded by any stage."""
        status = self.app.status
        times = []
        for record in (status.fetch, status.template, status.deploy, status.inspect):
            if record is None:
                continue
            times.extend(t for t in (record.started_at, record.updated_at) if t is not None)
        return max(times) if times else None

    def _is_failing(self) -> bool:
        status = self.app.status
        return status.has_condition(ConditionType.RECONCILE_FAILED) or status.has_condition(
            ConditionType.DELETE_FAILED
        )

    def _jitter(self) -> timedelta:
        if not self.opts.jitter:
            return timedelta(0)
        return timedelta(seconds=self.rand(0.0, self.opts.jitter.total_seconds()))

    def _clamp(self, period: timedelta) -> timedelta:
        upper = self.sync_period()
        return max(self.opts.minimum_sync_period, min(period, upper))
