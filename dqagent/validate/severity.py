"""Threshold evaluation for the warn, stop and notify states of a step."""

from __future__ import annotations

from dataclasses import dataclass

from dqagent.validate.models import Thresholds, is_fraction


@dataclass(frozen=True)
class SeverityState:
    warn: bool | None = None
    stop: bool | None = None
    notify: bool | None = None


def limit_exceeded(n: int, n_passed: int, limit: float | None) -> bool | None:
    """Return None for an unset limit, otherwise whether the failures reach it."""
    if limit is None:
        return None
    n_failed = n - n_passed
    if is_fraction(limit):
        if n == 0:
            return False
        return n_failed / n >= limit
    return n_failed >= limit


def evaluate(n: int, n_passed: int, thresholds: Thresholds) -> SeverityState:
    return SeverityState(
        warn=limit_exceeded(n, n_passed, thresholds.warn_count),
        stop=limit_exceeded(n, n_passed, thresholds.stop_count),
        notify=limit_exceeded(n, n_passed, thresholds.notify_count),
    )
