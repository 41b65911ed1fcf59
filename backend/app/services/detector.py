"""
detector.py - Failure Detector.

Decides whether a session's recent evidence crosses the loop threshold.

STRUCTURAL PURITY:
- evaluate_*() are pure functions over evidence already fetched
- No database, network or clock access
- Same evidence + same config -> same decision

Two independent triggers share one threshold/window:
1. Client-error loop: identical message text repeated within the window
   ending at the *reported event's* timestamp (not wall-clock now), so
   replayed or backfilled reports are judged in their own time frame.
2. Upstream-failure loop: forwarded calls answered with status >= 400
   within the window ending now (the caller fetches them pre-windowed).
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol

DEFAULT_THRESHOLD = 3
DEFAULT_WINDOW_SECONDS = 60
DEFAULT_RECENT_ERROR_LIMIT = 5


class ErrorEvidence(Protocol):
    message: str
    timestamp: datetime


@dataclass(frozen=True)
class DetectorConfig:
    threshold: int = DEFAULT_THRESHOLD
    window: timedelta = timedelta(seconds=DEFAULT_WINDOW_SECONDS)
    recent_error_limit: int = DEFAULT_RECENT_ERROR_LIMIT

    @classmethod
    def from_settings(cls, settings) -> DetectorConfig:
        return cls(
            threshold=settings.LOOP_THRESHOLD,
            window=timedelta(seconds=settings.LOOP_WINDOW_SECONDS),
            recent_error_limit=settings.RECENT_ERROR_LIMIT,
        )

    @property
    def window_label(self) -> str:
        seconds = int(self.window.total_seconds())
        if seconds % 60 == 0:
            return f"{seconds // 60} min"
        return f"{seconds}s"


@dataclass(frozen=True)
class LoopDecision:
    """Outcome of one detector evaluation."""

    is_loop: bool
    count: int
    reason: str | None = None


class FailureDetector:
    def __init__(self, config: DetectorConfig | None = None):
        self.config = config or DetectorConfig()

    def count_identical_in_window(
        self,
        message: str,
        reported_at: datetime,
        recent_errors: Sequence[ErrorEvidence],
    ) -> int:
        window_start = reported_at - self.config.window
        return sum(
            1
            for e in recent_errors
            if e.message == message and e.timestamp >= window_start
        )

    def evaluate_client_error(
        self,
        message: str,
        reported_at: datetime,
        recent_errors: Sequence[ErrorEvidence],
    ) -> LoopDecision:
        """
        Judge a client error report.

        Args:
            message: Reported error text (compared verbatim)
            reported_at: Timestamp carried by the report; anchors the window
            recent_errors: The session's latest errors, including this report

        Returns:
            LoopDecision with a human-readable reason when it is a loop
        """
        count = self.count_identical_in_window(message, reported_at, recent_errors)
        if count < self.config.threshold:
            return LoopDecision(is_loop=False, count=count)
        return LoopDecision(
            is_loop=True,
            count=count,
            reason=f'Loop detected: "{message}" repeated {count}x in {self.config.window_label}',
        )

    def evaluate_upstream_failures(
        self,
        failure_count: int,
        last_status: int | None,
    ) -> LoopDecision:
        """
        Judge the upstream failures observed for a session.

        `last_status` is the status of the failure that triggered the check,
        or None when upstream could not be reached at all.
        """
        if failure_count < self.config.threshold:
            return LoopDecision(is_loop=False, count=failure_count)

        if last_status is None:
            reason = (
                f"Proxy auto-block: {failure_count} failures in "
                f"{self.config.window_label} (network error)"
            )
        else:
            reason = (
                f"Proxy auto-block: {failure_count} upstream failures in "
                f"{self.config.window_label} (last: HTTP {last_status})"
            )
        return LoopDecision(is_loop=True, count=failure_count, reason=reason)
