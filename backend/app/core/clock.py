"""
clock.py - Time helpers shared by the gate, detector and event log.

All persisted timestamps are naive UTC. Services take a `Clock` so that
cooldowns and detection windows can be driven deterministically.
"""

from collections.abc import Callable
from datetime import datetime, timezone

UTC = timezone.utc

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Current time as naive UTC."""
    return datetime.now(UTC).replace(tzinfo=None)


def to_naive_utc(dt: datetime) -> datetime:
    """Normalize an aware datetime to naive UTC; naive values are assumed UTC."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(UTC).replace(tzinfo=None)


def parse_timestamp(value: str) -> datetime:
    """
    Parse an ISO 8601 timestamp reported by a client.

    Accepts a trailing "Z". Timestamps without an offset are taken as UTC.

    Raises:
        ValueError: If `value` is not ISO 8601.
    """
    return to_naive_utc(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))


def isoformat(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    return to_naive_utc(dt).isoformat(timespec="milliseconds") + "Z"
