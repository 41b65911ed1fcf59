"""
errors.py - Guardrail error taxonomy.

Input validation failures are surfaced to the caller as 400 and are never
recorded as session errors. Upstream failures are not errors of the
service at all; they are evidence for the detector and never raised.
"""

from typing import Any


class GuardError(Exception):
    """Base exception for guardrail failures."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class InvalidTargetError(GuardError):
    """400 - proxy target URL missing or malformed."""

    pass