"""
action_signature.py - Fine-grained loop detection over an action history.

An attempt is fingerprinted by the full (action, error_code, remedy)
triple, so an agent retrying the same failing action with a *different*
remedy each time is not flagged, while repeating the *same* remedy is.

    Click(Login) + 500 + retry_with_backoff -> fp1
    Click(Login) + 500 + change_model       -> fp2 (different)
    Click(Login) + 403 + retry_with_backoff -> fp3 (different)
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

NO_ERROR = "no_error"
NO_REMEDY = "no_remedy"
FINGERPRINT_LENGTH = 16
DEFAULT_THRESHOLD = 3

REMEDY_SEQUENCE = (
    "standard_retry",
    "retry_with_backoff",
    "change_selector",
    "wait_for_element",
    "change_model",
    "manual_intervention",
)
FALLBACK_REMEDY = "manual_intervention"


@dataclass(frozen=True)
class ActionSignature:
    action: str
    error_code: str | None = None
    remedy_attempted: str | None = None


@dataclass
class ActionLoopResult:
    is_loop: bool
    fingerprint: str | None = None
    occurrences: int = 0
    remedy_chain: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_loop": self.is_loop,
            "fingerprint": self.fingerprint,
            "occurrences": self.occurrences,
            "remedy_chain": list(self.remedy_chain),
        }


def action_hash(signature: ActionSignature) -> str:
    """Stable, truncated SHA-256 fingerprint of one attempt."""
    components = [
        signature.action,
        signature.error_code or NO_ERROR,
        signature.remedy_attempted or NO_REMEDY,
    ]
    digest = hashlib.sha256("::".join(components).encode("utf-8")).hexdigest()
    return digest[:FINGERPRINT_LENGTH]


def detect_action_loop(
    history: Iterable[ActionSignature],
    threshold: int = DEFAULT_THRESHOLD,
) -> ActionLoopResult:
    """
    Report the first fingerprint (in first-seen order) seen `threshold` times.

    The remedy chain lists, in order, every remedy attempted under that
    fingerprint.
    """
    counts: dict[str, int] = {}
    remedies: dict[str, list[str]] = {}

    for signature in history:
        fp = action_hash(signature)
        counts[fp] = counts.get(fp, 0) + 1
        chain = remedies.setdefault(fp, [])
        if signature.remedy_attempted:
            chain.append(signature.remedy_attempted)

    for fp, count in counts.items():
        if count >= threshold:
            return ActionLoopResult(
                is_loop=True,
                fingerprint=fp,
                occurrences=count,
                remedy_chain=remedies[fp],
            )
    return ActionLoopResult(is_loop=False)


def suggest_next_remedy(remedy_history: Sequence[str]) -> str:
    """Next remedy after the last one tried; manual intervention when exhausted."""
    if not remedy_history:
        return FALLBACK_REMEDY
    last = remedy_history[-1]
    if last in REMEDY_SEQUENCE:
        index = REMEDY_SEQUENCE.index(last)
        if index < len(REMEDY_SEQUENCE) - 1:
            return REMEDY_SEQUENCE[index + 1]
    return FALLBACK_REMEDY


def build_remedy_history(entries: Iterable[Any]) -> dict[str, Any]:
    """
    Summarize the remedy attempts in an action log.

    `entries` are objects with step, status, error_code and
    remedy_attempted attributes (ActionLog rows).
    """
    attempts = [
        {
            "step": e.step,
            "remedy": e.remedy_attempted,
            "outcome": "success" if e.status == "success" else "failure",
            "error_code": e.error_code,
        }
        for e in entries
        if e.remedy_attempted
    ]
    return {"attempts": attempts, "total_attempts": len(attempts)}
