"""
Retry budget helpers (v1).

Purpose:
- Bound automatic recovery per error kind (no retry storms)
- Keep the decision deterministic and testable
- Give the recovery engine one place to ask "may I try again?"

This module contains NO timers, NO async, NO side effects beyond the
budget's own bookkeeping. Time is always passed in by the caller.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from errors.kinds import ErrorKind

from constants import (
    MAX_RECOVERY_ATTEMPTS,
    RECOVERY_RETRY_DELAYS_MS,
    RECOVERY_WINDOW_MS,
)


# =============================================================================
# Retry State
# =============================================================================

@dataclass(frozen=True)
class RecoveryAttempt:
    """
    Immutable attempt counter for one error kind.

    Semantics:
    - attempt_number == N means N automatic attempts were made inside the
      window that started at window_start_ms.
    - attempt_number never exceeds MAX_RECOVERY_ATTEMPTS; attempts beyond
      the ceiling are refused, not counted.
    """
    error_kind: ErrorKind
    attempt_number: int
    window_start_ms: int


@dataclass(frozen=True)
class RetryVerdict:
    """
    Outcome of asking the budget for one more attempt.

    allowed:
        True if the caller may start an automatic attempt now.
    attempt:
        1-based number of the attempt being granted (or the pinned count
        when refused).
    remaining:
        Attempts left in the current window after this one.
    exhausted:
        True when no further automatic attempt will be granted in this
        window. The final granted attempt reports exhausted=True.
    """
    allowed: bool
    attempt: int
    remaining: int
    exhausted: bool


def next_attempt(current: RecoveryAttempt) -> RecoveryAttempt:
    """Return a new RecoveryAttempt with attempt_number incremented by 1."""
    return RecoveryAttempt(
        error_kind=current.error_kind,
        attempt_number=current.attempt_number + 1,
        window_start_ms=current.window_start_ms,
    )


def fresh_attempt(kind: ErrorKind, now_ms: int) -> RecoveryAttempt:
    """Returns a zeroed counter whose window starts now."""
    return RecoveryAttempt(error_kind=kind, attempt_number=0, window_start_ms=now_ms)


# =============================================================================
# Policy
# =============================================================================

def max_attempts(kind: ErrorKind) -> int:
    """
    Maximum automatic attempts per window.

    Uniform across kinds; kinds that are never retried are filtered out
    earlier by the recovery policy.
    """
    del kind
    return MAX_RECOVERY_ATTEMPTS


def window_expired(attempt: RecoveryAttempt, now_ms: int) -> bool:
    """True if the rolling window for this entry has elapsed."""
    return now_ms - attempt.window_start_ms >= RECOVERY_WINDOW_MS


def should_retry(*, attempt: RecoveryAttempt) -> bool:
    """
    Returns True if another attempt is allowed.

    attempt = number of attempts already performed in the window
    """
    return attempt.attempt_number < max_attempts(attempt.error_kind)


# =============================================================================
# Delay Calculation
# =============================================================================

def get_retry_delay_ms(*, attempt_number: int) -> int:
    """
    Returns delay before automatic attempt N (1-based).

    Exponential-ish backoff, clamped to the last slot.
    """
    idx = min(max(attempt_number - 1, 0), len(RECOVERY_RETRY_DELAYS_MS) - 1)
    return RECOVERY_RETRY_DELAYS_MS[idx]


# =============================================================================
# Bounded per-kind budget
# =============================================================================

class RetryBudget:
    """
    Per-ErrorKind sliding-window counter.

    Bounded by construction: at most one entry per ErrorKind. Entries are
    deleted on success, on explicit reset, and when their window elapses.

    Mutated only from the runtime's serialized context.
    """

    def __init__(self) -> None:
        self._entries: dict[ErrorKind, RecoveryAttempt] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def attempts(self, kind: ErrorKind) -> int:
        """Attempts recorded for kind in its current window (0 if none)."""
        entry = self._entries.get(kind)
        return entry.attempt_number if entry is not None else 0

    def entry(self, kind: ErrorKind) -> RecoveryAttempt | None:
        return self._entries.get(kind)

    def consume(self, kind: ErrorKind, *, now_ms: int) -> RetryVerdict:
        """
        Try to take one attempt slot for kind.

        Refused requests do not advance the counter.
        """
        entry = self._entries.get(kind)
        if entry is None or window_expired(entry, now_ms):
            entry = fresh_attempt(kind, now_ms)

        ceiling = max_attempts(kind)

        if not should_retry(attempt=entry):
            self._entries[kind] = entry
            return RetryVerdict(
                allowed=False,
                attempt=entry.attempt_number,
                remaining=0,
                exhausted=True,
            )

        entry = next_attempt(entry)
        self._entries[kind] = entry
        remaining = ceiling - entry.attempt_number
        return RetryVerdict(
            allowed=True,
            attempt=entry.attempt_number,
            remaining=remaining,
            exhausted=remaining == 0,
        )

    def record_success(self, kind: ErrorKind) -> None:
        """An operation for kind succeeded: its counter returns to 0."""
        self._entries.pop(kind, None)

    def reset(self, kinds: Iterable[ErrorKind] | None = None) -> None:
        """Delete entries for kinds, or all entries when kinds is None."""
        if kinds is None:
            self._entries.clear()
            return
        for kind in kinds:
            self._entries.pop(kind, None)

    def snapshot(self) -> dict[str, int]:
        """Attempt counts keyed by kind value (observability only)."""
        return {k.value: v.attempt_number for k, v in self._entries.items()}
