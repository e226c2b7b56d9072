"""
Recovery action selection.

(error) -> RecoveryAction

Rules:
- Pure and deterministic: depends only on the ErrorRecord.
- Evaluated in fixed priority order; first match wins:
    1. non-retryable          -> NONE (guided steps only)
    2. capability fallback    -> FALLBACK (no budget slot)
    3. audio device           -> DEVICE_SWITCH (budgeted)
    4. transient              -> RETRY (budgeted)
    5. interruption ended     -> RESUME (never budgeted)
"""

from __future__ import annotations

from enum import Enum

from errors.kinds import (
    CallInterruptionDetail,
    CallState,
    ErrorKind,
    PermissionDetail,
    PermissionType,
)
from errors.records import ErrorRecord


class RecoveryAction(str, Enum):
    """Automatic response the engine may take for a classified failure."""

    NONE = "NONE"
    FALLBACK = "FALLBACK"
    DEVICE_SWITCH = "DEVICE_SWITCH"
    RETRY = "RETRY"
    RESUME = "RESUME"


_FALLBACK_KINDS: frozenset[ErrorKind] = frozenset({
    ErrorKind.CAMERA,
    ErrorKind.SCREEN_CAPTURE,
})

_FALLBACK_PERMISSIONS: frozenset[PermissionType] = frozenset({
    PermissionType.CAMERA,
    PermissionType.SCREEN_CAPTURE,
})

_TRANSIENT_KINDS: frozenset[ErrorKind] = frozenset({
    ErrorKind.NETWORK,
    ErrorKind.TRANSPORT_NEGOTIATION,
    ErrorKind.SERVICE,
    ErrorKind.UPSTREAM_API,
})

# Kinds whose budget resets when a negotiation reaches CONNECTED.
CONNECTION_KINDS: tuple[ErrorKind, ...] = (
    ErrorKind.TRANSPORT_NEGOTIATION,
    ErrorKind.NETWORK,
    ErrorKind.UPSTREAM_API,
    ErrorKind.SERVICE,
)


def select_action(error: ErrorRecord) -> RecoveryAction:
    """Select the automatic recovery action for an error."""
    if not error.retryable:
        return RecoveryAction.NONE

    if error.kind in _FALLBACK_KINDS:
        return RecoveryAction.FALLBACK

    if (
        isinstance(error.detail, PermissionDetail)
        and error.detail.permission in _FALLBACK_PERMISSIONS
    ):
        return RecoveryAction.FALLBACK

    if error.kind is ErrorKind.AUDIO_DEVICE:
        return RecoveryAction.DEVICE_SWITCH

    if error.kind in _TRANSIENT_KINDS:
        return RecoveryAction.RETRY

    if (
        isinstance(error.detail, CallInterruptionDetail)
        and error.detail.call_state is CallState.ENDED
    ):
        return RecoveryAction.RESUME

    return RecoveryAction.NONE


def is_budgeted(action: RecoveryAction) -> bool:
    """True if the action consumes a retry-budget slot."""
    return action in (RecoveryAction.DEVICE_SWITCH, RecoveryAction.RETRY)
