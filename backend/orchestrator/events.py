"""
Unified event definitions for the coordinator reducer (v1).

Rules:
- Events describe facts that have occurred.
- Events carry data only (no behavior).
- All reducer decisions are based on these events.
- No clocks, no timers, no async, no side effects.

Events produced on behalf of a specific negotiation carry its run_id for
stale gating.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from errors.kinds import ErrorKind
from errors.records import ErrorRecord
from orchestrator.enums.phase import TransportPhase
from orchestrator.profile import CapabilityProfile
from orchestrator.signals import AudioDevice, InterruptionSignal, OptimizationSuggestion


# =============================================================================
# Event Type Enumeration
# =============================================================================

class EventType(str, Enum):
    """
    Canonical event types understood by the reducer.

    Every (state, event_type) pair must be explicitly handled
    or explicitly ignored by the reducer.
    """

    # ------------------------------------------------------------------
    # User control
    # ------------------------------------------------------------------
    START_REQUESTED = "START_REQUESTED"
    STOP_REQUESTED = "STOP_REQUESTED"
    USER_RETRY = "USER_RETRY"

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------
    TRANSPORT_PHASE = "TRANSPORT_PHASE"
    NEGOTIATION_COMPLETED = "NEGOTIATION_COMPLETED"
    NEGOTIATION_FAILED = "NEGOTIATION_FAILED"

    # ------------------------------------------------------------------
    # System interruptions
    # ------------------------------------------------------------------
    INTERRUPTION = "INTERRUPTION"

    # ------------------------------------------------------------------
    # Recovery engine
    # ------------------------------------------------------------------
    RETRY_READY = "RETRY_READY"
    DOWNGRADE_REQUESTED = "DOWNGRADE_REQUESTED"
    RESUME_REQUESTED = "RESUME_REQUESTED"
    DEVICE_SWITCHED = "DEVICE_SWITCHED"
    DEVICE_SWITCH_FAILED = "DEVICE_SWITCH_FAILED"
    RECOVERY_DECLINED = "RECOVERY_DECLINED"

    # ------------------------------------------------------------------
    # Optimization advisor
    # ------------------------------------------------------------------
    ADVISOR_TICK = "ADVISOR_TICK"
    SUGGESTION_READY = "SUGGESTION_READY"
    SUGGESTION_APPLIED = "SUGGESTION_APPLIED"
    SUGGESTION_DISMISSED = "SUGGESTION_DISMISSED"

    # ------------------------------------------------------------------
    # Collaborator-reported errors
    # ------------------------------------------------------------------
    ERROR_REPORTED = "ERROR_REPORTED"
    ERROR_CLEARED = "ERROR_CLEARED"


# =============================================================================
# Base Event
# =============================================================================

@dataclass(frozen=True)
class Event:
    """
    Base event type.

    All events must specify:
    - event_type: discriminant
    - ts_ms: timestamp provided by the source (or fake in tests)
    """

    event_type: EventType
    ts_ms: int


@dataclass(frozen=True)
class RunScopedEvent(Event):
    """
    Base class for events produced by one negotiation run.

    The reducer MUST ignore events whose run_id does not match the
    currently active run.
    """

    run_id: int


# =============================================================================
# User Control Events
# =============================================================================

@dataclass(frozen=True)
class StartRequested(Event):
    """User asked to start a session with the given profile."""
    profile: CapabilityProfile


@dataclass(frozen=True)
class StopRequested(Event):
    """User asked to stop. Always honored."""


@dataclass(frozen=True)
class UserRetry(Event):
    """User manually clicked retry on the current error."""


# =============================================================================
# Transport Events
# =============================================================================

@dataclass(frozen=True)
class TransportPhaseChanged(RunScopedEvent):
    """Transport reported a new connectivity phase."""
    phase: TransportPhase


@dataclass(frozen=True)
class NegotiationCompleted(RunScopedEvent):
    """Offer/answer exchange finished and the remote descriptor is applied."""


@dataclass(frozen=True)
class NegotiationFailed(RunScopedEvent):
    """
    Negotiation raised before the transport reported a phase.

    Treated identically to phase FAILED.
    """
    error: ErrorRecord


# =============================================================================
# Interruption Events
# =============================================================================

@dataclass(frozen=True)
class InterruptionReceived(Event):
    """A system interruption began or ended."""
    signal: InterruptionSignal


# =============================================================================
# Recovery Engine Events
# =============================================================================

@dataclass(frozen=True)
class RetryReady(RunScopedEvent):
    """
    Backoff elapsed for an automatic retry.

    run_id is the run that failed; a newer run makes this stale.
    """
    kind: ErrorKind


@dataclass(frozen=True)
class DowngradeRequested(Event):
    """Capability fallback chose a lower profile."""
    profile: CapabilityProfile
    reason: ErrorKind


@dataclass(frozen=True)
class ResumeRequested(Event):
    """An interruption ended and media may resume."""


@dataclass(frozen=True)
class DeviceSwitched(Event):
    """Audio routing moved to another device."""
    device: AudioDevice


@dataclass(frozen=True)
class DeviceSwitchFailed(Event):
    """No usable alternative device, or selecting it failed."""
    error: ErrorRecord


@dataclass(frozen=True)
class RecoveryDeclined(Event):
    """
    The engine did not initiate any automatic action.

    reason is one of: "not_retryable", "budget_exhausted",
    "no_lower_tier", "no_audio_collaborator".
    """
    error: ErrorRecord
    reason: str


# =============================================================================
# Optimization Advisor Events
# =============================================================================

@dataclass(frozen=True)
class AdvisorTick(Event):
    """Periodic advisor timer fired."""


@dataclass(frozen=True)
class SuggestionReady(Event):
    """Advisor produced a suggestion from freshly sampled resources."""
    suggestion: OptimizationSuggestion


@dataclass(frozen=True)
class SuggestionApplied(Event):
    """User accepted a suggested profile."""
    profile: CapabilityProfile


@dataclass(frozen=True)
class SuggestionDismissed(Event):
    """User dismissed the pending suggestion."""


# =============================================================================
# Error Reporting Events
# =============================================================================

@dataclass(frozen=True)
class ErrorReported(Event):
    """A collaborator reported a failure during the session."""
    error: ErrorRecord
    context: str = "collaborator"


@dataclass(frozen=True)
class ErrorCleared(Event):
    """User acknowledged the current error."""
