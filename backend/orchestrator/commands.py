"""
Side-effect command definitions for the coordinator (v2).

Rules:
- Commands are declarative requests for side effects.
- Commands are emitted by the reducer and executed by the runtime.
- No behavior, no async, no I/O, no clocks.
- Reducer logic remains pure and deterministic.
Invariant:
    - All concrete Command subclasses MUST be frozen dataclasses.
    - Commands are immutable value objects emitted by the reducer.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from errors.kinds import ErrorKind
from errors.records import ErrorRecord
from orchestrator.events import EventType
from orchestrator.profile import CapabilityProfile


# =============================================================================
# Command Type Enumeration
# =============================================================================

class CommandType(str, Enum):
    """
    Canonical command types emitted by the reducer.

    These are stable discriminants used for logging, replay,
    and runtime dispatch.
    """

    # Transport
    BEGIN_NEGOTIATION = "BEGIN_NEGOTIATION"
    CLOSE_TRANSPORT = "CLOSE_TRANSPORT"
    RESOLVE_NEGOTIATION = "RESOLVE_NEGOTIATION"

    # Interruption watchers
    WATCH_INTERRUPTIONS = "WATCH_INTERRUPTIONS"
    STOP_WATCHERS = "STOP_WATCHERS"

    # Media
    PAUSE_MEDIA = "PAUSE_MEDIA"
    RESUME_MEDIA = "RESUME_MEDIA"

    # Recovery
    REQUEST_RECOVERY = "REQUEST_RECOVERY"
    RESET_RECOVERY_BUDGET = "RESET_RECOVERY_BUDGET"
    CLEAR_RECOVERY = "CLEAR_RECOVERY"

    # Errors
    PUBLISH_ERROR = "PUBLISH_ERROR"
    REPORT_DROP = "REPORT_DROP"

    # Advisor
    EVALUATE_RESOURCES = "EVALUATE_RESOURCES"

    # Timers
    START_TIMER = "START_TIMER"
    CANCEL_TIMER = "CANCEL_TIMER"

    # Observability
    LOG_EVENT = "LOG_EVENT"


# =============================================================================
# Base Command
# =============================================================================

class Command:
    """
    Base command type.

    command_type is an explicit discriminant and must never be inferred
    from Python type identity.
    """

    command_type: CommandType


# =============================================================================
# Transport Commands
# =============================================================================

@dataclass(frozen=True)
class BeginNegotiation(Command):
    """
    Request to negotiate a new transport session.

    The runtime prepares media, exchanges the offer, applies the answer,
    and subscribes to phases tagged with run_id.
    """
    run_id: int
    profile: CapabilityProfile
    command_type: CommandType = CommandType.BEGIN_NEGOTIATION


@dataclass(frozen=True)
class CloseTransport(Command):
    """Request to tear down the transport belonging to run_id."""
    run_id: int
    command_type: CommandType = CommandType.CLOSE_TRANSPORT


@dataclass(frozen=True)
class ResolveNegotiation(Command):
    """
    Settle how negotiation run_id ended for whoever awaits it.

    error set: the run failed before the transport came up.
    superseded_by set: the run was replaced by a newer negotiation.
    """
    run_id: int
    error: ErrorRecord | None = None
    superseded_by: int | None = None
    command_type: CommandType = CommandType.RESOLVE_NEGOTIATION


# =============================================================================
# Watcher Commands
# =============================================================================

@dataclass(frozen=True)
class WatchInterruptions(Command):
    """Subscribe to system interruptions (no-op if already watching)."""
    command_type: CommandType = CommandType.WATCH_INTERRUPTIONS


@dataclass(frozen=True)
class StopWatchers(Command):
    """Cancel interruption and transport phase subscriptions."""
    command_type: CommandType = CommandType.STOP_WATCHERS


# =============================================================================
# Media Commands
# =============================================================================

@dataclass(frozen=True)
class PauseMedia(Command):
    """Pause local audio capture/playback."""
    command_type: CommandType = CommandType.PAUSE_MEDIA


@dataclass(frozen=True)
class ResumeMedia(Command):
    """Resume local audio capture/playback."""
    command_type: CommandType = CommandType.RESUME_MEDIA


# =============================================================================
# Recovery Commands
# =============================================================================

@dataclass(frozen=True)
class RequestRecovery(Command):
    """Hand a failure to the recovery engine."""
    error: ErrorRecord
    context: str
    command_type: CommandType = CommandType.REQUEST_RECOVERY


@dataclass(frozen=True)
class ResetRecoveryBudget(Command):
    """Return the listed kinds' attempt counters to zero."""
    kinds: tuple[ErrorKind, ...]
    command_type: CommandType = CommandType.RESET_RECOVERY_BUDGET


@dataclass(frozen=True)
class ClearRecovery(Command):
    """Empty the budget and cancel every pending recovery task."""
    command_type: CommandType = CommandType.CLEAR_RECOVERY


# =============================================================================
# Error Commands
# =============================================================================

@dataclass(frozen=True)
class PublishError(Command):
    """Deliver an ErrorRecord to error subscribers (exactly once)."""
    error: ErrorRecord
    command_type: CommandType = CommandType.PUBLISH_ERROR


@dataclass(frozen=True)
class ReportDrop(Command):
    """
    A live connection dropped.

    The runtime routes it to recovery only when reconnect-on-drop is
    configured.
    """
    error: ErrorRecord
    command_type: CommandType = CommandType.REPORT_DROP


# =============================================================================
# Advisor Commands
# =============================================================================

@dataclass(frozen=True)
class EvaluateResources(Command):
    """Sample battery, network and memory, then consult the advisor."""
    command_type: CommandType = CommandType.EVALUATE_RESOURCES


# =============================================================================
# Timer Commands
# =============================================================================

@dataclass(frozen=True)
class StartTimer(Command):
    """
    Request to start a named timer.

    On expiration, the runtime must inject the specified timeout event.
    Starting an already running timer replaces it.
    """
    timer_id: str
    duration_ms: int
    timeout_event_type: EventType
    command_type: CommandType = CommandType.START_TIMER


@dataclass(frozen=True)
class CancelTimer(Command):
    """Request to cancel a previously scheduled timer."""
    timer_id: str
    command_type: CommandType = CommandType.CANCEL_TIMER


# =============================================================================
# Observability Commands
# =============================================================================

@dataclass(frozen=True)
class LogEvent(Command):
    """Request to emit a structured observability event."""
    event: dict[str, Any]
    command_type: CommandType = CommandType.LOG_EVENT
