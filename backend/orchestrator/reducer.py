# pylint: disable=too-many-return-statements
"""
Pure coordinator reducer.

(state, event) -> (new_state, commands)

Rules:
- Pure: no side effects, no IO, no clocks.
- Deterministic: output depends only on inputs.
- Total: every (state, event) pair is handled or explicitly ignored (logged).
"""

# Reducer owns timer semantics; runtime must not cancel timers implicitly.

from __future__ import annotations

from dataclasses import replace
from typing import Any

from errors.kinds import (
    CallInterruptionDetail,
    CallState,
    ErrorKind,
    NetworkDetail,
    TransportDetail,
    TransportErrorCause,
)
from errors.records import ErrorRecord, make_error_record
from orchestrator.commands import (
    BeginNegotiation,
    CancelTimer,
    ClearRecovery,
    CloseTransport,
    Command,
    EvaluateResources,
    LogEvent,
    PauseMedia,
    PublishError,
    ReportDrop,
    RequestRecovery,
    ResetRecoveryBudget,
    ResolveNegotiation,
    ResumeMedia,
    StartTimer,
    StopWatchers,
    WatchInterruptions,
)
from orchestrator.enums.phase import TransportPhase
from orchestrator.enums.signals import InterruptionType
from orchestrator.enums.state import ConnectionState
from orchestrator.events import (
    AdvisorTick,
    DeviceSwitched,
    DeviceSwitchFailed,
    DowngradeRequested,
    ErrorCleared,
    ErrorReported,
    Event,
    EventType,
    InterruptionReceived,
    NegotiationCompleted,
    NegotiationFailed,
    RecoveryDeclined,
    ResumeRequested,
    RetryReady,
    StartRequested,
    StopRequested,
    SuggestionApplied,
    SuggestionDismissed,
    SuggestionReady,
    TransportPhaseChanged,
    UserRetry,
)
from orchestrator.profile import is_downgrade_or_equal
from orchestrator.state_dataclass import CoordinatorState
from recovery.policy import CONNECTION_KINDS


# =============================================================================
# Timer IDs
# =============================================================================

TIMER_ADVISOR = "advisor_tick"


# =============================================================================
# State groups
# =============================================================================

_LIVE_STATES: frozenset[ConnectionState] = frozenset({
    ConnectionState.CONNECTING,
    ConnectionState.CONNECTED,
    ConnectionState.RECONNECTING,
})

_STARTABLE_STATES: frozenset[ConnectionState] = frozenset({
    ConnectionState.DISCONNECTED,
    ConnectionState.FAILED,
})

_UP_PHASES: frozenset[TransportPhase] = frozenset({
    TransportPhase.CONNECTED,
    TransportPhase.COMPLETED,
})

_DOWN_PHASES: frozenset[TransportPhase] = frozenset({
    TransportPhase.DISCONNECTED,
    TransportPhase.CLOSED,
})

_PROGRESS_PHASES: frozenset[TransportPhase] = frozenset({
    TransportPhase.NEW,
    TransportPhase.CHECKING,
})

_CALL_INTERRUPTIONS: frozenset[InterruptionType] = frozenset({
    InterruptionType.PHONE_CALL,
    InterruptionType.SYSTEM_CALL,
})


# =============================================================================
# Small helpers
# =============================================================================

def _log(
    state: CoordinatorState,
    event: Event,
    decision: str,
    details: dict[str, Any] | None = None,
) -> LogEvent:
    return LogEvent(
        event={
            "ts_ms": event.ts_ms,
            "state": state.connection.value,
            "event_type": event.event_type.value,
            "decision": decision,
            "run_id": state.run_id,
            "paused": state.paused,
            "video_mode": state.profile.video_mode.value,
            "details": details or {},
        }
    )


def _logs_last(commands: tuple[Command, ...]) -> tuple[Command, ...]:
    non_logs: list[Command] = []
    logs: list[Command] = []
    state_change_logs: list[Command] = []

    for command in commands:
        if isinstance(command, LogEvent):
            if command.event.get("decision") == "state_changed":
                state_change_logs.append(command)
            else:
                logs.append(command)
        else:
            non_logs.append(command)

    return tuple(non_logs + logs + state_change_logs)


def _ignore(
    state: CoordinatorState, event: Event, reason: str
) -> tuple[CoordinatorState, tuple[Command, ...]]:
    return state, (_log(state, event, "ignore", {"reason": reason}),)


def _transition(
    state: CoordinatorState,
    new_state: CoordinatorState,
    event: Event,
    source: str,
    commands: tuple[Command, ...],
) -> tuple[CoordinatorState, tuple[Command, ...]]:
    """Attach a state_changed log when the connection state moved."""
    if new_state.connection is not state.connection:
        commands = commands + (
            _log(
                new_state,
                event,
                "state_changed",
                {
                    "from_state": state.connection.value,
                    "to_state": new_state.connection.value,
                    "source": source,
                },
            ),
        )
    return new_state, _logs_last(commands)


def _is_stale(state: CoordinatorState, run_id: int) -> bool:
    return run_id != state.run_id


def _advisor_timer(state: CoordinatorState) -> StartTimer:
    return StartTimer(
        timer_id=TIMER_ADVISOR,
        duration_ms=state.advisor_interval_ms,
        timeout_event_type=EventType.ADVISOR_TICK,
    )


def _transport_error(event: Event, cause: TransportErrorCause, details: str) -> ErrorRecord:
    return make_error_record(
        TransportDetail(cause=cause, details=details),
        ts_ms=event.ts_ms,
    )


# =============================================================================
# Shared transitions
# =============================================================================

def _renegotiate(
    state: CoordinatorState,
    event: Event,
    source: str,
    **changes: Any,
) -> tuple[CoordinatorState, tuple[Command, ...]]:
    """
    Start a fresh negotiation under a new run_id.

    The previous run's transport is closed; its late phase events
    become stale.
    """
    new_state = replace(
        state,
        connection=ConnectionState.CONNECTING,
        run_id=state.run_id + 1,
        session_active=True,
        **changes,
    )
    commands: tuple[Command, ...] = ()
    if state.connection is ConnectionState.CONNECTED:
        commands += (CancelTimer(timer_id=TIMER_ADVISOR),)
    if state.connection is ConnectionState.CONNECTING:
        commands += (
            ResolveNegotiation(run_id=state.run_id, superseded_by=new_state.run_id),
        )
    commands += (
        CloseTransport(run_id=state.run_id),
        BeginNegotiation(run_id=new_state.run_id, profile=new_state.profile),
        _log(
            new_state,
            event,
            source,
            {"previous_run_id": state.run_id, "profile": new_state.profile.to_dict()},
        ),
    )
    return _transition(state, new_state, event, source, commands)


def _enter_connected(
    state: CoordinatorState, event: Event, source: str
) -> tuple[CoordinatorState, tuple[Command, ...]]:
    error = state.current_error
    resolved = error is not None and error.kind in CONNECTION_KINDS
    new_state = replace(
        state,
        connection=ConnectionState.CONNECTED,
        current_error=None if resolved else error,
        recovery_exhausted=False if resolved else state.recovery_exhausted,
    )
    return _transition(
        state,
        new_state,
        event,
        source,
        (
            ResetRecoveryBudget(kinds=CONNECTION_KINDS),
            _advisor_timer(new_state),
            _log(new_state, event, "connected", {"resolved_error": resolved}),
        ),
    )


def _enter_failed(
    state: CoordinatorState,
    event: Event,
    error: ErrorRecord,
    source: str,
) -> tuple[CoordinatorState, tuple[Command, ...]]:
    new_state = replace(
        state,
        connection=ConnectionState.FAILED,
        current_error=error,
        paused=False,
    )
    commands: tuple[Command, ...] = ()
    if state.connection in (ConnectionState.CONNECTED, ConnectionState.RECONNECTING):
        commands += (CancelTimer(timer_id=TIMER_ADVISOR),)
    if state.connection is ConnectionState.CONNECTING:
        commands += (ResolveNegotiation(run_id=state.run_id, error=error),)
    if state.paused:
        commands += (ResumeMedia(),)
    commands += (
        PublishError(error=error),
        RequestRecovery(error=error, context=source),
        _log(
            new_state,
            event,
            "enter_failed",
            {"kind": error.kind.value, "error_code": error.error_code},
        ),
    )
    return _transition(state, new_state, event, source, commands)


def _enter_dropped(
    state: CoordinatorState, event: Event, phase: TransportPhase
) -> tuple[CoordinatorState, tuple[Command, ...]]:
    """A live connection went away without an explicit stop."""
    error = make_error_record(
        NetworkDetail(details=f"transport phase {phase.value}"),
        ts_ms=event.ts_ms,
    )
    new_state = replace(
        state,
        connection=ConnectionState.DISCONNECTED,
        paused=False,
        current_error=error,
    )
    commands: tuple[Command, ...] = ()
    if state.connection is ConnectionState.CONNECTED:
        commands += (CancelTimer(timer_id=TIMER_ADVISOR),)
    if state.paused:
        commands += (ResumeMedia(),)
    commands += (
        PublishError(error=error),
        ReportDrop(error=error),
        _log(new_state, event, "connection_dropped", {"phase": phase.value}),
    )
    return _transition(state, new_state, event, "transport_drop", commands)


# =============================================================================
# Event handlers
# =============================================================================

def _on_start(
    state: CoordinatorState, event: StartRequested
) -> tuple[CoordinatorState, tuple[Command, ...]]:
    if state.connection not in _STARTABLE_STATES:
        return _ignore(state, event, "already_active")

    new_state = replace(
        state,
        connection=ConnectionState.CONNECTING,
        run_id=state.run_id + 1,
        session_active=True,
        paused=False,
        profile=event.profile,
        current_error=None,
        recovery_exhausted=False,
        suggestion=None,
    )
    commands: tuple[Command, ...] = ()
    if state.session_active:
        commands += (CloseTransport(run_id=state.run_id), ClearRecovery())
    commands += (
        BeginNegotiation(run_id=new_state.run_id, profile=new_state.profile),
        WatchInterruptions(),
        _log(new_state, event, "start", {"profile": event.profile.to_dict()}),
    )
    return _transition(state, new_state, event, "start_requested", commands)


def _on_stop(
    state: CoordinatorState, event: StopRequested
) -> tuple[CoordinatorState, tuple[Command, ...]]:
    new_state = replace(
        state,
        connection=ConnectionState.DISCONNECTED,
        session_active=False,
        paused=False,
        current_error=None,
        recovery_exhausted=False,
        suggestion=None,
    )
    if new_state == state:
        return _ignore(state, event, "already_stopped")

    commands: tuple[Command, ...] = (
        CancelTimer(timer_id=TIMER_ADVISOR),
        CloseTransport(run_id=state.run_id),
        StopWatchers(),
        ClearRecovery(),
    )
    if state.paused:
        commands += (ResumeMedia(),)
    commands += (
        _log(new_state, event, "stop", {"profile_retained": state.profile.to_dict()}),
    )
    return _transition(state, new_state, event, "stop_requested", commands)


def _on_phase(
    state: CoordinatorState, event: TransportPhaseChanged
) -> tuple[CoordinatorState, tuple[Command, ...]]:
    if state.connection is ConnectionState.DISCONNECTED:
        return _ignore(state, event, "phase_while_disconnected")
    if _is_stale(state, event.run_id):
        return _ignore(state, event, "stale_run")

    phase = event.phase

    if state.connection is ConnectionState.CONNECTING:
        if phase in _PROGRESS_PHASES:
            return state, (_log(state, event, "phase_progress", {"phase": phase.value}),)
        if phase in _UP_PHASES:
            return _enter_connected(state, event, "transport_connected")
        if phase is TransportPhase.FAILED or phase is TransportPhase.CLOSED:
            return _enter_failed(
                state,
                event,
                _transport_error(
                    event,
                    TransportErrorCause.ICE_CONNECTION_FAILED,
                    f"transport phase {phase.value} during negotiation",
                ),
                "transport_failed",
            )
        return _ignore(state, event, "phase_not_applicable")

    if state.connection is ConnectionState.CONNECTED:
        if phase in _UP_PHASES:
            return state, (_log(state, event, "phase_progress", {"phase": phase.value}),)
        if phase in _DOWN_PHASES:
            return _enter_dropped(state, event, phase)
        if phase is TransportPhase.FAILED:
            return _enter_failed(
                state,
                event,
                _transport_error(
                    event,
                    TransportErrorCause.PEER_CONNECTION_FAILED,
                    "transport failed while connected",
                ),
                "transport_failed",
            )
        return _ignore(state, event, "phase_not_applicable")

    if state.connection is ConnectionState.RECONNECTING:
        if phase in _UP_PHASES:
            return _enter_connected(state, event, "transport_reconnected")
        if phase is TransportPhase.CLOSED:
            return _enter_dropped(state, event, phase)
        if phase is TransportPhase.FAILED:
            return _enter_failed(
                state,
                event,
                _transport_error(
                    event,
                    TransportErrorCause.ICE_CONNECTION_FAILED,
                    "transport failed while reconnecting",
                ),
                "transport_failed",
            )
        return _ignore(state, event, "phase_not_applicable")

    return _ignore(state, event, "phase_while_failed")


def _on_negotiation_failed(
    state: CoordinatorState, event: NegotiationFailed
) -> tuple[CoordinatorState, tuple[Command, ...]]:
    if _is_stale(state, event.run_id):
        return _ignore(state, event, "stale_run")
    if state.connection not in _LIVE_STATES:
        return _ignore(state, event, "not_negotiating")
    return _enter_failed(state, event, event.error, "negotiation_failed")


def _on_interruption(
    state: CoordinatorState, event: InterruptionReceived
) -> tuple[CoordinatorState, tuple[Command, ...]]:
    signal = event.signal
    details = {
        "type": signal.type.value,
        "should_pause": signal.should_pause,
        "can_resume": signal.can_resume,
    }

    if signal.type is InterruptionType.LOW_POWER:
        if state.connection is not ConnectionState.CONNECTED:
            return _ignore(state, event, "not_connected")
        return state, (
            EvaluateResources(),
            _log(state, event, "low_power_evaluate", details),
        )

    if signal.type is InterruptionType.NETWORK_LOSS:
        if signal.should_pause and state.connection is ConnectionState.CONNECTED:
            new_state = replace(state, connection=ConnectionState.RECONNECTING)
            return _transition(
                state,
                new_state,
                event,
                "network_loss",
                (
                    CancelTimer(timer_id=TIMER_ADVISOR),
                    _log(new_state, event, "network_loss", details),
                ),
            )
        if not signal.should_pause and state.connection is ConnectionState.RECONNECTING:
            return state, (_log(state, event, "network_restored_awaiting_transport", details),)
        return _ignore(state, event, "network_signal_not_applicable")

    # Phone / system call
    if signal.should_pause:
        if state.connection is not ConnectionState.CONNECTED:
            return _ignore(state, event, "not_connected")
        if state.paused:
            return _ignore(state, event, "already_paused")
        notice = make_error_record(
            CallInterruptionDetail(call_state=CallState.INCOMING, details=signal.type.value),
            ts_ms=event.ts_ms,
        )
        new_state = replace(state, paused=True)
        return new_state, (
            PauseMedia(),
            PublishError(error=notice),
            _log(new_state, event, "interruption_paused", details),
        )

    if not state.paused:
        return _ignore(state, event, "not_paused")
    if not signal.can_resume:
        return _ignore(state, event, "cannot_resume")

    ended = make_error_record(
        CallInterruptionDetail(call_state=CallState.ENDED, details=signal.type.value),
        ts_ms=event.ts_ms,
    )
    return state, (
        RequestRecovery(error=ended, context="interruption_ended"),
        _log(state, event, "interruption_ended", details),
    )


def _on_resume(
    state: CoordinatorState, event: ResumeRequested
) -> tuple[CoordinatorState, tuple[Command, ...]]:
    if not state.paused:
        return _ignore(state, event, "not_paused")
    new_state = replace(state, paused=False)
    return new_state, (ResumeMedia(), _log(new_state, event, "resume"))


def _on_retry_ready(
    state: CoordinatorState, event: RetryReady
) -> tuple[CoordinatorState, tuple[Command, ...]]:
    if _is_stale(state, event.run_id):
        return _ignore(state, event, "stale_run")
    retryable_here = state.connection is ConnectionState.FAILED or (
        state.connection is ConnectionState.DISCONNECTED and state.session_active
    )
    if not retryable_here:
        return _ignore(state, event, "retry_not_applicable")
    return _renegotiate(state, event, "auto_retry")


def _on_downgrade(
    state: CoordinatorState, event: DowngradeRequested
) -> tuple[CoordinatorState, tuple[Command, ...]]:
    if not state.session_active:
        return _ignore(state, event, "session_inactive")
    if not is_downgrade_or_equal(event.profile, state.profile):
        return _ignore(state, event, "not_a_downgrade")

    error = state.current_error
    resolved = error is not None and error.kind is event.reason
    changes: dict[str, Any] = {
        "profile": event.profile,
        "current_error": None if resolved else error,
    }
    if state.suggestion is not None and state.suggestion.profile == event.profile:
        changes["suggestion"] = None

    if state.connection in _LIVE_STATES or state.connection is ConnectionState.FAILED:
        return _renegotiate(state, event, "capability_fallback", **changes)

    new_state = replace(state, **changes)
    return new_state, (
        _log(new_state, event, "capability_fallback", {"profile": event.profile.to_dict()}),
    )


def _on_device_switched(
    state: CoordinatorState, event: DeviceSwitched
) -> tuple[CoordinatorState, tuple[Command, ...]]:
    error = state.current_error
    resolved = error is not None and error.kind is ErrorKind.AUDIO_DEVICE
    new_state = replace(state, current_error=None if resolved else error)
    return new_state, (
        ResetRecoveryBudget(kinds=(ErrorKind.AUDIO_DEVICE,)),
        _log(new_state, event, "device_switched", event.device.to_dict()),
    )


def _on_reported_error(
    state: CoordinatorState,
    event: Event,
    error: ErrorRecord,
    context: str,
) -> tuple[CoordinatorState, tuple[Command, ...]]:
    new_state = replace(state, current_error=error)
    commands: tuple[Command, ...] = (PublishError(error=error),)
    if state.session_active:
        commands += (RequestRecovery(error=error, context=context),)
    commands += (
        _log(
            new_state,
            event,
            "error_reported",
            {"kind": error.kind.value, "error_code": error.error_code, "context": context},
        ),
    )
    return new_state, commands


def _on_user_retry(
    state: CoordinatorState, event: UserRetry
) -> tuple[CoordinatorState, tuple[Command, ...]]:
    error = state.current_error
    if error is None:
        return _ignore(state, event, "no_error")
    if not error.retryable:
        return _ignore(state, event, "not_retryable")
    if not state.session_active:
        return _ignore(state, event, "session_inactive")

    reset = ResetRecoveryBudget(kinds=(error.kind,))

    if state.connection is ConnectionState.FAILED or state.connection is ConnectionState.DISCONNECTED:
        new_state, commands = _renegotiate(state, event, "manual_retry", recovery_exhausted=False)
        return new_state, _logs_last((reset,) + commands)

    new_state = replace(state, recovery_exhausted=False)
    return new_state, (
        reset,
        RequestRecovery(error=error, context="manual"),
        _log(new_state, event, "manual_recovery", {"kind": error.kind.value}),
    )


def _on_suggestion_ready(
    state: CoordinatorState, event: SuggestionReady
) -> tuple[CoordinatorState, tuple[Command, ...]]:
    suggestion = event.suggestion
    if state.connection is not ConnectionState.CONNECTED:
        return _ignore(state, event, "not_connected")
    if suggestion.profile == state.profile:
        return _ignore(state, event, "matches_current_profile")
    if not is_downgrade_or_equal(suggestion.profile, state.profile):
        return _ignore(state, event, "not_a_downgrade")
    if suggestion == state.suggestion:
        return _ignore(state, event, "suggestion_unchanged")
    new_state = replace(state, suggestion=suggestion)
    return new_state, (_log(new_state, event, "suggestion_ready", suggestion.to_dict()),)


def _on_suggestion_applied(
    state: CoordinatorState, event: SuggestionApplied
) -> tuple[CoordinatorState, tuple[Command, ...]]:
    changed = event.profile != state.profile
    if changed and state.connection in _LIVE_STATES:
        return _renegotiate(
            state, event, "suggestion_applied", profile=event.profile, suggestion=None
        )
    new_state = replace(state, profile=event.profile, suggestion=None)
    return new_state, (
        _log(
            new_state,
            event,
            "suggestion_applied",
            {"profile": event.profile.to_dict(), "renegotiate": False},
        ),
    )


# =============================================================================
# Reducer
# =============================================================================

def reduce(
    state: CoordinatorState, event: Event
) -> tuple[CoordinatorState, tuple[Command, ...]]:
    """
    Pure reducer for the connection lifecycle state machine.

    Given the current coordinator state and a single event, returns:
    - the next state
    - a tuple of commands describing required side effects

    Properties:
    - Deterministic: no IO, clocks, or randomness
    - Total: every (state, event) pair is handled or explicitly ignored
    - Version-safe: ignores events with stale run IDs
    """
    # ------------------------------------------------------------------
    # User control
    # ------------------------------------------------------------------
    if isinstance(event, StopRequested):
        return _on_stop(state, event)

    if isinstance(event, StartRequested):
        return _on_start(state, event)

    if isinstance(event, UserRetry):
        return _on_user_retry(state, event)

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------
    if isinstance(event, TransportPhaseChanged):
        return _on_phase(state, event)

    if isinstance(event, NegotiationCompleted):
        if _is_stale(state, event.run_id) or state.connection not in _LIVE_STATES:
            return _ignore(state, event, "stale_run")
        return state, (_log(state, event, "negotiation_completed"),)

    if isinstance(event, NegotiationFailed):
        return _on_negotiation_failed(state, event)

    # ------------------------------------------------------------------
    # Interruptions
    # ------------------------------------------------------------------
    if isinstance(event, InterruptionReceived):
        return _on_interruption(state, event)

    # ------------------------------------------------------------------
    # Recovery engine
    # ------------------------------------------------------------------
    if isinstance(event, RetryReady):
        return _on_retry_ready(state, event)

    if isinstance(event, DowngradeRequested):
        return _on_downgrade(state, event)

    if isinstance(event, ResumeRequested):
        return _on_resume(state, event)

    if isinstance(event, DeviceSwitched):
        return _on_device_switched(state, event)

    if isinstance(event, DeviceSwitchFailed):
        return _on_reported_error(state, event, event.error, "device_switch_failed")

    if isinstance(event, RecoveryDeclined):
        exhausted = event.reason == "budget_exhausted"
        new_state = replace(state, recovery_exhausted=state.recovery_exhausted or exhausted)
        return new_state, (
            _log(
                new_state,
                event,
                "recovery_declined",
                {"kind": event.error.kind.value, "reason": event.reason},
            ),
        )

    # ------------------------------------------------------------------
    # Optimization advisor
    # ------------------------------------------------------------------
    if isinstance(event, AdvisorTick):
        if state.connection is not ConnectionState.CONNECTED:
            return _ignore(state, event, "not_connected")
        return state, (
            EvaluateResources(),
            _advisor_timer(state),
            _log(state, event, "advisor_tick"),
        )

    if isinstance(event, SuggestionReady):
        return _on_suggestion_ready(state, event)

    if isinstance(event, SuggestionApplied):
        return _on_suggestion_applied(state, event)

    if isinstance(event, SuggestionDismissed):
        if state.suggestion is None:
            return _ignore(state, event, "no_suggestion")
        new_state = replace(state, suggestion=None)
        return new_state, (_log(new_state, event, "suggestion_dismissed"),)

    # ------------------------------------------------------------------
    # Collaborator-reported errors
    # ------------------------------------------------------------------
    if isinstance(event, ErrorReported):
        return _on_reported_error(state, event, event.error, event.context)

    if isinstance(event, ErrorCleared):
        if state.current_error is None:
            return _ignore(state, event, "no_error")
        new_state = replace(state, current_error=None, recovery_exhausted=False)
        return new_state, (_log(new_state, event, "error_cleared"),)

    return _ignore(state, event, "unhandled_event")
