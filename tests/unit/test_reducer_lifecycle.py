"""
Reducer lifecycle tests.

Pure guarantees:
- Transport phases fold into the five connection states
- Stale run_ids are ignored
- Stop is idempotent and always lands in DISCONNECTED
"""

from dataclasses import replace

import pytest

from errors.kinds import ErrorKind, NetworkDetail, TransportDetail
from orchestrator.commands import (
    BeginNegotiation,
    CancelTimer,
    ClearRecovery,
    CloseTransport,
    LogEvent,
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
from orchestrator.enums.capability import AudioQuality, VideoMode
from orchestrator.enums.phase import TransportPhase
from orchestrator.enums.signals import InterruptionType
from orchestrator.enums.state import ConnectionState
from orchestrator.events import (
    EventType,
    InterruptionReceived,
    NegotiationCompleted,
    NegotiationFailed,
    RetryReady,
    StartRequested,
    StopRequested,
    TransportPhaseChanged,
)
from orchestrator.profile import CapabilityProfile
from orchestrator.reducer import TIMER_ADVISOR, reduce
from orchestrator.signals import InterruptionSignal
from orchestrator.state_dataclass import CoordinatorState
from recovery.policy import CONNECTION_KINDS

from fakes import decisions, of_type, record


WEBCAM = CapabilityProfile(video_mode=VideoMode.WEBCAM, audio_quality=AudioQuality.HIGH)


def start(profile: CapabilityProfile = WEBCAM) -> StartRequested:
    return StartRequested(event_type=EventType.START_REQUESTED, ts_ms=0, profile=profile)


def stop() -> StopRequested:
    return StopRequested(event_type=EventType.STOP_REQUESTED, ts_ms=0)


def phase(p: TransportPhase, run_id: int = 1) -> TransportPhaseChanged:
    return TransportPhaseChanged(
        event_type=EventType.TRANSPORT_PHASE, ts_ms=0, run_id=run_id, phase=p
    )


def connected_state(run_id: int = 1) -> CoordinatorState:
    return CoordinatorState(
        connection=ConnectionState.CONNECTED,
        run_id=run_id,
        session_active=True,
        profile=WEBCAM,
    )


def test_start_from_disconnected_begins_negotiation():
    state, cmds = reduce(CoordinatorState(), start())

    assert state.connection is ConnectionState.CONNECTING
    assert state.run_id == 1
    assert state.session_active
    assert state.profile == WEBCAM
    assert of_type(cmds, BeginNegotiation) == [BeginNegotiation(run_id=1, profile=WEBCAM)]
    assert len(of_type(cmds, WatchInterruptions)) == 1
    assert not of_type(cmds, CloseTransport)

    # Logs come after side effects; state_changed is last.
    assert isinstance(cmds[-1], LogEvent)
    assert cmds[-1].event["decision"] == "state_changed"
    assert cmds[-1].event["details"]["to_state"] == "CONNECTING"


def test_start_while_active_is_ignored():
    state = replace(connected_state(), connection=ConnectionState.CONNECTING)

    new_state, cmds = reduce(state, start())

    assert new_state == state
    assert decisions(cmds) == ["ignore"]
    assert cmds[0].event["details"]["reason"] == "already_active"


def test_start_from_failed_closes_previous_run():
    state = CoordinatorState(
        connection=ConnectionState.FAILED,
        run_id=4,
        session_active=True,
        current_error=record(TransportDetail()),
        recovery_exhausted=True,
    )

    new_state, cmds = reduce(state, start())

    assert new_state.connection is ConnectionState.CONNECTING
    assert new_state.run_id == 5
    assert new_state.current_error is None
    assert not new_state.recovery_exhausted
    assert of_type(cmds, CloseTransport) == [CloseTransport(run_id=4)]
    assert len(of_type(cmds, ClearRecovery)) == 1
    assert of_type(cmds, BeginNegotiation)[0].run_id == 5


def test_new_checking_connected_reaches_connected():
    state, _ = reduce(CoordinatorState(), start())

    for p in (TransportPhase.NEW, TransportPhase.CHECKING):
        state, cmds = reduce(state, phase(p))
        assert state.connection is ConnectionState.CONNECTING
        assert decisions(cmds) == ["phase_progress"]

    state, cmds = reduce(state, phase(TransportPhase.CONNECTED))

    assert state.connection is ConnectionState.CONNECTED
    assert of_type(cmds, ResetRecoveryBudget) == [ResetRecoveryBudget(kinds=CONNECTION_KINDS)]
    timers = of_type(cmds, StartTimer)
    assert len(timers) == 1
    assert timers[0].timer_id == TIMER_ADVISOR
    assert timers[0].timeout_event_type is EventType.ADVISOR_TICK


def test_completed_counts_as_connected():
    state, _ = reduce(CoordinatorState(), start())

    state, _ = reduce(state, phase(TransportPhase.COMPLETED))

    assert state.connection is ConnectionState.CONNECTED


def test_connected_resolves_transport_error_only():
    state = CoordinatorState(
        connection=ConnectionState.CONNECTING,
        run_id=1,
        session_active=True,
        current_error=record(NetworkDetail()),
    )
    new_state, _ = reduce(state, phase(TransportPhase.CONNECTED))
    assert new_state.current_error is None


@pytest.mark.parametrize("p", [TransportPhase.FAILED, TransportPhase.CLOSED])
def test_failure_while_connecting_enters_failed(p: TransportPhase):
    state, _ = reduce(CoordinatorState(), start())

    state, cmds = reduce(state, phase(p))

    assert state.connection is ConnectionState.FAILED
    assert state.current_error is not None
    assert state.current_error.kind is ErrorKind.TRANSPORT_NEGOTIATION
    assert of_type(cmds, PublishError)[0].error == state.current_error
    recovery = of_type(cmds, RequestRecovery)
    assert len(recovery) == 1
    assert recovery[0].context == "transport_failed"
    assert "enter_failed" in decisions(cmds)
    assert of_type(cmds, ResolveNegotiation) == [
        ResolveNegotiation(run_id=1, error=state.current_error)
    ]


def test_negotiation_failed_is_treated_like_phase_failed():
    state, _ = reduce(CoordinatorState(), start())
    error = record(NetworkDetail(details="refused"))

    state, cmds = reduce(
        state,
        NegotiationFailed(
            event_type=EventType.NEGOTIATION_FAILED, ts_ms=0, run_id=1, error=error
        ),
    )

    assert state.connection is ConnectionState.FAILED
    assert state.current_error == error
    assert of_type(cmds, RequestRecovery)[0].context == "negotiation_failed"


def test_stale_phase_is_ignored():
    state = connected_state(run_id=3)

    new_state, cmds = reduce(state, phase(TransportPhase.FAILED, run_id=2))

    assert new_state == state
    assert decisions(cmds) == ["ignore"]
    assert cmds[0].event["details"]["reason"] == "stale_run"


def test_phase_while_disconnected_is_ignored():
    state = CoordinatorState(run_id=1)

    new_state, cmds = reduce(state, phase(TransportPhase.CONNECTED))

    assert new_state == state
    assert cmds[0].event["details"]["reason"] == "phase_while_disconnected"


def test_stale_negotiation_completed_is_ignored():
    state = connected_state(run_id=2)
    event = NegotiationCompleted(event_type=EventType.NEGOTIATION_COMPLETED, ts_ms=0, run_id=1)

    new_state, cmds = reduce(state, event)

    assert new_state == state
    assert decisions(cmds) == ["ignore"]


@pytest.mark.parametrize("p", [TransportPhase.DISCONNECTED, TransportPhase.CLOSED])
def test_drop_while_connected_goes_disconnected(p: TransportPhase):
    state = replace(connected_state(), paused=True)

    new_state, cmds = reduce(state, phase(p))

    assert new_state.connection is ConnectionState.DISCONNECTED
    assert new_state.session_active
    assert not new_state.paused
    assert new_state.current_error is not None
    assert new_state.current_error.kind is ErrorKind.NETWORK
    assert len(of_type(cmds, ResumeMedia)) == 1
    assert of_type(cmds, CancelTimer) == [CancelTimer(timer_id=TIMER_ADVISOR)]
    assert len(of_type(cmds, ReportDrop)) == 1
    assert not of_type(cmds, RequestRecovery)
    assert "connection_dropped" in decisions(cmds)


def test_failed_while_connected_enters_failed():
    new_state, cmds = reduce(connected_state(), phase(TransportPhase.FAILED))

    assert new_state.connection is ConnectionState.FAILED
    assert len(of_type(cmds, CancelTimer)) == 1
    assert len(of_type(cmds, RequestRecovery)) == 1
    assert not of_type(cmds, ResolveNegotiation)
    assert not of_type(cmds, ResumeMedia)


def test_failure_while_paused_resumes_media():
    state = replace(connected_state(), paused=True)

    new_state, cmds = reduce(state, phase(TransportPhase.FAILED))

    assert new_state.connection is ConnectionState.FAILED
    assert not new_state.paused
    assert len(of_type(cmds, ResumeMedia)) == 1


def test_phases_after_failed_are_ignored():
    state = CoordinatorState(connection=ConnectionState.FAILED, run_id=1, session_active=True)

    for p in TransportPhase:
        new_state, cmds = reduce(state, phase(p))
        assert new_state == state
        assert decisions(cmds) == ["ignore"]


def test_network_loss_enters_reconnecting_and_recovers():
    loss = InterruptionReceived(
        event_type=EventType.INTERRUPTION,
        ts_ms=0,
        signal=InterruptionSignal(type=InterruptionType.NETWORK_LOSS, should_pause=True),
    )

    state, cmds = reduce(connected_state(), loss)
    assert state.connection is ConnectionState.RECONNECTING
    assert of_type(cmds, CancelTimer) == [CancelTimer(timer_id=TIMER_ADVISOR)]

    for p in (TransportPhase.NEW, TransportPhase.CHECKING, TransportPhase.DISCONNECTED):
        same, _ = reduce(state, phase(p))
        assert same.connection is ConnectionState.RECONNECTING

    state, cmds = reduce(state, phase(TransportPhase.CONNECTED))
    assert state.connection is ConnectionState.CONNECTED
    assert len(of_type(cmds, StartTimer)) == 1


def test_reconnecting_closed_is_a_drop():
    state = replace(connected_state(), connection=ConnectionState.RECONNECTING)

    new_state, cmds = reduce(state, phase(TransportPhase.CLOSED))

    assert new_state.connection is ConnectionState.DISCONNECTED
    assert len(of_type(cmds, ReportDrop)) == 1
    assert not of_type(cmds, CancelTimer)


def test_reconnecting_failed_enters_failed():
    state = replace(connected_state(), connection=ConnectionState.RECONNECTING)

    new_state, cmds = reduce(state, phase(TransportPhase.FAILED))

    assert new_state.connection is ConnectionState.FAILED
    assert len(of_type(cmds, RequestRecovery)) == 1


@pytest.mark.parametrize("connection", list(ConnectionState))
def test_stop_from_any_state_is_idempotent(connection: ConnectionState):
    state = CoordinatorState(
        connection=connection,
        run_id=2,
        session_active=connection is not ConnectionState.DISCONNECTED,
        profile=WEBCAM,
        current_error=record(NetworkDetail()),
    )

    state, cmds = reduce(state, stop())
    assert state.connection is ConnectionState.DISCONNECTED
    assert not state.session_active
    assert state.current_error is None
    assert state.profile == WEBCAM
    assert len(of_type(cmds, StopWatchers)) == 1
    assert len(of_type(cmds, ClearRecovery)) == 1

    for _ in range(3):
        again, cmds = reduce(state, stop())
        assert again == state
        assert decisions(cmds) == ["ignore"]
        assert cmds[0].event["details"]["reason"] == "already_stopped"


def test_stop_closes_current_run_and_cancels_advisor():
    _, cmds = reduce(connected_state(run_id=7), stop())

    assert of_type(cmds, CloseTransport) == [CloseTransport(run_id=7)]
    assert of_type(cmds, CancelTimer) == [CancelTimer(timer_id=TIMER_ADVISOR)]
    assert not of_type(cmds, ResumeMedia)
    assert not of_type(cmds, ResolveNegotiation)


def test_stop_while_paused_resumes_media():
    state, cmds = reduce(replace(connected_state(), paused=True), stop())

    assert not state.paused
    assert len(of_type(cmds, ResumeMedia)) == 1
    assert cmds[-1].event["decision"] == "state_changed"


def test_retry_ready_renegotiates_from_failed():
    state = CoordinatorState(
        connection=ConnectionState.FAILED,
        run_id=2,
        session_active=True,
        profile=WEBCAM,
    )
    event = RetryReady(
        event_type=EventType.RETRY_READY, ts_ms=0, run_id=2, kind=ErrorKind.NETWORK
    )

    new_state, cmds = reduce(state, event)

    assert new_state.connection is ConnectionState.CONNECTING
    assert new_state.run_id == 3
    assert of_type(cmds, CloseTransport) == [CloseTransport(run_id=2)]
    assert of_type(cmds, BeginNegotiation) == [BeginNegotiation(run_id=3, profile=WEBCAM)]
    assert "auto_retry" in decisions(cmds)


def test_retry_ready_after_drop_reconnects_active_session():
    state = CoordinatorState(
        connection=ConnectionState.DISCONNECTED,
        run_id=1,
        session_active=True,
    )
    event = RetryReady(
        event_type=EventType.RETRY_READY, ts_ms=0, run_id=1, kind=ErrorKind.NETWORK
    )

    new_state, _ = reduce(state, event)

    assert new_state.connection is ConnectionState.CONNECTING


def test_retry_ready_is_ignored_when_stale_or_stopped():
    stale = CoordinatorState(connection=ConnectionState.FAILED, run_id=3, session_active=True)
    stopped = CoordinatorState(connection=ConnectionState.DISCONNECTED, run_id=1)

    for state, run_id, reason in (
        (stale, 2, "stale_run"),
        (stopped, 1, "retry_not_applicable"),
    ):
        event = RetryReady(
            event_type=EventType.RETRY_READY, ts_ms=0, run_id=run_id, kind=ErrorKind.NETWORK
        )
        new_state, cmds = reduce(state, event)
        assert new_state == state
        assert cmds[0].event["details"]["reason"] == reason


def test_log_events_carry_coordinator_context():
    _, cmds = reduce(CoordinatorState(), start())

    for cmd in of_type(cmds, LogEvent):
        assert cmd.event["event_type"] == "START_REQUESTED"
        assert cmd.event["run_id"] == 1
        assert cmd.event["video_mode"] == "WEBCAM"
        assert "details" in cmd.event
