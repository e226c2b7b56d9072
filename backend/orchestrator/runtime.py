"""
Runtime execution shell for a single coordinator session.

Responsibilities:
- Own coordinator state
- Serialize every event through the pure reducer
- Execute commands with side effects (negotiation, watchers, media, recovery)
- Schedule and cancel timers
- Convert timer expiry and task completion into events

Non-responsibilities:
- Transition decisions (reducer)
- Recovery action selection (recovery engine)
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

from constants import COLLABORATOR_CALL_TIMEOUT_S
from errors.classify import classify_exception
from errors.kinds import AudioDeviceDetail, AudioErrorCause, ErrorKind
from errors.records import ErrorRecord, make_error_record
from observability.logger import log_event
from observability.metrics import timed
from optimization import advisor
from orchestrator.cancellation import CancellationManager
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
from orchestrator.events import (
    AdvisorTick,
    ErrorReported,
    Event,
    EventType,
    InterruptionReceived,
    NegotiationCompleted,
    NegotiationFailed,
    SuggestionReady,
    TransportPhaseChanged,
)
from orchestrator.profile import CapabilityProfile
from orchestrator.reducer import reduce
from orchestrator.state_dataclass import CoordinatorState
from recovery.engine import RecoveryEngine

if TYPE_CHECKING:
    from orchestrator.runtime_context import RuntimeExecutionContext


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


StateListener = Callable[[CoordinatorState, CoordinatorState], None]
ErrorListener = Callable[[ErrorRecord], None]


# Task keys (CancellationManager)
TASK_NEGOTIATION = "negotiation"
TASK_PHASES = "phases"
TASK_INTERRUPTIONS = "interruptions"
TASK_RESOURCES = "resources"

# Outcome futures kept for recent runs only.
_OUTCOME_HISTORY = 8


@dataclass(frozen=True)
class NegotiationOutcome:
    """How one negotiation run ended, as seen by start()."""
    run_id: int
    error: ErrorRecord | None = None
    cancelled: bool = False
    superseded_by: int | None = None


class Runtime:
    """
    Runtime execution boundary for a single coordinator session.

    Responsibilities:
    - Own the authoritative coordinator state
    - Act as the universal event sink for the session
      (user control, transport phases, interruptions, timers,
      recovery engine)
    - Invoke the pure reducer deterministically
    - Execute emitted commands with side effects

    Guarantees:
    - Reducer is always called exactly once per incoming event
    - Events are reduced one at a time in arrival order; events emitted
      while a reduction is in progress are queued behind it
    - All side effects occur *after* state has been updated
    - Runtime never performs orchestration logic itself
    - Timers and tasks emit events back into handle_event
      (single entry point)
    """

    def __init__(
        self,
        *,
        initial_state: CoordinatorState,
        context: RuntimeExecutionContext,
        reconnect_on_drop: bool = False,
        engine: RecoveryEngine | None = None,
    ) -> None:
        self._state = initial_state
        self._ctx = context
        self._reconnect_on_drop = reconnect_on_drop
        self._timers: dict[str, asyncio.Task[None]] = {}

        # Background work (no orchestration logic)
        self._tasks = CancellationManager(session_id=context.session_id)
        self._engine = engine if engine is not None else RecoveryEngine(
            emit_event=self.handle_event,
            get_state=lambda: self._state,
            tasks=self._tasks,
            audio=context.audio,
            session_id=context.session_id,
        )

        # Serialized event queue
        self._pending: deque[tuple[Event, asyncio.Future[None] | None]] = deque()
        self._drain_task: asyncio.Task[None] | None = None

        self._state_listeners: list[StateListener] = []
        self._error_listeners: list[ErrorListener] = []
        self._outcomes: dict[int, asyncio.Future[NegotiationOutcome]] = {}
        self._transport_run: int | None = None

    @property
    def state(self) -> CoordinatorState:
        """
        Return the current immutable coordinator state.

        Consumers must never modify this state directly.
        """
        return self._state

    @property
    def engine(self) -> RecoveryEngine:
        return self._engine

    @property
    def tasks(self) -> CancellationManager:
        return self._tasks

    def add_state_listener(self, listener: StateListener) -> None:
        """listener(prev, new) runs after every state change."""
        self._state_listeners.append(listener)

    def add_error_listener(self, listener: ErrorListener) -> None:
        """listener(record) runs once per published ErrorRecord."""
        self._error_listeners.append(listener)

    # ------------------------------------------------------------------
    # Event entry point
    # ------------------------------------------------------------------

    async def handle_event(self, event: Event) -> None:
        """
        Queue an event for reduction.

        Callers outside the drain loop wait until their event has been
        reduced and its commands executed. Calls made from inside the
        drain loop (command execution re-entering) only enqueue.
        """
        in_drain = (
            self._drain_task is not None
            and asyncio.current_task() is self._drain_task
        )
        if in_drain:
            self._pending.append((event, None))
            return

        done: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._pending.append((event, done))
        if self._drain_task is None or self._drain_task.done():
            self._drain_task = asyncio.create_task(self._drain())
        await asyncio.shield(done)

    async def _drain(self) -> None:
        while self._pending:
            event, done = self._pending.popleft()
            try:
                await self._process(event)
            except asyncio.CancelledError:
                if done is not None and not done.done():
                    done.cancel()
                raise
            except Exception as exc:  # pylint: disable=broad-exception-caught
                log_event({
                    "ts_ms": _now_ms(),
                    "event_type": "RUNTIME_EVENT_FAILED",
                    "session_id": self._ctx.session_id,
                    "failed_event": event.event_type.value,
                    "exception": type(exc).__name__,
                    "message": str(exc),
                })
                if done is not None and not done.done():
                    done.set_exception(exc)
                continue
            if done is not None and not done.done():
                done.set_result(None)

    async def _process(self, event: Event) -> None:
        prev = self._state
        new_state, commands = reduce(prev, event)
        self._state = new_state

        if new_state != prev:
            for listener in self._state_listeners:
                listener(prev, new_state)

        for cmd in commands:
            await self._execute_command(cmd)

    async def shutdown(self) -> None:
        """
        Clean shutdown of runtime.

        Cancels all in-flight timers and tasks and waits for timers to
        finish. Called on session disconnect after stop.
        """
        timers = list(self._timers.values())
        for timer_id in list(self._timers.keys()):
            self._cancel_timer(timer_id)

        self._tasks.clear_all()
        self._resolve_all_outcomes_cancelled()

        if timers:
            await asyncio.gather(*timers, return_exceptions=True)

    # ------------------------------------------------------------------
    # Negotiation outcome (consumed by start())
    # ------------------------------------------------------------------

    def negotiation_outcome(self, run_id: int) -> asyncio.Future[NegotiationOutcome]:
        """Future settled once negotiation run_id ends: ok, error, superseded or cancelled."""
        fut = self._outcomes.get(run_id)
        if fut is None:
            fut = asyncio.get_running_loop().create_future()
            self._outcomes[run_id] = fut
        return fut

    def _resolve_outcome(self, outcome: NegotiationOutcome) -> None:
        fut = self.negotiation_outcome(outcome.run_id)
        if not fut.done():
            fut.set_result(outcome)

    def _resolve_all_outcomes_cancelled(self) -> None:
        for run_id, fut in self._outcomes.items():
            if not fut.done():
                fut.set_result(NegotiationOutcome(run_id=run_id, cancelled=True))

    def _prune_outcomes(self, current_run: int) -> None:
        for run_id in [r for r in self._outcomes if r <= current_run - _OUTCOME_HISTORY]:
            del self._outcomes[run_id]

    # ------------------------------------------------------------------
    # Command execution (side effects)
    # ------------------------------------------------------------------

    async def _execute_command(self, cmd: Command) -> None:
        """Execute a single command with side effects."""

        if isinstance(cmd, LogEvent):
            enriched = {
                **cmd.event,
                "session_id": self._ctx.session_id,
                "link_status": self._ctx.link_status.value,
            }
            log_event(enriched)
            self._ctx.action_log.record_decision(enriched)

        elif isinstance(cmd, BeginNegotiation):
            self._begin_negotiation(cmd.run_id, cmd.profile)

        elif isinstance(cmd, CloseTransport):
            await self._close_transport(cmd.run_id)

        elif isinstance(cmd, ResolveNegotiation):
            self._resolve_outcome(
                NegotiationOutcome(
                    run_id=cmd.run_id,
                    error=cmd.error,
                    superseded_by=cmd.superseded_by,
                )
            )

        elif isinstance(cmd, WatchInterruptions):
            self._watch_interruptions()

        elif isinstance(cmd, StopWatchers):
            self._tasks.cancel(TASK_INTERRUPTIONS)
            self._tasks.cancel(TASK_PHASES)
            self._tasks.cancel(TASK_NEGOTIATION)
            self._tasks.cancel(TASK_RESOURCES)
            self._resolve_all_outcomes_cancelled()

        elif isinstance(cmd, PauseMedia):
            await self._call_audio("pause")

        elif isinstance(cmd, ResumeMedia):
            await self._call_audio("resume")

        elif isinstance(cmd, RequestRecovery):
            await self._engine.attempt_recovery(cmd.error, cmd.context)

        elif isinstance(cmd, ResetRecoveryBudget):
            self._engine.record_success(cmd.kinds)

        elif isinstance(cmd, ClearRecovery):
            self._engine.reset()

        elif isinstance(cmd, PublishError):
            self._ctx.record_error(cmd.error)
            for listener in self._error_listeners:
                listener(cmd.error)

        elif isinstance(cmd, ReportDrop):
            if self._reconnect_on_drop:
                await self._engine.attempt_recovery(cmd.error, "connection_drop")
            else:
                log_event({
                    "ts_ms": _now_ms(),
                    "event_type": "DROP_NOT_RECOVERED",
                    "session_id": self._ctx.session_id,
                    "kind": cmd.error.kind.value,
                })

        elif isinstance(cmd, EvaluateResources):
            self._tasks.spawn(TASK_RESOURCES, self._evaluate_resources())

        elif isinstance(cmd, StartTimer):
            self._start_timer(
                timer_id=cmd.timer_id,
                duration_ms=cmd.duration_ms,
                timeout_event_type=cmd.timeout_event_type,
            )

        elif isinstance(cmd, CancelTimer):
            self._cancel_timer(cmd.timer_id)

        else:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "UNKNOWN_COMMAND",
                "session_id": self._ctx.session_id,
                "command": type(cmd).__name__,
            })

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _begin_negotiation(self, run_id: int, profile: CapabilityProfile) -> None:
        self._prune_outcomes(run_id)
        self.negotiation_outcome(run_id)
        self._transport_run = run_id
        # Phases are observed before the offer so early phases are not missed.
        self._tasks.spawn(TASK_PHASES, self._watch_phases(run_id))
        self._tasks.spawn(TASK_NEGOTIATION, self._negotiate(run_id, profile))

    async def _negotiate(self, run_id: int, profile: CapabilityProfile) -> None:
        transport = self._ctx.transport
        try:
            with timed(
                "negotiation_latency",
                session_id=self._ctx.session_id,
                run_id=run_id,
                details={"video_mode": profile.video_mode.value},
            ):
                await transport.prepare_local_media(profile)
                offer = await transport.create_negotiation_offer()
                answer = await self._ctx.signaling.exchange_offer(offer, profile)
                await transport.apply_remote_descriptor(answer)
        except asyncio.CancelledError:
            self._resolve_outcome(NegotiationOutcome(run_id=run_id, cancelled=True))
            raise
        except Exception as exc:  # pylint: disable=broad-exception-caught
            record = classify_exception(exc, ts_ms=_now_ms())
            log_event({
                "ts_ms": record.occurred_at_ms,
                "event_type": "NEGOTIATION_FAILED",
                "session_id": self._ctx.session_id,
                "run_id": run_id,
                "kind": record.kind.value,
                "exception": type(exc).__name__,
                "message": str(exc),
            })
            self._resolve_outcome(NegotiationOutcome(run_id=run_id, error=record))
            await self.handle_event(
                NegotiationFailed(
                    event_type=EventType.NEGOTIATION_FAILED,
                    ts_ms=record.occurred_at_ms,
                    run_id=run_id,
                    error=record,
                )
            )
            return

        self._resolve_outcome(NegotiationOutcome(run_id=run_id))
        await self.handle_event(
            NegotiationCompleted(
                event_type=EventType.NEGOTIATION_COMPLETED,
                ts_ms=_now_ms(),
                run_id=run_id,
            )
        )

    async def _watch_phases(self, run_id: int) -> None:
        try:
            async for phase in self._ctx.transport.observe_connection_phase():
                await self.handle_event(
                    TransportPhaseChanged(
                        event_type=EventType.TRANSPORT_PHASE,
                        ts_ms=_now_ms(),
                        run_id=run_id,
                        phase=phase,
                    )
                )
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # pylint: disable=broad-exception-caught
            record = classify_exception(exc, ts_ms=_now_ms())
            await self.handle_event(
                NegotiationFailed(
                    event_type=EventType.NEGOTIATION_FAILED,
                    ts_ms=record.occurred_at_ms,
                    run_id=run_id,
                    error=record,
                )
            )

    async def _close_transport(self, run_id: int) -> None:
        self._tasks.cancel(TASK_NEGOTIATION)
        self._tasks.cancel(TASK_PHASES)

        if self._transport_run is None:
            return
        self._transport_run = None
        try:
            await asyncio.wait_for(
                self._ctx.transport.close(),
                COLLABORATOR_CALL_TIMEOUT_S,
            )
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "TRANSPORT_CLOSE_FAILED",
                "session_id": self._ctx.session_id,
                "run_id": run_id,
                "exception": type(exc).__name__,
                "message": str(exc),
            })

    # ------------------------------------------------------------------
    # Interruptions / media
    # ------------------------------------------------------------------

    def _watch_interruptions(self) -> None:
        source = self._ctx.interruptions
        if source is None:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "COLLABORATOR_MISSING",
                "session_id": self._ctx.session_id,
                "collaborator": "interruptions",
            })
            return
        if self._tasks.is_running(TASK_INTERRUPTIONS):
            return

        async def _watch() -> None:
            async for signal in source.observe_interruptions():
                await self.handle_event(
                    InterruptionReceived(
                        event_type=EventType.INTERRUPTION,
                        ts_ms=_now_ms(),
                        signal=signal,
                    )
                )

        self._tasks.spawn(TASK_INTERRUPTIONS, _watch())

    async def _call_audio(self, method: str) -> None:
        audio = self._ctx.audio
        if audio is None:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "COLLABORATOR_MISSING",
                "session_id": self._ctx.session_id,
                "collaborator": "audio",
                "operation": method,
            })
            return
        try:
            await asyncio.wait_for(getattr(audio, method)(), COLLABORATOR_CALL_TIMEOUT_S)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            if isinstance(exc, asyncio.TimeoutError):
                record = make_error_record(
                    AudioDeviceDetail(cause=AudioErrorCause.DEVICE_BUSY),
                    ts_ms=_now_ms(),
                )
            else:
                record = classify_exception(
                    exc,
                    ts_ms=_now_ms(),
                    default_kind=ErrorKind.AUDIO_DEVICE,
                )
            log_event({
                "ts_ms": record.occurred_at_ms,
                "event_type": "AUDIO_OPERATION_FAILED",
                "session_id": self._ctx.session_id,
                "operation": method,
                "kind": record.kind.value,
                "message": str(exc),
            })
            await self.handle_event(
                ErrorReported(
                    event_type=EventType.ERROR_REPORTED,
                    ts_ms=record.occurred_at_ms,
                    error=record,
                    context=f"audio_{method}",
                )
            )

    # ------------------------------------------------------------------
    # Resource sampling
    # ------------------------------------------------------------------

    async def _evaluate_resources(self) -> None:
        battery = network = memory = None
        try:
            if self._ctx.battery is not None:
                battery = await self._ctx.battery.get_battery_level()
            if self._ctx.network is not None:
                network = await self._ctx.network.get_network_quality()
            if self._ctx.memory is not None:
                memory = await self._ctx.memory.get_available_memory()
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "RESOURCE_SAMPLING_FAILED",
                "session_id": self._ctx.session_id,
                "exception": type(exc).__name__,
                "message": str(exc),
            })
            return

        suggestion = advisor.explain(
            battery,
            network,
            memory,
            current=self._state.profile,
        )
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "RESOURCES_SAMPLED",
            "session_id": self._ctx.session_id,
            "battery_percent": battery.percent if battery is not None else None,
            "charging": battery.charging if battery is not None else None,
            "network_quality": network.value if network is not None else None,
            "available_memory": memory,
            "suggestion": suggestion.to_dict() if suggestion is not None else None,
        })
        if suggestion is None:
            return
        await self.handle_event(
            SuggestionReady(
                event_type=EventType.SUGGESTION_READY,
                ts_ms=_now_ms(),
                suggestion=suggestion,
            )
        )

    # ------------------------------------------------------------------
    # Timer management
    # ------------------------------------------------------------------

    def _start_timer(
        self,
        *,
        timer_id: str,
        duration_ms: int,
        timeout_event_type: EventType,
    ) -> None:
        """
        Start or replace a timer that emits a timeout event.

        Timer tasks re-enter handle_event() when they expire,
        maintaining the single event entry point invariant.
        """
        self._cancel_timer(timer_id)

        async def _timer_task() -> None:
            try:
                await asyncio.sleep(duration_ms / 1000.0)
                self._timers.pop(timer_id, None)
                await self.handle_event(
                    self._construct_timeout_event(timeout_event_type=timeout_event_type)
                )
            except asyncio.CancelledError:
                return

        self._timers[timer_id] = asyncio.create_task(_timer_task())

    def _cancel_timer(self, timer_id: str) -> None:
        """
        Cancel an in-flight timer if it exists.

        Idempotent: safe to call even if timer doesn't exist.
        """
        task = self._timers.pop(timer_id, None)
        if task is not None and not task.done():
            task.cancel()

    def _construct_timeout_event(self, *, timeout_event_type: EventType) -> Event:
        if timeout_event_type is EventType.ADVISOR_TICK:
            return AdvisorTick(event_type=EventType.ADVISOR_TICK, ts_ms=_now_ms())
        raise ValueError(f"No timeout event for {timeout_event_type}")
