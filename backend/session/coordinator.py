"""
Connection coordinator: the public API of one session.

Responsibilities:
- Build the session container, runtime and recovery engine
- Translate API calls into reducer events
- Expose observable state (snapshots, errors, action log)

Non-responsibilities:
- No transition logic (reducer)
- No side effects beyond dispatching events (runtime)
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable
from uuid import uuid4

from constants import ADVISOR_TICK_INTERVAL_MS, SUBSCRIBER_QUEUE_MAX
from errors.records import ErrorRecord
from observability.action_log import ActionLogEntry
from observability.logger import log_event
from orchestrator.enums.state import ConnectionState
from orchestrator.events import (
    ErrorCleared,
    ErrorReported,
    Event,
    EventType,
    StartRequested,
    StopRequested,
    SuggestionApplied,
    SuggestionDismissed,
    UserRetry,
)
from orchestrator.profile import CapabilityProfile
from orchestrator.runtime import Runtime
from orchestrator.runtime_context import Collaborators, RuntimeExecutionContext
from orchestrator.signals import OptimizationSuggestion
from orchestrator.state_dataclass import CoordinatorState
from recovery.guided_steps import RecoveryStep, get_guided_steps
from session.connection_session import ConnectionSession

if TYPE_CHECKING:
    from config import AppConfig


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _new_session_id() -> str:
    return f"sess_{uuid4().hex[:12]}"


_LIVE_STATES = (
    ConnectionState.CONNECTING,
    ConnectionState.CONNECTED,
    ConnectionState.RECONNECTING,
)


# ------------------------------------------------------------------
# Public value types
# ------------------------------------------------------------------

@dataclass(frozen=True)
class SessionHandle:
    """Identifies the live negotiation a successful start() produced."""
    session_id: str
    run_id: int
    profile: CapabilityProfile

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "run_id": self.run_id,
            "profile": self.profile.to_dict(),
        }


@dataclass(frozen=True)
class StartResult:
    """
    Outcome of start().

    Exactly one of: handle (success), error (negotiation failed),
    cancelled (stopped before negotiation finished).
    """
    handle: SessionHandle | None = None
    error: ErrorRecord | None = None
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return self.handle is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "handle": self.handle.to_dict() if self.handle is not None else None,
            "error": self.error.to_dict() if self.error is not None else None,
            "cancelled": self.cancelled,
        }


@dataclass(frozen=True)
class CoordinatorSnapshot:
    """Read-only view of coordinator state for UI observers."""
    connection: ConnectionState
    profile: CapabilityProfile
    paused: bool
    current_error: ErrorRecord | None
    suggestion: OptimizationSuggestion | None
    recovery_exhausted: bool
    run_id: int

    @staticmethod
    def of(state: CoordinatorState) -> CoordinatorSnapshot:
        return CoordinatorSnapshot(
            connection=state.connection,
            profile=state.profile,
            paused=state.paused,
            current_error=state.current_error,
            suggestion=state.suggestion,
            recovery_exhausted=state.recovery_exhausted,
            run_id=state.run_id,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "connection": self.connection.value,
            "profile": self.profile.to_dict(),
            "paused": self.paused,
            "current_error": (
                self.current_error.to_dict() if self.current_error is not None else None
            ),
            "suggestion": self.suggestion.to_dict() if self.suggestion is not None else None,
            "recovery_exhausted": self.recovery_exhausted,
            "run_id": self.run_id,
        }


def _offer(queue: asyncio.Queue[Any], item: Any) -> None:
    """Put without blocking; the oldest item is dropped when full."""
    if queue.full():
        queue.get_nowait()
    queue.put_nowait(item)


# ------------------------------------------------------------------
# ConnectionCoordinator
# ------------------------------------------------------------------

class ConnectionCoordinator:
    """
    One coordinator == one chat session.

    All mutating calls become events on the runtime's serialized queue,
    so callers on different tasks never race each other.
    """

    def __init__(
        self,
        *,
        collaborators: Collaborators,
        session_id: str | None = None,
        default_profile: CapabilityProfile | None = None,
        reconnect_on_drop: bool = False,
        advisor_interval_ms: int = ADVISOR_TICK_INTERVAL_MS,
    ) -> None:
        self.session = ConnectionSession(
            session_id=session_id or _new_session_id(),
            collaborators=collaborators,
        )
        self._runtime = Runtime(
            initial_state=CoordinatorState(
                profile=default_profile or CapabilityProfile(),
                advisor_interval_ms=advisor_interval_ms,
            ),
            context=RuntimeExecutionContext(session=self.session),
            reconnect_on_drop=reconnect_on_drop,
        )
        self.session.attach_runtime(self._runtime)

        self._subscribers: list[asyncio.Queue[CoordinatorSnapshot]] = []
        self._error_queues: list[asyncio.Queue[ErrorRecord]] = []
        self._runtime.add_state_listener(self._on_state_change)
        self._runtime.add_error_listener(self._on_error)

    @staticmethod
    def from_config(
        config: AppConfig,
        collaborators: Collaborators,
        session_id: str | None = None,
    ) -> ConnectionCoordinator:
        return ConnectionCoordinator(
            collaborators=collaborators,
            session_id=session_id,
            default_profile=config.default_profile(),
            reconnect_on_drop=config.reconnect_on_drop,
            advisor_interval_ms=config.advisor_interval_ms,
        )

    # ------------------------------------------------------------------
    # Observables
    # ------------------------------------------------------------------

    @property
    def session_id(self) -> str:
        return self.session.session_id

    @property
    def runtime(self) -> Runtime:
        return self._runtime

    @property
    def connection_state(self) -> ConnectionState:
        return self._runtime.state.connection

    @property
    def current_error(self) -> ErrorRecord | None:
        return self._runtime.state.current_error

    @property
    def profile(self) -> CapabilityProfile:
        return self._runtime.state.profile

    @property
    def paused(self) -> bool:
        return self._runtime.state.paused

    @property
    def suggestion(self) -> OptimizationSuggestion | None:
        return self._runtime.state.suggestion

    @property
    def recovery_exhausted(self) -> bool:
        return self._runtime.state.recovery_exhausted

    def snapshot(self) -> CoordinatorSnapshot:
        return CoordinatorSnapshot.of(self._runtime.state)

    def subscribe(self, maxsize: int = SUBSCRIBER_QUEUE_MAX) -> asyncio.Queue[CoordinatorSnapshot]:
        """Queue receiving a snapshot after every state change."""
        queue: asyncio.Queue[CoordinatorSnapshot] = asyncio.Queue(maxsize=maxsize)
        self._subscribers.append(queue)
        return queue

    def errors(self, maxsize: int = SUBSCRIBER_QUEUE_MAX) -> asyncio.Queue[ErrorRecord]:
        """Queue receiving each published ErrorRecord exactly once."""
        queue: asyncio.Queue[ErrorRecord] = asyncio.Queue(maxsize=maxsize)
        self._error_queues.append(queue)
        return queue

    def add_listeners(
        self,
        *,
        on_state: Callable[[CoordinatorSnapshot], None] | None = None,
        on_error: Callable[[ErrorRecord], None] | None = None,
    ) -> None:
        """Synchronous callbacks, run inside the runtime's serialized context."""
        if on_state is not None:
            self._runtime.add_state_listener(lambda _prev, new: on_state(CoordinatorSnapshot.of(new)))
        if on_error is not None:
            self._runtime.add_error_listener(on_error)

    def guided_steps(self) -> tuple[RecoveryStep, ...]:
        error = self.current_error
        if error is None:
            return ()
        return get_guided_steps(error)

    def action_log(self) -> tuple[ActionLogEntry, ...]:
        return self.session.action_log.entries()

    def error_history(self) -> tuple[ErrorRecord, ...]:
        return tuple(self.session.error_history)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, profile: CapabilityProfile | None = None) -> StartResult:
        """
        Start a session and wait for its first negotiation to finish.

        Already live: returns the current handle without renegotiating.
        """
        state = self._runtime.state
        if state.connection in _LIVE_STATES:
            return StartResult(handle=self._handle(state))

        await self._dispatch(
            StartRequested(
                event_type=EventType.START_REQUESTED,
                ts_ms=_now_ms(),
                profile=profile or state.profile,
            )
        )

        state = self._runtime.state
        if state.connection is not ConnectionState.CONNECTING:
            # Stopped or failed before this call observed the new run.
            return StartResult(error=state.current_error, cancelled=state.current_error is None)

        run_id = state.run_id
        outcome = await asyncio.shield(self._runtime.negotiation_outcome(run_id))
        # A fallback during negotiation hands over to the replacement run.
        while outcome.superseded_by is not None:
            run_id = outcome.superseded_by
            outcome = await asyncio.shield(self._runtime.negotiation_outcome(run_id))
        if outcome.cancelled:
            return StartResult(cancelled=True)
        if outcome.error is not None:
            return StartResult(error=outcome.error)
        return StartResult(handle=self._handle(self._runtime.state, run_id=run_id))

    async def stop(self) -> None:
        """Idempotent. Always leaves the coordinator DISCONNECTED."""
        await self._dispatch(StopRequested(event_type=EventType.STOP_REQUESTED, ts_ms=_now_ms()))

    async def shutdown(self) -> None:
        """Stop and release every task. The coordinator is not reusable."""
        await self.stop()
        await self._runtime.shutdown()

    # ------------------------------------------------------------------
    # UI operations
    # ------------------------------------------------------------------

    async def retry_current_error(self) -> None:
        await self._dispatch(UserRetry(event_type=EventType.USER_RETRY, ts_ms=_now_ms()))

    async def apply_suggested_profile(self, profile: CapabilityProfile) -> None:
        await self._dispatch(
            SuggestionApplied(
                event_type=EventType.SUGGESTION_APPLIED,
                ts_ms=_now_ms(),
                profile=profile,
            )
        )

    async def dismiss_suggestion(self) -> None:
        await self._dispatch(
            SuggestionDismissed(event_type=EventType.SUGGESTION_DISMISSED, ts_ms=_now_ms())
        )

    async def report_error(self, error: ErrorRecord, context: str = "collaborator") -> None:
        """Collaborator-originated failure during a session."""
        await self._dispatch(
            ErrorReported(
                event_type=EventType.ERROR_REPORTED,
                ts_ms=_now_ms(),
                error=error,
                context=context,
            )
        )

    async def clear_error(self) -> None:
        await self._dispatch(ErrorCleared(event_type=EventType.ERROR_CLEARED, ts_ms=_now_ms()))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _dispatch(self, event: Event) -> None:
        await self._runtime.handle_event(event)

    def _handle(self, state: CoordinatorState, run_id: int | None = None) -> SessionHandle:
        return SessionHandle(
            session_id=self.session_id,
            run_id=state.run_id if run_id is None else run_id,
            profile=state.profile,
        )

    def _on_state_change(self, _prev: CoordinatorState, new: CoordinatorState) -> None:
        snapshot = CoordinatorSnapshot.of(new)
        for queue in self._subscribers:
            _offer(queue, snapshot)

    def _on_error(self, error: ErrorRecord) -> None:
        for queue in self._error_queues:
            if queue.full():
                log_event({
                    "ts_ms": _now_ms(),
                    "event_type": "ERROR_SUBSCRIBER_OVERFLOW",
                    "session_id": self.session_id,
                    "dropped_kind": queue.get_nowait().kind.value,
                })
            queue.put_nowait(error)
