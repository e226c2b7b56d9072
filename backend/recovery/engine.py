"""
Error recovery engine.

Responsibilities:
- Choose and initiate the automatic response to a classified failure
  (retry, capability fallback, audio device switch, resume)
- Gate budgeted actions through the per-kind RetryBudget
- Run delayed retries and device switches as registered tasks
- Report every outcome back as an event (single entry point)

Non-responsibilities:
- NO state transitions (the reducer decides what an outcome means)
- NO user messages (errors.messages owns them)
- NO transport calls

All public methods are called from the runtime's serialized context.
"""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, Iterable

from errors.classify import classify_exception
from errors.kinds import AudioDeviceDetail, AudioErrorCause, ErrorKind
from errors.records import ErrorRecord, make_error_record
from observability.logger import log_event
from orchestrator.cancellation import CancellationManager
from orchestrator.events import (
    DeviceSwitched,
    DeviceSwitchFailed,
    DowngradeRequested,
    Event,
    EventType,
    RecoveryDeclined,
    ResumeRequested,
    RetryReady,
)
from orchestrator.profile import downgrade_profile
from orchestrator.retry import RetryBudget, RetryVerdict, get_retry_delay_ms
from orchestrator.runtime_context import AudioDeviceProtocol
from orchestrator.state_dataclass import CoordinatorState
from recovery.devices import select_alternative_device
from recovery.guided_steps import RecoveryStep, get_guided_steps
from recovery.policy import RecoveryAction, is_budgeted, select_action


EventSink = Callable[[Event], Awaitable[None]]
GetStateFn = Callable[[], CoordinatorState]
ClockFn = Callable[[], int]


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


# Task keys owned by the engine inside the shared CancellationManager.
TASK_PREFIX = "recovery:"
TASK_DEVICE_SWITCH = "recovery:device_switch"


def _retry_task_key(kind: ErrorKind) -> str:
    return f"{TASK_PREFIX}retry:{kind.value}"


class RecoveryEngine:
    """
    Decides and initiates automatic recovery.

    attempt_recovery() returns True iff an action was initiated. Declines
    are reported as RecoveryDeclined events so the reducer can surface
    an exhausted budget.
    """

    def __init__(
        self,
        *,
        emit_event: EventSink,
        get_state: GetStateFn,
        tasks: CancellationManager,
        audio: AudioDeviceProtocol | None = None,
        budget: RetryBudget | None = None,
        clock: ClockFn = _now_ms,
        session_id: str | None = None,
    ) -> None:
        self._emit_event = emit_event
        self._get_state = get_state
        self._tasks = tasks
        self._audio = audio
        self._budget = budget if budget is not None else RetryBudget()
        self._clock = clock
        self._session_id = session_id

        # Last verdict handed out by the budget (observability / tests).
        self.last_verdict: RetryVerdict | None = None

    @property
    def budget(self) -> RetryBudget:
        return self._budget

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def attempt_recovery(self, error: ErrorRecord, context: str) -> bool:
        """Initiate the automatic action for error. Never raises."""
        action = select_action(error)

        if action is RecoveryAction.NONE:
            await self._decline(error, "not_retryable", action, context)
            return False

        if action is RecoveryAction.RESUME:
            self._log("RECOVERY_RESUME", error, action, context)
            await self._emit_event(
                ResumeRequested(event_type=EventType.RESUME_REQUESTED, ts_ms=self._clock())
            )
            return True

        if action is RecoveryAction.FALLBACK:
            return await self._fallback(error, context)

        audio = self._audio
        if action is RecoveryAction.DEVICE_SWITCH and audio is None:
            await self._decline(error, "no_audio_collaborator", action, context)
            return False

        if not is_budgeted(action):
            await self._decline(error, "unsupported_action", action, context)
            return False

        verdict = self._budget.consume(error.kind, now_ms=self._clock())
        self.last_verdict = verdict
        if not verdict.allowed:
            await self._decline(error, "budget_exhausted", action, context)
            return False

        self._log(
            "RECOVERY_ATTEMPT",
            error,
            action,
            context,
            attempt=verdict.attempt,
            remaining=verdict.remaining,
            exhausted=verdict.exhausted,
        )

        if action is RecoveryAction.DEVICE_SWITCH and audio is not None:
            self._tasks.spawn(TASK_DEVICE_SWITCH, self._switch_device_task(audio))
        else:
            self._schedule_retry(error.kind, verdict.attempt)
        return True

    def get_guided_steps(self, error: ErrorRecord) -> tuple[RecoveryStep, ...]:
        return get_guided_steps(error)

    def record_success(self, kinds: Iterable[ErrorKind]) -> None:
        """Operations for kinds succeeded: their counters return to 0."""
        for kind in kinds:
            self._budget.record_success(kind)

    def reset(self) -> None:
        """Empty the budget and cancel every pending recovery task."""
        self._budget.reset()
        self._tasks.cancel_prefix(TASK_PREFIX)
        self.last_verdict = None

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def _fallback(self, error: ErrorRecord, context: str) -> bool:
        current = self._get_state().profile
        lower = downgrade_profile(current)
        if lower is None:
            await self._decline(error, "no_lower_tier", RecoveryAction.FALLBACK, context)
            return False

        self._log(
            "RECOVERY_ATTEMPT",
            error,
            RecoveryAction.FALLBACK,
            context,
            from_video_mode=current.video_mode.value,
            to_video_mode=lower.video_mode.value,
        )
        await self._emit_event(
            DowngradeRequested(
                event_type=EventType.DOWNGRADE_REQUESTED,
                ts_ms=self._clock(),
                profile=lower,
                reason=error.kind,
            )
        )
        return True

    def _schedule_retry(self, kind: ErrorKind, attempt: int) -> None:
        delay_ms = get_retry_delay_ms(attempt_number=attempt)
        run_id = self._get_state().run_id

        async def _retry_task() -> None:
            await asyncio.sleep(delay_ms / 1000.0)
            await self._emit_event(
                RetryReady(
                    event_type=EventType.RETRY_READY,
                    ts_ms=self._clock(),
                    run_id=run_id,
                    kind=kind,
                )
            )

        self._tasks.spawn(_retry_task_key(kind), _retry_task())

    async def _switch_device_task(self, audio: AudioDeviceProtocol) -> None:
        target = None
        try:
            devices = await audio.list_devices()
            current = await audio.current_device()
            target = select_alternative_device(devices, current)
            if target is None:
                failure = make_error_record(
                    AudioDeviceDetail(
                        cause=AudioErrorCause.DEVICE_UNAVAILABLE,
                        device_name=current.name if current is not None else None,
                    ),
                    ts_ms=self._clock(),
                )
                await self._emit_switch_failed(failure)
                return
            await audio.select_device(target)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # pylint: disable=broad-exception-caught
            failure = classify_exception(
                exc,
                ts_ms=self._clock(),
                default_kind=ErrorKind.AUDIO_DEVICE,
            )
            if failure.kind is not ErrorKind.AUDIO_DEVICE:
                failure = make_error_record(
                    AudioDeviceDetail(
                        cause=AudioErrorCause.ROUTING_FAILED,
                        device_name=target.name if target is not None else None,
                    ),
                    ts_ms=self._clock(),
                )
            await self._emit_switch_failed(failure)
            return

        log_event({
            "ts_ms": self._clock(),
            "event_type": "AUDIO_DEVICE_SWITCHED",
            "session_id": self._session_id,
            "device": target.to_dict(),
        })
        await self._emit_event(
            DeviceSwitched(
                event_type=EventType.DEVICE_SWITCHED,
                ts_ms=self._clock(),
                device=target,
            )
        )

    async def _emit_switch_failed(self, failure: ErrorRecord) -> None:
        await self._emit_event(
            DeviceSwitchFailed(
                event_type=EventType.DEVICE_SWITCH_FAILED,
                ts_ms=self._clock(),
                error=failure,
            )
        )

    async def _decline(
        self,
        error: ErrorRecord,
        reason: str,
        action: RecoveryAction,
        context: str,
    ) -> None:
        self._log("RECOVERY_DECLINED", error, action, context, reason=reason)
        await self._emit_event(
            RecoveryDeclined(
                event_type=EventType.RECOVERY_DECLINED,
                ts_ms=self._clock(),
                error=error,
                reason=reason,
            )
        )

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------

    def _log(
        self,
        event_type: str,
        error: ErrorRecord,
        action: RecoveryAction,
        context: str,
        **details: object,
    ) -> None:
        log_event({
            "ts_ms": self._clock(),
            "event_type": event_type,
            "session_id": self._session_id,
            "kind": error.kind.value,
            "error_code": error.error_code,
            "action": action.value,
            "context": context,
            "details": details,
        })
