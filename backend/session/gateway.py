"""
Session gateway.

Responsibilities:
- Owns one ConnectionCoordinator per client link
- Tracks link_status independently of coordinator state
- Routes inbound JSON control messages -> coordinator operations
- Pushes STATE / ERROR messages to the client as they happen

NOT responsible for:
- Any state machine logic
- Recovery decisions
- Transport or signaling calls
"""

from __future__ import annotations

import asyncio
import json
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable
from uuid import uuid4

from errors.records import ErrorRecord
from observability.logger import log_event
from orchestrator.profile import CapabilityProfile
from orchestrator.runtime_context import Collaborators
from recovery.guided_steps import get_guided_steps
from session.connection_status import ConnectionStatus
from session.coordinator import ConnectionCoordinator, CoordinatorSnapshot, StartResult

if TYPE_CHECKING:
    from config import AppConfig


CollaboratorFactory = Callable[["AppConfig", str], Collaborators]


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _new_session_id() -> str:
    return f"sess_{uuid4().hex[:12]}"


# ------------------------------------------------------------------
# Gateway result
# ------------------------------------------------------------------

@dataclass(frozen=True)
class GatewayResult:
    """
    Return value for gateway boundary methods.

    outbound_json:
        JSON messages to send to client, in order
    """
    outbound_json: tuple[dict[str, Any], ...] = ()


# ------------------------------------------------------------------
# SessionGateway
# ------------------------------------------------------------------

class SessionGateway:
    """
    One gateway == one client link == one coordinator.

    Inbound messages:
        START {profile?}, STOP, RETRY, APPLY_SUGGESTION {profile},
        DISMISS_SUGGESTION, CLEAR_ERROR, GET_STATE, GET_GUIDED_STEPS

    Outbound messages:
        SESSION_INIT, STATE, ERROR, START_RESULT, GUIDED_STEPS
    """

    def __init__(
        self,
        *,
        config: AppConfig,
        collaborator_factory: CollaboratorFactory,
    ) -> None:
        self._config = config
        self._collaborator_factory = collaborator_factory
        self.coordinator: ConnectionCoordinator | None = None
        self._start_task: asyncio.Task[None] | None = None

    @property
    def session_id(self) -> str | None:
        if self.coordinator is None:
            return None
        return self.coordinator.session_id

    # ------------------------------------------------------------------
    # Link lifecycle
    # ------------------------------------------------------------------

    async def on_ws_connect(self) -> GatewayResult:
        """Called when a WebSocket connection is established."""
        session_id = _new_session_id()
        collaborators = self._collaborator_factory(self._config, session_id)

        coordinator = ConnectionCoordinator.from_config(
            self._config,
            collaborators,
            session_id=session_id,
        )
        coordinator.session.link_status = ConnectionStatus.UP
        coordinator.add_listeners(on_state=self._push_state, on_error=self._push_error)
        self.coordinator = coordinator

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "LINK_CONNECTED",
            **coordinator.session.log_context(),
        })

        init_msg: dict[str, Any] = {
            "type": "SESSION_INIT",
            "session_id": session_id,
            "state": coordinator.snapshot().to_dict(),
        }
        return GatewayResult(outbound_json=(init_msg,) + self._drain_control_out())

    async def on_ws_disconnect(self, reason: str | None = None) -> GatewayResult:
        """Called when the WebSocket disconnects. Stops the session."""
        coordinator = self.coordinator
        if coordinator is None:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "WS_DISCONNECT_WITHOUT_SESSION",
                "reason": reason,
            })
            return GatewayResult()

        coordinator.session.link_status = ConnectionStatus.CLOSING

        if self._start_task is not None and not self._start_task.done():
            self._start_task.cancel()
        await coordinator.shutdown()

        coordinator.session.link_status = ConnectionStatus.DOWN
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "LINK_DISCONNECTED",
            "reason": reason,
            **coordinator.session.log_context(),
        })
        return GatewayResult()

    # ------------------------------------------------------------------
    # Inbound control
    # ------------------------------------------------------------------

    async def on_json_message(self, payload: str) -> GatewayResult:
        """Route inbound JSON to coordinator operations."""
        coordinator = self.coordinator
        if coordinator is None:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "MESSAGE_WITHOUT_SESSION",
                "payload_preview": payload[:100],
            })
            return GatewayResult()

        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "JSON_DECODE_ERROR",
                "session_id": coordinator.session_id,
                "error": str(e),
                "payload_preview": payload[:100],
            })
            return GatewayResult()

        msg_type = data.get("type") if isinstance(data, dict) else None

        if msg_type == "START":
            profile: CapabilityProfile | None = None
            if data.get("profile") is not None:
                profile = self._parse_profile(data["profile"], msg_type)
                if profile is None:
                    return GatewayResult()
            self._begin_start(profile)
        elif msg_type == "APPLY_SUGGESTION":
            profile = self._parse_profile(data.get("profile"), msg_type)
            if profile is None:
                return GatewayResult()
            await coordinator.apply_suggested_profile(profile)
        elif msg_type == "STOP":
            await coordinator.stop()
        elif msg_type == "RETRY":
            await coordinator.retry_current_error()
        elif msg_type == "DISMISS_SUGGESTION":
            await coordinator.dismiss_suggestion()
        elif msg_type == "CLEAR_ERROR":
            await coordinator.clear_error()
        elif msg_type == "GET_STATE":
            coordinator.session.enqueue_control(
                {"type": "STATE", "state": coordinator.snapshot().to_dict()}
            )
        elif msg_type == "GET_GUIDED_STEPS":
            coordinator.session.enqueue_control({
                "type": "GUIDED_STEPS",
                "steps": [step.to_dict() for step in coordinator.guided_steps()],
            })
        else:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "UNKNOWN_MESSAGE_TYPE",
                "msg_type": msg_type,
                "session_id": coordinator.session_id,
            })
            return GatewayResult()

        return GatewayResult(outbound_json=self._drain_control_out())

    async def wait_outbound(self) -> GatewayResult:
        """Block until pushed messages are pending, then drain them."""
        assert self.coordinator is not None, "Coordinator must exist before waiting"
        return GatewayResult(outbound_json=await self.coordinator.session.wait_control())

    # ------------------------------------------------------------------
    # START runs in the background so RETRY / STOP stay responsive
    # ------------------------------------------------------------------

    def _begin_start(self, profile: CapabilityProfile | None) -> None:
        if self._start_task is not None and not self._start_task.done():
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "START_ALREADY_PENDING",
                "session_id": self.session_id,
            })
            return
        self._start_task = asyncio.create_task(self._run_start(profile))

    async def _run_start(self, profile: CapabilityProfile | None) -> None:
        coordinator = self.coordinator
        assert coordinator is not None
        result: StartResult = await coordinator.start(profile)
        coordinator.session.enqueue_control({"type": "START_RESULT", **result.to_dict()})

    def _parse_profile(self, raw: Any, msg_type: str) -> CapabilityProfile | None:
        try:
            if not isinstance(raw, dict):
                raise ValueError(f"profile must be an object, got {type(raw).__name__}")
            return CapabilityProfile.from_dict(raw)
        except ValueError as e:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "INVALID_PROFILE",
                "session_id": self.session_id,
                "msg_type": msg_type,
                "error": str(e),
            })
            return None

    # ------------------------------------------------------------------
    # Outbound pushes (run inside the runtime's serialized context)
    # ------------------------------------------------------------------

    def _push_state(self, snapshot: CoordinatorSnapshot) -> None:
        assert self.coordinator is not None
        self.coordinator.session.enqueue_control({"type": "STATE", "state": snapshot.to_dict()})

    def _push_error(self, error: ErrorRecord) -> None:
        assert self.coordinator is not None
        self.coordinator.session.enqueue_control({
            "type": "ERROR",
            "error": error.to_dict(),
            "guided_steps": [step.to_dict() for step in get_guided_steps(error)],
        })

    def _drain_control_out(self) -> tuple[dict[str, Any], ...]:
        if self.coordinator is None:
            return ()
        return self.coordinator.session.drain_control()
