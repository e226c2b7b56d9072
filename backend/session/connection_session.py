"""
Coordinator session container.

- Owns session identity, collaborators, and bounded histories
- Owns link status (mutable, gateway-controlled)
- Buffers outbound control messages for the client link
- NOT a state machine
- Contains no orchestration logic
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from constants import ERROR_HISTORY_MAX
from errors.records import ErrorRecord
from observability.action_log import ActionLog
from orchestrator.runtime_context import Collaborators
from session.connection_status import ConnectionStatus

if TYPE_CHECKING:
    from orchestrator.runtime import Runtime


# ---------------------------------------------------------------------
# ConnectionSession
# ---------------------------------------------------------------------


@dataclass
class ConnectionSession:
    """Mutable runtime container for a single coordinator session."""

    # ------------------------------------------------------------------
    # Identity / lifecycle
    # ------------------------------------------------------------------

    session_id: str
    collaborators: Collaborators
    created_at: float = field(default_factory=time.time)

    # ------------------------------------------------------------------
    # Link / gateway-controlled state
    # ------------------------------------------------------------------

    link_status: ConnectionStatus = ConnectionStatus.DOWN

    # ------------------------------------------------------------------
    # Runtime (executes commands + owns authoritative state)
    # ------------------------------------------------------------------

    runtime: Runtime | None = None

    # ------------------------------------------------------------------
    # Bounded histories
    # ------------------------------------------------------------------

    action_log: ActionLog = field(default_factory=ActionLog)
    error_history: deque[ErrorRecord] = field(
        default_factory=lambda: deque(maxlen=ERROR_HISTORY_MAX)
    )

    def __post_init__(self) -> None:
        self._control_out: deque[dict[str, Any]] = deque()
        self._control_ready = asyncio.Event()

    # ------------------------------------------------------------------
    # Wiring helpers
    # ------------------------------------------------------------------

    def attach_runtime(self, runtime: Runtime) -> None:
        """Attach the runtime executor. Called once by the coordinator."""
        self.runtime = runtime

    # ------------------------------------------------------------------
    # Observability helpers (read-only)
    # ------------------------------------------------------------------

    def log_context(self) -> dict[str, Any]:
        """Return standard logging context for this session."""
        return {
            "session_id": self.session_id,
            "link_status": self.link_status.value,
        }

    # ------------------------------------------------------------------
    # Outbound control messages
    # ------------------------------------------------------------------

    def enqueue_control(self, msg: dict[str, Any]) -> None:
        """
        Enqueue a control message for gateway delivery to the client.

        Messages are buffered in FIFO order and later retrieved via
        drain_control().
        """
        self._control_out.append(msg)
        self._control_ready.set()

    def drain_control(self) -> tuple[dict[str, Any], ...]:
        """
        Atomically drain all pending control messages.

        Returns:
            A FIFO-ordered tuple of control messages. Returns an empty
            tuple if no messages are pending.

        After this call, the control queue is empty.
        """
        self._control_ready.clear()
        if not self._control_out:
            return ()
        out = tuple(self._control_out)
        self._control_out.clear()
        return out

    async def wait_control(self) -> tuple[dict[str, Any], ...]:
        """Wait until at least one control message is pending, then drain."""
        await self._control_ready.wait()
        return self.drain_control()
