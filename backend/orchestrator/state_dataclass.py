"""
Authoritative coordinator state container.

Rules:
- This dataclass is a pure data model.
- It contains ALL state the reducer may ever need.
- No behavior, no helpers, no derived logic.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from constants import ADVISOR_TICK_INTERVAL_MS
from errors.records import ErrorRecord
from orchestrator.enums.state import ConnectionState
from orchestrator.profile import CapabilityProfile
from orchestrator.signals import OptimizationSuggestion


# =============================================================================
# Coordinator State
# =============================================================================

@dataclass(frozen=True)
class CoordinatorState:
    """Immutable snapshot of all coordinator-owned state."""

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------
    connection: ConnectionState = ConnectionState.DISCONNECTED

    # Monotonic negotiation counter. Bumped ONLY when a negotiation starts.
    run_id: int = 0

    # True between a StartRequested and the next StopRequested.
    # Survives a drop to DISCONNECTED so recovery may reconnect.
    session_active: bool = False

    # Media paused by a call interruption.
    paused: bool = False

    # ------------------------------------------------------------------
    # Capability
    # ------------------------------------------------------------------
    profile: CapabilityProfile = field(default_factory=CapabilityProfile)
    suggestion: OptimizationSuggestion | None = None

    # ------------------------------------------------------------------
    # Errors / recovery
    # ------------------------------------------------------------------
    current_error: ErrorRecord | None = None

    # Set when the engine refused an automatic attempt for budget reasons.
    # Cleared by success, manual retry, or stop.
    recovery_exhausted: bool = False

    # ------------------------------------------------------------------
    # Configuration seeded by the runtime
    # ------------------------------------------------------------------
    advisor_interval_ms: int = ADVISOR_TICK_INTERVAL_MS
