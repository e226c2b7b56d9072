"""
BEHAVIOR-AS-CONSTANTS
---------------------
Single source of truth for all behavioral invariants of the coordinator.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Other modules MUST import from this file.
"""

from __future__ import annotations

from typing import Final, Tuple

# =============================================================================
# Recovery budget
# =============================================================================

# Automatic attempts allowed per error kind inside one rolling window.
MAX_RECOVERY_ATTEMPTS: Final[int] = 3

# Rolling window for the per-kind budget. An entry older than this restarts.
RECOVERY_WINDOW_MS: Final[int] = 60_000

# Backoff before retry attempt N (clamped to the last slot).
RECOVERY_RETRY_DELAYS_MS: Final[Tuple[int, ...]] = (500, 1_000, 2_000)

# Upstream API status codes that are worth repeating.
RETRYABLE_API_STATUS_CODES: Final[frozenset[int]] = frozenset({429, 500, 502, 503, 504})

# =============================================================================
# Resource optimization advisor
# =============================================================================

ADVISOR_TICK_INTERVAL_MS: Final[int] = 10_000

LOW_BATTERY_PERCENT: Final[int] = 20

LOW_MEMORY_BYTES: Final[int] = 100 * 1024 * 1024

# =============================================================================
# Bounded histories
# =============================================================================

ACTION_LOG_MAX_ENTRIES: Final[int] = 100

ERROR_HISTORY_MAX: Final[int] = 50

# Per-subscriber snapshot queue depth. Oldest snapshot is dropped when full.
SUBSCRIBER_QUEUE_MAX: Final[int] = 32

# =============================================================================
# Signaling
# =============================================================================

SIGNALING_CALL_PATH: Final[str] = "/rtc"

SIGNALING_DEFAULT_TIMEOUT_S: Final[float] = 30.0

# =============================================================================
# Collaborators
# =============================================================================

# Upper bound on inline collaborator calls made from the event loop
# (transport close, media pause/resume).
COLLABORATOR_CALL_TIMEOUT_S: Final[float] = 5.0
