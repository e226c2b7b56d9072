"""
Authoritative connection state enumeration.

Rules:
- This enum defines ONLY the coarse connection states exposed to the UI.
- No behavior, no helper methods, no side effects.
- Transitions are defined exclusively in the reducer.
"""

from __future__ import annotations

from enum import Enum


class ConnectionState(str, Enum):
    """
    Single source of truth for the lifecycle of one chat session.

    These states represent the attempt to establish and keep a session,
    NOT the fine-grained transport negotiation phase.
    """

    DISCONNECTED = "DISCONNECTED"
    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"
    RECONNECTING = "RECONNECTING"
    FAILED = "FAILED"
