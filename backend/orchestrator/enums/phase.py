"""
Transport negotiation phase enumeration.

Produced by the transport collaborator. Folded into ConnectionState by the
reducer; never read by the UI or the recovery engine.
"""

from __future__ import annotations

from enum import Enum


class TransportPhase(str, Enum):
    """Fine-grained connectivity phase reported by the transport."""

    NEW = "NEW"
    CHECKING = "CHECKING"
    CONNECTED = "CONNECTED"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    DISCONNECTED = "DISCONNECTED"
    CLOSED = "CLOSED"
