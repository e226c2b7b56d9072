"""
UI link status for a coordinator session.

The link is the client bridge (WebSocket) that drives the coordinator.
It is tracked separately from ConnectionState, which describes the peer
transport. A session may be CONNECTED to its peer while the link is DOWN
(client went away before stop) and vice versa.

This is pure data owned by SessionGateway, not by coordinator state.
"""
from enum import Enum


class ConnectionStatus(str, Enum):
    """Client link lifecycle."""

    DOWN = "DOWN"           # No client attached
    UP = "UP"               # Client attached and receiving updates
    CLOSING = "CLOSING"     # Client left; coordinator being stopped
