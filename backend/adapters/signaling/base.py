"""
Signaling adapter contract (v1).

Purpose:
- Define the interface for exchanging a local negotiation offer for the
  remote answer.
- Keep all orchestration, retries, timing, and cancellation semantics
  OUT of the adapter.

Rules:
- This file contains NO logic.
- No retries.
- No knowledge of the state machine.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from orchestrator.profile import CapabilityProfile


class SignalingAdapter(ABC):
    """
    Abstract base class for signaling adapters.

    The adapter is a *dumb pipe*:
    offer -> signaling server -> answer.

    Coordinator responsibilities (NOT here):
    - When to negotiate
    - Retry policy
    - Error classification
    """

    @abstractmethod
    async def exchange_offer(self, offer: str, profile: CapabilityProfile) -> str:
        """
        Send the local offer and return the remote answer descriptor.

        Contract:
        - Must raise on any failure (transport, HTTP status, malformed body).
        - Must NOT retry internally.
        """
