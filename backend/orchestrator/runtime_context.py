"""
Runtime execution context.

Provides Runtime with live access to session-owned imperative resources
needed for command execution and side effects (collaborators, logs, status).

This module contains:
- Narrow Protocols (capabilities, not implementations)
- Zero orchestration logic
- Zero state mutation
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, AsyncIterator, Protocol, Sequence, runtime_checkable

from orchestrator.enums.phase import TransportPhase
from orchestrator.enums.signals import NetworkQuality
from orchestrator.profile import CapabilityProfile
from orchestrator.signals import AudioDevice, BatteryLevel, InterruptionSignal
from session.connection_status import ConnectionStatus

if TYPE_CHECKING:
    from errors.records import ErrorRecord
    from observability.action_log import ActionLog
    from session.connection_session import ConnectionSession


# ---------------------------------------------------------------------
# Collaborator Protocols
# ---------------------------------------------------------------------

@runtime_checkable
class TransportProtocol(Protocol):
    """
    Peer transport (e.g. a WebRTC peer connection).

    Contract:
    - observe_connection_phase() yields phases in emission order
    - create_negotiation_offer() returns an SDP offer
    - any method may raise; the runtime classifies the failure
    """

    def observe_connection_phase(self) -> AsyncIterator[TransportPhase]: ...
    async def prepare_local_media(self, profile: CapabilityProfile) -> None: ...
    async def create_negotiation_offer(self) -> str: ...
    async def apply_remote_descriptor(self, descriptor: str) -> None: ...
    async def close(self) -> None: ...


@runtime_checkable
class SignalingProtocol(Protocol):
    async def exchange_offer(self, offer: str, profile: CapabilityProfile) -> str:
        """Send the local offer, return the remote answer."""


@runtime_checkable
class InterruptionSourceProtocol(Protocol):
    def observe_interruptions(self) -> AsyncIterator[InterruptionSignal]: ...


@runtime_checkable
class AudioDeviceProtocol(Protocol):
    async def list_devices(self) -> Sequence[AudioDevice]: ...
    async def current_device(self) -> AudioDevice | None: ...
    async def select_device(self, device: AudioDevice) -> None: ...
    async def pause(self) -> None: ...
    async def resume(self) -> None: ...


@runtime_checkable
class BatteryMonitorProtocol(Protocol):
    async def get_battery_level(self) -> BatteryLevel: ...


@runtime_checkable
class NetworkMonitorProtocol(Protocol):
    async def get_network_quality(self) -> NetworkQuality: ...


@runtime_checkable
class MemoryProbeProtocol(Protocol):
    async def get_available_memory(self) -> int:
        """Available memory in bytes."""


# ---------------------------------------------------------------------
# Collaborator bundle
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class Collaborators:
    """
    Everything the coordinator talks to.

    transport and signaling are required. A missing optional collaborator
    disables the feature that depends on it.
    """

    transport: TransportProtocol
    signaling: SignalingProtocol
    interruptions: InterruptionSourceProtocol | None = None
    audio: AudioDeviceProtocol | None = None
    battery: BatteryMonitorProtocol | None = None
    network: NetworkMonitorProtocol | None = None
    memory: MemoryProbeProtocol | None = None


# ---------------------------------------------------------------------
# Runtime Execution Context
# ---------------------------------------------------------------------

class RuntimeExecutionContext:
    """
    Imperative execution context for Runtime.

    This object provides *live views* into session-owned resources
    so Runtime does not need to synchronize or cache anything.

    Runtime is allowed to:
    - Call collaborators
    - Append to the action log and error history
    - Observe link status

    Runtime is NOT allowed to:
    - Mutate session state directly
    - Perform orchestration decisions
    """

    def __init__(self, session: ConnectionSession) -> None:
        self.session = session

    # ----------------------------
    # Session metadata
    # ----------------------------

    @property
    def session_id(self) -> str:
        return self.session.session_id

    @property
    def link_status(self) -> ConnectionStatus:
        return self.session.link_status

    # ----------------------------
    # Collaborators
    # ----------------------------

    @property
    def transport(self) -> TransportProtocol:
        return self.session.collaborators.transport

    @property
    def signaling(self) -> SignalingProtocol:
        return self.session.collaborators.signaling

    @property
    def interruptions(self) -> InterruptionSourceProtocol | None:
        return self.session.collaborators.interruptions

    @property
    def audio(self) -> AudioDeviceProtocol | None:
        return self.session.collaborators.audio

    @property
    def battery(self) -> BatteryMonitorProtocol | None:
        return self.session.collaborators.battery

    @property
    def network(self) -> NetworkMonitorProtocol | None:
        return self.session.collaborators.network

    @property
    def memory(self) -> MemoryProbeProtocol | None:
        return self.session.collaborators.memory

    # ----------------------------
    # Observability sinks
    # ----------------------------

    @property
    def action_log(self) -> ActionLog:
        return self.session.action_log

    def record_error(self, error: ErrorRecord) -> None:
        self.session.error_history.append(error)
