"""
Error taxonomy: the closed set of error kinds and their context variants.

Rules:
- ErrorKind is closed; adding a kind means adding a detail variant,
  a message table entry, and a policy decision.
- Each detail variant is an immutable value carrying kind-specific context.
- No behavior beyond the `kind` discriminant.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

from orchestrator.enums.signals import NetworkQuality


# =============================================================================
# Error Kind
# =============================================================================

class ErrorKind(str, Enum):
    """Closed classification of failure causes."""

    NETWORK = "NETWORK"
    PERMISSION = "PERMISSION"
    TRANSPORT_NEGOTIATION = "TRANSPORT_NEGOTIATION"
    AUDIO_DEVICE = "AUDIO_DEVICE"
    CAMERA = "CAMERA"
    SCREEN_CAPTURE = "SCREEN_CAPTURE"
    SERVICE = "SERVICE"
    CALL_INTERRUPTION = "CALL_INTERRUPTION"
    BATTERY = "BATTERY"
    NETWORK_QUALITY = "NETWORK_QUALITY"
    UPSTREAM_API = "UPSTREAM_API"
    DEVICE_STATE = "DEVICE_STATE"


# =============================================================================
# Cause enumerations
# =============================================================================

class NetworkErrorCause(str, Enum):
    NO_INTERNET = "NO_INTERNET"
    SERVER_UNREACHABLE = "SERVER_UNREACHABLE"
    TIMEOUT = "TIMEOUT"
    DNS_FAILURE = "DNS_FAILURE"
    SSL_ERROR = "SSL_ERROR"
    UNKNOWN = "UNKNOWN"


class PermissionType(str, Enum):
    MICROPHONE = "MICROPHONE"
    CAMERA = "CAMERA"
    SCREEN_CAPTURE = "SCREEN_CAPTURE"
    NOTIFICATION = "NOTIFICATION"

    @property
    def display_name(self) -> str:
        return _PERMISSION_DISPLAY_NAMES[self]


_PERMISSION_DISPLAY_NAMES: dict[PermissionType, str] = {
    PermissionType.MICROPHONE: "Microphone",
    PermissionType.CAMERA: "Camera",
    PermissionType.SCREEN_CAPTURE: "Screen Recording",
    PermissionType.NOTIFICATION: "Notifications",
}


class TransportErrorCause(str, Enum):
    PEER_CONNECTION_FAILED = "PEER_CONNECTION_FAILED"
    ICE_CONNECTION_FAILED = "ICE_CONNECTION_FAILED"
    MEDIA_STREAM_FAILED = "MEDIA_STREAM_FAILED"
    SDP_ERROR = "SDP_ERROR"
    UNKNOWN = "UNKNOWN"


class AudioErrorCause(str, Enum):
    DEVICE_UNAVAILABLE = "DEVICE_UNAVAILABLE"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    DEVICE_BUSY = "DEVICE_BUSY"
    ROUTING_FAILED = "ROUTING_FAILED"
    FOCUS_LOST = "FOCUS_LOST"
    UNKNOWN = "UNKNOWN"


class CameraErrorCause(str, Enum):
    PERMISSION_DENIED = "PERMISSION_DENIED"
    CAMERA_UNAVAILABLE = "CAMERA_UNAVAILABLE"
    CAMERA_BUSY = "CAMERA_BUSY"
    CAMERA_DISCONNECTED = "CAMERA_DISCONNECTED"
    UNKNOWN = "UNKNOWN"


class ScreenCaptureErrorCause(str, Enum):
    PERMISSION_DENIED = "PERMISSION_DENIED"
    MEDIA_PROJECTION_FAILED = "MEDIA_PROJECTION_FAILED"
    DISPLAY_UNAVAILABLE = "DISPLAY_UNAVAILABLE"
    SECURITY_RESTRICTED = "SECURITY_RESTRICTED"
    UNKNOWN = "UNKNOWN"


class CallState(str, Enum):
    INCOMING = "INCOMING"
    ACTIVE = "ACTIVE"
    ENDED = "ENDED"


class BatteryErrorCause(str, Enum):
    LOW_BATTERY = "LOW_BATTERY"
    POWER_SAVE_MODE = "POWER_SAVE_MODE"
    BACKGROUND_RESTRICTED = "BACKGROUND_RESTRICTED"
    UNKNOWN = "UNKNOWN"


class DeviceStateChange(str, Enum):
    ORIENTATION_CHANGED = "ORIENTATION_CHANGED"
    HEADPHONES_DISCONNECTED = "HEADPHONES_DISCONNECTED"
    HEADPHONES_CONNECTED = "HEADPHONES_CONNECTED"
    BLUETOOTH_DISCONNECTED = "BLUETOOTH_DISCONNECTED"
    BLUETOOTH_CONNECTED = "BLUETOOTH_CONNECTED"
    NETWORK_CHANGED = "NETWORK_CHANGED"


# =============================================================================
# Detail variants (one per ErrorKind)
# =============================================================================

@dataclass(frozen=True)
class NetworkDetail:
    cause: NetworkErrorCause = NetworkErrorCause.UNKNOWN
    details: str | None = None
    kind: ErrorKind = ErrorKind.NETWORK


@dataclass(frozen=True)
class PermissionDetail:
    permission: PermissionType
    permanently_denied: bool = False
    kind: ErrorKind = ErrorKind.PERMISSION


@dataclass(frozen=True)
class TransportDetail:
    cause: TransportErrorCause = TransportErrorCause.UNKNOWN
    details: str | None = None
    kind: ErrorKind = ErrorKind.TRANSPORT_NEGOTIATION


@dataclass(frozen=True)
class AudioDeviceDetail:
    cause: AudioErrorCause = AudioErrorCause.UNKNOWN
    device_name: str | None = None
    kind: ErrorKind = ErrorKind.AUDIO_DEVICE


@dataclass(frozen=True)
class CameraDetail:
    cause: CameraErrorCause = CameraErrorCause.UNKNOWN
    camera_id: str | None = None
    kind: ErrorKind = ErrorKind.CAMERA


@dataclass(frozen=True)
class ScreenCaptureDetail:
    cause: ScreenCaptureErrorCause = ScreenCaptureErrorCause.UNKNOWN
    details: str | None = None
    kind: ErrorKind = ErrorKind.SCREEN_CAPTURE


@dataclass(frozen=True)
class ServiceDetail:
    service_name: str
    reason: str | None = None
    kind: ErrorKind = ErrorKind.SERVICE


@dataclass(frozen=True)
class CallInterruptionDetail:
    call_state: CallState
    details: str | None = None
    kind: ErrorKind = ErrorKind.CALL_INTERRUPTION


@dataclass(frozen=True)
class BatteryDetail:
    cause: BatteryErrorCause = BatteryErrorCause.UNKNOWN
    battery_level: int | None = None
    kind: ErrorKind = ErrorKind.BATTERY


@dataclass(frozen=True)
class NetworkQualityDetail:
    current: NetworkQuality
    minimum_required: NetworkQuality = NetworkQuality.FAIR
    kind: ErrorKind = ErrorKind.NETWORK_QUALITY


@dataclass(frozen=True)
class UpstreamApiDetail:
    status_code: int
    message: str = ""
    endpoint: str | None = None
    kind: ErrorKind = ErrorKind.UPSTREAM_API


@dataclass(frozen=True)
class DeviceStateDetail:
    change: DeviceStateChange
    details: str | None = None
    kind: ErrorKind = ErrorKind.DEVICE_STATE


ErrorDetail = Union[
    NetworkDetail,
    PermissionDetail,
    TransportDetail,
    AudioDeviceDetail,
    CameraDetail,
    ScreenCaptureDetail,
    ServiceDetail,
    CallInterruptionDetail,
    BatteryDetail,
    NetworkQualityDetail,
    UpstreamApiDetail,
    DeviceStateDetail,
]


# =============================================================================
# Collaborator-raised exception
# =============================================================================

class ClassifiedError(Exception):
    """
    Exception raised by collaborators that already know their error kind.

    The coordinator converts it to an ErrorRecord without guessing.
    """

    def __init__(self, detail: ErrorDetail, message: str | None = None) -> None:
        super().__init__(message or f"{detail.kind.value}: {detail}")
        self.detail = detail
