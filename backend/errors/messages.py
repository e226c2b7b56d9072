"""
Static user-facing text for every error kind.

Rules:
- Pure data and table lookups. No clocks, no IO.
- This is the ONLY module that carries error message strings; the
  coordinator and the recovery engine never format messages themselves.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from constants import RETRYABLE_API_STATUS_CODES
from errors.kinds import (
    AudioDeviceDetail,
    AudioErrorCause,
    BatteryDetail,
    BatteryErrorCause,
    CallInterruptionDetail,
    CallState,
    CameraDetail,
    CameraErrorCause,
    DeviceStateChange,
    DeviceStateDetail,
    ErrorDetail,
    NetworkDetail,
    NetworkErrorCause,
    NetworkQualityDetail,
    PermissionDetail,
    PermissionType,
    ScreenCaptureDetail,
    ScreenCaptureErrorCause,
    ServiceDetail,
    TransportDetail,
    TransportErrorCause,
    UpstreamApiDetail,
)


@dataclass(frozen=True)
class Description:
    """Self-description of one error instance."""

    error_code: str
    user_message: str
    technical_message: str
    retryable: bool
    suggestions: tuple[str, ...]


# =============================================================================
# Network
# =============================================================================

_NETWORK_MESSAGES: dict[NetworkErrorCause, str] = {
    NetworkErrorCause.NO_INTERNET: "No internet connection available",
    NetworkErrorCause.SERVER_UNREACHABLE: "Unable to reach the chat server",
    NetworkErrorCause.TIMEOUT: "Connection timed out",
    NetworkErrorCause.DNS_FAILURE: "Unable to resolve server address",
    NetworkErrorCause.SSL_ERROR: "Secure connection failed",
    NetworkErrorCause.UNKNOWN: "Network connection error",
}

_NETWORK_SUGGESTIONS: dict[NetworkErrorCause, tuple[str, ...]] = {
    NetworkErrorCause.NO_INTERNET: (
        "Check your WiFi or mobile data connection",
        "Try switching between WiFi and mobile data",
        "Move closer to your router if using WiFi",
    ),
    NetworkErrorCause.SERVER_UNREACHABLE: (
        "Check if the server URL is correct in settings",
        "Try again in a few moments",
        "Contact support if the problem persists",
    ),
    NetworkErrorCause.TIMEOUT: (
        "Check your internet connection speed",
        "Try switching to a different network",
        "Retry the connection",
    ),
}

_NETWORK_DEFAULT_SUGGESTIONS: tuple[str, ...] = (
    "Check your internet connection",
    "Try again in a few moments",
    "Restart the app if the problem persists",
)


def _describe_network(d: NetworkDetail) -> Description:
    return Description(
        error_code="NETWORK_ERROR",
        user_message=_NETWORK_MESSAGES[d.cause],
        technical_message=d.details or f"Network error: {d.cause.value}",
        retryable=True,
        suggestions=_NETWORK_SUGGESTIONS.get(d.cause, _NETWORK_DEFAULT_SUGGESTIONS),
    )


# =============================================================================
# Permission
# =============================================================================

_PERMISSION_MESSAGES: dict[PermissionType, str] = {
    PermissionType.MICROPHONE: "Microphone permission is required for voice chat",
    PermissionType.CAMERA: "Camera permission is required for video chat",
    PermissionType.SCREEN_CAPTURE: "Screen recording permission is required for screen sharing",
    PermissionType.NOTIFICATION: "Notification permission is required for call alerts",
}


def _describe_permission(d: PermissionDetail) -> Description:
    name = d.permission.display_name
    if d.permanently_denied:
        suggestions: tuple[str, ...] = (
            "Go to Settings > Apps > Permissions",
            f"Enable {name} permission",
            "Restart the app after granting permissions",
        )
    elif d.permission is PermissionType.CAMERA:
        suggestions = (
            f"Tap 'Allow' when prompted for {name} permission",
            "Switch to audio-only mode if camera is not needed",
        )
    else:
        suggestions = (f"Tap 'Allow' when prompted for {name} permission",)

    return Description(
        error_code="PERMISSION_DENIED",
        user_message=_PERMISSION_MESSAGES[d.permission],
        technical_message=(
            f"Permission denied: {d.permission.value} "
            f"(permanent: {str(d.permanently_denied).lower()})"
        ),
        retryable=not d.permanently_denied,
        suggestions=suggestions,
    )


# =============================================================================
# Transport negotiation
# =============================================================================

_TRANSPORT_MESSAGES: dict[TransportErrorCause, str] = {
    TransportErrorCause.PEER_CONNECTION_FAILED: "Failed to establish call connection",
    TransportErrorCause.ICE_CONNECTION_FAILED: "Network connection failed",
    TransportErrorCause.MEDIA_STREAM_FAILED: "Failed to access media devices",
    TransportErrorCause.SDP_ERROR: "Call setup failed",
    TransportErrorCause.UNKNOWN: "Call connection error",
}

_TRANSPORT_SUGGESTIONS: dict[TransportErrorCause, tuple[str, ...]] = {
    TransportErrorCause.ICE_CONNECTION_FAILED: (
        "Check your internet connection",
        "Try switching networks",
        "Disable VPN if active",
    ),
    TransportErrorCause.MEDIA_STREAM_FAILED: (
        "Check camera and microphone permissions",
        "Close other apps using camera/microphone",
        "Try switching to audio-only mode",
    ),
}

_TRANSPORT_DEFAULT_SUGGESTIONS: tuple[str, ...] = (
    "Check your internet connection",
    "Try switching to audio-only mode",
    "Restart the app if the problem persists",
)


def _describe_transport(d: TransportDetail) -> Description:
    return Description(
        error_code="TRANSPORT_NEGOTIATION_ERROR",
        user_message=_TRANSPORT_MESSAGES[d.cause],
        technical_message=d.details or f"Transport negotiation error: {d.cause.value}",
        retryable=True,
        suggestions=_TRANSPORT_SUGGESTIONS.get(d.cause, _TRANSPORT_DEFAULT_SUGGESTIONS),
    )


# =============================================================================
# Audio device
# =============================================================================

_AUDIO_MESSAGES: dict[AudioErrorCause, str] = {
    AudioErrorCause.DEVICE_UNAVAILABLE: "Audio device is not available",
    AudioErrorCause.PERMISSION_DENIED: "Microphone permission is required",
    AudioErrorCause.DEVICE_BUSY: "Audio device is being used by another app",
    AudioErrorCause.ROUTING_FAILED: "Failed to route audio to selected device",
    AudioErrorCause.FOCUS_LOST: "Audio focus was lost to another app",
    AudioErrorCause.UNKNOWN: "Audio device error",
}

_AUDIO_SUGGESTIONS: dict[AudioErrorCause, tuple[str, ...]] = {
    AudioErrorCause.DEVICE_BUSY: (
        "Close other apps using the microphone",
        "Try unplugging and reconnecting headphones",
        "Restart the app to reset audio settings",
    ),
    AudioErrorCause.ROUTING_FAILED: (
        "Try switching to a different audio device",
        "Check headphone connection",
        "Restart the app if the problem persists",
    ),
    AudioErrorCause.FOCUS_LOST: (
        "Close other audio apps",
        "Try starting the call again",
        "Check notification settings",
    ),
}

_AUDIO_DEFAULT_SUGGESTIONS: tuple[str, ...] = (
    "Check microphone permissions",
    "Try unplugging and reconnecting headphones",
    "Restart the app to reset audio settings",
)


def _describe_audio(d: AudioDeviceDetail) -> Description:
    device = f" (device: {d.device_name})" if d.device_name else ""
    return Description(
        error_code="AUDIO_DEVICE_ERROR",
        user_message=_AUDIO_MESSAGES[d.cause],
        technical_message=f"Audio error: {d.cause.value}{device}",
        retryable=d.cause is not AudioErrorCause.PERMISSION_DENIED,
        suggestions=_AUDIO_SUGGESTIONS.get(d.cause, _AUDIO_DEFAULT_SUGGESTIONS),
    )


# =============================================================================
# Camera
# =============================================================================

_CAMERA_MESSAGES: dict[CameraErrorCause, str] = {
    CameraErrorCause.PERMISSION_DENIED: "Camera permission is required for video chat",
    CameraErrorCause.CAMERA_UNAVAILABLE: "Camera is not available",
    CameraErrorCause.CAMERA_BUSY: "Camera is being used by another app",
    CameraErrorCause.CAMERA_DISCONNECTED: "Camera was disconnected",
    CameraErrorCause.UNKNOWN: "Camera access error",
}

_CAMERA_SUGGESTIONS: dict[CameraErrorCause, tuple[str, ...]] = {
    CameraErrorCause.PERMISSION_DENIED: (
        "Grant camera permission in settings",
        "Switch to audio-only mode if camera is not needed",
    ),
    CameraErrorCause.CAMERA_BUSY: (
        "Close other apps using the camera",
        "Switch to audio-only mode",
        "Try switching between front and back camera",
    ),
}

_CAMERA_DEFAULT_SUGGESTIONS: tuple[str, ...] = (
    "Check if another app is using the camera",
    "Switch to audio-only mode",
    "Restart the app to reset camera settings",
)


def _describe_camera(d: CameraDetail) -> Description:
    camera = f" (camera: {d.camera_id})" if d.camera_id else ""
    return Description(
        error_code="CAMERA_ERROR",
        user_message=_CAMERA_MESSAGES[d.cause],
        technical_message=f"Camera error: {d.cause.value}{camera}",
        retryable=d.cause is not CameraErrorCause.PERMISSION_DENIED,
        suggestions=_CAMERA_SUGGESTIONS.get(d.cause, _CAMERA_DEFAULT_SUGGESTIONS),
    )


# =============================================================================
# Screen capture
# =============================================================================

_SCREEN_MESSAGES: dict[ScreenCaptureErrorCause, str] = {
    ScreenCaptureErrorCause.PERMISSION_DENIED: "Screen recording permission is required",
    ScreenCaptureErrorCause.MEDIA_PROJECTION_FAILED: "Failed to start screen recording",
    ScreenCaptureErrorCause.DISPLAY_UNAVAILABLE: "Display is not available for recording",
    ScreenCaptureErrorCause.SECURITY_RESTRICTED: (
        "Screen recording is restricted by security policy"
    ),
    ScreenCaptureErrorCause.UNKNOWN: "Screen capture error",
}

_SCREEN_SUGGESTIONS: dict[ScreenCaptureErrorCause, tuple[str, ...]] = {
    ScreenCaptureErrorCause.PERMISSION_DENIED: (
        "Grant screen recording permission when prompted",
        "Try switching to camera mode instead",
        "Check if screen recording is restricted by your device",
    ),
    ScreenCaptureErrorCause.SECURITY_RESTRICTED: (
        "Screen recording is disabled by your device administrator",
        "Try using camera mode instead",
        "Contact your IT administrator for assistance",
    ),
}

_SCREEN_DEFAULT_SUGGESTIONS: tuple[str, ...] = (
    "Try restarting the screen share",
    "Switch to camera mode instead",
    "Restart the app if the problem persists",
)


def _describe_screen(d: ScreenCaptureDetail) -> Description:
    return Description(
        error_code="SCREEN_CAPTURE_ERROR",
        user_message=_SCREEN_MESSAGES[d.cause],
        technical_message=d.details or f"Screen capture error: {d.cause.value}",
        retryable=d.cause is not ScreenCaptureErrorCause.SECURITY_RESTRICTED,
        suggestions=_SCREEN_SUGGESTIONS.get(d.cause, _SCREEN_DEFAULT_SUGGESTIONS),
    )


# =============================================================================
# Service
# =============================================================================

def _describe_service(d: ServiceDetail) -> Description:
    return Description(
        error_code="SERVICE_CONNECTION_ERROR",
        user_message=f"Unable to connect to {d.service_name} service",
        technical_message=d.reason or f"Service connection failed: {d.service_name}",
        retryable=True,
        suggestions=(
            "Try restarting the app",
            "Check your internet connection",
            "Contact support if the problem persists",
        ),
    )


# =============================================================================
# Call interruption
# =============================================================================

_CALL_MESSAGES: dict[CallState, str] = {
    CallState.INCOMING: "Chat paused due to incoming phone call",
    CallState.ACTIVE: "Chat paused during phone call",
    CallState.ENDED: "Resuming chat after phone call ended",
}


def _describe_call(d: CallInterruptionDetail) -> Description:
    if d.call_state is CallState.ENDED:
        suggestions: tuple[str, ...] = (
            "The chat will resume automatically",
            "Tap 'Resume' if the chat doesn't resume automatically",
        )
    else:
        suggestions = (
            "The chat will pause during the phone call",
            "The chat will resume after the phone call ends",
        )
    return Description(
        error_code="PHONE_CALL_INTERRUPTION",
        user_message=_CALL_MESSAGES[d.call_state],
        technical_message=d.details or f"Phone call interruption: {d.call_state.value}",
        retryable=d.call_state is CallState.ENDED,
        suggestions=suggestions,
    )


# =============================================================================
# Battery
# =============================================================================

_BATTERY_MESSAGES: dict[BatteryErrorCause, str] = {
    BatteryErrorCause.LOW_BATTERY: "Low battery may affect call quality",
    BatteryErrorCause.POWER_SAVE_MODE: "Power saving mode is affecting performance",
    BatteryErrorCause.BACKGROUND_RESTRICTED: "Background activity is restricted",
    BatteryErrorCause.UNKNOWN: "Battery optimization is affecting performance",
}

_BATTERY_SUGGESTIONS: dict[BatteryErrorCause, tuple[str, ...]] = {
    BatteryErrorCause.LOW_BATTERY: (
        "Connect to a charger for better performance",
        "Switch to audio-only mode to save battery",
        "Close other apps to conserve battery",
    ),
    BatteryErrorCause.POWER_SAVE_MODE: (
        "Disable power saving mode for better performance",
        "Add the app to the battery optimization whitelist",
        "Switch to audio-only mode",
    ),
    BatteryErrorCause.BACKGROUND_RESTRICTED: (
        "Allow the app to run in background",
        "Disable battery optimization for the app",
        "Check app permissions in settings",
    ),
    BatteryErrorCause.UNKNOWN: (
        "Check battery optimization settings",
        "Allow the app to run in background",
        "Switch to audio-only mode to save battery",
    ),
}


def _describe_battery(d: BatteryDetail) -> Description:
    level = f" (level: {d.battery_level}%)" if d.battery_level is not None else ""
    return Description(
        error_code="BATTERY_OPTIMIZATION_ERROR",
        user_message=_BATTERY_MESSAGES[d.cause],
        technical_message=f"Battery error: {d.cause.value}{level}",
        retryable=False,
        suggestions=_BATTERY_SUGGESTIONS[d.cause],
    )


# =============================================================================
# Network quality
# =============================================================================

def _describe_network_quality(d: NetworkQualityDetail) -> Description:
    return Description(
        error_code="NETWORK_QUALITY_ERROR",
        user_message="Poor network quality is affecting the call",
        technical_message=(
            f"Network quality: {d.current.value} "
            f"(minimum required: {d.minimum_required.value})"
        ),
        # Advisory: degraded quality is handled by the optimization advisor.
        retryable=False,
        suggestions=(
            "Switch to audio-only mode for better performance",
            "Move closer to your WiFi router",
            "Close other apps using internet",
            "Try switching between WiFi and mobile data",
        ),
    )


# =============================================================================
# Upstream API
# =============================================================================

_API_MESSAGES: dict[int, str] = {
    400: "Invalid request - please check your settings",
    401: "Authentication failed - please check your API key",
    403: "Access denied - insufficient permissions",
    404: "Service not found - please check server URL",
    429: "Too many requests - please wait and try again",
    500: "Server error - please try again later",
    503: "Service unavailable - please try again later",
}

_API_SUGGESTIONS: dict[int, tuple[str, ...]] = {
    401: (
        "Check your API key in settings",
        "Ensure your API key is valid and active",
    ),
    404: (
        "Check the server URL in settings",
        "Ensure the chat backend is running",
    ),
    429: (
        "Wait a few moments before trying again",
        "Reduce the frequency of requests",
    ),
}

_API_SERVER_SUGGESTIONS: tuple[str, ...] = (
    "Try again in a few moments",
    "Check if the server is experiencing issues",
    "Contact support if the problem persists",
)

_API_DEFAULT_SUGGESTIONS: tuple[str, ...] = (
    "Check your settings and try again",
    "Contact support if the problem persists",
)


def _describe_api(d: UpstreamApiDetail) -> Description:
    code = d.status_code
    if code in _API_SUGGESTIONS:
        suggestions = _API_SUGGESTIONS[code]
    elif code in (500, 502, 503, 504):
        suggestions = _API_SERVER_SUGGESTIONS
    else:
        suggestions = _API_DEFAULT_SUGGESTIONS

    endpoint = f" (endpoint: {d.endpoint})" if d.endpoint else ""
    return Description(
        error_code=f"API_ERROR_{code}",
        user_message=_API_MESSAGES.get(code, d.message or "Unexpected server response"),
        technical_message=f"API error {code}: {d.message}{endpoint}",
        retryable=code in RETRYABLE_API_STATUS_CODES,
        suggestions=suggestions,
    )


# =============================================================================
# Device state
# =============================================================================

_DEVICE_STATE_MESSAGES: dict[DeviceStateChange, str] = {
    DeviceStateChange.ORIENTATION_CHANGED: "Screen orientation changed",
    DeviceStateChange.HEADPHONES_DISCONNECTED: "Headphones disconnected",
    DeviceStateChange.HEADPHONES_CONNECTED: "Headphones connected",
    DeviceStateChange.BLUETOOTH_DISCONNECTED: "Bluetooth device disconnected",
    DeviceStateChange.BLUETOOTH_CONNECTED: "Bluetooth device connected",
    DeviceStateChange.NETWORK_CHANGED: "Network connection changed",
}

_DEVICE_STATE_SUGGESTIONS: dict[DeviceStateChange, tuple[str, ...]] = {
    DeviceStateChange.HEADPHONES_DISCONNECTED: (
        "Audio switched to speaker",
        "Reconnect headphones to switch back",
    ),
    DeviceStateChange.HEADPHONES_CONNECTED: (
        "Audio switched to headphones",
        "Check audio quality settings",
    ),
    DeviceStateChange.BLUETOOTH_DISCONNECTED: (
        "Audio switched to phone speaker",
        "Reconnect Bluetooth device if needed",
    ),
    DeviceStateChange.BLUETOOTH_CONNECTED: (
        "Audio switched to Bluetooth device",
        "Check audio quality and volume",
    ),
    DeviceStateChange.NETWORK_CHANGED: (
        "Connection may be interrupted briefly",
        "Call will reconnect automatically",
    ),
}


def _describe_device_state(d: DeviceStateDetail) -> Description:
    return Description(
        error_code="DEVICE_STATE_ERROR",
        user_message=_DEVICE_STATE_MESSAGES[d.change],
        technical_message=d.details or f"Device state changed: {d.change.value}",
        retryable=False,
        suggestions=_DEVICE_STATE_SUGGESTIONS.get(d.change, ()),
    )


# =============================================================================
# Dispatch
# =============================================================================

_DESCRIBERS: dict[type, Callable[..., Description]] = {
    NetworkDetail: _describe_network,
    PermissionDetail: _describe_permission,
    TransportDetail: _describe_transport,
    AudioDeviceDetail: _describe_audio,
    CameraDetail: _describe_camera,
    ScreenCaptureDetail: _describe_screen,
    ServiceDetail: _describe_service,
    CallInterruptionDetail: _describe_call,
    BatteryDetail: _describe_battery,
    NetworkQualityDetail: _describe_network_quality,
    UpstreamApiDetail: _describe_api,
    DeviceStateDetail: _describe_device_state,
}


def describe(detail: ErrorDetail) -> Description:
    """Return the static description for an error detail."""
    return _DESCRIBERS[type(detail)](detail)
