"""
Guided recovery steps for manual intervention.

Rules:
- Pure functions of the ErrorRecord; deterministic, side-effect free.
- For UI display only. These are NOT the automatic recovery actions.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from errors.kinds import (
    AudioDeviceDetail,
    AudioErrorCause,
    ErrorKind,
    NetworkDetail,
    NetworkErrorCause,
    PermissionDetail,
)
from errors.records import ErrorRecord


class RecoveryStepType(str, Enum):
    USER_ACTION = "USER_ACTION"
    CHECK_SETTINGS = "CHECK_SETTINGS"
    NAVIGATE_TO_SETTINGS = "NAVIGATE_TO_SETTINGS"
    SWITCH_DEVICE = "SWITCH_DEVICE"
    FALLBACK_MODE = "FALLBACK_MODE"
    RETRY = "RETRY"
    WAIT_AND_RETRY = "WAIT_AND_RETRY"
    RESTART_APP = "RESTART_APP"


@dataclass(frozen=True)
class RecoveryStep:
    """One user-facing instruction."""
    description: str
    step_type: RecoveryStepType

    def to_dict(self) -> dict[str, Any]:
        return {"description": self.description, "step_type": self.step_type.value}


def _step(description: str, step_type: RecoveryStepType) -> RecoveryStep:
    return RecoveryStep(description=description, step_type=step_type)


_U = RecoveryStepType.USER_ACTION
_C = RecoveryStepType.CHECK_SETTINGS


def get_guided_steps(error: ErrorRecord) -> tuple[RecoveryStep, ...]:
    """Return guided steps for an error."""
    detail = error.detail

    if isinstance(detail, PermissionDetail):
        return _permission_steps(detail)
    if isinstance(detail, NetworkDetail):
        return _network_steps(detail)
    if isinstance(detail, AudioDeviceDetail):
        return _audio_steps(detail)
    if error.kind is ErrorKind.CAMERA:
        return _CAMERA_STEPS
    if error.kind is ErrorKind.SCREEN_CAPTURE:
        return _SCREEN_CAPTURE_STEPS
    return _GENERIC_STEPS


def _permission_steps(detail: PermissionDetail) -> tuple[RecoveryStep, ...]:
    if detail.permanently_denied:
        return (
            _step("Open Settings", RecoveryStepType.NAVIGATE_TO_SETTINGS),
            _step("Find the app", _U),
            _step("Tap Permissions", _U),
            _step(f"Enable {detail.permission.display_name}", _U),
            _step("Return to the app", _U),
        )
    return (
        _step("Tap 'Allow' when prompted", _U),
        _step("Try the action again", RecoveryStepType.RETRY),
    )


def _network_steps(detail: NetworkDetail) -> tuple[RecoveryStep, ...]:
    if detail.cause is NetworkErrorCause.NO_INTERNET:
        return (
            _step("Check WiFi connection", _C),
            _step("Try mobile data", _U),
            _step("Move closer to router", _U),
        )
    if detail.cause is NetworkErrorCause.SERVER_UNREACHABLE:
        return (
            _step("Check server URL in settings", _C),
            _step("Wait and try again", RecoveryStepType.WAIT_AND_RETRY),
        )
    return (
        _step("Check internet connection", _C),
        _step("Retry connection", RecoveryStepType.RETRY),
    )


def _audio_steps(detail: AudioDeviceDetail) -> tuple[RecoveryStep, ...]:
    if detail.cause is AudioErrorCause.DEVICE_BUSY:
        return (
            _step("Close other audio apps", _U),
            _step("Unplug and reconnect headphones", _U),
            _step("Try different audio device", RecoveryStepType.SWITCH_DEVICE),
        )
    return (
        _step("Check audio permissions", _C),
        _step("Try different audio device", RecoveryStepType.SWITCH_DEVICE),
    )


_CAMERA_STEPS: tuple[RecoveryStep, ...] = (
    _step("Close other camera apps", _U),
    _step("Switch to audio-only mode", RecoveryStepType.FALLBACK_MODE),
    _step("Check camera permissions", _C),
)

_SCREEN_CAPTURE_STEPS: tuple[RecoveryStep, ...] = (
    _step("Grant screen recording permission", _U),
    _step("Switch to camera mode", RecoveryStepType.FALLBACK_MODE),
    _step("Check device restrictions", _C),
)

_GENERIC_STEPS: tuple[RecoveryStep, ...] = (
    _step("Try again", RecoveryStepType.RETRY),
    _step("Check settings", _C),
    _step("Restart app if needed", RecoveryStepType.RESTART_APP),
)
