# pylint: disable=missing-module-docstring,missing-function-docstring

import pytest

from errors.kinds import (
    AudioDeviceDetail,
    AudioErrorCause,
    BatteryDetail,
    CallInterruptionDetail,
    CallState,
    CameraDetail,
    NetworkDetail,
    NetworkErrorCause,
    PermissionDetail,
    PermissionType,
    ScreenCaptureDetail,
    ServiceDetail,
    TransportDetail,
    UpstreamApiDetail,
)
from orchestrator.enums.signals import AudioDeviceType
from orchestrator.signals import AudioDevice
from recovery.devices import select_alternative_device
from recovery.guided_steps import RecoveryStepType, get_guided_steps
from recovery.policy import RecoveryAction, is_budgeted, select_action

from fakes import record


def device(device_id: str, kind: AudioDeviceType) -> AudioDevice:
    return AudioDevice(device_id=device_id, name=device_id, type=kind)


# ------------------------------------------------------------------
# Action selection
# ------------------------------------------------------------------

@pytest.mark.parametrize(
    "detail, action",
    [
        (PermissionDetail(permission=PermissionType.MICROPHONE, permanently_denied=True),
         RecoveryAction.NONE),
        (BatteryDetail(), RecoveryAction.NONE),
        (CallInterruptionDetail(call_state=CallState.INCOMING), RecoveryAction.NONE),
        (UpstreamApiDetail(status_code=400), RecoveryAction.NONE),
        (CameraDetail(), RecoveryAction.FALLBACK),
        (ScreenCaptureDetail(), RecoveryAction.FALLBACK),
        (PermissionDetail(permission=PermissionType.CAMERA), RecoveryAction.FALLBACK),
        (AudioDeviceDetail(cause=AudioErrorCause.DEVICE_BUSY), RecoveryAction.DEVICE_SWITCH),
        (NetworkDetail(), RecoveryAction.RETRY),
        (TransportDetail(), RecoveryAction.RETRY),
        (ServiceDetail(service_name="signaling"), RecoveryAction.RETRY),
        (UpstreamApiDetail(status_code=502), RecoveryAction.RETRY),
        (CallInterruptionDetail(call_state=CallState.ENDED), RecoveryAction.RESUME),
        (PermissionDetail(permission=PermissionType.MICROPHONE), RecoveryAction.NONE),
    ],
)
def test_select_action(detail, action):
    assert select_action(record(detail)) is action


def test_only_retry_and_device_switch_are_budgeted():
    assert is_budgeted(RecoveryAction.RETRY)
    assert is_budgeted(RecoveryAction.DEVICE_SWITCH)
    assert not is_budgeted(RecoveryAction.FALLBACK)
    assert not is_budgeted(RecoveryAction.RESUME)
    assert not is_budgeted(RecoveryAction.NONE)


# ------------------------------------------------------------------
# Device preference
# ------------------------------------------------------------------

def test_device_preference_order():
    speaker = device("spk", AudioDeviceType.SPEAKER)
    earpiece = device("ear", AudioDeviceType.EARPIECE)
    bt = device("bt", AudioDeviceType.BLUETOOTH_HEADSET)
    usb = device("usb", AudioDeviceType.USB_HEADSET)

    assert select_alternative_device([earpiece, speaker, bt, usb], earpiece) == usb
    assert select_alternative_device([earpiece, speaker, bt], earpiece) == bt
    assert select_alternative_device([earpiece, speaker], earpiece) == speaker


def test_current_and_unknown_devices_are_excluded():
    wired = device("wired", AudioDeviceType.WIRED_HEADSET)
    unknown = device("x", AudioDeviceType.UNKNOWN)

    assert select_alternative_device([wired, unknown], wired) is None
    assert select_alternative_device([], None) is None


def test_ties_keep_enumeration_order():
    first = device("a", AudioDeviceType.WIRED_HEADPHONES)
    second = device("b", AudioDeviceType.WIRED_HEADSET)

    assert select_alternative_device([first, second], None) == first


# ------------------------------------------------------------------
# Guided steps
# ------------------------------------------------------------------

def test_permanent_permission_steps_start_in_settings():
    steps = get_guided_steps(
        record(PermissionDetail(permission=PermissionType.CAMERA, permanently_denied=True))
    )

    assert steps[0].step_type is RecoveryStepType.NAVIGATE_TO_SETTINGS
    assert any(s.description == "Enable Camera" for s in steps)
    assert len(steps) == 5


def test_prompted_permission_steps_end_with_retry():
    steps = get_guided_steps(record(PermissionDetail(permission=PermissionType.MICROPHONE)))

    assert [s.step_type for s in steps] == [RecoveryStepType.USER_ACTION, RecoveryStepType.RETRY]


def test_network_steps_depend_on_cause():
    no_internet = get_guided_steps(record(NetworkDetail(cause=NetworkErrorCause.NO_INTERNET)))
    unreachable = get_guided_steps(
        record(NetworkDetail(cause=NetworkErrorCause.SERVER_UNREACHABLE))
    )
    other = get_guided_steps(record(NetworkDetail(cause=NetworkErrorCause.TIMEOUT)))

    assert no_internet[0].description == "Check WiFi connection"
    assert unreachable[-1].step_type is RecoveryStepType.WAIT_AND_RETRY
    assert other[-1].step_type is RecoveryStepType.RETRY


def test_device_and_capture_steps():
    audio = get_guided_steps(record(AudioDeviceDetail(cause=AudioErrorCause.DEVICE_BUSY)))
    camera = get_guided_steps(record(CameraDetail()))
    generic = get_guided_steps(record(BatteryDetail()))

    assert audio[-1].step_type is RecoveryStepType.SWITCH_DEVICE
    assert camera[1].step_type is RecoveryStepType.FALLBACK_MODE
    assert generic[-1].step_type is RecoveryStepType.RESTART_APP
    assert camera[1].to_dict() == {
        "description": "Switch to audio-only mode",
        "step_type": "FALLBACK_MODE",
    }
