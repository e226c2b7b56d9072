# pylint: disable=missing-module-docstring,missing-function-docstring

import pytest

from errors.kinds import (
    AudioDeviceDetail,
    AudioErrorCause,
    BatteryDetail,
    CallInterruptionDetail,
    CallState,
    CameraDetail,
    ErrorKind,
    NetworkDetail,
)
from orchestrator.cancellation import CancellationManager
from orchestrator.enums.capability import VideoMode
from orchestrator.enums.signals import AudioDeviceType
from orchestrator.events import (
    DeviceSwitched,
    DeviceSwitchFailed,
    DowngradeRequested,
    RecoveryDeclined,
    ResumeRequested,
    RetryReady,
)
from orchestrator.profile import CapabilityProfile
from orchestrator.signals import AudioDevice
from orchestrator.state_dataclass import CoordinatorState
from recovery import engine as engine_module
from recovery.engine import RecoveryEngine

from fakes import FakeAudio, record


EARPIECE = AudioDevice(device_id="ear", name="Earpiece", type=AudioDeviceType.EARPIECE)
HEADSET = AudioDevice(device_id="usb", name="USB", type=AudioDeviceType.USB_HEADSET)


class Harness:
    def __init__(self, *, state: CoordinatorState | None = None, audio=None) -> None:
        self.events: list = []
        self.state = state if state is not None else CoordinatorState(run_id=4)
        self.tasks = CancellationManager()
        self.engine = RecoveryEngine(
            emit_event=self._emit,
            get_state=lambda: self.state,
            tasks=self.tasks,
            audio=audio,
            clock=lambda: 1_000,
        )

    async def _emit(self, event) -> None:
        self.events.append(event)


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(engine_module, "get_retry_delay_ms", lambda *, attempt_number: 0)


@pytest.mark.asyncio
async def test_transient_error_schedules_retry_for_current_run():
    h = Harness()

    started = await h.engine.attempt_recovery(record(NetworkDetail()), "negotiation")
    await h.tasks.wait_idle()

    assert started is True
    assert len(h.events) == 1
    ready = h.events[0]
    assert isinstance(ready, RetryReady)
    assert ready.run_id == 4
    assert ready.kind is ErrorKind.NETWORK
    assert h.engine.last_verdict.attempt == 1


@pytest.mark.asyncio
async def test_budget_exhaustion_is_declined():
    h = Harness()
    err = record(NetworkDetail())

    results = [await h.engine.attempt_recovery(err, "negotiation") for _ in range(4)]
    await h.tasks.wait_idle()

    assert results == [True, True, True, False]
    declined = [e for e in h.events if isinstance(e, RecoveryDeclined)]
    assert len(declined) == 1
    assert declined[0].reason == "budget_exhausted"
    assert h.engine.budget.attempts(ErrorKind.NETWORK) == 3


@pytest.mark.asyncio
async def test_non_retryable_error_is_declined_without_budget():
    h = Harness()

    started = await h.engine.attempt_recovery(record(BatteryDetail()), "collaborator")

    assert started is False
    assert h.events[0].reason == "not_retryable"
    assert len(h.engine.budget) == 0


@pytest.mark.asyncio
async def test_camera_failure_requests_downgrade():
    state = CoordinatorState(profile=CapabilityProfile(video_mode=VideoMode.SCREEN_SHARE))
    h = Harness(state=state)

    started = await h.engine.attempt_recovery(record(CameraDetail()), "collaborator")

    assert started is True
    event = h.events[0]
    assert isinstance(event, DowngradeRequested)
    assert event.profile.video_mode is VideoMode.WEBCAM
    assert event.reason is ErrorKind.CAMERA
    assert len(h.engine.budget) == 0


@pytest.mark.asyncio
async def test_fallback_without_lower_tier_is_declined():
    h = Harness()

    started = await h.engine.attempt_recovery(record(CameraDetail()), "collaborator")

    assert started is False
    assert h.events[0].reason == "no_lower_tier"


@pytest.mark.asyncio
async def test_ended_call_requests_resume():
    h = Harness()

    started = await h.engine.attempt_recovery(
        record(CallInterruptionDetail(call_state=CallState.ENDED)), "interruption"
    )

    assert started is True
    assert isinstance(h.events[0], ResumeRequested)


@pytest.mark.asyncio
async def test_device_switch_selects_preferred_device():
    audio = FakeAudio([EARPIECE, HEADSET], current=EARPIECE)
    h = Harness(audio=audio)

    started = await h.engine.attempt_recovery(
        record(AudioDeviceDetail(cause=AudioErrorCause.DEVICE_BUSY)), "collaborator"
    )
    await h.tasks.wait_idle()

    assert started is True
    assert audio.selected == [HEADSET]
    assert isinstance(h.events[0], DeviceSwitched)
    assert h.events[0].device == HEADSET


@pytest.mark.asyncio
async def test_device_switch_without_alternative_fails():
    audio = FakeAudio([EARPIECE], current=EARPIECE)
    h = Harness(audio=audio)

    await h.engine.attempt_recovery(record(AudioDeviceDetail()), "collaborator")
    await h.tasks.wait_idle()

    failed = h.events[0]
    assert isinstance(failed, DeviceSwitchFailed)
    assert failed.error.detail.cause is AudioErrorCause.DEVICE_UNAVAILABLE


@pytest.mark.asyncio
async def test_device_switch_select_error_is_reported_as_routing_failure():
    audio = FakeAudio([EARPIECE, HEADSET], current=EARPIECE, select_error=RuntimeError("connection lost"))
    h = Harness(audio=audio)

    await h.engine.attempt_recovery(record(AudioDeviceDetail()), "collaborator")
    await h.tasks.wait_idle()

    failed = h.events[0]
    assert isinstance(failed, DeviceSwitchFailed)
    assert failed.error.kind is ErrorKind.AUDIO_DEVICE
    assert failed.error.detail.cause is AudioErrorCause.ROUTING_FAILED
    assert failed.error.detail.device_name == "USB"


@pytest.mark.asyncio
async def test_device_switch_without_audio_collaborator_is_declined():
    h = Harness()

    started = await h.engine.attempt_recovery(record(AudioDeviceDetail()), "collaborator")

    assert started is False
    assert h.events[0].reason == "no_audio_collaborator"
    assert len(h.engine.budget) == 0


@pytest.mark.asyncio
async def test_unbudgeted_action_is_declined_without_consuming(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(engine_module, "is_budgeted", lambda action: False)
    h = Harness()

    started = await h.engine.attempt_recovery(record(NetworkDetail()), "negotiation")

    assert started is False
    assert isinstance(h.events[0], RecoveryDeclined)
    assert h.events[0].reason == "unsupported_action"
    assert len(h.engine.budget) == 0
    assert len(h.tasks) == 0


@pytest.mark.asyncio
async def test_record_success_and_reset(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(engine_module, "get_retry_delay_ms", lambda *, attempt_number: 60_000)
    h = Harness()
    await h.engine.attempt_recovery(record(NetworkDetail()), "negotiation")

    assert h.tasks.keys() == ("recovery:retry:NETWORK",)

    h.engine.record_success([ErrorKind.NETWORK])
    assert h.engine.budget.attempts(ErrorKind.NETWORK) == 0

    h.engine.reset()
    assert len(h.tasks) == 0
    assert h.engine.last_verdict is None
    assert not h.events
