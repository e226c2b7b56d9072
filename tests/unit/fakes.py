# pylint: disable=missing-module-docstring,missing-function-docstring,missing-class-docstring

from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator, Callable, Sequence

from config import AppConfig
from errors.kinds import ErrorDetail
from errors.records import ErrorRecord, make_error_record
from orchestrator.commands import Command, LogEvent
from orchestrator.enums.capability import AudioQuality, VideoMode
from orchestrator.enums.phase import TransportPhase
from orchestrator.enums.signals import NetworkQuality
from orchestrator.profile import CapabilityProfile
from orchestrator.runtime_context import Collaborators
from orchestrator.signals import AudioDevice, BatteryLevel, InterruptionSignal


# ------------------------------------------------------------------
# Reducer helpers
# ------------------------------------------------------------------

def decisions(commands: Sequence[Command]) -> list[str]:
    return [c.event["decision"] for c in commands if isinstance(c, LogEvent)]


def of_type(commands: Sequence[Command], cls: type) -> list[Any]:
    return [c for c in commands if isinstance(c, cls)]


def record(detail: ErrorDetail, ts_ms: int = 0) -> ErrorRecord:
    return make_error_record(detail, ts_ms=ts_ms)


async def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Yield to the loop until predicate holds."""
    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.001)

    await asyncio.wait_for(_poll(), timeout)


# ------------------------------------------------------------------
# Collaborators
# ------------------------------------------------------------------

class FakeTransport:
    """In-memory transport; phases are pushed by the test."""

    def __init__(
        self,
        *,
        offer_error: Exception | None = None,
        block_offer: bool = False,
    ) -> None:
        self.phases: asyncio.Queue[TransportPhase] = asyncio.Queue()
        self.offer_error = offer_error
        self.block_offer = block_offer
        # Blocked offers wait here until the test sets it.
        self.release = asyncio.Event()
        self.hang_close = False
        self.prepared: list[CapabilityProfile] = []
        self.applied: list[str] = []
        self.closed = 0

    async def observe_connection_phase(self) -> AsyncIterator[TransportPhase]:
        while True:
            yield await self.phases.get()

    async def prepare_local_media(self, profile: CapabilityProfile) -> None:
        self.prepared.append(profile)

    async def create_negotiation_offer(self) -> str:
        if self.block_offer:
            await self.release.wait()
        if self.offer_error is not None:
            raise self.offer_error
        return "v=0 offer"

    async def apply_remote_descriptor(self, descriptor: str) -> None:
        self.applied.append(descriptor)

    async def close(self) -> None:
        self.closed += 1
        if self.hang_close:
            await asyncio.Event().wait()

    def push(self, *phases: TransportPhase) -> None:
        for phase in phases:
            self.phases.put_nowait(phase)


class FakeSignaling:
    def __init__(self, answer: str = "v=0 answer") -> None:
        self.answer = answer
        self.offers: list[tuple[str, CapabilityProfile]] = []

    async def exchange_offer(self, offer: str, profile: CapabilityProfile) -> str:
        self.offers.append((offer, profile))
        return self.answer


class FakeInterruptions:
    def __init__(self) -> None:
        self.signals: asyncio.Queue[InterruptionSignal] = asyncio.Queue()

    async def observe_interruptions(self) -> AsyncIterator[InterruptionSignal]:
        while True:
            yield await self.signals.get()

    def push(self, signal: InterruptionSignal) -> None:
        self.signals.put_nowait(signal)


class FakeAudio:
    def __init__(
        self,
        devices: Sequence[AudioDevice] = (),
        current: AudioDevice | None = None,
        *,
        select_error: Exception | None = None,
        pause_error: Exception | None = None,
    ) -> None:
        self.devices = list(devices)
        self.current = current
        self.select_error = select_error
        self.pause_error = pause_error
        self.hang_pause = False
        self.selected: list[AudioDevice] = []
        self.pauses = 0
        self.resumes = 0

    async def list_devices(self) -> Sequence[AudioDevice]:
        return list(self.devices)

    async def current_device(self) -> AudioDevice | None:
        return self.current

    async def select_device(self, device: AudioDevice) -> None:
        if self.select_error is not None:
            raise self.select_error
        self.selected.append(device)
        self.current = device

    async def pause(self) -> None:
        if self.hang_pause:
            await asyncio.Event().wait()
        if self.pause_error is not None:
            raise self.pause_error
        self.pauses += 1

    async def resume(self) -> None:
        self.resumes += 1


class FakeBattery:
    def __init__(self, level: BatteryLevel) -> None:
        self.level = level

    async def get_battery_level(self) -> BatteryLevel:
        return self.level


class FakeNetwork:
    def __init__(self, quality: NetworkQuality) -> None:
        self.quality = quality

    async def get_network_quality(self) -> NetworkQuality:
        return self.quality


class FakeMemory:
    def __init__(self, available: int) -> None:
        self.available = available

    async def get_available_memory(self) -> int:
        return self.available


def collaborators(**overrides: Any) -> Collaborators:
    fields: dict[str, Any] = {
        "transport": FakeTransport(),
        "signaling": FakeSignaling(),
        "interruptions": FakeInterruptions(),
        "audio": FakeAudio(),
    }
    fields.update(overrides)
    return Collaborators(**fields)


def app_config(**overrides: Any) -> AppConfig:
    fields: dict[str, Any] = {
        "env": "test",
        "log_level": "INFO",
        "enable_json_logs": True,
        "signaling_url": "http://signal.test",
        "signaling_api_key": None,
        "signaling_timeout_s": 5.0,
        "realtime_model": "gpt-realtime",
        "realtime_voice": "marin",
        "realtime_instructions": "",
        "default_video_mode": VideoMode.AUDIO_ONLY,
        "default_audio_quality": AudioQuality.MEDIUM,
        "default_preview_enabled": True,
        "reconnect_on_drop": False,
        "advisor_interval_ms": 10_000,
        "collaborator_factory": None,
    }
    fields.update(overrides)
    return AppConfig(**fields)
