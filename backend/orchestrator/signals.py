"""
Value objects carried by collaborator signals.

Rules:
- Data only, immutable.
- Instances are ephemeral: the reducer reacts and discards them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from orchestrator.enums.signals import (
    AudioDeviceType,
    InterruptionType,
    OptimizationReason,
)
from orchestrator.profile import CapabilityProfile


@dataclass(frozen=True)
class InterruptionSignal:
    """A discrete system interruption (call, low power, network loss)."""

    type: InterruptionType
    should_pause: bool
    can_resume: bool = True


@dataclass(frozen=True)
class BatteryLevel:
    """Battery percentage (0-100) and charging flag."""

    percent: int
    charging: bool = False


@dataclass(frozen=True)
class AudioDevice:
    """One audio route reported by the audio collaborator."""

    device_id: str
    name: str
    type: AudioDeviceType
    is_default: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "device_id": self.device_id,
            "name": self.name,
            "type": self.type.value,
            "is_default": self.is_default,
        }


@dataclass(frozen=True)
class OptimizationSuggestion:
    """Advisory downgrade, surfaced to the user for accept/dismiss."""

    profile: CapabilityProfile
    reason: OptimizationReason

    def to_dict(self) -> dict[str, Any]:
        return {
            "profile": self.profile.to_dict(),
            "reason": self.reason.value,
        }
