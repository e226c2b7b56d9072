"""
Resource optimization advisor.

(battery, network, available_memory) -> suggested CapabilityProfile | None

Rules:
- Pure and deterministic: no IO, no clocks, never mutates its inputs.
- First matching rule wins:
    1. battery below LOW_BATTERY_PERCENT and not charging
    2. network quality POOR
    3. available memory below LOW_MEMORY_BYTES
- An unknown (None) input disables the rule that reads it.
- Suggestions are advisory; the user accepts or dismisses them.
"""

from __future__ import annotations

from orchestrator.enums.capability import AudioQuality, VideoMode
from orchestrator.enums.signals import NetworkQuality, OptimizationReason
from orchestrator.profile import CapabilityProfile
from orchestrator.signals import BatteryLevel, OptimizationSuggestion

from constants import LOW_BATTERY_PERCENT, LOW_MEMORY_BYTES


def explain(
    battery: BatteryLevel | None,
    network: NetworkQuality | None,
    available_memory: int | None,
    *,
    current: CapabilityProfile | None = None,
) -> OptimizationSuggestion | None:
    """Return the suggested profile together with the rule that produced it."""
    if (
        battery is not None
        and battery.percent < LOW_BATTERY_PERCENT
        and not battery.charging
    ):
        return OptimizationSuggestion(
            profile=CapabilityProfile(
                video_mode=VideoMode.AUDIO_ONLY,
                audio_quality=AudioQuality.LOW,
                preview_enabled=False,
            ),
            reason=OptimizationReason.LOW_BATTERY,
        )

    if network is NetworkQuality.POOR:
        # Preview carries over from the current profile.
        return OptimizationSuggestion(
            profile=CapabilityProfile(
                video_mode=VideoMode.AUDIO_ONLY,
                audio_quality=AudioQuality.LOW,
                preview_enabled=current.preview_enabled if current is not None else True,
            ),
            reason=OptimizationReason.POOR_NETWORK,
        )

    if available_memory is not None and available_memory < LOW_MEMORY_BYTES:
        return OptimizationSuggestion(
            profile=CapabilityProfile(
                video_mode=VideoMode.AUDIO_ONLY,
                audio_quality=AudioQuality.MEDIUM,
                preview_enabled=False,
            ),
            reason=OptimizationReason.LOW_MEMORY,
        )

    return None


def evaluate(
    battery: BatteryLevel | None,
    network: NetworkQuality | None,
    available_memory: int | None,
    *,
    current: CapabilityProfile | None = None,
) -> CapabilityProfile | None:
    """Return the suggested profile, or None when resources are fine."""
    suggestion = explain(battery, network, available_memory, current=current)
    return suggestion.profile if suggestion is not None else None
