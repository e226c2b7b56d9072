"""
Capability profile and the shared downgrade action.

Responsibilities:
- Define the requested media capability for the next negotiation
- Provide the one-tier downgrade used by both the recovery engine
  (capability fallback) and the optimization advisor

Rules:
- Pure: no IO, no clocks.
- A downgrade never produces a higher tier than its input.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

from orchestrator.enums.capability import AudioQuality, VideoMode


@dataclass(frozen=True)
class CapabilityProfile:
    """Requested media capability (video mode, audio quality, preview)."""

    video_mode: VideoMode = VideoMode.AUDIO_ONLY
    audio_quality: AudioQuality = AudioQuality.MEDIUM
    preview_enabled: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "video_mode": self.video_mode.value,
            "audio_quality": self.audio_quality.value,
            "preview_enabled": self.preview_enabled,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> CapabilityProfile:
        """
        Build a profile from a client payload.

        Missing keys fall back to defaults.

        Raises:
            ValueError if an enum value is unknown.
        """
        default = CapabilityProfile()
        return CapabilityProfile(
            video_mode=VideoMode(data.get("video_mode", default.video_mode.value)),
            audio_quality=AudioQuality(
                data.get("audio_quality", default.audio_quality.value)
            ),
            preview_enabled=bool(data.get("preview_enabled", default.preview_enabled)),
        )


# ScreenShare -> Webcam -> AudioOnly
_NEXT_LOWER: dict[VideoMode, VideoMode | None] = {
    VideoMode.SCREEN_SHARE: VideoMode.WEBCAM,
    VideoMode.WEBCAM: VideoMode.AUDIO_ONLY,
    VideoMode.AUDIO_ONLY: None,
}


def downgrade_video_mode(mode: VideoMode) -> VideoMode | None:
    """Return the video mode one tier below, or None at the lowest tier."""
    return _NEXT_LOWER[mode]


def downgrade_profile(profile: CapabilityProfile) -> CapabilityProfile | None:
    """
    Lower the profile's video mode by exactly one tier.

    Audio quality and preview are left untouched. Returns None when the
    profile is already audio-only.
    """
    lower = downgrade_video_mode(profile.video_mode)
    if lower is None:
        return None
    return replace(profile, video_mode=lower)


def is_downgrade_or_equal(
    candidate: CapabilityProfile,
    current: CapabilityProfile,
) -> bool:
    """True iff candidate requests no higher video tier than current."""
    return candidate.video_mode.tier <= current.video_mode.tier
