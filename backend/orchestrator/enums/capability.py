"""
Media capability enumerations.

Rules:
- VideoMode tiers are ordered; a higher tier requests more capability.
- Tier ordering is data, downgrade logic lives in orchestrator.profile.
"""

from __future__ import annotations

from enum import Enum


class VideoMode(str, Enum):
    """Requested video capability, ordered by tier."""

    AUDIO_ONLY = "AUDIO_ONLY"
    WEBCAM = "WEBCAM"
    SCREEN_SHARE = "SCREEN_SHARE"

    @property
    def tier(self) -> int:
        return _VIDEO_TIERS[self]


_VIDEO_TIERS: dict[VideoMode, int] = {
    VideoMode.AUDIO_ONLY: 0,
    VideoMode.WEBCAM: 1,
    VideoMode.SCREEN_SHARE: 2,
}


class AudioQuality(str, Enum):
    """Requested audio quality."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
