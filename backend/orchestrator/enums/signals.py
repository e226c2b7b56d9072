"""
Enumerations for signals sampled from platform collaborators.
"""

from __future__ import annotations

from enum import Enum


class InterruptionType(str, Enum):
    """Discrete system interruption categories."""

    PHONE_CALL = "PHONE_CALL"
    SYSTEM_CALL = "SYSTEM_CALL"
    LOW_POWER = "LOW_POWER"
    NETWORK_LOSS = "NETWORK_LOSS"


class NetworkQuality(str, Enum):
    """Network quality as reported by the network monitor."""

    POOR = "POOR"
    FAIR = "FAIR"
    GOOD = "GOOD"
    EXCELLENT = "EXCELLENT"


class AudioDeviceType(str, Enum):
    """Audio output/input route categories."""

    WIRED_HEADSET = "WIRED_HEADSET"
    WIRED_HEADPHONES = "WIRED_HEADPHONES"
    USB_HEADSET = "USB_HEADSET"
    BLUETOOTH_HEADSET = "BLUETOOTH_HEADSET"
    SPEAKER = "SPEAKER"
    EARPIECE = "EARPIECE"
    UNKNOWN = "UNKNOWN"


class OptimizationReason(str, Enum):
    """Why the advisor proposed a downgrade."""

    LOW_BATTERY = "LOW_BATTERY"
    POOR_NETWORK = "POOR_NETWORK"
    LOW_MEMORY = "LOW_MEMORY"
