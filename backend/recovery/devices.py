"""
Audio device selection for device-switch recovery.

Pure: picks from an already-enumerated device list.
"""

from __future__ import annotations

from typing import Sequence

from orchestrator.enums.signals import AudioDeviceType
from orchestrator.signals import AudioDevice


# Lower rank wins: wired > bluetooth > speaker > earpiece.
_PREFERENCE_RANK: dict[AudioDeviceType, int] = {
    AudioDeviceType.WIRED_HEADSET: 0,
    AudioDeviceType.WIRED_HEADPHONES: 0,
    AudioDeviceType.USB_HEADSET: 0,
    AudioDeviceType.BLUETOOTH_HEADSET: 1,
    AudioDeviceType.SPEAKER: 2,
    AudioDeviceType.EARPIECE: 3,
}


def select_alternative_device(
    devices: Sequence[AudioDevice],
    current: AudioDevice | None,
) -> AudioDevice | None:
    """
    Return the highest-preference device other than current.

    Devices of UNKNOWN type are never selected. Ties keep enumeration order.
    """
    candidates = [
        d for d in devices
        if d.type in _PREFERENCE_RANK
        and (current is None or d.device_id != current.device_id)
    ]
    if not candidates:
        return None
    return min(candidates, key=lambda d: _PREFERENCE_RANK[d.type])
