"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No orchestration logic
- No behavioral constants (constants.py owns those)
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from constants import ADVISOR_TICK_INTERVAL_MS, SIGNALING_DEFAULT_TIMEOUT_S
from orchestrator.enums.capability import AudioQuality, VideoMode
from orchestrator.profile import CapabilityProfile


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup.
    Passed downward to the server, gateway and coordinator.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str
    log_level: str

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    enable_json_logs: bool

    # ------------------------------------------------------------------
    # Signaling
    # ------------------------------------------------------------------

    signaling_url: str
    signaling_api_key: str | None
    signaling_timeout_s: float

    # ------------------------------------------------------------------
    # Realtime session
    # ------------------------------------------------------------------

    realtime_model: str
    realtime_voice: str
    realtime_instructions: str

    # ------------------------------------------------------------------
    # Default capability profile
    # ------------------------------------------------------------------

    default_video_mode: VideoMode
    default_audio_quality: AudioQuality
    default_preview_enabled: bool

    # ------------------------------------------------------------------
    # Coordinator behavior
    # ------------------------------------------------------------------

    reconnect_on_drop: bool
    advisor_interval_ms: int

    # "module:callable" returning a Collaborators bundle for a session.
    collaborator_factory: str | None

    def default_profile(self) -> CapabilityProfile:
        return CapabilityProfile(
            video_mode=self.default_video_mode,
            audio_quality=self.default_audio_quality,
            preview_enabled=self.default_preview_enabled,
        )

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        Raises:
            ValueError if an enum or numeric variable is malformed.
        """
        return AppConfig(
            env=os.environ.get("ENV", "dev"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),

            enable_json_logs=os.environ.get("ENABLE_JSON_LOGS", "1") == "1",

            signaling_url=os.environ.get("SIGNALING_URL", "http://localhost:8080"),
            signaling_api_key=os.environ.get("SIGNALING_API_KEY"),
            signaling_timeout_s=float(
                os.environ.get("SIGNALING_TIMEOUT_S", str(SIGNALING_DEFAULT_TIMEOUT_S))
            ),

            realtime_model=os.environ.get("REALTIME_MODEL", "gpt-realtime"),
            realtime_voice=os.environ.get("REALTIME_VOICE", "marin"),
            realtime_instructions=os.environ.get("REALTIME_INSTRUCTIONS", ""),

            default_video_mode=VideoMode(os.environ.get("DEFAULT_VIDEO_MODE", "AUDIO_ONLY")),
            default_audio_quality=AudioQuality(
                os.environ.get("DEFAULT_AUDIO_QUALITY", "MEDIUM")
            ),
            default_preview_enabled=_env_flag("DEFAULT_PREVIEW_ENABLED", "1"),

            reconnect_on_drop=_env_flag("RECONNECT_ON_DROP", "0"),
            advisor_interval_ms=int(
                os.environ.get("ADVISOR_INTERVAL_MS", str(ADVISOR_TICK_INTERVAL_MS))
            ),
            collaborator_factory=os.environ.get("COLLABORATOR_FACTORY"),
        )
