"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No controller logic
- No behavioral constants (see constants.py)
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from constants import (
    DEFAULT_METADATA_URL,
    DEFAULT_STREAM_URL,
    STREAM_CONNECT_TIMEOUT_S,
)


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup.
    Passed downward to the controller and its collaborators.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str
    log_level: str

    # ------------------------------------------------------------------
    # Station API (configuration, fallback, now playing)
    # ------------------------------------------------------------------

    station_api_base_url: str
    default_stream_url: str
    default_metadata_url: str
    enable_now_playing: bool

    # ------------------------------------------------------------------
    # Platform capabilities
    # ------------------------------------------------------------------

    requires_cache_busting: bool
    requires_full_reset: bool

    # ------------------------------------------------------------------
    # Playback
    # ------------------------------------------------------------------

    stream_connect_timeout_s: float
    mpv_audio_output: str | None

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    volume_store_path: str

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        Every variable has a default; nothing is required.
        """
        return AppConfig(
            env=os.environ.get("ENV", "dev"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),

            station_api_base_url=os.environ.get(
                "STATION_API_BASE_URL", "http://localhost:3000"
            ).rstrip("/"),
            default_stream_url=os.environ.get("DEFAULT_STREAM_URL", DEFAULT_STREAM_URL),
            default_metadata_url=os.environ.get("DEFAULT_METADATA_URL", DEFAULT_METADATA_URL),
            enable_now_playing=_env_flag("ENABLE_NOW_PLAYING", "1"),

            requires_cache_busting=_env_flag("REQUIRES_CACHE_BUSTING", "0"),
            requires_full_reset=_env_flag("REQUIRES_FULL_RESET", "0"),

            stream_connect_timeout_s=float(
                os.environ.get("STREAM_CONNECT_TIMEOUT_S", str(STREAM_CONNECT_TIMEOUT_S))
            ),
            mpv_audio_output=os.environ.get("MPV_AUDIO_OUTPUT") or None,

            volume_store_path=os.environ.get("VOLUME_STORE_PATH", "volume.json"),
        )
