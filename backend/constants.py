"""
BEHAVIOR-AS-CONSTANTS
---------------------
Single source of truth for all behavioral invariants of the stream controller.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Other modules MUST import from this file.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

# =============================================================================
# Reconnect Backoff
# =============================================================================

RECONNECT_BASE_DELAY_MS: Final[int] = 1_000
RECONNECT_CAP_DELAY_MS: Final[int] = 30_000

# Automatic retries stop once this many scheduled retries have been issued
# without an intervening successful connection.
RECONNECT_MAX_ATTEMPTS: Final[int] = 5

# =============================================================================
# Seamless Transition / Configuration Reload
# =============================================================================

# Pause between tearing down the old connection and loading the new primary
TRANSITION_SETTLE_MS: Final[int] = 500

# Coalescing window for normal/low priority reload notifications
RELOAD_DEBOUNCE_MS: Final[int] = 1_000

# =============================================================================
# Stream Health
# =============================================================================

# A connected stream that reports Stalled and does not resume within this
# window is treated as a timeout failure of the current endpoint.
STALL_TIMEOUT_MS: Final[int] = 10_000

# Connect / first-byte window for a single attempt
STREAM_CONNECT_TIMEOUT_S: Final[float] = 10.0

# Content types accepted from a stream endpoint (prefix match)
STREAM_ACCEPTED_CONTENT_TYPES: Final[tuple[str, ...]] = (
    "audio/",
    "application/ogg",
    "application/octet-stream",
    "video/mp2t",
)

# =============================================================================
# Cache Busting
# =============================================================================

CACHE_BUST_TIMESTAMP_PARAM: Final[str] = "t"
CACHE_BUST_TOKEN_PARAM: Final[str] = "r"
CACHE_BUST_FALLBACK_PARAM: Final[str] = "fallback"
CACHE_BUST_TOKEN_LEN: Final[int] = 6

# =============================================================================
# Volume
# =============================================================================

VOLUME_MIN: Final[float] = 0.0
VOLUME_MAX: Final[float] = 1.0
VOLUME_DEFAULT: Final[float] = 0.7
VOLUME_STORAGE_KEY: Final[str] = "radioVolume"

# =============================================================================
# Now Playing
# =============================================================================

NOW_PLAYING_POLL_INTERVAL_S: Final[float] = 10.0
NOW_PLAYING_PLACEHOLDER: Final[str] = "Now Playing info goes here"

# =============================================================================
# Station API paths
# =============================================================================

STATION_CONFIG_PATH: Final[str] = "/api/radio"
STATION_FALLBACK_PATH: Final[str] = "/api/radio/fallback"
STATION_NOW_PLAYING_PATH: Final[str] = "/api/radio/nowplaying"
STATION_API_TIMEOUT_S: Final[float] = 5.0

DEFAULT_STREAM_URL: Final[str] = "https://radyo.yayin.com.tr:5132/stream"
DEFAULT_METADATA_URL: Final[str] = "https://radyo.yayin.com.tr:5132/"


# =============================================================================
# Convenience Bundles
# =============================================================================

@dataclass(frozen=True)
class ControllerTimings:
    """
    Immutable bundle of the timing values the reducer works with.

    Carried inside controller state so the reducer stays pure while tests
    can shrink durations. This is NOT a second source of truth: defaults
    always come from the constants above.
    """
    retry_base_ms: int = RECONNECT_BASE_DELAY_MS
    retry_cap_ms: int = RECONNECT_CAP_DELAY_MS
    retry_max_attempts: int = RECONNECT_MAX_ATTEMPTS
    settle_ms: int = TRANSITION_SETTLE_MS
    stall_timeout_ms: int = STALL_TIMEOUT_MS


DEFAULT_TIMINGS: Final[ControllerTimings] = ControllerTimings()
