"""
Unified event definitions for the stream controller reducer.

Rules:
- Events describe facts that have occurred.
- Events carry data only (no behavior).
- All reducer decisions are based on these events.
- No clocks, no timers, no async, no side effects.

Anything produced by asynchronous work (attempt results, adapter lifecycle,
timers) is a GenerationEvent and is dropped by the reducer when its
generation no longer matches the current one.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from player.endpoints import StreamEndpoint
from player.enums.error_kind import ErrorKind


# =============================================================================
# Event Type Enumeration
# =============================================================================

class EventType(str, Enum):
    """
    Canonical event types understood by the reducer.

    Every event type must be explicitly handled or explicitly ignored
    by the reducer.
    """

    # ------------------------------------------------------------------
    # User intents
    # ------------------------------------------------------------------
    PLAY_REQUESTED = "PLAY_REQUESTED"
    PAUSE_REQUESTED = "PAUSE_REQUESTED"
    RESET_REQUESTED = "RESET_REQUESTED"
    VOLUME_CHANGED = "VOLUME_CHANGED"

    # ------------------------------------------------------------------
    # Connect attempts
    # ------------------------------------------------------------------
    ATTEMPT_SUCCEEDED = "ATTEMPT_SUCCEEDED"
    ATTEMPT_FAILED = "ATTEMPT_FAILED"

    # ------------------------------------------------------------------
    # Playback adapter lifecycle
    # ------------------------------------------------------------------
    ADAPTER_READY = "ADAPTER_READY"
    ADAPTER_STALLED = "ADAPTER_STALLED"
    ADAPTER_PLAYING = "ADAPTER_PLAYING"
    ADAPTER_PAUSED = "ADAPTER_PAUSED"
    ADAPTER_FAILED = "ADAPTER_FAILED"

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------
    RETRY_READY = "RETRY_READY"
    SETTLE_ELAPSED = "SETTLE_ELAPSED"
    STALL_TIMEOUT = "STALL_TIMEOUT"

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------
    CONFIGURATION_APPLIED = "CONFIGURATION_APPLIED"
    CONFIGURATION_FAILED = "CONFIGURATION_FAILED"

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------
    SHUTDOWN = "SHUTDOWN"


# =============================================================================
# Base Event
# =============================================================================

@dataclass(frozen=True)
class Event:
    """
    Base event type.

    All events must specify:
    - event_type: discriminant
    - ts_ms: timestamp provided by the source (or fake in tests)
    """

    event_type: EventType
    ts_ms: int


@dataclass(frozen=True)
class GenerationEvent(Event):
    """
    Base class for results of asynchronous work.

    The reducer MUST ignore events whose generation does not match the
    current playback session generation.
    """

    generation: int


# =============================================================================
# User Intents
# =============================================================================

@dataclass(frozen=True)
class PlayRequested(Event):
    """User wants audio playing."""


@dataclass(frozen=True)
class PauseRequested(Event):
    """User stopped playback."""


@dataclass(frozen=True)
class ResetRequested(Event):
    """User requested a hard reset of the playback resource."""


@dataclass(frozen=True)
class VolumeChanged(Event):
    """User set the volume. Value is clamped by the reducer."""
    volume: float


# =============================================================================
# Attempt Results
# =============================================================================

@dataclass(frozen=True)
class AttemptSucceeded(GenerationEvent):
    """Adapter start() resolved for this endpoint."""
    endpoint: StreamEndpoint


@dataclass(frozen=True)
class AttemptFailed(GenerationEvent):
    """Adapter start() rejected for this endpoint."""
    endpoint: StreamEndpoint
    error_kind: ErrorKind
    message: str = ""


# =============================================================================
# Adapter Lifecycle
# =============================================================================

@dataclass(frozen=True)
class AdapterReady(GenerationEvent):
    """Decoder has enough data to begin."""


@dataclass(frozen=True)
class AdapterStalled(GenerationEvent):
    """Decoder ran out of data."""


@dataclass(frozen=True)
class AdapterPlaying(GenerationEvent):
    """Audio is audible."""


@dataclass(frozen=True)
class AdapterPaused(GenerationEvent):
    """Playback paused (possibly not by us)."""


@dataclass(frozen=True)
class AdapterFailed(GenerationEvent):
    """Playback pipeline failed after start."""
    error_kind: ErrorKind
    message: str = ""


# =============================================================================
# Timers
# =============================================================================

@dataclass(frozen=True)
class RetryReady(GenerationEvent):
    """Scheduled reconnect delay elapsed."""


@dataclass(frozen=True)
class SettleElapsed(GenerationEvent):
    """Seamless transition settle interval elapsed."""


@dataclass(frozen=True)
class StallTimeout(GenerationEvent):
    """A connected stream stayed stalled past the stall timeout."""


# =============================================================================
# Configuration
# =============================================================================

@dataclass(frozen=True)
class ConfigurationApplied(Event):
    """
    New station configuration is available.

    keep_fallback:
        True when the source only knew the primary URL (e.g. a
        stream-url-changed notification); the current fallback is retained.

    requires_reconnection:
        False adopts the new primary passively even while connected.
    """
    primary_url: str
    fallback_url: str | None = None
    metadata_url: str | None = None
    station_name: str | None = None
    keep_fallback: bool = False
    requires_reconnection: bool = True


@dataclass(frozen=True)
class ConfigurationFailed(Event):
    """Configuration fetch raised."""
    message: str


# =============================================================================
# Teardown
# =============================================================================

@dataclass(frozen=True)
class Shutdown(Event):
    """Controller teardown."""
