"""
Authoritative controller state container.

Rules:
- This dataclass is a pure data model.
- It contains ALL state the reducer may ever need.
- No side effects; only read-only derived properties.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from constants import DEFAULT_TIMINGS, VOLUME_DEFAULT, ControllerTimings
from player.capabilities import PlatformCapabilities
from player.endpoints import EndpointResolver, StreamEndpoint
from player.enums.status import ConnectionStatus
from player.retry import ReconnectState


# =============================================================================
# Controller State
# =============================================================================

@dataclass(frozen=True)
class ControllerState:
    """Immutable snapshot of all controller-owned state."""

    resolver: EndpointResolver

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------
    status: ConnectionStatus = ConnectionStatus.DISCONNECTED

    # Endpoint of the in-flight attempt (CONNECTING) or the live stream
    # (CONNECTED). None while DISCONNECTED.
    current_endpoint: StreamEndpoint | None = None

    # ------------------------------------------------------------------
    # Playback session
    # ------------------------------------------------------------------
    # Monotonic. Bumped on explicit play, pause, reset, and at the start
    # of a seamless transition.
    generation: int = 0

    # True while the user intends audio to be playing
    wants_playback: bool = False

    # Seamless transition: adapter paused, waiting for the settle timer
    settling: bool = False

    # Connected stream reported Stalled and has not resumed yet
    buffering: bool = False

    # ------------------------------------------------------------------
    # Reconnect bookkeeping
    # ------------------------------------------------------------------
    reconnect: ReconnectState = field(default_factory=ReconnectState)
    retry_pending: bool = False

    # ------------------------------------------------------------------
    # User-facing
    # ------------------------------------------------------------------
    last_error: str | None = None
    volume: float = VOLUME_DEFAULT

    # ------------------------------------------------------------------
    # Station metadata (carried for display only)
    # ------------------------------------------------------------------
    metadata_url: str | None = None
    station_name: str | None = None

    # ------------------------------------------------------------------
    # Static configuration
    # ------------------------------------------------------------------
    capabilities: PlatformCapabilities = field(default_factory=PlatformCapabilities)
    timings: ControllerTimings = DEFAULT_TIMINGS

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    shut_down: bool = False

    # ------------------------------------------------------------------
    # Derived
    # ------------------------------------------------------------------

    @property
    def is_playing(self) -> bool:
        return self.status is ConnectionStatus.CONNECTED

    @property
    def is_loading(self) -> bool:
        return (
            self.status is ConnectionStatus.CONNECTING
            or self.settling
            or self.buffering
        )


# =============================================================================
# UI Snapshot
# =============================================================================

@dataclass(frozen=True)
class ControllerSnapshot:
    """Read-only view for UI binding."""

    is_playing: bool
    is_loading: bool
    connection_status: ConnectionStatus
    reconnect_attempts: int
    last_error: str | None
    volume: float
    generation: int
    current_url: str | None
    stream_url: str
    fallback_url: str | None
    last_working_url: str | None
    station_name: str | None
    metadata_url: str | None
    now_playing: str | None = None

    @staticmethod
    def from_state(
        state: ControllerState,
        *,
        now_playing: str | None = None,
    ) -> ControllerSnapshot:
        return ControllerSnapshot(
            is_playing=state.is_playing,
            is_loading=state.is_loading,
            connection_status=state.status,
            reconnect_attempts=state.reconnect.attempt_count,
            last_error=state.last_error,
            volume=state.volume,
            generation=state.generation,
            current_url=(
                state.current_endpoint.url if state.current_endpoint else None
            ),
            stream_url=state.resolver.primary_url,
            fallback_url=state.resolver.fallback_url,
            last_working_url=state.resolver.last_working_url,
            station_name=state.station_name,
            metadata_url=state.metadata_url,
            now_playing=now_playing,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "isPlaying": self.is_playing,
            "isLoading": self.is_loading,
            "connectionStatus": self.connection_status.value,
            "reconnectAttempts": self.reconnect_attempts,
            "lastError": self.last_error,
            "volume": self.volume,
            "generation": self.generation,
            "currentUrl": self.current_url,
            "streamUrl": self.stream_url,
            "fallbackUrl": self.fallback_url,
            "lastWorkingUrl": self.last_working_url,
            "stationName": self.station_name,
            "metadataUrl": self.metadata_url,
            "nowPlaying": self.now_playing,
        }
