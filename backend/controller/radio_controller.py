"""
RadioController: the public face of the stream controller.

One controller == one playback adapter == one runtime.

Responsibilities:
- Build the initial controller state from AppConfig and the stored volume
- Wire runtime, configuration watcher and now-playing poller together
- Translate public calls (play/pause/reset/volume/reload) into events
- Publish snapshots to subscribers whenever state changes

NOT responsible for:
- Any state machine logic (reducer)
- Executing side effects (runtime)
"""

from __future__ import annotations

import time
from typing import Callable

from config import AppConfig
from constants import (
    DEFAULT_TIMINGS,
    NOW_PLAYING_POLL_INTERVAL_S,
    RELOAD_DEBOUNCE_MS,
    VOLUME_DEFAULT,
    ControllerTimings,
)
from adapters.playback.base import PlaybackAdapter
from controller.config_watcher import ConfigWatcher
from controller.notifications import ConfigEventBus, Unsubscribe
from controller.now_playing import NowPlayingPoller
from controller.volume_store import MemoryVolumeStore, VolumeStore
from observability.logger import log_event
from player.capabilities import PlatformCapabilities
from player.endpoints import EndpointResolver
from player.enums.priority import ReloadReason
from player.events import (
    EventType,
    PauseRequested,
    PlayRequested,
    ResetRequested,
    VolumeChanged,
)
from player.reducer import clamp_volume
from player.runtime import Runtime
from player.state_dataclass import ControllerSnapshot, ControllerState
from services.station_api import StationApiClient


SnapshotListener = Callable[[ControllerSnapshot], None]


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class RadioController:
    def __init__(
        self,
        *,
        config: AppConfig,
        adapter: PlaybackAdapter,
        station_api: StationApiClient,
        bus: ConfigEventBus | None = None,
        volume_store: VolumeStore | None = None,
        timings: ControllerTimings = DEFAULT_TIMINGS,
        debounce_ms: int = RELOAD_DEBOUNCE_MS,
        now_playing_interval_s: float = NOW_PLAYING_POLL_INTERVAL_S,
    ) -> None:
        self._config = config
        self._station_api = station_api
        self.bus = bus if bus is not None else ConfigEventBus()
        self._volume_store = volume_store if volume_store is not None else MemoryVolumeStore()
        self._listeners: list[SnapshotListener] = []

        stored = self._volume_store.load()
        volume = clamp_volume(stored) if stored is not None else VOLUME_DEFAULT

        initial_state = ControllerState(
            resolver=EndpointResolver(primary_url=config.default_stream_url),
            volume=volume,
            metadata_url=config.default_metadata_url,
            capabilities=PlatformCapabilities(
                requires_cache_busting=config.requires_cache_busting,
                requires_full_reset=config.requires_full_reset,
            ),
            timings=timings,
        )

        self._runtime = Runtime(
            initial_state=initial_state,
            adapter=adapter,
            volume_store=self._volume_store,
            on_state_change=lambda _state: self._publish(),
        )

        self._watcher = ConfigWatcher(
            bus=self.bus,
            station_api=station_api,
            dispatch=self._runtime.handle_event,
            debounce_ms=debounce_ms,
        )

        self._poller: NowPlayingPoller | None = None
        if config.enable_now_playing:
            self._poller = NowPlayingPoller(
                station_api,
                interval_s=now_playing_interval_s,
                on_change=lambda _text: self._publish(),
            )

        self._started = False
        self._closed = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Subscribe to notifications, start polling, load configuration once."""
        if self._started:
            return
        self._started = True

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "CONTROLLER_STARTED",
            "controller_id": self._runtime.controller_id,
            "env": self._config.env,
            "log_level": self._config.log_level,
            "station_api_base_url": self._config.station_api_base_url,
        })

        self._watcher.start()
        if self._poller is not None:
            self._poller.start()
        await self._watcher.reload(ReloadReason.SETTINGS_UPDATED)

    async def close(self) -> None:
        """Tear down timers, tasks, adapter and HTTP client. Idempotent."""
        if self._closed:
            return
        self._closed = True

        await self._watcher.close()
        if self._poller is not None:
            await self._poller.stop()
        await self._runtime.shutdown()
        await self._station_api.aclose()
        self._listeners.clear()

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "CONTROLLER_CLOSED",
            "controller_id": self._runtime.controller_id,
        })

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def play(self) -> ControllerSnapshot:
        """
        Request playback. Returns once the connecting episode is over
        (connected, or disconnected with the cascade exhausted).
        """
        await self.request_play()
        await self._runtime.wait_for_attempts()
        return self.snapshot()

    async def request_play(self) -> ControllerSnapshot:
        """Start connecting and return at once; the outcome arrives via snapshots."""
        await self._runtime.handle_event(
            PlayRequested(event_type=EventType.PLAY_REQUESTED, ts_ms=_now_ms())
        )
        return self.snapshot()

    async def pause(self) -> ControllerSnapshot:
        self._watcher.cancel_pending()
        await self._runtime.handle_event(
            PauseRequested(event_type=EventType.PAUSE_REQUESTED, ts_ms=_now_ms())
        )
        return self.snapshot()

    async def reset(self) -> ControllerSnapshot:
        self._watcher.cancel_pending()
        await self._runtime.handle_event(
            ResetRequested(event_type=EventType.RESET_REQUESTED, ts_ms=_now_ms())
        )
        return self.snapshot()

    async def set_volume(self, volume: float) -> ControllerSnapshot:
        await self._runtime.handle_event(
            VolumeChanged(
                event_type=EventType.VOLUME_CHANGED,
                ts_ms=_now_ms(),
                volume=volume,
            )
        )
        return self.snapshot()

    async def reload_configuration(self) -> ControllerSnapshot:
        await self._watcher.reload(ReloadReason.MANUAL_REFRESH)
        return self.snapshot()

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @property
    def state(self) -> ControllerState:
        return self._runtime.state

    @property
    def runtime(self) -> Runtime:
        return self._runtime

    @property
    def watcher(self) -> ConfigWatcher:
        return self._watcher

    def snapshot(self) -> ControllerSnapshot:
        return ControllerSnapshot.from_state(
            self._runtime.state,
            now_playing=self._poller.now_playing if self._poller else None,
        )

    def subscribe(self, listener: SnapshotListener) -> Unsubscribe:
        """Call listener with every new snapshot. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _publish(self) -> None:
        if not self._listeners:
            return
        snap = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snap)
            except Exception as exc:  # pylint: disable=broad-exception-caught
                log_event({
                    "ts_ms": _now_ms(),
                    "event_type": "SNAPSHOT_LISTENER_ERROR",
                    "controller_id": self._runtime.controller_id,
                    "exception": type(exc).__name__,
                    "message": str(exc),
                })
