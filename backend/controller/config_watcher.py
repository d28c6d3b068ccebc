"""
Configuration watcher.

Responsibilities:
- Subscribe to the notification bus
- Debounce normal/low priority reload requests; act on high priority at once
- Fetch station configuration and fallback URL
- Feed the result to the runtime as ConfigurationApplied / ConfigurationFailed

Non-responsibilities:
- Deciding whether a transition happens (reducer)
- Touching the adapter (runtime)
"""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable

from constants import RELOAD_DEBOUNCE_MS
from controller.notifications import (
    ConfigEventBus,
    LegacySettingsBroadcast,
    Notification,
    ReloadRequested,
    SettingsUpdated,
    StreamUrlChanged,
    Unsubscribe,
)
from observability.logger import log_event
from player.enums.priority import ReloadPriority, ReloadReason
from player.events import (
    ConfigurationApplied,
    ConfigurationFailed,
    Event,
    EventType,
)
from services.station_api import StationApiClient, StationApiError


Dispatch = Callable[[Event], Awaitable[None]]


def _now_ms() -> int:
    return int(time.time() * 1000)


class ConfigWatcher:
    """Turns bus notifications into configuration events for one controller."""

    def __init__(
        self,
        *,
        bus: ConfigEventBus,
        station_api: StationApiClient,
        dispatch: Dispatch,
        debounce_ms: int = RELOAD_DEBOUNCE_MS,
    ) -> None:
        self._bus = bus
        self._api = station_api
        self._dispatch = dispatch
        self._debounce_ms = debounce_ms

        self._unsubscribe: Unsubscribe | None = None
        self._debounce_task: asyncio.Task[None] | None = None
        self._tasks: set[asyncio.Task[None]] = set()

        # Reloads apply in the order they were started
        self._reload_lock = asyncio.Lock()

    def start(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self._bus.subscribe(self._on_notification)

    async def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

        self.cancel_pending()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def cancel_pending(self) -> None:
        """Drop a debounced reload that has not fired yet."""
        task, self._debounce_task = self._debounce_task, None
        if task is not None and not task.done():
            task.cancel()

    @property
    def reload_pending(self) -> bool:
        return self._debounce_task is not None and not self._debounce_task.done()

    # ------------------------------------------------------------------
    # Notification handling (called synchronously by the bus)
    # ------------------------------------------------------------------

    def _on_notification(self, notification: Notification) -> None:
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "CONFIG_NOTIFICATION_RECEIVED",
            "notification": type(notification).__name__,
        })

        if isinstance(notification, StreamUrlChanged):
            self._spawn(self._apply_stream_url(notification))

        elif isinstance(notification, ReloadRequested):
            self.request_reload(notification.reason, notification.priority)

        elif isinstance(notification, (SettingsUpdated, LegacySettingsBroadcast)):
            self.request_reload(ReloadReason.SETTINGS_UPDATED, ReloadPriority.HIGH)

    def request_reload(
        self,
        reason: ReloadReason = ReloadReason.MANUAL_REFRESH,
        priority: ReloadPriority = ReloadPriority.NORMAL,
    ) -> None:
        """
        HIGH reloads now. NORMAL/LOW (re)start the debounce window so a burst
        of notifications produces a single fetch.
        """
        if priority is ReloadPriority.HIGH:
            self.cancel_pending()
            self._spawn(self.reload(reason))
            return

        self.cancel_pending()
        self._debounce_task = self._spawn(self._debounced_reload(reason))

    async def _debounced_reload(self, reason: ReloadReason) -> None:
        await asyncio.sleep(self._debounce_ms / 1000.0)
        if self._debounce_task is asyncio.current_task():
            self._debounce_task = None
        await self.reload(reason)

    def _spawn(self, coro: Awaitable[None]) -> asyncio.Task[None]:
        task = asyncio.get_running_loop().create_task(coro)  # type: ignore[arg-type]
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # ------------------------------------------------------------------
    # Reload paths
    # ------------------------------------------------------------------

    async def reload(self, reason: ReloadReason = ReloadReason.MANUAL_REFRESH) -> None:
        """Fetch configuration + fallback and apply them."""
        async with self._reload_lock:
            try:
                config = await self._api.fetch_configuration()
            except StationApiError as exc:
                log_event({
                    "ts_ms": _now_ms(),
                    "event_type": "CONFIG_RELOAD_FAILED",
                    "reason": reason.value,
                    "message": str(exc),
                })
                await self._dispatch(ConfigurationFailed(
                    event_type=EventType.CONFIGURATION_FAILED,
                    ts_ms=_now_ms(),
                    message=str(exc),
                ))
                return

            try:
                fallback = await self._api.fetch_fallback_url()
            except StationApiError as exc:
                log_event({
                    "ts_ms": _now_ms(),
                    "event_type": "FALLBACK_FETCH_FAILED",
                    "message": str(exc),
                })
                fallback = None

            # No usable fallback from the API: keep whatever we had
            keep_fallback = fallback is None or fallback == config.stream_url

            log_event({
                "ts_ms": _now_ms(),
                "event_type": "CONFIG_RELOADED",
                "reason": reason.value,
                "stream_url": config.stream_url,
                "fallback_url": fallback,
                "from_defaults": config.from_defaults,
                "is_fallback_url": config.is_fallback_url,
            })

            await self._dispatch(ConfigurationApplied(
                event_type=EventType.CONFIGURATION_APPLIED,
                ts_ms=_now_ms(),
                primary_url=config.stream_url,
                fallback_url=None if keep_fallback else fallback,
                metadata_url=config.metadata_url,
                station_name=config.station_name,
                keep_fallback=keep_fallback,
            ))

    async def _apply_stream_url(self, notification: StreamUrlChanged) -> None:
        async with self._reload_lock:
            await self._dispatch(ConfigurationApplied(
                event_type=EventType.CONFIGURATION_APPLIED,
                ts_ms=_now_ms(),
                primary_url=notification.stream_url,
                keep_fallback=True,
                requires_reconnection=notification.requires_reconnection,
            ))
