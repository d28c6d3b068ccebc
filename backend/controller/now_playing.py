"""
Now-playing poller.

Fetches the current song text on a fixed interval. Purely informational:
errors are logged and the last known value is kept.
"""

from __future__ import annotations

import asyncio
import time
from typing import Callable

from constants import NOW_PLAYING_POLL_INTERVAL_S
from observability.logger import log_event
from services.station_api import StationApiClient, StationApiError


class NowPlayingPoller:
    def __init__(
        self,
        station_api: StationApiClient,
        *,
        interval_s: float = NOW_PLAYING_POLL_INTERVAL_S,
        on_change: Callable[[str | None], None] | None = None,
    ) -> None:
        self._api = station_api
        self._interval_s = interval_s
        self._on_change = on_change
        self._task: asyncio.Task[None] | None = None
        self.now_playing: str | None = None

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    async def poll_once(self) -> str | None:
        try:
            text = await self._api.fetch_now_playing()
        except StationApiError as exc:
            log_event({
                "ts_ms": int(time.time() * 1000),
                "event_type": "NOW_PLAYING_FETCH_FAILED",
                "message": str(exc),
            })
            return self.now_playing

        if text is not None and text != self.now_playing:
            self.now_playing = text
            if self._on_change is not None:
                self._on_change(text)
        return self.now_playing

    async def _run(self) -> None:
        while True:
            await self.poll_once()
            await asyncio.sleep(self._interval_s)
