"""
libmpv playback adapter (python-mpv).

Responsibilities:
- Probe the stream over HTTP (status, content type, ICY headers)
- Hand the URL to mpv and resolve start() once audio is flowing
- Translate mpv property changes / end-file events into PlaybackEvents

mpv delivers callbacks on its own event thread. Every callback is bounced
onto the asyncio loop with call_soon_threadsafe before touching adapter
state or the event sink.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any

import httpx
import mpv

from adapters.playback.base import PlaybackAdapter, PlaybackEvent, PlaybackEventType
from adapters.playback.stream_probe import StreamMetadata, probe_stream
from constants import STREAM_CONNECT_TIMEOUT_S, VOLUME_MAX, VOLUME_MIN
from observability.logger import log_event
from player.enums.error_kind import ErrorKind
from player.errors import (
    AttemptAborted,
    StreamDecodeError,
    StreamTimeoutError,
)


class MpvPlaybackAdapter(PlaybackAdapter):
    """PlaybackAdapter backed by a single mpv.MPV instance."""

    def __init__(
        self,
        *,
        audio_output: str = "auto",
        connect_timeout_s: float = STREAM_CONNECT_TIMEOUT_S,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._audio_output = audio_output
        self._connect_timeout_s = connect_timeout_s
        self._http_client = http_client

        self._loop: asyncio.AbstractEventLoop | None = None
        self._player: mpv.MPV | None = None
        self._url: str | None = None
        self._volume: float = VOLUME_MAX
        self._pending: asyncio.Future[None] | None = None

        # True between our own pause()/load() and the next start();
        # mpv pause/end-file notifications in that window are ours.
        self._stopping = False

        self.last_metadata: StreamMetadata | None = None

    # ------------------------------------------------------------------
    # mpv instance lifecycle
    # ------------------------------------------------------------------

    def _create_player(self) -> mpv.MPV:
        player = mpv.MPV(
            video=False,
            terminal=False,
            input_default_bindings=False,
            input_vo_keyboard=False,
            ao=self._audio_output,
            cache="yes",
            network_timeout=int(self._connect_timeout_s),
        )
        player.volume = self._volume * 100.0

        @player.property_observer("core-idle")
        def _on_core_idle(_name: str, value: Any) -> None:
            self._from_mpv_thread(self._handle_core_idle, value)

        @player.property_observer("paused-for-cache")
        def _on_paused_for_cache(_name: str, value: Any) -> None:
            self._from_mpv_thread(self._handle_paused_for_cache, value)

        @player.property_observer("pause")
        def _on_pause(_name: str, value: Any) -> None:
            self._from_mpv_thread(self._handle_pause_property, value)

        @player.event_callback("end-file")
        def _on_end_file(event: Any) -> None:
            data = getattr(event, "data", None)
            self._from_mpv_thread(
                self._handle_end_file,
                getattr(data, "reason", None),
                getattr(data, "error", None),
            )

        return player

    def _ensure_player(self) -> mpv.MPV:
        if self._player is None:
            self._player = self._create_player()
        return self._player

    def _destroy_player(self) -> None:
        player, self._player = self._player, None
        if player is not None:
            player.terminate()

    def _from_mpv_thread(self, fn: Any, *args: Any) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(fn, *args)

    # ------------------------------------------------------------------
    # PlaybackAdapter
    # ------------------------------------------------------------------

    def load(self, url: str) -> None:
        self._abort_pending("superseded by a newer load")
        self._stopping = True
        if self._player is not None:
            self._player.stop()
        self._url = url

    async def start(self) -> None:
        if self._url is None:
            raise StreamDecodeError("Nothing loaded")

        url = self._url
        self._loop = asyncio.get_running_loop()
        future: asyncio.Future[None] = self._loop.create_future()
        self._pending = future

        try:
            started = time.monotonic()
            self.last_metadata = await self._probe(url)
            log_event({
                "ts_ms": int(time.time() * 1000),
                "event_type": "STREAM_PROBED",
                "station_title": self.last_metadata.station_title,
                "bitrate_kbps": self.last_metadata.bitrate_kbps,
                "server_type": self.last_metadata.server_type,
                "content_type": self.last_metadata.content_type,
            })

            if future.done() or self._pending is not future:
                if future.done():
                    future.exception()  # mark retrieved
                raise AttemptAborted("Attempt superseded during probe")

            player = self._ensure_player()
            self._stopping = False
            player.pause = False
            player.play(url)

            remaining = max(self._connect_timeout_s - (time.monotonic() - started), 0.0)
            try:
                await asyncio.wait_for(future, timeout=remaining)
            except asyncio.TimeoutError as exc:
                raise StreamTimeoutError("No audio within the connect window") from exc
        finally:
            if self._pending is future:
                self._pending = None

    async def _probe(self, url: str) -> StreamMetadata:
        if self._http_client is not None:
            return await probe_stream(
                self._http_client, url, timeout_s=self._connect_timeout_s
            )
        async with httpx.AsyncClient(follow_redirects=True) as client:
            return await probe_stream(client, url, timeout_s=self._connect_timeout_s)

    def pause(self) -> None:
        self._abort_pending("paused")
        self._stopping = True
        if self._player is not None:
            self._player.stop()

    def set_volume(self, volume: float) -> None:
        self._volume = min(max(volume, VOLUME_MIN), VOLUME_MAX)
        if self._player is not None:
            self._player.volume = self._volume * 100.0

    def reset(self) -> None:
        self._abort_pending("adapter reset")
        self._stopping = True
        self._destroy_player()
        self._player = self._create_player()

    def close(self) -> None:
        self._abort_pending("adapter closed")
        self._stopping = True
        self._destroy_player()
        self._loop = None

    # ------------------------------------------------------------------
    # Loop-thread handlers for mpv notifications
    # ------------------------------------------------------------------

    def _abort_pending(self, reason: str) -> None:
        pending, self._pending = self._pending, None
        if pending is not None and not pending.done():
            pending.set_exception(AttemptAborted(reason))

    def _handle_core_idle(self, idle: Any) -> None:
        if idle or self._stopping:
            return
        pending = self._pending
        if pending is not None and not pending.done():
            pending.set_result(None)
        self._emit(PlaybackEvent(PlaybackEventType.PLAYING))

    def _handle_paused_for_cache(self, buffering: Any) -> None:
        if self._stopping:
            return
        if buffering:
            self._emit(PlaybackEvent(PlaybackEventType.STALLED))
        else:
            self._emit(PlaybackEvent(PlaybackEventType.READY))

    def _handle_pause_property(self, paused: Any) -> None:
        # Only pauses we did not ask for (e.g. an audio-device interruption)
        if paused and not self._stopping:
            self._emit(PlaybackEvent(PlaybackEventType.PAUSED))

    def _handle_end_file(self, reason: Any, error: Any) -> None:
        if self._stopping:
            return

        if reason == mpv.MpvEventEndFile.ERROR:
            detail = f"mpv error {error}" if error is not None else "mpv error"
            pending = self._pending
            if pending is not None and not pending.done():
                pending.set_exception(StreamDecodeError(detail))
                return
            self._emit(PlaybackEvent(
                PlaybackEventType.FAILED,
                error_kind=ErrorKind.DECODE,
                reason=detail,
            ))
            return

        if reason == mpv.MpvEventEndFile.EOF:
            # A live stream never ends on its own: the server dropped us
            pending = self._pending
            if pending is not None and not pending.done():
                pending.set_exception(StreamDecodeError("Stream ended before audio"))
                return
            self._emit(PlaybackEvent(
                PlaybackEventType.FAILED,
                error_kind=ErrorKind.NETWORK,
                reason="Stream ended",
            ))
