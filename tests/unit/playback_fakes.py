# pylint: disable=missing-module-docstring,missing-function-docstring
"""
Test doubles shared by the runtime/controller/server tests.

FakePlaybackAdapter:
- records every call in .calls
- start() consumes a scripted outcome for the loaded base URL:
    None      -> succeed
    HANG      -> block until cancelled or aborted
    exception -> raise it
"""

from __future__ import annotations

import asyncio
import dataclasses
from typing import Any

from adapters.playback.base import PlaybackAdapter, PlaybackEvent, PlaybackEventType
from config import AppConfig
from constants import ControllerTimings
from player.enums.error_kind import ErrorKind
from player.errors import AttemptAborted


HANG = object()

FAST_TIMINGS = ControllerTimings(
    retry_base_ms=1,
    retry_cap_ms=4,
    retry_max_attempts=5,
    settle_ms=5,
    stall_timeout_ms=5,
)

PRIMARY = "https://radio.example/stream"
FALLBACK = "https://backup.example/stream"
NEW_PRIMARY = "https://radio2.example/live"


def base_url(url: str) -> str:
    return url.split("?", 1)[0]


class FakePlaybackAdapter(PlaybackAdapter):
    def __init__(self, outcomes: dict[str, list[Any]] | None = None) -> None:
        self.outcomes: dict[str, list[Any]] = outcomes or {}
        self.calls: list[tuple[Any, ...]] = []
        self.volume: float | None = None
        self.closed = False
        self._url: str | None = None
        self._pending: asyncio.Future[None] | None = None

    # ---- inspection -------------------------------------------------

    @property
    def loaded_urls(self) -> list[str]:
        return [c[1] for c in self.calls if c[0] == "load"]

    @property
    def loaded_bases(self) -> list[str]:
        return [base_url(u) for u in self.loaded_urls]

    def call_names(self) -> list[str]:
        return [c[0] for c in self.calls]

    # ---- simulate adapter notifications -----------------------------

    def emit(self, event_type: PlaybackEventType, **kwargs: Any) -> None:
        self._emit(PlaybackEvent(event_type, **kwargs))

    def emit_failure(self, reason: str = "decoder died") -> None:
        self._emit(PlaybackEvent(
            PlaybackEventType.FAILED,
            error_kind=ErrorKind.DECODE,
            reason=reason,
        ))

    # ---- PlaybackAdapter --------------------------------------------

    def load(self, url: str) -> None:
        self.calls.append(("load", url))
        self._abort("superseded")
        self._url = url

    async def start(self) -> None:
        self.calls.append(("start",))
        assert self._url is not None
        script = self.outcomes.get(base_url(self._url), [])
        outcome = script.pop(0) if script else None

        if outcome is HANG:
            self._pending = asyncio.get_running_loop().create_future()
            await self._pending
            return
        if isinstance(outcome, BaseException):
            raise outcome
        await asyncio.sleep(0)

    def pause(self) -> None:
        self.calls.append(("pause",))
        self._abort("paused")

    def set_volume(self, volume: float) -> None:
        self.calls.append(("volume", volume))
        self.volume = volume

    def reset(self) -> None:
        self.calls.append(("reset",))
        self._abort("reset")

    def close(self) -> None:
        self.calls.append(("close",))
        self.closed = True

    def _abort(self, reason: str) -> None:
        pending, self._pending = self._pending, None
        if pending is not None and not pending.done():
            pending.set_exception(AttemptAborted(reason))


def make_config(**overrides: Any) -> AppConfig:
    base = AppConfig(
        env="test",
        log_level="DEBUG",
        station_api_base_url="http://station.test",
        default_stream_url=PRIMARY,
        default_metadata_url="https://radio.example/",
        enable_now_playing=False,
        requires_cache_busting=False,
        requires_full_reset=False,
        stream_connect_timeout_s=1.0,
        mpv_audio_output=None,
        volume_store_path="unused.json",
    )
    return dataclasses.replace(base, **overrides)


async def settle(rounds: int = 5) -> None:
    """Let spawned tasks (adapter events, attempts) run."""
    for _ in range(rounds):
        await asyncio.sleep(0)
