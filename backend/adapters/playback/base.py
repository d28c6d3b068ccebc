"""
Playback adapter contract.

This module defines the *interface only*. No retries, no endpoint selection,
no timers, no state machine decisions live here.

Key invariants:
- The adapter owns exactly one underlying playback resource and is
  responsible for creating and destroying it.
- The adapter never calls the reducer. It reports lifecycle changes through
  the event sink installed by the runtime.
- Generations are owned by the controller. Adapters never see them; the
  runtime tags adapter events on the way in.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from player.enums.error_kind import ErrorKind


class PlaybackEventType(str, Enum):
    """Lifecycle notifications emitted by an adapter."""

    READY = "READY"
    STALLED = "STALLED"
    PLAYING = "PLAYING"
    PAUSED = "PAUSED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class PlaybackEvent:
    """
    One adapter notification.

    error_kind/reason are only set for FAILED.
    """
    event_type: PlaybackEventType
    error_kind: ErrorKind | None = None
    reason: str = ""


PlaybackEventSink = Callable[[PlaybackEvent], None]


class PlaybackAdapter(ABC):
    """
    Abstract wrapper over a native audio playback capability.

    Implementations are responsible for:
    - Buffering a URL on load()
    - Resolving start() once audio is audible, or raising a StreamError
    - Aborting the in-flight network request when pause() or a new load()
      supersedes it
    - Clamping volume to [0, 1]
    - Full destroy/recreate of the playback resource on reset()

    Non-responsibilities:
    - No endpoint selection or cache busting (URLs arrive prepared)
    - No reconnection logic
    """

    def set_event_sink(self, sink: PlaybackEventSink | None) -> None:
        """Install the callback that receives PlaybackEvents."""
        self._sink = sink

    def _emit(self, event: PlaybackEvent) -> None:
        sink = getattr(self, "_sink", None)
        if sink is not None:
            sink(event)

    @abstractmethod
    def load(self, url: str) -> None:
        """
        Begin buffering the given URL.

        Contract:
        - Supersedes any previous load; its network request is aborted.
        - No guarantee of success; failures surface through start().
        """
        raise NotImplementedError

    @abstractmethod
    async def start(self) -> None:
        """
        Start playback of the most recently loaded URL.

        Contract:
        - Resolves when playback audibly begins.
        - Raises a StreamError subclass otherwise (AttemptAborted when
          superseded by pause()/load()/reset()).
        - MUST NOT retry internally.
        """
        raise NotImplementedError

    @abstractmethod
    def pause(self) -> None:
        """Stop playback. Idempotent."""
        raise NotImplementedError

    @abstractmethod
    def set_volume(self, volume: float) -> None:
        """Apply volume, clamped to [0, 1]."""
        raise NotImplementedError

    @abstractmethod
    def reset(self) -> None:
        """Destroy and recreate the underlying playback resource."""
        raise NotImplementedError

    @abstractmethod
    def close(self) -> None:
        """Release the playback resource for good."""
        raise NotImplementedError
