"""
In-process configuration notification bus.

The admin side publishes; the configuration watcher subscribes. Delivery is
synchronous and in subscription order. A failing handler is logged and
skipped; the publisher never sees its exception.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Union

from observability.logger import log_event
from player.enums.priority import ReloadPriority, ReloadReason


@dataclass(frozen=True)
class SettingsUpdated:
    """Station settings were saved; contents must be re-fetched."""
    changed_fields: tuple[str, ...] = ()
    source: str = "unknown"


@dataclass(frozen=True)
class StreamUrlChanged:
    """The primary stream URL changed. Carries the full new URL."""
    stream_url: str
    previous_stream_url: str | None = None
    requires_reconnection: bool = True
    source: str = "unknown"


@dataclass(frozen=True)
class ReloadRequested:
    reason: ReloadReason = ReloadReason.MANUAL_REFRESH
    priority: ReloadPriority = ReloadPriority.NORMAL


@dataclass(frozen=True)
class LegacySettingsBroadcast:
    """Payload-less broadcast kept for older publishers."""


Notification = Union[
    SettingsUpdated,
    StreamUrlChanged,
    ReloadRequested,
    LegacySettingsBroadcast,
]

NotificationHandler = Callable[[Notification], None]
Unsubscribe = Callable[[], None]


@dataclass
class ConfigEventBus:
    _handlers: list[NotificationHandler] = field(default_factory=list)

    def subscribe(self, handler: NotificationHandler) -> Unsubscribe:
        """Register a handler. Returns a callable that removes it (idempotent)."""
        self._handlers.append(handler)

        def _unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return _unsubscribe

    def publish(self, notification: Notification) -> None:
        for handler in list(self._handlers):
            try:
                handler(notification)
            except Exception as exc:  # pylint: disable=broad-exception-caught
                log_event({
                    "ts_ms": int(time.time() * 1000),
                    "event_type": "NOTIFICATION_HANDLER_ERROR",
                    "notification": type(notification).__name__,
                    "exception": type(exc).__name__,
                    "message": str(exc),
                })

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)
