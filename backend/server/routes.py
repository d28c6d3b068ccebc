"""
Route registration for the radio stream controller.

Responsibilities:
- Define HTTP and WebSocket endpoints
- Translate requests into RadioController calls
- Publish admin notifications onto the configuration bus
- Pull dependencies from app.state
"""

from __future__ import annotations

import asyncio
import json
import time
from typing import Any

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from controller.notifications import (
    LegacySettingsBroadcast,
    Notification,
    ReloadRequested,
    SettingsUpdated,
    StreamUrlChanged,
)
from controller.radio_controller import RadioController
from observability.logger import log_event
from player.enums.priority import ReloadPriority, ReloadReason
from player.state_dataclass import ControllerSnapshot


class VolumeBody(BaseModel):
    volume: float


def register_routes(app: FastAPI) -> None:
    """Register all routes on the FastAPI app."""

    def _controller() -> RadioController:
        return app.state.controller

    @app.get("/health")
    async def health() -> dict[str, str]: # pyright: ignore[reportUnusedFunction]
        return {"status": "ok"}

    @app.get("/player")
    async def player_state() -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        return _controller().snapshot().to_dict()

    @app.post("/player/play")
    async def player_play() -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        return (await _controller().play()).to_dict()

    @app.post("/player/pause")
    async def player_pause() -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        return (await _controller().pause()).to_dict()

    @app.post("/player/reset")
    async def player_reset() -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        return (await _controller().reset()).to_dict()

    @app.post("/player/reload")
    async def player_reload() -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        return (await _controller().reload_configuration()).to_dict()

    @app.put("/player/volume")
    async def player_volume(body: VolumeBody) -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        return (await _controller().set_volume(body.volume)).to_dict()

    @app.post("/config/notifications", status_code=202)
    async def config_notification(body: dict[str, Any]) -> dict[str, str]: # pyright: ignore[reportUnusedFunction]
        try:
            notification = parse_notification(body)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc

        _controller().bus.publish(notification)
        return {"status": "accepted", "type": type(notification).__name__}

    @app.websocket("/ws")
    async def websocket_endpoint(ws: WebSocket) -> None: # pyright: ignore[reportUnusedFunction]
        await ws.accept()
        controller = _controller()

        queue: asyncio.Queue[ControllerSnapshot] = asyncio.Queue()
        unsubscribe = controller.subscribe(queue.put_nowait)

        async def _push_snapshots() -> None:
            await ws.send_text(json.dumps(controller.snapshot().to_dict()))
            while True:
                snap = await queue.get()
                await ws.send_text(json.dumps(snap.to_dict()))

        sender = asyncio.create_task(_push_snapshots())

        try:
            while True:
                msg = await ws.receive_text()
                await _handle_ws_command(controller, msg)

        except WebSocketDisconnect:
            pass

        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "ts_ms": int(time.time() * 1000),
                "event_type": "WS_FATAL_ERROR",
                "controller_id": controller.runtime.controller_id,
                "exception": type(exc).__name__,
                "message": str(exc),
            })

        finally:
            unsubscribe()
            sender.cancel()
            await asyncio.gather(sender, return_exceptions=True)


async def _handle_ws_command(controller: RadioController, raw: str) -> None:
    """
    Client -> server control messages:
        {"type": "play" | "pause" | "reset" | "reload"}
        {"type": "volume", "volume": 0.5}
    Unknown or malformed messages are logged and dropped.
    """
    try:
        msg = json.loads(raw)
        msg_type = msg["type"]
    except (ValueError, KeyError, TypeError):
        log_event({
            "ts_ms": int(time.time() * 1000),
            "event_type": "WS_BAD_MESSAGE",
            "raw": raw[:200],
        })
        return

    if msg_type == "play":
        # Must not wait for the attempt: a following pause has to be read
        await controller.request_play()
    elif msg_type == "pause":
        await controller.pause()
    elif msg_type == "reset":
        await controller.reset()
    elif msg_type == "reload":
        await controller.reload_configuration()
    elif msg_type == "volume" and isinstance(msg.get("volume"), (int, float)):
        await controller.set_volume(float(msg["volume"]))
    else:
        log_event({
            "ts_ms": int(time.time() * 1000),
            "event_type": "WS_UNKNOWN_COMMAND",
            "type": str(msg_type),
        })


def parse_notification(body: dict[str, Any]) -> Notification:
    """
    Build a bus notification from an admin payload.

    Raises ValueError for unknown types or missing fields.
    """
    kind = body.get("type")

    if kind == "settings_updated":
        changed = body.get("changed_fields") or []
        return SettingsUpdated(
            changed_fields=tuple(str(f) for f in changed),
            source=str(body.get("source", "unknown")),
        )

    if kind == "stream_url_changed":
        stream_url = body.get("stream_url")
        if not isinstance(stream_url, str) or not stream_url:
            raise ValueError("stream_url_changed requires a non-empty stream_url")
        return StreamUrlChanged(
            stream_url=stream_url,
            previous_stream_url=body.get("previous_stream_url"),
            requires_reconnection=bool(body.get("requires_reconnection", True)),
            source=str(body.get("source", "unknown")),
        )

    if kind == "reload_requested":
        try:
            reason = ReloadReason(body.get("reason", ReloadReason.MANUAL_REFRESH.value))
            priority = ReloadPriority(body.get("priority", ReloadPriority.NORMAL.value))
        except ValueError as exc:
            raise ValueError(f"Invalid reload_requested payload: {exc}") from exc
        return ReloadRequested(reason=reason, priority=priority)

    if kind == "radio_settings_updated":
        return LegacySettingsBroadcast()

    raise ValueError(f"Unknown notification type: {kind!r}")
