"""
FastAPI app factory.

Responsibilities:
- Create and configure FastAPI app
- Set up middleware
- Build the process-wide RadioController (or accept an injected one)
- Start/close the controller with the application lifespan
- Register routes
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import AppConfig
from controller.radio_controller import RadioController
from controller.volume_store import JsonFileVolumeStore
from services.station_api import StationApiClient

from server.routes import register_routes


def create_app(
    *,
    config: AppConfig | None = None,
    controller: RadioController | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Tests inject a controller built around a fake adapter; production
    builds one around libmpv.
    """
    config = config or AppConfig.load_from_env()
    controller = controller or build_controller(config)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        await controller.start()
        try:
            yield
        finally:
            await controller.close()

    app = FastAPI(title="Radio Stream Controller", lifespan=lifespan)

    app.state.config = config
    app.state.controller = controller

    # Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # tighten later
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routes
    register_routes(app)

    return app


def build_controller(config: AppConfig) -> RadioController:
    """Build the production controller (libmpv playback, HTTP station API)."""
    # libmpv is only needed in production; tests never import it
    from adapters.playback.mpv_player import MpvPlaybackAdapter  # pylint: disable=import-outside-toplevel

    adapter = MpvPlaybackAdapter(
        audio_output=config.mpv_audio_output or "auto",
        connect_timeout_s=config.stream_connect_timeout_s,
    )
    station_api = StationApiClient(
        config.station_api_base_url,
        default_stream_url=config.default_stream_url,
        default_metadata_url=config.default_metadata_url,
    )
    return RadioController(
        config=config,
        adapter=adapter,
        station_api=station_api,
        volume_store=JsonFileVolumeStore(config.volume_store_path),
    )
