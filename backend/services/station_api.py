"""
Station API client.

Talks to the station backend for:
- GET /api/radio           -> stream/metadata URLs and station name
- GET /api/radio/fallback  -> backup stream URL
- GET /api/radio/nowplaying -> current song text

Non-2xx configuration responses degrade to the configured default URLs.
Transport failures raise StationApiError; callers decide what that means.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from constants import (
    DEFAULT_METADATA_URL,
    DEFAULT_STREAM_URL,
    STATION_API_TIMEOUT_S,
    STATION_CONFIG_PATH,
    STATION_FALLBACK_PATH,
    STATION_NOW_PLAYING_PATH,
)


class StationApiError(Exception):
    """The station API could not be reached or returned garbage."""


@dataclass(frozen=True)
class StationConfig:
    stream_url: str
    metadata_url: str | None = None
    station_name: str | None = None
    is_fallback_url: bool = False
    # True when the values came from local defaults, not the API
    from_defaults: bool = False


class StationApiClient:
    """Thin async wrapper over the station HTTP API (one pooled httpx client)."""

    def __init__(
        self,
        base_url: str,
        *,
        default_stream_url: str = DEFAULT_STREAM_URL,
        default_metadata_url: str = DEFAULT_METADATA_URL,
        timeout_s: float = STATION_API_TIMEOUT_S,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._default_stream_url = default_stream_url
        self._default_metadata_url = default_metadata_url
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout_s,
            transport=transport,
            headers={"Cache-Control": "no-cache"},
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def defaults(self) -> StationConfig:
        return StationConfig(
            stream_url=self._default_stream_url,
            metadata_url=self._default_metadata_url,
            from_defaults=True,
        )

    async def _get(self, path: str) -> httpx.Response:
        try:
            return await self._client.get(path)
        except httpx.TimeoutException as exc:
            raise StationApiError(f"{path} timed out") from exc
        except httpx.HTTPError as exc:
            raise StationApiError(f"{path} failed: {exc}") from exc

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return None

    async def fetch_configuration(self) -> StationConfig:
        """
        Fetch the active station configuration.

        Returns the defaults on a non-2xx status or a payload without
        success/data. Raises StationApiError on transport failure.
        """
        response = await self._get(STATION_CONFIG_PATH)
        if not response.is_success:
            return self.defaults()

        payload = self._json(response)
        if not isinstance(payload, dict) or not payload.get("success"):
            return self.defaults()

        data = payload.get("data")
        if not isinstance(data, dict) or not data.get("stream_url"):
            return self.defaults()

        return StationConfig(
            stream_url=str(data["stream_url"]),
            metadata_url=data.get("metadata_url") or self._default_metadata_url,
            station_name=data.get("station_name"),
            is_fallback_url=bool(data.get("is_fallback_url", False)),
        )

    async def fetch_fallback_url(self) -> str | None:
        """
        Fetch the backup stream URL.

        None on a non-2xx status or when no fallback is configured.
        """
        response = await self._get(STATION_FALLBACK_PATH)
        if not response.is_success:
            return None
        payload = self._json(response)
        if not isinstance(payload, dict):
            return None
        url = payload.get("fallbackUrl")
        return str(url) if url else None

    async def fetch_now_playing(self) -> str | None:
        response = await self._get(STATION_NOW_PLAYING_PATH)
        if not response.is_success:
            return None
        payload = self._json(response)
        if not isinstance(payload, dict):
            return None
        text = payload.get("nowPlaying")
        return str(text).strip() if text else None
