# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio
from typing import Callable

import httpx
import pytest

from services.station_api import StationApiClient, StationApiError

BASE = "http://station.test"
DEFAULT_STREAM = "https://default.example/stream"
DEFAULT_META = "https://default.example/"


def _client(handler: Callable[[httpx.Request], httpx.Response]) -> StationApiClient:
    return StationApiClient(
        BASE,
        default_stream_url=DEFAULT_STREAM,
        default_metadata_url=DEFAULT_META,
        transport=httpx.MockTransport(handler),
    )


def _run(client: StationApiClient, coro_fn):
    async def scenario():
        try:
            return await coro_fn(client)
        finally:
            await client.aclose()

    return asyncio.run(scenario())


def test_configuration_is_parsed():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/radio"
        return httpx.Response(200, json={
            "success": True,
            "data": {
                "stream_url": "https://radio.example/stream",
                "metadata_url": "https://radio.example/",
                "station_name": "Trend Ankara",
                "is_fallback_url": True,
            },
        })

    config = _run(_client(handler), lambda c: c.fetch_configuration())

    assert config.stream_url == "https://radio.example/stream"
    assert config.metadata_url == "https://radio.example/"
    assert config.station_name == "Trend Ankara"
    assert config.is_fallback_url
    assert not config.from_defaults


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, json={"success": False}),
        httpx.Response(200, json={"success": False}),
        httpx.Response(200, json={"success": True}),
        httpx.Response(200, text="<html>"),
    ],
)
def test_unusable_configuration_falls_back_to_defaults(response: httpx.Response):
    config = _run(_client(lambda _req: response), lambda c: c.fetch_configuration())

    assert config.stream_url == DEFAULT_STREAM
    assert config.metadata_url == DEFAULT_META
    assert config.from_defaults


def test_transport_failure_raises_station_api_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(StationApiError):
        _run(_client(handler), lambda c: c.fetch_configuration())


def test_fallback_url():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/radio/fallback"
        return httpx.Response(200, json={"success": True, "fallbackUrl": "https://b.example/"})

    assert _run(_client(handler), lambda c: c.fetch_fallback_url()) == "https://b.example/"


def test_missing_fallback_url_is_none():
    responses = [
        httpx.Response(200, json={"success": True, "fallbackUrl": None}),
        httpx.Response(500, json={"success": False, "fallbackUrl": "https://b.example/"}),
    ]
    for response in responses:
        assert _run(_client(lambda _req, r=response: r), lambda c: c.fetch_fallback_url()) is None


def test_now_playing():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/radio/nowplaying"
        return httpx.Response(200, json={"nowPlaying": "  Artist - Song \n"})

    assert _run(_client(handler), lambda c: c.fetch_now_playing()) == "Artist - Song"
