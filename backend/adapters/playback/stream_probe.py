"""
HTTP probe for Shoutcast/Icecast streams.

Opens the stream with a streaming GET, validates status and content type,
and parses the ICY/Icecast response headers. The body is never read beyond
the headers; the decoder opens its own connection.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Mapping

import httpx

from constants import STREAM_ACCEPTED_CONTENT_TYPES
from player.errors import (
    StreamNetworkError,
    StreamProtocolError,
    StreamTimeoutError,
)


class ServerType(str, Enum):
    SHOUTCAST = "shoutcast"
    ICECAST = "icecast"
    UNKNOWN = "unknown"


class AudioFormat(str, Enum):
    MP3 = "mp3"
    AAC = "aac"
    OGG = "ogg"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class StreamMetadata:
    """What the stream server says about itself."""

    station_title: str | None = None
    bitrate_kbps: int | None = None
    genre: str | None = None
    content_type: str | None = None
    audio_format: AudioFormat = AudioFormat.UNKNOWN
    server_type: ServerType = ServerType.UNKNOWN
    server_version: str | None = None
    sample_rate: int | None = None
    channels: int | None = None
    station_url: str | None = None


def _first(headers: Mapping[str, str], *names: str) -> str | None:
    for name in names:
        value = headers.get(name)
        if value:
            return value
    return None


def _int_or_none(value: str | None) -> int | None:
    if value is None:
        return None
    match = re.match(r"\s*(\d+)", value)
    return int(match.group(1)) if match else None


def parse_audio_format(content_type: str) -> AudioFormat:
    lowered = content_type.lower()
    if "audio/mpeg" in lowered or "audio/mp3" in lowered:
        return AudioFormat.MP3
    if "audio/aac" in lowered or "audio/mp4" in lowered:
        return AudioFormat.AAC
    if "audio/ogg" in lowered or "application/ogg" in lowered:
        return AudioFormat.OGG
    return AudioFormat.UNKNOWN


def detect_server(headers: Mapping[str, str]) -> tuple[ServerType, str | None]:
    """
    Detect the server software from the `server` header, else infer it
    from ICY vs Icecast-specific headers.
    """
    server = headers.get("server") or ""
    lowered = server.lower()
    version_match = re.search(r"/([\d.]+)", server)
    version = version_match.group(1) if version_match else None

    if "shoutcast" in lowered:
        return ServerType.SHOUTCAST, version
    if "icecast" in lowered:
        return ServerType.ICECAST, version

    if any(name.startswith("ice-") for name in headers):
        return ServerType.ICECAST, None
    if any(name.startswith("icy-") for name in headers):
        return ServerType.SHOUTCAST, None

    return ServerType.UNKNOWN, None


def parse_stream_headers(headers: Mapping[str, str]) -> StreamMetadata:
    """Build StreamMetadata from response headers (keys compared lowercase)."""
    lowered = {k.lower(): v for k, v in headers.items()}
    server_type, server_version = detect_server(lowered)
    content_type = lowered.get("content-type")

    return StreamMetadata(
        station_title=_first(
            lowered, "icy-name", "x-audiocast-name", "icy-description", "server-name"
        ),
        bitrate_kbps=_int_or_none(
            _first(lowered, "icy-br", "x-audiocast-bitrate", "ice-bitrate")
        ),
        genre=_first(lowered, "icy-genre", "x-audiocast-genre", "ice-genre"),
        content_type=content_type,
        audio_format=(
            parse_audio_format(content_type) if content_type else AudioFormat.UNKNOWN
        ),
        server_type=server_type,
        server_version=server_version,
        sample_rate=_int_or_none(_first(lowered, "ice-samplerate", "icy-sr")),
        channels=_int_or_none(_first(lowered, "ice-channels", "icy-channels")),
        station_url=_first(lowered, "icy-url", "x-audiocast-url"),
    )


def is_accepted_content_type(content_type: str | None) -> bool:
    # Many Shoutcast v1 servers omit content-type entirely
    if not content_type:
        return True
    lowered = content_type.lower()
    return any(lowered.startswith(prefix) for prefix in STREAM_ACCEPTED_CONTENT_TYPES)


async def probe_stream(
    client: httpx.AsyncClient,
    url: str,
    *,
    timeout_s: float,
) -> StreamMetadata:
    """
    Open the stream, check it, close it.

    Raises:
        StreamTimeoutError: no response headers within timeout_s
        StreamNetworkError: DNS / connect / transport failure
        StreamProtocolError: non-2xx status or non-audio content type
    """
    try:
        async with client.stream(
            "GET",
            url,
            headers={"Icy-MetaData": "1", "Accept": "*/*"},
            timeout=timeout_s,
        ) as response:
            if not response.is_success:
                raise StreamProtocolError(
                    f"HTTP {response.status_code} from stream server"
                )

            content_type = response.headers.get("content-type")
            if not is_accepted_content_type(content_type):
                raise StreamProtocolError(
                    f"Unexpected content type: {content_type}"
                )

            return parse_stream_headers(response.headers)

    except httpx.TimeoutException as exc:
        raise StreamTimeoutError(f"Stream connect timed out: {exc}") from exc
    except httpx.TransportError as exc:
        raise StreamNetworkError(f"Stream unreachable: {exc}") from exc
