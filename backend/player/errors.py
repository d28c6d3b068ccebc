"""
Stream error taxonomy.

Every failure that can end a connect attempt is expressed as a StreamError
subclass carrying an ErrorKind. Adapters raise these; the runtime converts
them into AttemptFailed events. Nothing here is fatal to the controller.
"""

from __future__ import annotations

import asyncio

import httpx

from player.enums.error_kind import ErrorKind


class StreamError(Exception):
    """Base class for classified stream failures."""

    kind: ErrorKind = ErrorKind.NETWORK

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class StreamNetworkError(StreamError):
    """DNS or connection failure."""
    kind = ErrorKind.NETWORK


class StreamTimeoutError(StreamError):
    """No data within the connect window."""
    kind = ErrorKind.TIMEOUT


class StreamProtocolError(StreamError):
    """Non-2xx status or unexpected content type."""
    kind = ErrorKind.PROTOCOL


class StreamDecodeError(StreamError):
    """Playback pipeline rejected the stream."""
    kind = ErrorKind.DECODE


class AttemptAborted(StreamError):
    """Superseded by a newer attempt. Swallowed by the reducer."""
    kind = ErrorKind.ABORTED


def classify_error(exc: BaseException) -> ErrorKind:
    """
    Map an arbitrary exception to an ErrorKind.

    Order matters: httpx.TimeoutException is a subclass of
    httpx.TransportError, so timeouts are checked first.
    """
    if isinstance(exc, StreamError):
        return exc.kind
    if isinstance(exc, asyncio.CancelledError):
        return ErrorKind.ABORTED
    if isinstance(exc, (asyncio.TimeoutError, httpx.TimeoutException)):
        return ErrorKind.TIMEOUT
    if isinstance(exc, httpx.HTTPStatusError):
        return ErrorKind.PROTOCOL
    if isinstance(exc, (httpx.TransportError, ConnectionError, OSError)):
        return ErrorKind.NETWORK
    return ErrorKind.DECODE


_USER_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.NETWORK: "Could not reach the stream server",
    ErrorKind.TIMEOUT: "The stream did not respond in time",
    ErrorKind.PROTOCOL: "The stream server returned an invalid response",
    ErrorKind.DECODE: "The stream could not be played",
}


def describe_failure(kind: ErrorKind, detail: str | None = None) -> str:
    """Human-readable message for last_error."""
    base = _USER_MESSAGES.get(kind, "Playback failed")
    if detail:
        return f"{base}: {detail}"
    return base
