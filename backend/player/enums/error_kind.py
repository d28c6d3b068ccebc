"""
Failure classification for stream attempts.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """
    Classification used by the reducer to decide what a failure means.

    NETWORK:
        DNS or connection failure.
    TIMEOUT:
        No data within the connect window, or a connected stream stalled
        past the stall timeout.
    PROTOCOL:
        Non-2xx HTTP status or unexpected content type.
    DECODE:
        Playback pipeline rejected the stream.
    ABORTED:
        Superseded by a newer attempt. Never surfaced to the user and never
        feeds the cascade.
    """

    NETWORK = "network"
    TIMEOUT = "timeout"
    PROTOCOL = "protocol"
    DECODE = "decode"
    ABORTED = "aborted"
