"""
Connection status for the live stream.

Rules:
- This enum defines ONLY the connection lifecycle states.
- No behavior, no helper methods, no side effects.
- Transitions are defined exclusively in the reducer.
"""

from __future__ import annotations

from enum import Enum


class ConnectionStatus(str, Enum):
    """
    Exactly one value at any time; owned by the reducer.

    Allowed edges:
        DISCONNECTED -> CONNECTING
        CONNECTING   -> CONNECTED
        CONNECTING   -> DISCONNECTED
        CONNECTED    -> DISCONNECTED
    """

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
