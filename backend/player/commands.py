"""
Side-effect command definitions for the stream controller.

Rules:
- Commands are declarative requests for side effects.
- Commands are emitted by the reducer and executed by the runtime.
- No behavior, no async, no I/O, no clocks.
Invariant:
    - All concrete Command subclasses MUST be frozen dataclasses.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from player.endpoints import StreamEndpoint
from player.events import EventType

# =============================================================================
# Command Type Enumeration
# =============================================================================

class CommandType(str, Enum):
    """
    Canonical command types emitted by the reducer.

    These are stable discriminants used for logging and runtime dispatch.
    """

    # Adapter
    START_ATTEMPT = "START_ATTEMPT"
    ABORT_ATTEMPT = "ABORT_ATTEMPT"
    PAUSE_ADAPTER = "PAUSE_ADAPTER"
    RESET_ADAPTER = "RESET_ADAPTER"
    SET_ADAPTER_VOLUME = "SET_ADAPTER_VOLUME"

    # Persistence
    PERSIST_VOLUME = "PERSIST_VOLUME"

    # Timers
    START_TIMER = "START_TIMER"
    CANCEL_TIMER = "CANCEL_TIMER"
    SCHEDULE_RETRY = "SCHEDULE_RETRY"

    # Observability
    LOG_EVENT = "LOG_EVENT"


# =============================================================================
# Base Command
# =============================================================================

class Command:
    """
    Base command type.

    command_type is an explicit discriminant and must never be inferred
    from Python type identity.
    """

    command_type: CommandType


# =============================================================================
# Adapter Commands
# =============================================================================

@dataclass(frozen=True)
class StartAttempt(Command):
    """
    Load and start the given endpoint.

    The runtime prepares the cache-busted URL, supersedes any attempt still
    in flight, and reports the outcome as AttemptSucceeded/AttemptFailed
    tagged with this generation.
    """
    generation: int
    endpoint: StreamEndpoint
    command_type: CommandType = CommandType.START_ATTEMPT


@dataclass(frozen=True)
class AbortAttempt(Command):
    """Cancel the in-flight attempt, if any."""
    command_type: CommandType = CommandType.ABORT_ATTEMPT


@dataclass(frozen=True)
class PauseAdapter(Command):
    """Pause the adapter (idempotent)."""
    command_type: CommandType = CommandType.PAUSE_ADAPTER


@dataclass(frozen=True)
class ResetAdapter(Command):
    """Destroy and recreate the adapter's underlying playback resource."""
    command_type: CommandType = CommandType.RESET_ADAPTER


@dataclass(frozen=True)
class SetAdapterVolume(Command):
    """Forward an already-clamped volume to the adapter."""
    volume: float
    command_type: CommandType = CommandType.SET_ADAPTER_VOLUME


# =============================================================================
# Persistence
# =============================================================================

@dataclass(frozen=True)
class PersistVolume(Command):
    """Write the volume to the external key-value store."""
    volume: float
    command_type: CommandType = CommandType.PERSIST_VOLUME


# =============================================================================
# Timers
# =============================================================================

@dataclass(frozen=True)
class StartTimer(Command):
    """
    Start (or replace) a timer that emits a generation-tagged event.
    """
    timer_id: str
    duration_ms: int
    generation: int
    timeout_event_type: EventType
    command_type: CommandType = CommandType.START_TIMER


@dataclass(frozen=True)
class CancelTimer(Command):
    """Cancel a timer (idempotent)."""
    timer_id: str
    command_type: CommandType = CommandType.CANCEL_TIMER


@dataclass(frozen=True)
class ScheduleRetry(Command):
    """
    Schedule an automatic reconnect.

    attempt is the 1-based number of this scheduled retry (for logging).
    """
    generation: int
    delay_ms: int
    attempt: int
    command_type: CommandType = CommandType.SCHEDULE_RETRY


# =============================================================================
# Observability
# =============================================================================

@dataclass(frozen=True)
class LogEvent(Command):
    """Structured log line to emit via observability.logger."""
    event: dict[str, Any]
    command_type: CommandType = CommandType.LOG_EVENT
