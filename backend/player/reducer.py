"""
Pure stream controller reducer.

(state, event) -> (new_state, commands)

Rules:
- Pure: no side effects, no IO, no clocks.
- Deterministic: output depends only on inputs.
- Total: every (state, event) pair is handled or explicitly ignored (logged).
"""

# Reducer owns timer semantics; runtime must not cancel timers implicitly.

from __future__ import annotations

import math
from dataclasses import replace
from typing import Any

from constants import VOLUME_MAX, VOLUME_MIN
from player.commands import (
    AbortAttempt,
    CancelTimer,
    Command,
    LogEvent,
    PauseAdapter,
    PersistVolume,
    ResetAdapter,
    ScheduleRetry,
    SetAdapterVolume,
    StartAttempt,
    StartTimer,
)
from player.endpoints import StreamEndpoint
from player.enums.error_kind import ErrorKind
from player.enums.status import ConnectionStatus
from player.errors import describe_failure
from player.events import (
    AdapterFailed,
    AdapterPaused,
    AdapterPlaying,
    AdapterReady,
    AdapterStalled,
    AttemptFailed,
    AttemptSucceeded,
    ConfigurationApplied,
    ConfigurationFailed,
    Event,
    EventType,
    GenerationEvent,
    PauseRequested,
    PlayRequested,
    ResetRequested,
    RetryReady,
    SettleElapsed,
    Shutdown,
    StallTimeout,
    VolumeChanged,
)
from player.retry import (
    get_retry_delay_ms,
    record_failure,
    reset_reconnect,
    should_retry,
)
from player.state_dataclass import ControllerState


# =============================================================================
# Invariants
# =============================================================================
# - Generation is bumped ONLY on explicit play/pause/reset, at the start of a
#   seamless transition, and on shutdown
# - At most one attempt is in flight per generation: a new StartAttempt is
#   only emitted after the previous attempt's result has been consumed
# - ReconnectState resets ONLY on entry to CONNECTED
# - ABORTED failures never reach last_error

_ALLOWED_EDGES: frozenset[tuple[ConnectionStatus, ConnectionStatus]] = frozenset({
    (ConnectionStatus.DISCONNECTED, ConnectionStatus.CONNECTING),
    (ConnectionStatus.CONNECTING, ConnectionStatus.CONNECTED),
    (ConnectionStatus.CONNECTING, ConnectionStatus.DISCONNECTED),
    (ConnectionStatus.CONNECTED, ConnectionStatus.DISCONNECTED),
})


# =============================================================================
# Timer IDs
# =============================================================================

TIMER_RECONNECT = "reconnect"
TIMER_SETTLE = "transition_settle"
TIMER_STALL = "stall_watchdog"

_ALL_TIMERS: tuple[str, ...] = (TIMER_RECONNECT, TIMER_SETTLE, TIMER_STALL)


# =============================================================================
# Small helpers
# =============================================================================

def clamp_volume(volume: float) -> float:
    """Clamp to [0, 1]. NaN is treated as silence."""
    if math.isnan(volume):
        return VOLUME_MIN
    return max(VOLUME_MIN, min(VOLUME_MAX, float(volume)))


def _log(
    state: ControllerState,
    event: Event,
    decision: str,
    details: dict[str, Any] | None = None,
) -> LogEvent:
    return LogEvent(
        event={
            "ts_ms": event.ts_ms,
            "event_type": event.event_type.value,
            "decision": decision,
            "connection_status": state.status.value,
            "generation": state.generation,
            "reconnect_attempts": state.reconnect.attempt_count,
            "details": details or {},
        }
    )


def _logs_last(commands: tuple[Command, ...]) -> tuple[Command, ...]:
    non_logs: list[Command] = []
    logs: list[Command] = []
    state_change_logs: list[Command] = []

    for command in commands:
        if isinstance(command, LogEvent):
            if command.event.get("decision") == "status_changed":
                state_change_logs.append(command)
            else:
                logs.append(command)
        else:
            non_logs.append(command)

    return tuple(non_logs + logs + state_change_logs)


def _ignore(
    state: ControllerState, event: Event, reason: str
) -> tuple[ControllerState, tuple[Command, ...]]:
    return state, (_log(state, event, "ignore", {"reason": reason}),)


def _with_status(
    state: ControllerState,
    event: Event,
    new_status: ConnectionStatus,
    source: str,
    **changes: Any,
) -> tuple[ControllerState, list[Command]]:
    """
    Apply a status transition plus field changes.

    Same-status updates are allowed and produce no status_changed log.
    Any edge outside _ALLOWED_EDGES is a programming error.
    """
    old_status = state.status
    if old_status is not new_status:
        assert (old_status, new_status) in _ALLOWED_EDGES, (
            f"illegal status edge {old_status.value} -> {new_status.value}"
        )

    new_state = replace(state, status=new_status, **changes)
    cmds: list[Command] = []
    if old_status is not new_status:
        cmds.append(
            _log(
                new_state,
                event,
                "status_changed",
                {
                    "from_status": old_status.value,
                    "to_status": new_status.value,
                    "source": source,
                },
            )
        )
    return new_state, cmds


def _begin_attempt(
    state: ControllerState,
    event: Event,
    endpoint: StreamEndpoint,
    source: str,
) -> tuple[ControllerState, list[Command]]:
    """DISCONNECTED -> CONNECTING against the given endpoint."""
    new_state, cmds = _with_status(
        state,
        event,
        ConnectionStatus.CONNECTING,
        source,
        current_endpoint=endpoint,
        resolver=state.resolver.mark_attempted(endpoint),
        buffering=False,
        retry_pending=False,
    )
    cmds.append(StartAttempt(generation=new_state.generation, endpoint=endpoint))
    cmds.append(
        _log(
            new_state,
            event,
            "attempt_started",
            {"url": endpoint.url, "role": endpoint.role.value, "source": source},
        )
    )
    return new_state, cmds


def _handle_failure(
    state: ControllerState,
    event: Event,
    failed: StreamEndpoint,
    kind: ErrorKind,
    message: str,
    source: str,
) -> tuple[ControllerState, tuple[Command, ...]]:
    """
    Common failure path for CONNECTING (attempt rejected) and CONNECTED
    (mid-stream failure).

    1. -> DISCONNECTED with last_error set
    2. Next cascade candidate -> CONNECTING immediately, or
    3. Cascade exhausted -> schedule retry of the primary, or
    4. Retry ceiling reached -> stay DISCONNECTED
    """
    last_error = describe_failure(kind, message or None)
    new_state, cmds = _with_status(
        state,
        event,
        ConnectionStatus.DISCONNECTED,
        source,
        current_endpoint=None,
        buffering=False,
        last_error=last_error,
    )
    cmds.append(CancelTimer(timer_id=TIMER_STALL))
    cmds.append(
        _log(
            new_state,
            event,
            "attempt_failed",
            {
                "url": failed.url,
                "role": failed.role.value,
                "error_kind": kind.value,
                "message": message,
            },
        )
    )

    nxt = new_state.resolver.next(failed)
    if nxt is not None:
        new_state, more = _begin_attempt(new_state, event, nxt, "cascade")
        cmds.extend(more)
        return new_state, _logs_last(tuple(cmds))

    if not should_retry(new_state.reconnect, timings=new_state.timings):
        new_state = replace(new_state, retry_pending=False)
        cmds.append(
            _log(
                new_state,
                event,
                "retry_ceiling_reached",
                {"max_attempts": new_state.timings.retry_max_attempts},
            )
        )
        return new_state, _logs_last(tuple(cmds))

    delay_ms = get_retry_delay_ms(
        new_state.reconnect.attempt_count, timings=new_state.timings
    )
    new_state = replace(
        new_state,
        reconnect=record_failure(new_state.reconnect, ts_ms=event.ts_ms),
        retry_pending=True,
    )
    cmds.append(
        ScheduleRetry(
            generation=new_state.generation,
            delay_ms=delay_ms,
            attempt=new_state.reconnect.attempt_count,
        )
    )
    cmds.append(
        _log(
            new_state,
            event,
            "retry_scheduled",
            {"delay_ms": delay_ms, "attempt": new_state.reconnect.attempt_count},
        )
    )
    return new_state, _logs_last(tuple(cmds))


def _stop_everything(
    state: ControllerState,
    event: Event,
    source: str,
    **changes: Any,
) -> tuple[ControllerState, list[Command]]:
    """
    Bump generation, cancel every timer and the in-flight attempt, pause
    the adapter, and land in DISCONNECTED.
    """
    new_state, cmds = _with_status(
        state,
        event,
        ConnectionStatus.DISCONNECTED,
        source,
        generation=state.generation + 1,
        current_endpoint=None,
        wants_playback=False,
        settling=False,
        buffering=False,
        retry_pending=False,
        **changes,
    )
    cmds = [
        AbortAttempt(),
        PauseAdapter(),
        *(CancelTimer(timer_id=t) for t in _ALL_TIMERS),
        *cmds,
    ]
    return new_state, cmds


# =============================================================================
# Reducer
# =============================================================================

def reduce(
    state: ControllerState,
    event: Event,
) -> tuple[ControllerState, tuple[Command, ...]]:
    """
    Stream controller reducer.

    Returns:
        (new_state, commands)
    """

    # ------------------------------------------------------------------
    # Global: teardown is terminal
    # ------------------------------------------------------------------
    if state.shut_down:
        return _ignore(state, event, "controller_shut_down")

    if isinstance(event, Shutdown):
        new_state, cmds = _stop_everything(state, event, "shutdown", shut_down=True)
        cmds.append(_log(new_state, event, "shutdown"))
        return new_state, _logs_last(tuple(cmds))

    # ------------------------------------------------------------------
    # Global: stale results of asynchronous work
    # ------------------------------------------------------------------
    if isinstance(event, GenerationEvent) and event.generation != state.generation:
        return _ignore(
            state,
            event,
            f"stale_generation:{event.generation}",
        )

    # ------------------------------------------------------------------
    # User intents
    # ------------------------------------------------------------------
    if isinstance(event, PlayRequested):
        if state.status is ConnectionStatus.CONNECTED:
            return _ignore(state, event, "already_connected")
        if state.status is ConnectionStatus.CONNECTING:
            return _ignore(state, event, "attempt_in_flight")
        if state.settling:
            return _ignore(state, event, "transition_in_progress")

        bumped = replace(
            state,
            generation=state.generation + 1,
            wants_playback=True,
            last_error=None,
        )
        new_state, cmds = _begin_attempt(
            bumped, event, bumped.resolver.primary(), "play"
        )
        cmds.insert(0, CancelTimer(timer_id=TIMER_RECONNECT))
        return new_state, _logs_last(tuple(cmds))

    if isinstance(event, PauseRequested):
        new_state, cmds = _stop_everything(state, event, "pause")
        cmds.append(_log(new_state, event, "paused"))
        return new_state, _logs_last(tuple(cmds))

    if isinstance(event, ResetRequested):
        new_state, cmds = _stop_everything(state, event, "reset")
        cmds.insert(2, ResetAdapter())
        cmds.append(_log(new_state, event, "hard_reset"))
        return new_state, _logs_last(tuple(cmds))

    if isinstance(event, VolumeChanged):
        volume = clamp_volume(event.volume)
        new_state = replace(state, volume=volume)
        return new_state, (
            SetAdapterVolume(volume=volume),
            PersistVolume(volume=volume),
            _log(new_state, event, "volume_set", {"volume": volume}),
        )

    # ------------------------------------------------------------------
    # Attempt results
    # ------------------------------------------------------------------
    if isinstance(event, AttemptSucceeded):
        if state.status is not ConnectionStatus.CONNECTING:
            return _ignore(state, event, "not_connecting")
        if event.endpoint != state.current_endpoint:
            return _ignore(state, event, "superseded_endpoint")

        new_state, cmds = _with_status(
            state,
            event,
            ConnectionStatus.CONNECTED,
            "attempt_succeeded",
            resolver=state.resolver.mark_working(event.endpoint),
            reconnect=reset_reconnect(),
            retry_pending=False,
            last_error=None,
            buffering=False,
        )
        cmds.insert(0, CancelTimer(timer_id=TIMER_RECONNECT))
        cmds.append(
            _log(
                new_state,
                event,
                "connected",
                {"url": event.endpoint.url, "role": event.endpoint.role.value},
            )
        )
        return new_state, _logs_last(tuple(cmds))

    if isinstance(event, AttemptFailed):
        if state.status is not ConnectionStatus.CONNECTING:
            return _ignore(state, event, "not_connecting")
        if event.endpoint != state.current_endpoint:
            return _ignore(state, event, "superseded_endpoint")

        if event.error_kind is ErrorKind.ABORTED:
            # Aborted without a newer intent: stand down silently
            new_state, cmds = _with_status(
                state,
                event,
                ConnectionStatus.DISCONNECTED,
                "attempt_aborted",
                current_endpoint=None,
            )
            cmds.append(_log(new_state, event, "attempt_aborted_swallowed"))
            return new_state, _logs_last(tuple(cmds))

        return _handle_failure(
            state,
            event,
            event.endpoint,
            event.error_kind,
            event.message,
            "attempt_failed",
        )

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------
    if isinstance(event, RetryReady):
        if not state.retry_pending:
            return _ignore(state, event, "no_retry_pending")
        if state.status is not ConnectionStatus.DISCONNECTED:
            return _ignore(state, event, "not_disconnected")
        if not state.wants_playback:
            return _ignore(state, event, "playback_not_wanted")

        new_state, cmds = _begin_attempt(
            state, event, state.resolver.primary(), "scheduled_retry"
        )
        return new_state, _logs_last(tuple(cmds))

    if isinstance(event, SettleElapsed):
        if not state.settling:
            return _ignore(state, event, "not_settling")

        settled = replace(state, settling=False)
        new_state, cmds = _begin_attempt(
            settled, event, settled.resolver.primary(), "seamless_transition"
        )
        return new_state, _logs_last(tuple(cmds))

    if isinstance(event, StallTimeout):
        if state.status is not ConnectionStatus.CONNECTED or not state.buffering:
            return _ignore(state, event, "not_stalled")
        assert state.current_endpoint is not None

        new_state, cmds = _handle_failure(
            state,
            event,
            state.current_endpoint,
            ErrorKind.TIMEOUT,
            "stream stalled",
            "stall_timeout",
        )
        # The stalled stream must not resume on its own once DISCONNECTED
        if state.capabilities.requires_full_reset:
            cmds = (ResetAdapter(),) + cmds
        else:
            cmds = (PauseAdapter(),) + cmds
        return new_state, cmds

    # ------------------------------------------------------------------
    # Adapter lifecycle
    # ------------------------------------------------------------------
    if isinstance(event, AdapterReady):
        return state, (_log(state, event, "adapter_ready"),)

    if isinstance(event, AdapterPlaying):
        if state.status is ConnectionStatus.CONNECTED and state.buffering:
            new_state = replace(state, buffering=False)
            return new_state, (
                CancelTimer(timer_id=TIMER_STALL),
                _log(new_state, event, "stall_recovered"),
            )
        return _ignore(state, event, "no_stall_to_clear")

    if isinstance(event, AdapterStalled):
        if state.status is not ConnectionStatus.CONNECTED:
            return _ignore(state, event, "not_connected")
        if state.buffering:
            return _ignore(state, event, "already_stalled")

        new_state = replace(state, buffering=True)
        return new_state, (
            StartTimer(
                timer_id=TIMER_STALL,
                duration_ms=state.timings.stall_timeout_ms,
                generation=state.generation,
                timeout_event_type=EventType.STALL_TIMEOUT,
            ),
            _log(new_state, event, "stall_detected"),
        )

    if isinstance(event, AdapterFailed):
        if state.status is ConnectionStatus.CONNECTING:
            # The in-flight start() rejection is authoritative
            return _ignore(state, event, "attempt_in_flight")
        if state.status is not ConnectionStatus.CONNECTED:
            return _ignore(state, event, "not_connected")
        assert state.current_endpoint is not None

        return _handle_failure(
            state,
            event,
            state.current_endpoint,
            event.error_kind,
            event.message,
            "adapter_failed",
        )

    if isinstance(event, AdapterPaused):
        if state.status is not ConnectionStatus.CONNECTED:
            return _ignore(state, event, "not_connected")

        # Paused by the platform, not by us: stop without retrying
        new_state, cmds = _with_status(
            state,
            event,
            ConnectionStatus.DISCONNECTED,
            "external_pause",
            generation=state.generation + 1,
            current_endpoint=None,
            wants_playback=False,
            buffering=False,
        )
        cmds.insert(0, CancelTimer(timer_id=TIMER_STALL))
        cmds.append(_log(new_state, event, "external_pause"))
        return new_state, _logs_last(tuple(cmds))

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------
    if isinstance(event, ConfigurationApplied):
        return _apply_configuration(state, event)

    if isinstance(event, ConfigurationFailed):
        new_state = replace(
            state,
            last_error=f"Configuration reload failed: {event.message}",
        )
        return new_state, (
            _log(new_state, event, "configuration_failed", {"message": event.message}),
        )

    return _ignore(state, event, "unhandled_event")


def _apply_configuration(
    state: ControllerState,
    event: ConfigurationApplied,
) -> tuple[ControllerState, tuple[Command, ...]]:
    """
    Rebuild the resolver and, when connected to a primary that changed,
    start a seamless transition: pause -> settle -> load new primary.
    """
    previous_primary = state.resolver.primary_url
    fallback = state.resolver.fallback_url if event.keep_fallback else event.fallback_url

    rebuilt = replace(
        state,
        resolver=state.resolver.rebuild(
            new_primary=event.primary_url,
            new_fallback=fallback,
        ),
        metadata_url=event.metadata_url or state.metadata_url,
        station_name=event.station_name or state.station_name,
    )
    primary_changed = event.primary_url != previous_primary
    details = {
        "previous_primary": previous_primary,
        "primary": event.primary_url,
        "fallback": rebuilt.resolver.fallback_url,
        "primary_changed": primary_changed,
    }

    if (
        state.status is ConnectionStatus.CONNECTED
        and primary_changed
        and event.requires_reconnection
    ):
        new_state, cmds = _with_status(
            rebuilt,
            event,
            ConnectionStatus.DISCONNECTED,
            "seamless_transition",
            generation=state.generation + 1,
            current_endpoint=None,
            settling=True,
            buffering=False,
            last_error=None,
        )
        cmds = [
            CancelTimer(timer_id=TIMER_STALL),
            PauseAdapter(),
            StartTimer(
                timer_id=TIMER_SETTLE,
                duration_ms=new_state.timings.settle_ms,
                generation=new_state.generation,
                timeout_event_type=EventType.SETTLE_ELAPSED,
            ),
            *cmds,
            _log(new_state, event, "transition_started", details),
        ]
        return new_state, _logs_last(tuple(cmds))

    return rebuilt, (_log(rebuilt, event, "configuration_rebuilt", details),)
