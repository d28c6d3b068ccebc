"""
Connection state machine: reducer-only guarantees.

- play() only acts from DISCONNECTED and bumps the generation
- Attempt failures cascade primary -> last working -> fallback
- Exhausted cascades hand off to the reconnect scheduler
- Results tagged with an old generation are ignored
- pause()/reset() cancel everything
"""

from dataclasses import replace

from player.commands import (
    AbortAttempt,
    CancelTimer,
    LogEvent,
    PauseAdapter,
    PersistVolume,
    ResetAdapter,
    ScheduleRetry,
    SetAdapterVolume,
    StartAttempt,
)
from player.endpoints import EndpointResolver, StreamEndpoint
from player.enums.endpoint_role import EndpointRole
from player.enums.error_kind import ErrorKind
from player.enums.status import ConnectionStatus
from player.events import (
    AttemptFailed,
    AttemptSucceeded,
    EventType,
    PauseRequested,
    PlayRequested,
    ResetRequested,
    RetryReady,
    VolumeChanged,
)
from player.reducer import TIMER_RECONNECT, TIMER_SETTLE, TIMER_STALL, reduce
from player.retry import ReconnectState
from player.state_dataclass import ControllerState

from playback_fakes import FALLBACK, FAST_TIMINGS, PRIMARY

WORKING = "https://old.example/stream"


def _state(**changes) -> ControllerState:
    state = ControllerState(
        resolver=EndpointResolver(primary_url=PRIMARY, fallback_url=FALLBACK),
        timings=FAST_TIMINGS,
    )
    return replace(state, **changes)


def play(ts_ms: int = 0) -> PlayRequested:
    return PlayRequested(event_type=EventType.PLAY_REQUESTED, ts_ms=ts_ms)


def pause() -> PauseRequested:
    return PauseRequested(event_type=EventType.PAUSE_REQUESTED, ts_ms=0)


def failed(generation: int, endpoint: StreamEndpoint, kind=ErrorKind.NETWORK) -> AttemptFailed:
    return AttemptFailed(
        event_type=EventType.ATTEMPT_FAILED,
        ts_ms=0,
        generation=generation,
        endpoint=endpoint,
        error_kind=kind,
        message="boom",
    )


def succeeded(generation: int, endpoint: StreamEndpoint) -> AttemptSucceeded:
    return AttemptSucceeded(
        event_type=EventType.ATTEMPT_SUCCEEDED,
        ts_ms=0,
        generation=generation,
        endpoint=endpoint,
    )


def _starts(cmds) -> list[StartAttempt]:
    return [c for c in cmds if isinstance(c, StartAttempt)]


def test_play_from_disconnected_starts_primary_and_bumps_generation():
    state = _state()

    new_state, cmds = reduce(state, play())

    assert new_state.status is ConnectionStatus.CONNECTING
    assert new_state.generation == 1
    assert new_state.wants_playback
    starts = _starts(cmds)
    assert len(starts) == 1
    assert starts[0].endpoint == StreamEndpoint(PRIMARY, EndpointRole.PRIMARY)
    assert starts[0].generation == 1


def test_play_is_noop_while_connecting_or_connected():
    connecting, _ = reduce(_state(), play())

    for state in (connecting, replace(connecting, status=ConnectionStatus.CONNECTED)):
        new_state, cmds = reduce(state, play())
        assert new_state == state
        assert len(cmds) == 1
        assert isinstance(cmds[0], LogEvent)
        assert cmds[0].event["decision"] == "ignore"


def test_success_marks_working_and_resets_reconnect():
    state, _ = reduce(_state(reconnect=ReconnectState(attempt_count=3)), play())

    new_state, cmds = reduce(state, succeeded(state.generation, state.resolver.primary()))

    assert new_state.status is ConnectionStatus.CONNECTED
    assert new_state.is_playing
    assert new_state.resolver.last_working_url == PRIMARY
    assert new_state.reconnect.attempt_count == 0
    assert CancelTimer(timer_id=TIMER_RECONNECT) in cmds


def test_primary_failure_cascades_to_last_working_then_fallback():
    state = _state(resolver=EndpointResolver(
        primary_url=PRIMARY, fallback_url=FALLBACK, last_working_url=WORKING,
    ))
    state, _ = reduce(state, play())

    state, cmds = reduce(state, failed(state.generation, state.current_endpoint))
    [start] = _starts(cmds)
    assert start.endpoint == StreamEndpoint(WORKING, EndpointRole.LAST_WORKING)
    assert state.status is ConnectionStatus.CONNECTING
    assert state.last_error is not None

    state, cmds = reduce(state, failed(state.generation, state.current_endpoint))
    [start] = _starts(cmds)
    assert start.endpoint == StreamEndpoint(FALLBACK, EndpointRole.ENVIRONMENT_FALLBACK)

    # Same generation throughout the cascade
    assert start.generation == 1


def test_exhausted_cascade_schedules_retry_with_backoff():
    state, _ = reduce(_state(), play())
    state, _ = reduce(state, failed(state.generation, state.current_endpoint))

    state, cmds = reduce(state, failed(state.generation, state.current_endpoint))

    assert state.status is ConnectionStatus.DISCONNECTED
    assert state.retry_pending
    assert state.reconnect.attempt_count == 1
    retries = [c for c in cmds if isinstance(c, ScheduleRetry)]
    assert retries == [ScheduleRetry(generation=1, delay_ms=FAST_TIMINGS.retry_base_ms, attempt=1)]


def test_retry_ready_restarts_from_primary_without_generation_bump():
    state, _ = reduce(_state(resolver=EndpointResolver(primary_url=PRIMARY)), play())
    state, _ = reduce(state, failed(state.generation, state.current_endpoint))
    assert state.retry_pending

    new_state, cmds = reduce(
        state,
        RetryReady(event_type=EventType.RETRY_READY, ts_ms=0, generation=state.generation),
    )

    assert new_state.status is ConnectionStatus.CONNECTING
    assert new_state.generation == state.generation
    [start] = _starts(cmds)
    assert start.endpoint.role is EndpointRole.PRIMARY


def test_retry_ceiling_stops_scheduling():
    state, _ = reduce(_state(resolver=EndpointResolver(primary_url=PRIMARY)), play())
    state = replace(state, reconnect=ReconnectState(attempt_count=FAST_TIMINGS.retry_max_attempts))

    new_state, cmds = reduce(state, failed(state.generation, state.current_endpoint))

    assert new_state.status is ConnectionStatus.DISCONNECTED
    assert not new_state.retry_pending
    assert not [c for c in cmds if isinstance(c, ScheduleRetry)]
    decisions = [c.event["decision"] for c in cmds if isinstance(c, LogEvent)]
    assert "retry_ceiling_reached" in decisions


def test_stale_generation_result_is_ignored():
    state, _ = reduce(_state(), play())
    endpoint = state.current_endpoint
    state, _ = reduce(state, pause())
    state, _ = reduce(state, play())
    assert state.generation == 3

    new_state, cmds = reduce(state, succeeded(1, endpoint))

    assert new_state == state
    assert len(cmds) == 1
    assert cmds[0].event["decision"] == "ignore"
    assert cmds[0].event["details"]["reason"] == "stale_generation:1"


def test_aborted_failure_never_sets_last_error():
    state, _ = reduce(_state(), play())

    new_state, cmds = reduce(
        state, failed(state.generation, state.current_endpoint, ErrorKind.ABORTED)
    )

    assert new_state.status is ConnectionStatus.DISCONNECTED
    assert new_state.last_error is None
    assert not _starts(cmds)
    assert not [c for c in cmds if isinstance(c, ScheduleRetry)]


def test_pause_cancels_attempt_timers_and_pending_retry():
    state, _ = reduce(_state(resolver=EndpointResolver(primary_url=PRIMARY)), play())
    state, _ = reduce(state, failed(state.generation, state.current_endpoint))
    assert state.retry_pending

    new_state, cmds = reduce(state, pause())

    assert new_state.status is ConnectionStatus.DISCONNECTED
    assert not new_state.retry_pending
    assert not new_state.wants_playback
    assert new_state.generation == state.generation + 1
    assert AbortAttempt() in cmds
    assert PauseAdapter() in cmds
    for timer_id in (TIMER_RECONNECT, TIMER_SETTLE, TIMER_STALL):
        assert CancelTimer(timer_id=timer_id) in cmds


def test_reset_destroys_adapter_resource():
    state, _ = reduce(_state(), play())

    new_state, cmds = reduce(
        state, ResetRequested(event_type=EventType.RESET_REQUESTED, ts_ms=0)
    )

    assert new_state.status is ConnectionStatus.DISCONNECTED
    assert new_state.generation == state.generation + 1
    assert ResetAdapter() in cmds


def test_volume_is_clamped_applied_and_persisted():
    for requested, expected in ((1.7, 1.0), (-0.2, 0.0), (0.25, 0.25), (float("nan"), 0.0)):
        new_state, cmds = reduce(
            _state(),
            VolumeChanged(event_type=EventType.VOLUME_CHANGED, ts_ms=0, volume=requested),
        )
        assert new_state.volume == expected
        assert SetAdapterVolume(volume=expected) in cmds
        assert PersistVolume(volume=expected) in cmds


def test_every_decision_is_logged_with_required_fields():
    _, cmds = reduce(_state(), play(ts_ms=123))

    logs = [c for c in cmds if isinstance(c, LogEvent)]
    assert logs
    for log in logs:
        payload = log.event
        assert payload["ts_ms"] == 123
        assert payload["event_type"] == "PLAY_REQUESTED"
        assert "decision" in payload
        assert "connection_status" in payload
        assert "generation" in payload

    # status change is reported last, after the side effects
    assert logs[-1].event["decision"] == "status_changed"
    assert logs[-1].event["details"]["to_status"] == "connecting"
