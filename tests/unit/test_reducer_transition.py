# pylint: disable=missing-module-docstring,missing-function-docstring

from dataclasses import replace

from player.capabilities import PlatformCapabilities
from player.commands import (
    CancelTimer,
    LogEvent,
    PauseAdapter,
    ResetAdapter,
    ScheduleRetry,
    StartAttempt,
    StartTimer,
)
from player.endpoints import EndpointResolver, StreamEndpoint
from player.enums.endpoint_role import EndpointRole
from player.enums.error_kind import ErrorKind
from player.enums.status import ConnectionStatus
from player.events import (
    AdapterFailed,
    AttemptFailed,
    AdapterPaused,
    AdapterPlaying,
    AdapterStalled,
    ConfigurationApplied,
    ConfigurationFailed,
    EventType,
    SettleElapsed,
    StallTimeout,
)
from player.reducer import TIMER_SETTLE, TIMER_STALL, reduce
from player.retry import ReconnectState
from player.state_dataclass import ControllerSnapshot, ControllerState

from playback_fakes import FALLBACK, FAST_TIMINGS, NEW_PRIMARY, PRIMARY


def connected(**changes) -> ControllerState:
    primary = StreamEndpoint(PRIMARY, EndpointRole.PRIMARY)
    state = ControllerState(
        resolver=EndpointResolver(
            primary_url=PRIMARY,
            fallback_url=FALLBACK,
            last_working_url=PRIMARY,
        ),
        status=ConnectionStatus.CONNECTED,
        current_endpoint=primary,
        generation=4,
        wants_playback=True,
        timings=FAST_TIMINGS,
    )
    return replace(state, **changes)


def applied(primary: str = NEW_PRIMARY, **kwargs) -> ConfigurationApplied:
    return ConfigurationApplied(
        event_type=EventType.CONFIGURATION_APPLIED,
        ts_ms=0,
        primary_url=primary,
        **kwargs,
    )


def test_primary_change_while_connected_starts_seamless_transition():
    state = connected()

    new_state, cmds = reduce(state, applied(fallback_url=FALLBACK))

    assert new_state.status is ConnectionStatus.DISCONNECTED
    assert new_state.settling
    assert new_state.is_loading
    assert new_state.generation == 5
    assert new_state.resolver.primary_url == NEW_PRIMARY
    assert PauseAdapter() in cmds
    [timer] = [c for c in cmds if isinstance(c, StartTimer)]
    assert timer.timer_id == TIMER_SETTLE
    assert timer.duration_ms == FAST_TIMINGS.settle_ms
    assert timer.generation == 5
    assert timer.timeout_event_type is EventType.SETTLE_ELAPSED
    assert not [c for c in cmds if isinstance(c, StartAttempt)]


def test_settle_elapsed_loads_new_primary():
    state, _ = reduce(connected(), applied())

    new_state, cmds = reduce(
        state,
        SettleElapsed(event_type=EventType.SETTLE_ELAPSED, ts_ms=0, generation=state.generation),
    )

    assert new_state.status is ConnectionStatus.CONNECTING
    assert not new_state.settling
    [start] = [c for c in cmds if isinstance(c, StartAttempt)]
    assert start.endpoint == StreamEndpoint(NEW_PRIMARY, EndpointRole.PRIMARY)
    assert start.generation == state.generation


def test_configuration_while_disconnected_only_rebuilds():
    state = ControllerState(
        resolver=EndpointResolver(primary_url=PRIMARY),
        timings=FAST_TIMINGS,
    )

    new_state, cmds = reduce(state, applied(fallback_url=FALLBACK, station_name="Trend"))

    assert new_state.status is ConnectionStatus.DISCONNECTED
    assert new_state.generation == state.generation
    assert new_state.resolver.primary_url == NEW_PRIMARY
    assert new_state.resolver.fallback_url == FALLBACK
    assert new_state.station_name == "Trend"
    assert all(isinstance(c, LogEvent) for c in cmds)


def test_unchanged_primary_while_connected_does_not_reconnect():
    state = connected()

    new_state, cmds = reduce(state, applied(primary=PRIMARY, fallback_url=NEW_PRIMARY))

    assert new_state.status is ConnectionStatus.CONNECTED
    assert new_state.generation == state.generation
    assert new_state.resolver.fallback_url == NEW_PRIMARY
    assert all(isinstance(c, LogEvent) for c in cmds)


def test_passive_primary_change_does_not_reconnect():
    state = connected()

    new_state, _ = reduce(state, applied(requires_reconnection=False, keep_fallback=True))

    assert new_state.status is ConnectionStatus.CONNECTED
    assert new_state.resolver.primary_url == NEW_PRIMARY
    assert new_state.resolver.fallback_url == FALLBACK


def test_fallback_equal_to_primary_is_discarded():
    state = connected()

    new_state, _ = reduce(state, applied(primary=PRIMARY, fallback_url=PRIMARY))

    assert new_state.resolver.fallback_url is None


def test_configuration_failure_sets_last_error():
    state = connected()

    new_state, _ = reduce(
        state,
        ConfigurationFailed(
            event_type=EventType.CONFIGURATION_FAILED, ts_ms=0, message="timed out"
        ),
    )

    assert new_state.last_error == "Configuration reload failed: timed out"
    assert new_state.status is ConnectionStatus.CONNECTED


def test_stall_starts_watchdog_and_playing_clears_it():
    state = connected()

    stalled, cmds = reduce(
        state, AdapterStalled(event_type=EventType.ADAPTER_STALLED, ts_ms=0, generation=4)
    )
    assert stalled.buffering
    assert stalled.is_loading
    [timer] = [c for c in cmds if isinstance(c, StartTimer)]
    assert timer.timer_id == TIMER_STALL

    recovered, cmds = reduce(
        stalled, AdapterPlaying(event_type=EventType.ADAPTER_PLAYING, ts_ms=0, generation=4)
    )
    assert not recovered.buffering
    assert CancelTimer(timer_id=TIMER_STALL) in cmds


def test_stall_timeout_fails_over_and_resets_when_required():
    state = connected(
        buffering=True,
        capabilities=PlatformCapabilities(requires_full_reset=True),
    )

    new_state, cmds = reduce(
        state, StallTimeout(event_type=EventType.STALL_TIMEOUT, ts_ms=0, generation=4)
    )

    assert cmds[0] == ResetAdapter()
    assert new_state.status is ConnectionStatus.CONNECTING
    [start] = [c for c in cmds if isinstance(c, StartAttempt)]
    # last working == primary, so the fallback is next
    assert start.endpoint == StreamEndpoint(FALLBACK, EndpointRole.ENVIRONMENT_FALLBACK)


def test_stall_timeout_with_retry_scheduled_pauses_the_adapter():
    state = connected(
        buffering=True,
        resolver=EndpointResolver(primary_url=PRIMARY, last_working_url=PRIMARY),
    )

    new_state, cmds = reduce(
        state, StallTimeout(event_type=EventType.STALL_TIMEOUT, ts_ms=0, generation=4)
    )

    assert new_state.status is ConnectionStatus.DISCONNECTED
    assert cmds[0] == PauseAdapter()
    assert [c for c in cmds if isinstance(c, ScheduleRetry)]
    assert not [c for c in cmds if isinstance(c, StartAttempt)]


def test_stall_timeout_at_retry_ceiling_still_pauses_the_adapter():
    state = connected(
        buffering=True,
        resolver=EndpointResolver(primary_url=PRIMARY),
        reconnect=ReconnectState(attempt_count=FAST_TIMINGS.retry_max_attempts),
    )

    new_state, cmds = reduce(
        state, StallTimeout(event_type=EventType.STALL_TIMEOUT, ts_ms=0, generation=4)
    )

    assert new_state.status is ConnectionStatus.DISCONNECTED
    assert new_state.last_error is not None
    assert PauseAdapter() in cmds
    assert not [c for c in cmds if isinstance(c, (ScheduleRetry, StartAttempt))]


def test_adapter_failure_while_connecting_is_ignored():
    state = connected(status=ConnectionStatus.CONNECTING)

    new_state, cmds = reduce(
        state,
        AdapterFailed(
            event_type=EventType.ADAPTER_FAILED,
            ts_ms=0,
            generation=4,
            error_kind=ErrorKind.DECODE,
        ),
    )

    assert new_state == state
    assert cmds[0].event["decision"] == "ignore"


def test_external_pause_disconnects_without_retry():
    state = connected()

    new_state, cmds = reduce(
        state, AdapterPaused(event_type=EventType.ADAPTER_PAUSED, ts_ms=0, generation=4)
    )

    assert new_state.status is ConnectionStatus.DISCONNECTED
    assert not new_state.wants_playback
    assert not new_state.retry_pending
    assert new_state.generation == 5
    assert not [c for c in cmds if isinstance(c, StartAttempt)]


def test_snapshot_uses_camel_case_keys():
    snap = ControllerSnapshot.from_state(connected(volume=0.5), now_playing="Song")

    data = snap.to_dict()

    assert data["isPlaying"] is True
    assert data["isLoading"] is False
    assert data["connectionStatus"] == "connected"
    assert data["volume"] == 0.5
    assert data["streamUrl"] == PRIMARY
    assert data["fallbackUrl"] == FALLBACK
    assert data["nowPlaying"] == "Song"


def test_failure_of_replaced_primary_while_connecting_tries_new_primary_at_once():
    old = StreamEndpoint(PRIMARY, EndpointRole.PRIMARY)
    state = connected(status=ConnectionStatus.CONNECTING, current_endpoint=old)

    state, _ = reduce(state, applied(NEW_PRIMARY, keep_fallback=True))
    assert state.status is ConnectionStatus.CONNECTING

    new_state, cmds = reduce(
        state,
        AttemptFailed(
            event_type=EventType.ATTEMPT_FAILED,
            ts_ms=0,
            generation=4,
            endpoint=old,
            error_kind=ErrorKind.NETWORK,
            message="refused",
        ),
    )

    [start] = [c for c in cmds if isinstance(c, StartAttempt)]
    assert start.endpoint == StreamEndpoint(NEW_PRIMARY, EndpointRole.PRIMARY)
    assert new_state.status is ConnectionStatus.CONNECTING
    assert not [c for c in cmds if isinstance(c, ScheduleRetry)]
