# pylint: disable=missing-module-docstring,missing-function-docstring

from constants import ControllerTimings, DEFAULT_TIMINGS
from player.retry import (
    ReconnectState,
    get_retry_delay_ms,
    record_failure,
    reset_reconnect,
    should_retry,
)


def test_delays_double_from_one_second_and_cap_at_thirty():
    delays = [get_retry_delay_ms(n) for n in range(8)]

    assert delays == [1000, 2000, 4000, 8000, 16000, 30000, 30000, 30000]


def test_delay_handles_extremes():
    assert get_retry_delay_ms(-3) == 1000
    assert get_retry_delay_ms(500) == DEFAULT_TIMINGS.retry_cap_ms
    assert get_retry_delay_ms(2, timings=ControllerTimings(retry_base_ms=0)) == 0


def test_ceiling_is_five_scheduled_retries():
    state = ReconnectState()
    allowed = 0
    while should_retry(state):
        allowed += 1
        state = record_failure(state, ts_ms=allowed)

    assert allowed == 5
    assert state.attempt_count == 5
    assert state.last_failure_at_ms == 5


def test_reset_clears_counter():
    state = record_failure(record_failure(ReconnectState(), ts_ms=1), ts_ms=2)

    assert reset_reconnect() == ReconnectState()
    assert should_retry(reset_reconnect())
    assert state.attempt_count == 2
