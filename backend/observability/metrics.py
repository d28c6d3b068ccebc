"""
Timing helpers for the stream controller.

- Durations use monotonic time; ts_ms uses wall-clock time
- One measurement = one METRIC_TIMER log line, never aggregated
- Prefer timed() so a timer can never leak
"""

from __future__ import annotations

import time
import uuid
from contextlib import contextmanager
from typing import Any, Iterator

from observability.logger import log_event


# timer_id -> (metric_name, start_time_ns)
_active_timers: dict[str, tuple[str, int]] = {}


def start_timer(name: str) -> str:
    """
    Start a monotonic timer and return its opaque id.

    Callers MUST call stop_timer() in a finally block unless using timed().
    """
    timer_id = f"timer_{uuid.uuid4().hex[:12]}"
    _active_timers[timer_id] = (name, time.monotonic_ns())
    return timer_id


def stop_timer(
    timer_id: str,
    *,
    controller_id: str | None = None,
    outcome: str | None = None,
    details: dict[str, Any] | None = None,
) -> int | None:
    """
    Stop a timer and emit one METRIC_TIMER event.

    Returns duration_ms, or None if the timer id is unknown.
    """
    entry = _active_timers.pop(timer_id, None)
    if entry is None:
        return None

    name, start_ns = entry
    duration_ms = (time.monotonic_ns() - start_ns) // 1_000_000

    log_event({
        "ts_ms": int(time.time() * 1000),
        "event_type": "METRIC_TIMER",
        "metric": name,
        "value_ms": duration_ms,
        "controller_id": controller_id,
        "outcome": outcome,
        "details": details or {},
    })

    return duration_ms


@contextmanager
def timed(
    name: str,
    *,
    controller_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> Iterator[None]:
    """
    Measure the duration of a block.

    The metric is emitted exactly once. outcome is "ok", "cancelled" or
    "error" depending on how the block exited; exceptions propagate.

    Usage:
        with timed("stream_connect_attempt", controller_id=cid):
            await adapter.start()
    """
    timer_id = start_timer(name)
    outcome = "ok"
    try:
        yield
    except BaseException as exc:
        outcome = "cancelled" if type(exc).__name__ == "CancelledError" else "error"
        raise
    finally:
        stop_timer(
            timer_id,
            controller_id=controller_id,
            outcome=outcome,
            details=details,
        )
