"""
Reconnect policy helpers.

Purpose:
- Centralize backoff rules for automatic reconnection
- Keep reducer pure
- Allow runtime to make deterministic retry decisions

This module contains NO timers, NO async, NO side effects.
"""
from __future__ import annotations

from dataclasses import dataclass

from constants import DEFAULT_TIMINGS, ControllerTimings


# =============================================================================
# Reconnect State
# =============================================================================

@dataclass(frozen=True)
class ReconnectState:
    """
    Immutable reconnect bookkeeping for one controller.

    Semantics:
    - attempt_count == 0 means no scheduled retry has been issued since the
      last successful connection.
    - attempt_count is incremented each time a cascade is exhausted.
    - last_failure_at_ms is the event timestamp of the latest failure.
    - Never persisted across process restarts.
    """
    attempt_count: int = 0
    last_failure_at_ms: int | None = None


def record_failure(current: ReconnectState, *, ts_ms: int) -> ReconnectState:
    """Advance the counter after an exhausted cascade."""
    return ReconnectState(
        attempt_count=current.attempt_count + 1,
        last_failure_at_ms=ts_ms,
    )


def reset_reconnect() -> ReconnectState:
    """Returns fresh reconnect state (entry to CONNECTED)."""
    return ReconnectState()


# =============================================================================
# Policy
# =============================================================================

def should_retry(
    current: ReconnectState,
    *,
    timings: ControllerTimings = DEFAULT_TIMINGS,
) -> bool:
    """
    Returns True if another automatic retry may be scheduled.

    attempt_count = number of retries already scheduled
    """
    return current.attempt_count < timings.retry_max_attempts


# =============================================================================
# Delay Calculation
# =============================================================================

def get_retry_delay_ms(
    attempt_count: int,
    *,
    timings: ControllerTimings = DEFAULT_TIMINGS,
) -> int:
    """
    Returns delay before retry number attempt_count + 1.

    min(base * 2^attempt_count, cap): 1s, 2s, 4s, 8s, 16s, 30s, 30s, ...
    """
    if attempt_count < 0:
        attempt_count = 0

    # Avoid huge integers for large attempt counts
    if timings.retry_base_ms <= 0:
        return 0
    if attempt_count >= 32:
        return timings.retry_cap_ms

    return min(timings.retry_base_ms * (2 ** attempt_count), timings.retry_cap_ms)
