"""
Runtime execution shell for the stream controller.

Responsibilities:
- Own controller state
- Call pure reducer
- Execute commands with side effects (adapter, timers, persistence)
- Tag adapter lifecycle notifications with the generation that started them
- Schedule and cancel timers
- Convert timer expiry into events

Non-responsibilities:
- Endpoint selection, backoff policy, status transitions (reducer)
- Configuration fetching (controller.config_watcher)
"""

from __future__ import annotations

import asyncio
import time
from typing import Callable, Protocol
from uuid import uuid4

from adapters.playback.base import PlaybackAdapter, PlaybackEvent, PlaybackEventType
from constants import CACHE_BUST_TOKEN_LEN
from observability.logger import log_event
from observability.metrics import timed
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
from player.endpoints import StreamEndpoint, prepare_url
from player.enums.error_kind import ErrorKind
from player.errors import classify_error
from player.events import (
    AdapterFailed,
    AdapterPaused,
    AdapterPlaying,
    AdapterReady,
    AdapterStalled,
    AttemptFailed,
    AttemptSucceeded,
    Event,
    EventType,
    RetryReady,
    SettleElapsed,
    Shutdown,
    StallTimeout,
)
from player.reducer import TIMER_RECONNECT, reduce
from player.state_dataclass import ControllerState


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class VolumeSink(Protocol):
    """Anything that can persist the volume (see controller.volume_store)."""

    def save(self, volume: float) -> None: ...


StateListener = Callable[[ControllerState], None]


class Runtime:
    """
    Runtime execution boundary for a single stream controller.

    Responsibilities:
    - Own the authoritative controller state
    - Act as the universal event sink
      (user intents, attempt results, adapter events, timer events)
    - Invoke the pure reducer deterministically
    - Execute emitted commands with side effects

    Guarantees:
    - Reducer is always called exactly once per incoming event
    - State transitions are serialized by the event loop
    - All side effects occur *after* state has been updated
    - Timers and attempts re-enter handle_event (single entry point)
    - The adapter is only ever touched from here
    """

    def __init__(
        self,
        *,
        initial_state: ControllerState,
        adapter: PlaybackAdapter,
        volume_store: VolumeSink | None = None,
        controller_id: str = "",
        on_state_change: StateListener | None = None,
    ) -> None:
        self._state = initial_state
        self._adapter = adapter
        self._volume_store = volume_store
        self._controller_id = controller_id or f"ctl_{uuid4().hex[:12]}"
        self._on_state_change = on_state_change

        self._timers: dict[str, asyncio.Task[None]] = {}
        self._attempt_task: asyncio.Task[None] | None = None
        self._adapter_event_tasks: set[asyncio.Task[None]] = set()

        # Generation of the attempt that last loaded the adapter.
        # Adapter notifications are tagged with it on the way in.
        self._adapter_generation: int = initial_state.generation

        self._adapter.set_event_sink(self._on_adapter_event)
        self._adapter.set_volume(initial_state.volume)

    @property
    def state(self) -> ControllerState:
        """
        Return the current immutable controller state.

        Consumers must never modify this state directly.
        """
        return self._state

    @property
    def controller_id(self) -> str:
        return self._controller_id

    async def handle_event(self, event: Event) -> None:
        """
        Process a single event through the reducer pipeline.

        Processing steps:
        1. Pass the current state and event to the pure reducer
        2. Swap in the new state
        3. Notify the state listener
        4. Execute all emitted commands sequentially

        This method is the *only* entry point for events affecting
        controller state.
        """
        new_state, commands = reduce(self._state, event)
        changed = new_state != self._state
        self._state = new_state

        if changed and self._on_state_change is not None:
            self._on_state_change(new_state)

        for cmd in commands:
            self._execute_command(cmd)

    async def wait_for_attempts(self) -> None:
        """
        Wait until no connect attempt is in flight.

        A finishing attempt may start the next cascade candidate, so loop
        until the tracked task is done and was not replaced.
        """
        while True:
            task = self._attempt_task
            if task is None:
                return
            if not task.done():
                await asyncio.wait({task})
                continue
            if task is self._attempt_task:
                return

    async def shutdown(self) -> None:
        """
        Clean shutdown of runtime.

        Cancels the attempt, all timers and pending adapter notifications,
        then closes the adapter.
        """
        await self.handle_event(
            Shutdown(event_type=EventType.SHUTDOWN, ts_ms=_now_ms())
        )

        pending: list[asyncio.Task[None]] = list(self._timers.values())
        for timer_id in list(self._timers.keys()):
            self._cancel_timer(timer_id)

        if self._attempt_task is not None:
            pending.append(self._attempt_task)
            self._attempt_task = None

        for task in self._adapter_event_tasks:
            task.cancel()
        pending.extend(self._adapter_event_tasks)

        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        self._adapter.set_event_sink(None)
        self._adapter.close()

    # ------------------------------------------------------------------
    # Command execution (side effects)
    # ------------------------------------------------------------------

    def _execute_command(self, cmd: Command) -> None:
        """Execute a single command with side effects."""

        if isinstance(cmd, LogEvent):
            log_event({
                **cmd.event,
                "controller_id": self._controller_id,
            })

        elif isinstance(cmd, StartAttempt):
            self._start_attempt(cmd.generation, cmd.endpoint)

        elif isinstance(cmd, AbortAttempt):
            self._abort_attempt()

        elif isinstance(cmd, PauseAdapter):
            self._adapter.pause()

        elif isinstance(cmd, ResetAdapter):
            self._adapter.reset()
            self._adapter.set_volume(self._state.volume)
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "ADAPTER_RESET_EXECUTED",
                "controller_id": self._controller_id,
            })

        elif isinstance(cmd, SetAdapterVolume):
            self._adapter.set_volume(cmd.volume)

        elif isinstance(cmd, PersistVolume):
            if self._volume_store is not None:
                self._volume_store.save(cmd.volume)

        elif isinstance(cmd, StartTimer):
            self._start_timer(
                timer_id=cmd.timer_id,
                duration_ms=cmd.duration_ms,
                generation=cmd.generation,
                timeout_event_type=cmd.timeout_event_type,
            )

        elif isinstance(cmd, CancelTimer):
            self._cancel_timer(cmd.timer_id)

        elif isinstance(cmd, ScheduleRetry):
            self._schedule_retry(
                generation=cmd.generation,
                delay_ms=cmd.delay_ms,
                attempt=cmd.attempt,
            )

        else:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "UNKNOWN_COMMAND",
                "controller_id": self._controller_id,
                "command_type": type(cmd).__name__,
            })

    # ------------------------------------------------------------------
    # Connect attempts
    # ------------------------------------------------------------------

    def _start_attempt(self, generation: int, endpoint: StreamEndpoint) -> None:
        """
        Supersede any in-flight attempt and start a new one.

        The attempt task reports back through handle_event. When this is
        called from inside the previous attempt task (cascade step), that
        task is finishing and must not cancel itself.
        """
        previous = self._attempt_task
        if (
            previous is not None
            and not previous.done()
            and previous is not asyncio.current_task()
        ):
            previous.cancel()

        token = (
            uuid4().hex[:CACHE_BUST_TOKEN_LEN]
            if self._state.capabilities.requires_cache_busting
            else None
        )
        url = prepare_url(endpoint, now_ms=_now_ms(), token=token)

        self._adapter_generation = generation
        self._attempt_task = asyncio.create_task(
            self._run_attempt(generation=generation, endpoint=endpoint, url=url)
        )

    async def _run_attempt(
        self,
        *,
        generation: int,
        endpoint: StreamEndpoint,
        url: str,
    ) -> None:
        try:
            with timed(
                "stream_connect_attempt",
                controller_id=self._controller_id,
                details={"role": endpoint.role.value, "generation": generation},
            ):
                self._adapter.load(url)
                await self._adapter.start()

        except asyncio.CancelledError:
            # Superseded; the newer intent owns the adapter now
            return

        except Exception as exc:  # pylint: disable=broad-exception-caught
            kind = classify_error(exc)
            await self.handle_event(
                AttemptFailed(
                    event_type=EventType.ATTEMPT_FAILED,
                    ts_ms=_now_ms(),
                    generation=generation,
                    endpoint=endpoint,
                    error_kind=kind,
                    message=str(exc),
                )
            )
            return

        await self.handle_event(
            AttemptSucceeded(
                event_type=EventType.ATTEMPT_SUCCEEDED,
                ts_ms=_now_ms(),
                generation=generation,
                endpoint=endpoint,
            )
        )

    def _abort_attempt(self) -> None:
        task = self._attempt_task
        if (
            task is not None
            and not task.done()
            and task is not asyncio.current_task()
        ):
            task.cancel()

    # ------------------------------------------------------------------
    # Adapter notifications
    # ------------------------------------------------------------------

    def _on_adapter_event(self, pe: PlaybackEvent) -> None:
        """
        Event sink installed on the adapter.

        Must be called on the event loop thread. Converts the notification
        into a generation-tagged reducer event and dispatches it as a task
        so the adapter is never re-entered synchronously.
        """
        event = self._adapter_event_to_event(pe)

        task = asyncio.get_running_loop().create_task(self.handle_event(event))
        self._adapter_event_tasks.add(task)
        task.add_done_callback(self._adapter_event_tasks.discard)

    def _adapter_event_to_event(self, pe: PlaybackEvent) -> Event:
        ts = _now_ms()
        gen = self._adapter_generation

        if pe.event_type is PlaybackEventType.READY:
            return AdapterReady(event_type=EventType.ADAPTER_READY, ts_ms=ts, generation=gen)
        if pe.event_type is PlaybackEventType.STALLED:
            return AdapterStalled(event_type=EventType.ADAPTER_STALLED, ts_ms=ts, generation=gen)
        if pe.event_type is PlaybackEventType.PLAYING:
            return AdapterPlaying(event_type=EventType.ADAPTER_PLAYING, ts_ms=ts, generation=gen)
        if pe.event_type is PlaybackEventType.PAUSED:
            return AdapterPaused(event_type=EventType.ADAPTER_PAUSED, ts_ms=ts, generation=gen)
        if pe.event_type is PlaybackEventType.FAILED:
            return AdapterFailed(
                event_type=EventType.ADAPTER_FAILED,
                ts_ms=ts,
                generation=gen,
                error_kind=pe.error_kind or ErrorKind.DECODE,
                message=pe.reason,
            )

        raise ValueError(f"Unknown playback event type: {pe.event_type}")

    # ------------------------------------------------------------------
    # Timer management
    # ------------------------------------------------------------------

    def _start_timer(
        self,
        *,
        timer_id: str,
        duration_ms: int,
        generation: int,
        timeout_event_type: EventType,
    ) -> None:
        """
        Start or replace a timer that emits a generation-tagged event.

        Timer tasks re-enter handle_event() when they expire,
        maintaining the single event entry point invariant.
        """
        self._cancel_timer(timer_id)

        async def _timer_task() -> None:
            try:
                await asyncio.sleep(duration_ms / 1000.0)
            except asyncio.CancelledError:
                return

            # Expired: drop our own handle before re-entering
            if self._timers.get(timer_id) is asyncio.current_task():
                del self._timers[timer_id]

            event = self._construct_timeout_event(
                generation=generation,
                timeout_event_type=timeout_event_type,
            )
            await self.handle_event(event)

        self._timers[timer_id] = asyncio.create_task(_timer_task())

    def _cancel_timer(self, timer_id: str) -> None:
        """
        Cancel an in-flight timer if it exists.

        Idempotent: safe to call even if timer doesn't exist.
        """
        task = self._timers.pop(timer_id, None)
        if (
            task is not None
            and not task.done()
            and task is not asyncio.current_task()
        ):
            task.cancel()

    def _schedule_retry(self, *, generation: int, delay_ms: int, attempt: int) -> None:
        """
        Schedule an automatic reconnect.

        Semantic sugar over _start_timer that emits RetryReady.
        """
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "RETRY_TIMER_STARTED",
            "controller_id": self._controller_id,
            "generation": generation,
            "delay_ms": delay_ms,
            "attempt": attempt,
        })
        self._start_timer(
            timer_id=TIMER_RECONNECT,
            duration_ms=delay_ms,
            generation=generation,
            timeout_event_type=EventType.RETRY_READY,
        )

    def _construct_timeout_event(
        self,
        *,
        generation: int,
        timeout_event_type: EventType,
    ) -> Event:
        """
        Construct the timeout event for an expired timer.

        The generation captured when the timer was started travels with it;
        the reducer drops the event if the session has moved on.
        """
        ts = _now_ms()

        if timeout_event_type is EventType.RETRY_READY:
            return RetryReady(event_type=EventType.RETRY_READY, ts_ms=ts, generation=generation)

        if timeout_event_type is EventType.SETTLE_ELAPSED:
            return SettleElapsed(event_type=EventType.SETTLE_ELAPSED, ts_ms=ts, generation=generation)

        if timeout_event_type is EventType.STALL_TIMEOUT:
            return StallTimeout(event_type=EventType.STALL_TIMEOUT, ts_ms=ts, generation=generation)

        raise ValueError(f"Unknown timeout event type: {timeout_event_type}")
