"""Interactive dashboard controller.

Owns the ``DashboardState`` of an interactive run. The state is mutated only
here, in response to completed requests, history ticks and operator
commands. Renderers subscribe for change notifications and read a deep copy
through ``snapshot()``.
"""

import asyncio
import contextlib
import logging
import math
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from loadbench.dashboard import HISTORY_CAPACITY, DashboardState
from loadbench.engine.executor import CancelSignal
from loadbench.models import DashboardStatus, RequestResult, RunDecision

logger = logging.getLogger(__name__)

TICK_INTERVAL = 0.5
CONCURRENCY_STEP = 0.1


class Command(str, Enum):
    PAUSE = "pause"
    RESUME = "resume"
    STOP = "stop"
    COMPLETE = "complete"
    REPEAT = "repeat"


# (current status, command) -> next status. Anything missing is ignored.
TRANSITIONS: dict[tuple[DashboardStatus, Command], DashboardStatus] = {
    (DashboardStatus.RUNNING, Command.PAUSE): DashboardStatus.PAUSED,
    (DashboardStatus.PAUSED, Command.RESUME): DashboardStatus.RUNNING,
    (DashboardStatus.RUNNING, Command.STOP): DashboardStatus.STOPPED,
    (DashboardStatus.PAUSED, Command.STOP): DashboardStatus.STOPPED,
    (DashboardStatus.RUNNING, Command.COMPLETE): DashboardStatus.COMPLETED,
    (DashboardStatus.PAUSED, Command.COMPLETE): DashboardStatus.COMPLETED,
    (DashboardStatus.COMPLETED, Command.REPEAT): DashboardStatus.RUNNING,
}


class ControllerEvent(str, Enum):
    UPDATE = "update"
    PAUSE = "pause"
    RESUME = "resume"
    STOP = "stop"
    COMPLETE = "complete"
    REPEAT = "repeat"
    CONCURRENCY = "concurrency"


@dataclass(frozen=True)
class ControllerMessage:
    event: ControllerEvent
    status: DashboardStatus


Subscriber = Callable[[ControllerMessage], None]


def _push_bounded(history: list[float], value: float) -> None:
    history.append(value)
    while len(history) > HISTORY_CAPACITY:
        history.pop(0)


class DashboardController:
    """State machine for an interactive load test.

    Args:
        target: URL under test, shown in the header.
        total_requests: Requests per run.
        concurrency: Initial concurrency (clamped to at least 1).
        compact: Use the compact layout.
        clock: Monotonic clock in seconds, injectable for tests.
    """

    def __init__(
        self,
        target: str,
        total_requests: int,
        concurrency: int,
        compact: bool = False,
        clock: Callable[[], float] = time.perf_counter,
        tick_interval: float = TICK_INTERVAL,
    ):
        self._clock = clock
        self._tick_interval = tick_interval
        now = clock()
        self._state = DashboardState(
            target=target,
            total_requests=total_requests,
            concurrency=max(1, concurrency),
            compact=compact,
            start_time=now,
            last_rps_time=now,
        )
        self._cancel_signal = CancelSignal()
        self._subscribers: list[Subscriber] = []
        self._timer: asyncio.Task[None] | None = None
        self._resume_waiters: list[asyncio.Future[bool]] = []
        self._decision_waiters: list[asyncio.Future[RunDecision]] = []

    # --- Reading state ---

    @property
    def status(self) -> DashboardStatus:
        return self._state.status

    @property
    def concurrency(self) -> int:
        return self._state.concurrency

    @property
    def cancel_signal(self) -> CancelSignal:
        return self._cancel_signal

    @property
    def timer_running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def snapshot(self) -> DashboardState:
        """Deep copy of the current state, safe to hand to a renderer."""
        return self._state.model_copy(deep=True)

    # --- Observers ---

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._subscribers.remove(callback)

        return unsubscribe

    def _publish(self, event: ControllerEvent) -> None:
        message = ControllerMessage(event=event, status=self._state.status)
        for callback in list(self._subscribers):
            callback(message)

    # --- History timer ---

    def start(self) -> None:
        """Start the periodic history timer. Requires a running event loop."""
        if self.timer_running:
            return
        self._timer = asyncio.get_running_loop().create_task(self._tick_loop())

    async def _tick_loop(self) -> None:
        while True:
            await asyncio.sleep(self._tick_interval)
            try:
                self.tick()
            except Exception:
                logger.exception("History tick failed")

    def _stop_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def tick(self, now: float | None = None) -> bool:
        """Sample one point of request rate and peak latency.

        Returns False when less than one tick interval has elapsed.
        """
        now = self._clock() if now is None else now
        state = self._state
        elapsed = now - state.last_rps_time
        if elapsed < self._tick_interval:
            return False

        _push_bounded(state.rps_history, state.requests_since_last_rps / elapsed)
        _push_bounded(state.latency_history, state.interval_max_latency)

        state.last_rps_time = now
        state.requests_since_last_rps = 0
        state.interval_max_latency = 0.0
        self._publish(ControllerEvent.UPDATE)
        return True

    # --- Results ---

    def record_result(self, result: RequestResult) -> None:
        state = self._state
        if state.status in (DashboardStatus.PAUSED, DashboardStatus.STOPPED):
            return

        state.completed += 1
        state.requests_since_last_rps += 1

        if result.is_success:
            state.success_count += 1
        else:
            state.error_count += 1

        if result.error is None:
            state.durations.append(result.duration_ms)
            state.interval_max_latency = max(state.interval_max_latency, result.duration_ms)

        if result.status != 0:
            state.status_codes[result.status] = state.status_codes.get(result.status, 0) + 1

        self._publish(ControllerEvent.UPDATE)

    # --- Transitions ---

    def _transition(self, command: Command) -> bool:
        current = self._state.status
        target = TRANSITIONS.get((current, command))
        if target is None:
            logger.debug(f"Ignoring {command.value} while {current.value}")
            return False
        logger.debug(f"Dashboard {current.value} -> {target.value} ({command.value})")
        self._state.status = target
        return True

    def _renew_signal(self) -> None:
        self._cancel_signal.cancel()
        self._cancel_signal = CancelSignal()

    def pause(self) -> bool:
        """Pause dispatch and cancel the requests currently in flight."""
        if not self._transition(Command.PAUSE):
            return False
        self._renew_signal()
        self._publish(ControllerEvent.PAUSE)
        return True

    def resume(self) -> bool:
        if not self._transition(Command.RESUME):
            return False
        self._resolve_resume_waiters(True)
        self._publish(ControllerEvent.RESUME)
        return True

    def stop(self) -> bool:
        """Stop the test for good.

        From a completed run this only answers the pending repeat-or-quit
        question with ``QUIT``; the status stays completed.
        """
        if self._state.status is DashboardStatus.COMPLETED:
            self._resolve_decision(RunDecision.QUIT)
            self._publish(ControllerEvent.STOP)
            return True
        if not self._transition(Command.STOP):
            return False
        self._cancel_signal.cancel()
        self._stop_timer()
        self._resolve_resume_waiters(False)
        self._resolve_decision(RunDecision.QUIT)
        self._publish(ControllerEvent.STOP)
        return True

    def complete(self) -> bool:
        if not self._transition(Command.COMPLETE):
            return False
        self._stop_timer()
        self._publish(ControllerEvent.COMPLETE)
        return True

    def repeat(self) -> bool:
        if not self._transition(Command.REPEAT):
            return False
        self._reset_counters()
        self._cancel_signal = CancelSignal()
        with contextlib.suppress(RuntimeError):
            self.start()
        self._resolve_decision(RunDecision.REPEAT)
        self._publish(ControllerEvent.REPEAT)
        return True

    def adjust_concurrency(self, delta: int) -> int:
        self._state.concurrency = max(1, self._state.concurrency + delta)
        self._publish(ControllerEvent.CONCURRENCY)
        return self._state.concurrency

    def reset_stats(self) -> None:
        """Zero counters and histories without touching the status."""
        self._reset_counters()
        self._publish(ControllerEvent.UPDATE)

    def _reset_counters(self) -> None:
        state = self._state
        now = self._clock()
        state.durations = []
        state.status_codes = {}
        state.latency_history = []
        state.rps_history = []
        state.success_count = 0
        state.error_count = 0
        state.completed = 0
        state.start_time = now
        state.last_rps_time = now
        state.requests_since_last_rps = 0
        state.interval_max_latency = 0.0

    # --- Keyboard helpers ---

    def toggle_pause(self) -> bool:
        if self._state.status is DashboardStatus.PAUSED:
            return self.resume()
        return self.pause()

    def step_concurrency(self, direction: int) -> int:
        """Move concurrency by 10% (rounded up, at least 1) in ``direction``."""
        step = max(1, math.ceil(self._state.concurrency * CONCURRENCY_STEP))
        return self.adjust_concurrency(step if direction > 0 else -step)

    def reset_or_repeat(self) -> None:
        if self._state.status is DashboardStatus.COMPLETED:
            self.repeat()
        else:
            self.reset_stats()

    # --- Suspension points ---

    async def wait_for_resume(self) -> bool:
        """Suspend while paused. True to proceed, False once stopped."""
        status = self._state.status
        if status is DashboardStatus.STOPPED:
            return False
        if status is not DashboardStatus.PAUSED:
            return True
        waiter: asyncio.Future[bool] = asyncio.get_running_loop().create_future()
        self._resume_waiters.append(waiter)
        return await waiter

    async def wait_for_decision(self) -> RunDecision:
        """Suspend until the operator repeats or quits a completed run."""
        if self._state.status is DashboardStatus.STOPPED:
            return RunDecision.QUIT
        waiter: asyncio.Future[RunDecision] = asyncio.get_running_loop().create_future()
        self._decision_waiters.append(waiter)
        return await waiter

    def _resolve_resume_waiters(self, proceed: bool) -> None:
        waiters, self._resume_waiters = self._resume_waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(proceed)

    def _resolve_decision(self, decision: RunDecision) -> None:
        waiters, self._decision_waiters = self._decision_waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(decision)

    def shutdown(self) -> None:
        """Stop the timer and release anything still waiting."""
        self._stop_timer()
        self._resolve_resume_waiters(False)
        self._resolve_decision(RunDecision.QUIT)
