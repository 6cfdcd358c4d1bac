"""Pytest configuration and fixtures for loadbench tests."""

from __future__ import annotations

import asyncio
import io
from collections.abc import Callable, Sequence

import pytest
from rich.console import Console

from loadbench.engine.executor import CancelSignal, race_cancel
from loadbench.errors import RequestCancelled
from loadbench.models import BatchOutcome, ExecutorResponse, RequestConfig, RequestResult, RunDecision
from loadbench.stats import StatsCollector

TARGET = "http://test.local/"


class ScriptedExecutor:
    """Executor returning a scripted sequence of responses.

    Entries may be ``ExecutorResponse`` instances or exceptions to raise. The
    script cycles when it runs out.
    """

    def __init__(self, script: Sequence[ExecutorResponse | Exception]):
        self.script = list(script)
        self.calls = 0
        self.in_flight = 0
        self.max_in_flight = 0

    async def execute(self, target, config, cancel_signal=None):
        if cancel_signal is not None and cancel_signal.cancelled:
            raise RequestCancelled(target)
        item = self.script[self.calls % len(self.script)]
        self.calls += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
        finally:
            self.in_flight -= 1
        if isinstance(item, Exception):
            raise item
        return item


class GatedExecutor:
    """Executor whose requests stay in flight until the test releases them."""

    def __init__(self):
        self.pending: list[asyncio.Future[ExecutorResponse]] = []

    async def execute(self, target, config, cancel_signal: CancelSignal | None = None):
        if cancel_signal is not None and cancel_signal.cancelled:
            raise RequestCancelled(target)
        future: asyncio.Future[ExecutorResponse] = asyncio.get_running_loop().create_future()
        self.pending.append(future)
        return await race_cancel(target, future, cancel_signal)

    @property
    def waiting(self) -> list[asyncio.Future[ExecutorResponse]]:
        return [f for f in self.pending if not f.done()]

    def release(self, count: int, response: ExecutorResponse | None = None) -> None:
        response = response or ExecutorResponse(status=200, duration_ms=10.0)
        for future in self.waiting[:count]:
            future.set_result(response)

    async def wait_for(self, count: int, rounds: int = 200) -> None:
        """Yield to the loop until ``count`` requests are waiting."""
        for _ in range(rounds):
            if len(self.waiting) >= count:
                return
            await asyncio.sleep(0)
        raise AssertionError(f"expected {count} waiting requests, got {len(self.waiting)}")


class RecordingReporter:
    """Plain reporter that records every hook call.

    ``concurrency`` may be a callable taking the number of batches seen so
    far, to change concurrency between batches.
    """

    def __init__(
        self,
        concurrency: int | Callable[[int], int],
        decisions: Sequence[RunDecision] = (),
    ):
        self._concurrency = concurrency
        self._decisions = list(decisions)
        self.results: list[RequestResult] = []
        self.batches: list[BatchOutcome] = []
        self.completed_runs: list[StatsCollector] = []
        self.in_flight_at_batch_end: list[int] = []
        self.executor: ScriptedExecutor | None = None
        self.cleaned_up = False

    async def should_continue(self) -> bool:
        return True

    def get_concurrency(self) -> int:
        if callable(self._concurrency):
            return self._concurrency(len(self.batches))
        return self._concurrency

    def get_cancel_signal(self) -> CancelSignal | None:
        return None

    async def on_result(self, result: RequestResult) -> None:
        self.results.append(result)

    async def on_batch_complete(self, batch: BatchOutcome) -> None:
        self.batches.append(batch)
        if self.executor is not None:
            self.in_flight_at_batch_end.append(self.executor.in_flight)

    async def on_complete(self, stats: StatsCollector, duration: float) -> RunDecision:
        self.completed_runs.append(stats)
        if self._decisions:
            return self._decisions.pop(0)
        return RunDecision.QUIT

    async def cleanup(self) -> None:
        self.cleaned_up = True


def ok(duration_ms: float = 10.0, status: int = 200) -> ExecutorResponse:
    return ExecutorResponse(status=status, duration_ms=duration_ms, size="2 B")


async def settle(predicate: Callable[[], bool], rounds: int = 200) -> None:
    """Yield to the loop until ``predicate`` holds."""
    for _ in range(rounds):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


@pytest.fixture()
def request_config() -> RequestConfig:
    return RequestConfig()


@pytest.fixture()
def gated_executor() -> GatedExecutor:
    return GatedExecutor()


@pytest.fixture()
def recorded_console() -> Console:
    """Console that records output instead of writing to a terminal."""
    return Console(record=True, width=120, file=io.StringIO(), color_system=None)
