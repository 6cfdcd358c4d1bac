"""Batch dispatcher: the main load-test loop.

Requests go out in batches of at most ``concurrency`` and every batch is a
barrier: batch k+1 is never started before all of batch k has settled. A
concurrency change made by the reporter therefore applies at the next batch
boundary.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from loadbench.engine.executor import CancelSignal, HttpxExecutor, RequestExecutor
from loadbench.errors import RequestCancelled
from loadbench.models import BatchOutcome, RequestConfig, RequestResult, RunDecision
from loadbench.stats import StatsCollector

if TYPE_CHECKING:
    from loadbench.reporters import Reporter

logger = logging.getLogger(__name__)


@dataclass
class RunOutcome:
    """Result of one pass through the dispatch loop."""

    stats: StatsCollector
    duration: float
    batches: list[BatchOutcome] = field(default_factory=list)

    @property
    def completed(self) -> int:
        return sum(b.settled for b in self.batches)


async def _execute_one(
    executor: RequestExecutor,
    target: str,
    request_config: RequestConfig,
    cancel_signal: CancelSignal | None,
    reporter: "Reporter",
) -> RequestResult | None:
    """Run one request and convert its outcome into a result.

    Returns ``None`` for a cancelled attempt. Failures never raise.
    """
    start = time.perf_counter()
    try:
        response = await executor.execute(target, request_config, cancel_signal)
    except RequestCancelled:
        return None
    except Exception as e:
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.debug(f"Request to {target} failed: {e}")
        result = RequestResult(
            duration_ms=elapsed_ms,
            status=0,
            size="0 B",
            error=str(e) or type(e).__name__,
        )
    else:
        error = None
        if not 200 <= response.status < 400:
            error = f"HTTP {response.status}"
        result = RequestResult(
            duration_ms=response.duration_ms,
            status=response.status,
            size=response.size,
            error=error,
        )

    await reporter.on_result(result)
    return result


async def run_load_test(
    executor: RequestExecutor,
    target: str,
    request_config: RequestConfig,
    total_requests: int,
    reporter: "Reporter",
) -> RunOutcome:
    """Dispatch ``total_requests`` requests in barrier-separated batches."""
    stats = StatsCollector()
    outcome = RunOutcome(stats=stats, duration=0.0)
    completed = 0

    logger.debug(f"Starting load test: {total_requests} requests against {target}")
    start_time = time.perf_counter()

    while completed < total_requests and await reporter.should_continue():
        concurrency = max(1, reporter.get_concurrency())
        batch_size = min(concurrency, total_requests - completed)
        cancel_signal = reporter.get_cancel_signal()

        results = await asyncio.gather(
            *(
                _execute_one(executor, target, request_config, cancel_signal, reporter)
                for _ in range(batch_size)
            )
        )

        settled = [r for r in results if r is not None]
        stats.add_results(settled)
        batch = BatchOutcome(size=batch_size, settled=len(settled))
        outcome.batches.append(batch)
        completed += batch.settled

        logger.debug(f"Batch of {batch_size}: {batch.settled} settled, {batch.cancelled} cancelled")
        await reporter.on_batch_complete(batch)

    outcome.duration = time.perf_counter() - start_time
    logger.debug(f"Finished load test: {completed}/{total_requests} requests in {outcome.duration:.2f}s")
    return outcome


async def run_until_quit(
    executor: RequestExecutor,
    target: str,
    request_config: RequestConfig,
    total_requests: int,
    reporter: "Reporter",
) -> RunOutcome:
    """Run, then repeat with a fresh collector for as long as the reporter asks."""
    while True:
        outcome = await run_load_test(executor, target, request_config, total_requests, reporter)
        decision = await reporter.on_complete(outcome.stats, outcome.duration)
        if decision is not RunDecision.REPEAT:
            return outcome
        logger.debug("Repeating load test")


async def execute_session(
    target: str,
    request_config: RequestConfig,
    total_requests: int,
    reporter: "Reporter",
    max_connections: int | None = None,
) -> RunOutcome:
    """Open an httpx executor and drive the run loop until the reporter quits."""
    try:
        async with HttpxExecutor(request_config, max_connections=max_connections) as executor:
            return await run_until_quit(
                executor, target, request_config, total_requests, reporter
            )
    finally:
        await reporter.cleanup()
