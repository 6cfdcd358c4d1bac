"""Tests for the batch dispatcher."""

from __future__ import annotations

import httpx
import pytest
from conftest import TARGET, RecordingReporter, ScriptedExecutor, ok

from loadbench.engine import run_load_test, run_until_quit
from loadbench.models import RunDecision


class TestBatching:
    """Batch sizing and the batch barrier."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("total", "concurrency"), [(10, 3), (7, 7), (5, 50), (1, 1), (12, 4)])
    async def test_batch_sizes_sum_to_total(self, request_config, total, concurrency) -> None:
        """Batches cover every request and never exceed min(concurrency, remaining)."""
        executor = ScriptedExecutor([ok()])
        reporter = RecordingReporter(concurrency)

        outcome = await run_load_test(executor, TARGET, request_config, total, reporter)

        sizes = [b.size for b in reporter.batches]
        assert sum(sizes) == total
        remaining = total
        for size in sizes:
            assert size <= min(concurrency, remaining)
            remaining -= size
        assert outcome.completed == total
        assert len(outcome.stats) == total

    @pytest.mark.asyncio
    async def test_batches_do_not_overlap(self, request_config) -> None:
        """No request is in flight when a batch is reported complete."""
        executor = ScriptedExecutor([ok()])
        reporter = RecordingReporter(3)
        reporter.executor = executor

        await run_load_test(executor, TARGET, request_config, 10, reporter)

        assert reporter.in_flight_at_batch_end == [0, 0, 0, 0]
        assert executor.max_in_flight <= 3

    @pytest.mark.asyncio
    async def test_concurrency_change_applies_at_next_batch(self, request_config) -> None:
        """The dispatcher reads concurrency once per batch."""
        executor = ScriptedExecutor([ok()])
        reporter = RecordingReporter(lambda seen: 2 if seen == 0 else 5)

        await run_load_test(executor, TARGET, request_config, 10, reporter)

        assert [b.size for b in reporter.batches] == [2, 5, 3]

    @pytest.mark.asyncio
    async def test_zero_concurrency_is_treated_as_one(self, request_config) -> None:
        executor = ScriptedExecutor([ok()])
        reporter = RecordingReporter(0)

        await run_load_test(executor, TARGET, request_config, 3, reporter)

        assert [b.size for b in reporter.batches] == [1, 1, 1]


class TestFailures:
    """Per-request failures become results instead of exceptions."""

    @pytest.mark.asyncio
    async def test_executor_exception_recorded_as_failure(self, request_config) -> None:
        """A rejected request is a failed result with status 0."""
        executor = ScriptedExecutor([ok(), httpx.ConnectError("connection refused")])
        reporter = RecordingReporter(2)

        outcome = await run_load_test(executor, TARGET, request_config, 4, reporter)

        stats = outcome.stats.get_stats()
        assert stats.successful == 2
        assert stats.failed == 2
        assert stats.errors == ["connection refused", "connection refused"]
        assert stats.status_codes == {200: 2}

    @pytest.mark.asyncio
    async def test_error_status_recorded_as_failure(self, request_config) -> None:
        """Two 500 responses among five requests."""
        executor = ScriptedExecutor([ok(), ok(status=500), ok(), ok(status=500), ok()])
        reporter = RecordingReporter(5)

        outcome = await run_load_test(executor, TARGET, request_config, 5, reporter)

        stats = outcome.stats.get_stats()
        assert stats.successful == 3
        assert stats.failed == 2
        assert stats.status_codes == {200: 3, 500: 2}
        assert stats.errors == ["HTTP 500", "HTTP 500"]

    @pytest.mark.asyncio
    async def test_redirect_status_is_success(self, request_config) -> None:
        executor = ScriptedExecutor([ok(status=302)])
        reporter = RecordingReporter(1)

        outcome = await run_load_test(executor, TARGET, request_config, 1, reporter)

        assert outcome.stats.get_stats().successful == 1

    @pytest.mark.asyncio
    async def test_every_settled_request_is_reported(self, request_config) -> None:
        executor = ScriptedExecutor([ok(), ok(status=404)])
        reporter = RecordingReporter(4)

        await run_load_test(executor, TARGET, request_config, 8, reporter)

        assert len(reporter.results) == 8
        assert sum(not r.is_success for r in reporter.results) == 4


class TestRepeat:
    """Repeat cycles driven by the reporter's decision."""

    @pytest.mark.asyncio
    async def test_repeat_uses_fresh_collector(self, request_config) -> None:
        """Each cycle gets its own collector holding only that cycle's results."""
        executor = ScriptedExecutor([ok()])
        reporter = RecordingReporter(2, decisions=[RunDecision.REPEAT, RunDecision.QUIT])

        outcome = await run_until_quit(executor, TARGET, request_config, 4, reporter)

        assert len(reporter.completed_runs) == 2
        first, second = reporter.completed_runs
        assert first is not second
        assert len(first) == 4
        assert len(second) == 4
        assert outcome.stats is second
        assert executor.calls == 8

    @pytest.mark.asyncio
    async def test_quit_after_single_run(self, request_config) -> None:
        executor = ScriptedExecutor([ok()])
        reporter = RecordingReporter(3)

        await run_until_quit(executor, TARGET, request_config, 3, reporter)

        assert len(reporter.completed_runs) == 1
