import logging
from typing import Protocol

from rich.console import Console
from rich.progress import BarColumn, Progress, TaskID, TextColumn

from loadbench.engine.controller import DashboardController
from loadbench.engine.executor import CancelSignal
from loadbench.errors import ExportError
from loadbench.export import export_results
from loadbench.models import (
    BatchOutcome,
    DashboardStatus,
    ExportConfig,
    RequestResult,
    RunDecision,
    StatsSnapshot,
)
from loadbench.report import print_summary
from loadbench.stats import StatsCollector

logger = logging.getLogger(__name__)


class Reporter(Protocol):
    """Protocol for surfacing load-test progress.

    The dispatch loop is identical whichever reporter is plugged in.
    """

    async def should_continue(self) -> bool:
        """Whether to dispatch another batch. May suspend while paused."""
        ...

    def get_concurrency(self) -> int:
        """Current desired concurrency; may change between batches."""
        ...

    def get_cancel_signal(self) -> CancelSignal | None:
        """Signal that cancels in-flight requests, if the reporter supports it."""
        ...

    async def on_result(self, result: RequestResult) -> None:
        """Called as each request settles (cancelled requests are not reported)."""
        ...

    async def on_batch_complete(self, batch: BatchOutcome) -> None:
        """Called once per batch after the whole batch has settled."""
        ...

    async def on_complete(self, stats: StatsCollector, duration: float) -> RunDecision:
        """Finalize a run and decide whether to repeat it."""
        ...

    async def cleanup(self) -> None:
        """Release display resources."""
        ...


def finalize_run(
    console: Console,
    stats: StatsSnapshot,
    duration: float,
    export: ExportConfig | None = None,
) -> None:
    """Print the summary and write the export, if one is configured.

    A failed export is reported as a warning; the summary is still printed.
    """
    if export is not None and export.format is not None:
        try:
            export_results(stats, duration, export.format, export.output, console)
        except ExportError as exc:
            logger.warning(str(exc))
            console.print(f"[yellow]Warning: {exc}[/yellow]")
            print_summary(console, stats, duration)
        return
    print_summary(console, stats, duration)


class ProgressReporter:
    """Non-interactive reporter: a single-line progress bar on stderr."""

    def __init__(
        self,
        total_requests: int,
        concurrency: int,
        console: Console | None = None,
        progress_console: Console | None = None,
        export: ExportConfig | None = None,
    ):
        self.total_requests = total_requests
        self.concurrency = max(1, concurrency)
        self.console = console or Console()
        self.export = export
        self.success_count = 0
        self.error_count = 0
        self.completed = 0

        progress_console = progress_console or Console(stderr=True)
        self.progress = Progress(
            TextColumn("["),
            BarColumn(bar_width=20),
            TextColumn("] {task.completed}/{task.total}"),
            TextColumn("[green]{task.fields[ok]} ok[/green] [red]{task.fields[errors]} err[/red]"),
            console=progress_console,
            transient=True,
            disable=not progress_console.is_terminal,
        )
        self._task_id: TaskID | None = None

    async def should_continue(self) -> bool:
        return True

    def get_concurrency(self) -> int:
        return self.concurrency

    def get_cancel_signal(self) -> CancelSignal | None:
        return None

    async def on_result(self, result: RequestResult) -> None:
        if result.is_success:
            self.success_count += 1
        else:
            self.error_count += 1

    async def on_batch_complete(self, batch: BatchOutcome) -> None:
        self.completed += batch.settled
        if self._task_id is None:
            self.progress.start()
            self._task_id = self.progress.add_task(
                "load", total=self.total_requests, ok=0, errors=0
            )
        self.progress.update(
            self._task_id,
            completed=self.completed,
            ok=self.success_count,
            errors=self.error_count,
        )

    async def on_complete(self, stats: StatsCollector, duration: float) -> RunDecision:
        self._finish_progress()
        finalize_run(self.console, stats.get_stats(), duration, self.export)
        return RunDecision.QUIT

    async def cleanup(self) -> None:
        self._finish_progress()

    def _finish_progress(self) -> None:
        if self._task_id is not None:
            self.progress.stop()
            self._task_id = None


class DashboardReporter:
    """Interactive reporter backed by a ``DashboardController``.

    Summary and export are deferred: the last finished run is kept in
    ``last_stats``/``last_duration`` for the caller to print once the
    terminal UI has been torn down.
    """

    def __init__(self, controller: DashboardController):
        self.controller = controller
        self.last_stats: StatsSnapshot | None = None
        self.last_duration: float = 0.0

    async def should_continue(self) -> bool:
        status = self.controller.status
        if status is DashboardStatus.STOPPED:
            return False
        if status is DashboardStatus.PAUSED:
            return await self.controller.wait_for_resume()
        return True

    def get_concurrency(self) -> int:
        return self.controller.concurrency

    def get_cancel_signal(self) -> CancelSignal | None:
        return self.controller.cancel_signal

    async def on_result(self, result: RequestResult) -> None:
        self.controller.record_result(result)

    async def on_batch_complete(self, batch: BatchOutcome) -> None:
        logger.debug(f"Batch settled: {batch.settled}/{batch.size}")

    async def on_complete(self, stats: StatsCollector, duration: float) -> RunDecision:
        self.last_stats = stats.get_stats()
        self.last_duration = duration
        if self.controller.status is DashboardStatus.STOPPED:
            return RunDecision.QUIT
        self.controller.complete()
        return await self.controller.wait_for_decision()

    async def cleanup(self) -> None:
        self.controller.shutdown()
