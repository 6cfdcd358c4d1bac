import time

from pydantic import BaseModel, Field
from rich.console import Group, RenderableType
from rich.table import Table
from rich.text import Text

from loadbench.models import DashboardStatus
from loadbench.stats import (
    calculate_avg_latency,
    calculate_rps,
    group_status_codes,
    histogram_buckets,
    percentile,
)

# 60 seconds of history at one sample per 500ms
HISTORY_CAPACITY = 120
CHART_WINDOW = 60

FILLED = "█"
EMPTY = "░"
CHART_LEVELS = " ▁▂▃▄▅▆▇█"

STATUS_INDICATORS: dict[DashboardStatus, tuple[str, str, str]] = {
    DashboardStatus.RUNNING: ("▶", "green", "Running"),
    DashboardStatus.PAUSED: ("⏸", "yellow", "Paused"),
    DashboardStatus.COMPLETED: ("✓", "cyan", "Complete"),
    DashboardStatus.STOPPED: ("⏹", "red", "Stopped"),
}

FAMILY_COLORS = {
    "2xx": "green",
    "3xx": "yellow",
    "4xx": "red",
    "5xx": "bright_red",
}


class DashboardState(BaseModel):
    status: DashboardStatus = DashboardStatus.RUNNING
    target: str
    total_requests: int
    concurrency: int = 1
    compact: bool = False

    completed: int = 0
    success_count: int = 0
    error_count: int = 0
    start_time: float = Field(default_factory=time.perf_counter)

    # Latencies in ms of every successful request, kept for percentiles
    durations: list[float] = Field(default_factory=list)
    status_codes: dict[int, int] = Field(default_factory=dict)

    # Rolling windows feeding the live charts
    rps_history: list[float] = Field(default_factory=list)
    latency_history: list[float] = Field(default_factory=list)
    last_rps_time: float = Field(default_factory=time.perf_counter)
    requests_since_last_rps: int = 0
    interval_max_latency: float = 0.0


def format_elapsed(seconds: float) -> str:
    if seconds < 60:
        return f"{seconds:.1f}s"
    mins = int(seconds // 60)
    secs = seconds % 60
    return f"{mins}m {secs:.0f}s"


def calculate_eta(completed: int, total: int, elapsed: float) -> str:
    if completed == 0 or completed >= total or elapsed <= 0:
        return "-"
    rate = completed / elapsed
    return format_elapsed((total - completed) / rate)


def truncate_url(url: str, max_len: int) -> str:
    if len(url) <= max_len:
        return url
    return url[: max_len - 3] + "..."


def progress_bar(completed: int, total: int, width: int = 40) -> Text:
    ratio = completed / total if total > 0 else 0.0
    filled = min(width, round(ratio * width))
    text = Text()
    text.append(FILLED * filled, style="green")
    text.append(EMPTY * (width - filled), style="grey50")
    text.append(f" {completed}/{total} ({ratio * 100:.1f}%)")
    return text


def chart_rows(data: list[float], height: int = 5) -> list[str]:
    """Render a column chart of ``data`` as ``height`` lines of block characters.

    Only the most recent samples that fit the chart window are drawn.
    """
    values = data[-CHART_WINDOW:] if len(data) >= 2 else [0.0, 0.0]
    peak = max(values)
    steps = len(CHART_LEVELS) - 1
    # Height of each column in eighths of a row
    levels = [0 if peak <= 0 else round(v / peak * height * steps) for v in values]

    rows = []
    for row in range(height - 1, -1, -1):
        line = []
        for level in levels:
            fill = level - row * steps
            line.append(CHART_LEVELS[max(0, min(steps, fill))])
        rows.append("".join(line))
    return rows


class DashboardRenderer:
    """Builds rich renderables from a ``DashboardState`` snapshot."""

    def __init__(self, clock=time.perf_counter):
        self._clock = clock

    def render(self, state: DashboardState) -> RenderableType:
        if state.compact:
            return self.render_compact(state)
        return self.render_full(state)

    def render_full(self, state: DashboardState) -> Group:
        elapsed = max(0.0, self._clock() - state.start_time)

        charts = Table.grid(expand=True, padding=(0, 2))
        charts.add_column(ratio=1)
        charts.add_column(ratio=1)
        charts.add_row(
            self.chart("Request Rate (req/s)", state.rps_history),
            self.chart("Latency (ms)", state.latency_history),
        )

        bottom = Table.grid(expand=True, padding=(0, 4))
        bottom.add_column(ratio=1)
        bottom.add_column(ratio=1)
        bottom.add_row(self.status_codes(state.status_codes), self.percentiles(state.durations))

        return Group(
            self.header(state),
            Text(
                f"Requests: {state.total_requests} | Concurrency: {state.concurrency}",
                style="grey50",
            ),
            Text(),
            Text("Progress", style="bold"),
            progress_bar(state.completed, state.total_requests),
            self.stats_line(state, elapsed),
            Text(),
            charts,
            Text(),
            self.histogram(state.durations),
            Text(),
            bottom,
            Text(),
            self.controls(state.status),
        )

    def render_compact(self, state: DashboardState) -> Group:
        elapsed_ms = max(0.0, self._clock() - state.start_time) * 1000
        rps = calculate_rps(state.completed, elapsed_ms)
        avg = calculate_avg_latency(state.durations)

        line = Text()
        line.append("RPS: ")
        line.append(f"{rps:.1f}", style="yellow")
        line.append(" | Avg: ")
        line.append(f"{avg:.0f}ms", style="magenta")
        line.append(" | Errors: ")
        line.append(str(state.error_count), style="red" if state.error_count else "green")

        return Group(
            Text.assemble(("loadbench: ", "bold"), (truncate_url(state.target, 35), "cyan")),
            Text(),
            progress_bar(state.completed, state.total_requests, width=30),
            line,
            Text(),
            self.compact_status_codes(state.status_codes),
            self.compact_percentiles(state.durations),
            Text(),
            self.controls(state.status, compact=True),
        )

    def header(self, state: DashboardState) -> Table:
        symbol, color, label = STATUS_INDICATORS[state.status]
        grid = Table.grid(expand=True)
        grid.add_column()
        grid.add_column(justify="right")
        grid.add_row(
            Text.assemble(("Load Test: ", "bold"), (truncate_url(state.target, 50), "cyan")),
            Text(f"{symbol} {label}", style=color),
        )
        return grid

    def stats_line(self, state: DashboardState, elapsed: float) -> Text:
        rps = calculate_rps(state.completed, elapsed * 1000)
        avg = calculate_avg_latency(state.durations)
        eta = calculate_eta(state.completed, state.total_requests, elapsed)

        text = Text()
        text.append("Elapsed: ")
        text.append(format_elapsed(elapsed), style="cyan")
        text.append(" | ETA: ")
        text.append(eta, style="cyan")
        text.append(" | RPS: ")
        text.append(f"{rps:.1f}", style="yellow")
        text.append(" | Avg: ")
        text.append(f"{avg:.0f}ms", style="magenta")
        if state.error_count > 0:
            text.append(" | Errors: ")
            text.append(str(state.error_count), style="red")
        return text

    def chart(self, title: str, data: list[float], height: int = 5) -> Group:
        recent = data[-CHART_WINDOW:]
        peak = max(recent) if recent else 0.0
        lines = [Text(title, style="bold")]
        for i, row in enumerate(chart_rows(data, height)):
            label = f"{peak:>6.0f} ┤" if i == 0 else "       │"
            lines.append(Text.assemble((label, "grey50"), (row, "cyan")))
        lines.append(Text(f"{0:>6.0f} └" + "─" * CHART_WINDOW, style="grey50"))
        return Group(*lines)

    def histogram(self, durations: list[float], bucket_count: int = 5, max_bar: int = 30) -> Group:
        title = Text("Latency Distribution", style="bold")
        buckets = histogram_buckets(durations, bucket_count)
        if not buckets:
            return Group(title, Text("  No data yet...", style="grey50"))

        if len(buckets) == 1:
            labels = [f"{buckets[0].start:.0f}ms"]
        else:
            labels = [f"{b.start:.0f}-{b.end:.0f}ms" for b in buckets]
        label_width = max(len(label) for label in labels)
        max_count = max(b.count for b in buckets)

        lines = [title]
        for label, bucket in zip(labels, buckets):
            bar = round(bucket.count / max_count * max_bar) if max_count else 0
            lines.append(
                Text.assemble(
                    (label.ljust(label_width) + " ", "grey50"),
                    (FILLED * bar, "green"),
                    (EMPTY * (max_bar - bar), "grey50"),
                    f" {bucket.count} ({bucket.percentage:.1f}%)",
                )
            )
        return Group(*lines)

    def status_codes(self, status_codes: dict[int, int], max_bar: int = 20) -> Group:
        title = Text("Status Codes", style="bold")
        groups = group_status_codes(status_codes)
        if sum(groups.values()) == 0:
            return Group(title, Text("  No data yet...", style="grey50"))

        max_count = max(groups.values())
        lines = [title]
        for family, count in groups.items():
            if count == 0:
                continue
            color = FAMILY_COLORS[family]
            bar = round(count / max_count * max_bar)
            lines.append(
                Text.assemble(
                    (f"{family} ", color),
                    (FILLED * bar, color),
                    (EMPTY * (max_bar - bar), "grey50"),
                    f" {count}",
                )
            )
        return Group(*lines)

    def percentiles(self, durations: list[float]) -> Group:
        title = Text("Percentiles", style="bold")
        if not durations:
            return Group(title, Text("  No data yet...", style="grey50"))

        ordered = sorted(durations)
        lines = [title]
        for p, color in ((50, "cyan"), (75, "cyan"), (90, "yellow"), (99, "red")):
            lines.append(
                Text.assemble((f"p{p}: ", "grey50"), (f"{percentile(ordered, p):.0f}ms", color))
            )
        return Group(*lines)

    def compact_status_codes(self, status_codes: dict[int, int]) -> Text:
        text = Text()
        for i, (family, count) in enumerate(group_status_codes(status_codes).items()):
            if i:
                text.append("  ")
            text.append(f"{family}: {count}", style=FAMILY_COLORS[family])
        return text

    def compact_percentiles(self, durations: list[float]) -> Text:
        if not durations:
            return Text("p50: - p95: - p99: -", style="grey50")
        ordered = sorted(durations)
        text = Text()
        for i, (p, color) in enumerate(((50, "cyan"), (95, "yellow"), (99, "red"))):
            if i:
                text.append("  ")
            text.append(f"p{p}: ", style="grey50")
            text.append(f"{percentile(ordered, p):.0f}ms", style=color)
        return text

    def controls(self, status: DashboardStatus, compact: bool = False) -> Text:
        toggle = "Resume" if status is DashboardStatus.PAUSED else "Pause"
        reset = "Repeat" if status is DashboardStatus.COMPLETED else "Reset Stats"
        items = [("[Space] ", toggle)]
        if not compact:
            items += [("[+/-] ", "Concurrency"), ("[r] ", reset)]
        items.append(("[q] ", "Quit"))

        text = Text()
        for i, (key, label) in enumerate(items):
            if i:
                text.append("  ")
            text.append(key, style="grey50")
            text.append(label)
        return text
