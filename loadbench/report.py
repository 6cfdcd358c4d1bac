"""Human-readable summary of a finished load test."""

from rich.console import Console, Group
from rich.text import Text

from loadbench.models import StatsSnapshot
from loadbench.stats import HistogramBucket, histogram_buckets

HISTOGRAM_BAR = "■"
HISTOGRAM_BUCKETS = 10
HISTOGRAM_WIDTH = 40

LADDER = (
    ("10%", "p10"),
    ("25%", "p25"),
    ("50%", "p50"),
    ("75%", "p75"),
    ("90%", "p90"),
    ("95%", "p95"),
    ("99%", "p99"),
)


def _secs(value: float | None) -> str:
    return "-" if value is None else f"{value:.4f}"


def requests_per_second(total: int, duration: float) -> float:
    if duration <= 0:
        return 0.0
    return total / duration


def summary_lines(stats: StatsSnapshot, duration: float) -> list[str]:
    rps = requests_per_second(stats.total, duration)
    return [
        "Summary:",
        f"  Total:         {duration:.4f} secs",
        f"  Slowest:       {_secs(stats.max)} secs",
        f"  Fastest:       {_secs(stats.min)} secs",
        f"  Average:       {_secs(stats.mean)} secs",
        f"  Requests/sec:  {rps:.4f}",
    ]


def histogram_lines(stats: StatsSnapshot) -> list[str]:
    buckets = histogram_buckets(stats.durations, HISTOGRAM_BUCKETS)
    if not buckets:
        return []
    if len(buckets) == 1:
        # Identical latencies: first row holds everything, the rest stay empty
        only = buckets[0]
        buckets += [HistogramBucket(only.start, only.end, 0, 0.0)] * (HISTOGRAM_BUCKETS - 1)

    max_count = max(b.count for b in buckets)
    count_width = len(str(max_count))
    lines = ["Response time histogram:"]
    for bucket in buckets:
        bar = round(bucket.count / max_count * HISTOGRAM_WIDTH) if max_count else 0
        lines.append(
            f"  {bucket.start:.3f} [{str(bucket.count).rjust(count_width)}]    |{HISTOGRAM_BAR * bar}"
        )
    return lines


def latency_lines(stats: StatsSnapshot) -> list[str]:
    lines = ["Latency distribution:"]
    for label, name in LADDER:
        lines.append(f"  {label} in {_secs(getattr(stats, name))} secs")
    return lines


def status_code_lines(stats: StatsSnapshot) -> list[str]:
    if not stats.status_codes:
        return []
    lines = ["Status code distribution:"]
    for code, count in sorted(stats.status_codes.items()):
        lines.append(f"  [{code}] {count} responses")
    return lines


def render_summary(stats: StatsSnapshot, duration: float) -> Group:
    sections = [
        summary_lines(stats, duration),
        histogram_lines(stats),
        latency_lines(stats),
        status_code_lines(stats),
    ]
    parts: list[Text] = []
    for section in sections:
        if not section:
            continue
        parts.append(Text())
        parts.append(Text(section[0], style="bold"))
        parts.extend(Text(line) for line in section[1:])
    return Group(*parts)


def print_summary(console: Console, stats: StatsSnapshot, duration: float) -> None:
    console.print(render_summary(stats, duration))
