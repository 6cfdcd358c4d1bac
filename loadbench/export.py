"""Export finished load-test statistics as JSON or CSV."""

import logging
from pathlib import Path
from typing import Any

import orjson
from rich.console import Console

from loadbench.errors import ExportError
from loadbench.models import ExportFormat, StatsSnapshot
from loadbench.report import requests_per_second

logger = logging.getLogger(__name__)

CSV_LATENCY_ROWS = (
    ("latency_min_secs", "min"),
    ("latency_max_secs", "max"),
    ("latency_avg_secs", "mean"),
    ("latency_p10_secs", "p10"),
    ("latency_p25_secs", "p25"),
    ("latency_p50_secs", "p50"),
    ("latency_p75_secs", "p75"),
    ("latency_p90_secs", "p90"),
    ("latency_p95_secs", "p95"),
    ("latency_p99_secs", "p99"),
)


def _round4(value: float | None) -> float | None:
    return None if value is None else round(value, 4)


def _fixed4(value: float | None) -> str:
    return "" if value is None else f"{value:.4f}"


def build_json_export(stats: StatsSnapshot, duration: float) -> dict[str, Any]:
    return {
        "summary": {
            "totalRequests": stats.total,
            "successful": stats.successful,
            "failed": stats.failed,
            "duration": round(duration, 4),
            "requestsPerSecond": round(requests_per_second(stats.total, duration), 4),
        },
        "latency": {
            "min": _round4(stats.min),
            "max": _round4(stats.max),
            "avg": _round4(stats.mean),
            **{name: _round4(value) for name, value in stats.percentile_ladder().items()},
        },
        "statusCodes": {str(code): count for code, count in sorted(stats.status_codes.items())},
        "errors": list(stats.errors),
    }


def format_json(stats: StatsSnapshot, duration: float) -> str:
    return orjson.dumps(build_json_export(stats, duration), option=orjson.OPT_INDENT_2).decode()


def format_csv(stats: StatsSnapshot, duration: float) -> str:
    lines = [
        "metric,value",
        f"total_requests,{stats.total}",
        f"successful,{stats.successful}",
        f"failed,{stats.failed}",
        f"duration_secs,{duration:.4f}",
        f"requests_per_sec,{requests_per_second(stats.total, duration):.4f}",
    ]
    for metric, field in CSV_LATENCY_ROWS:
        lines.append(f"{metric},{_fixed4(getattr(stats, field))}")
    for code, count in sorted(stats.status_codes.items()):
        lines.append(f"status_{code},{count}")
    return "\n".join(lines)


def format_export(stats: StatsSnapshot, duration: float, fmt: ExportFormat) -> str:
    if fmt is ExportFormat.JSON:
        return format_json(stats, duration)
    return format_csv(stats, duration)


def export_results(
    stats: StatsSnapshot,
    duration: float,
    fmt: ExportFormat,
    output_path: str | Path | None,
    console: Console,
) -> None:
    """Write the export to ``output_path``, or print it when no path is given.

    Raises:
        ExportError: If the file cannot be written.
    """
    content = format_export(stats, duration, fmt)

    if output_path is None:
        console.print()
        console.print(content, markup=False, highlight=False, soft_wrap=True)
        return

    path = Path(output_path)
    try:
        path.write_text(content, encoding="utf-8")
    except OSError as exc:
        raise ExportError(str(path), exc.strerror or str(exc)) from exc
    logger.debug(f"Exported {fmt.value} results to {path}")
    console.print(f"\nResults exported to [bold]{path}[/bold]")
