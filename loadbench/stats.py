"""Result aggregation and latency math."""

import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

from loadbench.models import PERCENTILES, RequestResult, StatsSnapshot

STATUS_FAMILIES = ("2xx", "3xx", "4xx", "5xx")


@dataclass(frozen=True)
class HistogramBucket:
    start: float
    end: float
    count: int
    percentage: float


def percentile(sorted_values: Sequence[float], p: float) -> float | None:
    """Nearest-rank percentile of an ascending sequence.

    Returns the element at index ``ceil(p/100 * n) - 1`` (never interpolated),
    or ``None`` for an empty sequence.
    """
    if not sorted_values:
        return None
    index = math.ceil((p / 100) * len(sorted_values)) - 1
    return sorted_values[max(0, index)]


def calculate_rps(completed: int, elapsed_ms: float) -> float:
    if elapsed_ms <= 0:
        return 0.0
    return completed / (elapsed_ms / 1000)


def calculate_avg_latency(durations: Sequence[float]) -> float:
    if not durations:
        return 0.0
    return sum(durations) / len(durations)


def histogram_buckets(values: Sequence[float], bucket_count: int) -> list[HistogramBucket]:
    """Split values into equal-width buckets between their min and max.

    The maximum lands in the last bucket. When every value is equal a single
    bucket holds all of them.
    """
    if not values:
        return []

    low = min(values)
    high = max(values)
    if high == low:
        return [HistogramBucket(start=low, end=high, count=len(values), percentage=100.0)]

    width = (high - low) / bucket_count
    counts = [0] * bucket_count
    for value in values:
        index = min(int((value - low) / width), bucket_count - 1)
        counts[index] += 1

    return [
        HistogramBucket(
            start=low + i * width,
            end=low + (i + 1) * width,
            count=count,
            percentage=count / len(values) * 100,
        )
        for i, count in enumerate(counts)
    ]


def group_status_codes(status_codes: Mapping[int, int]) -> dict[str, int]:
    """Fold individual status codes into 2xx/3xx/4xx/5xx families."""
    groups = dict.fromkeys(STATUS_FAMILIES, 0)
    for code, count in status_codes.items():
        if 200 <= code < 300:
            groups["2xx"] += count
        elif 300 <= code < 400:
            groups["3xx"] += count
        elif 400 <= code < 500:
            groups["4xx"] += count
        elif code >= 500:
            groups["5xx"] += count
    return groups


class StatsCollector:
    """Append-only log of request results for one run.

    Build a fresh collector per run (and per repeat cycle); snapshots are
    recomputed from the full log on every ``get_stats`` call.
    """

    def __init__(self) -> None:
        self._results: list[RequestResult] = []

    def __len__(self) -> int:
        return len(self._results)

    @property
    def results(self) -> tuple[RequestResult, ...]:
        return tuple(self._results)

    def add_results(self, results: Iterable[RequestResult]) -> None:
        self._results.extend(results)

    def get_durations(self) -> list[float]:
        """Successful latencies in seconds, ascending."""
        return sorted(r.duration_ms / 1000 for r in self._results if r.error is None)

    def get_status_codes(self) -> dict[int, int]:
        breakdown: dict[int, int] = {}
        for result in self._results:
            if result.status == 0:
                continue
            breakdown[result.status] = breakdown.get(result.status, 0) + 1
        return breakdown

    def get_stats(self) -> StatsSnapshot:
        durations = self.get_durations()
        total = len(self._results)

        if durations:
            low, high = durations[0], durations[-1]
            mean = sum(durations) / len(durations)
        else:
            low = high = mean = None

        ladder = {name: percentile(durations, p) for name, p in PERCENTILES.items()}

        return StatsSnapshot(
            total=total,
            successful=len(durations),
            failed=total - len(durations),
            min=low,
            max=high,
            mean=mean,
            status_codes=self.get_status_codes(),
            durations=durations,
            errors=[r.error for r in self._results if r.error is not None],
            **ladder,
        )
