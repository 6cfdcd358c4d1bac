"""Statistics snapshot model."""

from pydantic import BaseModel, Field

PERCENTILES: dict[str, int] = {
    "p10": 10,
    "p25": 25,
    "p50": 50,
    "p75": 75,
    "p90": 90,
    "p95": 95,
    "p99": 99,
}


class StatsSnapshot(BaseModel):
    """Summary statistics derived from every result of a run.

    Latency values are in seconds and computed over successful results only.
    They are ``None`` when no request succeeded.
    """

    total: int = 0
    successful: int = 0
    failed: int = 0

    min: float | None = None
    max: float | None = None
    mean: float | None = None

    p10: float | None = None
    p25: float | None = None
    p50: float | None = None
    p75: float | None = None
    p90: float | None = None
    p95: float | None = None
    p99: float | None = None

    status_codes: dict[int, int] = Field(default_factory=dict)
    durations: list[float] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)

    def percentile_ladder(self) -> dict[str, float | None]:
        return {name: getattr(self, name) for name in PERCENTILES}
