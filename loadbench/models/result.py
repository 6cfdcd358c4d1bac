"""Request-level models for loadbench."""

from pydantic import BaseModel, ConfigDict


class ExecutorResponse(BaseModel):
    """What a request executor reports for one completed attempt."""

    model_config = ConfigDict(frozen=True)

    status: int
    duration_ms: float
    size: str = "0 B"


class RequestResult(BaseModel):
    """One completed (or failed) request attempt.

    ``status`` is 0 when the attempt never received a response.
    """

    model_config = ConfigDict(frozen=True)

    duration_ms: float
    status: int
    size: str = "0 B"
    error: str | None = None

    @property
    def is_success(self) -> bool:
        return self.error is None and 200 <= self.status < 400


class BatchOutcome(BaseModel):
    """Bookkeeping for one dispatched batch."""

    model_config = ConfigDict(frozen=True)

    size: int
    settled: int

    @property
    def cancelled(self) -> int:
        return self.size - self.settled
