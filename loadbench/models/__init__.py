"""Pydantic models for loadbench.

All data models are defined here. Import from this package for all serialization.
"""

from loadbench.models.config import (
    DEFAULT_CONCURRENCY,
    DEFAULT_REQUESTS,
    ExportConfig,
    ExportFormat,
    LoadTestConfig,
    RequestConfig,
    find_config,
    is_compact_mode,
    load_config,
    parse_export_format,
    should_enable_tui,
)
from loadbench.models.result import BatchOutcome, ExecutorResponse, RequestResult
from loadbench.models.run import DashboardStatus, RunDecision
from loadbench.models.stats import PERCENTILES, StatsSnapshot

__all__ = [
    # config.py
    "DEFAULT_CONCURRENCY",
    "DEFAULT_REQUESTS",
    "ExportConfig",
    "ExportFormat",
    "LoadTestConfig",
    "RequestConfig",
    "find_config",
    "is_compact_mode",
    "load_config",
    "parse_export_format",
    "should_enable_tui",
    # result.py
    "BatchOutcome",
    "ExecutorResponse",
    "RequestResult",
    # run.py
    "DashboardStatus",
    "RunDecision",
    # stats.py
    "PERCENTILES",
    "StatsSnapshot",
]
