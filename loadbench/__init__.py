"""loadbench - HTTP load testing with an interactive terminal dashboard.

For the engine, import from loadbench.engine:
    from loadbench.engine import run_load_test, DashboardController

For models, import from loadbench.models:
    from loadbench.models import LoadTestConfig, RequestResult, StatsSnapshot
"""

__version__ = "0.1.0"

from loadbench.errors import ConfigError, ExportError, LoadBenchError, RequestCancelled
from loadbench.models import (
    ExportFormat,
    LoadTestConfig,
    RequestConfig,
    RequestResult,
    StatsSnapshot,
    load_config,
)
from loadbench.stats import StatsCollector

__all__ = [
    "ConfigError",
    "ExportError",
    "ExportFormat",
    "LoadBenchError",
    "LoadTestConfig",
    "RequestCancelled",
    "RequestConfig",
    "RequestResult",
    "StatsCollector",
    "StatsSnapshot",
    "load_config",
]
