"""Configuration models for loadbench."""

import os
from collections.abc import Mapping
from enum import Enum
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError

from loadbench.errors import ConfigError

DEFAULT_REQUESTS = 200
DEFAULT_CONCURRENCY = 50
COMPACT_COLUMNS = 80

TUI_ENV_VAR = "LOADBENCH_TUI"

CONFIG_CANDIDATES = (
    Path("loadbench.yaml"),
    Path("loadbench.yml"),
    Path(".loadbench.yaml"),
)


class ExportFormat(str, Enum):
    JSON = "json"
    CSV = "csv"


class RequestConfig(BaseModel):
    """Opaque per-request settings handed to the executor."""

    method: str = "GET"
    headers: dict[str, str] = Field(default_factory=dict)
    body: str | None = None
    timeout_seconds: float = Field(default=30.0, gt=0)
    follow_redirects: bool = True


class ExportConfig(BaseModel):
    format: ExportFormat | None = None
    output: str | None = None


class LoadTestConfig(BaseModel):
    requests: int = Field(default=DEFAULT_REQUESTS, ge=1)
    concurrency: int = Field(default=DEFAULT_CONCURRENCY, ge=1)
    tui: bool | None = None
    compact: bool = False
    request: RequestConfig = Field(default_factory=RequestConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)


def parse_export_format(value: str | None) -> ExportFormat | None:
    """Validate an export format name, rejecting unknown formats."""
    if value is None:
        return None
    try:
        return ExportFormat(value.lower())
    except ValueError:
        choices = ", ".join(f.value for f in ExportFormat)
        raise ConfigError(f"Unknown export format '{value}' (expected one of: {choices})") from None


def find_config(config_path: Path | None) -> Path | None:
    """Find the config file, checking common locations."""
    if config_path and config_path.exists():
        return config_path
    for candidate in CONFIG_CANDIDATES:
        if candidate.exists():
            return candidate
    return None


def load_config(path: str | Path) -> LoadTestConfig:
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc

    try:
        return LoadTestConfig(**data)
    except (TypeError, ValidationError) as exc:
        raise ConfigError(f"Invalid configuration in {path}: {exc}") from exc


def should_enable_tui(
    flag: bool | None,
    config_tui: bool | None = None,
    env: Mapping[str, str] | None = None,
) -> bool:
    """Decide whether the interactive dashboard is requested.

    An explicit flag wins, then the environment, then the config file.
    """
    if flag is not None:
        return flag

    env = os.environ if env is None else env
    if env.get(TUI_ENV_VAR, "").lower() in ("1", "true"):
        return True

    return bool(config_tui)


def is_compact_mode(force: bool, columns: int) -> bool:
    return force or columns < COMPACT_COLUMNS
