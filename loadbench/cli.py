"""loadbench CLI."""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from loadbench.errors import ConfigError
from loadbench.models import (
    LoadTestConfig,
    find_config,
    is_compact_mode,
    load_config,
    parse_export_format,
    should_enable_tui,
)

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
)

console = Console()
err_console = Console(stderr=True)

logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool, interactive: bool) -> None:
    if verbose:
        level = logging.DEBUG
    elif interactive:
        # Keep log lines from painting over the dashboard
        level = logging.ERROR
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _parse_headers(headers: list[str]) -> dict[str, str]:
    parsed: dict[str, str] = {}
    for header in headers:
        name, sep, value = header.partition(":")
        if not sep or not name.strip():
            raise ConfigError(f"Invalid header '{header}' (expected 'Name: value')")
        parsed[name.strip()] = value.strip()
    return parsed


def _build_config(
    config_path: Path | None,
    requests: int | None,
    concurrency: int | None,
    compact: bool,
    export_format: str | None,
    output: Path | None,
    method: str | None,
    headers: list[str],
    data: str | None,
    timeout: float | None,
) -> LoadTestConfig:
    config_file = find_config(config_path)
    if config_path and config_file is None:
        raise ConfigError(f"Configuration file not found: {config_path}")
    cfg = load_config(config_file) if config_file else LoadTestConfig()

    request_updates: dict = {}
    if method:
        request_updates["method"] = method.upper()
    if headers:
        request_updates["headers"] = {**cfg.request.headers, **_parse_headers(headers)}
    if data is not None:
        request_updates["body"] = data
    if timeout is not None:
        if timeout <= 0:
            raise ConfigError("--timeout must be positive")
        request_updates["timeout_seconds"] = timeout

    export_updates: dict = {}
    if export_format is not None:
        export_updates["format"] = parse_export_format(export_format)
    if output is not None:
        export_updates["output"] = str(output)

    updates: dict = {
        "request": cfg.request.model_copy(update=request_updates),
        "export": cfg.export.model_copy(update=export_updates),
    }
    if requests is not None:
        updates["requests"] = requests
    if concurrency is not None:
        updates["concurrency"] = concurrency
    if compact:
        updates["compact"] = True

    cfg = cfg.model_copy(update=updates)
    if cfg.requests < 1 or cfg.concurrency < 1:
        raise ConfigError("--requests and --concurrency must be at least 1")
    return cfg


@app.callback()
def main():
    """
    loadbench - HTTP load testing with a live terminal dashboard.

    Commands:
      loadbench run URL          Run a load test against URL
      loadbench run URL --tui    Run with the interactive dashboard
    """


@app.command()
def run(
    target: Annotated[str, typer.Argument(help="Target URL")],
    requests: Annotated[
        int | None,
        typer.Option("--requests", "-n", help="Total number of requests (default: 200)"),
    ] = None,
    concurrency: Annotated[
        int | None,
        typer.Option("--concurrency", "-c", help="Concurrent requests per batch (default: 50)"),
    ] = None,
    tui: Annotated[
        bool | None,
        typer.Option("--tui/--no-tui", help="Interactive dashboard (default: LOADBENCH_TUI or config)"),
    ] = None,
    compact: Annotated[
        bool,
        typer.Option("--compact", help="Use the compact dashboard layout"),
    ] = False,
    export_format: Annotated[
        str | None,
        typer.Option("--export", "-e", help="Export results as json or csv"),
    ] = None,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Export file path (default: stdout)"),
    ] = None,
    method: Annotated[
        str | None,
        typer.Option("--method", "-X", help="HTTP method"),
    ] = None,
    header: Annotated[
        list[str] | None,
        typer.Option("--header", "-H", help="Request header 'Name: value' (repeatable)"),
    ] = None,
    data: Annotated[
        str | None,
        typer.Option("--data", "-d", help="Request body"),
    ] = None,
    timeout: Annotated[
        float | None,
        typer.Option("--timeout", help="Per-request timeout in seconds"),
    ] = None,
    config: Annotated[
        Path | None,
        typer.Option("--config", help="Path to configuration file"),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
):
    """Run a load test against TARGET."""
    try:
        cfg = _build_config(
            config,
            requests,
            concurrency,
            compact,
            export_format,
            output,
            method,
            header or [],
            data,
            timeout,
        )
    except ConfigError as exc:
        err_console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from None

    interactive = should_enable_tui(tui, cfg.tui)
    if interactive and not console.is_terminal:
        err_console.print("[yellow]Dashboard needs a terminal; falling back to plain output.[/yellow]")
        interactive = False

    _configure_logging(verbose, interactive)

    console.print("[bold]Load test configuration[/bold]")
    console.print(f"URL: {target}")
    console.print(f"Requests: {cfg.requests}")
    console.print(f"Concurrency: {cfg.concurrency}")

    if interactive:
        _execute_interactive(target, cfg)
    else:
        _execute_plain(target, cfg)


# --- Internal helpers ---


def _execute_plain(target: str, cfg: LoadTestConfig) -> None:
    from loadbench.engine import execute_session
    from loadbench.reporters import ProgressReporter

    reporter = ProgressReporter(
        total_requests=cfg.requests,
        concurrency=cfg.concurrency,
        console=console,
        export=cfg.export,
    )
    logger.debug(f"Starting load test: {cfg.requests} requests with {cfg.concurrency} concurrency")
    asyncio.run(execute_session(target, cfg.request, cfg.requests, reporter))


def _execute_interactive(target: str, cfg: LoadTestConfig) -> None:
    from loadbench.engine import DashboardController, execute_session
    from loadbench.reporters import DashboardReporter, finalize_run
    from loadbench.tui import LoadTestApp

    controller = DashboardController(
        target=target,
        total_requests=cfg.requests,
        concurrency=cfg.concurrency,
        compact=is_compact_mode(cfg.compact, console.width),
    )
    reporter = DashboardReporter(controller)

    def driver():
        return execute_session(target, cfg.request, cfg.requests, reporter)

    LoadTestApp(controller, driver).run()

    if reporter.last_stats is not None:
        finalize_run(console, reporter.last_stats, reporter.last_duration, cfg.export)


def cli_main():
    app()


if __name__ == "__main__":
    cli_main()
