"""Core execution engine for loadbench."""

from loadbench.engine.controller import (
    ControllerEvent,
    ControllerMessage,
    DashboardController,
)
from loadbench.engine.dispatcher import (
    RunOutcome,
    execute_session,
    run_load_test,
    run_until_quit,
)
from loadbench.engine.executor import CancelSignal, HttpxExecutor, RequestExecutor

__all__ = [
    "CancelSignal",
    "ControllerEvent",
    "ControllerMessage",
    "DashboardController",
    "HttpxExecutor",
    "RequestExecutor",
    "RunOutcome",
    "execute_session",
    "run_load_test",
    "run_until_quit",
]
