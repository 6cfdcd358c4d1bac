"""Run-related models for loadbench."""

from enum import Enum


class DashboardStatus(str, Enum):
    """Status of an interactive load test."""

    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    STOPPED = "stopped"


class RunDecision(str, Enum):
    """What to do once a run has finished."""

    QUIT = "quit"
    REPEAT = "repeat"
