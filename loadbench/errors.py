"""Exceptions raised by the load-test engine."""


class LoadBenchError(Exception):
    """Base exception for all loadbench errors."""


class RequestCancelled(LoadBenchError):
    """Raised by an executor when its cancel signal fires mid-request.

    The dispatcher drops these attempts: they are neither successful nor failed.
    """

    def __init__(self, target: str):
        self.target = target
        super().__init__(f"Request to {target} was cancelled")


class ExportError(LoadBenchError):
    """Raised when writing an export file fails."""

    def __init__(self, path: str, reason: str):
        self.path = path
        super().__init__(f"Failed to export results to {path}: {reason}")


class ConfigError(LoadBenchError):
    """Raised for configuration that is rejected before a run starts."""
