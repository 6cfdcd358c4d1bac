"""Request executors: the single "perform one HTTP request" operation.

The dispatcher only relies on the ``RequestExecutor`` protocol. ``HttpxExecutor``
is the implementation used by the CLI; tests plug in scripted fakes.
"""

import asyncio
import contextlib
import logging
import time
from typing import Protocol

import httpx

from loadbench.errors import RequestCancelled
from loadbench.models import ExecutorResponse, RequestConfig

logger = logging.getLogger(__name__)

_SIZE_UNITS = ("B", "KB", "MB", "GB")


class CancelSignal:
    """Request-scoped cancellation flag.

    Cancelling a signal aborts the requests currently waiting on it. Once
    cancelled it stays cancelled; callers issue a fresh signal for later work.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()


class RequestExecutor(Protocol):
    """Protocol for executing a single request against the target."""

    async def execute(
        self,
        target: str,
        config: RequestConfig,
        cancel_signal: CancelSignal | None = None,
    ) -> ExecutorResponse:
        """Perform one request.

        Must raise ``RequestCancelled`` when ``cancel_signal`` fires, and any
        other exception for a genuine failure.
        """
        ...


def format_size(num_bytes: int) -> str:
    size = float(num_bytes)
    for unit in _SIZE_UNITS:
        if size < 1024 or unit == _SIZE_UNITS[-1]:
            if unit == "B":
                return f"{int(size)} B"
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{num_bytes} B"


async def race_cancel(
    target: str,
    operation: "asyncio.Future[ExecutorResponse] | asyncio.Task[ExecutorResponse]",
    cancel_signal: CancelSignal | None,
) -> ExecutorResponse:
    """Await ``operation`` unless ``cancel_signal`` fires first.

    On cancellation the operation is cancelled and ``RequestCancelled`` raised.
    """
    if cancel_signal is None:
        return await operation

    waiter = asyncio.ensure_future(cancel_signal.wait())
    try:
        done, _ = await asyncio.wait({operation, waiter}, return_when=asyncio.FIRST_COMPLETED)
        if operation in done:
            return operation.result()
        operation.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await operation
        raise RequestCancelled(target)
    finally:
        waiter.cancel()
        if not operation.done():
            operation.cancel()


class HttpxExecutor:
    """Executor backed by a shared ``httpx.AsyncClient``.

    Use as an async context manager so the connection pool is closed on exit.
    """

    def __init__(
        self,
        config: RequestConfig,
        max_connections: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config
        self._max_connections = max_connections
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "HttpxExecutor":
        limits = httpx.Limits(max_connections=self._max_connections)
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.config.timeout_seconds),
            follow_redirects=self.config.follow_redirects,
            limits=limits,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *exc_info) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def execute(
        self,
        target: str,
        config: RequestConfig,
        cancel_signal: CancelSignal | None = None,
    ) -> ExecutorResponse:
        if cancel_signal is not None and cancel_signal.cancelled:
            raise RequestCancelled(target)
        if self._client is None:
            raise RuntimeError("HttpxExecutor must be entered before use")

        operation = asyncio.ensure_future(self._send(target, config))
        return await race_cancel(target, operation, cancel_signal)

    async def _send(self, target: str, config: RequestConfig) -> ExecutorResponse:
        start = time.perf_counter()
        response = await self._client.request(
            config.method,
            target,
            headers=config.headers,
            content=config.body,
        )
        duration_ms = (time.perf_counter() - start) * 1000
        return ExecutorResponse(
            status=response.status_code,
            duration_ms=duration_ms,
            size=format_size(len(response.content)),
        )
