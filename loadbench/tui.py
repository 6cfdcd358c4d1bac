from collections.abc import Awaitable, Callable
from typing import Any

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.message import Message
from textual.widgets import Static

from loadbench.dashboard import DashboardRenderer
from loadbench.engine.controller import ControllerEvent, ControllerMessage, DashboardController
from loadbench.models import DashboardStatus

REFRESH_INTERVAL = 0.25


class DashboardChanged(Message):
    """Message posted whenever the controller publishes an event."""

    def __init__(self, event: ControllerEvent) -> None:
        self.event = event
        super().__init__()


class DashboardView(Static):
    pass


class LoadTestApp(App):
    """Interactive load-test dashboard.

    Runs ``driver`` (the dispatch loop) as a worker on the app's event loop
    and exits when it returns.
    """

    CSS = """
    Screen {
        layout: vertical;
    }
    #dashboard {
        border: round $primary;
        padding: 0 1;
        height: auto;
    }
    """

    BINDINGS = [
        Binding("space", "toggle_pause", "Pause/Resume"),
        Binding("plus,equals_sign", "increase", "Concurrency +"),
        Binding("minus,underscore", "decrease", "Concurrency -"),
        Binding("r", "reset_or_repeat", "Reset/Repeat"),
        Binding("q", "stop", "Quit"),
        Binding("ctrl+c", "stop", "Quit", show=False, priority=True),
    ]

    def __init__(
        self,
        controller: DashboardController,
        driver: Callable[[], Awaitable[Any]],
        renderer: DashboardRenderer | None = None,
    ):
        super().__init__()
        self.controller = controller
        self.renderer = renderer or DashboardRenderer()
        self._run_load_test = driver
        self._unsubscribe: Callable[[], None] | None = None
        self._dirty = True

    def compose(self) -> ComposeResult:
        yield DashboardView(id="dashboard")

    def on_mount(self) -> None:
        self._unsubscribe = self.controller.subscribe(self._on_controller_message)
        self.controller.start()
        self.set_interval(REFRESH_INTERVAL, self._refresh_dashboard)
        self.run_worker(self._drive(), name="load-test", exclusive=True)
        self._redraw()

    def on_unmount(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
        self.controller.shutdown()

    async def _drive(self) -> None:
        try:
            await self._run_load_test()
        finally:
            self.exit()

    def _on_controller_message(self, message: ControllerMessage) -> None:
        self.post_message(DashboardChanged(message.event))

    def on_dashboard_changed(self, message: DashboardChanged) -> None:
        self._dirty = True
        if message.event is not ControllerEvent.UPDATE:
            self._redraw()

    def _refresh_dashboard(self) -> None:
        # Elapsed time and ETA move even when no request settles
        if self._dirty or self.controller.status is DashboardStatus.RUNNING:
            self._redraw()

    def _redraw(self) -> None:
        self._dirty = False
        view = self.query_one(DashboardView)
        view.update(self.renderer.render(self.controller.snapshot()))

    def action_toggle_pause(self) -> None:
        self.controller.toggle_pause()

    def action_increase(self) -> None:
        self.controller.step_concurrency(1)

    def action_decrease(self) -> None:
        self.controller.step_concurrency(-1)

    def action_reset_or_repeat(self) -> None:
        self.controller.reset_or_repeat()

    def action_stop(self) -> None:
        self.controller.stop()
