"""Textual front end for the window switcher."""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field

from textual import on
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Vertical
from textual.css.query import NoMatches
from textual.widgets import Footer, Input, Log, OptionList

from ..backends import BackendError, WindowBackend, configure_logging
from ..feed import WindowFeed
from ..keys import Action, KeyBindings
from ..session import SessionController, SessionState
from ..windows import WindowHandle
from .widgets import HiddenBanner, QueryBar, WindowList

LOG = logging.getLogger(__name__)

REOPEN_KEY = "ctrl+o"

_ACTION_LABELS = {
    Action.ADVANCE_SELECTION: "Next",
    Action.RETREAT_SELECTION: "Previous",
    Action.ACTIVATE: "Focus",
    Action.DISMISS: "Dismiss",
    Action.CLOSE_WINDOW: "Close window",
}


@dataclass(slots=True)
class AppConfig:
    backend: WindowBackend
    bindings: KeyBindings = field(default_factory=KeyBindings)
    keep_open: bool = False
    refresh_interval: float = 0.0
    show_log_panel: bool = False


class _TextualLogHandler(logging.Handler):
    """Logging handler that forwards records into the dev log panel."""

    def __init__(self, app: SwitcherApp) -> None:
        super().__init__()
        self._app = app

    def emit(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        try:
            message = self.format(record)
        except Exception:  # pragma: no cover - formatting errors are not ours to raise
            return
        self._app._submit_dev_log_line(message)


class _BackendCommands:
    """Run session commands against the backend in worker threads.

    Each command returns immediately; failures are logged when the worker
    finishes and never reach the session.
    """

    def __init__(self, app: SwitcherApp) -> None:
        self._app = app

    def focus(self, handle: WindowHandle) -> None:
        self._app._run_command("focus", self._app.backend.focus, handle)

    def close(self, handle: WindowHandle) -> None:
        self._app._run_command(
            "close",
            self._app.backend.close,
            handle,
            then=self._app.request_refresh,
        )

    def hide(self) -> None:
        self._app.hide_switcher()


class SwitcherApp(App[None]):
    """Query bar over a live, filtered list of windows."""

    CSS = """
    Screen {
        layout: vertical;
        background: #050301;
    }

    #switcher {
        height: 1fr;
        padding: 0 1;
    }

    #query {
        height: 3;
        border: solid #f28c28;
        padding: 0 1;
        background: #050301;
    }

    #window-list {
        height: 1fr;
        border: solid #2c1c0c;
        background: #080503;
    }

    #window-list > .option-list--option-highlighted {
        background: #3a2610;
    }

    #hidden-banner {
        height: 1fr;
        content-align: center middle;
        color: #d0b089;
    }

    #dev-log {
        height: 8;
        border: solid #2c1c0c;
        background: #050301;
        margin: 0 1 1 1;
        padding: 0 1;
    }
    """

    BINDINGS = [
        Binding(REOPEN_KEY, "reopen", "Reopen"),
        Binding("ctrl+r", "refresh", "Refresh"),
    ]

    def __init__(self, config: AppConfig) -> None:
        super().__init__()
        self._config = config
        self._feed = WindowFeed()
        self._controller = SessionController(
            _BackendCommands(self),
            bindings=config.bindings,
            on_change=self._on_session_state,
        )
        self._log_handler: _TextualLogHandler | None = None
        self._dev_log_widget: Log | None = None
        self._dev_log_buffer: deque[str] = deque(maxlen=2000)

    @property
    def backend(self) -> WindowBackend:
        return self._config.backend

    @property
    def controller(self) -> SessionController:
        return self._controller

    # ------------------------------------------------------------------
    # Textual lifecycle
    # ------------------------------------------------------------------
    def compose(self) -> ComposeResult:
        with Vertical(id="switcher"):
            yield QueryBar()
            yield WindowList()
        banner = HiddenBanner(REOPEN_KEY)
        banner.display = False
        yield banner
        if self._config.show_log_panel:
            log_widget = Log(id="dev-log")
            log_widget.border_title = "Logs"
            yield log_widget
        yield Footer()

    async def on_mount(self) -> None:
        configure_logging()
        if self._config.show_log_panel:
            self._enable_dev_console()
        if self._config.refresh_interval > 0:
            self.set_interval(self._config.refresh_interval, self._periodic_refresh)
        self._begin_session()

    async def on_ready(self) -> None:
        if not self._config.show_log_panel:
            return
        try:
            self._dev_log_widget = self.query_one("#dev-log", Log)
        except NoMatches:
            self._dev_log_widget = None
        else:
            self._flush_dev_log_buffer()

    async def on_unmount(self) -> None:
        self._controller.end()
        if self._log_handler is not None:
            logging.getLogger().removeHandler(self._log_handler)
            self._log_handler = None

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------
    def _begin_session(self) -> None:
        self._set_hidden(False)
        self._controller.start(self._feed)
        self.request_refresh()
        self.query_one(QueryBar).focus()

    def hide_switcher(self) -> None:
        """Dismiss the switcher surface; exits unless running in keep-open mode."""

        if self._config.keep_open:
            self._set_hidden(True)
            return
        self.run_worker(self._exit_when_idle(), group="exit", exclusive=True)

    async def _exit_when_idle(self) -> None:
        pending = [worker for worker in self.workers if worker.group == "commands"]
        if pending:
            await self.workers.wait_for_complete(pending)
        self.exit()

    def _set_hidden(self, hidden: bool) -> None:
        self.query_one("#switcher").display = not hidden
        self.query_one(HiddenBanner).display = hidden

    # ------------------------------------------------------------------
    # Window list refresh
    # ------------------------------------------------------------------
    def request_refresh(self) -> None:
        """Enumerate windows in a worker thread and publish the result."""

        self.run_worker(
            self._load_windows,
            thread=True,
            group="refresh",
            exclusive=True,
            exit_on_error=False,
        )

    def _load_windows(self) -> None:
        try:
            records = self.backend.list_windows()
        except BackendError as exc:
            LOG.warning("Window refresh failed: %s", exc)
            return
        self.call_from_thread(self._feed.publish, records)

    def _periodic_refresh(self) -> None:
        if self._controller.active:
            self.request_refresh()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    def _run_command(
        self,
        name: str,
        command: Callable[[WindowHandle], None],
        handle: WindowHandle,
        *,
        then: Callable[[], None] | None = None,
    ) -> None:
        def _work() -> None:
            try:
                command(handle)
            except BackendError as exc:
                LOG.warning("%s(%s) failed: %s", name, handle, exc)
                return
            if then is not None:
                self.call_from_thread(then)

        self.run_worker(_work, thread=True, group="commands", exit_on_error=False)

    # ------------------------------------------------------------------
    # Actions / input
    # ------------------------------------------------------------------
    def action_dispatch_key(self, key: str) -> None:
        action = self._controller.on_key(key)
        if action is not None:
            LOG.debug("%s -> %s", key, action.value)

    def action_reopen(self) -> None:
        if not self._controller.active:
            self._begin_session()

    def action_refresh(self) -> None:
        if self._controller.active:
            self.request_refresh()

    @on(Input.Changed, "#query")
    def _on_query_changed(self, event: Input.Changed) -> None:
        self._controller.on_query_changed(event.value)

    @on(OptionList.OptionSelected, "#window-list")
    def _on_window_clicked(self, event: OptionList.OptionSelected) -> None:
        self._controller.activate_index(event.option_index)

    def _on_session_state(self, state: SessionState) -> None:
        try:
            window_list = self.query_one(WindowList)
            query_bar = self.query_one(QueryBar)
        except NoMatches:
            return
        window_list.show_state(state)
        if query_bar.value != state.query:
            query_bar.value = state.query

    # ------------------------------------------------------------------
    # Dev log panel
    # ------------------------------------------------------------------
    def _enable_dev_console(self) -> None:
        if self._log_handler is not None:
            return
        logging.getLogger().setLevel(logging.DEBUG)
        handler = _TextualLogHandler(self)
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(
            logging.Formatter("%(asctime)s - %(levelname)s - %(name)s - %(message)s")
        )
        logging.getLogger().addHandler(handler)
        self._log_handler = handler
        self._write_dev_log_line("[dev] Log console capturing logging")

    def _submit_dev_log_line(self, line: str) -> None:
        try:
            self.call_from_thread(self._write_dev_log_line, line)
        except RuntimeError:
            # Already on the app thread (or the loop is not running yet).
            self._write_dev_log_line(line)

    def _write_dev_log_line(self, line: str) -> None:
        if not line:
            return
        widget = self._dev_log_widget
        if widget is None:
            self._dev_log_buffer.append(line)
            return
        widget.write_line(line)

    def _flush_dev_log_buffer(self) -> None:
        widget = self._dev_log_widget
        if widget is None:
            return
        while self._dev_log_buffer:
            widget.write_line(self._dev_log_buffer.popleft())


def create_app(config: AppConfig) -> SwitcherApp:
    """Build a :class:`SwitcherApp` whose key bindings follow ``config.bindings``.

    Session keys are bound with priority so they reach the session even while
    the query bar has focus.
    """

    config.bindings.table()  # rejects keys bound to two actions
    session_bindings: list[Binding] = []
    for action, keys in config.bindings.items():
        for position, key in enumerate(keys):
            session_bindings.append(
                Binding(
                    key,
                    f"dispatch_key({key!r})",
                    _ACTION_LABELS[action],
                    show=position == 0,
                    priority=True,
                )
            )
    app_class = type(
        "ConfiguredSwitcherApp",
        (SwitcherApp,),
        {"BINDINGS": session_bindings, "__module__": __name__},
    )
    return app_class(config)
