"""Switcher session state machine.

The controller owns the window registry, the query and the selection cursor.
Every event (window-list push, query edit, key press, pointer activation) is
applied under one lock as a single "apply, recompute view, reset cursor" step,
so readers only ever see a consistent :class:`SessionState`.

Commands for the OS layer are queued while the lock is held and issued after
it is released. They are fire-and-forget: a failing command is logged and the
session carries on. State listeners run while the lock is still held, so they
observe snapshots in the order events were applied; a listener that raises is
logged and skipped.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from functools import partial
from typing import Any, Protocol, TypeVar

from .cursor import SelectionCursor
from .feed import Subscription, WindowFeed
from .fuzzy import DEFAULT_RANKER, Ranker, filter_windows
from .keys import Action, InputDispatcher, KeyBindings
from .windows import (
    MalformedUpdateError,
    WindowEntry,
    WindowHandle,
    WindowRegistry,
    parse_window_entries,
)

LOG = logging.getLogger(__name__)

T = TypeVar("T")


class WindowCommands(Protocol):
    """Outbound commands understood by the OS layer."""

    def focus(self, handle: WindowHandle) -> None:
        ...

    def close(self, handle: WindowHandle) -> None:
        ...

    def hide(self) -> None:
        ...


@dataclass(frozen=True, slots=True)
class SessionState:
    """Immutable snapshot of a session after an event was applied."""

    query: str
    view: tuple[WindowEntry, ...]
    selected: int | None
    active: bool
    generation: int

    @property
    def selected_entry(self) -> WindowEntry | None:
        if self.selected is None:
            return None
        return self.view[self.selected]


StateListener = Callable[[SessionState], None]


class SessionController:
    """Apply window updates and user input, and issue focus/close/hide commands."""

    def __init__(
        self,
        commands: WindowCommands,
        *,
        ranker: Ranker = DEFAULT_RANKER,
        bindings: KeyBindings | None = None,
        on_change: StateListener | None = None,
    ) -> None:
        self._commands = commands
        self._ranker = ranker
        self._lock = threading.RLock()
        self._registry = WindowRegistry()
        self._query = ""
        self._view: tuple[WindowEntry, ...] = ()
        self._cursor = SelectionCursor()
        self._active = False
        self._subscription: Subscription | None = None
        self._outbox: list[tuple[str, Callable[[], None]]] = []
        self._listeners: list[StateListener] = []
        if on_change is not None:
            self._listeners.append(on_change)
        self._dispatcher = InputDispatcher(
            bindings or KeyBindings(),
            {
                Action.ADVANCE_SELECTION: self._cursor.next,
                Action.RETREAT_SELECTION: self._cursor.previous,
                Action.ACTIVATE: self._activate_selected,
                Action.DISMISS: self._dismiss,
                Action.CLOSE_WINDOW: self._close_selected,
            },
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self, feed: WindowFeed | None = None) -> SessionState:
        """Begin a session: clear the query, reset the cursor, accept input.

        If ``feed`` is given the controller subscribes to it for the lifetime
        of the session; the subscription is released when the session ends.
        """

        def _start() -> None:
            self._release_subscription()
            self._active = True
            self._query = ""
            self._recompute()
            if feed is not None:
                self._subscription = feed.subscribe(self.on_windows_updated)
            LOG.info("Session started with %s windows", len(self._registry))

        return self._apply_state(_start)

    def end(self) -> SessionState:
        """Stop accepting input without issuing any command."""

        return self._apply_state(self._teardown)

    @property
    def active(self) -> bool:
        with self._lock:
            return self._active

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._snapshot()

    def add_listener(self, listener: StateListener) -> Callable[[], None]:
        """Call ``listener`` with the new state after every applied event.

        Returns a callable that removes the listener again.
        """

        with self._lock:
            self._listeners.append(listener)

        def _remove() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _remove

    # ------------------------------------------------------------------
    # Inbound events
    # ------------------------------------------------------------------
    def on_windows_updated(self, records: Any) -> bool:
        """Replace the registry with a freshly pushed window list.

        Malformed payloads are rejected before touching the registry; the
        last good snapshot stays in place. Returns whether the update was
        applied.
        """

        try:
            entries = parse_window_entries(records)
        except MalformedUpdateError as exc:
            LOG.warning("Ignoring malformed windows-updated event: %s", exc)
            return False

        def _replace() -> None:
            self._registry.replace(entries)
            # A new snapshot always clears the search.
            self._query = ""
            self._recompute()

        self._apply(_replace)
        return True

    def on_query_changed(self, text: str) -> SessionState:
        def _change() -> None:
            if not self._active or text == self._query:
                return
            self._query = text
            self._recompute()

        return self._apply_state(_change)

    def on_key(self, key: str) -> Action | None:
        """Route a key press through the dispatcher.

        Returns the action taken, or None if the key is unbound or the
        session is not active.
        """

        def _dispatch() -> Action | None:
            if not self._active:
                return None
            return self._dispatcher.dispatch(key)

        return self._apply(_dispatch)

    # ------------------------------------------------------------------
    # Direct operations (pointer input and tests)
    # ------------------------------------------------------------------
    def move_next(self) -> SessionState:
        return self._apply_state(self._when_active(self._cursor.next))

    def move_previous(self) -> SessionState:
        return self._apply_state(self._when_active(self._cursor.previous))

    def activate_current(self) -> WindowEntry | None:
        """Focus the selected window and end the session.

        Does nothing (and returns None) when there is no selection or the
        session is not active.
        """

        return self._apply(self._activate_selected)

    def activate_index(self, index: int) -> WindowEntry | None:
        """Select ``index`` in the current view, then activate it."""

        def _activate() -> WindowEntry | None:
            if not self._active or not self._cursor.select(index):
                return None
            return self._activate_selected()

        return self._apply(_activate)

    def dismiss(self) -> SessionState:
        return self._apply_state(self._dismiss)

    def close_current(self) -> WindowEntry | None:
        """Ask the OS layer to close the selected window; the session stays open."""

        return self._apply(self._close_selected)

    # ------------------------------------------------------------------
    # Internals (called with the lock held)
    # ------------------------------------------------------------------
    def _recompute(self) -> None:
        self._view = filter_windows(self._registry.current(), self._query, self._ranker)
        self._cursor.reset(len(self._view))

    def _selected(self) -> WindowEntry | None:
        index = self._cursor.index
        if index is None or index >= len(self._view):
            return None
        return self._view[index]

    def _activate_selected(self) -> WindowEntry | None:
        if not self._active:
            return None
        entry = self._selected()
        if entry is None:
            return None
        LOG.info("Activating window %r (%s)", entry.title, entry.handle)
        self._queue("focus", partial(self._commands.focus, entry.handle))
        self._queue("hide", self._commands.hide)
        self._teardown()
        return entry

    def _dismiss(self) -> None:
        if not self._active:
            return
        LOG.info("Session dismissed")
        self._queue("hide", self._commands.hide)
        self._teardown()

    def _close_selected(self) -> WindowEntry | None:
        if not self._active:
            return None
        entry = self._selected()
        if entry is None:
            return None
        LOG.info("Closing window %r (%s)", entry.title, entry.handle)
        self._queue("close", partial(self._commands.close, entry.handle))
        return entry

    def _teardown(self) -> None:
        self._active = False
        self._release_subscription()

    def _release_subscription(self) -> None:
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None

    def _when_active(self, step: Callable[[], None]) -> Callable[[], None]:
        def _guarded() -> None:
            if self._active:
                step()

        return _guarded

    def _queue(self, name: str, command: Callable[[], None]) -> None:
        self._outbox.append((name, command))

    def _snapshot(self) -> SessionState:
        return SessionState(
            query=self._query,
            view=self._view,
            selected=self._cursor.index,
            active=self._active,
            generation=self._registry.generation,
        )

    def _apply(self, mutate: Callable[[], T]) -> T:
        result, _ = self._run(mutate)
        return result

    def _apply_state(self, mutate: Callable[[], object]) -> SessionState:
        _, state = self._run(mutate)
        return state

    def _run(self, mutate: Callable[[], T]) -> tuple[T, SessionState]:
        with self._lock:
            result = mutate()
            outbox, self._outbox = self._outbox, []
            state = self._snapshot()
            # Delivered under the lock so listeners see states in apply order.
            for listener in list(self._listeners):
                self._notify(listener, state)

        for name, command in outbox:
            self._issue(name, command)
        return result, state

    @staticmethod
    def _notify(listener: StateListener, state: SessionState) -> None:
        try:
            listener(state)
        except Exception:
            LOG.warning("State listener %r failed", listener, exc_info=True)

    @staticmethod
    def _issue(name: str, command: Callable[[], None]) -> None:
        try:
            command()
        except Exception:
            LOG.warning("%s command failed", name, exc_info=True)
