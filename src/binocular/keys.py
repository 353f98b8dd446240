"""Key bindings and the dispatcher that turns key presses into session actions."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from enum import Enum

LOG = logging.getLogger(__name__)


class Action(str, Enum):
    """Session actions a key press can trigger."""

    ADVANCE_SELECTION = "advance-selection"
    RETREAT_SELECTION = "retreat-selection"
    ACTIVATE = "activate"
    DISMISS = "dismiss"
    CLOSE_WINDOW = "close-window"


@dataclass(frozen=True, slots=True)
class KeyBindings:
    """Binding table from actions to key names.

    Key names follow Textual's spelling (``ctrl+k``, ``shift+tab``, ``up``).
    The list is drawn top-down under the query bar, so moving down advances.
    """

    advance_selection: tuple[str, ...] = ("down", "tab", "ctrl+j")
    retreat_selection: tuple[str, ...] = ("up", "shift+tab", "ctrl+k")
    activate: tuple[str, ...] = ("enter",)
    dismiss: tuple[str, ...] = ("escape",)
    close_window: tuple[str, ...] = ("ctrl+w",)

    def table(self) -> dict[str, Action]:
        """Return a key -> action lookup.

        Raises:
            ValueError: if a key is bound to more than one action.
        """

        lookup: dict[str, Action] = {}
        for action, keys in self.items():
            for key in keys:
                bound = lookup.get(key)
                if bound is not None and bound is not action:
                    raise ValueError(
                        f"Key {key!r} is bound to both {bound.value!r} and {action.value!r}"
                    )
                lookup[key] = action
        return lookup

    def keys(self) -> list[str]:
        return list(self.table())

    def items(self) -> Iterable[tuple[Action, tuple[str, ...]]]:
        yield Action.ADVANCE_SELECTION, self.advance_selection
        yield Action.RETREAT_SELECTION, self.retreat_selection
        yield Action.ACTIVATE, self.activate
        yield Action.DISMISS, self.dismiss
        yield Action.CLOSE_WINDOW, self.close_window


class InputDispatcher:
    """Route key presses to the handler registered for their action."""

    def __init__(
        self,
        bindings: KeyBindings,
        handlers: Mapping[Action, Callable[[], object]],
    ) -> None:
        self._table = bindings.table()
        self._handlers = dict(handlers)

    def action_for(self, key: str) -> Action | None:
        return self._table.get(key)

    def dispatch(self, key: str) -> Action | None:
        """Run the handler bound to ``key``.

        Returns the action that was handled, or None for keys with no
        binding (or no handler), which are ignored.
        """

        action = self._table.get(key)
        if action is None:
            return None
        handler = self._handlers.get(action)
        if handler is None:
            LOG.debug("No handler registered for %s", action.value)
            return None
        handler()
        return action
