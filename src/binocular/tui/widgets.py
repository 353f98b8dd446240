"""UI widgets for the Binocular switcher."""

from __future__ import annotations

from typing import Any

from rich.text import Text
from textual.widgets import Input, OptionList, Static
from textual.widgets.option_list import Option

from ..session import SessionState
from ..windows import WindowEntry


class QueryBar(Input):
    """Single-line search field above the window list."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(placeholder="Search...", id="query", **kwargs)


class WindowList(OptionList, can_focus=False):
    """Filtered windows, best match first, with the selection highlighted.

    The list never takes keyboard focus; navigation keys are handled by the
    session so that typing always goes to the query bar.
    """

    def __init__(self) -> None:
        super().__init__(id="window-list")
        self._rendered: tuple[WindowEntry, ...] | None = None

    def show_state(self, state: SessionState) -> None:
        if state.view != self._rendered:
            self.clear_options()
            self.add_options([_entry_option(entry) for entry in state.view])
            self._rendered = state.view
        self.highlighted = state.selected
        self.border_title = f"{len(state.view)} windows"


class HiddenBanner(Static):
    """Shown in keep-open mode while the switcher is hidden."""

    def __init__(self, reopen_key: str) -> None:
        super().__init__(
            f"Switcher hidden. Press [b]{reopen_key}[/b] to reopen.",
            id="hidden-banner",
        )


def _entry_option(entry: WindowEntry) -> Option:
    return Option(format_entry(entry))


def format_entry(entry: WindowEntry) -> Text:
    """Render one window as ``<icon> <title>  <process>``.

    Terminals cannot draw the icon bitmap, so the process name's initial
    stands in for it.
    """

    label = entry.process_name or ""
    badge = label[:1].upper() if label else "·"
    text = Text.assemble((f"[{badge}] ", "bold #f28c28"), _single_line(entry.title))
    if label:
        text.append(f"  {label}", style="dim")
    return text


def _single_line(value: str) -> str:
    return " ".join(value.split())
