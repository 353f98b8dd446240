from __future__ import annotations

from typing import Any

import pytest

from binocular.session import SessionController
from binocular.windows import WindowHandle


class RecordingCommands:
    """Collects the commands a session sends to the OS layer."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, WindowHandle | None]] = []

    def focus(self, handle: WindowHandle) -> None:
        self.calls.append(("focus", handle))

    def close(self, handle: WindowHandle) -> None:
        self.calls.append(("close", handle))

    def hide(self) -> None:
        self.calls.append(("hide", None))

    def named(self, name: str) -> list[tuple[str, WindowHandle | None]]:
        return [call for call in self.calls if call[0] == name]


def window(handle: WindowHandle, title: str, **extra: Any) -> dict[str, Any]:
    record: dict[str, Any] = {"handle": handle, "title": title, "process_id": 4242}
    record.update(extra)
    return record


@pytest.fixture()
def commands() -> RecordingCommands:
    return RecordingCommands()


@pytest.fixture()
def controller(commands: RecordingCommands) -> SessionController:
    return SessionController(commands)


@pytest.fixture()
def three_windows() -> list[dict[str, Any]]:
    return [window(1, "Mail"), window(2, "Terminal"), window(3, "Browser")]
