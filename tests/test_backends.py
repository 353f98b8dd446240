from __future__ import annotations

import json
import shutil
import subprocess
from pathlib import Path
from typing import Any

import pytest

from binocular import backends
from binocular.backends import (
    BackendError,
    HyprlandBackend,
    JsonFileBackend,
    NiriBackend,
    WmctrlBackend,
    detect_backend,
    resolve_backend,
)
from binocular.windows import parse_window_entries


class FakeRun:
    """Stand-in for subprocess.run that replays canned stdout per command."""

    def __init__(self, outputs: dict[str, str] | None = None) -> None:
        self.outputs = outputs or {}
        self.calls: list[list[str]] = []

    def __call__(self, args: list[str], **kwargs: Any) -> subprocess.CompletedProcess[str]:
        self.calls.append(list(args))
        stdout = self.outputs.get(" ".join(args), "")
        return subprocess.CompletedProcess(args, 0, stdout=stdout, stderr="")


@pytest.fixture()
def fake_run(monkeypatch: pytest.MonkeyPatch) -> FakeRun:
    fake = FakeRun()
    monkeypatch.setattr(backends.subprocess, "run", fake)
    return fake


WMCTRL_OUTPUT = """\
0x03a00007  0 2345   laptop Mozilla Firefox
0x04200003  1 3456   laptop ~/src : vim notes.md
0x01e00001 -1 1111   laptop xfce4-panel
0x05000004  0 999    laptop Binocular
0x05000009  0 4567   laptop
"""


def test_wmctrl_lists_titled_windows_except_own(
    fake_run: FakeRun,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    fake_run.outputs["wmctrl -lp"] = WMCTRL_OUTPUT
    monkeypatch.setattr(backends, "_process_name", lambda pid: f"proc{pid}")

    records = WmctrlBackend(exclude_pid=999).list_windows()

    assert [record["title"] for record in records] == ["Mozilla Firefox", "~/src : vim notes.md"]
    assert records[0] == {
        "handle": "0x03a00007",
        "title": "Mozilla Firefox",
        "process_id": 2345,
        "process_name": "proc2345",
    }
    assert len(parse_window_entries(records)) == 2


def test_wmctrl_commands(fake_run: FakeRun) -> None:
    backend = WmctrlBackend()

    backend.focus("0x03a00007")
    backend.close("0x03a00007")

    assert fake_run.calls == [
        ["wmctrl", "-ia", "0x03a00007"],
        ["wmctrl", "-ic", "0x03a00007"],
    ]


def test_hyprland_orders_by_focus_history(fake_run: FakeRun) -> None:
    clients = [
        {"address": "0xb", "title": "Older", "pid": 20, "class": "kitty", "focusHistoryID": 2},
        {"address": "0xa", "title": "Newest", "pid": 21, "class": "firefox", "focusHistoryID": 0},
        {"address": "0xc", "title": "Hidden", "pid": 22, "class": "x", "hidden": True},
    ]
    fake_run.outputs["hyprctl clients -j"] = json.dumps(clients)

    records = HyprlandBackend(exclude_pid=1).list_windows()

    assert [record["handle"] for record in records] == ["0xa", "0xb"]
    assert records[0]["process_name"] == "firefox"


def test_hyprland_commands(fake_run: FakeRun) -> None:
    backend = HyprlandBackend()

    backend.focus("0xa")
    backend.close("0xa")

    assert fake_run.calls == [
        ["hyprctl", "dispatch", "focuswindow", "address:0xa"],
        ["hyprctl", "dispatch", "closewindow", "address:0xa"],
    ]


def test_niri_lists_and_focuses_by_id(fake_run: FakeRun) -> None:
    windows = [
        {"id": 9, "title": "Two\nlines", "pid": 30, "app_id": "foot"},
        {"id": 4, "title": "Files", "pid": 31, "app_id": None},
    ]
    fake_run.outputs["niri msg -j windows"] = json.dumps(windows)
    backend = NiriBackend(exclude_pid=1)

    records = backend.list_windows()
    backend.focus(9)

    assert [record["handle"] for record in records] == [4, 9]
    assert records[1]["title"] == "Two lines"
    assert records[0]["process_name"] is None
    assert fake_run.calls[-1] == ["niri", "msg", "action", "focus-window", "--id", "9"]


def test_invalid_json_output_raises(fake_run: FakeRun) -> None:
    fake_run.outputs["hyprctl clients -j"] = "not json"

    with pytest.raises(BackendError, match="invalid JSON"):
        HyprlandBackend().list_windows()


def test_missing_binary_raises_backend_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def missing(args: list[str], **kwargs: Any) -> None:
        raise FileNotFoundError(args[0])

    monkeypatch.setattr(backends.subprocess, "run", missing)

    with pytest.raises(BackendError, match="not found on PATH"):
        WmctrlBackend().focus("0x1")


def test_failed_command_raises_backend_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def failing(args: list[str], **kwargs: Any) -> None:
        raise subprocess.CalledProcessError(1, args, output="", stderr="no such window\n")

    monkeypatch.setattr(backends.subprocess, "run", failing)

    with pytest.raises(BackendError, match="no such window"):
        NiriBackend().close(3)


def test_json_backend_reads_file_and_records_commands(tmp_path: Path) -> None:
    path = tmp_path / "windows.json"
    path.write_text(
        json.dumps({"windows": [{"handle": 1, "title": "Mail", "process_id": 5}]}),
        encoding="utf-8",
    )
    backend = JsonFileBackend(path)

    records = backend.list_windows()
    backend.focus(1)
    backend.close(1)

    assert records == [{"handle": 1, "title": "Mail", "process_id": 5}]
    assert backend.focused == [1]
    assert backend.closed == [1]


def test_json_backend_unreadable_file(tmp_path: Path) -> None:
    path = tmp_path / "broken.json"
    path.write_text("{", encoding="utf-8")

    with pytest.raises(BackendError):
        JsonFileBackend(path).list_windows()


@pytest.mark.parametrize(
    ("environ", "expected"),
    [
        ({"HYPRLAND_INSTANCE_SIGNATURE": "abc", "DISPLAY": ":0"}, "hyprland"),
        ({"NIRI_SOCKET": "/run/niri.sock"}, "niri"),
        ({"DISPLAY": ":0"}, "wmctrl"),
    ],
)
def test_detect_backend(
    monkeypatch: pytest.MonkeyPatch,
    environ: dict[str, str],
    expected: str,
) -> None:
    monkeypatch.setattr(backends.shutil, "which", lambda name: f"/usr/bin/{name}")

    assert detect_backend(environ) == expected


def test_detect_backend_without_desktop_fails(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(backends.shutil, "which", lambda name: None)

    with pytest.raises(BackendError):
        detect_backend({"DISPLAY": ":0"})


def test_resolve_backend_by_name(tmp_path: Path) -> None:
    assert isinstance(resolve_backend("niri"), NiriBackend)
    assert isinstance(resolve_backend("json", windows_file=tmp_path / "w.json"), JsonFileBackend)
    assert isinstance(resolve_backend("auto", environ={"NIRI_SOCKET": "x"}), NiriBackend)


def test_resolve_backend_errors() -> None:
    with pytest.raises(BackendError, match="Unknown backend"):
        resolve_backend("sway")
    with pytest.raises(BackendError, match="windows-file"):
        resolve_backend("json")


@pytest.mark.integration()
@pytest.mark.skipif(shutil.which("wmctrl") is None, reason="wmctrl not installed")
def test_wmctrl_lists_real_windows() -> None:
    records = WmctrlBackend().list_windows()

    parse_window_entries(records)


def test_hyprland_skips_clients_without_address(fake_run: FakeRun) -> None:
    clients = [
        {"title": "Ghost", "pid": 40, "class": "x"},
        {"address": "", "title": "Blank", "pid": 41, "class": "y"},
        {"address": "0xd", "title": "Real", "pid": 42, "class": "foot"},
    ]
    fake_run.outputs["hyprctl clients -j"] = json.dumps(clients)

    records = HyprlandBackend(exclude_pid=1).list_windows()

    assert [record["handle"] for record in records] == ["0xd"]
    assert len(parse_window_entries(records)) == 1
