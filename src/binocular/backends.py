"""Window-manager backends: enumerate windows and run focus/close commands.

Each backend shells out to the window manager's own CLI. Nothing here knows
about sessions or filtering; backends only produce ``windows-updated``
records and execute commands by handle.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import subprocess
import sys
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from .windows import WindowHandle

LOG = logging.getLogger(__name__)

BACKEND_NAMES = ("wmctrl", "hyprland", "niri", "json")


class BackendError(RuntimeError):
    """Raised when a window-manager command or enumeration fails."""


class WindowBackend:
    """Base class for window-manager integrations."""

    name = "base"

    def __init__(self, *, exclude_pid: int | None = None) -> None:
        # Never list the switcher's own windows.
        self._exclude_pid = os.getpid() if exclude_pid is None else exclude_pid

    def list_windows(self) -> list[dict[str, Any]]:
        """Return ``windows-updated`` records in window-manager order."""

        records = [
            record
            for record in self._enumerate()
            if record["title"] and record["process_id"] != self._exclude_pid
        ]
        LOG.debug("%s backend listed %s windows", self.name, len(records))
        return records

    def focus(self, handle: WindowHandle) -> None:
        raise NotImplementedError

    def close(self, handle: WindowHandle) -> None:
        raise NotImplementedError

    def _enumerate(self) -> list[dict[str, Any]]:
        raise NotImplementedError


class WmctrlBackend(WindowBackend):
    """X11 window managers via ``wmctrl``."""

    name = "wmctrl"

    def _enumerate(self) -> list[dict[str, Any]]:
        output = _run(["wmctrl", "-lp"])
        records: list[dict[str, Any]] = []
        for line in output.splitlines():
            record = _parse_wmctrl_line(line)
            if record is not None:
                records.append(record)
        return records

    def focus(self, handle: WindowHandle) -> None:
        _run(["wmctrl", "-ia", str(handle)])

    def close(self, handle: WindowHandle) -> None:
        _run(["wmctrl", "-ic", str(handle)])


def _parse_wmctrl_line(line: str) -> dict[str, Any] | None:
    # <id> <desktop> <pid> <client machine> <title...>
    parts = line.split(None, 4)
    if len(parts) < 4:
        return None
    handle, desktop, pid = parts[0], parts[1], parts[2]
    if desktop == "-1":
        # Sticky panels and docks.
        return None
    try:
        process_id = int(pid)
    except ValueError:
        return None
    title = parts[4].strip() if len(parts) == 5 else ""
    return {
        "handle": handle,
        "title": title,
        "process_id": process_id,
        "process_name": _process_name(process_id),
    }


def _process_name(pid: int) -> str | None:
    if pid <= 0:
        return None
    try:
        return Path(f"/proc/{pid}/comm").read_text(encoding="utf-8").strip() or None
    except OSError:
        return None


class HyprlandBackend(WindowBackend):
    """Hyprland via ``hyprctl``."""

    name = "hyprland"

    def _enumerate(self) -> list[dict[str, Any]]:
        clients = _run_json(["hyprctl", "clients", "-j"])
        # Most recently focused first.
        clients.sort(key=lambda client: client.get("focusHistoryID", 999))
        records: list[dict[str, Any]] = []
        for client in clients:
            if not client.get("mapped", True) or client.get("hidden", False):
                continue
            address = client.get("address")
            if not address:
                continue
            window_class = client.get("class") or None
            records.append(
                {
                    "handle": address,
                    "title": client.get("title", ""),
                    "process_id": client.get("pid", -1),
                    "process_name": window_class,
                    "icon": window_class,
                }
            )
        return records

    def focus(self, handle: WindowHandle) -> None:
        _run(["hyprctl", "dispatch", "focuswindow", f"address:{handle}"])

    def close(self, handle: WindowHandle) -> None:
        _run(["hyprctl", "dispatch", "closewindow", f"address:{handle}"])


class NiriBackend(WindowBackend):
    """niri via ``niri msg``."""

    name = "niri"

    def _enumerate(self) -> list[dict[str, Any]]:
        windows = _run_json(["niri", "msg", "-j", "windows"])
        windows.sort(key=lambda window: window.get("id", 0))
        records: list[dict[str, Any]] = []
        for window in windows:
            app_id = window.get("app_id") or None
            records.append(
                {
                    "handle": window.get("id"),
                    "title": (window.get("title") or "").replace("\n", " "),
                    "process_id": window.get("pid") or -1,
                    "process_name": app_id,
                    "icon": app_id,
                }
            )
        return records

    def focus(self, handle: WindowHandle) -> None:
        _run(["niri", "msg", "action", "focus-window", "--id", str(handle)])

    def close(self, handle: WindowHandle) -> None:
        _run(["niri", "msg", "action", "close-window", "--id", str(handle)])


class JsonFileBackend(WindowBackend):
    """Windows read from a JSON file; commands are only logged.

    Useful for demos and for driving the switcher without a window manager.
    The file holds a list of ``windows-updated`` records and is re-read on
    every enumeration.
    """

    name = "json"

    def __init__(self, path: Path, *, exclude_pid: int | None = None) -> None:
        super().__init__(exclude_pid=exclude_pid)
        self._path = path
        self.focused: list[WindowHandle] = []
        self.closed: list[WindowHandle] = []

    def list_windows(self) -> list[dict[str, Any]]:
        # Records are handed over untouched so that malformed files reach the
        # session's boundary validation instead of being repaired here.
        return self._enumerate()

    def _enumerate(self) -> list[dict[str, Any]]:
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise BackendError(f"Could not read windows from {self._path}: {exc}") from exc
        if isinstance(payload, Mapping):
            payload = payload.get("windows", [])
        return payload

    def focus(self, handle: WindowHandle) -> None:
        LOG.info("focus(%s)", handle)
        self.focused.append(handle)

    def close(self, handle: WindowHandle) -> None:
        LOG.info("close(%s)", handle)
        self.closed.append(handle)


def detect_backend(environ: Mapping[str, str] | None = None) -> str:
    """Pick a backend name from the running desktop session."""

    env = os.environ if environ is None else environ
    if env.get("HYPRLAND_INSTANCE_SIGNATURE"):
        return "hyprland"
    if env.get("NIRI_SOCKET"):
        return "niri"
    if env.get("DISPLAY") and shutil.which("wmctrl"):
        return "wmctrl"
    raise BackendError(
        "Could not detect a supported window manager. "
        "Run under Hyprland, niri or an X11 session with wmctrl installed, "
        "or pass --backend json --windows-file PATH."
    )


def resolve_backend(
    name: str = "auto",
    *,
    windows_file: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> WindowBackend:
    """Build the backend for ``name`` once at startup.

    Raises:
        BackendError: if ``name`` is unknown, detection fails, or the json
            backend is requested without a file.
    """

    if name == "auto":
        name = detect_backend(environ)

    if name == "wmctrl":
        backend: WindowBackend = WmctrlBackend()
    elif name == "hyprland":
        backend = HyprlandBackend()
    elif name == "niri":
        backend = NiriBackend()
    elif name == "json":
        if windows_file is None:
            raise BackendError("The json backend needs --windows-file (or $BINOCULAR_WINDOWS_FILE).")
        backend = JsonFileBackend(windows_file)
    else:
        raise BackendError(f"Unknown backend {name!r}; expected one of {', '.join(BACKEND_NAMES)}")

    LOG.info("Using %s backend", backend.name)
    return backend


def configure_logging(level: int = logging.INFO) -> None:
    """Configure basic logging to stderr."""

    if logging.getLogger().handlers:
        # Assume the application configured logging already.
        return

    logging.basicConfig(
        stream=sys.stderr,
        level=level,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )


# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------
def _run(args: list[str]) -> str:
    try:
        result = subprocess.run(
            args,
            text=True,
            check=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
    except FileNotFoundError as exc:
        raise BackendError(
            f"The '{args[0]}' command was not found on PATH. "
            "Install it or choose another --backend."
        ) from exc
    except subprocess.CalledProcessError as exc:
        raise BackendError(
            f"{' '.join(args)} failed with exit code {exc.returncode}: {exc.stderr.strip()}"
        ) from exc
    return result.stdout


def _run_json(args: list[str]) -> list[dict[str, Any]]:
    output = _run(args)
    try:
        payload = json.loads(output)
    except json.JSONDecodeError as exc:
        raise BackendError(f"{' '.join(args)} returned invalid JSON: {exc}") from exc
    if not isinstance(payload, list):
        raise BackendError(f"{' '.join(args)} returned {type(payload).__name__}, expected a list")
    return payload
