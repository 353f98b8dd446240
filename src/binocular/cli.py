"""Command-line entry point for launching the Binocular switcher."""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

from . import __version__
from .backends import BACKEND_NAMES, BackendError, resolve_backend
from .tui.app import AppConfig, create_app


def build_parser() -> argparse.ArgumentParser:
    """Create the CLI parser for launching the switcher."""

    def _default_windows_file() -> Path | None:
        env_value = os.environ.get("BINOCULAR_WINDOWS_FILE")
        return Path(env_value) if env_value else None

    parser = argparse.ArgumentParser(
        prog="binocular",
        description="Fuzzy-search open windows and switch to one",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"binocular {__version__}",
    )

    parser.add_argument(
        "command",
        nargs="?",
        default="tui",
        choices=("tui",),
        help="Optional command selector (only 'tui' is available).",
    )
    parser.add_argument(
        "--backend",
        default=os.environ.get("BINOCULAR_BACKEND", "auto"),
        choices=("auto", *BACKEND_NAMES),
        help="Window manager integration (default: auto-detect or $BINOCULAR_BACKEND)",
    )
    parser.add_argument(
        "--windows-file",
        type=Path,
        default=_default_windows_file(),
        help="JSON window list for the json backend (default: $BINOCULAR_WINDOWS_FILE)",
    )
    parser.add_argument(
        "--keep-open",
        action="store_true",
        help="Hide the list instead of exiting after a window is focused or dismissed",
    )
    parser.add_argument(
        "--refresh-interval",
        type=float,
        default=0.0,
        metavar="SECONDS",
        help="Re-read the window list every SECONDS while open (default: 0, off)",
    )
    parser.add_argument(
        "--dev-log-panel",
        action="store_true",
        help="Show the live developer log panel inside the TUI",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Parse CLI arguments and run the switcher."""

    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command != "tui":  # pragma: no cover - enforced by argparse choices
        parser.error(f"Unsupported command: {args.command}")
    if args.refresh_interval < 0:
        parser.error("--refresh-interval must not be negative")

    try:
        backend = resolve_backend(args.backend, windows_file=args.windows_file)
    except BackendError as exc:
        print(f"binocular: {exc}", file=sys.stderr)
        return 2

    config = AppConfig(
        backend=backend,
        keep_open=args.keep_open,
        refresh_interval=args.refresh_interval,
        show_log_panel=args.dev_log_panel,
    )
    app = create_app(config)
    app.run()
    return 0


def run(argv: list[str] | None = None) -> None:
    """Execute the CLI and exit the current process."""

    sys.exit(main(argv))


if __name__ == "__main__":  # pragma: no cover
    run()
