"""Window records pushed by the OS layer and the registry that holds them.

Entries arrive as raw mappings on every ``windows-updated`` push. They are
validated here, at the boundary, so that the registry only ever holds a
complete, well-formed snapshot.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

LOG = logging.getLogger(__name__)

# X11 ids, Hyprland addresses and niri ids all look different; the engine only
# ever compares handles for equality.
WindowHandle = int | str


class MalformedUpdateError(ValueError):
    """Raised when a windows-updated payload cannot be turned into entries."""


@dataclass(frozen=True, slots=True)
class WindowEntry:
    """One OS-level window known to the switcher."""

    handle: WindowHandle
    title: str
    process_id: int
    process_name: str | None = None
    # Opaque icon blob (encoded image or app id); never interpreted here.
    icon: bytes | str | None = None


def parse_window_entries(records: Any) -> tuple[WindowEntry, ...]:
    """Validate a raw ``windows-updated`` payload.

    Args:
        records: Ordered sequence of mappings with ``handle`` (or ``hwnd``),
            ``title`` and ``process_id`` keys, plus optional ``process_name``
            and ``icon`` (or ``icon_base64``). Items that are already
            :class:`WindowEntry` instances are accepted as-is.

    Returns:
        The entries in enumeration order.

    Raises:
        MalformedUpdateError: if the payload is not a sequence, a record is
            missing a required field or has the wrong type, or two records
            share a handle. Nothing is returned for a partially valid payload.
    """

    if isinstance(records, (str, bytes)) or not isinstance(records, Sequence):
        raise MalformedUpdateError(
            f"windows-updated payload must be a sequence, got {type(records).__name__}"
        )

    entries = tuple(_parse_record(position, record) for position, record in enumerate(records))
    _ensure_unique_handles(entries)
    return entries


def _parse_record(position: int, record: Any) -> WindowEntry:
    if isinstance(record, WindowEntry):
        return record
    if not isinstance(record, Mapping):
        raise MalformedUpdateError(f"record {position} is not a mapping: {record!r}")

    handle = record.get("handle", record.get("hwnd"))
    if handle is None:
        raise MalformedUpdateError(f"record {position} has no handle")
    if isinstance(handle, bool) or not isinstance(handle, (int, str)):
        raise MalformedUpdateError(f"record {position} has an invalid handle: {handle!r}")

    title = record.get("title")
    if not isinstance(title, str):
        raise MalformedUpdateError(f"record {position} has no title")

    process_id = record.get("process_id")
    if isinstance(process_id, bool) or not isinstance(process_id, int):
        raise MalformedUpdateError(f"record {position} has no process_id")

    process_name = record.get("process_name")
    if process_name is not None and not isinstance(process_name, str):
        raise MalformedUpdateError(f"record {position} has an invalid process_name")

    icon = record.get("icon", record.get("icon_base64"))
    if icon is not None and not isinstance(icon, (bytes, str)):
        raise MalformedUpdateError(f"record {position} has an invalid icon")

    return WindowEntry(
        handle=handle,
        title=title,
        process_id=process_id,
        process_name=process_name,
        icon=icon,
    )


def _ensure_unique_handles(entries: Iterable[WindowEntry]) -> None:
    seen: set[WindowHandle] = set()
    for entry in entries:
        if entry.handle in seen:
            raise MalformedUpdateError(f"duplicate window handle {entry.handle!r}")
        seen.add(entry.handle)


class WindowRegistry:
    """Authoritative snapshot of known windows, replaced wholesale on update."""

    def __init__(self) -> None:
        self._entries: tuple[WindowEntry, ...] = ()
        self._generation = 0

    def replace(self, entries: Iterable[WindowEntry]) -> None:
        entries = tuple(entries)
        _ensure_unique_handles(entries)
        self._entries = entries
        self._generation += 1
        LOG.debug(
            "Registry generation %s holds %s windows",
            self._generation,
            len(self._entries),
        )

    def current(self) -> tuple[WindowEntry, ...]:
        return self._entries

    @property
    def generation(self) -> int:
        """Number of snapshots applied so far."""

        return self._generation

    def __len__(self) -> int:
        return len(self._entries)
