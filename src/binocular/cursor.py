"""Cyclic selection cursor over the filtered window view."""

from __future__ import annotations


class SelectionCursor:
    """Index into the filtered view, or no selection when the view is empty.

    The cursor never clamps in place: whenever the view is recomputed it is
    reset to the top.
    """

    def __init__(self) -> None:
        self._length = 0
        self._index: int | None = None

    def reset(self, length: int) -> None:
        self._length = max(0, length)
        self._index = 0 if self._length else None

    def next(self) -> None:
        if self._index is None:
            return
        self._index = (self._index + 1) % self._length

    def previous(self) -> None:
        if self._index is None:
            return
        self._index = (self._index - 1 + self._length) % self._length

    def select(self, index: int) -> bool:
        """Force the cursor onto ``index``; out-of-range requests are ignored."""

        if 0 <= index < self._length:
            self._index = index
            return True
        return False

    @property
    def index(self) -> int | None:
        return self._index

    @property
    def is_empty(self) -> bool:
        return self._index is None

    def __repr__(self) -> str:
        if self._index is None:
            return "SelectionCursor(Empty)"
        return f"SelectionCursor(At({self._index}) of {self._length})"
