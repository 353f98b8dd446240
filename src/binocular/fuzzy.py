"""Fuzzy filtering of window titles."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Protocol

from rapidfuzz import fuzz, utils

from .windows import WindowEntry

# A sort key where smaller is better, or None when the title does not match.
RankKey = tuple[float, ...]


class Ranker(Protocol):
    """Pluggable match scoring used by :func:`filter_windows`."""

    def rank(self, query: str, title: str) -> RankKey | None:
        ...


def subsequence_span(query: str, text: str) -> tuple[int, int] | None:
    """Return ``(start, end)`` of the tightest window of ``text`` containing
    ``query`` as a subsequence, or None if it is not one.

    Both arguments are expected to be case-folded by the caller.
    """

    if not query:
        return (0, 0)

    best: tuple[int, int] | None = None
    start = text.find(query[0])
    while start != -1:
        end = _match_forward(query, text, start)
        if end is None:
            break
        # Walk back from the end to pull the start as close as possible.
        tight_start = _match_backward(query, text, end)
        if best is None or (end - tight_start) < (best[1] - best[0]):
            best = (tight_start, end)
        start = text.find(query[0], tight_start + 1)
    return best


def _match_forward(query: str, text: str, start: int) -> int | None:
    pos = start
    for char in query:
        pos = text.find(char, pos)
        if pos == -1:
            return None
        pos += 1
    return pos


def _match_backward(query: str, text: str, end: int) -> int:
    pos = end
    for char in reversed(query):
        pos = text.rfind(char, 0, pos)
    return pos


class SubsequenceRanker:
    """Subsequence gate with rapidfuzz similarity ordering.

    A title matches when the query's characters appear in it in order,
    ignoring case. Matches are ordered by partial-ratio similarity, then by
    the length of the tightest matching span, then by where that span starts.
    """

    def rank(self, query: str, title: str) -> RankKey | None:
        folded_query = query.casefold()
        folded_title = title.casefold()
        span = subsequence_span(folded_query, folded_title)
        if span is None:
            return None
        start, end = span
        similarity = fuzz.partial_ratio(query, title, processor=utils.default_process)
        return (-similarity, float(end - start), float(start))


DEFAULT_RANKER: Ranker = SubsequenceRanker()


def filter_windows(
    entries: Iterable[WindowEntry],
    query: str,
    ranker: Ranker = DEFAULT_RANKER,
) -> tuple[WindowEntry, ...]:
    """Return the entries whose title matches ``query``, best match first.

    An empty query keeps every entry in its original order. Ties keep input
    order, so the result is fully determined by the arguments.
    """

    candidates: Sequence[WindowEntry] = tuple(entries)
    needle = query.strip()
    if not needle:
        return tuple(candidates)

    scored: list[tuple[RankKey, int, WindowEntry]] = []
    for position, entry in enumerate(candidates):
        key = ranker.rank(needle, entry.title)
        if key is not None:
            scored.append((key, position, entry))

    scored.sort(key=lambda item: (item[0], item[1]))
    return tuple(entry for _, _, entry in scored)
