from __future__ import annotations

import pytest

from binocular.fuzzy import SubsequenceRanker, filter_windows, subsequence_span
from binocular.windows import WindowEntry


def entries(*titles: str) -> tuple[WindowEntry, ...]:
    return tuple(WindowEntry(handle=i, title=t, process_id=1) for i, t in enumerate(titles))


def titles(view: tuple[WindowEntry, ...]) -> list[str]:
    return [entry.title for entry in view]


@pytest.mark.parametrize("query", ["", "   "])
def test_empty_query_returns_everything_in_order(query: str) -> None:
    windows = entries("Mail", "Terminal", "Browser")

    assert filter_windows(windows, query) == windows


def test_subsequence_match_excludes_non_matching_titles() -> None:
    view = filter_windows(entries("Mail", "Terminal", "Browser"), "er")

    assert titles(view) == ["Terminal", "Browser"]


def test_matching_ignores_case() -> None:
    view = filter_windows(entries("README.md - Editor", "mail"), "MAIL")

    assert titles(view) == ["mail"]


def test_scattered_characters_still_match() -> None:
    view = filter_windows(entries("Firefox", "Visual Studio Code"), "vsc")

    assert titles(view) == ["Visual Studio Code"]


def test_tight_cluster_ranks_above_scattered_match() -> None:
    view = filter_windows(entries("a_b_c_d_e notes", "abc notes"), "abc")

    assert titles(view) == ["abc notes", "a_b_c_d_e notes"]


def test_ties_keep_input_order() -> None:
    view = filter_windows(entries("term one", "term two", "term three"), "term")

    assert titles(view) == ["term one", "term two", "term three"]


def test_filter_is_deterministic() -> None:
    windows = entries("Slack", "Spotify", "Settings", "Steam", "Sublime Text")

    assert filter_windows(windows, "st") == filter_windows(windows, "st")


def test_custom_ranker_is_used() -> None:
    class Reverse:
        def rank(self, query: str, title: str) -> tuple[float, ...] | None:
            return (-float(len(title)),) if query in title else None

    view = filter_windows(entries("ab", "abcd", "abc", "xyz"), "ab", ranker=Reverse())

    assert titles(view) == ["abcd", "abc", "ab"]


@pytest.mark.parametrize(
    ("query", "text", "expected"),
    [
        ("er", "terminal", (1, 3)),
        ("abc", "a_b_c abc", (6, 9)),
        ("xyz", "terminal", None),
        ("", "anything", (0, 0)),
    ],
)
def test_subsequence_span(query: str, text: str, expected: tuple[int, int] | None) -> None:
    assert subsequence_span(query, text) == expected


def test_ranker_returns_none_for_non_matches() -> None:
    ranker = SubsequenceRanker()

    assert ranker.rank("zz", "Terminal") is None
    assert ranker.rank("trm", "Terminal") is not None
