"""Ranking strategies.

A scorer receives the per-document tallies built by a search together with the
distinct normalized query tokens and returns the ranked result list. Any
callable with that signature can be passed to the index.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Protocol

from inverted_index.search.models import MatchTally, SearchResult, Source


class Scorer(Protocol):
    """Protocol implemented by ranking functions."""

    def __call__(
        self, items: Mapping[Source, MatchTally], tokens: Sequence[str]
    ) -> list[SearchResult]:  # pragma: no cover - interface definition
        ...


def _occurrence_total(item: MatchTally) -> int:
    return sum(len(positions) for positions in item.occurrences.values())


def score_by_count(items: Mapping[Source, MatchTally], tokens: Sequence[str]) -> list[SearchResult]:
    """Default conjunctive scorer.

    Only documents containing every query token are kept. The score is the
    total number of occurrences across the matched tokens; ties are ordered by
    document name.
    """
    required = len(tokens)
    results = [
        SearchResult(document=source, score=_occurrence_total(item))
        for source, item in items.items()
        if item.count >= required
    ]
    results.sort(key=lambda result: (-result.score, result.document.name))
    return results


def score_by_coverage(items: Mapping[Source, MatchTally], tokens: Sequence[str]) -> list[SearchResult]:
    """Disjunctive scorer that also returns partial matches.

    Documents are ranked by how many distinct query tokens they contain, then
    by occurrence total. The reported score is the occurrence total.
    """
    ranked = sorted(
        items.items(),
        key=lambda entry: (-entry[1].count, -_occurrence_total(entry[1]), entry[0].name),
    )
    return [SearchResult(document=source, score=_occurrence_total(item)) for source, item in ranked]
