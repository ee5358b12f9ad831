"""Search data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Source:
    """A document identity keyed by its unique name."""

    name: str


@dataclass(frozen=True)
class Occurrence:
    """A single (token, source, position) fact flowing through ingestion."""

    token: str
    position: int
    source: Source


@dataclass
class MatchTally:
    """Per-document accumulator built while answering a query.

    ``count`` is the number of distinct query tokens found in the document and
    ``occurrences`` maps each of those tokens to its positions.
    """

    count: int = 0
    occurrences: dict[str, list[int]] = field(default_factory=dict)


@dataclass(frozen=True)
class SearchResult:
    """A ranked document returned by a scorer."""

    document: Source
    score: int

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {"document": self.document.name, "score": self.score}
