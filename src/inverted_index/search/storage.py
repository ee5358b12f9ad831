"""Storage engine contract for postings.

An engine owns the queryable representation of the index. Writes arrive one at
a time from the ingestion pipeline's single consumer, so implementations only
need to protect readers (searches) from concurrent writes, never writers from
each other.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable

from inverted_index.search.models import Source


Postings = dict[Source, list[int]]
"""Positions of one token, keyed by the document that contains them."""


class StorageError(RuntimeError):
    """Raised when a storage backend fails to record or return postings."""


class StorageEngine(ABC):
    """Polymorphic backend over the capability set {add, get, close}."""

    name: str = "engine"

    @abstractmethod
    def add(self, token: str, position: int, source: Source) -> None:
        """Record one occurrence of ``token`` at ``position`` in ``source``."""

    @abstractmethod
    def get(self, tokens: Iterable[str]) -> dict[str, Postings]:
        """Return the current postings of every requested token present in the store.

        Tokens that were never recorded are omitted from the mapping.
        """

    @abstractmethod
    def close(self) -> None:
        """Release held resources. Call exactly once."""
