"""In-process storage engine with whole-index snapshots.

``MemoryEngine`` keeps the token → document → positions map and the document
registry behind a single reader/writer lock. Snapshots capture both structures
under the read lock so a concurrent writer cannot produce a torn file.

Two snapshot formats are supported:

* ``json`` - orjson-encoded payload, portable and human readable.
* ``binary`` - pickled payload, faster to load. Only decode binary snapshots
  you produced yourself; unpickling untrusted data is unsafe.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
import logging
from pathlib import Path
import pickle
from typing import IO, Any, Literal

import orjson

from inverted_index.search.locks import ReadWriteLock
from inverted_index.search.models import Source
from inverted_index.search.storage import Postings, StorageEngine, StorageError


logger = logging.getLogger(__name__)

SnapshotFormat = Literal["json", "binary"]
SNAPSHOT_FORMATS: tuple[str, ...] = ("json", "binary")


class MemoryEngine(StorageEngine):
    """Concurrent in-process postings map."""

    name = "memory"

    def __init__(self) -> None:
        self._index: dict[str, dict[str, list[int]]] = {}
        self._sources: dict[str, Source] = {}
        self._lock = ReadWriteLock()

    def add(self, token: str, position: int, source: Source) -> None:
        with self._lock.write_locked():
            self._sources.setdefault(source.name, source)
            self._index.setdefault(token, {}).setdefault(source.name, []).append(position)

    def get(self, tokens: Iterable[str]) -> dict[str, Postings]:
        results: dict[str, Postings] = {}
        with self._lock.read_locked():
            for token in set(tokens):
                occurrences = self._index.get(token)
                if occurrences is None:
                    continue
                results[token] = {self._sources[name]: list(positions) for name, positions in occurrences.items()}
        return results

    def close(self) -> None:
        logger.debug("Memory engine closed with %d tokens", len(self._index))

    @property
    def sources(self) -> list[Source]:
        """Registered documents in first-seen order."""
        with self._lock.read_locked():
            return list(self._sources.values())

    def snapshot(self) -> dict[str, Any]:
        """Return a deep copy of the engine state as a plain payload."""
        with self._lock.read_locked():
            return self._payload()

    def _payload(self) -> dict[str, Any]:
        return {
            "index": {
                token: {name: list(positions) for name, positions in occurrences.items()}
                for token, occurrences in self._index.items()
            },
            "sources": list(self._sources),
        }

    def encode(self, fh: IO[bytes], fmt: SnapshotFormat = "json") -> None:
        """Write an atomic snapshot of the engine to a binary file handle."""
        _check_format(fmt)
        with self._lock.read_locked():
            payload = self._payload()
            if fmt == "json":
                fh.write(orjson.dumps(payload))
            else:
                pickle.dump(payload, fh, protocol=pickle.HIGHEST_PROTOCOL)

    @classmethod
    def decode(cls, fh: IO[bytes], fmt: SnapshotFormat = "json") -> MemoryEngine:
        """Rebuild a fresh engine from a snapshot written by :meth:`encode`."""
        _check_format(fmt)
        try:
            if fmt == "json":
                payload = orjson.loads(fh.read())
            else:
                payload = pickle.load(fh)  # noqa: S301 - snapshots are produced by this engine
        except (ValueError, pickle.UnpicklingError, EOFError) as exc:
            raise StorageError(f"Failed to decode {fmt} snapshot: {exc}") from exc
        return cls.from_payload(payload)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> MemoryEngine:
        if not isinstance(payload, Mapping) or "index" not in payload:
            raise StorageError("Snapshot payload is missing the 'index' section")
        index = payload["index"]
        if not isinstance(index, Mapping):
            raise StorageError("Snapshot 'index' section must map tokens to postings")

        engine = cls()
        try:
            for name in payload.get("sources", []):
                engine._sources.setdefault(str(name), Source(name=str(name)))
            for token, occurrences in index.items():
                if not isinstance(occurrences, Mapping):
                    raise StorageError(f"Postings for token {token!r} must map documents to positions")
                postings = engine._index.setdefault(str(token), {})
                for name, positions in occurrences.items():
                    name = str(name)
                    # Older snapshots may omit documents from the registry
                    engine._sources.setdefault(name, Source(name=name))
                    postings[name] = [int(position) for position in positions]
        except (TypeError, ValueError) as exc:
            raise StorageError(f"Malformed snapshot payload: {exc}") from exc
        return engine

    def save(self, path: Path, fmt: SnapshotFormat = "json") -> None:
        """Encode the engine to ``path``."""
        with path.open("wb") as fh:
            self.encode(fh, fmt)
        logger.info("Wrote %s snapshot to %s", fmt, path)

    @classmethod
    def load(cls, path: Path, fmt: SnapshotFormat = "json") -> MemoryEngine:
        """Decode an engine from ``path``."""
        with path.open("rb") as fh:
            engine = cls.decode(fh, fmt)
        logger.info("Loaded %s snapshot from %s (%d documents)", fmt, path, len(engine._sources))
        return engine


def _check_format(fmt: str) -> None:
    if fmt not in SNAPSHOT_FORMATS:
        raise ValueError(f"Unknown snapshot format '{fmt}'. Available: {list(SNAPSHOT_FORMATS)}")
