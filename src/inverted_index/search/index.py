"""Index facade tying normalization, ingestion, storage and scoring together.

Writes go ``add_source`` → normalizer → ingestion pipeline → ``engine.add``.
Reads go ``search`` → normalizer → ``engine.get`` → per-document tally →
scorer. ``add_source`` may be called from many threads at once; each call is
one producer.
"""

from __future__ import annotations

from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
import logging
from pathlib import Path

from inverted_index.observability.metrics import SEARCH_COUNT, SEARCH_LATENCY, track_latency
from inverted_index.observability.tracing import create_span
from inverted_index.search.analyzers import Normalizer
from inverted_index.search.models import MatchTally, Occurrence, SearchResult, Source
from inverted_index.search.pipeline import DEFAULT_CAPACITY, IngestionPipeline
from inverted_index.search.scoring import Scorer, score_by_count
from inverted_index.search.storage import StorageEngine


logger = logging.getLogger(__name__)


class InvertedIndex:
    """Public entry point used by the CLI and the web front end."""

    def __init__(
        self,
        engine: StorageEngine,
        *,
        capacity: int = DEFAULT_CAPACITY,
        scorer: Scorer | None = None,
        normalizer: Normalizer | None = None,
    ) -> None:
        self.engine = engine
        self.scorer: Scorer = scorer or score_by_count
        self.normalizer = normalizer or Normalizer()
        self._pipeline = IngestionPipeline(engine, capacity=capacity)

    def __enter__(self) -> InvertedIndex:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def add_source(self, name: str, text: Iterable[str] | str) -> int:
        """Normalize ``text`` and queue its tokens for ``name``.

        Returns the number of occurrences submitted. Raises
        ``PipelineClosedError`` once the index is closed.
        """
        source = Source(name=name)
        submitted = 0
        for token, position in self.normalizer.tokenize(text):
            self._pipeline.submit(Occurrence(token=token, position=position, source=source))
            submitted += 1
        logger.debug("Queued %d occurrences for %s", submitted, name)
        return submitted

    def search(self, query: str) -> list[SearchResult]:
        """Return documents matching ``query`` ranked by the configured scorer."""
        with track_latency(SEARCH_LATENCY), create_span("index.search", attributes={"query": query}) as span:
            tokens = self.normalizer.query_tokens(query)
            if not tokens:
                SEARCH_COUNT.labels(status="ok").inc()
                return []

            try:
                postings = self.engine.get(tokens)
            except Exception:
                SEARCH_COUNT.labels(status="error").inc()
                raise

            items: dict[Source, MatchTally] = {}
            for token, occurrences in postings.items():
                for source, positions in occurrences.items():
                    item = items.setdefault(source, MatchTally())
                    item.count += 1
                    item.occurrences[token] = positions

            results = self.scorer(items, tokens)
            span.set_attribute("results.count", len(results))
            SEARCH_COUNT.labels(status="ok").inc()
            return results

    def join(self) -> None:
        """Wait until every queued occurrence has reached the engine."""
        self._pipeline.join()

    def close(self) -> None:
        """Drain the pipeline, then close the engine."""
        self._pipeline.close()
        self.engine.close()


@dataclass(frozen=True)
class BuildReport:
    """Outcome of indexing a directory."""

    documents_indexed: int
    errors: tuple[str, ...]


def build_from_directory(index: InvertedIndex, directory: Path, *, max_workers: int = 8) -> BuildReport:
    """Index every regular file in ``directory`` with one producer per file.

    Unreadable files are logged and skipped. Returns once all occurrences
    have been handed to the engine.
    """
    files = sorted(path for path in directory.iterdir() if path.is_file())
    errors: list[str] = []
    indexed = 0

    def index_file(path: Path) -> None:
        with path.open("r", encoding="utf-8") as fh:
            index.add_source(str(path), fh)

    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="producer") as executor:
        futures = {executor.submit(index_file, path): path for path in files}
        for future, path in futures.items():
            try:
                future.result()
            except (OSError, UnicodeDecodeError) as exc:
                logger.warning("Cannot read file %s: %s", path, exc)
                errors.append(f"{path}: {exc}")
            else:
                indexed += 1

    index.join()
    logger.info("Indexed %d documents from %s (%d skipped)", indexed, directory, len(errors))
    return BuildReport(documents_indexed=indexed, errors=tuple(errors))
