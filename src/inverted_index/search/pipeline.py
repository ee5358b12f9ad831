"""Serialized ingestion into a storage engine.

Any number of producer threads call :meth:`IngestionPipeline.submit`; a single
consumer thread drains the bounded queue and calls ``engine.add`` once per
item. The engine therefore sees a total order of writes and never two writes
at once. Items from one producer keep their relative order; items from
different producers interleave in arrival order.
"""

from __future__ import annotations

import logging
import queue
import threading

from inverted_index.observability.metrics import INGEST_ERRORS, OCCURRENCES_INGESTED, PIPELINE_DEPTH
from inverted_index.search.models import Occurrence
from inverted_index.search.storage import StorageEngine


logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 10000

_SENTINEL = object()


class PipelineClosedError(RuntimeError):
    """Raised when submitting to a pipeline that has been closed."""


class IngestionPipeline:
    """Bounded multi-producer, single-consumer queue feeding one engine."""

    def __init__(self, engine: StorageEngine, *, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.engine = engine
        self.capacity = capacity
        self._queue: queue.Queue[object] = queue.Queue(maxsize=capacity)

        self._state = threading.Condition()
        self._closed = False
        self._in_flight = 0

        self._consumer = threading.Thread(target=self._consume, name="ingestion-consumer", daemon=True)
        self._consumer.start()

    @property
    def closed(self) -> bool:
        with self._state:
            return self._closed

    def submit(self, occurrence: Occurrence) -> None:
        """Enqueue one occurrence, blocking while the queue is full."""
        with self._state:
            if self._closed:
                raise PipelineClosedError("pipeline closed")
            self._in_flight += 1
        try:
            self._queue.put(occurrence)
        finally:
            with self._state:
                self._in_flight -= 1
                if self._in_flight == 0:
                    self._state.notify_all()

    def join(self) -> None:
        """Block until every submitted occurrence has been handed to the engine."""
        self._queue.join()

    def close(self) -> None:
        """Stop accepting submissions, drain the queue and stop the consumer."""
        with self._state:
            if self._closed:
                return
            self._closed = True
            # Let blocked producers finish so nothing lands behind the sentinel
            while self._in_flight:
                self._state.wait()
        self._queue.put(_SENTINEL)
        self._consumer.join()
        logger.debug("Ingestion pipeline closed")

    def _consume(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _SENTINEL:
                    return
                self._write(item)  # type: ignore[arg-type]
            finally:
                self._queue.task_done()
                PIPELINE_DEPTH.set(self._queue.qsize())

    def _write(self, occurrence: Occurrence) -> None:
        try:
            self.engine.add(occurrence.token, occurrence.position, occurrence.source)
        except Exception:
            logger.exception(
                "Failed to store token %r at %d for %s",
                occurrence.token,
                occurrence.position,
                occurrence.source.name,
            )
            INGEST_ERRORS.labels(engine=self.engine.name).inc()
            return
        OCCURRENCES_INGESTED.labels(engine=self.engine.name).inc()
