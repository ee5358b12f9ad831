"""SQLite-based storage engine with cached identities and batched writes.

Behavior worth knowing before using this engine:

- Token and document names resolve to row ids through in-memory caches.
  A miss is resolved under the cache's write lock (select, then insert), so
  each distinct value is created at most once per engine instance. An
  ``IntegrityError`` from a concurrent writer in another process is treated
  as "already created" and re-selected.
- ``add`` never writes occurrences directly. They are buffered and a
  background thread bulk-inserts the buffer every ``flush_interval`` seconds.
  A failed flush drops that batch and logs the error.
- ``get`` always queries the database, so occurrences still sitting in the
  buffer are not visible until the next flush. Call :meth:`flush` to close
  that read-your-own-writes gap.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from contextlib import contextmanager
import logging
from pathlib import Path
import sqlite3
import threading

from inverted_index.observability.metrics import DROPPED_OCCURRENCES, FLUSH_BATCHES, FLUSHED_OCCURRENCES
from inverted_index.search.locks import ReadWriteLock
from inverted_index.search.models import Source
from inverted_index.search.sqlite_pragmas import apply_engine_pragmas
from inverted_index.search.sqlite_schema import create_schema
from inverted_index.search.storage import Postings, StorageEngine, StorageError


logger = logging.getLogger(__name__)

DEFAULT_FLUSH_INTERVAL_SECONDS = 10.0

_INSERT_OCCURRENCE = "INSERT INTO occurrences (token_id, document_id, position) VALUES (?, ?, ?)"

_SELECT_POSTINGS = """
    SELECT t.token, d.name, o.position FROM occurrences o
        JOIN tokens t ON o.token_id = t.id
        JOIN documents d ON o.document_id = d.id
        WHERE t.token IN ({placeholders})
        ORDER BY o.id
"""


class SQLiteConnectionPool:
    """Thread-safe connection pool with thread-local connections."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._local = threading.local()
        self._connections: list[sqlite3.Connection] = []
        self._lock = threading.Lock()

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """Get a thread-local connection."""
        conn = getattr(self._local, "connection", None)
        if conn is None:
            conn = self._create_connection()
            self._local.connection = conn
            with self._lock:
                self._connections.append(conn)
        yield conn

    def _create_connection(self) -> sqlite3.Connection:
        # Autocommit; bulk flushes open explicit transactions
        conn = sqlite3.connect(self.db_path, check_same_thread=False, isolation_level=None, timeout=30.0)
        apply_engine_pragmas(conn)
        return conn

    def close_all(self) -> None:
        """Close every connection handed out by the pool."""
        with self._lock:
            connections, self._connections = self._connections, []
        for conn in connections:
            try:
                conn.close()
            except sqlite3.Error as exc:
                logger.warning("Failed to close SQLite connection for %s: %s", self.db_path, exc)


class SqliteEngine(StorageEngine):
    """Relational storage engine over a SQLite database file."""

    name = "sqlite"

    def __init__(
        self,
        db_path: str | Path,
        *,
        flush_interval: float = DEFAULT_FLUSH_INTERVAL_SECONDS,
        ensure_schema: bool = True,
    ) -> None:
        if flush_interval <= 0:
            raise ValueError("flush_interval must be positive")

        self.db_path = Path(db_path)
        self.flush_interval = flush_interval
        self._pool = SQLiteConnectionPool(self.db_path)

        self._token_ids: dict[str, int] = {}
        self._token_lock = ReadWriteLock()
        self._document_ids: dict[str, int] = {}
        self._document_lock = ReadWriteLock()

        self._buffer: list[tuple[int, int, int]] = []
        self._buffer_lock = threading.Lock()
        self._flush_lock = threading.Lock()

        try:
            with self._pool.connection() as conn:
                if ensure_schema:
                    create_schema(conn)
        except sqlite3.Error as exc:
            self._pool.close_all()
            raise StorageError(f"Cannot open SQLite database {self.db_path}: {exc}") from exc

        self._stop = threading.Event()
        self._flusher = threading.Thread(target=self._flush_loop, name="sqlite-flusher", daemon=True)
        self._flusher.start()

    # -- writes ---------------------------------------------------------

    def add(self, token: str, position: int, source: Source) -> None:
        token_id = self._resolve_id(self._token_ids, self._token_lock, "tokens", "token", token)
        document_id = self._resolve_id(self._document_ids, self._document_lock, "documents", "name", source.name)
        with self._buffer_lock:
            self._buffer.append((token_id, document_id, position))

    def _resolve_id(
        self,
        cache: dict[str, int],
        lock: ReadWriteLock,
        table: str,
        column: str,
        value: str,
    ) -> int:
        with lock.read_locked():
            cached = cache.get(value)
        if cached is not None:
            return cached

        with lock.write_locked():
            # Another caller may have populated the entry while we waited
            cached = cache.get(value)
            if cached is not None:
                return cached
            try:
                row_id = self._select_id(table, column, value)
                if row_id is None:
                    row_id = self._insert_id(table, column, value)
            except sqlite3.Error as exc:
                raise StorageError(f"Failed to resolve {column} {value!r}: {exc}") from exc
            cache[value] = row_id
            logger.debug("Cached %s %r as id %d", column, value, row_id)
            return row_id

    def _select_id(self, table: str, column: str, value: str) -> int | None:
        with self._pool.connection() as conn:
            row = conn.execute(f"SELECT id FROM {table} WHERE {column} = ?", (value,)).fetchone()
        return int(row[0]) if row else None

    def _insert_id(self, table: str, column: str, value: str) -> int:
        with self._pool.connection() as conn:
            try:
                cursor = conn.execute(f"INSERT INTO {table} ({column}) VALUES (?)", (value,))
                return int(cursor.lastrowid)
            except sqlite3.IntegrityError:
                # Created concurrently outside this engine instance
                existing = self._select_id(table, column, value)
                if existing is None:
                    raise
                return existing

    @property
    def pending(self) -> int:
        """Number of buffered occurrences awaiting the next flush."""
        with self._buffer_lock:
            return len(self._buffer)

    def flush(self) -> int:
        """Bulk-insert buffered occurrences; return how many were persisted.

        On failure the drained batch is discarded and logged rather than retried.
        """
        with self._flush_lock:
            with self._buffer_lock:
                batch, self._buffer = self._buffer, []
            if not batch:
                return 0

            try:
                with self._pool.connection() as conn:
                    try:
                        conn.execute("BEGIN")
                        conn.executemany(_INSERT_OCCURRENCE, batch)
                        conn.execute("COMMIT")
                    except sqlite3.Error:
                        # A failed COMMIT leaves the transaction open on this thread's connection
                        if conn.in_transaction:
                            conn.execute("ROLLBACK")
                        raise
            except sqlite3.Error as exc:
                logger.error("Failed to flush %d occurrences, batch dropped: %s", len(batch), exc)
                FLUSH_BATCHES.labels(status="error").inc()
                DROPPED_OCCURRENCES.inc(len(batch))
                return 0

            FLUSH_BATCHES.labels(status="ok").inc()
            FLUSHED_OCCURRENCES.inc(len(batch))
            logger.info("Inserted %d occurrences", len(batch))
            return len(batch)

    def _flush_loop(self) -> None:
        while not self._stop.wait(self.flush_interval):
            self.flush()

    # -- reads ----------------------------------------------------------

    def get(self, tokens: Iterable[str]) -> dict[str, Postings]:
        wanted = sorted(set(tokens))
        if not wanted:
            return {}

        query = _SELECT_POSTINGS.format(placeholders=", ".join("?" * len(wanted)))
        try:
            with self._pool.connection() as conn:
                rows = conn.execute(query, wanted).fetchall()
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to query postings: {exc}") from exc

        results: dict[str, Postings] = {}
        documents: dict[str, Source] = {}
        for token, name, position in rows:
            source = documents.get(name)
            if source is None:
                source = documents[name] = Source(name=name)
            results.setdefault(token, {}).setdefault(source, []).append(int(position))
        return results

    def close(self) -> None:
        self._stop.set()
        self._flusher.join()
        self.flush()
        self._pool.close_all()
        logger.debug("SQLite engine closed for %s", self.db_path)
