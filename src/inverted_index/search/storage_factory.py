"""Storage factory for choosing between the in-memory and SQLite engines."""

from __future__ import annotations

import logging

from inverted_index.config import Settings
from inverted_index.search.memory_storage import MemoryEngine
from inverted_index.search.sqlite_storage import SqliteEngine
from inverted_index.search.storage import StorageEngine


logger = logging.getLogger(__name__)


def create_engine(settings: Settings, *, load_snapshot: bool = True) -> StorageEngine:
    """Create the engine selected by ``settings``.

    With ``load_snapshot`` the memory engine is decoded from an existing
    snapshot file; otherwise (or when the file does not exist yet) it starts
    empty. Failures to open the snapshot or database propagate.
    """
    if settings.snapshot_path is not None:
        path = settings.snapshot_path
        if load_snapshot and path.exists():
            return MemoryEngine.load(path, settings.snapshot_format)
        if load_snapshot:
            logger.warning("Snapshot %s does not exist; starting with an empty index", path)
        return MemoryEngine()

    assert settings.database_path is not None  # guaranteed by Settings validation
    logger.info("Using SQLite engine at %s", settings.database_path)
    return SqliteEngine(settings.database_path, flush_interval=settings.flush_interval_seconds)
