"""Shared SQLite PRAGMA helpers for consistent connection tuning."""

from __future__ import annotations

import sqlite3


def apply_engine_pragmas(
    conn: sqlite3.Connection,
    *,
    cache_size_kb: int = -65536,
    busy_timeout_ms: int | None = 30000,
    temp_store: str = "MEMORY",
) -> None:
    """Apply PRAGMAs for a connection that both reads and appends occurrences."""
    if busy_timeout_ms is not None:
        conn.execute(f"PRAGMA busy_timeout = {busy_timeout_ms}")
    conn.execute("PRAGMA journal_mode = WAL")
    conn.execute("PRAGMA synchronous = NORMAL")
    conn.execute(f"PRAGMA cache_size = {cache_size_kb}")
    conn.execute(f"PRAGMA temp_store = {temp_store}")
    conn.execute("PRAGMA foreign_keys = ON")
