"""Relational schema for the SQLite storage engine.

Three tables mirror the data model: ``tokens`` and ``documents`` hold the
natural keys, ``occurrences`` references both and cascades on delete.
"""

from __future__ import annotations

import logging
import sqlite3


logger = logging.getLogger(__name__)

_CREATE_SCHEMA = """
    CREATE TABLE IF NOT EXISTS tokens (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        token TEXT NOT NULL UNIQUE
    );

    CREATE TABLE IF NOT EXISTS documents (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL UNIQUE
    );

    CREATE TABLE IF NOT EXISTS occurrences (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        token_id INTEGER NOT NULL REFERENCES tokens (id) ON DELETE CASCADE,
        document_id INTEGER NOT NULL REFERENCES documents (id) ON DELETE CASCADE,
        position INTEGER NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_occurrences_token ON occurrences (token_id);
    CREATE INDEX IF NOT EXISTS idx_occurrences_document ON occurrences (document_id);
"""

_DROP_SCHEMA = """
    DROP TABLE IF EXISTS occurrences;
    DROP TABLE IF EXISTS documents;
    DROP TABLE IF EXISTS tokens;
"""


def create_schema(conn: sqlite3.Connection) -> None:
    """Create tables and indexes if they do not exist yet."""
    conn.executescript(_CREATE_SCHEMA)
    logger.debug("SQLite schema ensured")


def drop_schema(conn: sqlite3.Connection) -> None:
    """Drop all engine tables, occurrences first."""
    conn.executescript(_DROP_SCHEMA)
    logger.info("SQLite schema dropped")
