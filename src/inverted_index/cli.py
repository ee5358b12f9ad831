"""Command-line interface for building and querying the index."""

from __future__ import annotations

import argparse
from collections.abc import Iterable, Sequence
import logging
from pathlib import Path
import sqlite3
import sys
from typing import TextIO

from pydantic import ValidationError

from inverted_index.config import Settings
from inverted_index.observability.logging import configure_logging
from inverted_index.observability.tracing import init_tracing
from inverted_index.search.index import InvertedIndex, build_from_directory
from inverted_index.search.memory_storage import MemoryEngine
from inverted_index.search.sqlite_pragmas import apply_engine_pragmas
from inverted_index.search.sqlite_schema import create_schema, drop_schema
from inverted_index.search.storage import StorageError
from inverted_index.search.storage_factory import create_engine


logger = logging.getLogger(__name__)


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="inverted-index",
        description="Build a full-text inverted index from text files and search over it",
    )
    parser.add_argument("--snapshot", type=Path, help="Snapshot file for the in-memory engine")
    parser.add_argument(
        "--format",
        choices=["json", "binary"],
        help="Snapshot encoding (default: binary)",
    )
    parser.add_argument("--database", type=Path, help="SQLite database for the relational engine")
    parser.add_argument("--capacity", type=int, help="Ingestion queue capacity")
    parser.add_argument("--log-level", help="Logging level (default: info)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    build = subparsers.add_parser("build", aliases=["b"], help="Build the search index")
    build.add_argument("--sources", type=Path, required=True, help="Directory of files to index")
    build.add_argument("--workers", type=int, help="Concurrent file producers")

    search = subparsers.add_parser("search", aliases=["s"], help="Search over the index")
    search.add_argument("--query", help="Run a single query instead of reading stdin")

    subparsers.add_parser("serve", help="Serve the web search front end")

    migrate = subparsers.add_parser("migrate", help="Create the SQLite schema")
    migrate.add_argument("--drop", action="store_true", help="Drop the schema instead")

    return parser


def load_settings(args: argparse.Namespace) -> Settings:
    """Merge CLI flags over environment configuration."""
    overrides = {
        "snapshot_path": args.snapshot,
        "snapshot_format": args.format,
        "database_path": args.database,
        "pipeline_capacity": args.capacity,
        "log_level": args.log_level,
        "max_workers": getattr(args, "workers", None),
    }
    return Settings(**{key: value for key, value in overrides.items() if value is not None})


def run_build(settings: Settings, sources: Path) -> int:
    if not sources.is_dir():
        logger.error("Sources directory not found: %s", sources)
        return 1

    # A build always starts from an empty memory engine
    engine = create_engine(settings, load_snapshot=False)
    index = InvertedIndex(engine, capacity=settings.pipeline_capacity)
    try:
        report = build_from_directory(index, sources, max_workers=settings.max_workers)
        if isinstance(engine, MemoryEngine):
            assert settings.snapshot_path is not None
            engine.save(settings.snapshot_path, settings.snapshot_format)
    finally:
        index.close()

    print(f"Indexed {report.documents_indexed} documents ({len(report.errors)} skipped)")
    return 0


def run_search(index: InvertedIndex, queries: Iterable[str], out: TextIO) -> int:
    """Answer one query per input line until EOF."""
    for line in queries:
        query = line.strip()
        if not query:
            continue
        try:
            results = index.search(query)
        except StorageError as exc:
            print(f"Search failed: {exc}", file=sys.stderr)
            continue
        if not results:
            print("No documents found.", file=out)
        for position, result in enumerate(results, start=1):
            print(f"{position}. {result.document.name} ({result.score})", file=out)
        out.flush()
    return 0


def run_serve(settings: Settings, index: InvertedIndex) -> int:
    import uvicorn

    from inverted_index.web import create_app

    init_tracing(resource_attributes={"index.engine": index.engine.name})
    app = create_app(index)
    logger.info("Starting server on %s:%d", settings.listen_host, settings.listen_port)
    uvicorn.run(app, host=settings.listen_host, port=settings.listen_port, log_config=None)
    return 0


def run_migrate(settings: Settings, *, drop: bool) -> int:
    if settings.database_path is None:
        logger.error("migrate requires a SQLite database (--database or INDEX_DATABASE_PATH)")
        return 1
    conn = sqlite3.connect(settings.database_path, isolation_level=None)
    try:
        apply_engine_pragmas(conn)
        if drop:
            drop_schema(conn)
        else:
            create_schema(conn)
    finally:
        conn.close()
    print(f"Schema {'dropped' if drop else 'created'} in {settings.database_path}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_argument_parser()
    args = parser.parse_args(argv)

    try:
        settings = load_settings(args)
    except ValidationError as exc:
        configure_logging("INFO", json_output=False)
        logger.error("Invalid configuration: %s", exc)
        return 1

    configure_logging(settings.log_level, json_output=settings.json_logs)

    try:
        if args.command in ("build", "b"):
            return run_build(settings, args.sources)
        if args.command == "migrate":
            return run_migrate(settings, drop=args.drop)

        engine = create_engine(settings)
        index = InvertedIndex(engine, capacity=settings.pipeline_capacity)
        if args.command == "serve":
            return run_serve(settings, index)
        try:
            if args.query:
                return run_search(index, [args.query], sys.stdout)
            return run_search(index, sys.stdin, sys.stdout)
        finally:
            index.close()
    except (OSError, StorageError, sqlite3.Error) as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
