"""
Inverted index package.

This package provides the indexing and query stack:
- analyzers: Normalizer (whitespace tokenizer, trim, stop-word and stemming filters)
- pipeline: Serialized ingestion queue feeding a storage engine
- storage: Storage engine contract
- memory_storage: In-process engine with snapshot encode/decode
- sqlite_storage: Cached, batch-flushing SQLite engine
- scoring: Ranking strategies
- index: Index facade (add_source / search)
"""
