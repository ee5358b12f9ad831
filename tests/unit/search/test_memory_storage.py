"""Tests for the in-process storage engine and its snapshots."""

import io
import pickle
import threading

import pytest

from inverted_index.search.memory_storage import MemoryEngine
from inverted_index.search.models import Source
from inverted_index.search.storage import StorageError


@pytest.fixture
def engine() -> MemoryEngine:
    engine = MemoryEngine()
    for token, position, name in [
        ("appl", 1, "file1"),
        ("banana", 2, "file1"),
        ("raspberri", 3, "file1"),
        ("appl", 0, "file2"),
        ("banana", 2, "file2"),
        ("orang", 3, "file2"),
    ]:
        engine.add(token, position, Source(name=name))
    return engine


class TestMemoryEngine:
    def test_get_returns_postings_per_document(self, engine):
        postings = engine.get(["appl", "banana"])

        assert postings["appl"] == {Source("file1"): [1], Source("file2"): [0]}
        assert postings["banana"] == {Source("file1"): [2], Source("file2"): [2]}

    def test_missing_tokens_are_omitted(self, engine):
        assert engine.get(["kiwi"]) == {}
        assert set(engine.get(["appl", "kiwi"])) == {"appl"}

    def test_positions_keep_insertion_order(self):
        engine = MemoryEngine()
        source = Source("doc")
        for position in (4, 1, 9):
            engine.add("tok", position, source)

        assert engine.get(["tok"])["tok"][source] == [4, 1, 9]

    def test_returned_positions_are_copies(self, engine):
        engine.get(["appl"])["appl"][Source("file1")].append(99)

        assert engine.get(["appl"])["appl"][Source("file1")] == [1]

    def test_sources_are_registered_once_in_first_seen_order(self, engine):
        engine.add("kiwi", 7, Source("file1"))

        assert engine.sources == [Source("file1"), Source("file2")]

    def test_concurrent_reads_never_see_torn_postings(self):
        engine = MemoryEngine()
        source = Source("doc")
        torn: list[list[int]] = []
        done = threading.Event()

        def write() -> None:
            for position in range(2000):
                engine.add("tok", position, source)
            done.set()

        def read() -> None:
            while not done.is_set():
                positions = engine.get(["tok"]).get("tok", {}).get(source, [])
                if positions != list(range(len(positions))):
                    torn.append(positions)

        readers = [threading.Thread(target=read) for _ in range(3)]
        writer = threading.Thread(target=write)
        for thread in readers:
            thread.start()
        writer.start()
        writer.join(timeout=10)
        for thread in readers:
            thread.join(timeout=10)

        assert torn == []
        assert engine.get(["tok"])["tok"][source] == list(range(2000))


class TestSnapshots:
    @pytest.mark.parametrize("fmt", ["json", "binary"])
    def test_decode_restores_encoded_state(self, engine, fmt):
        buffer = io.BytesIO()
        engine.encode(buffer, fmt)
        buffer.seek(0)

        restored = MemoryEngine.decode(buffer, fmt)

        assert restored.snapshot() == engine.snapshot()
        assert restored.get(["banana"]) == engine.get(["banana"])

    def test_json_snapshot_is_readable(self, engine):
        buffer = io.BytesIO()
        engine.encode(buffer, "json")

        assert b'"raspberri":{"file1":[3]}' in buffer.getvalue()

    def test_save_and_load_file(self, engine, tmp_path):
        path = tmp_path / "index.bin"
        engine.save(path, "binary")

        restored = MemoryEngine.load(path, "binary")

        assert restored.sources == engine.sources
        assert restored.get(["orang"]) == {"orang": {Source("file2"): [3]}}

    def test_empty_engine_round_trips(self):
        buffer = io.BytesIO()
        MemoryEngine().encode(buffer, "json")
        buffer.seek(0)

        assert MemoryEngine.decode(buffer, "json").snapshot() == {"index": {}, "sources": []}

    def test_from_payload_registers_documents_missing_from_registry(self):
        engine = MemoryEngine.from_payload({"index": {"tok": {"doc": [0, 2]}}})

        assert engine.sources == [Source("doc")]
        assert engine.get(["tok"]) == {"tok": {Source("doc"): [0, 2]}}

    def test_unknown_format_rejected(self, engine):
        with pytest.raises(ValueError, match="Unknown snapshot format"):
            engine.encode(io.BytesIO(), "yaml")  # type: ignore[arg-type]

    @pytest.mark.parametrize(
        ("fmt", "data"),
        [
            ("json", b"{not json"),
            ("binary", b""),
            ("binary", b"xyz"),
        ],
    )
    def test_corrupt_snapshot_raises_storage_error(self, fmt, data):
        with pytest.raises(StorageError, match=f"Failed to decode {fmt} snapshot"):
            MemoryEngine.decode(io.BytesIO(data), fmt)

    @pytest.mark.parametrize(
        ("fmt", "data"),
        [
            ("json", b'{"index": {"appl": [1, 2]}}'),
            ("json", b'{"index": [1, 2]}'),
            ("json", b'{"index": {"appl": {"doc": ["first"]}}}'),
            ("json", b'{"index": {"appl": {"doc": 3}}}'),
            ("json", b'{"index": {}, "sources": 5}'),
            ("binary", pickle.dumps([1, 2])),
            ("binary", pickle.dumps({"index": "appl"})),
        ],
    )
    def test_malformed_payload_raises_storage_error(self, fmt, data):
        with pytest.raises(StorageError):
            MemoryEngine.decode(io.BytesIO(data), fmt)

    def test_payload_without_index_rejected(self):
        with pytest.raises(StorageError, match="missing the 'index' section"):
            MemoryEngine.decode(io.BytesIO(b'{"sources": []}'), "json")

    def test_snapshots_taken_during_writes_are_consistent(self):
        engine = MemoryEngine()
        writers_done = threading.Event()
        per_writer = 500

        def write(name: str) -> None:
            source = Source(name)
            for position in range(per_writer):
                engine.add("tok", position, source)
                engine.add(f"tok{position % 3}", position, source)

        writers = [threading.Thread(target=write, args=(f"doc{i}",)) for i in range(4)]
        for thread in writers:
            thread.start()

        snapshots: list[dict] = []

        def wait_for_writers() -> None:
            for thread in writers:
                thread.join(timeout=30)
            writers_done.set()

        threading.Thread(target=wait_for_writers).start()
        while True:
            finished = writers_done.is_set()
            buffer = io.BytesIO()
            engine.encode(buffer, "json")
            buffer.seek(0)
            snapshots.append(MemoryEngine.decode(buffer, "json").snapshot())
            if finished:
                break

        for snapshot in snapshots:
            for name, positions in snapshot["index"].get("tok", {}).items():
                assert positions == list(range(len(positions)))
                assert name in snapshot["sources"]
                # "tok" is written before "tok{n}", so the latter can only trail by one
                written = sum(len(snapshot["index"].get(f"tok{n}", {}).get(name, [])) for n in range(3))
                assert len(positions) - 1 <= written <= len(positions)

        final = io.BytesIO()
        engine.encode(final, "binary")
        final.seek(0)
        restored = MemoryEngine.decode(final, "binary")
        assert restored.snapshot() == engine.snapshot()
        assert restored.get(["tok"])["tok"][Source("doc3")] == list(range(per_writer))
