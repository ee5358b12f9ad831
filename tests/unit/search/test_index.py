"""Tests for the index facade and directory builds."""

from pathlib import Path
import threading

import pytest

from inverted_index.search.index import InvertedIndex, build_from_directory
from inverted_index.search.memory_storage import MemoryEngine
from inverted_index.search.models import MatchTally, SearchResult, Source
from inverted_index.search.pipeline import PipelineClosedError
from inverted_index.search.scoring import score_by_coverage
from inverted_index.search.storage import StorageError


@pytest.fixture
def index():
    index = InvertedIndex(MemoryEngine(), capacity=100)
    yield index
    index.close()


@pytest.fixture
def fruit_index(index, corpus):
    for name, text in corpus.items():
        index.add_source(name, text)
    index.join()
    return index


class BrokenEngine(MemoryEngine):
    name = "broken"

    def get(self, tokens):
        raise StorageError("store unavailable")


class TestAddSource:
    def test_indexes_normalized_tokens_with_word_positions(self, fruit_index):
        assert fruit_index.engine.snapshot()["index"] == {
            "appl": {"file1": [1], "file2": [0]},
            "banana": {"file1": [2], "file2": [2]},
            "raspberri": {"file1": [3]},
            "orang": {"file2": [3]},
        }

    def test_returns_submitted_count(self, index):
        assert index.add_source("doc", "the quick brown fox") == 3

    def test_document_with_only_stop_words(self, index):
        assert index.add_source("doc", "the and of") == 0
        index.join()
        assert index.engine.sources == []

    def test_concurrent_sources_are_all_indexed(self, index):
        def add(i: int) -> None:
            index.add_source(f"doc{i}", "alpha beta gamma " * 20)

        threads = [threading.Thread(target=add, args=(i,)) for i in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)
        index.join()

        postings = index.engine.get(["alpha"])["alpha"]
        assert len(postings) == 8
        for positions in postings.values():
            assert positions == list(range(0, 60, 3))

    def test_add_after_close_raises(self):
        index = InvertedIndex(MemoryEngine())
        index.close()

        with pytest.raises(PipelineClosedError):
            index.add_source("doc", "apple")


class TestSearch:
    def test_single_token_query(self, fruit_index):
        assert fruit_index.search("apple") == [SearchResult(Source("file1"), 1), SearchResult(Source("file2"), 1)]

    def test_all_tokens_required(self, fruit_index):
        assert fruit_index.search("banana raspberry") == [SearchResult(Source("file1"), 2)]

    def test_unknown_token_matches_nothing(self, fruit_index):
        assert fruit_index.search("the window apple") == []

    def test_query_of_stop_words_is_empty(self, fruit_index):
        assert fruit_index.search("the and") == []
        assert fruit_index.search("   ") == []

    def test_query_is_normalized_like_documents(self, fruit_index):
        assert fruit_index.search("APPLES!") == fruit_index.search("apple")

    def test_repeated_query_tokens_count_once(self, fruit_index):
        assert fruit_index.search("apple apples") == fruit_index.search("apple")

    def test_scorer_receives_per_document_tallies(self):
        captured = {}

        def capture(items, tokens):
            captured["items"] = dict(items)
            captured["tokens"] = list(tokens)
            return []

        with InvertedIndex(MemoryEngine(), scorer=capture) as index:
            index.add_source("file1", "an apple banana raspberry")
            index.add_source("file2", "apple apple the banana orange")
            index.join()
            index.search("the apple banana")

        assert captured["tokens"] == ["appl", "banana"]
        assert captured["items"] == {
            Source("file1"): MatchTally(count=2, occurrences={"appl": [1], "banana": [2]}),
            Source("file2"): MatchTally(count=2, occurrences={"appl": [0, 1], "banana": [3]}),
        }

    def test_custom_scorer_is_used(self, corpus):
        with InvertedIndex(MemoryEngine(), scorer=score_by_coverage) as index:
            for name, text in corpus.items():
                index.add_source(name, text)
            index.join()

            results = index.search("banana raspberry")

        assert [result.document.name for result in results] == ["file1", "file2"]

    def test_engine_failure_propagates(self):
        with InvertedIndex(BrokenEngine()) as index:
            with pytest.raises(StorageError, match="store unavailable"):
                index.search("apple")


class TestBuildFromDirectory:
    def test_indexes_every_file(self, index, corpus_dir):
        report = build_from_directory(index, corpus_dir, max_workers=2)

        assert report.documents_indexed == 2
        assert report.errors == ()
        names = [result.document.name for result in index.search("apple")]
        assert names == [str(corpus_dir / "file1"), str(corpus_dir / "file2")]

    def test_unreadable_file_is_skipped(self, index, corpus_dir: Path):
        (corpus_dir / "binary").write_bytes(b"\xff\xfe\x00broken")

        report = build_from_directory(index, corpus_dir)

        assert report.documents_indexed == 2
        assert len(report.errors) == 1
        assert "binary" in report.errors[0]

    def test_subdirectories_are_ignored(self, index, corpus_dir: Path):
        (corpus_dir / "nested").mkdir()
        (corpus_dir / "nested" / "file3").write_text("apple", encoding="utf-8")

        report = build_from_directory(index, corpus_dir)

        assert report.documents_indexed == 2
