"""Tests for ranking strategies."""

from inverted_index.search.models import MatchTally, SearchResult, Source
from inverted_index.search.scoring import score_by_count, score_by_coverage


FILE1 = Source("file1")
FILE2 = Source("file2")


class TestScoreByCount:
    def test_ranks_by_total_occurrences(self):
        items = {
            FILE1: MatchTally(count=2, occurrences={"appl": [0], "banana": [1]}),
            FILE2: MatchTally(count=2, occurrences={"appl": [0, 2], "banana": [1]}),
        }

        results = score_by_count(items, ["appl", "banana"])

        assert results == [SearchResult(FILE2, 3), SearchResult(FILE1, 2)]

    def test_drops_documents_missing_a_token(self):
        items = {
            FILE1: MatchTally(count=1, occurrences={"appl": [0]}),
            FILE2: MatchTally(count=2, occurrences={"appl": [0, 2], "banana": [1]}),
        }

        assert score_by_count(items, ["appl", "banana"]) == [SearchResult(FILE2, 3)]

    def test_ties_ordered_by_document_name(self):
        items = {
            FILE2: MatchTally(count=1, occurrences={"appl": [0]}),
            FILE1: MatchTally(count=1, occurrences={"appl": [1]}),
        }

        assert score_by_count(items, ["appl"]) == [SearchResult(FILE1, 1), SearchResult(FILE2, 1)]

    def test_empty_input(self):
        assert score_by_count({}, ["appl"]) == []


class TestScoreByCoverage:
    def test_keeps_partial_matches_after_full_ones(self):
        items = {
            FILE1: MatchTally(count=1, occurrences={"appl": [0, 3, 5]}),
            FILE2: MatchTally(count=2, occurrences={"appl": [0], "banana": [1]}),
        }

        results = score_by_coverage(items, ["appl", "banana"])

        assert results == [SearchResult(FILE2, 2), SearchResult(FILE1, 3)]

    def test_same_coverage_ranked_by_total(self):
        items = {
            FILE1: MatchTally(count=1, occurrences={"appl": [0]}),
            FILE2: MatchTally(count=1, occurrences={"appl": [0, 4]}),
        }

        assert score_by_coverage(items, ["appl"]) == [SearchResult(FILE2, 2), SearchResult(FILE1, 1)]


class TestSearchResult:
    def test_to_dict(self):
        assert SearchResult(FILE1, 2).to_dict() == {"document": "file1", "score": 2}
