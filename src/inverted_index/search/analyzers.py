"""Normalizer for the inverted index.

Raw text is turned into a lazy stream of ``(token, position)`` pairs by a
composable tokenizer/filter chain:

* ``WhitespaceTokenizer`` splits lines on whitespace and numbers every word.
* ``TrimFilter`` strips leading/trailing non-letter characters and drops
  words that end up empty.
* ``LowercaseFilter`` folds case.
* ``StopFilter`` removes English stop words.
* ``PorterStemFilter`` applies the Porter stemmer.

Positions are raw word offsets: every whitespace-delimited word consumes one
position, including words later dropped by ``TrimFilter`` or ``StopFilter``.
The same normalizer is applied to documents and to queries.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass
import io
from typing import Protocol

from nltk.stem import PorterStemmer


@dataclass
class Token:
    """Represents a token emitted by the normalizer."""

    text: str
    position: int

    def copy_with(self, **updates: object) -> Token:
        data = {"text": self.text, "position": self.position}
        data.update(updates)
        return Token(**data)  # type: ignore[arg-type]


class Tokenizer(Protocol):
    """Protocol implemented by tokenizers."""

    def __call__(self, lines: Iterable[str]) -> Iterator[Token]:  # pragma: no cover - interface definition
        ...


class TokenFilter(Protocol):
    """Protocol implemented by token filters."""

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:  # pragma: no cover - interface definition
        ...


class WhitespaceTokenizer:
    """Splits a line stream on whitespace, numbering words from zero."""

    def __call__(self, lines: Iterable[str]) -> Iterator[Token]:
        position = 0
        for line in lines:
            for word in line.split():
                yield Token(text=word, position=position)
                position += 1


def trim_non_letters(word: str) -> str:
    """Strip leading and trailing characters that are not letters.

    Interior characters (digits, apostrophes, hyphens) are preserved.
    """
    start = 0
    end = len(word)
    while start < end and not word[start].isalpha():
        start += 1
    while end > start and not word[end - 1].isalpha():
        end -= 1
    return word[start:end]


class TrimFilter:
    """Trims non-letter edges and drops tokens left empty."""

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            trimmed = trim_non_letters(token.text)
            if not trimmed:
                continue
            if trimmed == token.text:
                yield token
            else:
                yield token.copy_with(text=trimmed)


class LowercaseFilter:
    """Filter that lowercases token text."""

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            if token.text.islower():
                yield token
            else:
                yield token.copy_with(text=token.text.lower())


DEFAULT_STOPWORDS = [
    "a",
    "about",
    "above",
    "after",
    "again",
    "against",
    "all",
    "am",
    "an",
    "and",
    "any",
    "are",
    "as",
    "at",
    "be",
    "because",
    "been",
    "before",
    "being",
    "below",
    "between",
    "both",
    "but",
    "by",
    "can",
    "could",
    "did",
    "do",
    "does",
    "doing",
    "down",
    "during",
    "each",
    "few",
    "for",
    "from",
    "further",
    "had",
    "has",
    "have",
    "having",
    "he",
    "her",
    "here",
    "hers",
    "herself",
    "him",
    "himself",
    "his",
    "how",
    "i",
    "if",
    "in",
    "into",
    "is",
    "it",
    "its",
    "itself",
    "me",
    "more",
    "most",
    "my",
    "myself",
    "no",
    "nor",
    "not",
    "of",
    "off",
    "on",
    "once",
    "only",
    "or",
    "other",
    "our",
    "ours",
    "ourselves",
    "out",
    "over",
    "own",
    "same",
    "she",
    "should",
    "so",
    "some",
    "such",
    "than",
    "that",
    "the",
    "their",
    "theirs",
    "them",
    "themselves",
    "then",
    "there",
    "these",
    "they",
    "this",
    "those",
    "through",
    "to",
    "too",
    "under",
    "until",
    "up",
    "very",
    "was",
    "we",
    "were",
    "what",
    "when",
    "where",
    "which",
    "while",
    "who",
    "whom",
    "why",
    "will",
    "with",
    "would",
    "you",
    "your",
    "yours",
    "yourself",
    "yourselves",
]


class StopFilter:
    """Removes stopwords from the stream."""

    def __init__(self, stopwords: Sequence[str] | None = None) -> None:
        vocab = stopwords if stopwords is not None else DEFAULT_STOPWORDS
        self.stopwords = {word.lower() for word in vocab}

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            if token.text.lower() not in self.stopwords:
                yield token


class PorterStemFilter:
    """Applies the Porter stemmer from NLTK."""

    def __init__(self) -> None:
        self._stem: Callable[[str], str] = PorterStemmer().stem

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            yield token.copy_with(text=self._stem(token.text))


class Normalizer:
    """Composable normalizer pipeline (tokenizer + filters).

    Unlike a list-returning analyzer, the stream is lazy and single-pass: it
    consumes the underlying line iterable as tokens are pulled.
    """

    def __init__(self, tokenizer: Tokenizer | None = None, filters: Sequence[TokenFilter] | None = None) -> None:
        self.tokenizer = tokenizer or WhitespaceTokenizer()
        if filters is None:
            filters = [TrimFilter(), LowercaseFilter(), StopFilter(), PorterStemFilter()]
        self.filters = list(filters)

    def tokenize(self, text: Iterable[str] | str) -> Iterator[tuple[str, int]]:
        """Yield ``(token, position)`` pairs for a text stream or string."""
        lines = io.StringIO(text) if isinstance(text, str) else text
        stream: Iterable[Token] = self.tokenizer(lines)
        for token_filter in self.filters:
            stream = token_filter(stream)
        for token in stream:
            yield token.text, token.position

    def __call__(self, text: Iterable[str] | str) -> Iterator[tuple[str, int]]:
        return self.tokenize(text)

    def query_tokens(self, query: str) -> list[str]:
        """Return distinct normalized tokens of a query, in first-seen order."""
        return list(dict.fromkeys(token for token, _ in self.tokenize(query)))
