"""Shared test fixtures and configuration."""

import os
from pathlib import Path

import pytest


CORPUS = {
    "file1": "an apple banana raspberry",
    "file2": "apple the banana orange",
}


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    """Strip INDEX_* variables and run from an empty directory so no .env is picked up."""
    for key in list(os.environ):
        if key.upper().startswith("INDEX_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def corpus_dir(tmp_path: Path) -> Path:
    """Directory holding the two-document fruit corpus."""
    directory = tmp_path / "corpus"
    directory.mkdir()
    for name, text in CORPUS.items():
        (directory / name).write_text(text, encoding="utf-8")
    return directory


@pytest.fixture
def corpus() -> dict[str, str]:
    return dict(CORPUS)
