"""Full-text inverted index with pluggable storage engines."""

__version__ = "0.3.0"
