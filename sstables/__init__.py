"""A log-structured key-value store built from a logged memtable and sorted string tables."""

__version__ = "0.1.0"