"""Resumable chunked indexing engine for Fantasy Premier League history."""

__version__ = "0.1.0"
