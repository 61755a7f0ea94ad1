"""Command-line driver for the FPL indexing API."""

__version__ = "0.1.0"
