"""Configuration-driven indexer for Aleo programs.

"""
DEFAULT_BATCH_SIZE = 20
"""Number of transactions requested per RPC page."""

DEFAULT_MAX_PAGES_PER_FUNCTION = 10
"""Number of pages fetched per function in one indexing cycle."""

DEFAULT_FUNCTION_CONCURRENCY = 10
"""Number of function fetch loops running at once for one program."""

DEFAULT_PROGRAM_CONCURRENCY = 5
"""Number of programs indexed at once in one indexing cycle."""

DEFAULT_CYCLE_INTERVAL_SECONDS = 5.0
"""Pause between two indexing cycles."""
