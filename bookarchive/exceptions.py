"""
Exception hierarchy for bookarchive.

Every error raised by the data layer derives from StoreError, so callers
that only care about "the database said no" can catch a single type.
"""

from typing import List, Optional

__all__ = [
    "BookArchiveError",
    "StoreError",
    "InitError",
    "PrepareError",
    "BindError",
    "ExecError",
    "QueryError",
    "StoreClosedError",
    "CommandError",
]


class BookArchiveError(Exception):
    """Root exception for all bookarchive errors."""


# ── Data layer ────────────────────────────────────────────────────────────────

class StoreError(BookArchiveError):
    """Base class for database access errors."""


class InitError(StoreError):
    """Raised when the database cannot be opened or the books table cannot be created."""


class PrepareError(StoreError):
    """Raised when SQLite refuses to compile a statement."""

    def __init__(self, message: str, sql: str):
        super().__init__(f"{message} (SQL: {sql})")
        self.sql = sql


class BindError(StoreError):
    """Raised when parameters cannot be bound to a prepared statement."""


class ExecError(StoreError):
    """Raised when a write statement does not complete, including after retries."""


class QueryError(StoreError):
    """Raised when a read loop stops on an unexpected status.

    ``rows`` holds the records fetched before the failure.
    """

    def __init__(self, message: str, rows: Optional[List] = None):
        super().__init__(message)
        self.rows = list(rows or [])


class StoreClosedError(StoreError):
    """Raised when a shut-down store is used."""


# ── Shell ─────────────────────────────────────────────────────────────────────

class CommandError(BookArchiveError, ValueError):
    """Raised when a shell command line cannot be parsed."""
