"""
Database module for bookarchive.

Provides the BookStore data-access layer and its statement cache.
"""

from .locks import ReadWriteLock
from .statements import PreparedStatement, StatementCache
from .store import BookStore

__all__ = [
    "BookStore",
    "PreparedStatement",
    "StatementCache",
    "ReadWriteLock",
]
