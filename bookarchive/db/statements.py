"""
Prepared statement cache.

SQLite compiles each distinct SQL string once per connection; the
StatementCache keeps the resulting PreparedStatement handles keyed by SQL
text so later calls skip compilation.

The cache is unbounded. The store only ever feeds it the fixed statements in
``bookarchive.db.schema``, so it fills up after the first call of each kind.
Feeding it dynamically built SQL would need an eviction policy.
"""

import logging
import re
from typing import Callable, Dict, Sequence, Tuple

from ..exceptions import BindError, PrepareError
from .locks import ReadWriteLock

__all__ = ["PreparedStatement", "StatementCache", "count_placeholders"]

logger = logging.getLogger(__name__)

# Quoted strings and identifiers, which may legitimately contain "?"
_QUOTED_RE = re.compile(r"'(?:[^']|'')*'|\"(?:[^\"]|\"\")*\"")


def count_placeholders(sql: str) -> int:
    """Count positional ``?`` parameters outside quoted text."""
    return _QUOTED_RE.sub("", sql).count("?")


class PreparedStatement:
    """
    A compiled SQL statement owned by a StatementCache.

    The handle itself is immutable: ``bind()`` returns a fresh parameter
    tuple for every execution, so values bound by one call can never leak
    into the next one.
    """

    def __init__(self, sql: str, param_count: int):
        self.sql = sql
        self.param_count = param_count
        self._finalized = False

    @property
    def finalized(self) -> bool:
        return self._finalized

    def bind(self, params: Sequence[object] = ()) -> Tuple[str, ...]:
        """
        Bind ``params`` positionally as text.

        Raises:
            BindError: wrong number of parameters, or the handle was finalized
        """
        if self._finalized:
            raise BindError(f"Statement has been finalized: {self.sql}")
        if len(params) != self.param_count:
            raise BindError(
                f"Statement expects {self.param_count} parameter(s), "
                f"got {len(params)}: {self.sql}"
            )
        bound = []
        for index, value in enumerate(params, start=1):
            if value is None:
                raise BindError(f"Parameter {index} is None: {self.sql}")
            bound.append(str(value))
        return tuple(bound)

    def finalize(self) -> None:
        """Release the handle; it cannot be bound afterwards."""
        self._finalized = True

    def __repr__(self) -> str:
        state = "finalized" if self._finalized else "ready"
        return f"PreparedStatement({self.sql!r}, params={self.param_count}, {state})"


class StatementCache:
    """
    Thread-safe map of SQL text to PreparedStatement.

    Lookups take the read lock; a miss upgrades to the write lock and checks
    again before compiling, so two threads racing on the same SQL compile it
    only once.

    Args:
        compiler: Callable compiling SQL text against the owning connection.
                  It must raise PrepareError on failure.
    """

    def __init__(self, compiler: Callable[[str], PreparedStatement]):
        self._compiler = compiler
        self._statements: Dict[str, PreparedStatement] = {}
        self._lock = ReadWriteLock()

    def get_or_prepare(self, sql: str) -> PreparedStatement:
        """
        Return the cached handle for ``sql``, compiling it on first use.

        Raises:
            PrepareError: SQLite rejected the statement; the cache is unchanged
        """
        with self._lock.read_lock():
            statement = self._statements.get(sql)
        if statement is not None:
            return statement

        with self._lock.write_lock():
            statement = self._statements.get(sql)
            if statement is not None:
                return statement

            try:
                statement = self._compiler(sql)
            except PrepareError as e:
                logger.error("Failed to prepare statement: %s", e)
                raise
            self._statements[sql] = statement
            logger.debug("Prepared statement: %s", sql)
            return statement

    def clear_all(self) -> None:
        """Finalize every cached handle and empty the cache (idempotent)."""
        with self._lock.write_lock():
            for statement in self._statements.values():
                statement.finalize()
            count = len(self._statements)
            self._statements.clear()
        if count:
            logger.debug("Finalized %d cached statement(s)", count)

    def __len__(self) -> int:
        with self._lock.read_lock():
            return len(self._statements)

    def __contains__(self, sql: object) -> bool:
        with self._lock.read_lock():
            return sql in self._statements
