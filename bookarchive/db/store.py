"""
BookStore: SQLite-backed persistence layer for the book archive.

Usage::

    with BookStore.open("book_archive.db") as store:
        store.add_book(1, "Dune", "Frank Herbert")
        books = store.search_books("Herbert")

Concurrency model:
- One SQLAlchemy connection per store, shared by every thread
- Write statements hold the connection write lock for their whole step loop
- Read statements take the read lock per row fetch, so readers interleave
- SQLITE_BUSY / SQLITE_LOCKED are retried in place with exponential backoff,
  for reads only on the first step
"""

import logging
import sqlite3
import threading
import time
from dataclasses import replace
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple, TypeVar, Union

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Connection, CursorResult, Engine
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.pool import NullPool

from ..config import RetryPolicy, StoreConfig
from ..exceptions import (
    BindError,
    ExecError,
    InitError,
    PrepareError,
    QueryError,
    StoreClosedError,
    StoreError,
)
from ..models import Book
from . import schema
from .locks import ReadWriteLock
from .statements import PreparedStatement, StatementCache, count_placeholders

__all__ = ["BookStore"]

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Primary result codes that mean "someone else holds the lock, try again"
_SQLITE_BUSY = 5
_SQLITE_LOCKED = 6


def _diagnostic(error: Exception) -> str:
    """Return the driver's message for a wrapped DBAPI error."""
    orig = getattr(error, "orig", None)
    return str(orig) if orig is not None else str(error)


def _is_busy(error: DBAPIError) -> bool:
    orig = error.orig
    code = getattr(orig, "sqlite_errorcode", None)
    if code is not None:
        return (code & 0xFF) in (_SQLITE_BUSY, _SQLITE_LOCKED)
    message = str(orig).lower()
    return "locked" in message or "busy" in message


class _Backoff:
    """Retry bookkeeping for one statement execution."""

    def __init__(self, policy: RetryPolicy):
        self.policy = policy
        self.retries = 0

    def should_retry(self, error: DBAPIError) -> bool:
        if not _is_busy(error) or self.retries >= self.policy.max_retries:
            return False
        logger.debug(
            "Database busy, retrying... (%d/%d)",
            self.retries + 1, self.policy.max_retries,
        )
        time.sleep(self.policy.delay(self.retries))
        self.retries += 1
        return True


class BookStore:
    """
    CRUD interface for the books table.

    Open with ``BookStore.open()``; the returned store owns one connection
    and one StatementCache until ``shutdown()``. Stores cannot be copied or
    pickled, since each one is tied to a single open connection.
    """

    def __init__(self, config: Optional[StoreConfig] = None):
        self.config = config or StoreConfig()
        self._engine: Optional[Engine] = None
        self._conn: Optional[Connection] = None
        self._db_lock = ReadWriteLock()
        self._cache = StatementCache(self._compile)
        self._state_lock = threading.Lock()
        self._closed = False

    @classmethod
    def open(
        cls,
        db_path: Optional[Union[str, Path]] = None,
        config: Optional[StoreConfig] = None,
    ) -> "BookStore":
        """
        Open or create a book archive.

        Args:
            db_path: Database file (":memory:" for a private in-memory database);
                     overrides ``config.db_path`` when given
            config: Store settings (pragmas, retry policy, busy timeout)

        Returns:
            An initialized BookStore

        Raises:
            InitError: the database cannot be opened or the books table cannot be created
        """
        config = config or StoreConfig()
        if db_path is not None:
            config = replace(config, db_path=str(db_path))

        store = cls(config)
        try:
            store._initialize()
        except InitError as e:
            logger.error("%s", e)
            store.shutdown()
            raise

        logger.info(
            "Book Archive initialized with database: %s", store.config.db_path
        )
        return store

    # ── Properties ────────────────────────────────────────────────────────

    @property
    def db_path(self) -> str:
        return self.config.db_path

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def statement_cache(self) -> StatementCache:
        return self._cache

    # ── Lifecycle ─────────────────────────────────────────────────────────

    def _initialize(self) -> None:
        path = self.config.db_path
        url = "sqlite://" if path == ":memory:" else f"sqlite:///{path}"

        try:
            self._engine = create_engine(
                url,
                poolclass=NullPool,
                isolation_level="AUTOCOMMIT",
                connect_args={
                    "check_same_thread": False,
                    "timeout": self.config.busy_timeout,
                },
            )
            event.listen(self._engine, "connect", self._apply_pragmas)
            self._conn = self._engine.connect()
        except SQLAlchemyError as e:
            raise InitError(f"Cannot open database {path}: {_diagnostic(e)}") from e

        try:
            self._conn.exec_driver_sql(schema.CREATE_BOOKS_TABLE)
        except SQLAlchemyError as e:
            raise InitError(f"Failed to create table: {_diagnostic(e)}") from e

        try:
            self._conn.exec_driver_sql(schema.CREATE_TITLE_AUTHOR_INDEX)
        except SQLAlchemyError as e:
            logger.error("Failed to create index: %s", _diagnostic(e))

    def _apply_pragmas(self, dbapi_conn, connection_record) -> None:
        cursor = dbapi_conn.cursor()
        try:
            for pragma in self.config.pragmas:
                try:
                    cursor.execute(pragma)
                except sqlite3.Error as e:
                    # Pragmas are optimizations; keep going
                    logger.error("Failed to set pragma %r: %s", pragma, e)
        finally:
            cursor.close()

    def shutdown(self) -> None:
        """
        Finalize cached statements and close the connection.

        Safe to call more than once, and after a failed ``open()``.
        """
        with self._state_lock:
            if self._closed:
                return
            self._closed = True

        logger.info("Shutting down Book Archive")
        self._cache.clear_all()

        with self._db_lock.write_lock():
            try:
                if self._conn is not None:
                    self._conn.close()
                if self._engine is not None:
                    self._engine.dispose()
            except SQLAlchemyError as e:
                logger.error("Error while closing database: %s", _diagnostic(e))
            finally:
                self._conn = None
                self._engine = None

    def __enter__(self) -> "BookStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    def __copy__(self):
        raise TypeError("BookStore owns a live connection and cannot be copied")

    def __deepcopy__(self, memo):
        raise TypeError("BookStore owns a live connection and cannot be copied")

    def __reduce__(self):
        raise TypeError("BookStore owns a live connection and cannot be pickled")

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"BookStore({self.config.db_path!r}, {state})"

    # ── Internal helpers ──────────────────────────────────────────────────

    def _connection(self) -> Connection:
        """Return the live connection; call with the connection lock held."""
        if self._closed or self._conn is None:
            raise StoreClosedError(f"Book store is not open: {self.config.db_path}")
        return self._conn

    def _compile(self, sql: str) -> PreparedStatement:
        """Have SQLite compile ``sql`` (via EXPLAIN) without running it."""
        param_count = count_placeholders(sql)
        with self._db_lock.read_lock():
            conn = self._connection()
            try:
                conn.exec_driver_sql(f"EXPLAIN {sql}", (None,) * param_count).close()
            except SQLAlchemyError as e:
                raise PrepareError(_diagnostic(e), sql) from e
        return PreparedStatement(sql, param_count)

    def _prepare(self, sql: str, params: Sequence[object]) -> Tuple[PreparedStatement, Tuple[str, ...]]:
        statement = self._cache.get_or_prepare(sql)
        bound = statement.bind(params)
        return statement, bound

    def _step(self, fn: Callable[[], T], backoff: _Backoff) -> T:
        """Run ``fn``, retrying while SQLite reports busy/locked."""
        while True:
            try:
                return fn()
            except DBAPIError as e:
                if backoff.should_retry(e):
                    continue
                raise

    # ── Statement execution ───────────────────────────────────────────────

    def execute(self, sql: str, params: Sequence[object] = ()) -> int:
        """
        Run a write statement (INSERT/UPDATE/DELETE).

        Returns:
            Number of rows affected (0 is a normal outcome)

        Raises:
            StoreClosedError, PrepareError, BindError
            ExecError: the statement failed, or stayed busy after every retry
        """
        if self._closed:
            raise StoreClosedError(f"Book store is not open: {self.config.db_path}")
        logger.debug("Executing SQL: %s with %d parameters", sql, len(params))

        statement, bound = self._prepare(sql, params)
        backoff = _Backoff(self.config.retry)

        with self._db_lock.write_lock():
            conn = self._connection()
            try:
                result = self._step(
                    lambda: conn.exec_driver_sql(statement.sql, bound), backoff
                )
            except DBAPIError as e:
                raise ExecError(f"Failed to execute SQL: {_diagnostic(e)}") from e
            rowcount = result.rowcount
            result.close()

        logger.debug("Statement affected %d row(s)", rowcount)
        return rowcount

    def query(self, sql: str, params: Sequence[object] = ()) -> List[Book]:
        """
        Run a SELECT returning ``(id, title, author, created_at)`` rows.

        Prepare and bind failures are logged and yield an empty list. A busy
        database is retried while the statement is first stepped. A failure
        part-way through the rows, including a row that does not decode as a
        Book, is logged and the rows fetched so far are returned.

        Raises:
            StoreClosedError: the store has been shut down
        """
        if self._closed:
            raise StoreClosedError(f"Book store is not open: {self.config.db_path}")
        logger.debug("Executing query: %s", sql)

        try:
            statement, bound = self._prepare(sql, params)
        except (PrepareError, BindError) as e:
            logger.error("Query not run: %s", e)
            return []

        try:
            books = self._fetch_books(statement, bound)
        except QueryError as e:
            logger.error("Failed to execute query: %s", e)
            books = e.rows

        if books:
            logger.debug("Query returned %d results", len(books))
        else:
            logger.debug("Query returned no results")
        return books

    def _fetch_books(self, statement: PreparedStatement, bound: Tuple[str, ...]) -> List[Book]:
        books: List[Book] = []
        backoff = _Backoff(self.config.retry)

        with self._db_lock.read_lock():
            conn = self._connection()
            try:
                result: CursorResult = self._step(
                    lambda: conn.exec_driver_sql(statement.sql, bound), backoff
                )
            except DBAPIError as e:
                raise QueryError(_diagnostic(e), books) from e

        try:
            while True:
                with self._db_lock.read_lock():
                    if self._closed:
                        raise QueryError("store was shut down during the query", books)
                    # No retry here: SQLAlchemy closes the cursor on any
                    # driver error, so a failed fetch cannot be resumed
                    try:
                        row = result.fetchone()
                    except DBAPIError as e:
                        raise QueryError(_diagnostic(e), books) from e
                if row is None:
                    break
                try:
                    books.append(Book.from_row(row))
                except (ValueError, TypeError, IndexError) as e:
                    raise QueryError(f"Cannot decode row {tuple(row)!r}: {e}", books) from e
        finally:
            with self._db_lock.read_lock():
                if not self._closed:
                    result.close()

        return books

    # ── Public API ────────────────────────────────────────────────────────

    def _write(self, action: str, sql: str, params: Sequence[object]) -> bool:
        try:
            self.execute(sql, params)
        except StoreError as e:
            logger.error("Failed to %s: %s", action, e)
            return False
        return True

    def _read(self, sql: str, params: Sequence[object] = ()) -> List[Book]:
        try:
            return self.query(sql, params)
        except StoreError as e:
            logger.error("%s", e)
            return []

    def add_book(self, book_id: int, title: str, author: str) -> bool:
        """
        Insert a new book.

        Returns:
            True on success; False if the id already exists, title/author is
            empty, or the database refused the write
        """
        logger.info("Adding book: ID=%s, Title='%s', Author='%s'", book_id, title, author)
        if not title or not author:
            logger.error("Failed to add book %s: title and author must not be empty", book_id)
            return False
        return self._write("add book", schema.INSERT_BOOK, (int(book_id), title, author))

    def delete_book(self, book_id: int) -> bool:
        """Delete a book by id. Deleting an unknown id is a success."""
        logger.info("Deleting book with ID: %s", book_id)
        return self._write("delete book", schema.DELETE_BOOK, (int(book_id),))

    def update_book(self, book_id: int, title: str, author: str) -> bool:
        """Replace title and author of a book. Updating an unknown id is a success."""
        logger.info(
            "Updating book: ID=%s, New Title='%s', New Author='%s'", book_id, title, author
        )
        if not title or not author:
            logger.error("Failed to update book %s: title and author must not be empty", book_id)
            return False
        return self._write("update book", schema.UPDATE_BOOK, (title, author, int(book_id)))

    def search_books(self, keyword: str) -> List[Book]:
        """Books whose title or author contains ``keyword``, ordered by id."""
        logger.info("Searching for books with keyword: '%s'", keyword)
        pattern = schema.like_pattern(keyword)
        return self._read(schema.SEARCH_BOOKS, (pattern, pattern))

    def list_books(self) -> List[Book]:
        """All books ordered by id."""
        logger.info("Listing all books")
        return self._read(schema.SELECT_ALL_BOOKS)

    def get_book(self, book_id: int) -> Optional[Book]:
        """Get book by id, or None."""
        books = self._read(schema.SELECT_BOOK, (int(book_id),))
        return books[0] if books else None
