"""
Tests for logging setup, signal handling and the Book model.
"""

import io
import logging
import re
import signal
from datetime import datetime

import pytest
from rich.console import Console
from rich.logging import RichHandler

from bookarchive.log import configure_logging, current_level, set_level
from bookarchive.models import Book
from bookarchive.signals import ShutdownRequested, shutdown_on_signals


LINE_RE = re.compile(r"^\[\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\.\d{3}\] \[(\w+)\] (.*)$")


class TestLogging:
    """Tests for configure_logging."""

    def test_file_format(self, tmp_path):
        log_file = tmp_path / "book_archive.log"
        assert configure_logging("INFO", log_file) == log_file

        logging.getLogger("bookarchive.db.store").info("Adding book: ID=1")
        logging.getLogger("bookarchive.db.store").debug("not written")

        lines = log_file.read_text().splitlines()
        assert len(lines) == 1
        match = LINE_RE.match(lines[0])
        assert match is not None
        assert match.groups() == ("INFO", "Adding book: ID=1")

    def test_file_is_appended(self, tmp_path):
        log_file = tmp_path / "book_archive.log"
        log_file.write_text("[2024-01-01 00:00:00.000] [INFO] earlier run\n")

        configure_logging("ERROR", log_file)
        logging.getLogger("bookarchive").error("Failed to add book")

        lines = log_file.read_text().splitlines()
        assert lines[0].endswith("earlier run")
        assert lines[1].endswith("[ERROR] Failed to add book")

    def test_reconfigure_replaces_handler(self, tmp_path):
        first = tmp_path / "first.log"
        second = tmp_path / "second.log"
        configure_logging("ERROR", first)
        configure_logging("ERROR", second)

        logging.getLogger("bookarchive").error("only in second")

        assert "only in second" not in first.read_text()
        assert "only in second" in second.read_text()
        assert len(logging.getLogger("bookarchive").handlers) == 1

    def test_unwritable_file_falls_back_to_terminal(self, tmp_path):
        out = io.StringIO()
        console = Console(file=out, width=200)

        # A directory cannot be opened as a log file
        assert configure_logging("ERROR", tmp_path, console=console) is None

        assert "Could not open log file" in out.getvalue()
        handlers = logging.getLogger("bookarchive").handlers
        assert len(handlers) == 1
        assert isinstance(handlers[0], RichHandler)

    def test_set_level(self, tmp_path):
        configure_logging("ERROR", tmp_path / "a.log")
        assert current_level() == "ERROR"
        set_level("debug")
        assert current_level() == "DEBUG"


class TestSignals:
    """Tests for shutdown_on_signals."""

    def test_signal_raises_shutdown(self):
        previous = signal.getsignal(signal.SIGTERM)

        with pytest.raises(ShutdownRequested) as exc_info:
            with shutdown_on_signals():
                signal.raise_signal(signal.SIGTERM)

        assert exc_info.value.signum == signal.SIGTERM
        assert signal.getsignal(signal.SIGTERM) == previous

    def test_shutdown_is_a_keyboard_interrupt(self):
        assert issubclass(ShutdownRequested, KeyboardInterrupt)

    def test_handlers_restored_on_normal_exit(self):
        previous_int = signal.getsignal(signal.SIGINT)
        previous_term = signal.getsignal(signal.SIGTERM)

        with shutdown_on_signals():
            assert signal.getsignal(signal.SIGTERM) != previous_term

        assert signal.getsignal(signal.SIGINT) == previous_int
        assert signal.getsignal(signal.SIGTERM) == previous_term


class TestBookModel:

    def test_from_row(self):
        book = Book.from_row((1, "Dune", "Frank Herbert", "2024-05-01 12:30:00"))
        assert book.id == 1
        assert book.title == "Dune"
        assert book.created_at == datetime(2024, 5, 1, 12, 30)

    def test_null_text_decodes_to_empty(self):
        book = Book.from_row((2, None, None, None))
        assert book.title == ""
        assert book.author == ""
        assert book.created_at is None

    def test_row_without_timestamp(self):
        assert Book.from_row(("3", "Emma", "Jane Austen")).id == 3

    def test_str(self):
        assert str(Book(1, "Dune", "Frank Herbert")) == "Book(id=1, title='Dune', author='Frank Herbert')"

    def test_frozen(self):
        book = Book(1, "Dune", "Frank Herbert")
        with pytest.raises(AttributeError):
            book.title = "Emma"
