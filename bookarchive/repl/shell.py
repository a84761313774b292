"""Interactive shell for managing the book archive."""

import logging
import platform
import sqlite3
from typing import Callable, Dict, List, Optional

import sqlalchemy
from prompt_toolkit import PromptSession
from prompt_toolkit.history import FileHistory, InMemoryHistory
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .. import __version__
from ..db.store import BookStore
from ..exceptions import CommandError
from ..log import current_level, set_level
from ..models import Book
from .parsing import parse_book_id, parse_id_title_author, parse_keyword, split_command

logger = logging.getLogger(__name__)

TITLE_WIDTH = 30
AUTHOR_WIDTH = 20


def version_info() -> List[str]:
    """Version lines shared by the ``version`` command and ``--version``."""
    return [
        f"Book Archive Version: {__version__}",
        f"SQLite version: {sqlite3.sqlite_version}",
        f"SQLAlchemy version: {sqlalchemy.__version__}",
        f"Python version: {platform.python_version()}",
    ]


def truncate(text: str, width: int) -> str:
    """Shorten ``text`` to ``width`` characters, marking the cut with '...'."""
    if len(text) <= width:
        return text
    return text[: width - 3] + "..."


class ArchiveShell:
    """Interactive shell over a BookStore.

    Commands:
    - add, delete, update: Modify the archive
    - search, display: Show books
    - help, version, debug: Information and log level
    - exit, quit: Leave the shell

    The shell does not own the store; whoever opened it shuts it down.
    """

    def __init__(
        self,
        store: BookStore,
        console: Optional[Console] = None,
        session: Optional[PromptSession] = None,
        prompt: str = "> ",
        history_file: Optional[str] = None,
    ):
        self.store = store
        self.console = console or Console()
        self.prompt = prompt
        self.running = True
        self._session = session
        self._history_file = history_file

        self.commands: Dict[str, Callable[[str], None]] = {
            "add": self.cmd_add,
            "delete": self.cmd_delete,
            "update": self.cmd_update,
            "search": self.cmd_search,
            "display": self.cmd_display,
            "help": self.cmd_help,
            "?": self.cmd_help,
            "version": self.cmd_version,
            "debug": self.cmd_debug,
            "exit": self.cmd_exit,
            "quit": self.cmd_exit,
        }

    @property
    def session(self) -> PromptSession:
        # Created on first use so that tests never need a terminal
        if self._session is None:
            history = (
                FileHistory(self._history_file) if self._history_file else InMemoryHistory()
            )
            self._session = PromptSession(history=history)
        return self._session

    def run(self) -> None:
        """Run the shell main loop until exit, end of input or a termination signal."""
        self.console.print(
            f"[bold cyan]Book Archive {__version__}[/bold cyan] - Library Management Tool"
        )
        self.console.print("Type 'help' for available commands, 'exit' to quit.")

        try:
            while self.running:
                line = self.session.prompt(self.prompt).strip()
                if line:
                    self.execute(line)
        except EOFError:
            self.console.print("\nExiting Book Archive. Goodbye!")
        except KeyboardInterrupt:
            self.console.print("\nReceived termination signal. Shutting down gracefully...")
        finally:
            self.running = False

    def execute(self, line: str) -> None:
        """Parse and execute a command line."""
        action, args = split_command(line)
        if not action:
            return

        command = self.commands.get(action)
        if command is None:
            self.console.print("Invalid command. Type 'help' for a list of commands.")
            return

        try:
            command(args)
        except CommandError as e:
            self.console.print(f"[red]Error:[/red] {escape(str(e))}")
            logger.error("Command error: %s (Command: %s)", e, line)

    # ── Output helpers ────────────────────────────────────────────────────

    def _book_table(self, books: List[Book], title: Optional[str] = None) -> Table:
        table = Table(title=title, show_header=True, header_style="bold magenta")
        table.add_column("ID", justify="right", style="cyan")
        table.add_column("Title")
        table.add_column("Author")
        for book in books:
            table.add_row(
                str(book.id),
                escape(truncate(book.title, TITLE_WIDTH)),
                escape(truncate(book.author, AUTHOR_WIDTH)),
            )
        return table

    def _report(self, ok: bool, done: str, verb: str) -> None:
        if ok:
            self.console.print(f"[green]{done}[/green]")
        else:
            self.console.print(
                f"[red]Error:[/red] Failed to {verb} the book. Check logs for details."
            )

    # ── Commands ──────────────────────────────────────────────────────────

    def cmd_add(self, args: str) -> None:
        """Add a new book.

        Usage: add <id> <title>, <author>
        """
        book_id, title, author = parse_id_title_author(args, "add <id> <title>, <author>")
        ok = self.store.add_book(book_id, title, author)
        self._report(ok, "Book added successfully!", "add")

    def cmd_delete(self, args: str) -> None:
        """Delete a book by ID.

        Usage: delete <id>
        """
        book_id = parse_book_id(args)
        ok = self.store.delete_book(book_id)
        self._report(ok, "Book deleted successfully!", "delete")

    def cmd_update(self, args: str) -> None:
        """Update a book's title and author.

        Usage: update <id> <new_title>, <new_author>
        """
        book_id, title, author = parse_id_title_author(
            args, "update <id> <new_title>, <new_author>"
        )
        ok = self.store.update_book(book_id, title, author)
        self._report(ok, "Book updated successfully!", "update")

    def cmd_search(self, args: str) -> None:
        """Search books by title or author.

        Usage: search <keyword>
        """
        keyword = parse_keyword(args)
        books = self.store.search_books(keyword)
        if not books:
            self.console.print(f"No books found matching '{escape(keyword)}'.")
            return
        self.console.print(self._book_table(books, title=f"Search Results for '{escape(keyword)}'"))

    def cmd_display(self, args: str) -> None:
        """Show all books in the database.

        Usage: display
        """
        books = self.store.list_books()
        if not books:
            self.console.print("No books found in the database.")
            return
        self.console.print(self._book_table(books, title="Book Archive - All Books"))
        self.console.print(f"\nTotal: {len(books)} book(s)")

    def cmd_help(self, args: str) -> None:
        """Show help information.

        Usage: help [command]
        """
        name = args.strip()
        if name:
            command = self.commands.get(name)
            if command is None:
                self.console.print(f"[red]Unknown command:[/red] {escape(name)}")
            else:
                self.console.print(f"[bold]{name}[/bold]")
                self.console.print(escape(command.__doc__ or "No documentation available."))
            return

        self.console.print(f"\n[bold cyan]Book Archive {__version__} - Command List[/bold cyan]\n")
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Command", style="cyan")
        table.add_column("Description", style="white")
        table.add_row("add <id> <title>, <author>", "Add a new book")
        table.add_row("delete <id>", "Delete a book by ID")
        table.add_row("update <id> <new_title>, <new_author>", "Update a book's information based on ID")
        table.add_row("search <keyword>", "Search books by title or author")
        table.add_row("display", "Show all books in the database")
        table.add_row(escape("help [cmd]"), "Show this help menu")
        table.add_row("version", "Display the tool version")
        table.add_row("debug", "Toggle debug logging")
        table.add_row("exit, quit", "Quit the program")
        self.console.print(table)

    def cmd_version(self, args: str) -> None:
        """Display version information.

        Usage: version
        """
        for line in version_info():
            self.console.print(line)

    def cmd_debug(self, args: str) -> None:
        """Toggle between DEBUG and INFO logging.

        Usage: debug
        """
        level = "INFO" if current_level() == "DEBUG" else "DEBUG"
        set_level(level)
        logger.info("Log level set to: %s", level)
        self.console.print(f"Logging level switched to {level}.")

    def cmd_exit(self, args: str) -> None:
        """Exit the shell.

        Usage: exit
        """
        self.running = False
        self.console.print("[cyan]Exiting Book Archive. Goodbye![/cyan]")
