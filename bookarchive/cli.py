import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape

from .config import AppConfig, load_config, parse_log_level
from .db.store import BookStore
from .exceptions import InitError
from .log import configure_logging
from .repl.shell import ArchiveShell, version_info
from .signals import ShutdownRequested, shutdown_on_signals

console = Console()
logger = logging.getLogger(__name__)

app = typer.Typer(
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _version_callback(value: bool):
    if value:
        for line in version_info():
            console.print(line)
        raise typer.Exit()


def run_shell(config: AppConfig) -> int:
    """
    Open the archive, run the interactive shell, and shut the archive down.

    Returns:
        Process exit code
    """
    try:
        with shutdown_on_signals():
            with BookStore.open(config=config.store) as store:
                shell = ArchiveShell(
                    store,
                    console=console,
                    prompt=config.shell.prompt,
                    history_file=config.shell.history_file,
                )
                shell.run()
    except InitError as e:
        console.print(f"[bold red]Fatal error:[/bold red] {escape(str(e))}")
        return 1
    except ShutdownRequested:
        console.print("\nReceived termination signal. Shutting down gracefully...")
    return 0


@app.command()
def main(
    db: Optional[Path] = typer.Option(
        None, "--db", "-d", metavar="PATH",
        help="Database file (default: book_archive.db)",
    ),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", "-l", metavar="LEVEL",
        help="Log level: DEBUG, INFO or ERROR (default: ERROR)",
    ),
    log_file: Optional[Path] = typer.Option(
        None, "--log-file", metavar="PATH",
        help="Log file (default: book_archive.log)",
    ),
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c", metavar="PATH",
        help="Configuration file (default: ~/.config/bookarchive/config.json)",
    ),
    version: bool = typer.Option(
        False, "--version", "-v",
        callback=_version_callback, is_eager=True,
        help="Display version information",
    ),
):
    """
    Book Archive - manage a collection of books stored in SQLite.

    Starts an interactive shell; type 'help' inside it for the command list.
    """
    config = load_config(config_file)

    if db is not None:
        config.store.db_path = str(db)
    if log_file is not None:
        config.logging.log_file = str(log_file)
    if log_level is not None:
        config.logging.level = parse_log_level(
            log_level,
            default=config.logging.level,
            warn=lambda message: console.print(f"[yellow]Warning:[/yellow] {escape(message)}"),
        )

    configure_logging(config.logging.level, config.logging.log_file)
    logger.debug("Starting with configuration: %s", config.to_dict())

    code = run_shell(config)
    if code:
        raise typer.Exit(code=code)
