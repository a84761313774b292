"""Logging setup for the book-archive command.

Log records go to an append-only file; if that file cannot be opened the
records go to the terminal through Rich instead.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler

LOG_FORMAT = "[%(asctime)s.%(msecs)03d] [%(levelname)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Handlers installed by configure_logging, so a second call can replace them
_installed = []


def configure_logging(
    level: str = "ERROR",
    log_file: Optional[Union[str, Path]] = None,
    console: Optional[Console] = None,
) -> Optional[Path]:
    """
    Configure the ``bookarchive`` logger.

    Args:
        level: DEBUG, INFO or ERROR
        log_file: File to append records to; None logs to the terminal
        console: Console used for the fallback handler and warnings

    Returns:
        Path of the log file in use, or None when logging to the terminal
    """
    console = console or Console(stderr=True)
    logger = logging.getLogger("bookarchive")

    for handler in _installed:
        logger.removeHandler(handler)
        handler.close()
    _installed.clear()

    handler: logging.Handler
    path = None
    if log_file is not None:
        try:
            handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
            handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
            path = Path(log_file)
        except OSError as e:
            console.print(
                f"[yellow]Warning:[/yellow] Could not open log file {log_file}: {e}. "
                "Logging to the terminal."
            )
            log_file = None

    if log_file is None:
        handler = RichHandler(console=console, rich_tracebacks=True, show_path=False)
        handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))

    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper(), logging.ERROR))
    logger.propagate = False
    _installed.append(handler)
    return path


def set_level(level: str) -> None:
    """Change the ``bookarchive`` log level at runtime."""
    logging.getLogger("bookarchive").setLevel(getattr(logging, level.upper(), logging.ERROR))


def current_level() -> str:
    return logging.getLevelName(logging.getLogger("bookarchive").getEffectiveLevel())
