"""Argument parsing for shell commands.

Titles may contain spaces and apostrophes, so arguments are split by hand
rather than with shlex: ``<id> <title>, <author>`` splits on the first
whitespace and then on the first comma.
"""

from typing import Tuple

from ..exceptions import CommandError


def split_command(line: str) -> Tuple[str, str]:
    """Split a line into (action, rest-of-line)."""
    parts = line.strip().split(None, 1)
    if not parts:
        return "", ""
    action = parts[0]
    rest = parts[1] if len(parts) > 1 else ""
    return action, rest


def parse_book_id(text: str) -> int:
    """Parse a book id, raising CommandError when it is missing or not an integer."""
    text = text.strip()
    if not text:
        raise CommandError("Missing book ID")
    try:
        return int(text)
    except ValueError:
        raise CommandError(f"Invalid book ID: {text}") from None


def parse_id_title_author(args: str, usage: str) -> Tuple[int, str, str]:
    """
    Parse ``<id> <title>, <author>``.

    Args:
        args: Everything after the command name
        usage: Usage string shown when the comma is missing

    Returns:
        (book_id, title, author) with surrounding whitespace removed
    """
    parts = args.strip().split(None, 1)
    book_id = parse_book_id(parts[0] if parts else "")
    remainder = parts[1] if len(parts) > 1 else ""

    if "," not in remainder:
        raise CommandError(f"Invalid format. Use: {usage}")

    title, author = remainder.split(",", 1)
    title = title.strip()
    author = author.strip()
    if not title or not author:
        raise CommandError("Title and author cannot be empty")

    return book_id, title, author


def parse_keyword(args: str) -> str:
    keyword = args.strip()
    if not keyword:
        raise CommandError("Missing search keyword")
    return keyword
