"""Data models for bookarchive."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Sequence

__all__ = ["Book"]


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _timestamp(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    try:
        # SQLite CURRENT_TIMESTAMP is "YYYY-MM-DD HH:MM:SS" in UTC
        return datetime.fromisoformat(str(value))
    except ValueError:
        return None


@dataclass(frozen=True)
class Book:
    """
    One row of the ``books`` table.

    Fields
    ──────
    id: caller-supplied primary key
    title: book title (never None; NULL decodes to "")
    author: book author (never None; NULL decodes to "")
    created_at: timestamp assigned by the database on insert
    """
    id: int
    title: str
    author: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Sequence[Any]) -> "Book":
        """Decode an ``(id, title, author[, created_at])`` row."""
        created = row[3] if len(row) > 3 else None
        return cls(
            id=int(row[0]),
            title=_text(row[1]),
            author=_text(row[2]),
            created_at=_timestamp(created),
        )

    def __str__(self) -> str:
        return f"Book(id={self.id}, title={self.title!r}, author={self.author!r})"
