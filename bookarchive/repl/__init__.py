"""REPL shell for interactive archive management.

This module provides an interactive shell for adding, updating, deleting
and searching the books in an archive.
"""

from bookarchive.repl.shell import ArchiveShell

__all__ = ["ArchiveShell"]
