"""
bookarchive - a small book collection manager with an SQLAlchemy + SQLite backend.

Main API:
    from bookarchive import BookStore

    # Open or create an archive
    with BookStore.open("book_archive.db") as store:
        store.add_book(1, "Dune", "Frank Herbert")
        store.update_book(1, "Dune Messiah", "Frank Herbert")

        for book in store.search_books("Herbert"):
            print(book.id, book.title, book.author)

        store.delete_book(1)

    # The store is shut down when the with-block exits
"""

__version__ = "1.0.0"

from .db.store import BookStore
from .models import Book

__all__ = ["BookStore", "Book", "__version__"]
