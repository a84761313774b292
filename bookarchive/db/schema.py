"""SQL text for the books table.

Every statement the store runs is one of these literals, so the statement
cache holds at most one entry per constant below.
"""

CREATE_BOOKS_TABLE = """
CREATE TABLE IF NOT EXISTS books (
    id INTEGER PRIMARY KEY,
    title TEXT NOT NULL,
    author TEXT NOT NULL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
"""

CREATE_TITLE_AUTHOR_INDEX = (
    "CREATE INDEX IF NOT EXISTS idx_books_title_author ON books(title, author);"
)

INSERT_BOOK = "INSERT INTO books (id, title, author) VALUES (?, ?, ?);"
DELETE_BOOK = "DELETE FROM books WHERE id = ?;"
UPDATE_BOOK = "UPDATE books SET title = ?, author = ? WHERE id = ?;"

SELECT_ALL_BOOKS = "SELECT id, title, author, created_at FROM books ORDER BY id;"
SELECT_BOOK = "SELECT id, title, author, created_at FROM books WHERE id = ?;"
SEARCH_BOOKS = (
    "SELECT id, title, author, created_at FROM books "
    "WHERE title LIKE ? ESCAPE '\\' OR author LIKE ? ESCAPE '\\' "
    "ORDER BY id;"
)


def like_pattern(keyword: str) -> str:
    """Wrap ``keyword`` for a substring LIKE match, escaping LIKE wildcards."""
    escaped = (
        keyword.replace("\\", "\\\\")
        .replace("%", "\\%")
        .replace("_", "\\_")
    )
    return f"%{escaped}%"
