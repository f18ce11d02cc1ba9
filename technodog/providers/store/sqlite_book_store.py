"""SQLite-backed store for published books awaiting metadata research."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from technodog.interfaces.content_store import IBookStore
from technodog.models.content import Book
from technodog.providers.store.sqlite_base import SQLiteStore

_SCHEMA = (
    """\
CREATE TABLE IF NOT EXISTS books (
    id              TEXT PRIMARY KEY,
    title           TEXT NOT NULL,
    author          TEXT NOT NULL DEFAULT '',
    isbn            TEXT,
    publisher       TEXT,
    year_published  INTEGER,
    pages           INTEGER,
    status          TEXT NOT NULL DEFAULT 'published'
);
""",
)

_COLUMNS = "id, title, author, isbn, publisher, year_published, pages, status"


def _row_to_book(row: dict[str, Any]) -> Book:
    return Book(**row)


class SQLiteBookStore(SQLiteStore, IBookStore):
    _SCHEMA = _SCHEMA

    def __init__(self, db_path: str | Path) -> None:
        super().__init__(db_path)

    async def list_books_missing_metadata(self, limit: int = 5) -> list[Book]:
        rows = await self._fetch_all(
            f"SELECT {_COLUMNS} FROM books WHERE status = 'published' "
            "AND (isbn IS NULL OR publisher IS NULL OR year_published IS NULL) "
            "ORDER BY title LIMIT ?",
            (limit,),
        )
        return [_row_to_book(r) for r in rows]

    async def get_books(self, book_ids: list[str]) -> list[Book]:
        if not book_ids:
            return []
        marks = ", ".join("?" for _ in book_ids)
        rows = await self._fetch_all(
            f"SELECT {_COLUMNS} FROM books WHERE status = 'published' AND id IN ({marks})",
            tuple(book_ids),
        )
        return [_row_to_book(r) for r in rows]

    async def add_book(self, book: Book) -> Book:
        async with self._connect() as db:
            await db.execute(
                f"INSERT OR REPLACE INTO books ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    book.id,
                    book.title,
                    book.author,
                    book.isbn,
                    book.publisher,
                    book.year_published,
                    book.pages,
                    book.status,
                ),
            )
            await db.commit()
        return book
