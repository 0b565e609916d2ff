"""Pytest configuration and fixtures."""

import json
import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from typing import Any
from unittest.mock import AsyncMock

import pytest

# Required settings must exist before librarian.config is imported
os.environ.setdefault("DATABASE_URL", "postgresql+asyncpg://postgres@localhost/librarian_test")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("JWT_SECRET", "test-secret")

from librarian.config import Settings  # noqa: E402
from librarian.db.models.book import Book  # noqa: E402
from librarian.store.client import KeyValueStore  # noqa: E402
from librarian.utils.exceptions import DuplicateIsbnError  # noqa: E402


class InMemoryKeyValueStore(KeyValueStore):
    """Dict-backed store with the same interface as the Redis store."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int | None] = {}
        self.closed = False

    async def ping(self) -> None:
        return None

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    async def set(
        self,
        key: str,
        value: str,
        ttl_seconds: int | None = None,
        only_if_absent: bool = False,
    ) -> bool:
        if only_if_absent and key in self.data:
            return False
        self.data[key] = value
        self.ttls[key] = ttl_seconds
        return True

    async def delete(self, key: str) -> None:
        self.data.pop(key, None)
        self.ttls.pop(key, None)

    async def scan_prefix(self, namespace: str) -> list[str]:
        return sorted(key for key in self.data if key.startswith(f"{namespace}:"))

    async def close(self) -> None:
        self.closed = True

    # Test helpers
    def keys_in(self, namespace: str) -> list[str]:
        return sorted(key for key in self.data if key.startswith(f"{namespace}:"))

    def load(self, key: str) -> Any:
        return json.loads(self.data[key])

    def put_json(self, key: str, value: Any) -> None:
        self.data[key] = json.dumps(value)
        self.ttls[key] = None


class InMemoryCatalog:
    """Book storage shared by fake repositories; ISBNs are globally unique."""

    def __init__(self, existing_isbns: tuple[str, ...] = ()) -> None:
        self.books: list[Book] = []
        self.isbns: set[str] = set(existing_isbns)


class FakeBookRepository:
    """In-memory stand-in for BookRepository."""

    def __init__(self, catalog: InMemoryCatalog) -> None:
        self.catalog = catalog
        self.session = AsyncMock()

    async def create_book(self, user_id: str, title: str, author: str, isbn: str | None = None, **fields: Any) -> Book:
        if isbn and isbn in self.catalog.isbns:
            raise DuplicateIsbnError(isbn)
        book = Book(user_id=user_id, title=title, author=author, isbn=isbn, **fields)
        if isbn:
            self.catalog.isbns.add(isbn)
        self.catalog.books.append(book)
        return book

    async def list_books_for_user(self, user_id: str) -> list[Book]:
        owned = [book for book in self.catalog.books if book.user_id == user_id]
        return sorted(owned, key=lambda book: book.created_at, reverse=True)

    async def get_book_for_user(self, book_id: Any, user_id: str) -> Book | None:
        for book in self.catalog.books:
            if book.id == book_id and book.user_id == user_id:
                return book
        return None

    async def update_book_for_user(self, book_id: Any, user_id: str, changes: dict[str, Any]) -> Book | None:
        book = await self.get_book_for_user(book_id, user_id)
        if book is None:
            return None
        new_isbn = changes.get("isbn")
        if new_isbn and new_isbn != book.isbn and new_isbn in self.catalog.isbns:
            raise DuplicateIsbnError(new_isbn)
        for field, value in changes.items():
            setattr(book, field, value)
        if new_isbn:
            self.catalog.isbns.add(new_isbn)
        return book

    async def delete_book_for_user(self, book_id: Any, user_id: str) -> Book | None:
        book = await self.get_book_for_user(book_id, user_id)
        if book is None:
            return None
        self.catalog.books.remove(book)
        if book.isbn:
            self.catalog.isbns.discard(book.isbn)
        return book


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def catalog() -> InMemoryCatalog:
    return InMemoryCatalog()


@pytest.fixture
def session_factory():
    """
    Async session factory yielding one shared AsyncMock session.

    The session is exposed as ``session_factory.session`` for assertions.
    """
    session = AsyncMock()

    @asynccontextmanager
    async def factory():
        yield session

    factory.session = session  # type: ignore[attr-defined]
    return factory


@pytest.fixture
def test_settings() -> Generator[Settings, None, None]:
    """
    Provide test configuration with overrides.

    Yields:
        Settings instance for testing
    """
    # Save original environment
    original_env = os.environ.copy()

    os.environ["DATABASE_URL"] = "postgresql+asyncpg://postgres@localhost/librarian_test"
    os.environ["REDIS_URL"] = "redis://localhost:6379/15"
    os.environ["LOG_LEVEL"] = "DEBUG"
    os.environ["DEFAULT_REPORT_EMAIL"] = "reports@example.com"

    settings = Settings(_env_file=None)  # type: ignore[call-arg]

    yield settings

    # Restore original environment
    os.environ.clear()
    os.environ.update(original_env)
