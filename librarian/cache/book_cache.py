"""Per-user cache of book lists in the key-value store."""

import json
from typing import Any

import structlog

from librarian.store.client import KeyValueStore
from librarian.store.keys import book_list_cache_key

logger = structlog.get_logger(__name__)


class BookListCache:
    """Time-limited snapshot of each user's book list.

    Entries are deleted whenever the user's books change, so a read after
    any write misses and goes to the database.
    """

    def __init__(self, store: KeyValueStore, ttl_seconds: int = 3600):
        self.store = store
        self.ttl_seconds = ttl_seconds

    async def get(self, user_id: str) -> list[dict[str, Any]] | None:
        """Return the cached list, or None on a miss or unreadable entry."""
        raw = await self.store.get(book_list_cache_key(user_id))
        if raw is None:
            return None
        try:
            books = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("book_cache_entry_corrupt", user_id=user_id)
            return None
        if not isinstance(books, list):
            return None
        return books

    async def set(self, user_id: str, books: list[dict[str, Any]]) -> None:
        await self.store.set(
            book_list_cache_key(user_id),
            json.dumps(books, default=str),
            ttl_seconds=self.ttl_seconds,
        )

    async def invalidate(self, user_id: str) -> None:
        await self.store.delete(book_list_cache_key(user_id))
        logger.debug("book_cache_invalidated", user_id=user_id)
