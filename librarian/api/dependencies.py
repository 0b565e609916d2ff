"""FastAPI dependencies for route handlers."""

from collections.abc import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from librarian.cache.book_cache import BookListCache
from librarian.config import settings
from librarian.db.repositories.book_repository import BookRepository
from librarian.db.session import get_session
from librarian.store.client import KeyValueStore


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Provide async database session to route handlers.

    Commits when the handler returns and rolls back when it raises.

    Yields:
        AsyncSession: Database session for the request
    """
    async for session in get_session():
        yield session


def get_store(request: Request) -> KeyValueStore:
    """Key-value store opened by the application lifespan."""
    return request.app.state.store  # type: ignore[no-any-return]


def get_book_cache(store: KeyValueStore = Depends(get_store)) -> BookListCache:  # noqa: B008
    return BookListCache(store, ttl_seconds=settings.book_cache_ttl_seconds)


def get_book_repository(db: AsyncSession = Depends(get_db)) -> BookRepository:  # noqa: B008
    return BookRepository(db)
