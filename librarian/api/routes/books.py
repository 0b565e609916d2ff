"""Book API endpoints: per-user CRUD, cached listing and bulk queueing."""

from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from librarian.api.dependencies import get_book_cache, get_book_repository, get_store
from librarian.api.schemas.books import (
    BookCreate,
    BookRead,
    BookResponse,
    BooksListResponse,
    BookUpdate,
    BulkAcceptedResponse,
    BulkBooksRequest,
    MessageResponse,
)
from librarian.api.security import CurrentUser, get_current_user
from librarian.cache.book_cache import BookListCache
from librarian.db.repositories.book_repository import BookRepository
from librarian.jobs.ingestion import enqueue_pending_batch
from librarian.store.client import KeyValueStore

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/books", tags=["books"])


def _not_found(book_id: UUID) -> HTTPException:
    logger.warning("book_not_found", book_id=str(book_id))
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Book not found")


@router.post(
    "",
    response_model=BookResponse,
    summary="Create book",
    status_code=status.HTTP_201_CREATED,
    responses={400: {"description": "Book with this ISBN already exists"}},
)
async def create_book(
    payload: BookCreate,
    user: CurrentUser = Depends(get_current_user),  # noqa: B008
    repo: BookRepository = Depends(get_book_repository),  # noqa: B008
    cache: BookListCache = Depends(get_book_cache),  # noqa: B008
) -> BookResponse:
    """Create a book owned by the caller and invalidate their cached list."""
    book = await repo.create_book(user_id=user.id, **payload.model_dump())
    await repo.session.commit()
    await cache.invalidate(user.id)

    logger.info("book_created", book_id=str(book.id))
    return BookResponse(message="Book created successfully", book=BookRead.model_validate(book))


@router.get(
    "",
    response_model=BooksListResponse,
    summary="List books",
    description="List the caller's books, newest first, served from cache when possible",
)
async def list_books(
    user: CurrentUser = Depends(get_current_user),  # noqa: B008
    repo: BookRepository = Depends(get_book_repository),  # noqa: B008
    cache: BookListCache = Depends(get_book_cache),  # noqa: B008
) -> BooksListResponse:
    """
    List books with a per-user read-through cache.

    Returns:
        BooksListResponse with ``source`` set to ``cache`` or ``database``
    """
    cached = await cache.get(user.id)
    if cached is not None:
        logger.info("list_books_cache_hit", books_count=len(cached))
        return BooksListResponse(
            source="cache", books=[BookRead.model_validate(book) for book in cached]
        )

    books = [BookRead.model_validate(book) for book in await repo.list_books_for_user(user.id)]
    await cache.set(user.id, [book.model_dump(mode="json", by_alias=True) for book in books])

    logger.info("list_books_cache_miss", books_count=len(books))
    return BooksListResponse(source="database", books=books)


@router.post(
    "/bulk",
    response_model=BulkAcceptedResponse,
    summary="Queue books for bulk insertion",
    description="Books are inserted by the ingestion job; a report is emailed afterwards",
    status_code=status.HTTP_202_ACCEPTED,
)
async def bulk_create_books(
    payload: BulkBooksRequest,
    user: CurrentUser = Depends(get_current_user),  # noqa: B008
    store: KeyValueStore = Depends(get_store),  # noqa: B008
    cache: BookListCache = Depends(get_book_cache),  # noqa: B008
) -> BulkAcceptedResponse:
    """Append the books to the caller's pending batch."""
    pending = await enqueue_pending_batch(store, user.id, payload.books)
    await cache.invalidate(user.id)

    return BulkAcceptedResponse(
        message=f"{len(payload.books)} books queued for insertion",
        queued=len(payload.books),
        pending=pending,
    )


@router.delete(
    "/cache",
    response_model=MessageResponse,
    summary="Invalidate cached book list",
)
async def invalidate_cache(
    user: CurrentUser = Depends(get_current_user),  # noqa: B008
    cache: BookListCache = Depends(get_book_cache),  # noqa: B008
) -> MessageResponse:
    await cache.invalidate(user.id)
    return MessageResponse(message="Cache invalidated successfully")


@router.get(
    "/{book_id}",
    response_model=BookResponse,
    summary="Get book",
    responses={404: {"description": "Book not found"}},
)
async def get_book(
    book_id: UUID,
    user: CurrentUser = Depends(get_current_user),  # noqa: B008
    repo: BookRepository = Depends(get_book_repository),  # noqa: B008
) -> BookResponse:
    book = await repo.get_book_for_user(book_id, user.id)
    if book is None:
        raise _not_found(book_id)
    return BookResponse(book=BookRead.model_validate(book))


@router.put(
    "/{book_id}",
    response_model=BookResponse,
    summary="Update book",
    responses={
        400: {"description": "Book with this ISBN already exists"},
        404: {"description": "Book not found"},
    },
)
async def update_book(
    book_id: UUID,
    payload: BookUpdate,
    user: CurrentUser = Depends(get_current_user),  # noqa: B008
    repo: BookRepository = Depends(get_book_repository),  # noqa: B008
    cache: BookListCache = Depends(get_book_cache),  # noqa: B008
) -> BookResponse:
    """Update the provided fields of one of the caller's books."""
    book = await repo.update_book_for_user(book_id, user.id, payload.model_dump(exclude_unset=True))
    if book is None:
        raise _not_found(book_id)
    await repo.session.commit()
    await cache.invalidate(user.id)

    logger.info("book_updated", book_id=str(book_id))
    return BookResponse(message="Book updated successfully", book=BookRead.model_validate(book))


@router.delete(
    "/{book_id}",
    response_model=BookResponse,
    summary="Delete book",
    responses={404: {"description": "Book not found"}},
)
async def delete_book(
    book_id: UUID,
    user: CurrentUser = Depends(get_current_user),  # noqa: B008
    repo: BookRepository = Depends(get_book_repository),  # noqa: B008
    cache: BookListCache = Depends(get_book_cache),  # noqa: B008
) -> BookResponse:
    book = await repo.delete_book_for_user(book_id, user.id)
    if book is None:
        raise _not_found(book_id)
    await repo.session.commit()
    await cache.invalidate(user.id)

    logger.info("book_deleted", book_id=str(book_id))
    return BookResponse(message="Book deleted successfully", book=BookRead.model_validate(book))
