"""Bulk ingestion job: turns pending batches into books and status records."""

import json
from dataclasses import asdict, dataclass
from typing import Any
from uuid import uuid4

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from librarian.cache.book_cache import BookListCache
from librarian.db.repositories.book_repository import BookRepository
from librarian.store.client import KeyValueStore
from librarian.store.keys import (
    BATCH_ERROR_NAMESPACE,
    BATCH_STATUS_NAMESPACE,
    PENDING_BATCH_NAMESPACE,
    pending_batch_key,
    user_id_from_key,
)
from librarian.store.records import (
    BatchErrorRecord,
    BatchStatus,
    BookSubmission,
    submission_title,
    utc_timestamp,
)

logger = structlog.get_logger(__name__)


@dataclass
class IngestionRunSummary:
    """Counters for one pass of the ingestion job."""

    keys_found: int = 0
    batches_processed: int = 0
    batches_discarded: int = 0
    batches_failed: int = 0
    books_inserted: int = 0
    books_failed: int = 0


class BulkIngestionJob:
    """
    Drain every pending batch in the key-value store.

    For each ``bulk_books:{user_id}`` key:
    1. Read and parse the JSON array of submissions
    2. Validate and insert each submission on its own, in order
    3. Write a ``bulk_status:{user_id}:{millis}`` record with counts and failures
    4. Delete the pending key, whatever the failure mix

    Failures are isolated at three levels:
    - Item: validation or insert errors become failure details in the status record
    - Batch: anything else becomes a ``bulk_error`` record and the run moves on
    - Run: losing the store while listing or recording errors aborts the run
    """

    def __init__(
        self,
        store: KeyValueStore,
        session_factory: async_sessionmaker[AsyncSession],
        cache: BookListCache | None = None,
        record_ttl_seconds: int = 86400,
    ) -> None:
        """
        Initialize ingestion job with its resources.

        Args:
            store: Key-value store holding pending batches
            session_factory: Factory for document-store sessions
            cache: Book list cache to invalidate after inserts
            record_ttl_seconds: Expiry of status and error records
        """
        self.store = store
        self.session_factory = session_factory
        self.cache = cache
        self.record_ttl_seconds = record_ttl_seconds

    async def run(self) -> IngestionRunSummary:
        """
        Process every pending batch once.

        Returns:
            Summary counters for the run

        Raises:
            StoreUnavailableError: If the store fails outside per-batch handling
        """
        summary = IngestionRunSummary()
        with structlog.contextvars.bound_contextvars(
            job="bulk_ingestion", run_id=uuid4().hex[:12]
        ):
            logger.info("bulk_ingestion_started")

            keys = await self.store.scan_prefix(PENDING_BATCH_NAMESPACE)
            summary.keys_found = len(keys)
            if not keys:
                logger.info("bulk_ingestion_idle")
                return summary

            logger.info("pending_batches_found", count=len(keys))
            for key in keys:
                await self.process_key(key, summary)

            logger.info("bulk_ingestion_completed", **asdict(summary))
        return summary

    async def process_key(self, key: str, summary: IngestionRunSummary) -> None:
        """
        Process one pending batch key, recording a batch error on failure.

        Args:
            key: ``bulk_books:{user_id}`` key
            summary: Run counters to update
        """
        try:
            user_id = user_id_from_key(key)
        except ValueError:
            logger.warning("pending_batch_key_malformed", key=key)
            await self.store.delete(key)
            summary.batches_discarded += 1
            return

        log = logger.bind(user_id=user_id, key=key)
        try:
            raw = await self.store.get(key)
            if raw is None:
                # Another runner consumed it first
                log.info("pending_batch_vanished")
                return

            submissions = _parse_batch(raw)
            if not submissions:
                log.warning("pending_batch_discarded", reason="invalid_or_empty")
                await self.store.delete(key)
                summary.batches_discarded += 1
                return

            log.info("pending_batch_processing", total_books=len(submissions))
            status = await self.ingest_batch(user_id, submissions)

            status_key = await self.store.set_timestamped(
                BATCH_STATUS_NAMESPACE, user_id, status.to_json(), self.record_ttl_seconds
            )
            await self.store.delete(key)
            if self.cache is not None and status.success_count > 0:
                await self.cache.invalidate(user_id)

            summary.batches_processed += 1
            summary.books_inserted += status.success_count
            summary.books_failed += status.failure_count
            log.info(
                "pending_batch_processed",
                success_count=status.success_count,
                failure_count=status.failure_count,
                status_key=status_key,
            )
        except Exception as e:
            summary.batches_failed += 1
            log.error("pending_batch_failed", error=str(e), exc_info=True)

            error_record = BatchErrorRecord(user_id=user_id, error=str(e))
            error_key = await self.store.set_timestamped(
                BATCH_ERROR_NAMESPACE, user_id, error_record.to_json(), self.record_ttl_seconds
            )
            log.info("batch_error_recorded", error_key=error_key)

    async def ingest_batch(self, user_id: str, submissions: list[Any]) -> BatchStatus:
        """
        Validate and insert each submission independently, in order.

        Args:
            user_id: Owner of the batch
            submissions: Raw submission mappings from the pending batch

        Returns:
            Status record; failure indexes are positions in ``submissions``
        """
        status = BatchStatus(
            user_id=user_id,
            total_books=len(submissions),
            timestamp=utc_timestamp(),
        )

        for index, raw in enumerate(submissions):
            try:
                submission = BookSubmission.from_raw(raw)
                await self._insert_book(user_id, submission)
            except Exception as e:
                status.record_failure(index, submission_title(raw), str(e))
                logger.warning(
                    "bulk_book_failed",
                    user_id=user_id,
                    position=f"{index + 1}/{len(submissions)}",
                    error=str(e),
                )
            else:
                status.record_success()
                logger.debug(
                    "bulk_book_inserted",
                    user_id=user_id,
                    position=f"{index + 1}/{len(submissions)}",
                    title=submission.title,
                )

        return status

    async def _insert_book(self, user_id: str, submission: BookSubmission) -> None:
        # One transaction per book so a duplicate ISBN only loses that book
        async with self.session_factory() as session:
            repo = BookRepository(session)
            await repo.create_book(user_id=user_id, **submission.model_dump())
            await session.commit()


async def enqueue_pending_batch(
    store: KeyValueStore, user_id: str, books: list[dict[str, Any]]
) -> int:
    """
    Append submissions to a user's pending batch for the next ingestion run.

    Not atomic: a concurrent ingestion run may consume the old batch between
    the read and the write, in which case the new batch replaces nothing.

    Args:
        store: Key-value store
        user_id: Owner of the books
        books: Raw submissions, validated later by the job

    Returns:
        Number of submissions now pending for the user
    """
    key = pending_batch_key(user_id)
    existing = await store.get(key)
    batch = (_parse_batch(existing) if existing is not None else None) or []
    batch.extend(books)
    await store.set(key, json.dumps(batch))
    logger.info("pending_batch_enqueued", user_id=user_id, queued=len(books), pending=len(batch))
    return len(batch)


def _parse_batch(raw: str) -> list[Any] | None:
    try:
        batch = json.loads(raw)
    except json.JSONDecodeError:
        return None
    if not isinstance(batch, list):
        return None
    return batch
