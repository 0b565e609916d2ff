"""Unit tests for the bulk ingestion job."""

import json

import pytest

from librarian.cache.book_cache import BookListCache
from librarian.jobs.ingestion import BulkIngestionJob, enqueue_pending_batch
from librarian.store.keys import BATCH_STATUS_NAMESPACE, book_list_cache_key
from librarian.store.records import MISSING_REQUIRED_FIELDS
from librarian.utils.exceptions import StoreUnavailableError
from tests.conftest import FakeBookRepository, InMemoryCatalog, InMemoryKeyValueStore


@pytest.fixture
def catalog(monkeypatch: pytest.MonkeyPatch) -> InMemoryCatalog:
    """Catalog that already holds ISBN ``same``, wired into the job's repository."""
    catalog = InMemoryCatalog(existing_isbns=("same",))
    monkeypatch.setattr(
        "librarian.jobs.ingestion.BookRepository", lambda session: FakeBookRepository(catalog)
    )
    return catalog


@pytest.fixture
def job(store: InMemoryKeyValueStore, session_factory, catalog: InMemoryCatalog) -> BulkIngestionJob:
    return BulkIngestionJob(
        store=store,
        session_factory=session_factory,
        cache=BookListCache(store),
        record_ttl_seconds=600,
    )


class TestBulkIngestionJob:
    """Test suite for BulkIngestionJob."""

    @pytest.mark.asyncio
    async def test_mixed_batch_records_each_failure(
        self, job: BulkIngestionJob, store: InMemoryKeyValueStore, catalog: InMemoryCatalog
    ) -> None:
        """One good book, one missing title, one duplicate ISBN."""
        store.put_json(
            "bulk_books:42",
            [
                {"title": "A", "author": "X"},
                {"title": "", "author": "Y"},
                {"title": "C", "author": "Z", "isbn": "same"},
            ],
        )

        summary = await job.run()

        assert summary.batches_processed == 1
        assert summary.books_inserted == 1
        assert summary.books_failed == 2
        assert [book.title for book in catalog.books] == ["A"]
        assert catalog.books[0].user_id == "42"
        assert "bulk_books:42" not in store.data

        [status_key] = store.keys_in(BATCH_STATUS_NAMESPACE)
        assert status_key.startswith("bulk_status:42:")
        assert store.ttls[status_key] == 600

        status = store.load(status_key)
        assert status["userId"] == "42"
        assert status["totalBooks"] == 3
        assert status["successCount"] == 1
        assert status["failureCount"] == 2
        assert [f["index"] for f in status["failures"]] == [1, 2]
        assert [f["title"] for f in status["failures"]] == ["Unknown", "C"]
        assert status["failures"][0]["error"] == MISSING_REQUIRED_FIELDS
        assert status["failures"][1]["error"] == "Book with ISBN same already exists"

    @pytest.mark.asyncio
    async def test_failure_indexes_increase_with_position(
        self, job: BulkIngestionJob, store: InMemoryKeyValueStore
    ) -> None:
        store.put_json(
            "bulk_books:42",
            [
                {"author": "no title"},
                {"title": "ok", "author": "X"},
                {"title": "bad year", "author": "X", "publishedDate": "someday"},
                {"title": "ok too", "author": "X"},
                "not a book",
            ],
        )

        await job.run()

        [status_key] = store.keys_in(BATCH_STATUS_NAMESPACE)
        status = store.load(status_key)
        assert [f["index"] for f in status["failures"]] == [0, 2, 4]
        assert status["successCount"] + status["failureCount"] == status["totalBooks"]

    @pytest.mark.asyncio
    async def test_published_date_is_stored_as_year(
        self, job: BulkIngestionJob, store: InMemoryKeyValueStore, catalog: InMemoryCatalog
    ) -> None:
        store.put_json(
            "bulk_books:42",
            [{"title": "A", "author": "X", "publishedDate": "1999-04-01"}],
        )

        await job.run()

        assert catalog.books[0].published_year == 1999

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", ["not json", '{"title": "A"}', "[]"])
    async def test_malformed_batch_is_discarded(
        self, job: BulkIngestionJob, store: InMemoryKeyValueStore, raw: str
    ) -> None:
        store.data["bulk_books:42"] = raw

        summary = await job.run()

        assert summary.batches_discarded == 1
        assert "bulk_books:42" not in store.data
        assert store.keys_in(BATCH_STATUS_NAMESPACE) == []

    @pytest.mark.asyncio
    async def test_vanished_key_is_skipped(
        self, job: BulkIngestionJob, store: InMemoryKeyValueStore
    ) -> None:
        summary = await job.run()
        await job.process_key("bulk_books:42", summary)

        assert store.data == {}
        assert summary.batches_failed == 0

    @pytest.mark.asyncio
    async def test_status_write_failure_keeps_batch_and_continues(
        self,
        job: BulkIngestionJob,
        store: InMemoryKeyValueStore,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        store.put_json("bulk_books:1", [{"title": "A", "author": "X"}])
        store.put_json("bulk_books:2", [{"title": "B", "author": "X"}])
        real_set_timestamped = store.set_timestamped

        async def flaky_set_timestamped(namespace, user_id, value, ttl_seconds):
            if namespace == BATCH_STATUS_NAMESPACE and user_id == "1":
                raise StoreUnavailableError("connection reset")
            return await real_set_timestamped(namespace, user_id, value, ttl_seconds)

        monkeypatch.setattr(store, "set_timestamped", flaky_set_timestamped)

        summary = await job.run()

        assert summary.batches_failed == 1
        assert summary.batches_processed == 1
        assert "bulk_books:1" in store.data
        [error_key] = store.keys_in("bulk_error")
        assert error_key.startswith("bulk_error:1:")
        error = store.load(error_key)
        assert error["status"] == "failed"
        assert error["userId"] == "1"
        assert "connection reset" in error["error"]
        assert "bulk_books:2" not in store.data
        assert store.keys_in("bulk_status:2")

    @pytest.mark.asyncio
    async def test_listing_failure_aborts_run(
        self, job: BulkIngestionJob, store: InMemoryKeyValueStore, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        async def broken_scan(namespace):
            raise StoreUnavailableError("down")

        monkeypatch.setattr(store, "scan_prefix", broken_scan)

        with pytest.raises(StoreUnavailableError):
            await job.run()

    @pytest.mark.asyncio
    async def test_invalidates_book_cache(
        self, job: BulkIngestionJob, store: InMemoryKeyValueStore
    ) -> None:
        store.put_json(book_list_cache_key("42"), [{"title": "stale"}])
        store.put_json("bulk_books:42", [{"title": "A", "author": "X"}])

        await job.run()

        assert book_list_cache_key("42") not in store.data

    @pytest.mark.asyncio
    async def test_second_run_is_a_no_op(
        self, job: BulkIngestionJob, store: InMemoryKeyValueStore, catalog: InMemoryCatalog
    ) -> None:
        store.put_json("bulk_books:42", [{"title": "A", "author": "X"}])

        await job.run()
        summary = await job.run()

        assert summary.keys_found == 0
        assert len(catalog.books) == 1
        assert len(store.keys_in(BATCH_STATUS_NAMESPACE)) == 1


class TestEnqueuePendingBatch:
    """Test suite for enqueue_pending_batch."""

    @pytest.mark.asyncio
    async def test_creates_batch(self, store: InMemoryKeyValueStore) -> None:
        pending = await enqueue_pending_batch(store, "42", [{"title": "A", "author": "X"}])

        assert pending == 1
        assert store.load("bulk_books:42") == [{"title": "A", "author": "X"}]
        assert store.ttls["bulk_books:42"] is None

    @pytest.mark.asyncio
    async def test_appends_to_existing_batch(self, store: InMemoryKeyValueStore) -> None:
        store.data["bulk_books:42"] = json.dumps([{"title": "A", "author": "X"}])

        pending = await enqueue_pending_batch(store, "42", [{"title": "B", "author": "Y"}])

        assert pending == 2
        assert [book["title"] for book in store.load("bulk_books:42")] == ["A", "B"]

    @pytest.mark.asyncio
    async def test_replaces_unreadable_batch(self, store: InMemoryKeyValueStore) -> None:
        store.data["bulk_books:42"] = "garbage"

        pending = await enqueue_pending_batch(store, "42", [{"title": "B", "author": "Y"}])

        assert pending == 1
