"""Async Redis-backed key-value store used as cache and job queue."""

from collections.abc import Iterator
from contextlib import contextmanager

import structlog
from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from librarian.store.keys import epoch_millis, scan_pattern, timestamped_key
from librarian.utils.exceptions import StoreUnavailableError

logger = structlog.get_logger(__name__)


@contextmanager
def _translate_connection_errors() -> Iterator[None]:
    try:
        yield
    except (RedisConnectionError, RedisTimeoutError) as e:
        raise StoreUnavailableError(f"Key-value store unavailable: {e}") from e


class KeyValueStore:
    """
    String-keyed store with expiry and prefix scanning.

    Every operation is an independent round trip; nothing here is
    transactional, so callers treat a missing key as a benign race.
    """

    def __init__(self, client: Redis):
        """
        Initialize store.

        Args:
            client: redis.asyncio client created with ``decode_responses=True``
        """
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> "KeyValueStore":
        """Create a store from a ``redis://`` URL. Connects lazily."""
        return cls(Redis.from_url(url, decode_responses=True))

    async def ping(self) -> None:
        """Round-trip to the server; raises StoreUnavailableError if down."""
        with _translate_connection_errors():
            await self.client.ping()

    async def get(self, key: str) -> str | None:
        with _translate_connection_errors():
            return await self.client.get(key)  # type: ignore[no-any-return]

    async def set(
        self,
        key: str,
        value: str,
        ttl_seconds: int | None = None,
        only_if_absent: bool = False,
    ) -> bool:
        """
        Store a value.

        Args:
            key: Key to write
            value: String value
            ttl_seconds: Expiry in seconds, or None for no expiry
            only_if_absent: Skip the write if the key already exists

        Returns:
            True if the value was written
        """
        with _translate_connection_errors():
            result = await self.client.set(key, value, ex=ttl_seconds, nx=only_if_absent)
        return bool(result)

    async def delete(self, key: str) -> None:
        with _translate_connection_errors():
            await self.client.delete(key)

    async def scan_prefix(self, namespace: str) -> list[str]:
        """
        List every key in a namespace using cursor-based SCAN.

        Returns:
            Sorted list of keys (timestamped keys of one user sort oldest first)
        """
        with _translate_connection_errors():
            keys = [key async for key in self.client.scan_iter(match=scan_pattern(namespace))]
        return sorted(keys)

    async def set_timestamped(
        self,
        namespace: str,
        user_id: str,
        value: str,
        ttl_seconds: int,
    ) -> str:
        """
        Write a record under ``{namespace}:{user_id}:{epoch_millis}``.

        The millisecond stamp is bumped until the key is new, so records
        written in the same millisecond never overwrite each other.

        Returns:
            The key written
        """
        millis = epoch_millis()
        while True:
            key = timestamped_key(namespace, user_id, millis)
            if await self.set(key, value, ttl_seconds=ttl_seconds, only_if_absent=True):
                return key
            millis += 1

    async def close(self) -> None:
        """Close the connection pool."""
        await self.client.aclose()
        logger.info("kv_store_closed")
