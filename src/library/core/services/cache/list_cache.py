"""Best-effort Redis cache for book list queries.

Cached lists live under a single namespace (``books:*`` by default). Keys
are derived from the list filter. The set of live filter keys is not
tracked, so invalidation drops the whole namespace.

Every operation swallows client errors, logs a warning and returns a neutral
value so that a cache outage only costs a trip to the store.
"""

from __future__ import annotations

from typing import Any

from loguru import logger
from pydantic import TypeAdapter

from src.library.entities.book import Book
from src.library.runtime.config.config_data import CacheConfig

_book_list_adapter = TypeAdapter(list[Book])


class BookListCache:
    """Read-through cache for serialized book lists."""

    def __init__(self, client: Any | None, config: CacheConfig | None = None):
        config = config or CacheConfig()
        self._client = client if config.enabled else None
        self._ttl_seconds = config.ttl_seconds
        self._prefix = config.key_prefix

    @property
    def is_enabled(self) -> bool:
        return self._client is not None

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    @property
    def namespace_pattern(self) -> str:
        return f"{self._prefix}:*"

    def make_key(self, genre: str | None, include_archived: bool) -> str:
        """Deterministic key for a list filter, e.g. ``books:Fiction:false``."""
        archived = "true" if include_archived else "false"
        return f"{self._prefix}:{genre or 'all'}:{archived}"

    async def get_list(self, key: str) -> list[Book] | None:
        """Return the cached list for ``key`` or None on miss or failure."""
        if self._client is None:
            return None

        try:
            cached = await self._client.get(key)
        except Exception as e:
            logger.warning("Cache read failed for {}: {}", key, e)
            return None

        if cached is None:
            return None

        try:
            return _book_list_adapter.validate_json(cached)
        except ValueError as e:
            logger.warning("Discarding unreadable cache entry {}: {}", key, e)
            return None

    async def set_list(self, key: str, books: list[Book]) -> bool:
        """Store ``books`` under ``key`` with the configured expiry."""
        if self._client is None:
            return False

        try:
            payload = _book_list_adapter.dump_json(books, by_alias=True)
            await self._client.setex(key, self._ttl_seconds, payload)
            return True
        except Exception as e:
            logger.warning("Cache write failed for {}: {}", key, e)
            return False

    async def invalidate_all(self) -> int:
        """Delete every key in the list-cache namespace.

        Returns:
            Number of keys removed; 0 when the cache is disabled or failing.
        """
        if self._client is None:
            return 0

        try:
            keys = [key async for key in self._client.scan_iter(match=self.namespace_pattern)]
            if not keys:
                return 0
            await self._client.delete(*keys)
            logger.debug("Invalidated {} cached book lists", len(keys))
            return len(keys)
        except Exception as e:
            logger.warning("Cache clear failed: {}", e)
            return 0
