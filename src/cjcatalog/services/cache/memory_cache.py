"""In-process catalog cache.

Holds slow-changing data such as the category tree. Contents do not survive
a restart, which is acceptable for data refetched in one call.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Protocol

from cjcatalog.services.cache.cache_models import CachedEntry
from cjcatalog.shared.clock import Clock, SystemClock
from cjcatalog.shared.constants import CatalogCacheConfig

logger = logging.getLogger(__name__)


class CatalogCache(Protocol):
    """Protocol for read-through catalog caches."""

    async def get(self, key: str) -> CachedEntry[Any] | None:
        """Return the live entry for ``key``, or None on a miss."""

    async def put(self, key: str, payload: Any, ttl: timedelta | None = None) -> None:
        """Store ``payload`` under ``key`` for ``ttl`` (the cache default if None)."""


class MemoryCatalogCache:
    """Dictionary-backed cache with per-entry TTL.

    Args:
        clock: Time source
        default_ttl: TTL applied when ``put`` is given none (default: 7 days)
    """

    def __init__(
        self,
        clock: Clock | None = None,
        default_ttl: timedelta = timedelta(seconds=CatalogCacheConfig.CATEGORY_TTL),
    ) -> None:
        self.clock = clock or SystemClock()
        self.default_ttl = default_ttl
        self._entries: dict[str, CachedEntry[Any]] = {}
        self.hits = 0
        self.misses = 0

    async def get(self, key: str) -> CachedEntry[Any] | None:
        entry = self._entries.get(key)
        if entry is None or entry.is_expired(self.clock.now()):
            self.misses += 1
            return None

        self.hits += 1
        return entry

    async def put(self, key: str, payload: Any, ttl: timedelta | None = None) -> None:
        now = self.clock.now()
        self._entries[key] = CachedEntry(
            key=key,
            payload=payload,
            fetched_at=now,
            expires_at=now + (ttl if ttl is not None else self.default_ttl),
        )
        logger.debug("Cached %s in memory", key)

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        return count

    def get_stats(self) -> dict[str, Any]:
        return {"entries": len(self._entries), "hits": self.hits, "misses": self.misses}
