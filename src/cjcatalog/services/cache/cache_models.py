"""Cache entry model.

This module defines the read-through cache entry shared by the catalog
caches.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Generic, TypeVar

from cjcatalog.shared.clock import ensure_utc

__all__ = ["CachedEntry"]

T = TypeVar("T")


@dataclass(frozen=True)
class CachedEntry(Generic[T]):
    """A cached payload with its freshness window.

    Entries are invalidated lazily: an expired entry stays stored until it
    is overwritten or purged, but every read reports it as a miss.

    Attributes:
        key: Cache key (e.g. a product id or ``categories:tree``)
        payload: Cached value
        fetched_at: When the payload was fetched upstream
        expires_at: When the entry stops being served

    Example:
        >>> entry = CachedEntry(
        ...     key="categories:tree",
        ...     payload=[],
        ...     fetched_at=now,
        ...     expires_at=now + timedelta(days=7),
        ... )
        >>> entry.is_expired(now)
        False
    """

    key: str
    payload: T
    fetched_at: datetime
    expires_at: datetime

    def __post_init__(self) -> None:
        """Validate and normalize the entry.

        Raises:
            ValueError: If the key is empty or the entry expires before it
                was fetched
        """
        if not self.key or not self.key.strip():
            msg = "key must be non-empty"
            raise ValueError(msg)

        object.__setattr__(self, "fetched_at", ensure_utc(self.fetched_at))
        object.__setattr__(self, "expires_at", ensure_utc(self.expires_at))

        if self.expires_at < self.fetched_at:
            msg = f"expires_at ({self.expires_at}) must not be before fetched_at ({self.fetched_at})"
            raise ValueError(msg)

    def is_expired(self, now: datetime) -> bool:
        """True once ``now`` is past ``expires_at``."""
        return now > self.expires_at
