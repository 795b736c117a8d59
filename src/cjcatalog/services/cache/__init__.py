"""Catalog caches."""

from __future__ import annotations

from .cache_models import CachedEntry
from .memory_cache import CatalogCache, MemoryCatalogCache
from .sqlite_product_cache import SQLiteProductCache

__all__ = [
    "CachedEntry",
    "CatalogCache",
    "MemoryCatalogCache",
    "SQLiteProductCache",
]
