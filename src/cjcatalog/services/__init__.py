"""Services module for cjcatalog.

This module contains the upstream API client and its building blocks:
token lifecycle, throttling, request execution, normalization and caches.
"""

from .cache import CachedEntry, MemoryCatalogCache, SQLiteProductCache
from .catalog_client import CatalogClient, create_catalog_client
from .request_executor import RetryingRequestExecutor, UpstreamRequest
from .request_throttler import RequestThrottler, ThrottleTicket
from .token_manager import TokenLifecycleManager
from .token_models import TokenPair, TokenState
from .token_store import (
    InMemoryTokenStore,
    JsonFileTokenStore,
    SQLiteTokenStore,
    TokenStore,
    create_token_store,
)

__all__ = [
    "CachedEntry",
    "CatalogClient",
    "InMemoryTokenStore",
    "JsonFileTokenStore",
    "MemoryCatalogCache",
    "RequestThrottler",
    "RetryingRequestExecutor",
    "SQLiteProductCache",
    "SQLiteTokenStore",
    "ThrottleTicket",
    "TokenLifecycleManager",
    "TokenPair",
    "TokenState",
    "TokenStore",
    "UpstreamRequest",
    "create_catalog_client",
]
