"""Configuration domain models."""

from __future__ import annotations

from .api_settings import AuthSettings, CatalogAPISettings
from .app_settings import LoggingSettings
from .cache_settings import CacheSettings, TokenStoreSettings
from .settings import Settings

__all__ = [
    "AuthSettings",
    "CacheSettings",
    "CatalogAPISettings",
    "LoggingSettings",
    "Settings",
    "TokenStoreSettings",
]
