"""cjcatalog Configuration Module

Unified access to the configuration models and the settings loader.
"""

from __future__ import annotations

from .loader import get_config, load_settings, reload_config
from .models import (
    AuthSettings,
    CacheSettings,
    CatalogAPISettings,
    LoggingSettings,
    Settings,
    TokenStoreSettings,
)

__all__ = [
    "AuthSettings",
    "CacheSettings",
    "CatalogAPISettings",
    "LoggingSettings",
    "Settings",
    "TokenStoreSettings",
    "get_config",
    "load_settings",
    "reload_config",
]
