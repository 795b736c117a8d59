"""
cjcatalog Constants Module

Centralized constants for the cjcatalog package. Magic values live here so
the services share one source of truth.
"""

from .api import APIConfig, CJEndpoints, CJHeaders, CJResponseCodes
from .auth import TokenConfig
from .cache import CatalogCacheConfig
from .messages import CatalogErrorMessages, CatalogOperationNames
from .system import BASE_DAY, BASE_HOUR, BASE_MINUTE, BASE_SECOND

__all__ = [
    "BASE_DAY",
    "BASE_HOUR",
    "BASE_MINUTE",
    "BASE_SECOND",
    "APIConfig",
    "CJEndpoints",
    "CJHeaders",
    "CJResponseCodes",
    "CatalogCacheConfig",
    "CatalogErrorMessages",
    "CatalogOperationNames",
    "TokenConfig",
]
