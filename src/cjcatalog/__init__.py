"""
cjcatalog - CJ Dropshipping Catalog Client

An async client for the CJ Dropshipping API with shared token lifecycle
management, outbound throttling, rate-limit aware retries, response
normalization and read-through caching.
"""

__version__ = "0.1.0"

from .services import CatalogClient, create_catalog_client

__all__ = [
    "CatalogClient",
    "create_catalog_client",
]
