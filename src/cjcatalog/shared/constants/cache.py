"""
Cache Configuration Constants

TTLs and keys for the catalog caches. Inventory reads are never cached.
"""

from .system import BASE_DAY


class CatalogCacheConfig:
    """Catalog cache configuration."""

    CATEGORY_TTL = 7 * BASE_DAY  # categories rarely change
    PRODUCT_TTL = BASE_DAY

    DEFAULT_DB_PATH = ".cjcatalog/catalog_cache.db"

    CATEGORY_TREE_KEY = "categories:tree"
