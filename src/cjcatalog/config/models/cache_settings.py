"""Cache and token store configuration models."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from cjcatalog.shared.constants import CatalogCacheConfig, TokenConfig


class CacheSettings(BaseModel):
    """Catalog cache configuration.

    Categories live in an in-process cache; product detail records are
    persisted in SQLite so every instance on the host shares them.
    """

    enabled: bool = Field(default=True, description="Enable catalog caching")
    category_ttl_seconds: int = Field(
        default=CatalogCacheConfig.CATEGORY_TTL,
        gt=0,
        description="TTL of the in-process category cache",
    )
    product_ttl_seconds: int = Field(
        default=CatalogCacheConfig.PRODUCT_TTL,
        gt=0,
        description="TTL of persisted product detail records",
    )
    db_path: str = Field(
        default=CatalogCacheConfig.DEFAULT_DB_PATH,
        description="SQLite file of the product cache",
    )


class TokenStoreSettings(BaseModel):
    """Durable token store configuration."""

    backend: Literal["memory", "sqlite", "file"] = Field(
        default="sqlite",
        description="Token store backend (memory, sqlite, file)",
    )
    path: str | None = Field(
        default=None,
        description="Location of the sqlite database or JSON token file",
    )

    def resolved_path(self) -> str:
        """Return the configured path or the backend's default."""
        if self.path:
            return self.path
        if self.backend == TokenConfig.BACKEND_FILE:
            return TokenConfig.DEFAULT_FILE_PATH
        return TokenConfig.DEFAULT_SQLITE_PATH


__all__ = [
    "CacheSettings",
    "TokenStoreSettings",
]
