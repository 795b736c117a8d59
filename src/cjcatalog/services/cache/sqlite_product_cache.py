"""SQLite product cache.

Persists product detail records so every instance on the host shares them
and they survive restarts. One row per upstream product id; rows carry the
raw payload plus the image list, variants and category path extracted from
it.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from cjcatalog.services.cache.cache_models import CachedEntry
from cjcatalog.services.catalog_models import ProductDetail
from cjcatalog.services.normalizer import normalize_product_detail
from cjcatalog.shared.clock import Clock, SystemClock, ensure_utc
from cjcatalog.shared.constants import CatalogCacheConfig
from cjcatalog.shared.errors import CacheError, CatalogError, ErrorCode, ErrorContext
from cjcatalog.shared.logging import log_operation_error, log_operation_success

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS product_cache (
    product_id TEXT PRIMARY KEY NOT NULL,

    -- Raw upstream payload (JSON)
    data TEXT NOT NULL,

    -- Extracted for queries without decoding data
    images TEXT NOT NULL DEFAULT '[]',
    variants TEXT NOT NULL DEFAULT '[]',
    category_path TEXT NOT NULL DEFAULT '',

    -- TTL metadata (ISO-8601 UTC, fixed width)
    fetched_at TEXT NOT NULL,
    expires_at TEXT NOT NULL,

    CHECK (length(product_id) > 0)
);

CREATE INDEX IF NOT EXISTS idx_product_cache_expires_at ON product_cache(expires_at);
"""


def _timestamp(value: datetime) -> str:
    return ensure_utc(value).isoformat(timespec="microseconds")


class SQLiteProductCache:
    """Read-through cache of ProductDetail records in SQLite.

    Uses WAL mode for cross-process sharing; blocking sqlite3 calls run in
    a worker thread. Expired rows read as misses and are purged on startup.

    Args:
        db_path: Path to the SQLite database file
        clock: Time source
        default_ttl: TTL applied when ``put`` is given none (default: 1 day)

    Raises:
        CacheError: If the database cannot be opened

    Example:
        >>> cache = SQLiteProductCache(Path("catalog_cache.db"))
        >>> await cache.put(detail.pid, detail)
        >>> entry = await cache.get(detail.pid)
        >>> cache.close()
    """

    def __init__(
        self,
        db_path: Path | str = CatalogCacheConfig.DEFAULT_DB_PATH,
        clock: Clock | None = None,
        default_ttl: timedelta = timedelta(seconds=CatalogCacheConfig.PRODUCT_TTL),
    ) -> None:
        self.db_path = Path(db_path)
        self.clock = clock or SystemClock()
        self.default_ttl = default_ttl
        self.conn: sqlite3.Connection | None = None
        self._initialize_db()

    def _initialize_db(self) -> None:
        context = ErrorContext(
            operation="initialize_product_cache",
            additional_data={"db_path": str(self.db_path)},
        )

        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self.conn = sqlite3.connect(
                str(self.db_path),
                check_same_thread=False,  # Safe with WAL mode
                isolation_level=None,  # Auto-commit mode
            )
            self.conn.execute("PRAGMA journal_mode=WAL")
            self.conn.execute("PRAGMA synchronous=NORMAL")
            self.conn.executescript(SCHEMA_SQL)
        except (sqlite3.Error, OSError) as e:
            error = CacheError(
                code=ErrorCode.CACHE_READ_FAILED,
                message=f"Failed to initialize product cache: {e!s}",
                context=context,
                original_error=e,
            )
            log_operation_error(logger=logger, error=error)
            raise error from e

        try:
            purged_count = self._purge_expired_sync()
            if purged_count > 0:
                logger.info("Purged %d expired product cache entries on startup", purged_count)
        except sqlite3.Error as e:
            logger.warning("Failed to purge expired entries on startup: %s", e)

        log_operation_success(
            logger=logger,
            operation="initialize_product_cache",
            duration_ms=0,
            context=context.additional_data,
        )

    def _connection(self) -> sqlite3.Connection:
        if self.conn is None:
            raise CacheError(
                code=ErrorCode.CACHE_READ_FAILED,
                message="Product cache connection is closed",
                context=ErrorContext(operation="product_cache"),
            )
        return self.conn

    def _get_sync(self, key: str, now: datetime) -> CachedEntry[ProductDetail] | None:
        row = self._connection().execute(
            "SELECT data, fetched_at, expires_at FROM product_cache WHERE product_id = ?",
            (key,),
        ).fetchone()
        if row is None:
            return None

        data, fetched_at, expires_at = row
        try:
            entry_fetched = datetime.fromisoformat(fetched_at)
            entry_expires = datetime.fromisoformat(expires_at)
            if now > entry_expires:
                return None
            detail = normalize_product_detail(json.loads(data))
            if detail is None:
                return None
            return CachedEntry(
                key=key,
                payload=detail,
                fetched_at=entry_fetched,
                expires_at=entry_expires,
            )
        except (TypeError, ValueError, CatalogError) as e:
            raise CacheError(
                code=ErrorCode.CACHE_CORRUPTED,
                message=f"Corrupt product cache row for {key}: {e!s}",
                context=ErrorContext(
                    operation="product_cache_get",
                    additional_data={"product_id": key},
                ),
                original_error=e,
            ) from e

    def _put_sync(self, key: str, detail: ProductDetail, fetched_at: datetime, expires_at: datetime) -> None:
        variants = detail.raw.get("variants") or []
        self._connection().execute(
            """
            INSERT INTO product_cache (
                product_id, data, images, variants, category_path, fetched_at, expires_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(product_id) DO UPDATE SET
                data = excluded.data,
                images = excluded.images,
                variants = excluded.variants,
                category_path = excluded.category_path,
                fetched_at = excluded.fetched_at,
                expires_at = excluded.expires_at
            """,
            (
                key,
                json.dumps(detail.raw),
                json.dumps(list(detail.images)),
                json.dumps(variants),
                detail.category_name,
                _timestamp(fetched_at),
                _timestamp(expires_at),
            ),
        )

    def _purge_expired_sync(self) -> int:
        cursor = self._connection().execute(
            "DELETE FROM product_cache WHERE expires_at < ?",
            (_timestamp(self.clock.now()),),
        )
        return cursor.rowcount

    async def get(self, key: str) -> CachedEntry[ProductDetail] | None:
        """Return the live cached product, or None on a miss.

        Raises:
            CacheError: If the read fails or the row is corrupt
        """
        try:
            return await asyncio.to_thread(self._get_sync, key, self.clock.now())
        except sqlite3.Error as e:
            raise CacheError(
                code=ErrorCode.CACHE_READ_FAILED,
                message=f"Failed to read product cache: {e!s}",
                context=ErrorContext(
                    operation="product_cache_get",
                    additional_data={"product_id": key},
                ),
                original_error=e,
            ) from e

    async def put(self, key: str, payload: ProductDetail, ttl: timedelta | None = None) -> None:
        """Store a product detail record.

        Raises:
            CacheError: If the write fails
        """
        now = self.clock.now()
        expires_at = now + (ttl if ttl is not None else self.default_ttl)
        try:
            await asyncio.to_thread(self._put_sync, key, payload, now, expires_at)
        except (sqlite3.Error, TypeError, ValueError) as e:
            raise CacheError(
                code=ErrorCode.CACHE_WRITE_FAILED,
                message=f"Failed to write product cache: {e!s}",
                context=ErrorContext(
                    operation="product_cache_put",
                    additional_data={"product_id": key},
                ),
                original_error=e,
            ) from e

    async def purge_expired(self) -> int:
        """Delete expired rows.

        Returns:
            Number of purged rows
        """
        try:
            return await asyncio.to_thread(self._purge_expired_sync)
        except sqlite3.Error as e:
            raise CacheError(
                code=ErrorCode.CACHE_WRITE_FAILED,
                message=f"Failed to purge product cache: {e!s}",
                context=ErrorContext(operation="product_cache_purge"),
                original_error=e,
            ) from e

    def get_cache_info(self) -> dict[str, Any]:
        now = _timestamp(self.clock.now())
        total, valid = self._connection().execute(
            "SELECT COUNT(*), COALESCE(SUM(CASE WHEN expires_at >= ? THEN 1 ELSE 0 END), 0) "
            "FROM product_cache",
            (now,),
        ).fetchone()
        return {
            "db_path": str(self.db_path),
            "total_entries": total,
            "valid_entries": valid,
            "expired_entries": total - valid,
        }

    def close(self) -> None:
        if self.conn is not None:
            self.conn.close()
            self.conn = None
            logger.debug("Product cache connection closed")
