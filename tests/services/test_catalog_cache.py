"""Tests for CachedEntry and the catalog caches."""

from datetime import timedelta

import pytest

from cjcatalog.services.cache import CachedEntry, MemoryCatalogCache, SQLiteProductCache
from cjcatalog.services.normalizer import normalize_product_detail
from cjcatalog.shared.errors import CacheError, ErrorCode
from tests.fakes import T0, FakeClock

RAW_PRODUCT = {
    "pid": "p1",
    "productNameEn": "Lamp",
    "productImage": ["a.jpg", "b.jpg"],
    "sellPrice": "3.00 -- 4.00",
    "categoryName": "Home > Lighting",
    "variants": [{"vid": "v1", "pid": "p1", "variantSellPrice": 3.0}],
}


class TestCachedEntry:
    def test_expiry_is_strictly_after_expires_at(self):
        entry = CachedEntry(key="k", payload=1, fetched_at=T0, expires_at=T0 + timedelta(hours=1))

        assert not entry.is_expired(T0 + timedelta(hours=1))
        assert entry.is_expired(T0 + timedelta(hours=1, seconds=1))

    def test_rejects_expiry_before_fetch(self):
        with pytest.raises(ValueError):
            CachedEntry(key="k", payload=1, fetched_at=T0, expires_at=T0 - timedelta(seconds=1))

    def test_rejects_empty_key(self):
        with pytest.raises(ValueError):
            CachedEntry(key=" ", payload=1, fetched_at=T0, expires_at=T0)


class TestMemoryCatalogCache:
    @pytest.mark.asyncio
    async def test_hit_then_expired_miss(self, clock):
        cache = MemoryCatalogCache(clock, default_ttl=timedelta(days=7))
        await cache.put("categories:tree", ["tree"])

        entry = await cache.get("categories:tree")
        assert entry.payload == ["tree"]
        assert entry.expires_at == T0 + timedelta(days=7)

        clock.advance(days=7, seconds=1)
        assert await cache.get("categories:tree") is None
        assert cache.get_stats() == {"entries": 1, "hits": 1, "misses": 1}

    @pytest.mark.asyncio
    async def test_explicit_ttl(self, clock):
        cache = MemoryCatalogCache(clock)
        await cache.put("k", "v", ttl=timedelta(seconds=10))

        clock.advance(seconds=11)

        assert await cache.get("k") is None

    @pytest.mark.asyncio
    async def test_delete_and_clear(self, clock):
        cache = MemoryCatalogCache(clock)
        await cache.put("a", 1)
        await cache.put("b", 2)

        assert await cache.delete("a") is True
        assert await cache.delete("a") is False
        assert await cache.clear() == 1


class TestSQLiteProductCache:
    @pytest.mark.asyncio
    async def test_round_trip(self, temp_dir, clock):
        cache = SQLiteProductCache(temp_dir / "cache.db", clock)
        detail = normalize_product_detail(RAW_PRODUCT)

        await cache.put("p1", detail)
        entry = await cache.get("p1")

        assert entry.payload == detail
        assert entry.fetched_at == T0
        assert entry.expires_at == T0 + timedelta(days=1)
        cache.close()

    @pytest.mark.asyncio
    async def test_row_carries_extracted_columns(self, temp_dir, clock):
        cache = SQLiteProductCache(temp_dir / "cache.db", clock)
        await cache.put("p1", normalize_product_detail(RAW_PRODUCT))

        images, variants, category_path = cache.conn.execute(
            "SELECT images, variants, category_path FROM product_cache WHERE product_id = 'p1'"
        ).fetchone()

        assert images == '["a.jpg", "b.jpg"]'
        assert '"vid": "v1"' in variants
        assert category_path == "Home > Lighting"
        cache.close()

    @pytest.mark.asyncio
    async def test_expired_row_is_miss(self, temp_dir, clock):
        cache = SQLiteProductCache(temp_dir / "cache.db", clock)
        await cache.put("p1", normalize_product_detail(RAW_PRODUCT))

        clock.advance(days=1, seconds=1)

        assert await cache.get("p1") is None
        cache.close()

    @pytest.mark.asyncio
    async def test_shared_between_instances_and_purged_on_startup(self, temp_dir, clock):
        db_path = temp_dir / "cache.db"
        first = SQLiteProductCache(db_path, clock)
        await first.put("p1", normalize_product_detail(RAW_PRODUCT), ttl=timedelta(hours=1))
        await first.put("p2", normalize_product_detail({**RAW_PRODUCT, "pid": "p2"}))

        second = SQLiteProductCache(db_path, clock)
        assert (await second.get("p1")).payload.pid == "p1"

        later = FakeClock(T0 + timedelta(hours=2))
        third = SQLiteProductCache(db_path, later)

        assert third.get_cache_info()["total_entries"] == 1
        for cache in (first, second, third):
            cache.close()

    @pytest.mark.asyncio
    async def test_purge_expired(self, temp_dir, clock):
        cache = SQLiteProductCache(temp_dir / "cache.db", clock)
        await cache.put("p1", normalize_product_detail(RAW_PRODUCT), ttl=timedelta(minutes=5))
        await cache.put("p2", normalize_product_detail({**RAW_PRODUCT, "pid": "p2"}))

        clock.advance(minutes=6)

        assert await cache.purge_expired() == 1
        assert cache.get_cache_info()["total_entries"] == 1
        cache.close()

    @pytest.mark.asyncio
    async def test_corrupt_row_raises_cache_error(self, temp_dir, clock):
        cache = SQLiteProductCache(temp_dir / "cache.db", clock)
        cache.conn.execute(
            "INSERT INTO product_cache (product_id, data, fetched_at, expires_at) VALUES (?, ?, ?, ?)",
            ("p1", "{broken", T0.isoformat(timespec="microseconds"), (T0 + timedelta(days=1)).isoformat(timespec="microseconds")),
        )

        with pytest.raises(CacheError):
            await cache.get("p1")
        cache.close()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("column", ["fetched_at", "expires_at"])
    async def test_corrupt_timestamp_raises_cache_error(self, temp_dir, clock, column):
        cache = SQLiteProductCache(temp_dir / "cache.db", clock)
        await cache.put("p1", normalize_product_detail(RAW_PRODUCT))
        cache.conn.execute(f"UPDATE product_cache SET {column} = 'not-a-date'")

        with pytest.raises(CacheError) as exc_info:
            await cache.get("p1")

        assert exc_info.value.code == ErrorCode.CACHE_CORRUPTED
        cache.close()

    @pytest.mark.asyncio
    async def test_closed_cache_raises_cache_error(self, temp_dir, clock):
        cache = SQLiteProductCache(temp_dir / "cache.db", clock)
        cache.close()

        with pytest.raises(CacheError):
            await cache.get("p1")
