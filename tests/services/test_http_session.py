"""Tests for AsyncSessionManager."""

import pytest

from cjcatalog.services.http_session import AsyncSessionManager


class TestAsyncSessionManager:
    @pytest.mark.asyncio
    async def test_session_created_lazily_and_reused(self):
        manager = AsyncSessionManager(request_timeout=5, connection_limit=3)
        assert not manager.is_session_ready()

        first = await manager.get_session()
        second = await manager.get_session()

        assert first is second
        assert manager.is_session_ready()
        assert first.connector.limit == 3
        assert manager.get_connection_stats()["connection_limit"] == 3
        await manager.close_session()

    @pytest.mark.asyncio
    async def test_close_then_recreate(self):
        manager = AsyncSessionManager()
        first = await manager.get_session()

        await manager.close_session()

        assert first.closed
        assert manager.get_connection_stats() == {"session": "closed"}
        second = await manager.get_session()
        assert second is not first
        await manager.close_session()

    @pytest.mark.asyncio
    async def test_close_without_session(self):
        await AsyncSessionManager().close_session()
