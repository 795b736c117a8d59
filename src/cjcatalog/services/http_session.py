"""Async HTTP session manager.

Owns the aiohttp.ClientSession used for upstream calls: created lazily on
first use inside the running event loop and closed with the client.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import aiohttp

from cjcatalog.shared.constants import APIConfig, CJHeaders

logger = logging.getLogger(__name__)

USER_AGENT = "cjcatalog/0.1.0"


class AsyncSessionManager:
    """Manages the aiohttp.ClientSession lifecycle for one client.

    Args:
        request_timeout: Total timeout of one HTTP attempt in seconds
        connection_limit: Size of the connection pool
    """

    def __init__(
        self,
        request_timeout: float = APIConfig.DEFAULT_REQUEST_TIMEOUT,
        connection_limit: int = APIConfig.DEFAULT_MAX_CONCURRENT,
    ) -> None:
        self.request_timeout = request_timeout
        self.connection_limit = connection_limit
        self._session: aiohttp.ClientSession | None = None
        self._session_lock = asyncio.Lock()

    async def get_session(self) -> aiohttp.ClientSession:
        """Get or create the HTTP session."""
        async with self._session_lock:
            if self._session is None or self._session.closed:
                self._session = self._create_session()
            return self._session

    def _create_session(self) -> aiohttp.ClientSession:
        connector = aiohttp.TCPConnector(
            limit=self.connection_limit,
            keepalive_timeout=60,
            enable_cleanup_closed=True,
        )
        timeout = aiohttp.ClientTimeout(
            total=self.request_timeout,
            connect=min(15.0, self.request_timeout),
        )
        headers = {
            "User-Agent": USER_AGENT,
            CJHeaders.ACCEPT: CJHeaders.JSON,
        }

        # Statuses are classified by the executor, so no raise_for_status
        session = aiohttp.ClientSession(
            connector=connector,
            timeout=timeout,
            headers=headers,
            raise_for_status=False,
        )
        logger.info("aiohttp.ClientSession created")
        return session

    async def close_session(self) -> None:
        """Close the HTTP session and clean up resources."""
        async with self._session_lock:
            if self._session is not None and not self._session.closed:
                await self._session.close()
                logger.info("aiohttp.ClientSession closed")
            self._session = None

    def is_session_ready(self) -> bool:
        return self._session is not None and not self._session.closed

    def get_connection_stats(self) -> dict[str, Any]:
        if self._session is None or self._session.closed:
            return {"session": "closed"}
        return {
            "session": "open",
            "connection_limit": self.connection_limit,
            "request_timeout": self.request_timeout,
        }
