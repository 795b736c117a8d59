"""CJ Dropshipping catalog client.

This module provides the public facade over the upstream API: product
search and detail, categories, variants, live inventory and fulfillment
orders. It wires together token management, throttling, retrying request
execution, normalization and read-through caching.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from datetime import timedelta
from typing import Any, TypeVar

from cjcatalog.config import Settings, get_config
from cjcatalog.services.auth_api import AuthenticationAPI
from cjcatalog.services.cache import CatalogCache, MemoryCatalogCache, SQLiteProductCache
from cjcatalog.services.catalog_models import (
    Category,
    CategoryNode,
    InventorySnapshot,
    Order,
    OrderPage,
    OrderRequest,
    ProductDetail,
    ProductSearchPage,
    ProductVariant,
)
from cjcatalog.services.http_session import AsyncSessionManager
from cjcatalog.services.normalizer import (
    normalize_categories,
    normalize_category_tree,
    normalize_inventory,
    normalize_order,
    normalize_order_page,
    normalize_product_detail,
    normalize_product_search,
    normalize_variants,
)
from cjcatalog.services.request_executor import RetryingRequestExecutor, UpstreamRequest
from cjcatalog.services.request_throttler import RequestThrottler
from cjcatalog.services.token_manager import TokenLifecycleManager
from cjcatalog.services.token_store import TokenStore, create_token_store
from cjcatalog.shared.clock import Clock, SystemClock
from cjcatalog.shared.constants import (
    APIConfig,
    CatalogCacheConfig,
    CatalogErrorMessages,
    CatalogOperationNames,
    CJEndpoints,
)
from cjcatalog.shared.errors import (
    CacheError,
    CatalogError,
    ErrorCode,
    ErrorContext,
    OperationTimeout,
    UpstreamError,
    create_malformed_response_error,
    create_validation_error,
)
from cjcatalog.shared.logging import (
    log_operation_error,
    log_operation_start,
    log_operation_success,
    setup_structured_logger,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

HTTP_UNAUTHORIZED = 401


class CatalogClient:
    """Async client for the CJ Dropshipping catalog and order API.

    Every public operation accepts an optional ``timeout`` in seconds that
    bounds the whole operation: cache lookups, token acquisition, throttle
    waits, HTTP attempts and backoff sleeps. When omitted the client's
    ``operation_timeout`` applies; a client built with ``None`` imposes no
    deadline.

    Args:
        executor: Retrying request executor
        token_manager: Supplier of access tokens
        session_manager: Owner of the HTTP session, closed with the client
        clock: Time source for inventory snapshots
        category_cache: In-process cache of the category tree
        product_cache: Cache of product detail records
        operation_timeout: Default deadline of an operation in seconds
        search_page_size_limit: Upper bound applied to search page sizes
        category_ttl: TTL of cached categories
        product_ttl: TTL of cached product records

    Example:
        >>> async with create_catalog_client() as client:
        ...     page = await client.search_products(query="phone case")
        ...     detail = await client.get_product(page.products[0].pid)
    """

    def __init__(
        self,
        executor: RetryingRequestExecutor,
        token_manager: TokenLifecycleManager,
        session_manager: AsyncSessionManager,
        clock: Clock | None = None,
        category_cache: CatalogCache | None = None,
        product_cache: CatalogCache | None = None,
        operation_timeout: float | None = APIConfig.DEFAULT_OPERATION_TIMEOUT,
        search_page_size_limit: int = APIConfig.MAX_SEARCH_PAGE_SIZE,
        category_ttl: timedelta | None = None,
        product_ttl: timedelta | None = None,
    ) -> None:
        self.executor = executor
        self.token_manager = token_manager
        self.session_manager = session_manager
        self.clock = clock or SystemClock()
        self.category_cache = category_cache
        self.product_cache = product_cache
        self.operation_timeout = operation_timeout
        self.search_page_size_limit = search_page_size_limit
        self.category_ttl = category_ttl
        self.product_ttl = product_ttl
        self._closeables: list[Any] = []

    async def __aenter__(self) -> CatalogClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    async def search_products(
        self,
        query: str | None = None,
        category_id: str | None = None,
        page_num: int = APIConfig.DEFAULT_PAGE,
        page_size: int = APIConfig.DEFAULT_PAGE_SIZE,
        min_price: float | None = None,
        max_price: float | None = None,
        *,
        timeout: float | None = None,
    ) -> ProductSearchPage:
        """Search the catalog.

        Args:
            query: Keyword filter
            category_id: Category filter
            page_num: 1-based page number
            page_size: Page size, capped at the search page size limit
            min_price: Lower sell price bound
            max_price: Upper sell price bound
            timeout: Operation deadline in seconds

        Returns:
            One page of products in upstream order

        Raises:
            ApplicationError: If page_num or page_size is not positive
            UpstreamError: If the upstream call fails
            OperationTimeout: If the deadline expires
        """
        operation = CatalogOperationNames.SEARCH_PRODUCTS
        if page_num < 1:
            raise self._invalid(
                f"page_num must be positive, got {page_num}", "page_num", operation
            )
        if page_size < 1:
            raise self._invalid(
                f"page_size must be positive, got {page_size}", "page_size", operation
            )

        size = min(page_size, self.search_page_size_limit)

        async def run() -> ProductSearchPage:
            data = await self._get(
                CJEndpoints.PRODUCT_LIST,
                {
                    "keyWord": query,
                    "categoryId": category_id,
                    "page": page_num,
                    "size": size,
                    "startSellPrice": min_price,
                    "endSellPrice": max_price,
                },
            )
            return normalize_product_search(data, page_num, size)

        return await self._run(
            operation,
            run,
            timeout,
            {"query": query, "category_id": category_id, "page_num": page_num},
        )

    async def get_product(
        self,
        product_id: str,
        *,
        timeout: float | None = None,
    ) -> ProductDetail | None:
        """Get a product's full record, served from the product cache when fresh.

        Returns:
            The product, or None when the upstream has no such product
        """
        operation = CatalogOperationNames.GET_PRODUCT
        if not product_id:
            raise self._invalid("product_id must be non-empty", "product_id", operation)

        async def run() -> ProductDetail | None:
            cached = await self._cache_get(self.product_cache, product_id)
            if cached is not None:
                return cached

            detail = normalize_product_detail(
                await self._get(CJEndpoints.PRODUCT_QUERY, {"pid": product_id})
            )
            if detail is not None:
                await self._cache_put(self.product_cache, product_id, detail, self.product_ttl)
            return detail

        return await self._run(operation, run, timeout, {"product_id": product_id})

    async def get_variants(
        self,
        product_id: str,
        *,
        timeout: float | None = None,
    ) -> list[ProductVariant]:
        """Get all variants of a product."""
        operation = CatalogOperationNames.GET_VARIANTS
        if not product_id:
            raise self._invalid("product_id must be non-empty", "product_id", operation)

        async def run() -> list[ProductVariant]:
            return normalize_variants(await self._get(CJEndpoints.VARIANTS, {"pid": product_id}))

        return await self._run(operation, run, timeout, {"product_id": product_id})

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    async def get_categories(self, *, timeout: float | None = None) -> list[Category]:
        """Get the top-level categories."""

        async def run() -> list[Category]:
            return normalize_categories(await self._category_payload())

        return await self._run(CatalogOperationNames.GET_CATEGORIES, run, timeout)

    async def get_category_tree(self, *, timeout: float | None = None) -> list[CategoryNode]:
        """Get the full three-level category tree."""

        async def run() -> list[CategoryNode]:
            return normalize_category_tree(await self._category_payload())

        return await self._run(CatalogOperationNames.GET_CATEGORY_TREE, run, timeout)

    async def _category_payload(self) -> Any:
        """Raw category tree, read through the category cache."""
        cached = await self._cache_get(self.category_cache, CatalogCacheConfig.CATEGORY_TREE_KEY)
        if cached is not None:
            return cached

        data = await self._get(CJEndpoints.CATEGORIES)
        if data is None:
            data = []
        # Cached raw so both category views share one upstream call
        await self._cache_put(
            self.category_cache, CatalogCacheConfig.CATEGORY_TREE_KEY, data, self.category_ttl
        )
        return data

    # ------------------------------------------------------------------
    # Inventory (never cached)
    # ------------------------------------------------------------------

    async def check_inventory(self, vid: str, *, timeout: float | None = None) -> InventorySnapshot:
        """Read live stock of a variant."""
        operation = CatalogOperationNames.CHECK_INVENTORY
        if not vid:
            raise self._invalid("vid must be non-empty", "vid", operation)

        async def run() -> InventorySnapshot:
            data = await self._get(CJEndpoints.STOCK_BY_VID, {"vid": vid})
            return normalize_inventory(data, self.clock.now())

        return await self._run(operation, run, timeout, {"vid": vid})

    async def check_inventory_by_sku(
        self,
        sku: str,
        *,
        timeout: float | None = None,
    ) -> InventorySnapshot:
        """Read live stock by SKU."""
        operation = CatalogOperationNames.CHECK_INVENTORY_BY_SKU
        if not sku:
            raise self._invalid("sku must be non-empty", "sku", operation)

        async def run() -> InventorySnapshot:
            data = await self._get(CJEndpoints.STOCK_BY_SKU, {"sku": sku})
            return normalize_inventory(data, self.clock.now())

        return await self._run(operation, run, timeout, {"sku": sku})

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    async def create_order(self, order: OrderRequest, *, timeout: float | None = None) -> Order:
        """Submit a fulfillment order.

        Raises:
            MalformedResponse: If the upstream accepts the order but returns
                no order record
        """
        operation = CatalogOperationNames.CREATE_ORDER

        async def run() -> Order:
            data = await self._post(CJEndpoints.CREATE_ORDER, order.to_payload())
            created = normalize_order(data)
            if created is None:
                raise create_malformed_response_error(
                    "Create order response carries no order",
                    endpoint=CJEndpoints.CREATE_ORDER,
                    operation=operation,
                )
            return created

        return await self._run(operation, run, timeout, {"order_number": order.order_number})

    async def get_order_status(self, order_id: str, *, timeout: float | None = None) -> Order | None:
        """Get an order's current state."""
        operation = CatalogOperationNames.GET_ORDER_STATUS
        if not order_id:
            raise self._invalid("order_id must be non-empty", "order_id", operation)

        async def run() -> Order | None:
            return normalize_order(await self._get(CJEndpoints.ORDER_DETAIL, {"orderId": order_id}))

        return await self._run(operation, run, timeout, {"order_id": order_id})

    async def list_orders(
        self,
        page_num: int = APIConfig.DEFAULT_PAGE,
        page_size: int = APIConfig.DEFAULT_PAGE_SIZE,
        *,
        timeout: float | None = None,
    ) -> OrderPage:
        """List orders, newest first as the upstream returns them."""
        operation = CatalogOperationNames.LIST_ORDERS
        if page_num < 1 or page_size < 1:
            raise self._invalid(
                f"page_num and page_size must be positive, got {page_num}/{page_size}",
                "page_num",
                operation,
            )

        async def run() -> OrderPage:
            data = await self._get(CJEndpoints.ORDER_LIST, {"page": page_num, "size": page_size})
            return normalize_order_page(data, page_num, page_size)

        return await self._run(operation, run, timeout, {"page_num": page_num})

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    async def _run(
        self,
        operation: str,
        func: Callable[[], Awaitable[T]],
        timeout: float | None,
        context: dict[str, Any] | None = None,
    ) -> T:
        """Run one operation under its deadline and log the outcome once."""
        deadline = timeout if timeout is not None else self.operation_timeout
        log_operation_start(logger, operation, context)
        started = time.perf_counter()

        try:
            if deadline is None:
                result = await func()
            else:
                result = await asyncio.wait_for(func(), deadline)
        except asyncio.TimeoutError as e:
            error = OperationTimeout(
                code=ErrorCode.OPERATION_TIMEOUT,
                message=CatalogErrorMessages.TIMEOUT.format(operation=operation, timeout=deadline),
                context=ErrorContext(operation=operation, additional_data=context),
                original_error=e,
            )
            log_operation_error(logger, error, operation)
            raise error from e
        except CatalogError as e:
            log_operation_error(logger, e, operation, additional_context=context)
            raise

        log_operation_success(
            logger,
            operation,
            duration_ms=(time.perf_counter() - started) * 1000,
            context=context,
        )
        return result

    def _invalid(self, message: str, field: str, operation: str) -> CatalogError:
        error = create_validation_error(message, field, operation)
        log_operation_error(logger, error, operation)
        return error

    async def _get(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        return await self._request("GET", endpoint, params=params)

    async def _post(self, endpoint: str, body: dict[str, Any]) -> Any:
        return await self._request("POST", endpoint, body=body)

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
    ) -> Any:
        """Send an authenticated request and return the envelope's ``data``."""
        token = await self.token_manager.get_valid_token()
        request = UpstreamRequest(
            method=method,
            endpoint=endpoint,
            params=params,
            body=body,
            access_token=token,
        )
        try:
            envelope = await self.executor.execute(request)
        except UpstreamError as e:
            if e.status_code == HTTP_UNAUTHORIZED:
                # Another instance may have rotated the token; re-read next time
                self.token_manager.invalidate()
            raise
        return envelope.get("data")

    async def _cache_get(self, cache: CatalogCache | None, key: str) -> Any:
        if cache is None:
            return None
        try:
            entry = await cache.get(key)
        except CacheError as e:
            log_operation_error(logger, e, level=logging.WARNING)
            return None
        return entry.payload if entry is not None else None

    async def _cache_put(
        self,
        cache: CatalogCache | None,
        key: str,
        payload: Any,
        ttl: timedelta | None,
    ) -> None:
        if cache is None:
            return
        try:
            await cache.put(key, payload, ttl)
        except CacheError as e:
            log_operation_error(logger, e, level=logging.WARNING)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def register_closeable(self, resource: Any) -> None:
        """Close ``resource`` (anything with a ``close()`` method) with the client."""
        self._closeables.append(resource)

    async def close(self) -> None:
        """Close the HTTP session and any owned persistent stores."""
        await self.session_manager.close_session()
        while self._closeables:
            self._closeables.pop().close()

    def get_stats(self) -> dict[str, Any]:
        """Get current statistics about the client."""
        stats: dict[str, Any] = {
            "throttler": self.executor.throttler.get_stats(),
            "token_manager": self.token_manager.get_stats(),
            "session": self.session_manager.get_connection_stats(),
        }
        if isinstance(self.category_cache, MemoryCatalogCache):
            stats["category_cache"] = self.category_cache.get_stats()
        return stats


def create_catalog_client(
    settings: Settings | None = None,
    *,
    clock: Clock | None = None,
    token_store: TokenStore | None = None,
    configure_logging: bool = False,
) -> CatalogClient:
    """Build a CatalogClient and its whole stack from settings.

    Args:
        settings: Settings to use; the global configuration when omitted
        clock: Time source (system clock by default)
        token_store: Token store overriding the configured backend
        configure_logging: Apply the logging settings to the package logger

    Returns:
        A ready client; use it as an async context manager or call
        ``close()`` when done
    """
    settings = settings or get_config()
    clock = clock or SystemClock()

    if configure_logging:
        setup_structured_logger(
            level=settings.logging.level,
            log_file=settings.logging.file,
            use_rich_console=settings.logging.use_rich_console,
        )

    api = settings.api
    session_manager = AsyncSessionManager(
        request_timeout=api.request_timeout,
        connection_limit=api.max_concurrent,
    )
    throttler = RequestThrottler(api.max_concurrent)
    executor = RetryingRequestExecutor(
        session_manager,
        throttler,
        base_url=api.base_url,
        clock=clock,
        max_attempts=api.max_attempts,
        base_delay=api.retry_base_delay,
    )

    owned: list[Any] = []
    if token_store is None:
        token_store = create_token_store(
            settings.token_store.backend,
            settings.token_store.resolved_path(),
        )
        owned.append(token_store)

    token_manager = TokenLifecycleManager(
        AuthenticationAPI(executor),
        token_store,
        api_key=api.api_key,
        clock=clock,
        refresh_buffer=timedelta(seconds=settings.auth.refresh_buffer_seconds),
        stale_grace=timedelta(seconds=settings.auth.stale_token_grace_seconds),
    )

    category_cache: MemoryCatalogCache | None = None
    product_cache: SQLiteProductCache | None = None
    category_ttl = timedelta(seconds=settings.cache.category_ttl_seconds)
    product_ttl = timedelta(seconds=settings.cache.product_ttl_seconds)
    if settings.cache.enabled:
        category_cache = MemoryCatalogCache(clock, default_ttl=category_ttl)
        try:
            product_cache = SQLiteProductCache(settings.cache.db_path, clock, default_ttl=product_ttl)
            owned.append(product_cache)
        except CacheError:
            logger.warning("Product cache unavailable, continuing without it")

    client = CatalogClient(
        executor,
        token_manager,
        session_manager,
        clock=clock,
        category_cache=category_cache,
        product_cache=product_cache,
        operation_timeout=api.operation_timeout,
        search_page_size_limit=api.search_page_size_limit,
        category_ttl=category_ttl,
        product_ttl=product_ttl,
    )
    for resource in owned:
        if hasattr(resource, "close"):
            client.register_closeable(resource)
    return client
