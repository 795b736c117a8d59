"""
Upstream API Constants

This module contains the CJ Dropshipping endpoint paths, envelope codes
and header names the client depends on.
"""

from .system import BASE_SECOND


class APIConfig:
    """Base API configuration constants."""

    DEFAULT_REQUEST_TIMEOUT = 30 * BASE_SECOND
    DEFAULT_OPERATION_TIMEOUT = 60 * BASE_SECOND

    # Retry policy: linear backoff just over the upstream's 1 request/second
    DEFAULT_MAX_ATTEMPTS = 3
    DEFAULT_RETRY_BASE_DELAY = 1.1 * BASE_SECOND

    # Outbound concurrency ceiling per process instance
    DEFAULT_MAX_CONCURRENT = 25

    DEFAULT_PAGE = 1
    DEFAULT_PAGE_SIZE = 20
    MAX_SEARCH_PAGE_SIZE = 200


class CJEndpoints:
    """Endpoint paths relative to the API base URL."""

    BASE_URL = "https://developers.cjdropshipping.com/api2.0/v1"

    GET_ACCESS_TOKEN = "authentication/getAccessToken"  # noqa: S105  # nosec B105
    REFRESH_ACCESS_TOKEN = "authentication/refreshAccessToken"  # noqa: S105  # nosec B105

    PRODUCT_LIST = "product/listV2"
    PRODUCT_QUERY = "product/query"
    CATEGORIES = "product/getCategory"
    VARIANTS = "product/variant/query"
    STOCK_BY_VID = "product/stock/queryByVid"
    STOCK_BY_SKU = "product/stock/queryBySku"

    CREATE_ORDER = "shopping/order/createOrderV2"
    ORDER_DETAIL = "shopping/order/getOrderDetail"
    ORDER_LIST = "shopping/order/list"


class CJResponseCodes:
    """Application codes carried in the response envelope."""

    SUCCESS = 200
    TOO_MANY_REQUESTS = 1600200


class CJHeaders:
    """Request header names and values."""

    ACCESS_TOKEN = "CJ-Access-Token"  # noqa: S105  # nosec B105
    CONTENT_TYPE = "Content-Type"
    ACCEPT = "Accept"
    JSON = "application/json"
