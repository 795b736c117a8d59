"""
Error Message Constants

Message templates shared by the services so wording stays consistent.
"""


class CatalogErrorMessages:
    """Upstream and client error message constants."""

    RATE_LIMITED = "Upstream rate limit hit on {endpoint}"
    RETRIES_EXHAUSTED = "Upstream still rate limited after {attempts} attempts on {endpoint}"
    HTTP_ERROR = "Upstream returned HTTP {status_code} on {endpoint}: {body}"
    APPLICATION_ERROR = "Upstream error code {code} on {endpoint}: {message}"
    NOT_JSON_OBJECT = "Upstream response on {endpoint} is not a JSON object"
    NETWORK_ERROR = "Network error calling {endpoint}: {error}"

    MISSING_API_KEY = "CJ API key is not configured (set CJ_API_KEY or api.api_key)"
    AUTH_FAILED = "Could not obtain a CJ access token: {error}"
    AUTH_RATE_LIMITED = (
        "CJ authentication is rate limited (1 call per 5 minutes) and no "
        "reusable token is cached"
    )
    TOKEN_PAYLOAD_INVALID = "Authentication response is missing token fields: {error}"

    TIMEOUT = "Operation '{operation}' exceeded its {timeout}s deadline"


class CatalogOperationNames:
    """Operation names used in log records and error contexts."""

    SEARCH_PRODUCTS = "search_products"
    GET_PRODUCT = "get_product"
    GET_CATEGORIES = "get_categories"
    GET_CATEGORY_TREE = "get_category_tree"
    GET_VARIANTS = "get_variants"
    CHECK_INVENTORY = "check_inventory"
    CHECK_INVENTORY_BY_SKU = "check_inventory_by_sku"
    CREATE_ORDER = "create_order"
    GET_ORDER_STATUS = "get_order_status"
    LIST_ORDERS = "list_orders"

    AUTHENTICATE = "authenticate"
    REFRESH_TOKEN = "refresh_token"  # noqa: S105  # nosec B105
    GET_VALID_TOKEN = "get_valid_token"  # noqa: S105  # nosec B105
    EXECUTE_REQUEST = "execute_request"


__all__ = [
    "CatalogErrorMessages",
    "CatalogOperationNames",
]
