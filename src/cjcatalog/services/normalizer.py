"""Response normalization.

Pure functions mapping the upstream's nested, loosely typed payloads onto
the stable models in ``catalog_models``. No I/O and no shared state.

Missing optional fields fall back to empty values, mirroring how the
upstream omits them. A payload whose container type is wrong (for example
a list where an object is expected) raises MalformedResponse.
"""

from __future__ import annotations

import json
import math
import re
from datetime import datetime
from typing import Any

from cjcatalog.services.catalog_models import (
    Category,
    CategoryNode,
    InventorySnapshot,
    Order,
    OrderPage,
    ProductDetail,
    ProductSearchPage,
    ProductSummary,
    ProductVariant,
    StockLevel,
)
from cjcatalog.shared.errors import create_malformed_response_error

PRICE_RANGE_SEPARATOR = "--"

_LEADING_NUMBER = re.compile(r"\s*([-+]?(?:\d+(?:\.\d*)?|\.\d+))")


def parse_sell_price(price: Any) -> float:
    """Parse an upstream price into a float.

    Prices arrive as numbers, numeric strings, or ranges such as
    ``"2.50 -- 5.00"``; the lower bound is the base cost.

    Examples:
        >>> parse_sell_price("4.99 -- 9.99")
        4.99
        >>> parse_sell_price("12.00")
        12.0
        >>> parse_sell_price(None)
        0.0
    """
    if isinstance(price, bool):
        return 0.0
    if isinstance(price, (int, float)):
        value = float(price)
        return 0.0 if math.isnan(value) or math.isinf(value) else value
    if not price or not isinstance(price, str):
        return 0.0

    lower_bound = price.split(PRICE_RANGE_SEPARATOR)[0]
    match = _LEADING_NUMBER.match(lower_bound)
    if match is None:
        return 0.0
    return float(match.group(1))


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def _float(value: Any) -> float:
    return parse_sell_price(value)


def _as_dict(value: Any, what: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise create_malformed_response_error(
            f"Expected an object for {what}, got {type(value).__name__}",
            operation="normalize",
        )
    return value


def _as_list(value: Any, what: str) -> list[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise create_malformed_response_error(
            f"Expected a list for {what}, got {type(value).__name__}",
            operation="normalize",
        )
    return value


def _image_list(value: Any) -> tuple[str, ...]:
    """Images come as a list or as a JSON-encoded list string."""
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return ()
        if stripped.startswith("["):
            try:
                value = json.loads(stripped)
            except json.JSONDecodeError:
                return (stripped,)
        else:
            return (stripped,)
    if isinstance(value, list):
        return tuple(str(item) for item in value if item)
    return ()


def normalize_product_summary(raw: dict[str, Any]) -> ProductSummary:
    """Map one entry of a search group's ``productList``."""
    category_name = (
        raw.get("threeCategoryName")
        or raw.get("twoCategoryName")
        or raw.get("oneCategoryName")
        or ""
    )
    return ProductSummary(
        pid=_text(raw.get("id")),
        name=_text(raw.get("nameEn")),
        image=_text(raw.get("bigImage")),
        sell_price=parse_sell_price(raw.get("sellPrice")),
        category_name=_text(category_name),
        sku=_text(raw.get("sku")),
    )


def normalize_product_search(
    data: Any,
    page_num: int,
    page_size: int,
) -> ProductSearchPage:
    """Flatten the grouped search envelope into one ordered page.

    The upstream ``data`` is ``{content: [{productList: [...]}, ...],
    totalRecords, pageNumber, pageSize}``; groups are concatenated in order.

    Args:
        data: The ``data`` member of the response envelope
        page_num: Requested page, used when the envelope omits it
        page_size: Requested page size, used when the envelope omits it
    """
    envelope = _as_dict(data, "search data")
    products: list[ProductSummary] = []
    for group in _as_list(envelope.get("content"), "search content"):
        group = _as_dict(group, "search group")
        for raw in _as_list(group.get("productList"), "productList"):
            products.append(normalize_product_summary(_as_dict(raw, "product")))

    return ProductSearchPage(
        products=tuple(products),
        total=_int(envelope.get("totalRecords")),
        page_num=_int(envelope.get("pageNumber"), page_num) or page_num,
        page_size=_int(envelope.get("pageSize"), page_size) or page_size,
    )


def normalize_categories(data: Any) -> list[Category]:
    """Expose only the top level of the category tree."""
    return [
        Category(
            id=_text(first.get("categoryFirstId")),
            name=_text(first.get("categoryFirstName")),
        )
        for first in (_as_dict(item, "category") for item in _as_list(data, "categories"))
    ]


def normalize_category_tree(data: Any) -> list[CategoryNode]:
    """Map the full three-level category tree."""
    tree: list[CategoryNode] = []
    for first in _as_list(data, "categories"):
        first = _as_dict(first, "category")
        seconds: list[CategoryNode] = []
        for second in _as_list(first.get("categoryFirstList"), "categoryFirstList"):
            second = _as_dict(second, "category")
            leaves = tuple(
                CategoryNode(
                    id=_text(third.get("categoryId")),
                    name=_text(third.get("categoryName")),
                    level=3,
                )
                for third in (
                    _as_dict(item, "category")
                    for item in _as_list(
                        second.get("categorySecondList"), "categorySecondList"
                    )
                )
            )
            seconds.append(
                CategoryNode(
                    id=_text(second.get("categorySecondId")),
                    name=_text(second.get("categorySecondName")),
                    level=2,
                    children=leaves,
                )
            )
        tree.append(
            CategoryNode(
                id=_text(first.get("categoryFirstId")),
                name=_text(first.get("categoryFirstName")),
                level=1,
                children=tuple(seconds),
            )
        )
    return tree


def normalize_variant(raw: dict[str, Any]) -> ProductVariant:
    return ProductVariant(
        vid=_text(raw.get("vid")),
        pid=_text(raw.get("pid")),
        name=_text(raw.get("variantNameEn") or raw.get("variantKey")),
        sku=_text(raw.get("variantSku")),
        sell_price=parse_sell_price(raw.get("variantSellPrice")),
        image=_text(raw.get("variantImage")),
        weight=_float(raw.get("variantWeight")),
    )


def normalize_variants(data: Any) -> list[ProductVariant]:
    return [
        normalize_variant(_as_dict(raw, "variant"))
        for raw in _as_list(data, "variants")
    ]


def normalize_product_detail(data: Any) -> ProductDetail | None:
    """Map the product detail payload; ``None`` when the upstream has no product."""
    if data is None:
        return None
    raw = _as_dict(data, "product")
    if not raw:
        return None

    return ProductDetail(
        pid=_text(raw.get("pid")),
        name=_text(raw.get("productNameEn")),
        sku=_text(raw.get("productSku")),
        sell_price=parse_sell_price(raw.get("sellPrice")),
        images=_image_list(raw.get("productImage")),
        category_id=_text(raw.get("categoryId")),
        category_name=_text(raw.get("categoryName")),
        description=_text(raw.get("description")),
        weight=_float(raw.get("productWeight")),
        variants=tuple(normalize_variants(raw.get("variants"))),
        raw=raw,
    )


def normalize_inventory(data: Any, taken_at: datetime) -> InventorySnapshot:
    """Map a stock query result.

    Both stock endpoints return a list of per-area rows; some deployments
    wrap a single row in an object.
    """
    rows = [data] if isinstance(data, dict) else _as_list(data, "inventory")
    levels = []
    for row in rows:
        row = _as_dict(row, "stock row")
        quantity = row.get("storageNum")
        if quantity is None:
            quantity = row.get("totalInventoryNum")
        levels.append(
            StockLevel(
                vid=_text(row.get("vid")),
                area_id=_text(row.get("areaId")),
                area_name=_text(row.get("areaEn")),
                country_code=_text(row.get("countryCode")),
                quantity=_int(quantity),
            )
        )
    return InventorySnapshot(levels=tuple(levels), taken_at=taken_at)


def normalize_order(data: Any) -> Order | None:
    """Map an order detail or create-order payload."""
    if data is None:
        return None
    raw = _as_dict(data, "order")
    if not raw:
        return None

    return Order(
        order_id=_text(raw.get("orderId")),
        order_number=_text(raw.get("orderNum") or raw.get("orderNumber")),
        status=_text(raw.get("orderStatus")),
        amount=_float(raw.get("orderAmount")),
        tracking_number=_text(raw.get("trackNumber")),
        created_at=_text(raw.get("createDate")),
        raw=raw,
    )


def normalize_order_page(data: Any, page_num: int, page_size: int) -> OrderPage:
    """Map the order list payload.

    The list endpoint answers ``{list, total, pageNum, pageSize}``; a bare
    list is accepted as well.
    """
    if isinstance(data, list) or data is None:
        rows = _as_list(data, "orders")
        envelope: dict[str, Any] = {"total": len(rows)}
    else:
        envelope = _as_dict(data, "order list")
        rows = _as_list(envelope.get("list"), "orders")

    orders = tuple(
        order
        for order in (normalize_order(row) for row in rows)
        if order is not None
    )
    return OrderPage(
        orders=orders,
        total=_int(envelope.get("total"), len(orders)),
        page_num=_int(envelope.get("pageNum"), page_num) or page_num,
        page_size=_int(envelope.get("pageSize"), page_size) or page_size,
    )
