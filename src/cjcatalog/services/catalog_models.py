"""Normalized catalog models.

Stable shapes handed to callers. Upstream field names and nesting stop at
the normalizer; only the ``raw`` mapping on detail records keeps the
original payload for fields this model does not cover.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class ProductSummary:
    """One product in a search result.

    Attributes:
        pid: Upstream product ID
        name: English product name
        image: Main image URL
        sell_price: Lower bound of the upstream sell price
        category_name: Deepest category name available
        sku: Product SKU
    """

    pid: str
    name: str
    image: str
    sell_price: float
    category_name: str
    sku: str


@dataclass(frozen=True)
class ProductSearchPage:
    """A page of search results flattened from the grouped upstream envelope."""

    products: tuple[ProductSummary, ...]
    total: int
    page_num: int
    page_size: int


@dataclass(frozen=True)
class ProductVariant:
    """A purchasable variant of a product."""

    vid: str
    pid: str
    name: str
    sku: str
    sell_price: float
    image: str = ""
    weight: float = 0.0


@dataclass(frozen=True)
class ProductDetail:
    """Full product record as returned by the detail endpoint."""

    pid: str
    name: str
    sku: str
    sell_price: float
    images: tuple[str, ...]
    category_id: str
    category_name: str
    description: str
    weight: float
    variants: tuple[ProductVariant, ...]
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)


@dataclass(frozen=True)
class Category:
    """Top-level category."""

    id: str
    name: str


@dataclass(frozen=True)
class CategoryNode:
    """A node of the three-level category tree.

    Attributes:
        id: Category ID
        name: Category name
        level: 1 for top-level categories, 3 for leaves
        children: Child nodes, empty for leaves
    """

    id: str
    name: str
    level: int
    children: tuple[CategoryNode, ...] = ()


@dataclass(frozen=True)
class StockLevel:
    """Stock of one variant in one warehouse area."""

    vid: str
    area_id: str
    area_name: str
    country_code: str
    quantity: int


@dataclass(frozen=True)
class InventorySnapshot:
    """Point-in-time stock read. Never cached or persisted."""

    levels: tuple[StockLevel, ...]
    taken_at: datetime

    @property
    def total_quantity(self) -> int:
        return sum(level.quantity for level in self.levels)


@dataclass(frozen=True)
class OrderLine:
    """One line of an order request."""

    vid: str
    quantity: int

    def __post_init__(self) -> None:
        if not self.vid:
            msg = "vid must be non-empty"
            raise ValueError(msg)
        if self.quantity <= 0:
            msg = f"quantity must be positive, got {self.quantity}"
            raise ValueError(msg)


@dataclass(frozen=True)
class OrderRequest:
    """Fulfillment order submitted to the upstream."""

    order_number: str
    shipping_zip: str
    shipping_country_code: str
    shipping_province: str
    shipping_city: str
    shipping_address: str
    shipping_customer_name: str
    products: tuple[OrderLine, ...]
    shipping_phone: str | None = None

    def __post_init__(self) -> None:
        if not self.order_number:
            msg = "order_number must be non-empty"
            raise ValueError(msg)
        if not self.products:
            msg = "an order needs at least one product line"
            raise ValueError(msg)

    def to_payload(self) -> dict[str, Any]:
        """Render the request body of the create-order endpoint."""
        payload: dict[str, Any] = {
            "orderNumber": self.order_number,
            "shippingZip": self.shipping_zip,
            "shippingCountryCode": self.shipping_country_code,
            "shippingProvince": self.shipping_province,
            "shippingCity": self.shipping_city,
            "shippingAddress": self.shipping_address,
            "shippingCustomerName": self.shipping_customer_name,
            "products": [
                {"vid": line.vid, "quantity": line.quantity} for line in self.products
            ],
        }
        if self.shipping_phone:
            payload["shippingPhone"] = self.shipping_phone
        return payload


@dataclass(frozen=True)
class Order:
    """Upstream fulfillment order."""

    order_id: str
    order_number: str
    status: str
    amount: float
    tracking_number: str = ""
    created_at: str = ""
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)


@dataclass(frozen=True)
class OrderPage:
    """A page of orders."""

    orders: tuple[Order, ...]
    total: int
    page_num: int
    page_size: int
