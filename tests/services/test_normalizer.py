"""Tests for response normalization."""

import json
import math

import pytest

from cjcatalog.services.catalog_models import CategoryNode
from cjcatalog.services.normalizer import (
    normalize_categories,
    normalize_category_tree,
    normalize_inventory,
    normalize_order,
    normalize_order_page,
    normalize_product_detail,
    normalize_product_search,
    normalize_variants,
    parse_sell_price,
)
from cjcatalog.shared.errors import MalformedResponse
from tests.fakes import T0

CATEGORY_TREE = [
    {
        "categoryFirstId": "c1",
        "categoryFirstName": "Home",
        "categoryFirstList": [
            {
                "categorySecondId": "c1-1",
                "categorySecondName": "Kitchen",
                "categorySecondList": [
                    {"categoryId": "c1-1-1", "categoryName": "Knives"},
                    {"categoryId": "c1-1-2", "categoryName": "Pans"},
                ],
            }
        ],
    },
    {"categoryFirstId": "c2", "categoryFirstName": "Toys", "categoryFirstList": []},
]


class TestParseSellPrice:
    @pytest.mark.parametrize(
        ("price", "expected"),
        [
            ("4.99 -- 9.99", 4.99),
            ("12.00", 12.0),
            ("", 0.0),
            (None, 0.0),
            (7, 7.0),
            (3.5, 3.5),
            ("  2.50--5.00", 2.5),
            ("abc", 0.0),
            ("9.99USD", 9.99),
            (True, 0.0),
            ([1.0], 0.0),
            (float("nan"), 0.0),
        ],
    )
    def test_parse(self, price, expected):
        result = parse_sell_price(price)

        assert result == pytest.approx(expected)
        assert not math.isnan(result)


class TestProductSearch:
    def test_flattens_groups_in_order_with_envelope_total(self):
        data = {
            "content": [
                {"productList": [{"id": "p1", "nameEn": "One"}, {"id": "p2", "nameEn": "Two"}]},
                {"productList": [{"id": "p3", "nameEn": "Three"}, {"id": "p4", "nameEn": "Four"}]},
            ],
            "totalRecords": 57,
            "pageNumber": 2,
            "pageSize": 4,
        }

        page = normalize_product_search(data, page_num=2, page_size=4)

        assert [p.pid for p in page.products] == ["p1", "p2", "p3", "p4"]
        assert page.total == 57
        assert page.page_num == 2
        assert page.page_size == 4

    def test_summary_fields(self):
        data = {
            "content": [
                {
                    "productList": [
                        {
                            "id": "p1",
                            "nameEn": "Lamp",
                            "bigImage": "https://img/lamp.jpg",
                            "sellPrice": "2.50 -- 5.00",
                            "oneCategoryName": "Home",
                            "twoCategoryName": "Lighting",
                            "sku": "CJLAMP",
                        }
                    ]
                }
            ],
            "totalRecords": 1,
        }

        product = normalize_product_search(data, 1, 20).products[0]

        assert product.name == "Lamp"
        assert product.image == "https://img/lamp.jpg"
        assert product.sell_price == 2.5
        assert product.category_name == "Lighting"
        assert product.sku == "CJLAMP"

    def test_missing_envelope_fields_fall_back_to_request(self):
        page = normalize_product_search({"content": []}, page_num=3, page_size=50)

        assert page.products == ()
        assert page.total == 0
        assert (page.page_num, page.page_size) == (3, 50)

    def test_group_without_product_list(self):
        page = normalize_product_search({"content": [{}], "totalRecords": 0}, 1, 20)

        assert page.products == ()

    def test_wrong_container_is_malformed(self):
        with pytest.raises(MalformedResponse):
            normalize_product_search({"content": {"productList": []}}, 1, 20)


class TestCategories:
    def test_top_level_only(self):
        categories = normalize_categories(CATEGORY_TREE)

        assert [(c.id, c.name) for c in categories] == [("c1", "Home"), ("c2", "Toys")]

    def test_full_tree(self):
        tree = normalize_category_tree(CATEGORY_TREE)

        kitchen = tree[0].children[0]
        assert tree[0].level == 1
        assert kitchen == CategoryNode(
            id="c1-1",
            name="Kitchen",
            level=2,
            children=(
                CategoryNode(id="c1-1-1", name="Knives", level=3),
                CategoryNode(id="c1-1-2", name="Pans", level=3),
            ),
        )
        assert tree[1].children == ()

    def test_none_is_empty(self):
        assert normalize_categories(None) == []


class TestProductDetail:
    def test_images_from_json_string(self):
        raw = {
            "pid": "p1",
            "productNameEn": "Lamp",
            "productImage": json.dumps(["a.jpg", "b.jpg"]),
            "sellPrice": "3.00",
            "categoryName": "Lighting",
            "productWeight": 250,
            "variants": [{"vid": "v1", "pid": "p1", "variantSellPrice": 3.0, "variantSku": "S1"}],
        }

        detail = normalize_product_detail(raw)

        assert detail.images == ("a.jpg", "b.jpg")
        assert detail.weight == 250.0
        assert detail.variants[0].vid == "v1"
        assert detail.raw is raw

    def test_images_from_list(self):
        detail = normalize_product_detail({"pid": "p1", "productImage": ["a.jpg", "", None]})

        assert detail.images == ("a.jpg",)

    @pytest.mark.parametrize("data", [None, {}])
    def test_absent_product(self, data):
        assert normalize_product_detail(data) is None

    def test_variants(self):
        variants = normalize_variants(
            [{"vid": "v1", "variantNameEn": "Red", "variantSellPrice": "1.5", "variantWeight": "20"}]
        )

        assert variants[0].name == "Red"
        assert variants[0].sell_price == 1.5
        assert variants[0].weight == 20.0


class TestInventory:
    def test_rows(self):
        snapshot = normalize_inventory(
            [
                {"vid": "v1", "areaId": "2", "areaEn": "US Warehouse", "countryCode": "US", "storageNum": 10},
                {"vid": "v1", "areaId": "1", "areaEn": "CN Warehouse", "countryCode": "CN", "totalInventoryNum": 5},
            ],
            taken_at=T0,
        )

        assert snapshot.total_quantity == 15
        assert snapshot.taken_at == T0
        assert snapshot.levels[0].area_name == "US Warehouse"

    def test_single_object(self):
        snapshot = normalize_inventory({"vid": "v1", "storageNum": "3"}, taken_at=T0)

        assert snapshot.total_quantity == 3


class TestOrders:
    def test_order(self):
        order = normalize_order(
            {
                "orderId": "o1",
                "orderNum": "SHOP-1",
                "orderStatus": "SHIPPED",
                "orderAmount": "12.40",
                "trackNumber": "TRK",
            }
        )

        assert order.order_id == "o1"
        assert order.order_number == "SHOP-1"
        assert order.amount == 12.4
        assert order.tracking_number == "TRK"

    def test_order_page(self):
        page = normalize_order_page(
            {"list": [{"orderId": "o1"}, {"orderId": "o2"}], "total": 9, "pageNum": 1, "pageSize": 2},
            page_num=1,
            page_size=2,
        )

        assert [o.order_id for o in page.orders] == ["o1", "o2"]
        assert page.total == 9

    def test_order_page_from_bare_list(self):
        page = normalize_order_page([{"orderId": "o1"}], page_num=1, page_size=10)

        assert page.total == 1
        assert page.page_size == 10
