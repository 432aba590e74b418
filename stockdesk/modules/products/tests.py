"""
Tests for the products module

Covers:
- List search and sorting
- Overview rankings
- Detail totals, margin, stock reconstruction and trend lengths
- The zero-sales product
- Stock ledger windowing, truncation and balance
"""

import asyncio
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from stockdesk.modules.products.service import ProductReportService


# ===== FIXTURES =====

@pytest.fixture
def product_row(stamp, today):
    return {
        "id": 3,
        "name": "Rice 5kg",
        "price": Decimal("65000"),
        "reseller_price": None,
        "cost": Decimal("50000"),
        "unit": "bag",
        "category_id": 1,
        "category_name": "Grains",
        "supplier_id": 2,
        "supplier_name": "Sumber Tani",
        "keep_stock_since": None,
        "restock_number": Decimal("10"),
        "is_active": True,
        "created_at": stamp,
        "updated_at": stamp,
        "today": today,
    }


@pytest.fixture
def ledger_rows():
    return [
        {
            "date": datetime(2026, 3, 12, tzinfo=timezone.utc),
            "kind": "delivery",
            "qty": Decimal("-2"),
            "description": "John Carter",
            "ref": "DO-0012",
        },
        {
            "date": datetime(2026, 3, 5, tzinfo=timezone.utc),
            "kind": "match",
            "qty": Decimal("14"),
            "description": "Monthly count",
            "ref": None,
        },
        {
            "date": datetime(2026, 3, 1, tzinfo=timezone.utc),
            "kind": "purchase",
            "qty": Decimal("20"),
            "description": None,
            "ref": "PO-0007",
        },
        {
            "date": datetime(2026, 2, 20, tzinfo=timezone.utc),
            "kind": "draw",
            "qty": Decimal("-1"),
            "description": "Sample",
            "ref": None,
        },
    ]


@pytest.fixture
def totals_row():
    return {
        "sold_qty": Decimal("12"),
        "purchased_qty": Decimal("30"),
        "revenue": Decimal("780000"),
        "cogs": Decimal("600000"),
        "last_sale_date": datetime(2026, 3, 12, tzinfo=timezone.utc),
        "last_purchase_date": datetime(2026, 3, 1, tzinfo=timezone.utc),
        "stock_purchased": Decimal("30"),
        "stock_delivered": Decimal("12"),
        "stock_adjustments": Decimal("-2"),
        "stock_draws": Decimal("1"),
    }


# ===== LIST AND OVERVIEW =====

class TestProductList:

    def test_search_covers_category_and_supplier(self, client, fake_db, product_row):
        fake_db.answer("count(*)", 1).answer("FROM products", [product_row])

        response = client.get("/products", params={"search": "tani", "sortBy": "price", "sortDir": "desc"})

        assert response.status_code == 200
        row = response.json()["data"][0]
        assert row["categoryName"] == "Grains"
        assert row["supplierName"] == "Sumber Tani"
        assert row["resellerPrice"] is None
        assert row["price"] == 65000

        page_sql, params = fake_db.find("ORDER BY")[0]
        for column in ("products.name ILIKE", "product_categories.name ILIKE", "suppliers.name ILIKE"):
            assert column in page_sql
        assert "%tani%" in params.values()
        assert "ORDER BY products.price DESC, products.id ASC" in page_sql

    def test_default_sort_is_name(self, client, fake_db):
        client.get("/products")
        page_sql, _ = fake_db.find("ORDER BY")[0]
        assert "ORDER BY products.name ASC, products.id ASC" in page_sql

    def test_pages_with_shared_sort_value_break_ties_by_id(self, client, fake_db, product_row):
        # Two products of the same supplier, one per page
        sugar = {**product_row, "id": 4, "name": "Sugar 1kg"}
        fake_db.answer("count(*)", 2).answer("FROM products", [product_row])
        first = client.get("/products", params={"sortBy": "supplier", "limit": 1, "offset": 0}).json()
        fake_db.answers[-1] = ("FROM products", [sugar])
        second = client.get("/products", params={"sortBy": "supplier", "limit": 1, "offset": 1}).json()

        assert [p["id"] for p in first["data"] + second["data"]] == [3, 4]
        pages = fake_db.find("ORDER BY")
        assert len(pages) == 2
        for sql, _ in pages:
            assert "ORDER BY suppliers.name ASC, products.id ASC" in sql
        second_sql, second_params = pages[1]
        assert "OFFSET" in second_sql
        assert list(second_params.values()).count(1) == 2


class TestProductsOverview:

    def test_overview(self, client, fake_db):
        fake_db.answer("AS sold_30d", {
            "total": 40,
            "active": 35,
            "categories": 6,
            "suppliers": 4,
            "purchased_30d": Decimal("120"),
            "sold_30d": Decimal("95.5"),
            "last_purchase_date": datetime(2026, 3, 1, tzinfo=timezone.utc),
            "last_sale_date": None,
        }).answer("coalesce(product_categories.name, 'Uncategorized')", [
            {"label": "Grains", "value": 12},
        ]).answer("coalesce(suppliers.name, 'Unknown')", [
            {"label": "Unknown", "value": 9},
        ]).answer("coalesce(products.name, 'Unknown')", [
            {"label": "Rice 5kg", "value": Decimal("40")},
        ])

        body = client.get("/products/overview").json()

        assert body["inactive"] == 5
        assert body["purchased30d"] == 120
        assert body["sold30d"] == 95.5
        assert body["lastSaleDate"] is None
        assert body["topCategories"] == [{"label": "Grains", "value": 12}]
        assert body["topSuppliers"] == [{"label": "Unknown", "value": 9}]
        assert body["topSellers30d"] == [{"label": "Rice 5kg", "value": 40}]


# ===== DETAIL =====

class TestProductDetail:

    def test_zero_sales_product(self, client, fake_db, product_row):
        """A product with no transactions gets zero totals and all-zero fixed-length series"""
        fake_db.answer("AS today", product_row)

        response = client.get("/products/3")

        assert response.status_code == 200
        body = response.json()
        assert body["totals"] == {
            "soldQty": 0,
            "purchasedQty": 0,
            "revenue": 0,
            "cogs": 0,
            "margin": 0,
            "lastSaleDate": None,
            "lastPurchaseDate": None,
            "currentStock": 0,
        }
        assert len(body["salesTrend"]) == 6
        assert len(body["purchaseTrend"]) == 6
        assert len(body["qtyTrend"]) == 26
        assert all(p["revenue"] == 0 and p["overallCost"] == 0 for p in body["salesTrend"])
        assert all(p["qty"] == 0 for p in body["qtyTrend"])
        assert body["stockMovements"] == []
        assert body["topCustomers"] == []
        assert body["latestStockMatch"] is None

    def test_detail(self, client, fake_db, product_row, totals_row, ledger_rows):
        (
            fake_db
            .answer("AS today", product_row)
            .answer("AS stock_purchased", totals_row)
            .answer("purchase_details.qty * products.cost", [
                {"period": date(2026, 3, 1), "revenue": Decimal("900000"), "overall_cost": Decimal("1000000")},
            ])
            .answer("date_trunc('week'", [{"period": date(2026, 3, 9), "qty": Decimal("2")}])
            .answer("UNION ALL", ledger_rows)
            .answer("coalesce(customers.full_name", [{"label": "John Carter", "value": Decimal("8")}])
            .answer("FROM stock_matches", {
                "date": datetime(2026, 3, 5, tzinfo=timezone.utc),
                "qty": Decimal("14"),
                "description": "Monthly count",
            })
            .answer("AS overall_cost", [
                {"period": date(2026, 2, 1), "revenue": Decimal("390000"), "overall_cost": Decimal("300000")},
            ])
        )

        body = client.get("/products/3").json()

        totals = body["totals"]
        assert totals["revenue"] == 780000
        assert totals["cogs"] == 600000
        assert totals["margin"] == 180000
        assert totals["currentStock"] == 15
        assert totals["lastSaleDate"] == "2026-03-12T00:00:00+00:00"

        assert body["salesTrend"][4] == {"label": "Feb 2026", "revenue": 390000, "overallCost": 300000}
        assert body["purchaseTrend"][5] == {"label": "Mar 2026", "revenue": 900000, "overallCost": 1000000}
        assert body["qtyTrend"][-1] == {"label": "Wk 11", "qty": 2, "month": "Mar 2026"}

        kinds = [m["kind"] for m in body["stockMovements"]]
        assert kinds == ["delivery", "match", "purchase", "draw"]
        assert body["stockMovements"][0]["ref"] == "DO-0012"
        assert body["topCustomers"] == [{"label": "John Carter", "value": 8}]
        assert body["latestStockMatch"] == {
            "date": "2026-03-05T00:00:00+00:00",
            "qty": 14,
            "description": "Monthly count",
        }

    def test_detail_ledger_is_capped(self, fake_db, product_row):
        fake_db.answer("AS today", product_row)
        asyncio.run(ProductReportService(fake_db).get_detail(3))
        _, params = fake_db.find("UNION ALL")[0]
        assert 50 in params.values()

    def test_not_found(self, client):
        response = client.get("/products/404")
        assert response.status_code == 404
        assert response.json() == {"detail": "Product not found"}

    def test_invalid_id(self, client, fake_db):
        assert client.get("/products/rice").status_code == 422
        assert fake_db.statements == []

    def test_cost_of_goods_falls_back_to_product_cost(self, fake_db, compile_sql):
        sql, _ = compile_sql(ProductReportService(fake_db).build_totals_query(3))
        assert "coalesce(delivery_details.overall_cost, products.cost * delivery_details.qty)" in sql


# ===== STOCK LEDGER =====

class TestStockLedger:

    def test_windowed_ledger(self, client, fake_db, product_row, totals_row, ledger_rows):
        windowed = {**product_row, "keep_stock_since": date(2026, 1, 1)}
        (
            fake_db
            .answer("AS today", windowed)
            .answer("AS stock_purchased", totals_row)
            .answer("AS balance", Decimal("15"))
            .answer("UNION ALL", ledger_rows)
        )

        response = client.get("/products/3/stock-ledger", params={"limit": 3})

        assert response.status_code == 200
        body = response.json()
        assert body["productId"] == 3
        assert body["keepStockSince"] == "2026-01-01"
        assert body["truncated"] is True
        assert len(body["movements"]) == 3
        assert body["balance"] == body["currentStock"] == 15

        ledger_sql, params = fake_db.find("ORDER BY ledger.date")[0]
        assert "ORDER BY ledger.date DESC, ledger.kind ASC, ledger.ref ASC" in ledger_sql
        assert date(2026, 1, 1) in params.values()
        assert 4 in params.values()

        totals_sql, _ = fake_db.find("AS stock_purchased")[0]
        assert "stock_adjustments.adjustment_date >=" in totals_sql
        assert "draws.draw_date >=" in totals_sql

    def test_balance_covers_events_past_the_page(self, fake_db, product_row):
        purchases = [
            {
                "date": datetime(2026, 3, day, tzinfo=timezone.utc),
                "kind": "purchase",
                "qty": Decimal("10"),
                "description": None,
                "ref": f"PO-{day}",
            }
            for day in (3, 2, 1)
        ]
        totals = {"stock_purchased": Decimal("30")}
        (
            fake_db
            .answer("AS today", product_row)
            .answer("AS stock_purchased", totals)
            .answer("AS balance", Decimal("30"))
            .answer("UNION ALL", purchases)
        )

        ledger = asyncio.run(ProductReportService(fake_db).get_stock_ledger(3, 2))

        assert ledger.truncated is True
        assert len(ledger.movements) == 2
        assert ledger.balance == ledger.current_stock == 30

        balance_sql, _ = fake_db.find("AS balance")[0]
        assert "LIMIT" not in balance_sql
        assert "ledger.kind != 'match'" in balance_sql

    def test_complete_ledger_balance_matches_stock(self, fake_db, product_row, ledger_rows):
        totals = {
            "stock_purchased": Decimal("20"),
            "stock_delivered": Decimal("2"),
            "stock_adjustments": Decimal("0"),
            "stock_draws": Decimal("1"),
        }
        (
            fake_db
            .answer("AS today", product_row)
            .answer("AS stock_purchased", totals)
            .answer("AS balance", Decimal("17"))
            .answer("UNION ALL", ledger_rows)
        )

        ledger = asyncio.run(ProductReportService(fake_db).get_stock_ledger(3, 200))

        assert ledger.truncated is False
        assert len(ledger.movements) == 4
        assert ledger.balance == ledger.current_stock == 17

        for sql, _ in fake_db.find("UNION ALL"):
            assert ">=" not in sql

    def test_default_limit(self, client, fake_db, product_row):
        fake_db.answer("AS today", product_row)
        client.get("/products/3/stock-ledger")
        _, params = fake_db.find("ORDER BY ledger.date")[0]
        assert 201 in params.values()

    def test_limit_is_clamped(self, client, fake_db, product_row):
        fake_db.answer("AS today", product_row)
        client.get("/products/3/stock-ledger", params={"limit": 5000})
        _, params = fake_db.find("ORDER BY ledger.date")[0]
        assert 1001 in params.values()

    def test_unknown_product(self, client):
        assert client.get("/products/12/stock-ledger").status_code == 404
