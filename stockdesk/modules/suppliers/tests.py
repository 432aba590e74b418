"""
Tests for the suppliers module
"""

import asyncio
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from stockdesk.common.listing import ListParams
from stockdesk.modules.suppliers.service import SupplierReportService


# ===== FIXTURES =====

@pytest.fixture
def supplier_row(today):
    return {
        "id": 2,
        "name": "Sumber Tani",
        "account_number": "0081234",
        "account_name": "PT Sumber Tani",
        "product_count": 7,
        "today": today,
    }


@pytest.fixture
def top_product_rows():
    return [
        {"product_id": 10 + rank, "label": f"Product {rank}", "value": Decimal(60 - rank * 5)}
        for rank in range(6)
    ]


# ===== LIST AND OVERVIEW =====

class TestSupplierList:

    def test_list_with_aggregates(self, client, fake_db):
        fake_db.answer("count(*)", 1).answer("FROM suppliers", [{
            "id": 2,
            "name": "Sumber Tani",
            "account_number": None,
            "account_name": None,
            "product_count": 4,
            "sold_qty": Decimal("52"),
            "revenue": Decimal("3380000"),
        }])

        response = client.get("/suppliers", params={"search": "sumber", "sortBy": "revenue", "sortDir": "desc"})

        assert response.status_code == 200
        row = response.json()["data"][0]
        assert row == {
            "id": 2,
            "name": "Sumber Tani",
            "accountNumber": None,
            "accountName": None,
            "productCount": 4,
            "soldQty": 52,
            "revenue": 3380000,
        }

        page_sql, params = fake_db.find("ORDER BY")[0]
        assert "suppliers.name ILIKE" in page_sql
        assert "%sumber%" in params.values()
        order_by = page_sql.split("ORDER BY")[-1]
        assert "supplier_stats.revenue" in order_by
        assert "DESC, suppliers.id ASC" in order_by

    def test_suppliers_without_sales_are_kept(self, fake_db, compile_sql):
        stmt, _ = SupplierReportService(fake_db).build_list_query(ListParams())
        sql, _ = compile_sql(stmt)
        assert "FROM suppliers LEFT OUTER JOIN" in sql
        assert "ORDER BY suppliers.name ASC, suppliers.id ASC" in sql


class TestSuppliersOverview:

    def test_empty_overview(self, client):
        response = client.get("/suppliers/overview")
        assert response.status_code == 200
        assert response.json() == {
            "total": 0,
            "products": 0,
            "soldQty": 0,
            "revenue": 0,
            "lastSaleDate": None,
        }

    def test_overview(self, client, fake_db):
        fake_db.answer("count(suppliers.id)", {
            "total": 3,
            "products": 11,
            "sold_qty": Decimal("140"),
            "revenue": Decimal("9100000"),
            "last_sale_date": datetime(2026, 3, 12, tzinfo=timezone.utc),
        })
        body = client.get("/suppliers/overview").json()
        assert body["products"] == 11
        assert body["soldQty"] == 140
        assert body["lastSaleDate"] == "2026-03-12T00:00:00+00:00"


# ===== DETAIL =====

class TestSupplierDetail:

    def test_detail(self, client, fake_db, supplier_row, top_product_rows):
        (
            fake_db
            .answer("AS today", supplier_row)
            .answer("GROUP BY delivery_details.product_id", [
                {"product_id": 10, "period": date(2026, 2, 1), "qty": Decimal("5")},
                {"product_id": 12, "period": date(2025, 10, 1), "qty": Decimal("3")},
            ])
            .answer("AS revenue", {
                "sold_qty": Decimal("52"),
                "revenue": Decimal("3380000"),
                "last_sale_date": datetime(2026, 3, 12, tzinfo=timezone.utc),
            })
            .answer("AS value", top_product_rows)
            .answer("date_trunc('month'", [{"period": date(2026, 3, 1), "qty": Decimal("9")}])
        )

        response = client.get("/suppliers/2")

        assert response.status_code == 200
        body = response.json()
        assert body["supplier"] == {
            "id": 2,
            "name": "Sumber Tani",
            "accountNumber": "0081234",
            "accountName": "PT Sumber Tani",
            "productCount": 7,
        }
        assert body["totals"]["soldQty"] == 52
        assert [p["qty"] for p in body["qtyTrend"]] == [0, 0, 0, 0, 0, 9]
        assert len(body["topProducts"]) == 6
        assert body["topProducts"][0] == {"label": "Product 0", "value": 60}

        trends = body["topProductTrends"]
        assert len(trends) == 5 * 6
        first = trends[:6]
        assert {p["productId"] for p in first} == {10}
        assert [p["qty"] for p in first] == [0, 0, 0, 0, 5, 0]
        assert trends[12] == {"label": "Oct 2025", "qty": 3, "productId": 12, "productName": "Product 2"}
        assert 15 not in {p["productId"] for p in trends}

    def test_supplier_without_sales(self, fake_db, supplier_row):
        fake_db.answer("AS today", supplier_row)

        detail = asyncio.run(SupplierReportService(fake_db).get_detail(2))

        assert detail.totals.sold_qty == 0
        assert detail.totals.last_sale_date is None
        assert [p.qty for p in detail.qty_trend] == [0] * 6
        assert detail.top_products == []
        assert detail.top_product_trends == []
        assert fake_db.find("GROUP BY delivery_details.product_id") == []

    def test_not_found(self, client):
        response = client.get("/suppliers/77")
        assert response.status_code == 404
        assert response.json() == {"detail": "Supplier not found"}

    def test_invalid_id(self, client, fake_db):
        assert client.get("/suppliers/1.5").status_code == 422
        assert fake_db.statements == []
