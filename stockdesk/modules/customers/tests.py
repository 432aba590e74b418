"""
Tests for the customers module

Covers:
- List search, clamping and sort resolution
- Overview statistics and region ranking
- Detail trends, order-value buckets and RFM metrics
- Not found and invalid id handling
"""

import asyncio
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from stockdesk.common.listing import ListParams
from stockdesk.modules.customers.service import ORDER_VALUE_BUCKETS, CustomerReportService


# ===== FIXTURES =====

@pytest.fixture
def customer_row(stamp):
    return {
        "id": 7,
        "full_name": "John Carter",
        "phone": "0812-555-010",
        "address": "Jl. Mawar 1",
        "created_at": stamp,
        "updated_at": stamp,
        "rs_member": True,
        "receive_dr_discount": False,
        "region_id": 2,
        "region_name": "North",
        "note": None,
        "account_name": None,
        "account_number": None,
        "is_active": True,
    }


@pytest.fixture
def customer_detail_db(fake_db, customer_row, today):
    return (
        fake_db
        .answer("AS today", {**customer_row, "today": today})
        .answer("AS recency_days", {
            "invoice_count": 3,
            "delivery_count": 4,
            "last_invoice_date": datetime(2026, 3, 1, tzinfo=timezone.utc),
            "last_delivery_date": datetime(2026, 2, 20, tzinfo=timezone.utc),
            "recency_days": 23,
        })
        .answer("count(invoices.id)", [{"period": date(2026, 3, 1), "count": 2}])
        .answer("count(deliveries.id)", [
            {"period": date(2026, 2, 1), "count": 3},
            {"period": date(2025, 10, 1), "count": 1},
        ])
        .answer("product_categories.name", [
            {"label": "Grains", "amount": Decimal("200000")},
            {"label": "Uncategorized", "amount": Decimal("100000")},
        ])
        .answer("AS bucket", [{"bucket": 0, "count": 2}, {"bucket": 4, "count": 1}])
        .answer("date_trunc('month', deliveries.delivery_date)", [
            {"period": date(2026, 2, 1), "amount": Decimal("250000")},
            {"period": date(2025, 10, 1), "amount": Decimal("50000")},
        ])
    )


# ===== LIST =====

class TestCustomerList:

    def test_search_john(self, client, fake_db, customer_row):
        """Searching "John" with an oversized page returns the match, clamped to 100"""
        fake_db.answer("count(*)", 1).answer("FROM customers", [customer_row])

        response = client.get("/customers", params={"search": "John", "limit": 500})

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["limit"] == 100
        assert body["offset"] == 0
        assert body["data"][0]["fullName"] == "John Carter"
        assert body["data"][0]["regionName"] == "North"
        assert body["data"][0]["createdAt"] == "2025-01-10T09:30:00+00:00"

        page_sql, page_params = fake_db.find("ORDER BY")[0]
        assert "ILIKE" in page_sql
        assert "%John%" in page_params.values()
        assert 100 in page_params.values()

    def test_count_uses_same_filter(self, fake_db):
        service = CustomerReportService(fake_db)
        asyncio.run(service.list_customers(ListParams(search="Jo")))

        count_sql, count_params = fake_db.find("count(*)")[0]
        assert "ILIKE" in count_sql
        assert "%Jo%" in count_params.values()
        assert "ORDER BY" not in count_sql

    def test_sort_by_region_desc(self, client, fake_db):
        client.get("/customers", params={"sortBy": "region", "sortDir": "desc"})
        page_sql, _ = fake_db.find("ORDER BY")[0]
        assert "ORDER BY regions.name DESC, customers.id ASC" in page_sql

    def test_unknown_sort_key_falls_back(self, client, fake_db):
        response = client.get("/customers", params={"sortBy": "password", "offset": -4})
        assert response.status_code == 200
        assert response.json()["offset"] == 0
        page_sql, _ = fake_db.find("ORDER BY")[0]
        assert "ORDER BY customers.full_name ASC, customers.id ASC" in page_sql

    def test_empty_page(self, client):
        response = client.get("/customers", params={"limit": 0})
        assert response.json() == {"data": [], "total": 0, "limit": 1, "offset": 0}


# ===== OVERVIEW =====

class TestCustomersOverview:

    def test_overview(self, client, fake_db):
        fake_db.answer("AS with_invoices_30d", {
            "total": 12,
            "active": 9,
            "rs_member": 4,
            "receive_dr_discount": 2,
            "with_invoices_30d": 5,
            "last_invoice_date": datetime(2026, 3, 14, 8, 0, tzinfo=timezone.utc),
        }).answer("coalesce(regions.name, 'Unspecified')", [
            {"label": "North", "value": 7},
            {"label": "Unspecified", "value": 3},
        ])

        response = client.get("/customers/overview")

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 12
        assert body["active"] == 9
        assert body["inactive"] == 3
        assert body["rsMember"] == 4
        assert body["receiveDrDiscount"] == 2
        assert body["withInvoices30d"] == 5
        assert body["lastInvoiceDate"] == "2026-03-14T08:00:00+00:00"
        assert body["topRegions"] == [
            {"regionName": "North", "count": 7},
            {"regionName": "Unspecified", "count": 3},
        ]

    def test_empty_store(self, client):
        body = client.get("/customers/overview").json()
        assert body["total"] == 0
        assert body["inactive"] == 0
        assert body["lastInvoiceDate"] is None
        assert body["topRegions"] == []

    def test_overview_sql(self, fake_db, compile_sql):
        service = CustomerReportService(fake_db)
        sql, _ = compile_sql(service.build_overview_query())
        assert "customers.is_active IS true" in sql
        assert "INTERVAL '30 days'" in sql

        ranking_sql, _ = compile_sql(service.build_top_regions_query())
        assert "LIMIT" in ranking_sql
        assert "ORDER BY value DESC, label ASC" in ranking_sql


# ===== DETAIL =====

class TestCustomerDetail:

    def test_detail(self, client, customer_detail_db):
        response = client.get("/customers/7")

        assert response.status_code == 200
        body = response.json()
        assert body["customer"]["id"] == 7
        assert body["invoiceCount"] == 3
        assert body["deliveryCount"] == 4
        assert body["lastActivityDate"] == "2026-03-01T00:00:00+00:00"
        assert body["lastDeliveryDate"] == "2026-02-20T00:00:00+00:00"

        assert [p["label"] for p in body["invoiceTrend"]][-1] == "Mar 2026"
        assert [p["count"] for p in body["invoiceTrend"]] == [0, 0, 0, 0, 0, 2]
        assert [p["count"] for p in body["deliveryTrend"]] == [1, 0, 0, 0, 3, 0]
        assert [p["amount"] for p in body["spendTrend"]] == [50000, 0, 0, 0, 250000, 0]

        assert body["categoryBreakdown"][0] == {"label": "Grains", "amount": 200000}
        assert [b["label"] for b in body["orderValueBuckets"]] == [label for label, _ in ORDER_VALUE_BUCKETS]
        assert [b["count"] for b in body["orderValueBuckets"]] == [2, 0, 0, 0, 1]

        assert body["rfm"] == {"recencyDays": 23, "frequency": 4, "monetary": 300000}

    def test_inactive_customer_has_zero_series(self, client, fake_db, customer_row, today):
        fake_db.answer("AS today", {**customer_row, "today": today})

        body = client.get("/customers/7").json()

        for key in ("invoiceTrend", "deliveryTrend", "spendTrend"):
            assert len(body[key]) == 6
        assert all(p["count"] == 0 for p in body["deliveryTrend"])
        assert all(p["amount"] == 0 for p in body["spendTrend"])
        assert [b["count"] for b in body["orderValueBuckets"]] == [0, 0, 0, 0, 0]
        assert body["lastActivityDate"] is None
        assert body["rfm"] == {"recencyDays": None, "frequency": 0, "monetary": 0}

    def test_trend_queries_start_at_spine(self, customer_detail_db):
        asyncio.run(CustomerReportService(customer_detail_db).get_detail(7))
        _, params = customer_detail_db.find("date_trunc('month', invoices.invoice_date)")[-1]
        assert date(2025, 10, 1) in params.values()

    def test_not_found(self, client, fake_db):
        response = client.get("/customers/999")
        assert response.status_code == 404
        assert response.json() == {"detail": "Customer not found"}
        assert len(fake_db.statements) == 1

    def test_invalid_id_issues_no_query(self, client, fake_db):
        response = client.get("/customers/abc")
        assert response.status_code == 422
        assert fake_db.statements == []

    def test_order_value_sql(self, fake_db, compile_sql):
        sql, _ = compile_sql(CustomerReportService(fake_db).build_order_value_query(7))
        assert "CASE WHEN" in sql
        assert ".bucket" in sql.split("GROUP BY")[-1]
