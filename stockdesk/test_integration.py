"""
Report services against a real PostgreSQL.

Runs only when TEST_DATABASE_URL points at a disposable database: every test
drops and recreates the mapped tables.
"""

import asyncio
import os
from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy import insert

from stockdesk.common.listing import ListParams
from stockdesk.core.config import Settings
from stockdesk.database.database import Base, DatabaseManager
from stockdesk.modules.categories.models import ProductCategory
from stockdesk.modules.customers.models import Customer
from stockdesk.modules.customers.service import CustomerReportService
from stockdesk.modules.deliveries.models import Delivery, DeliveryDetail
from stockdesk.modules.inventory.models import Draw, StockAdjustment, StockMatch
from stockdesk.modules.invoices.models import Invoice
from stockdesk.modules.locations.models import Region
from stockdesk.modules.products.models import Product
from stockdesk.modules.products.service import ProductReportService
from stockdesk.modules.purchases.models import Purchase, PurchaseDetail
from stockdesk.modules.suppliers.models import Supplier
from stockdesk.modules.suppliers.service import SupplierReportService

TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL")

pytestmark = pytest.mark.skipif(not TEST_DATABASE_URL, reason="TEST_DATABASE_URL is not set")


def days_ago(days):
    return datetime.now(timezone.utc) - timedelta(days=days)


async def seed(manager):
    engine = await manager.get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

        await conn.execute(insert(Region), [{"id": 1, "name": "North"}])
        await conn.execute(insert(Customer), [
            {"id": 1, "full_name": "John Carter", "phone": "0812", "region_id": 1, "is_active": True, "rs_member": True},
            {"id": 2, "full_name": "Johnny Walker", "phone": "0813", "region_id": None, "is_active": False, "rs_member": False},
            {"id": 3, "full_name": "Mary Jones", "phone": "0814", "region_id": 1, "is_active": True, "rs_member": None},
        ])
        await conn.execute(insert(ProductCategory), [{"id": 1, "name": "Grains"}])
        await conn.execute(insert(Supplier), [
            {"id": 1, "name": "Sumber Tani"},
            {"id": 2, "name": "Idle Supplier"},
        ])
        await conn.execute(insert(Product), [
            {"id": 1, "name": "Rice", "price": 65000, "cost": 50000, "unit": "bag",
             "category_id": 1, "supplier_id": 1, "keep_stock_since": None, "is_active": True},
            {"id": 2, "name": "Sugar", "price": 15000, "cost": 12000, "unit": "kg",
             "category_id": None, "supplier_id": 1, "keep_stock_since": date.today() - timedelta(days=7), "is_active": True},
            {"id": 3, "name": "Salt", "price": 5000, "cost": 4000, "unit": "kg",
             "category_id": None, "supplier_id": None, "keep_stock_since": None, "is_active": True},
        ])
        await conn.execute(insert(Purchase), [{"id": 1, "purchase_date": days_ago(10), "code": "PO-1"}])
        await conn.execute(insert(PurchaseDetail), [
            {"id": 1, "purchase_id": 1, "product_id": 1, "qty": 30, "price": 48000},
            {"id": 2, "purchase_id": 1, "product_id": 2, "qty": 10, "price": 11000},
        ])
        await conn.execute(insert(Delivery), [{"id": 1, "customer_id": 1, "delivery_date": days_ago(5), "code": "DO-1"}])
        await conn.execute(insert(DeliveryDetail), [
            {"id": 1, "delivery_id": 1, "product_id": 1, "qty": 12, "price": 65000, "overall_cost": None},
            {"id": 2, "delivery_id": 1, "product_id": 2, "qty": 3, "price": 15000, "overall_cost": 30000},
        ])
        await conn.execute(insert(StockAdjustment), [
            {"id": 1, "product_id": 1, "adjustment_date": days_ago(3), "amount": -2, "description": "Damaged"},
        ])
        await conn.execute(insert(StockMatch), [
            {"id": 1, "product_id": 1, "match_date": days_ago(2), "amount": 16, "description": "Count"},
        ])
        await conn.execute(insert(Draw), [
            {"id": 1, "product_id": 1, "draw_date": days_ago(1), "amount": 1, "description": "Sample"},
        ])
        await conn.execute(insert(Invoice), [{"id": 1, "customer_id": 1, "invoice_date": days_ago(4), "code": "INV-1"}])


def run_with_store(check):
    async def scenario():
        manager = DatabaseManager(Settings(_env_file=None, DATABASE_URL=TEST_DATABASE_URL))
        try:
            await seed(manager)
            return await check(manager)
        finally:
            await manager.close()

    return asyncio.run(scenario())


def test_ping():
    async def check(db):
        return await db.ping()

    result = run_with_store(check)
    assert result["ok"] is True
    assert result["database"]


def test_customer_search_john():
    async def check(db):
        return await CustomerReportService(db).list_customers(ListParams(search="john", limit=500))

    page = run_with_store(check)
    assert page.total == 2
    assert page.limit == 100
    assert [c.full_name for c in page.data] == ["John Carter", "Johnny Walker"]


def test_pagination_is_stable():
    async def check(db):
        service = ProductReportService(db)
        pages = []
        for offset in range(3):
            page = await service.list_products(ListParams(limit=1, offset=offset, sort_by="supplier"))
            pages.extend(p.id for p in page.data)
        whole = await service.list_products(ListParams(limit=3, offset=0, sort_by="supplier"))
        return pages, [p.id for p in whole.data]

    # Rice and Sugar share a supplier, so only the id orders them
    ids, whole = run_with_store(check)
    assert len(set(ids)) == 3
    assert ids == whole


def test_stock_balance_identity():
    async def check(db):
        service = ProductReportService(db)
        return [await service.get_stock_ledger(product_id, 1000) for product_id in (1, 2, 3)]

    rice, sugar, salt = run_with_store(check)
    assert rice.current_stock == 15
    # Sugar's window starts after its purchase
    assert sugar.current_stock == -3
    assert salt.current_stock == 0
    for ledger in (rice, sugar, salt):
        assert not ledger.truncated
        assert ledger.balance == ledger.current_stock
    assert [m.kind.value for m in rice.movements] == ["draw", "match", "adjustment", "delivery", "purchase"]


def test_product_detail():
    async def check(db):
        service = ProductReportService(db)
        return await service.get_detail(1), await service.get_detail(3)

    rice, salt = run_with_store(check)
    assert rice.totals.revenue == 780000
    assert rice.totals.cogs == 600000
    assert rice.totals.margin == 180000
    assert rice.top_customers[0].label == "John Carter"
    assert rice.latest_stock_match.qty == 16

    assert salt.totals.sold_qty == 0
    assert len(salt.sales_trend) == 6
    assert len(salt.qty_trend) == 26
    assert all(p.qty == 0 for p in salt.qty_trend)


def test_customer_detail():
    async def check(db):
        return await CustomerReportService(db).get_detail(1)

    detail = run_with_store(check)
    assert detail.delivery_count == 1
    assert detail.invoice_count == 1
    assert 4 <= detail.rfm.recency_days <= 6
    assert detail.rfm.monetary == 12 * 65000 + 3 * 15000
    assert sum(b.count for b in detail.order_value_buckets) == 1


def test_supplier_reports():
    async def check(db):
        service = SupplierReportService(db)
        return await service.get_overview(), await service.get_detail(1), await service.get_detail(2)

    overview, active, idle = run_with_store(check)
    assert overview.total == 2
    assert overview.products == 2
    assert overview.sold_qty == 15
    assert active.supplier.product_count == 2
    assert [p.label for p in active.top_products] == ["Rice", "Sugar"]
    assert len(active.top_product_trends) == 2 * 6
    assert idle.totals.sold_qty == 0
    assert idle.top_products == []
