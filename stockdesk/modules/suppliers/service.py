"""
Supplier Reports Service

Suppliers carry no figures of their own: product counts, units sold and
revenue are derived from their products' delivery lines.
"""

import logging
from typing import Dict, List

from fastapi import HTTPException, status
from sqlalchemy import distinct, func, select

from stockdesk.common.listing import (
    ListParams,
    order_by_clauses,
    resolve_sort_key,
    search_filter,
)
from stockdesk.common.normalize import to_float, to_int, to_iso
from stockdesk.common.reporting import BaseReportService, on_or_after, truncate_to
from stockdesk.common.schemas import TopItem
from stockdesk.common.trends import align
from stockdesk.database.database import gather
from stockdesk.modules.deliveries.models import Delivery, DeliveryDetail
from stockdesk.modules.products.models import Product
from stockdesk.modules.suppliers.models import Supplier
from stockdesk.modules.suppliers.schemas import (
    ProductQtyTrendPoint,
    QtyTrendPoint,
    SupplierDetail,
    SupplierList,
    SupplierOut,
    SupplierSortKey,
    SuppliersOverview,
    SupplierSummary,
    SupplierTotals,
)

logger = logging.getLogger(__name__)

TOP_PRODUCTS = 10
TRENDED_PRODUCTS = 5
DEFAULT_SORT = SupplierSortKey.NAME


def _line_amount():
    return DeliveryDetail.qty * DeliveryDetail.price


def supplier_stats():
    """Per-supplier product count, units sold and revenue."""
    return (
        select(
            Product.supplier_id.label("supplier_id"),
            func.count(distinct(Product.id)).label("product_count"),
            func.coalesce(func.sum(DeliveryDetail.qty), 0).label("sold_qty"),
            func.coalesce(func.sum(_line_amount()), 0).label("revenue"),
        )
        .select_from(Product)
        .outerjoin(DeliveryDetail, DeliveryDetail.product_id == Product.id)
        .where(Product.supplier_id.isnot(None))
        .group_by(Product.supplier_id)
        .subquery("supplier_stats")
    )


class SupplierReportService(BaseReportService):
    """Service for supplier lists and analytics"""

    def build_list_query(self, params: ListParams):
        stats = supplier_stats()
        product_count = func.coalesce(stats.c.product_count, 0)
        sold_qty = func.coalesce(stats.c.sold_qty, 0)
        revenue = func.coalesce(stats.c.revenue, 0)
        sort_columns = {
            SupplierSortKey.NAME: Supplier.name,
            SupplierSortKey.PRODUCT_COUNT: product_count,
            SupplierSortKey.SOLD_QTY: sold_qty,
            SupplierSortKey.REVENUE: revenue,
        }
        sort_key = resolve_sort_key(params.sort_by, SupplierSortKey, DEFAULT_SORT)

        stmt = (
            select(
                Supplier.id,
                Supplier.name,
                Supplier.account_number,
                Supplier.account_name,
                product_count.label("product_count"),
                sold_qty.label("sold_qty"),
                revenue.label("revenue"),
            )
            .select_from(Supplier)
            .outerjoin(stats, stats.c.supplier_id == Supplier.id)
        )
        if params.search:
            stmt = stmt.where(search_filter(params.search, Supplier.name))
        count_stmt = self._count_query(stmt)
        stmt = stmt.order_by(*order_by_clauses(sort_columns[sort_key], params.sort_dir, Supplier.id))
        return stmt, count_stmt

    async def list_suppliers(self, params: ListParams) -> SupplierList:
        stmt, count_stmt = self.build_list_query(params)
        page = await self._paginate(stmt, count_stmt, params)
        return SupplierList(
            data=[SupplierOut.model_validate(row) for row in page["data"]],
            total=page["total"],
            limit=page["limit"],
            offset=page["offset"],
        )

    def build_overview_query(self):
        def supplied_lines(*columns):
            return (
                select(*columns)
                .select_from(DeliveryDetail)
                .join(Product, Product.id == DeliveryDetail.product_id)
                .where(Product.supplier_id.isnot(None))
            )

        return select(
            select(func.count(Supplier.id)).scalar_subquery().label("total"),
            select(func.count(Product.id))
            .where(Product.supplier_id.isnot(None))
            .scalar_subquery()
            .label("products"),
            supplied_lines(func.coalesce(func.sum(DeliveryDetail.qty), 0))
            .scalar_subquery()
            .label("sold_qty"),
            supplied_lines(func.coalesce(func.sum(_line_amount()), 0))
            .scalar_subquery()
            .label("revenue"),
            supplied_lines(func.max(Delivery.delivery_date))
            .join(Delivery, Delivery.id == DeliveryDetail.delivery_id)
            .scalar_subquery()
            .label("last_sale_date"),
        )

    async def get_overview(self) -> SuppliersOverview:
        stats = await self.db.fetch_one(self.build_overview_query()) or {}
        return SuppliersOverview(
            total=to_int(stats.get("total")),
            products=to_int(stats.get("products")),
            sold_qty=to_float(stats.get("sold_qty")),
            revenue=to_float(stats.get("revenue")),
            last_sale_date=to_iso(stats.get("last_sale_date")),
        )

    # ----- detail -----

    def build_supplier_query(self, supplier_id: int):
        return select(
            Supplier.id,
            Supplier.name,
            Supplier.account_number,
            Supplier.account_name,
            select(func.count(Product.id))
            .where(Product.supplier_id == supplier_id)
            .scalar_subquery()
            .label("product_count"),
            func.current_date().label("today"),
        ).where(Supplier.id == supplier_id)

    def build_totals_query(self, supplier_id: int):
        return (
            select(
                func.coalesce(func.sum(DeliveryDetail.qty), 0).label("sold_qty"),
                func.coalesce(func.sum(_line_amount()), 0).label("revenue"),
                func.max(Delivery.delivery_date).label("last_sale_date"),
            )
            .select_from(DeliveryDetail)
            .join(Delivery, Delivery.id == DeliveryDetail.delivery_id)
            .join(Product, Product.id == DeliveryDetail.product_id)
            .where(Product.supplier_id == supplier_id)
        )

    def build_qty_trend_query(self, supplier_id: int, since):
        period = truncate_to("month", Delivery.delivery_date).label("period")
        return (
            select(period, func.coalesce(func.sum(DeliveryDetail.qty), 0).label("qty"))
            .select_from(DeliveryDetail)
            .join(Delivery, Delivery.id == DeliveryDetail.delivery_id)
            .join(Product, Product.id == DeliveryDetail.product_id)
            .where(Product.supplier_id == supplier_id, on_or_after(Delivery.delivery_date, since))
            .group_by(period)
        )

    def build_top_products_query(self, supplier_id: int):
        value = func.sum(DeliveryDetail.qty).label("value")
        return (
            select(Product.id.label("product_id"), Product.name.label("label"), value)
            .select_from(DeliveryDetail)
            .join(Product, Product.id == DeliveryDetail.product_id)
            .where(Product.supplier_id == supplier_id)
            .group_by(Product.id, Product.name)
            .order_by(value.desc(), Product.name.asc(), Product.id.asc())
            .limit(TOP_PRODUCTS)
        )

    def build_product_trends_query(self, product_ids: List[int], since):
        period = truncate_to("month", Delivery.delivery_date).label("period")
        return (
            select(
                DeliveryDetail.product_id,
                period,
                func.coalesce(func.sum(DeliveryDetail.qty), 0).label("qty"),
            )
            .select_from(DeliveryDetail)
            .join(Delivery, Delivery.id == DeliveryDetail.delivery_id)
            .where(DeliveryDetail.product_id.in_(product_ids), on_or_after(Delivery.delivery_date, since))
            .group_by(DeliveryDetail.product_id, period)
        )

    async def get_detail(self, supplier_id: int) -> SupplierDetail:
        row = await self.db.fetch_one(self.build_supplier_query(supplier_id))
        if row is None:
            logger.info(f"Supplier {supplier_id} not found")
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Supplier not found"
            )

        spine = self._monthly_spine(row["today"])
        since = spine[0].start

        totals, qty_rows, top_rows = await gather(
            self.db.fetch_one(self.build_totals_query(supplier_id)),
            self.db.fetch_all(self.build_qty_trend_query(supplier_id, since)),
            self.db.fetch_all(self.build_top_products_query(supplier_id)),
        )
        totals = totals or {}

        # Per-product series need the ranking first
        trended = top_rows[:TRENDED_PRODUCTS]
        trend_rows: Dict[int, List] = {}
        if trended:
            rows = await self.db.fetch_all(
                self.build_product_trends_query([r["product_id"] for r in trended], since)
            )
            for trend_row in rows:
                trend_rows.setdefault(to_int(trend_row["product_id"]), []).append(trend_row)

        top_product_trends = []
        for product in trended:
            product_id = to_int(product["product_id"])
            for point in align(spine, trend_rows.get(product_id, []), ["qty"]):
                top_product_trends.append(
                    ProductQtyTrendPoint(
                        label=point["label"],
                        qty=to_float(point["qty"]),
                        product_id=product_id,
                        product_name=product["label"],
                    )
                )

        return SupplierDetail(
            supplier=SupplierSummary(
                id=row["id"],
                name=row["name"],
                account_number=row.get("account_number"),
                account_name=row.get("account_name"),
                product_count=to_int(row.get("product_count")),
            ),
            totals=SupplierTotals(
                sold_qty=to_float(totals.get("sold_qty")),
                revenue=to_float(totals.get("revenue")),
                last_sale_date=to_iso(totals.get("last_sale_date")),
            ),
            qty_trend=[
                QtyTrendPoint(label=p["label"], qty=to_float(p["qty"]))
                for p in align(spine, qty_rows, ["qty"])
            ],
            top_product_trends=top_product_trends,
            top_products=[
                TopItem(label=r["label"], value=to_float(r["value"]))
                for r in top_rows
            ],
        )
