"""
Product Reports Service

Product list, overview dashboard, per-product analytics and the stock ledger.

Stock on hand is reconstructed from transactions, never read from a column:

    current stock = purchased - delivered + adjustments - draws

Each term only counts events on or after ``products.keep_stock_since`` when
that date is set. Stock matches are physical counts; they are listed in the
ledger as stored but do not enter the balance.

Cost of goods for a delivery line is ``overall_cost`` when recorded, otherwise
``products.cost * qty``.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status
from sqlalchemy import Text, cast, distinct, func, null, select, union_all

from stockdesk.common.listing import (
    ListParams,
    order_by_clauses,
    resolve_sort_key,
    search_filter,
)
from stockdesk.common.normalize import normalize_row, to_float, to_int, to_iso
from stockdesk.common.reporting import (
    BaseReportService,
    days_ago,
    label_or,
    on_or_after,
    sql_text,
    truncate_to,
)
from stockdesk.common.trends import align, month_label
from stockdesk.database.database import gather
from stockdesk.modules.categories.models import ProductCategory
from stockdesk.modules.customers.models import Customer
from stockdesk.modules.deliveries.models import Delivery, DeliveryDetail
from stockdesk.modules.inventory.models import Draw, StockAdjustment, StockMatch
from stockdesk.modules.products.models import Product
from stockdesk.modules.products.schemas import (
    LatestStockMatch,
    ProductDetail,
    ProductList,
    ProductOut,
    ProductQtyTrendPoint,
    ProductSortKey,
    ProductsOverview,
    ProductTotals,
    ProductTrendPoint,
    StockLedger,
    StockMovement,
    StockMovementKind,
)
from stockdesk.modules.purchases.models import Purchase, PurchaseDetail
from stockdesk.modules.suppliers.models import Supplier

logger = logging.getLogger(__name__)

UNCATEGORIZED = "Uncategorized"
UNKNOWN = "Unknown"
TOP_N = 5

SORT_COLUMNS = {
    ProductSortKey.NAME: Product.name,
    ProductSortKey.PRICE: Product.price,
    ProductSortKey.COST: Product.cost,
    ProductSortKey.CATEGORY: ProductCategory.name,
    ProductSortKey.SUPPLIER: Supplier.name,
    ProductSortKey.CREATED_AT: Product.created_at,
    ProductSortKey.UPDATED_AT: Product.updated_at,
    ProductSortKey.IS_ACTIVE: Product.is_active,
}
DEFAULT_SORT = ProductSortKey.NAME


def _product_columns():
    return [
        Product.id,
        Product.name,
        Product.price,
        Product.reseller_price,
        Product.cost,
        Product.unit,
        Product.category_id,
        ProductCategory.name.label("category_name"),
        Product.supplier_id,
        Supplier.name.label("supplier_name"),
        Product.keep_stock_since,
        Product.restock_number,
        Product.is_active,
        Product.created_at,
        Product.updated_at,
    ]


def _with_dimensions(stmt):
    return (
        stmt.select_from(Product)
        .outerjoin(ProductCategory, Product.category_id == ProductCategory.id)
        .outerjoin(Supplier, Product.supplier_id == Supplier.id)
    )


def sales_revenue():
    return DeliveryDetail.qty * DeliveryDetail.price


def cost_of_goods():
    """Requires ``products`` joined to ``delivery_details``."""
    return func.coalesce(DeliveryDetail.overall_cost, Product.cost * DeliveryDetail.qty)


def _since(column, since) -> List:
    return [on_or_after(column, since)] if since is not None else []


class ProductReportService(BaseReportService):
    """Service for product lists, analytics and stock reconstruction"""

    def build_list_query(self, params: ListParams):
        sort_key = resolve_sort_key(params.sort_by, ProductSortKey, DEFAULT_SORT)
        stmt = _with_dimensions(select(*_product_columns()))
        if params.search:
            stmt = stmt.where(
                search_filter(
                    params.search,
                    Product.name,
                    ProductCategory.name,
                    Supplier.name,
                )
            )
        count_stmt = self._count_query(stmt)
        stmt = stmt.order_by(*order_by_clauses(SORT_COLUMNS[sort_key], params.sort_dir, Product.id))
        return stmt, count_stmt

    async def list_products(self, params: ListParams) -> ProductList:
        stmt, count_stmt = self.build_list_query(params)
        page = await self._paginate(stmt, count_stmt, params)
        return ProductList(
            data=[ProductOut.model_validate(row) for row in page["data"]],
            total=page["total"],
            limit=page["limit"],
            offset=page["offset"],
        )

    # ----- overview -----

    def build_overview_query(self):
        return select(
            select(func.count(Product.id)).scalar_subquery().label("total"),
            select(func.count(Product.id))
            .where(Product.is_active.is_(True))
            .scalar_subquery()
            .label("active"),
            select(func.count(distinct(Product.category_id))).scalar_subquery().label("categories"),
            select(func.count(distinct(Product.supplier_id))).scalar_subquery().label("suppliers"),
            select(func.coalesce(func.sum(PurchaseDetail.qty), 0))
            .select_from(PurchaseDetail)
            .join(Purchase, Purchase.id == PurchaseDetail.purchase_id)
            .where(Purchase.purchase_date >= days_ago(30))
            .scalar_subquery()
            .label("purchased_30d"),
            select(func.coalesce(func.sum(DeliveryDetail.qty), 0))
            .select_from(DeliveryDetail)
            .join(Delivery, Delivery.id == DeliveryDetail.delivery_id)
            .where(Delivery.delivery_date >= days_ago(30))
            .scalar_subquery()
            .label("sold_30d"),
            select(func.max(Purchase.purchase_date)).scalar_subquery().label("last_purchase_date"),
            select(func.max(Delivery.delivery_date)).scalar_subquery().label("last_sale_date"),
        )

    def build_top_categories_query(self):
        label = label_or(ProductCategory.name, UNCATEGORIZED).label("label")
        value = func.count(Product.id).label("value")
        return (
            select(label, value)
            .select_from(Product)
            .outerjoin(ProductCategory, Product.category_id == ProductCategory.id)
            .group_by(label)
            .order_by(value.desc(), label.asc())
            .limit(TOP_N)
        )

    def build_top_suppliers_query(self):
        label = label_or(Supplier.name, UNKNOWN).label("label")
        value = func.count(Product.id).label("value")
        return (
            select(label, value)
            .select_from(Product)
            .outerjoin(Supplier, Product.supplier_id == Supplier.id)
            .group_by(label)
            .order_by(value.desc(), label.asc())
            .limit(TOP_N)
        )

    def build_top_sellers_query(self):
        label = label_or(Product.name, UNKNOWN).label("label")
        value = func.sum(DeliveryDetail.qty).label("value")
        return (
            select(label, value)
            .select_from(DeliveryDetail)
            .join(Delivery, Delivery.id == DeliveryDetail.delivery_id)
            .join(Product, Product.id == DeliveryDetail.product_id)
            .where(Delivery.delivery_date >= days_ago(30))
            .group_by(Product.id, label)
            .order_by(value.desc(), label.asc())
            .limit(TOP_N)
        )

    async def get_overview(self) -> ProductsOverview:
        stats, categories, suppliers, sellers = await gather(
            self.db.fetch_one(self.build_overview_query()),
            self._top_items(self.build_top_categories_query()),
            self._top_items(self.build_top_suppliers_query()),
            self._top_items(self.build_top_sellers_query()),
        )
        stats = stats or {}
        total = to_int(stats.get("total"))
        active = to_int(stats.get("active"))
        return ProductsOverview(
            total=total,
            active=active,
            inactive=total - active,
            categories=to_int(stats.get("categories")),
            suppliers=to_int(stats.get("suppliers")),
            purchased_30d=to_float(stats.get("purchased_30d")),
            sold_30d=to_float(stats.get("sold_30d")),
            last_purchase_date=to_iso(stats.get("last_purchase_date")),
            last_sale_date=to_iso(stats.get("last_sale_date")),
            top_categories=categories,
            top_suppliers=suppliers,
            top_sellers_30d=sellers,
        )

    # ----- detail -----

    def build_product_query(self, product_id: int):
        return _with_dimensions(
            select(*_product_columns(), func.current_date().label("today"))
        ).where(Product.id == product_id)

    def build_totals_query(self, product_id: int, since=None):
        def sold(*criteria):
            return (
                select(func.coalesce(func.sum(DeliveryDetail.qty), 0))
                .select_from(DeliveryDetail)
                .join(Delivery, Delivery.id == DeliveryDetail.delivery_id)
                .where(DeliveryDetail.product_id == product_id, *criteria)
                .scalar_subquery()
            )

        def purchased(*criteria):
            return (
                select(func.coalesce(func.sum(PurchaseDetail.qty), 0))
                .select_from(PurchaseDetail)
                .join(Purchase, Purchase.id == PurchaseDetail.purchase_id)
                .where(PurchaseDetail.product_id == product_id, *criteria)
                .scalar_subquery()
            )

        return select(
            sold().label("sold_qty"),
            purchased().label("purchased_qty"),
            select(func.coalesce(func.sum(sales_revenue()), 0))
            .where(DeliveryDetail.product_id == product_id)
            .scalar_subquery()
            .label("revenue"),
            select(func.coalesce(func.sum(cost_of_goods()), 0))
            .select_from(DeliveryDetail)
            .join(Product, Product.id == DeliveryDetail.product_id)
            .where(DeliveryDetail.product_id == product_id)
            .scalar_subquery()
            .label("cogs"),
            select(func.max(Delivery.delivery_date))
            .select_from(Delivery)
            .join(DeliveryDetail, DeliveryDetail.delivery_id == Delivery.id)
            .where(DeliveryDetail.product_id == product_id)
            .scalar_subquery()
            .label("last_sale_date"),
            select(func.max(Purchase.purchase_date))
            .select_from(Purchase)
            .join(PurchaseDetail, PurchaseDetail.purchase_id == Purchase.id)
            .where(PurchaseDetail.product_id == product_id)
            .scalar_subquery()
            .label("last_purchase_date"),
            # Windowed stock terms
            purchased(*_since(Purchase.purchase_date, since)).label("stock_purchased"),
            sold(*_since(Delivery.delivery_date, since)).label("stock_delivered"),
            select(func.coalesce(func.sum(StockAdjustment.amount), 0))
            .where(StockAdjustment.product_id == product_id, *_since(StockAdjustment.adjustment_date, since))
            .scalar_subquery()
            .label("stock_adjustments"),
            select(func.coalesce(func.sum(Draw.amount), 0))
            .where(Draw.product_id == product_id, *_since(Draw.draw_date, since))
            .scalar_subquery()
            .label("stock_draws"),
        )

    def build_sales_trend_query(self, product_id: int, since):
        period = truncate_to("month", Delivery.delivery_date).label("period")
        return (
            select(
                period,
                func.coalesce(func.sum(sales_revenue()), 0).label("revenue"),
                func.coalesce(func.sum(cost_of_goods()), 0).label("overall_cost"),
            )
            .select_from(DeliveryDetail)
            .join(Delivery, Delivery.id == DeliveryDetail.delivery_id)
            .join(Product, Product.id == DeliveryDetail.product_id)
            .where(DeliveryDetail.product_id == product_id, on_or_after(Delivery.delivery_date, since))
            .group_by(period)
        )

    def build_purchase_trend_query(self, product_id: int, since):
        period = truncate_to("month", Purchase.purchase_date).label("period")
        return (
            select(
                period,
                func.coalesce(func.sum(PurchaseDetail.qty * PurchaseDetail.price), 0).label("revenue"),
                func.coalesce(func.sum(PurchaseDetail.qty * Product.cost), 0).label("overall_cost"),
            )
            .select_from(PurchaseDetail)
            .join(Purchase, Purchase.id == PurchaseDetail.purchase_id)
            .join(Product, Product.id == PurchaseDetail.product_id)
            .where(PurchaseDetail.product_id == product_id, on_or_after(Purchase.purchase_date, since))
            .group_by(period)
        )

    def build_qty_trend_query(self, product_id: int, since):
        period = truncate_to("week", Delivery.delivery_date).label("period")
        return (
            select(period, func.coalesce(func.sum(DeliveryDetail.qty), 0).label("qty"))
            .select_from(DeliveryDetail)
            .join(Delivery, Delivery.id == DeliveryDetail.delivery_id)
            .where(DeliveryDetail.product_id == product_id, on_or_after(Delivery.delivery_date, since))
            .group_by(period)
        )

    def build_top_customers_query(self, product_id: int):
        label = label_or(Customer.full_name, UNKNOWN).label("label")
        value = func.sum(DeliveryDetail.qty).label("value")
        return (
            select(label, value)
            .select_from(DeliveryDetail)
            .join(Delivery, Delivery.id == DeliveryDetail.delivery_id)
            .outerjoin(Customer, Customer.id == Delivery.customer_id)
            .where(DeliveryDetail.product_id == product_id)
            .group_by(Delivery.customer_id, label)
            .order_by(value.desc(), label.asc())
            .limit(TOP_N)
        )

    def build_latest_match_query(self, product_id: int):
        return (
            select(
                StockMatch.match_date.label("date"),
                StockMatch.amount.label("qty"),
                StockMatch.description,
            )
            .where(StockMatch.product_id == product_id)
            .order_by(StockMatch.match_date.desc(), StockMatch.id.desc())
            .limit(1)
        )

    def _ledger(self, product_id: int, since=None):
        """Every stock event of the product as one (date, kind, qty, description, ref) set."""
        no_text = cast(null(), Text)
        deliveries = (
            select(
                Delivery.delivery_date.label("date"),
                sql_text(StockMovementKind.DELIVERY.value).label("kind"),
                (-DeliveryDetail.qty).label("qty"),
                cast(Customer.full_name, Text).label("description"),
                cast(Delivery.code, Text).label("ref"),
            )
            .select_from(DeliveryDetail)
            .join(Delivery, Delivery.id == DeliveryDetail.delivery_id)
            .outerjoin(Customer, Customer.id == Delivery.customer_id)
            .where(DeliveryDetail.product_id == product_id, *_since(Delivery.delivery_date, since))
        )
        purchases = (
            select(
                Purchase.purchase_date.label("date"),
                sql_text(StockMovementKind.PURCHASE.value).label("kind"),
                PurchaseDetail.qty.label("qty"),
                no_text.label("description"),
                cast(Purchase.code, Text).label("ref"),
            )
            .select_from(PurchaseDetail)
            .join(Purchase, Purchase.id == PurchaseDetail.purchase_id)
            .where(PurchaseDetail.product_id == product_id, *_since(Purchase.purchase_date, since))
        )
        adjustments = select(
            StockAdjustment.adjustment_date.label("date"),
            sql_text(StockMovementKind.ADJUSTMENT.value).label("kind"),
            StockAdjustment.amount.label("qty"),
            StockAdjustment.description.label("description"),
            no_text.label("ref"),
        ).where(StockAdjustment.product_id == product_id, *_since(StockAdjustment.adjustment_date, since))
        matches = select(
            StockMatch.match_date.label("date"),
            sql_text(StockMovementKind.MATCH.value).label("kind"),
            StockMatch.amount.label("qty"),
            StockMatch.description.label("description"),
            no_text.label("ref"),
        ).where(StockMatch.product_id == product_id, *_since(StockMatch.match_date, since))
        draws = select(
            Draw.draw_date.label("date"),
            sql_text(StockMovementKind.DRAW.value).label("kind"),
            (-Draw.amount).label("qty"),
            Draw.description.label("description"),
            no_text.label("ref"),
        ).where(Draw.product_id == product_id, *_since(Draw.draw_date, since))

        return union_all(deliveries, purchases, adjustments, matches, draws).subquery("ledger")

    def build_ledger_query(self, product_id: int, since=None, limit: Optional[int] = None):
        ledger = self._ledger(product_id, since)
        stmt = select(ledger).order_by(
            ledger.c.date.desc(),
            ledger.c.kind.asc(),
            ledger.c.ref.asc(),
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return stmt

    def build_balance_query(self, product_id: int, since=None):
        """Signed sum of the whole window, without the page cap."""
        ledger = self._ledger(product_id, since)
        return (
            select(func.coalesce(func.sum(ledger.c.qty), 0).label("balance"))
            .where(ledger.c.kind != sql_text(StockMovementKind.MATCH.value))
        )

    @staticmethod
    def _current_stock(totals: Dict[str, Any]) -> float:
        return (
            to_float(totals.get("stock_purchased"))
            - to_float(totals.get("stock_delivered"))
            + to_float(totals.get("stock_adjustments"))
            - to_float(totals.get("stock_draws"))
        )

    @staticmethod
    def _movements(rows) -> List[StockMovement]:
        return [StockMovement.model_validate(normalize_row(row)) for row in rows]

    async def _get_product_row(self, product_id: int) -> Dict[str, Any]:
        row = await self.db.fetch_one(self.build_product_query(product_id))
        if row is None:
            logger.info(f"Product {product_id} not found")
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Product not found"
            )
        return row

    async def get_detail(self, product_id: int) -> ProductDetail:
        row = await self._get_product_row(product_id)
        since = row.get("keep_stock_since")
        months = self._monthly_spine(row["today"])
        weeks = self._weekly_spine(row["today"])

        totals, sales, purchases, qty, ledger, customers, match = await gather(
            self.db.fetch_one(self.build_totals_query(product_id, since)),
            self.db.fetch_all(self.build_sales_trend_query(product_id, months[0].start)),
            self.db.fetch_all(self.build_purchase_trend_query(product_id, months[0].start)),
            self.db.fetch_all(self.build_qty_trend_query(product_id, weeks[0].start)),
            self.db.fetch_all(self.build_ledger_query(product_id, since, self.settings.STOCK_LEDGER_LIMIT)),
            self._top_items(self.build_top_customers_query(product_id)),
            self.db.fetch_one(self.build_latest_match_query(product_id)),
        )
        totals = totals or {}
        revenue = to_float(totals.get("revenue"))
        cogs = to_float(totals.get("cogs"))

        return ProductDetail(
            product=ProductOut.model_validate(normalize_row(row)),
            totals=ProductTotals(
                sold_qty=to_float(totals.get("sold_qty")),
                purchased_qty=to_float(totals.get("purchased_qty")),
                revenue=revenue,
                cogs=cogs,
                margin=revenue - cogs,
                last_sale_date=to_iso(totals.get("last_sale_date")),
                last_purchase_date=to_iso(totals.get("last_purchase_date")),
                current_stock=self._current_stock(totals),
            ),
            sales_trend=[
                ProductTrendPoint(label=p["label"], revenue=to_float(p["revenue"]), overall_cost=to_float(p["overall_cost"]))
                for p in align(months, sales, ["revenue", "overall_cost"])
            ],
            purchase_trend=[
                ProductTrendPoint(label=p["label"], revenue=to_float(p["revenue"]), overall_cost=to_float(p["overall_cost"]))
                for p in align(months, purchases, ["revenue", "overall_cost"])
            ],
            qty_trend=[
                ProductQtyTrendPoint(label=p["label"], qty=to_float(p["qty"]), month=month_label(p["start"]))
                for p in align(weeks, qty, ["qty"])
            ],
            stock_movements=self._movements(ledger),
            top_customers=customers,
            latest_stock_match=LatestStockMatch.model_validate(normalize_row(match)) if match else None,
        )

    async def get_stock_ledger(self, product_id: int, limit: Optional[int] = None) -> StockLedger:
        row = await self._get_product_row(product_id)
        since = row.get("keep_stock_since")
        if limit is None:
            limit = self.settings.STOCK_LEDGER_DEFAULT_LIMIT
        limit = max(1, min(self.settings.STOCK_LEDGER_MAX_LIMIT, limit))

        # One extra row tells whether the cap cut the ledger short
        totals, rows, balance = await gather(
            self.db.fetch_one(self.build_totals_query(product_id, since)),
            self.db.fetch_all(self.build_ledger_query(product_id, since, limit + 1)),
            self.db.fetch_scalar(self.build_balance_query(product_id, since)),
        )
        movements = self._movements(rows[:limit])

        return StockLedger(
            product_id=product_id,
            keep_stock_since=to_iso(since),
            current_stock=self._current_stock(totals or {}),
            balance=to_float(balance),
            truncated=len(rows) > limit,
            movements=movements,
        )
