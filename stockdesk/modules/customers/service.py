"""
Customer Reports Service

List, overview dashboard and per-customer analytics (activity trends, spend,
category mix, order-value distribution and RFM metrics).
"""

import logging

from fastapi import HTTPException, status
from sqlalchemy import Date, case, cast, distinct, func, select

from stockdesk.common.listing import (
    ListParams,
    order_by_clauses,
    resolve_sort_key,
    search_filter,
)
from stockdesk.common.normalize import normalize_row, to_float, to_int, to_iso
from stockdesk.common.reporting import BaseReportService, days_ago, label_or, on_or_after, truncate_to
from stockdesk.common.schemas import TrendAmountPoint, TrendPoint
from stockdesk.common.trends import align
from stockdesk.database.database import gather
from stockdesk.modules.categories.models import ProductCategory
from stockdesk.modules.customers.models import Customer
from stockdesk.modules.customers.schemas import (
    BucketSlice,
    CategorySlice,
    CustomerDetail,
    CustomerList,
    CustomerOut,
    CustomerSortKey,
    CustomersOverview,
    RegionCount,
    RfmMetrics,
)
from stockdesk.modules.deliveries.models import Delivery, DeliveryDetail
from stockdesk.modules.invoices.models import Invoice
from stockdesk.modules.locations.models import Region
from stockdesk.modules.products.models import Product

logger = logging.getLogger(__name__)

UNSPECIFIED_REGION = "Unspecified"
UNCATEGORIZED = "Uncategorized"
TOP_REGIONS = 5
TOP_CATEGORIES = 6

# (label, exclusive upper bound); the last bucket is open-ended
ORDER_VALUE_BUCKETS = [
    ("< 100k", 100_000),
    ("100k-500k", 500_000),
    ("500k-1M", 1_000_000),
    ("1M-5M", 5_000_000),
    (">= 5M", None),
]

SORT_COLUMNS = {
    CustomerSortKey.FULL_NAME: Customer.full_name,
    CustomerSortKey.PHONE: Customer.phone,
    CustomerSortKey.REGION: Region.name,
    CustomerSortKey.CREATED_AT: Customer.created_at,
    CustomerSortKey.UPDATED_AT: Customer.updated_at,
    CustomerSortKey.IS_ACTIVE: Customer.is_active,
}
DEFAULT_SORT = CustomerSortKey.FULL_NAME


def _customer_columns():
    return [
        Customer.id,
        Customer.full_name,
        Customer.phone,
        Customer.address,
        Customer.created_at,
        Customer.updated_at,
        Customer.rs_member,
        Customer.receive_dr_discount,
        Customer.region_id,
        Region.name.label("region_name"),
        Customer.note,
        Customer.account_name,
        Customer.account_number,
        Customer.is_active,
    ]


def _line_amount():
    return DeliveryDetail.qty * DeliveryDetail.price


class CustomerReportService(BaseReportService):
    """Service for customer lists and analytics"""

    def build_list_query(self, params: ListParams):
        sort_key = resolve_sort_key(params.sort_by, CustomerSortKey, DEFAULT_SORT)
        stmt = (
            select(*_customer_columns())
            .select_from(Customer)
            .outerjoin(Region, Customer.region_id == Region.id)
        )
        if params.search:
            stmt = stmt.where(
                search_filter(
                    params.search,
                    Customer.full_name,
                    Customer.phone,
                    Customer.address,
                    Region.name,
                )
            )
        count_stmt = self._count_query(stmt)
        stmt = stmt.order_by(*order_by_clauses(SORT_COLUMNS[sort_key], params.sort_dir, Customer.id))
        return stmt, count_stmt

    async def list_customers(self, params: ListParams) -> CustomerList:
        stmt, count_stmt = self.build_list_query(params)
        page = await self._paginate(stmt, count_stmt, params)
        return CustomerList(
            data=[CustomerOut.model_validate(row) for row in page["data"]],
            total=page["total"],
            limit=page["limit"],
            offset=page["offset"],
        )

    # ----- overview -----

    def build_overview_query(self):
        def count_where(*criteria):
            return select(func.count(Customer.id)).where(*criteria).scalar_subquery()

        return select(
            select(func.count(Customer.id)).scalar_subquery().label("total"),
            count_where(Customer.is_active.is_(True)).label("active"),
            count_where(Customer.rs_member.is_(True)).label("rs_member"),
            count_where(Customer.receive_dr_discount.is_(True)).label("receive_dr_discount"),
            select(func.count(distinct(Invoice.customer_id)))
            .where(Invoice.customer_id.isnot(None), Invoice.invoice_date >= days_ago(30))
            .scalar_subquery()
            .label("with_invoices_30d"),
            select(func.max(Invoice.invoice_date)).scalar_subquery().label("last_invoice_date"),
        )

    def build_top_regions_query(self):
        label = label_or(Region.name, UNSPECIFIED_REGION).label("label")
        value = func.count(Customer.id).label("value")
        return (
            select(label, value)
            .select_from(Customer)
            .outerjoin(Region, Customer.region_id == Region.id)
            .group_by(label)
            .order_by(value.desc(), label.asc())
            .limit(TOP_REGIONS)
        )

    async def get_overview(self) -> CustomersOverview:
        stats, regions = await gather(
            self.db.fetch_one(self.build_overview_query()),
            self.db.fetch_all(self.build_top_regions_query()),
        )
        stats = stats or {}
        total = to_int(stats.get("total"))
        active = to_int(stats.get("active"))
        return CustomersOverview(
            total=total,
            active=active,
            inactive=total - active,
            rs_member=to_int(stats.get("rs_member")),
            receive_dr_discount=to_int(stats.get("receive_dr_discount")),
            with_invoices_30d=to_int(stats.get("with_invoices_30d")),
            last_invoice_date=to_iso(stats.get("last_invoice_date")),
            top_regions=[
                RegionCount(region_name=row["label"], count=to_int(row["value"]))
                for row in regions
            ],
        )

    # ----- detail -----

    def build_customer_query(self, customer_id: int):
        return (
            select(*_customer_columns(), func.current_date().label("today"))
            .select_from(Customer)
            .outerjoin(Region, Customer.region_id == Region.id)
            .where(Customer.id == customer_id)
        )

    def build_activity_query(self, customer_id: int):
        last_delivery = (
            select(func.max(Delivery.delivery_date))
            .where(Delivery.customer_id == customer_id)
            .scalar_subquery()
        )
        return select(
            select(func.count(Invoice.id))
            .where(Invoice.customer_id == customer_id)
            .scalar_subquery()
            .label("invoice_count"),
            select(func.count(Delivery.id))
            .where(Delivery.customer_id == customer_id)
            .scalar_subquery()
            .label("delivery_count"),
            select(func.max(Invoice.invoice_date))
            .where(Invoice.customer_id == customer_id)
            .scalar_subquery()
            .label("last_invoice_date"),
            last_delivery.label("last_delivery_date"),
            # date - date is a whole number of days; NULL without deliveries
            (func.current_date() - cast(last_delivery, Date)).label("recency_days"),
        )

    def build_invoice_trend_query(self, customer_id: int, since):
        period = truncate_to("month", Invoice.invoice_date).label("period")
        return (
            select(period, func.count(Invoice.id).label("count"))
            .where(Invoice.customer_id == customer_id, on_or_after(Invoice.invoice_date, since))
            .group_by(period)
        )

    def build_delivery_trend_query(self, customer_id: int, since):
        period = truncate_to("month", Delivery.delivery_date).label("period")
        return (
            select(period, func.count(Delivery.id).label("count"))
            .where(Delivery.customer_id == customer_id, on_or_after(Delivery.delivery_date, since))
            .group_by(period)
        )

    def build_spend_trend_query(self, customer_id: int, since):
        period = truncate_to("month", Delivery.delivery_date).label("period")
        return (
            select(period, func.coalesce(func.sum(_line_amount()), 0).label("amount"))
            .select_from(Delivery)
            .join(DeliveryDetail, DeliveryDetail.delivery_id == Delivery.id)
            .where(Delivery.customer_id == customer_id, on_or_after(Delivery.delivery_date, since))
            .group_by(period)
        )

    def build_category_breakdown_query(self, customer_id: int):
        label = label_or(ProductCategory.name, UNCATEGORIZED).label("label")
        amount = func.coalesce(func.sum(_line_amount()), 0).label("amount")
        return (
            select(label, amount)
            .select_from(Delivery)
            .join(DeliveryDetail, DeliveryDetail.delivery_id == Delivery.id)
            .join(Product, Product.id == DeliveryDetail.product_id)
            .outerjoin(ProductCategory, Product.category_id == ProductCategory.id)
            .where(Delivery.customer_id == customer_id)
            .group_by(label)
            .order_by(amount.desc(), label.asc())
            .limit(TOP_CATEGORIES)
        )

    def build_order_value_query(self, customer_id: int):
        totals = (
            select(
                Delivery.id.label("delivery_id"),
                func.coalesce(func.sum(_line_amount()), 0).label("total"),
            )
            .select_from(Delivery)
            .outerjoin(DeliveryDetail, DeliveryDetail.delivery_id == Delivery.id)
            .where(Delivery.customer_id == customer_id)
            .group_by(Delivery.id)
            .subquery()
        )
        bucket = case(
            *[
                (totals.c.total < bound, index)
                for index, (_, bound) in enumerate(ORDER_VALUE_BUCKETS)
                if bound is not None
            ],
            else_=len(ORDER_VALUE_BUCKETS) - 1,
        )
        bucketed = select(bucket.label("bucket")).select_from(totals).subquery()
        return (
            select(bucketed.c.bucket, func.count().label("count"))
            .group_by(bucketed.c.bucket)
        )

    async def get_detail(self, customer_id: int) -> CustomerDetail:
        row = await self.db.fetch_one(self.build_customer_query(customer_id))
        if row is None:
            logger.info(f"Customer {customer_id} not found")
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Customer not found"
            )

        spine = self._monthly_spine(row["today"])
        since = spine[0].start

        activity, invoices, deliveries, spend, categories, buckets = await gather(
            self.db.fetch_one(self.build_activity_query(customer_id)),
            self.db.fetch_all(self.build_invoice_trend_query(customer_id, since)),
            self.db.fetch_all(self.build_delivery_trend_query(customer_id, since)),
            self.db.fetch_all(self.build_spend_trend_query(customer_id, since)),
            self.db.fetch_all(self.build_category_breakdown_query(customer_id)),
            self.db.fetch_all(self.build_order_value_query(customer_id)),
        )
        activity = activity or {}

        invoice_trend = [
            TrendPoint(label=p["label"], count=to_int(p["count"]))
            for p in align(spine, invoices, ["count"])
        ]
        delivery_trend = [
            TrendPoint(label=p["label"], count=to_int(p["count"]))
            for p in align(spine, deliveries, ["count"])
        ]
        spend_trend = [
            TrendAmountPoint(label=p["label"], amount=to_float(p["amount"]))
            for p in align(spine, spend, ["amount"])
        ]

        bucket_counts = {to_int(b["bucket"]): to_int(b["count"]) for b in buckets}
        order_value_buckets = [
            BucketSlice(label=label, count=bucket_counts.get(index, 0))
            for index, (label, _) in enumerate(ORDER_VALUE_BUCKETS)
        ]

        last_invoice = activity.get("last_invoice_date")
        last_delivery = activity.get("last_delivery_date")
        delivery_count = to_int(activity.get("delivery_count"))

        return CustomerDetail(
            customer=CustomerOut.model_validate(normalize_row(row)),
            invoice_count=to_int(activity.get("invoice_count")),
            delivery_count=delivery_count,
            last_invoice_date=to_iso(last_invoice),
            last_delivery_date=to_iso(last_delivery),
            last_activity_date=to_iso(self._latest(last_invoice, last_delivery)),
            invoice_trend=invoice_trend,
            delivery_trend=delivery_trend,
            spend_trend=spend_trend,
            category_breakdown=[
                CategorySlice(label=c["label"], amount=to_float(c["amount"]))
                for c in categories
            ],
            order_value_buckets=order_value_buckets,
            rfm=RfmMetrics(
                recency_days=to_int(activity.get("recency_days"), default=None),
                frequency=delivery_count,
                monetary=sum(point.amount for point in spend_trend),
            ),
        )
