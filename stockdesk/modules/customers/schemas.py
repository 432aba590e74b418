from enum import Enum
from typing import List, Optional

from stockdesk.common.schemas import CamelModel, ListResponse, TrendAmountPoint, TrendPoint


class CustomerSortKey(str, Enum):
    FULL_NAME = "fullName"
    PHONE = "phone"
    REGION = "region"
    CREATED_AT = "createdAt"
    UPDATED_AT = "updatedAt"
    IS_ACTIVE = "isActive"


class CustomerOut(CamelModel):
    id: int
    full_name: str
    phone: Optional[str] = None
    address: Optional[str] = None
    created_at: str
    updated_at: str
    rs_member: Optional[bool] = None
    receive_dr_discount: Optional[bool] = None
    region_id: Optional[int] = None
    region_name: Optional[str] = None
    note: Optional[str] = None
    account_name: Optional[str] = None
    account_number: Optional[str] = None
    is_active: Optional[bool] = None


class CustomerList(ListResponse[CustomerOut]):
    pass


class RegionCount(CamelModel):
    region_name: str
    count: int


class CustomersOverview(CamelModel):
    total: int
    active: int
    inactive: int
    rs_member: int
    receive_dr_discount: int
    with_invoices_30d: int
    last_invoice_date: Optional[str] = None
    top_regions: List[RegionCount]


class CategorySlice(CamelModel):
    label: str
    amount: float


class BucketSlice(CamelModel):
    label: str
    count: int


class RfmMetrics(CamelModel):
    """Recency in whole days (None without deliveries), delivery count, spend."""
    recency_days: Optional[int] = None
    frequency: int
    monetary: float


class CustomerDetail(CamelModel):
    customer: CustomerOut
    invoice_count: int
    delivery_count: int
    last_invoice_date: Optional[str] = None
    last_delivery_date: Optional[str] = None
    last_activity_date: Optional[str] = None
    invoice_trend: List[TrendPoint]
    delivery_trend: List[TrendPoint]
    spend_trend: List[TrendAmountPoint]
    category_breakdown: List[CategorySlice]
    order_value_buckets: List[BucketSlice]
    rfm: RfmMetrics
