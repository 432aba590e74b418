from enum import Enum
from typing import List, Optional

from stockdesk.common.schemas import CamelModel, ListResponse, TopItem


class SupplierSortKey(str, Enum):
    NAME = "name"
    PRODUCT_COUNT = "productCount"
    SOLD_QTY = "soldQty"
    REVENUE = "revenue"


class SupplierOut(CamelModel):
    id: int
    name: str
    account_number: Optional[str] = None
    account_name: Optional[str] = None
    product_count: int = 0
    sold_qty: float = 0
    revenue: float = 0


class SupplierList(ListResponse[SupplierOut]):
    pass


class SuppliersOverview(CamelModel):
    total: int
    products: int
    sold_qty: float
    revenue: float
    last_sale_date: Optional[str] = None


class SupplierSummary(CamelModel):
    id: int
    name: str
    account_number: Optional[str] = None
    account_name: Optional[str] = None
    product_count: int


class SupplierTotals(CamelModel):
    sold_qty: float
    revenue: float
    last_sale_date: Optional[str] = None


class QtyTrendPoint(CamelModel):
    label: str
    qty: float


class ProductQtyTrendPoint(CamelModel):
    """One product's units delivered in one month."""
    label: str
    qty: float
    product_id: int
    product_name: str


class SupplierDetail(CamelModel):
    supplier: SupplierSummary
    totals: SupplierTotals
    qty_trend: List[QtyTrendPoint]
    top_product_trends: List[ProductQtyTrendPoint]
    top_products: List[TopItem]
