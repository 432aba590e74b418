from enum import Enum
from typing import List, Optional

from stockdesk.common.schemas import CamelModel, ListResponse, TopItem


class ProductSortKey(str, Enum):
    NAME = "name"
    PRICE = "price"
    COST = "cost"
    CATEGORY = "category"
    SUPPLIER = "supplier"
    CREATED_AT = "createdAt"
    UPDATED_AT = "updatedAt"
    IS_ACTIVE = "isActive"


class StockMovementKind(str, Enum):
    DELIVERY = "delivery"
    PURCHASE = "purchase"
    ADJUSTMENT = "adjustment"
    MATCH = "match"
    DRAW = "draw"


class ProductOut(CamelModel):
    id: int
    name: str
    price: float
    reseller_price: Optional[float] = None
    cost: float
    unit: str
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    supplier_id: Optional[int] = None
    supplier_name: Optional[str] = None
    keep_stock_since: Optional[str] = None
    restock_number: Optional[float] = None
    is_active: Optional[bool] = None
    created_at: str
    updated_at: str


class ProductList(ListResponse[ProductOut]):
    pass


class ProductsOverview(CamelModel):
    total: int
    active: int
    inactive: int
    categories: int
    suppliers: int
    purchased_30d: float
    sold_30d: float
    last_purchase_date: Optional[str] = None
    last_sale_date: Optional[str] = None
    top_categories: List[TopItem]
    top_suppliers: List[TopItem]
    top_sellers_30d: List[TopItem]


class ProductTrendPoint(CamelModel):
    label: str
    revenue: float
    overall_cost: float


class ProductQtyTrendPoint(CamelModel):
    label: str
    qty: float
    month: str


class StockMovement(CamelModel):
    date: str
    kind: StockMovementKind
    qty: float
    description: Optional[str] = None
    ref: Optional[str] = None


class LatestStockMatch(CamelModel):
    date: Optional[str] = None
    qty: Optional[float] = None
    description: Optional[str] = None


class ProductTotals(CamelModel):
    sold_qty: float
    purchased_qty: float
    revenue: float
    cogs: float
    margin: float
    last_sale_date: Optional[str] = None
    last_purchase_date: Optional[str] = None
    current_stock: float


class ProductDetail(CamelModel):
    product: ProductOut
    totals: ProductTotals
    sales_trend: List[ProductTrendPoint]
    purchase_trend: List[ProductTrendPoint]
    qty_trend: List[ProductQtyTrendPoint]
    stock_movements: List[StockMovement]
    top_customers: List[TopItem]
    latest_stock_match: Optional[LatestStockMatch] = None


class StockLedger(CamelModel):
    """
    Every stock event inside the product's stock window, newest first.

    ``balance`` sums the signed quantities of every non-match event in the
    window, including those past the page cap, so it always equals
    ``current_stock``. ``truncated`` only says the movement list was cut short.
    """
    product_id: int
    keep_stock_since: Optional[str] = None
    current_stock: float
    balance: float
    truncated: bool
    movements: List[StockMovement]
