"""
Products Router

List, overview, detail and stock ledger endpoints for the products screens.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query

from stockdesk.common.listing import ListParams
from stockdesk.database.database import DatabaseManager, get_database
from stockdesk.modules.products.schemas import ProductDetail, ProductList, ProductsOverview, StockLedger
from stockdesk.modules.products.service import ProductReportService


router = APIRouter(prefix="/products", tags=["Products"])


@router.get("", response_model=ProductList)
async def list_products(
    search: Optional[str] = Query(None, description="Matches name, category or supplier"),
    limit: Optional[int] = Query(None, description="Page size, clamped to 1..100"),
    offset: Optional[int] = Query(None, description="Rows to skip, clamped to >= 0"),
    sort_by: Optional[str] = Query(None, alias="sortBy", description="name, price, cost, category, supplier, createdAt, updatedAt or isActive"),
    sort_dir: Optional[str] = Query(None, alias="sortDir", description="asc or desc"),
    db: DatabaseManager = Depends(get_database),
):
    """Paginated, searchable product list."""
    params = ListParams(search=search, limit=limit, offset=offset, sort_by=sort_by, sort_dir=sort_dir)
    return await ProductReportService(db).list_products(params)


@router.get("/overview", response_model=ProductsOverview)
async def get_products_overview(db: DatabaseManager = Depends(get_database)):
    return await ProductReportService(db).get_overview()


@router.get("/{product_id}", response_model=ProductDetail)
async def get_product_detail(
    product_id: int = Path(..., description="Product ID"),
    db: DatabaseManager = Depends(get_database),
):
    """Product analytics: totals, trends, stock movements and top customers."""
    return await ProductReportService(db).get_detail(product_id)


@router.get("/{product_id}/stock-ledger", response_model=StockLedger)
async def get_product_stock_ledger(
    product_id: int = Path(..., description="Product ID"),
    limit: Optional[int] = Query(None, description="Movements to return (default 200), clamped to 1..1000"),
    db: DatabaseManager = Depends(get_database),
):
    """Windowed stock movements with the reconstructed balance."""
    return await ProductReportService(db).get_stock_ledger(product_id, limit)
