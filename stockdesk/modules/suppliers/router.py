"""
Suppliers Router
"""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query

from stockdesk.common.listing import ListParams
from stockdesk.database.database import DatabaseManager, get_database
from stockdesk.modules.suppliers.schemas import SupplierDetail, SupplierList, SuppliersOverview
from stockdesk.modules.suppliers.service import SupplierReportService


router = APIRouter(prefix="/suppliers", tags=["Suppliers"])


@router.get("", response_model=SupplierList)
async def list_suppliers(
    search: Optional[str] = Query(None, description="Matches supplier name"),
    limit: Optional[int] = Query(None, description="Page size, clamped to 1..100"),
    offset: Optional[int] = Query(None, description="Rows to skip, clamped to >= 0"),
    sort_by: Optional[str] = Query(None, alias="sortBy", description="name, productCount, soldQty or revenue"),
    sort_dir: Optional[str] = Query(None, alias="sortDir", description="asc or desc"),
    db: DatabaseManager = Depends(get_database),
):
    params = ListParams(search=search, limit=limit, offset=offset, sort_by=sort_by, sort_dir=sort_dir)
    return await SupplierReportService(db).list_suppliers(params)


@router.get("/overview", response_model=SuppliersOverview)
async def get_suppliers_overview(db: DatabaseManager = Depends(get_database)):
    return await SupplierReportService(db).get_overview()


@router.get("/{supplier_id}", response_model=SupplierDetail)
async def get_supplier_detail(
    supplier_id: int = Path(..., description="Supplier ID"),
    db: DatabaseManager = Depends(get_database),
):
    """Supplier analytics: sales totals, monthly units and top products."""
    return await SupplierReportService(db).get_detail(supplier_id)
