"""
Customers Router

List, overview and detail endpoints for the customers screens.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query

from stockdesk.common.listing import ListParams
from stockdesk.database.database import DatabaseManager, get_database
from stockdesk.modules.customers.schemas import CustomerDetail, CustomerList, CustomersOverview
from stockdesk.modules.customers.service import CustomerReportService


router = APIRouter(prefix="/customers", tags=["Customers"])


@router.get("", response_model=CustomerList)
async def list_customers(
    search: Optional[str] = Query(None, description="Matches name, phone, address or region"),
    limit: Optional[int] = Query(None, description="Page size, clamped to 1..100"),
    offset: Optional[int] = Query(None, description="Rows to skip, clamped to >= 0"),
    sort_by: Optional[str] = Query(None, alias="sortBy", description="fullName, phone, region, createdAt, updatedAt or isActive"),
    sort_dir: Optional[str] = Query(None, alias="sortDir", description="asc or desc"),
    db: DatabaseManager = Depends(get_database),
):
    """Paginated, searchable customer list."""
    params = ListParams(search=search, limit=limit, offset=offset, sort_by=sort_by, sort_dir=sort_dir)
    return await CustomerReportService(db).list_customers(params)


@router.get("/overview", response_model=CustomersOverview)
async def get_customers_overview(db: DatabaseManager = Depends(get_database)):
    return await CustomerReportService(db).get_overview()


@router.get("/{customer_id}", response_model=CustomerDetail)
async def get_customer_detail(
    customer_id: int = Path(..., description="Customer ID"),
    db: DatabaseManager = Depends(get_database),
):
    """Customer analytics: activity, spend, category mix and RFM."""
    return await CustomerReportService(db).get_detail(customer_id)
