"""
Database connectivity check
"""
from typing import Optional

from fastapi import APIRouter, Depends

from stockdesk.common.schemas import CamelModel
from stockdesk.database.database import DatabaseManager, get_database

router = APIRouter(prefix="/database", tags=["System"])


class PingResponse(CamelModel):
    ok: bool
    now: str
    database: Optional[str] = None


@router.get("/ping", response_model=PingResponse)
async def ping_database(db: DatabaseManager = Depends(get_database)):
    return await db.ping()
