"""
Base service class for the report services

Provides the database handle, calendar spines, pagination and the SQL
building blocks shared by the customer, product and supplier services.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy import Date, cast, func, literal, literal_column, select

from stockdesk.common.listing import ListParams
from stockdesk.common.normalize import normalize_row, to_float
from stockdesk.common.schemas import TopItem
from stockdesk.common.trends import Period, as_date, monthly_spine, weekly_spine
from stockdesk.database.database import DatabaseManager, gather


def sql_text(value: str):
    """Inline a constant string so repeated uses in SELECT and GROUP BY match."""
    return literal_column("'" + value.replace("'", "''") + "'")


def truncate_to(unit: str, column):
    """date_trunc() to the period start, as a date."""
    return cast(func.date_trunc(sql_text(unit), column), Date)


def label_or(column, placeholder: str):
    """Ranking label with a placeholder for NULL dimensions."""
    return func.coalesce(column, sql_text(placeholder))


def days_ago(days: int):
    return func.current_date() - literal_column(f"INTERVAL '{int(days)} days'")


def on_or_after(column, day):
    """``column >= day`` with the day bound as a DATE, not as the column's timestamp type."""
    return column >= literal(day, Date)


class BaseReportService:
    """Base service class for all report services"""

    def __init__(self, db: DatabaseManager):
        self.db = db

    @property
    def settings(self):
        return self.db.settings

    def _monthly_spine(self, today: Any) -> List[Period]:
        return monthly_spine(as_date(today), self.settings.TREND_MONTHS)

    def _weekly_spine(self, today: Any) -> List[Period]:
        return weekly_spine(as_date(today), self.settings.TREND_WEEKS)

    async def _paginate(self, page_stmt, count_stmt, params: ListParams) -> Dict[str, Any]:
        """Run the page and the filtered count together."""
        rows, total = await gather(
            self.db.fetch_all(page_stmt.limit(params.limit).offset(params.offset)),
            self.db.fetch_scalar(count_stmt),
        )
        return {
            "data": [normalize_row(row) for row in rows],
            "total": int(total or 0),
            "limit": params.limit,
            "offset": params.offset,
        }

    async def _top_items(self, stmt) -> List[TopItem]:
        """Rows with ``label``/``value`` columns as ranked TopItems."""
        rows = await self.db.fetch_all(stmt)
        return [TopItem(label=row["label"], value=to_float(row["value"])) for row in rows]

    @staticmethod
    def _latest(*values: Optional[Any]) -> Optional[Any]:
        """Most recent of several nullable timestamps."""
        present = [v for v in values if v is not None]
        return max(present) if present else None

    @staticmethod
    def _count_query(base_stmt):
        return select(func.count()).select_from(base_stmt.order_by(None).subquery())

