"""
Calendar spines for trend series.

A spine is the ordered list of period starts a series must cover. Query rows
grouped by ``date_trunc`` are aligned onto it so periods without activity
still appear, with a zero value.
"""
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List


@dataclass(frozen=True)
class Period:
    start: date
    label: str


def month_label(day: date) -> str:
    return day.strftime("%b %Y")


def week_label(day: date) -> str:
    return f"Wk {day.isocalendar()[1]:02d}"


def add_months(day: date, months: int) -> date:
    index = day.year * 12 + (day.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def monthly_spine(today: date, count: int) -> List[Period]:
    """``count`` months ending with the month containing ``today``, oldest first."""
    current = today.replace(day=1)
    starts = [add_months(current, -offset) for offset in range(count - 1, -1, -1)]
    return [Period(start=s, label=month_label(s)) for s in starts]


def weekly_spine(today: date, count: int) -> List[Period]:
    """``count`` ISO weeks (Monday starts) ending with the current week, oldest first."""
    current = today - timedelta(days=today.weekday())
    starts = [current - timedelta(weeks=offset) for offset in range(count - 1, -1, -1)]
    return [Period(start=s, label=week_label(s)) for s in starts]


def as_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def align(spine: List[Period], rows: Iterable[Dict[str, Any]], value_keys: Iterable[str], period_key: str = "period") -> List[Dict[str, Any]]:
    """
    Left-join grouped rows onto the spine.

    Returns one dict per period with ``label``, ``start`` and each of
    ``value_keys``; missing periods and NULL aggregates become 0.
    """
    value_keys = list(value_keys)
    by_period = {as_date(row[period_key]): row for row in rows if row.get(period_key) is not None}
    series = []
    for period in spine:
        row = by_period.get(period.start, {})
        point = {"label": period.label, "start": period.start}
        for key in value_keys:
            point[key] = row.get(key) or 0
        series.append(point)
    return series
