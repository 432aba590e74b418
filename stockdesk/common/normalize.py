"""
Row normalisation applied to every query result before it becomes a DTO.

- datetime/date -> ISO-8601 string
- Decimal -> float (reporting tolerance, not ledger settlement)
- None stays None
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Optional


def to_iso(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def to_float(value: Any, default: Optional[float] = 0.0) -> Optional[float]:
    if value is None:
        return default
    return float(value)


def to_int(value: Any, default: Optional[int] = 0) -> Optional[int]:
    if value is None:
        return default
    return int(value)


def normalize_value(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    return value


def normalize_row(row: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if row is None:
        return None
    return {key: normalize_value(value) for key, value in row.items()}
