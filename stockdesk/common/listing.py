"""
List request normalisation, search predicates and sort resolution shared by the
customers, products and suppliers list endpoints.
"""
import enum
from typing import List, Optional, Type, TypeVar

from pydantic import Field, field_validator
from sqlalchemy import or_

from stockdesk.common.schemas import CamelModel
from stockdesk.core.config import settings

E = TypeVar("E", bound=enum.Enum)

LIKE_ESCAPE = "\\"


class SortDirection(str, enum.Enum):
    ASC = "asc"
    DESC = "desc"


class ListParams(CamelModel):
    """Out-of-range values are clamped, never rejected."""
    search: Optional[str] = None
    limit: int = Field(default_factory=lambda: settings.DEFAULT_PAGE_SIZE)
    offset: int = 0
    sort_by: Optional[str] = None
    sort_dir: SortDirection = SortDirection.ASC

    @field_validator("search", mode="before")
    @classmethod
    def blank_search_is_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator("limit", mode="before")
    @classmethod
    def default_limit(cls, v):
        if v is None or v == "":
            return settings.DEFAULT_PAGE_SIZE
        return v

    @field_validator("limit")
    @classmethod
    def clamp_limit(cls, v: int) -> int:
        return max(1, min(settings.MAX_PAGE_SIZE, v))

    @field_validator("offset", mode="before")
    @classmethod
    def default_offset(cls, v):
        if v is None or v == "":
            return 0
        return v

    @field_validator("offset")
    @classmethod
    def clamp_offset(cls, v: int) -> int:
        return max(0, v)

    @field_validator("sort_dir", mode="before")
    @classmethod
    def parse_sort_dir(cls, v):
        if isinstance(v, SortDirection):
            return v
        if isinstance(v, str) and v.strip().lower() == "desc":
            return SortDirection.DESC
        return SortDirection.ASC


def resolve_sort_key(sort_by: Optional[str], keys: Type[E], default: E) -> E:
    """Map a client-supplied key onto the allow-listed enum, else the default."""
    if sort_by is None:
        return default
    try:
        return keys(sort_by)
    except ValueError:
        return default


def order_by_clauses(expression, direction: SortDirection, tiebreak) -> List:
    """Requested ordering followed by the primary key, for stable pages."""
    ordered = expression.desc() if direction is SortDirection.DESC else expression.asc()
    return [ordered, tiebreak.asc()]


def like_pattern(term: str) -> str:
    escaped = (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"


def search_filter(term: str, *columns):
    """Case-insensitive substring match against any of the columns."""
    pattern = like_pattern(term)
    return or_(*[column.ilike(pattern, escape=LIKE_ESCAPE) for column in columns])
