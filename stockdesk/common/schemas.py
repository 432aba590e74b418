"""
Shared response models.

Fields are snake_case in Python and camelCase on the wire.
"""
import re
from typing import Generic, List, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


def to_wire_name(field_name: str) -> str:
    # "sold_30d" -> "sold30d" rather than to_camel's "sold30D"
    return re.sub(r"(\d)([A-Z])", lambda m: m.group(1) + m.group(2).lower(), to_camel(field_name))


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_wire_name,
        populate_by_name=True,
        from_attributes=True,
    )


class ListResponse(CamelModel, Generic[T]):
    data: List[T]
    total: int
    limit: int
    offset: int


class TopItem(CamelModel):
    label: str
    value: float


class TrendPoint(CamelModel):
    label: str
    count: int


class TrendAmountPoint(CamelModel):
    label: str
    amount: float
