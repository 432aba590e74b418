"""
Common mixins for the read-only table mappings
"""
from sqlalchemy import Boolean, Column, DateTime, Integer
from sqlalchemy.sql import func


class TimestampMixin:
    """Audit timestamps maintained by the external store"""

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class BaseMixin(TimestampMixin):
    """Integer key, active flag and audit timestamps for the main entities"""

    id = Column(Integer, primary_key=True, index=True)
    is_active = Column(Boolean, default=True, nullable=True)
