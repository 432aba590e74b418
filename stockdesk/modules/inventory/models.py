"""
Ad-hoc stock corrections recorded outside deliveries and purchases.
"""
from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, Text

from stockdesk.database.database import Base


class StockAdjustment(Base):
    __tablename__ = "stock_adjustments"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    adjustment_date = Column(DateTime(timezone=True), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)  # signed
    description = Column(Text, nullable=True)


class StockMatch(Base):
    """A physical count: ``amount`` is the quantity on hand, not a delta."""
    __tablename__ = "stock_matches"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    match_date = Column(DateTime(timezone=True), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    description = Column(Text, nullable=True)


class Draw(Base):
    __tablename__ = "draws"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    draw_date = Column(DateTime(timezone=True), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)  # unsigned, always outbound
    description = Column(Text, nullable=True)
