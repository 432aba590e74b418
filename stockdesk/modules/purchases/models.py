"""
Inbound stock: purchases and their line items.
"""
from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String

from stockdesk.database.database import Base


class Purchase(Base):
    __tablename__ = "purchases"

    id = Column(Integer, primary_key=True, index=True)
    purchase_date = Column(DateTime(timezone=True), nullable=False, index=True)
    code = Column(String(50), nullable=True)


class PurchaseDetail(Base):
    __tablename__ = "purchase_details"

    id = Column(Integer, primary_key=True, index=True)
    purchase_id = Column(Integer, ForeignKey("purchases.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    qty = Column(Numeric(12, 2), nullable=False)
    price = Column(Numeric(15, 2), nullable=False)
