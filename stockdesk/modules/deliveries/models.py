"""
Outbound stock: deliveries to customers and their line items.
"""
from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String

from stockdesk.database.database import Base


class Delivery(Base):
    __tablename__ = "deliveries"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True, index=True)
    delivery_date = Column(DateTime(timezone=True), nullable=False, index=True)
    code = Column(String(50), nullable=True)


class DeliveryDetail(Base):
    __tablename__ = "delivery_details"

    id = Column(Integer, primary_key=True, index=True)
    delivery_id = Column(Integer, ForeignKey("deliveries.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    qty = Column(Numeric(12, 2), nullable=False)
    price = Column(Numeric(15, 2), nullable=False)
    # Explicit line cost; when NULL the cost is product.cost * qty
    overall_cost = Column(Numeric(15, 2), nullable=True)
