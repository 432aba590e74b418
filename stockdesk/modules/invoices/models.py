from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from stockdesk.database.database import Base


class Invoice(Base):
    """Billing record; only used for customer activity recency."""
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True, index=True)
    invoice_date = Column(DateTime(timezone=True), nullable=False, index=True)
    code = Column(String(50), nullable=True)
