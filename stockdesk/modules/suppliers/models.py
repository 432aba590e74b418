from sqlalchemy import Column, Integer, String

from stockdesk.database.database import Base


class Supplier(Base):
    """Product count, units sold and revenue are derived, never stored."""
    __tablename__ = "suppliers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    account_number = Column(String(100), nullable=True)
    account_name = Column(String(200), nullable=True)
