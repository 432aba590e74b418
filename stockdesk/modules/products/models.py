from sqlalchemy import Column, Date, ForeignKey, Integer, Numeric, String

from stockdesk.common.mixins import BaseMixin
from stockdesk.database.database import Base


class Product(Base, BaseMixin):
    __tablename__ = "products"

    name = Column(String(200), nullable=False)
    price = Column(Numeric(15, 2), nullable=False, default=0)
    reseller_price = Column(Numeric(15, 2), nullable=True)
    cost = Column(Numeric(15, 2), nullable=False, default=0)
    unit = Column(String(30), nullable=False, default="pcs")

    category_id = Column(Integer, ForeignKey("product_categories.id"), nullable=True, index=True)
    supplier_id = Column(Integer, ForeignKey("suppliers.id"), nullable=True, index=True)

    # Stock is only reconstructed from events on or after this date, when set
    keep_stock_since = Column(Date, nullable=True)
    restock_number = Column(Numeric(12, 2), nullable=True)
