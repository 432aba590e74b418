from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Text

from stockdesk.common.mixins import BaseMixin
from stockdesk.database.database import Base


class Customer(Base, BaseMixin):
    __tablename__ = "customers"

    full_name = Column(String(200), nullable=False)
    phone = Column(String(50), nullable=True)
    address = Column(String(255), nullable=True)
    region_id = Column(Integer, ForeignKey("regions.id"), nullable=True, index=True)

    # Membership flags
    rs_member = Column(Boolean, nullable=True)
    receive_dr_discount = Column(Boolean, nullable=True)

    note = Column(Text, nullable=True)
    account_name = Column(String(200), nullable=True)
    account_number = Column(String(100), nullable=True)
