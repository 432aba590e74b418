"""
Regions customers are assigned to.
"""
from sqlalchemy import Column, Integer, String

from stockdesk.database.database import Base


class Region(Base):
    __tablename__ = "regions"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, index=True)
