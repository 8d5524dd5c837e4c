from __future__ import annotations
from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column
from app.db.base import Base

class CustomerPart(Base):
    __tablename__ = "vulc"
    # no_sap carries the "P" prefix, e.g. P1000123
    no_sap: Mapped[str] = mapped_column(String(64), primary_key=True)
    cust_part: Mapped[str] = mapped_column(String(128), nullable=False)
