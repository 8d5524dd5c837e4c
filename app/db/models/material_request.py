from __future__ import annotations
from datetime import datetime
from typing import Optional
from sqlalchemy import String, DateTime, Integer, Index
from sqlalchemy.orm import Mapped, mapped_column
from app.db.base import Base

class MaterialRequest(Base):
    """A station's request for material, written by the ingestion process.

    The dashboard only reads these rows. `request_time` holds plant wall-clock
    time even though upstream serializes it with a UTC suffix.
    """
    __tablename__ = "materialrequests"
    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    plant_code: Mapped[str] = mapped_column(String(16), nullable=False)
    sap_material: Mapped[str] = mapped_column(String(64), nullable=False)
    station_name: Mapped[str] = mapped_column(String(128), nullable=False)
    mac_address: Mapped[str] = mapped_column(String(64), nullable=False)
    request_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    area: Mapped[str] = mapped_column(String(128), nullable=False)
    response_time: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    status: Mapped[str] = mapped_column(String(24), nullable=False)

Index("ix_matreq_plant_status_time", MaterialRequest.plant_code, MaterialRequest.status, MaterialRequest.request_time)
