from __future__ import annotations
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from app.core.config import PLANT_CODE, TERMINAL_STATUSES
from app.db.models.material_request import MaterialRequest


def to_wire_time(dt: Optional[datetime]) -> Optional[str]:
    # Same shape upstream uses: wall-clock fields with a "Z" suffix, millisecond precision.
    if dt is None:
        return None
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


class MaterialRequestRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id")
    plant_code: str = Field(..., alias="plantCode")
    sap_material: str = Field(..., alias="sapMaterial")
    station_name: str = Field(..., alias="stationName")
    mac_address: str = Field(..., alias="macAddress")
    request_time: str = Field(..., alias="requestTime")
    quantity: int
    type: str
    area: str
    response_time: Optional[str] = Field(default=None, alias="responseTime")
    status: str

    @classmethod
    def from_row(cls, row: MaterialRequest) -> "MaterialRequestRecord":
        return cls(
            id=row.id,
            plant_code=row.plant_code,
            sap_material=row.sap_material,
            station_name=row.station_name,
            mac_address=row.mac_address,
            request_time=to_wire_time(row.request_time),
            quantity=row.quantity,
            type=row.type,
            area=row.area,
            response_time=to_wire_time(row.response_time),
            status=row.status,
        )

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)


def list_active_requests(db: Session, plant_code: str = PLANT_CODE) -> list[MaterialRequestRecord]:
    """Open requests for one plant, newest first."""
    rows = (
        db.query(MaterialRequest)
        .filter(MaterialRequest.plant_code == plant_code)
        .filter(MaterialRequest.status.notin_(TERMINAL_STATUSES))
        .order_by(MaterialRequest.request_time.desc())
        .all()
    )
    return [MaterialRequestRecord.from_row(r) for r in rows]
