from __future__ import annotations
import logging
from typing import Optional
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.db.session import get_parts_db
from services.customer_part.service import find_customer_part

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["customer_part"])

@router.get("/customer-part")
def get_customer_part(sap: Optional[str] = None, db: Session = Depends(get_parts_db)):
    if not sap:
        return JSONResponse(status_code=400, content={"error": "SAP number required"})
    try:
        part = find_customer_part(db, sap)
    except Exception:
        logger.exception("error fetching customer part for %s", sap)
        return JSONResponse(status_code=500, content={"error": "Database error"})
    return {"custPart": part}
