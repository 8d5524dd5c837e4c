from __future__ import annotations
from typing import Optional
from sqlalchemy.orm import Session

from app.db.models.customer_part import CustomerPart

SAP_KEY_PREFIX = "P"

def normalize_sap_key(sap: str) -> str:
    """vulc.no_sap stores material numbers with a leading "P"."""
    sap = sap.strip()
    return sap if sap.startswith(SAP_KEY_PREFIX) else f"{SAP_KEY_PREFIX}{sap}"

def find_customer_part(db: Session, sap: str) -> Optional[str]:
    row = db.query(CustomerPart).filter(CustomerPart.no_sap == normalize_sap_key(sap)).first()
    return row.cust_part if row else None
