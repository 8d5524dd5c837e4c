from __future__ import annotations
import asyncio
import logging
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine

from app.db.session import LazyEngine, SessionLocal, requests_engine
from services.material_requests.service import MaterialRequestRecord, list_active_requests

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["material_requests"])

def get_requests_engine() -> LazyEngine:
    return requests_engine

def _query(engine: Engine) -> list[MaterialRequestRecord]:
    with SessionLocal(bind=engine) as db:
        return list_active_requests(db)

@router.get("/material-requests")
async def get_material_requests(handle: LazyEngine = Depends(get_requests_engine)):
    # connect inside the try: an unreachable database is a failed fetch like any other
    try:
        engine = await handle.connect()
        rows = await asyncio.to_thread(_query, engine)
    except Exception:
        logger.exception("error fetching material requests")
        return JSONResponse(status_code=500, content={"error": "Failed to fetch material requests"})
    return [r.to_wire() for r in rows]
