from __future__ import annotations
import logging
from typing import Optional
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from services.mes.client import MesClient, get_mes_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["ubicaciones"])


class UbicacionesIn(BaseModel):
    sapMaterial: Optional[str] = None


@router.post("/ubicaciones")
async def post_ubicaciones(payload: UbicacionesIn, mes: MesClient = Depends(get_mes_client)):
    if not payload.sapMaterial:
        return JSONResponse(status_code=400, content={"error": "SAP material required"})
    try:
        data = await mes.search_material(payload.sapMaterial)
    except Exception:
        logger.exception("error fetching ubicaciones for %s", payload.sapMaterial)
        return JSONResponse(status_code=500, content={"error": "Failed to fetch ubicaciones"})
    return data
