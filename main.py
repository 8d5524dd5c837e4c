from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import DASHBOARD_ENABLED
from app.core.logging import configure_logging
from app.db.session import dispose_all

# Register models
from app.db import models  # noqa: F401

from services.material_requests.api import router as material_requests_router
from services.customer_part.api import router as customer_part_router
from services.ubicaciones.api import router as ubicaciones_router
from services.dashboard.api import router as dashboard_router
from services.dashboard.runtime import build_dashboard, start_dashboard, stop_dashboard
from services.mes.client import close_mes_client

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="TMES - Solicitudes de Materiales")

@app.exception_handler(SQLAlchemyError)
async def _db_error(request: Request, exc: SQLAlchemyError):
    # Raised while opening a session (before any route try/except runs).
    logger.error("database error on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=500, content={"error": "Database error"})

app.include_router(material_requests_router)
app.include_router(customer_part_router)
app.include_router(ubicaciones_router)
app.include_router(dashboard_router)

@app.on_event("startup")
async def _startup():
    # The poller and per-card timers run in-process, next to the API.
    if DASHBOARD_ENABLED:
        start_dashboard(build_dashboard())

@app.on_event("shutdown")
async def _shutdown():
    await stop_dashboard()
    await close_mes_client()
    dispose_all()

@app.get("/health")
def health():
    return {"ok": True}
