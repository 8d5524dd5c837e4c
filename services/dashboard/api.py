from __future__ import annotations
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query

from app.core.config import MATERIAL_TYPES
from services.dashboard.poller import Dashboard
from services.dashboard.runtime import get_dashboard

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])

def require_dashboard() -> Dashboard:
    dashboard = get_dashboard()
    if dashboard is None:
        raise HTTPException(503, "dashboard not running")
    return dashboard

@router.get("")
async def dashboard_snapshot(types: Optional[list[str]] = Query(default=None), dashboard: Dashboard = Depends(require_dashboard)):
    """Cards grouped by area, optionally restricted to some material types.

    Runs on the event loop so it never reads the dashboard mid-poll.
    """
    return dashboard.snapshot(types)

@router.get("/material-types")
def material_types():
    return [{"value": code, "label": label} for code, label in MATERIAL_TYPES.items()]
