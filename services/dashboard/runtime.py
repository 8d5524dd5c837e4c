from __future__ import annotations

import asyncio
import logging
from typing import Optional

import httpx

from app.core.config import DASHBOARD_SOURCE_URL, POLL_INTERVAL_SECONDS, TICK_INTERVAL_SECONDS
from services.dashboard.poller import Dashboard
from services.dashboard.sources import (
    ApiCustomerPartSource,
    ApiLocationSource,
    ApiRequestSource,
    DbCustomerPartSource,
    DbRequestSource,
    MesLocationSource,
)
from services.mes.client import get_mes_client

logger = logging.getLogger(__name__)

_dashboard: Optional[Dashboard] = None
_tasks: list[asyncio.Task] = []
_api_client: Optional[httpx.AsyncClient] = None

def set_dashboard(dashboard: Optional[Dashboard]) -> None:
    global _dashboard
    _dashboard = dashboard

def get_dashboard() -> Optional[Dashboard]:
    return _dashboard

def build_dashboard(source_url: str = DASHBOARD_SOURCE_URL) -> Dashboard:
    global _api_client
    if source_url:
        _api_client = httpx.AsyncClient(base_url=source_url)
        return Dashboard(ApiRequestSource(_api_client), ApiCustomerPartSource(_api_client), ApiLocationSource(_api_client))
    return Dashboard(DbRequestSource(), DbCustomerPartSource(), MesLocationSource(get_mes_client()))

def start_dashboard(dashboard: Dashboard) -> None:
    set_dashboard(dashboard)
    _tasks.append(asyncio.create_task(dashboard.run_forever(poll_interval_seconds=POLL_INTERVAL_SECONDS)))
    _tasks.append(asyncio.create_task(dashboard.run_ticker(tick_interval_seconds=TICK_INTERVAL_SECONDS)))
    logger.info("dashboard poller started (every %.1fs)", POLL_INTERVAL_SECONDS)

async def stop_dashboard() -> None:
    global _api_client
    for t in _tasks:
        t.cancel()
    if _tasks:
        await asyncio.gather(*_tasks, return_exceptions=True)
    _tasks.clear()
    if _dashboard is not None:
        _dashboard.close()
    set_dashboard(None)
    if _api_client is not None:
        await _api_client.aclose()
        _api_client = None
