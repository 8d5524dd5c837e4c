from __future__ import annotations

import asyncio
from typing import Any, Optional, Protocol

import httpx
from sqlalchemy.engine import Engine

from app.core.config import PLANT_CODE
from app.db.session import LazyEngine, SessionLocal, parts_engine, requests_engine
from services.customer_part.service import find_customer_part
from services.material_requests.service import MaterialRequestRecord, list_active_requests
from services.mes.client import MesClient


class RequestSource(Protocol):
    async def fetch_active(self) -> list[MaterialRequestRecord]: ...


class CustomerPartSource(Protocol):
    async def lookup(self, sap: str) -> Optional[str]: ...


class LocationSource(Protocol):
    async def lookup(self, sap: str) -> Any: ...


# ---- In-process (database / MES) ----

class DbRequestSource:
    def __init__(self, handle: LazyEngine = requests_engine, plant_code: str = PLANT_CODE) -> None:
        self.handle = handle
        self.plant_code = plant_code

    def _query(self, engine: Engine) -> list[MaterialRequestRecord]:
        with SessionLocal(bind=engine) as db:
            return list_active_requests(db, self.plant_code)

    async def fetch_active(self) -> list[MaterialRequestRecord]:
        engine = await self.handle.connect()
        return await asyncio.to_thread(self._query, engine)


class DbCustomerPartSource:
    def __init__(self, handle: LazyEngine = parts_engine) -> None:
        self.handle = handle

    def _query(self, engine: Engine, sap: str) -> Optional[str]:
        with SessionLocal(bind=engine) as db:
            return find_customer_part(db, sap)

    async def lookup(self, sap: str) -> Optional[str]:
        engine = await self.handle.connect()
        return await asyncio.to_thread(self._query, engine, sap)


class MesLocationSource:
    def __init__(self, mes: MesClient) -> None:
        self.mes = mes

    async def lookup(self, sap: str) -> Any:
        return await self.mes.search_material(sap)


# ---- Over HTTP, against a running dashboard API ----

class ApiRequestSource:
    def __init__(self, client: httpx.AsyncClient) -> None:
        self.client = client

    async def fetch_active(self) -> list[MaterialRequestRecord]:
        resp = await self.client.get("/api/material-requests")
        resp.raise_for_status()
        return [MaterialRequestRecord.model_validate(r) for r in resp.json()]


class ApiCustomerPartSource:
    def __init__(self, client: httpx.AsyncClient) -> None:
        self.client = client

    async def lookup(self, sap: str) -> Optional[str]:
        resp = await self.client.get("/api/customer-part", params={"sap": sap})
        resp.raise_for_status()
        return resp.json().get("custPart")


class ApiLocationSource:
    def __init__(self, client: httpx.AsyncClient) -> None:
        self.client = client

    async def lookup(self, sap: str) -> Any:
        resp = await self.client.post("/api/ubicaciones", json={"sapMaterial": sap})
        resp.raise_for_status()
        return resp.json()
