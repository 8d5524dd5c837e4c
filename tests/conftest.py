from __future__ import annotations

import asyncio
import os

# Keep the in-process poller off while the app is imported for tests.
os.environ.setdefault("DASHBOARD_ENABLED", "0")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from app.db.base import Base
from app.db import models  # noqa: F401
from services.material_requests.service import MaterialRequestRecord


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def make_record():
    def _make(id="r1", sap="1000123", area="A", type="ROH", request_time="2024-01-01T10:00:00.000Z",
              status="Pending", quantity=4):
        return MaterialRequestRecord(
            id=id,
            plant_code="5210",
            sap_material=sap,
            station_name=f"ST-{id}",
            mac_address="00:1a:2b:3c:4d:5e",
            request_time=request_time,
            quantity=quantity,
            type=type,
            area=area,
            status=status,
        )
    return _make


class FakeRequests:
    def __init__(self, batches=None):
        self.batches = list(batches or [])
        self.error: Exception | None = None
        self.calls = 0

    async def fetch_active(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.batches.pop(0) if len(self.batches) > 1 else self.batches[0]


class FakeParts:
    def __init__(self, table=None, error: Exception | None = None):
        self.table = table or {}
        self.error = error
        self.calls: list[str] = []

    async def lookup(self, sap):
        self.calls.append(sap)
        if self.error is not None:
            raise self.error
        return self.table.get(sap)


class FakeLocations:
    """Location source whose answers can be held back per SAP code."""

    def __init__(self, payloads=None, error: Exception | None = None, gated: bool = False):
        self.payloads = payloads or {}
        self.error = error
        self.gated = gated
        self.gates: dict[str, asyncio.Event] = {}
        self.calls: list[str] = []

    def release(self, sap):
        self.gates.setdefault(sap, asyncio.Event()).set()

    async def lookup(self, sap):
        self.calls.append(sap)
        if self.gated:
            await self.gates.setdefault(sap, asyncio.Event()).wait()
        if self.error is not None:
            raise self.error
        return self.payloads.get(sap, {})


@pytest.fixture
def fakes():
    return FakeRequests, FakeParts, FakeLocations
