import asyncio
import json
from datetime import datetime

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from main import app
from app.db.base import Base
from app.db.models import CustomerPart, MaterialRequest
from app.db.session import LazyEngine, get_parts_db
from services.material_requests.api import get_requests_engine
from services.dashboard.poller import Dashboard
from services.dashboard.runtime import set_dashboard
from services.mes.client import MesClient, get_mes_client


def _row(id, status="Pending", plant="5210", when=datetime(2024, 1, 1, 10, 0, 0), area="A", type="ROH"):
    return MaterialRequest(
        id=id, plant_code=plant, sap_material="1000123", station_name=f"ST-{id}", mac_address="00:1a:2b:3c:4d:5e",
        request_time=when, quantity=3, type=type, area=area, status=status,
    )


@pytest.fixture
def handle():
    h = LazyEngine("sqlite://", poolclass=StaticPool, connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=asyncio.run(h.connect()))
    yield h
    h.dispose()


@pytest.fixture
def engine(handle):
    return handle.engine


@pytest.fixture
def client(handle, engine):
    def _db():
        db = Session(bind=engine)
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_requests_engine] = lambda: handle
    app.dependency_overrides[get_parts_db] = _db
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    assert client.get("/health").json() == {"ok": True}


def test_material_requests_excludes_other_plants_and_terminal_statuses(client, engine):
    with Session(bind=engine) as db:
        db.add_all([
            _row("a", when=datetime(2024, 1, 1, 9, 0)),
            _row("b", status="Canceled"),
            _row("c", status="Delivered"),
            _row("d", status="InProgress", when=datetime(2024, 1, 1, 11, 30, 0, 250000)),
            _row("e", plant="9999"),
        ])
        db.commit()

    resp = client.get("/api/material-requests")
    assert resp.status_code == 200
    body = resp.json()
    assert [r["_id"] for r in body] == ["d", "a"]
    assert body[0]["requestTime"] == "2024-01-01T11:30:00.250Z"
    assert body[0]["plantCode"] == "5210"
    assert body[0]["stationName"] == "ST-d"
    assert body[0]["responseTime"] is None


def test_material_requests_unreachable_database_returns_fetch_error(tmp_path):
    # the connect itself fails, before any query runs
    unreachable = LazyEngine(f"sqlite:///{tmp_path}/no/such/dir/db.sqlite")
    app.dependency_overrides[get_requests_engine] = lambda: unreachable
    try:
        resp = TestClient(app).get("/api/material-requests")
    finally:
        app.dependency_overrides.clear()
    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to fetch material requests"}


def test_customer_part_lookup_prefixes_sap(client, engine):
    with Session(bind=engine) as db:
        db.add(CustomerPart(no_sap="P1000123", cust_part="CP-77"))
        db.commit()

    assert client.get("/api/customer-part", params={"sap": "1000123"}).json() == {"custPart": "CP-77"}
    assert client.get("/api/customer-part", params={"sap": "P1000123"}).json() == {"custPart": "CP-77"}
    assert client.get("/api/customer-part", params={"sap": "999"}).json() == {"custPart": None}


def test_customer_part_requires_sap(client):
    resp = client.get("/api/customer-part")
    assert resp.status_code == 400
    assert resp.json() == {"error": "SAP number required"}


@pytest.fixture
def mes_calls():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if request.url.path != "/MESMaterialSearch":
            return httpx.Response(404)
        return httpx.Response(200, json={"materialDescription": "Tornillo", "0012": {"VUL": {"R18-H06": {"GESME": 149}}}})

    mes = MesClient(base_url="http://mes", plant="5210",
                    client=httpx.AsyncClient(base_url="http://mes", transport=httpx.MockTransport(handler)))
    app.dependency_overrides[get_mes_client] = lambda: mes
    yield calls
    app.dependency_overrides.clear()


def test_ubicaciones_proxies_mes(mes_calls):
    resp = TestClient(app).post("/api/ubicaciones", json={"sapMaterial": "1000123"})
    assert resp.status_code == 200
    assert resp.json()["0012"]["VUL"]["R18-H06"]["GESME"] == 149
    (call,) = mes_calls
    assert call.method == "POST"
    assert json.loads(call.content) == {"plant": "5210", "material": "1000123"}


def test_ubicaciones_requires_sap(mes_calls):
    resp = TestClient(app).post("/api/ubicaciones", json={})
    assert resp.status_code == 400
    assert resp.json() == {"error": "SAP material required"}
    assert mes_calls == []


def test_ubicaciones_transport_failure():
    def handler(request):
        raise httpx.ConnectError("refused")

    mes = MesClient(client=httpx.AsyncClient(base_url="http://mes", transport=httpx.MockTransport(handler)))
    app.dependency_overrides[get_mes_client] = lambda: mes
    try:
        resp = TestClient(app).post("/api/ubicaciones", json={"sapMaterial": "1000123"})
    finally:
        app.dependency_overrides.clear()
    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to fetch ubicaciones"}


def test_dashboard_not_running():
    set_dashboard(None)
    assert TestClient(app).get("/api/dashboard").status_code == 503


def test_material_types():
    body = TestClient(app).get("/api/dashboard/material-types").json()
    assert body == [{"value": "ROH", "label": "Componentes"}, {"value": "HALB", "label": "Semiterminados"}]


@pytest.mark.asyncio
async def test_dashboard_snapshot_endpoint(make_record, fakes):
    FakeRequests, FakeParts, FakeLocations = fakes
    rows = [make_record(id="1", area="B", type="ROH"), make_record(id="2", area="A", type="HALB")]
    dash = Dashboard(FakeRequests([rows]), FakeParts({"1000123": "CP-77"}), FakeLocations())
    await dash.poll_once()
    for card in dash.cards.values():
        await card.settled()
    set_dashboard(dash)
    try:
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
            everything = (await ac.get("/api/dashboard")).json()
            only_roh = (await ac.get("/api/dashboard", params={"types": "ROH"})).json()
            blank = (await ac.get("/api/dashboard?types=")).json()
    finally:
        set_dashboard(None)
        dash.close()

    assert everything["connected"] is True
    assert [a["area"] for a in everything["areas"]] == ["A", "B"]
    assert everything["areas"][0]["cards"][0]["customerPart"] == "CP-77"
    assert only_roh["total"] == 1
    assert only_roh["areas"][0]["area"] == "B"
    assert blank["total"] == 2
    assert everything["lastPolledAt"] is not None


def test_material_requests_query_failure_returns_fetch_error():
    # reachable database without the materialrequests table
    empty = LazyEngine("sqlite://", poolclass=StaticPool, connect_args={"check_same_thread": False})
    app.dependency_overrides[get_requests_engine] = lambda: empty
    try:
        resp = TestClient(app).get("/api/material-requests")
    finally:
        app.dependency_overrides.clear()
        empty.dispose()
    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to fetch material requests"}
