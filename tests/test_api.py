"""HTTP API tests using FastAPI's TestClient with in-memory collaborators."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from api.main import app, get_accounts, get_dashboards, get_source
from core.accounts import AccountStore
from core.dashboards import DashboardStore
from core.sources import DEMO_SALES_ID, ChainedSheetSource, SampleSheetSource, WorkbookSheetSource


@pytest.fixture
def client(tmp_path):
    (tmp_path / "local.csv").write_text("Team,Points\nred,3\nblue,5\nred,4\n", encoding="utf-8")
    accounts = AccountStore()
    dashboards = DashboardStore()
    source = ChainedSheetSource(WorkbookSheetSource(tmp_path), SampleSheetSource())
    app.dependency_overrides[get_accounts] = lambda: accounts
    app.dependency_overrides[get_dashboards] = lambda: dashboards
    app.dependency_overrides[get_source] = lambda: source
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def workbook_client(tmp_path):
    app.dependency_overrides[get_source] = lambda: WorkbookSheetSource(tmp_path)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _register(client, email="ada@example.com", password="secret1", name="Ada"):
    res = client.post("/api/auth/register", json={"email": email, "password": password, "name": name})
    assert res.status_code == 201, res.text
    return {"Authorization": f"Bearer {res.json()['token']}"}


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json()["status"] == "OK"


def test_register_login_me_logout(client):
    headers = _register(client)

    me = client.get("/api/auth/me", headers=headers)
    assert me.json()["user"]["email"] == "ada@example.com"

    login = client.post("/api/auth/login", json={"email": "ADA@example.com", "password": "secret1"})
    assert login.status_code == 200
    assert login.json()["user"]["name"] == "Ada"

    assert client.post("/api/auth/logout", headers=headers).status_code == 200
    assert client.get("/api/auth/me", headers=headers).status_code == 401


def test_register_validation(client):
    short = client.post("/api/auth/register", json={"email": "a@b.c", "password": "123", "name": "A"})
    assert short.status_code == 400
    _register(client)
    dup = client.post("/api/auth/register", json={"email": "ada@example.com", "password": "secret1", "name": "Ada"})
    assert dup.status_code == 400


def test_bad_login(client):
    _register(client)
    res = client.post("/api/auth/login", json={"email": "ada@example.com", "password": "wrong-one"})
    assert res.status_code == 400
    assert res.json()["type"] == "InvalidCredentials"


def test_dashboards_require_token(client):
    assert client.get("/api/dashboards").status_code == 401
    assert client.get("/api/dashboards", headers={"Authorization": "Bearer nope"}).status_code == 401


def test_dashboard_crud(client):
    headers = _register(client)

    created = client.post("/api/dashboards", headers=headers, json={"title": "Sales", "sourceId": DEMO_SALES_ID})
    assert created.status_code == 201
    dashboard_id = created.json()["id"]
    assert created.json()["sourceId"] == DEMO_SALES_ID

    listed = client.get("/api/dashboards", headers=headers).json()
    assert [d["id"] for d in listed] == [dashboard_id]

    updated = client.put(f"/api/dashboards/{dashboard_id}", headers=headers, json={"title": "Renamed", "tabName": "Sales Data"})
    assert updated.json()["title"] == "Renamed"
    assert updated.json()["tabName"] == "Sales Data"

    assert client.delete(f"/api/dashboards/{dashboard_id}", headers=headers).status_code == 200
    assert client.get(f"/api/dashboards/{dashboard_id}", headers=headers).status_code == 404


def test_dashboards_are_owner_scoped(client):
    ada = _register(client)
    bob = _register(client, email="bob@example.com", name="Bob")
    created = client.post("/api/dashboards", headers=ada, json={"title": "Mine", "sourceId": "x"}).json()

    assert client.get(f"/api/dashboards/{created['id']}", headers=bob).status_code == 404
    assert client.get("/api/dashboards", headers=bob).json() == []


def test_create_dashboard_requires_title(client):
    headers = _register(client)
    res = client.post("/api/dashboards", headers=headers, json={"title": " ", "sourceId": "x"})
    assert res.status_code == 400


def test_sheet_data_and_info(client):
    data = client.get(f"/api/data/sheet/{DEMO_SALES_ID}", params={"range": "A1:B3"}).json()
    assert data["headers"] == ["Product", "Sales"]
    assert data["data"][0] == {"Product": "MacBook Pro", "Sales": "45"}

    info = client.get("/api/data/sheet-info/local").json()
    assert info["tabs"][0]["title"] == "local"


def test_sheet_error_mapping(client, tmp_path):
    assert client.get(f"/api/data/sheet/{DEMO_SALES_ID}", params={"range": "bad"}).status_code == 400
    assert client.get(f"/api/data/sheet/{DEMO_SALES_ID}", params={"sheetName": "Nope"}).status_code == 404


def test_missing_source_is_404(workbook_client):
    res = workbook_client.get("/api/data/sheet/missing")
    assert res.status_code == 404
    assert res.json()["type"] == "NotFound"


def test_connection_check(workbook_client, tmp_path):
    assert workbook_client.get("/api/data/test-connection/missing").status_code == 400
    (tmp_path / "present.csv").write_text("A,B\n1,2\n", encoding="utf-8")
    ok = workbook_client.get("/api/data/test-connection/present")
    assert ok.status_code == 200
    assert ok.json()["success"] is True


def test_render_default_charts(client):
    res = client.post("/api/charts/render", json={"sourceId": DEMO_SALES_ID})
    assert res.status_code == 200
    body = res.json()
    assert body["dataset"]["rows"] == 18
    assert [c["type"] for c in body["charts"]] == ["bar", "line", "pie", "bar"]
    assert all(c["chart"] for c in body["charts"])


def test_render_isolates_failing_chart(client):
    payload = {
        "sourceId": "local",
        "charts": [
            {"id": "a", "type": "bar", "xKey": "Team", "yKey": "Points"},
            {"id": "b", "type": "radar"},
            {"id": "c", "type": "heatmap", "xKey": "Team", "yKey": "Points"},
        ],
        "settings": {"viewMode": "aggregate", "aggregateBy": "Team"},
    }
    charts = client.post("/api/charts/render", json=payload).json()["charts"]

    assert [c["id"] for c in charts] == ["a", "b", "c"]
    assert "error" in charts[1]
    assert [r["Points"] for r in charts[0]["rows"]] == [7.0, 5.0]
    assert charts[2]["layout"]["kind"] == "heatmap"


def test_render_per_chart_settings_override_shared(client):
    payload = {
        "sourceId": "local",
        "charts": [{"id": "a", "type": "bar", "xKey": "Team", "yKey": "Points", "settings": {"viewMode": "all"}}],
        "settings": {"viewMode": "aggregate"},
    }
    chart = client.post("/api/charts/render", json=payload).json()["charts"][0]
    assert chart["settings"]["viewMode"] == "all"
    assert len(chart["rows"]) == 3


def test_render_empty_range(client):
    res = client.post("/api/charts/render", json={"sourceId": DEMO_SALES_ID, "range": "A1:A1"})
    assert res.json() == {"empty": True, "charts": []}


def test_table_endpoint(client):
    res = client.post(
        "/api/data/table/local",
        json={"filter": "red", "sortColumn": "Points", "sortOrder": "desc", "perPage": 1},
    )
    body = res.json()
    assert body["total_rows"] == 2
    assert body["total_pages"] == 2
    assert body["rows"] == [{"Team": "red", "Points": "4"}]
