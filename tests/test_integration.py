import pytest
from fastapi.testclient import TestClient

from waste_router.main import create_app
from waste_router.services.routing.service import RouteRunner


@pytest.fixture
def api_client(monkeypatch: pytest.MonkeyPatch) -> TestClient:
    import waste_router.api.routes.routes as routes_module

    monkeypatch.setattr(routes_module, "default_runner", RouteRunner())
    return TestClient(create_app())


def _snapshot(sat_status: str = "active") -> dict:
    return {
        "bins": [
            {"id": "B1", "lat": 17.41, "lng": 78.46, "capacity": 100, "current_level": 80},
            {"id": "B2", "lat": 17.42, "lng": 78.44, "capacity": 100, "current_level": 40},
            {"id": "B3", "lat": 17.39, "lng": 78.47, "capacity": 100, "current_level": 10},
        ],
        "stations": [{"id": "S1", "lat": 17.40, "lng": 78.45, "capacity": 20000}],
        "dumpyards": [{"id": "D1", "lat": 17.30, "lng": 78.35}],
        "sats": [{"id": "SAT-1", "capacity": 500, "status": sat_status}],
        "trucks": [{"id": "TRUCK-1", "capacity": 16000}],
    }


def test_health(api_client: TestClient):
    response = api_client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_optimize_returns_provisional_routes(api_client: TestClient):
    response = api_client.post(
        "/api/routes/optimize",
        json={"snapshot": _snapshot(), "strategy": "standard", "refine": False},
    )
    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "complete"
    assert [r["vehicle_type"] for r in payload["routes"]] == ["sat", "truck"]
    sat_route = payload["routes"][0]
    assert sorted(p["id"] for p in sat_route["route"] if p["type"] == "smartbin") == ["B1", "B2", "B3"]
    assert sat_route["refinement_status"] == "provisional"
    assert sat_route["osrm_fetched"] is False
    assert payload["total_time"] == max(r["start_time"] + r["estimated_time"] for r in payload["routes"])

    run = api_client.get(f"/api/routes/runs/{payload['run_id']}")
    assert run.status_code == 200
    assert run.json()["run_id"] == payload["run_id"]
    current = api_client.get("/api/routes/runs/current")
    assert current.json()["run_id"] == payload["run_id"]


def test_optimize_reports_precondition_failure(api_client: TestClient):
    response = api_client.post("/api/routes/optimize", json={"snapshot": _snapshot("off-duty"), "refine": False})
    assert response.status_code == 400
    assert response.json()["detail"] == "No active SAT vehicles available for routing"


def test_optimize_rejects_unknown_strategy(api_client: TestClient):
    response = api_client.post("/api/routes/optimize", json={"snapshot": _snapshot(), "strategy": "greedy"})
    assert response.status_code == 422


def test_unknown_run_is_404(api_client: TestClient):
    assert api_client.get("/api/routes/runs/current").status_code == 404
    assert api_client.get("/api/routes/runs/missing").status_code == 404


def test_import_rows_endpoint(api_client: TestClient):
    response = api_client.post(
        "/api/imports/rows",
        json={
            "rows": [
                ["type", "id", "lat", "lng", "capacity", "level"],
                ["bin", "B1", 17.41, 78.46, 100, 70],
                ["station", "S1", 17.40, 78.45, 20000],
                ["sat", "SAT-1", 500],
            ]
        },
    )
    assert response.status_code == 200
    body = response.json()
    assert body["counts"] == {"bins": 1, "stations": 1, "dumpyards": 0, "sats": 1, "trucks": 0}
    assert body["snapshot"]["bins"][0]["current_level"] == 70


def test_import_rows_without_data_is_rejected(api_client: TestClient):
    response = api_client.post("/api/imports/rows", json={"rows": [["type", "id"]]})
    assert response.status_code == 400
    assert response.json()["detail"] == "No valid data found."


def test_import_workbook_rejects_garbage(api_client: TestClient):
    response = api_client.post("/api/imports/workbook", content=b"not a spreadsheet")
    assert response.status_code == 400
    assert response.json()["detail"] == "Failed to parse Excel file."
