from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from openpyxl import Workbook

from dispatch_planner.main import create_app
from dispatch_planner.persistence.filesystem import FileStorage
from dispatch_planner.schemas.planning import (
    CarrierModel,
    DistanceModel,
    PlanningConstraints,
    PlanRequest,
    ShipmentModel,
    TimeSlotModel,
)


def _request(**overrides) -> PlanRequest:
    values = dict(
        shipments=[ShipmentModel(store_id="S1", category="Ambient", pallets=10)],
        carriers=[
            CarrierModel(
                name="Acme Freight",
                cost_per_mile=2.0,
                cost_per_route=100.0,
                capacities={"53": 26},
                time_slots=[TimeSlotModel(label="08:00", capacity=1)],
            )
        ],
        distances=[DistanceModel(from_id="DC", to_id="S1", distance_miles=50, duration_minutes=60)],
        warehouse_id="DC",
        constraints=PlanningConstraints(min_pallets_per_route=5),
    )
    values.update(overrides)
    return PlanRequest(**values)


@pytest.fixture
def api_client(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> TestClient:
    from dispatch_planner.services.planning import service as planning_service

    # keep persisted plan outputs inside the test directory
    monkeypatch.setattr(planning_service, "FileStorage", lambda: FileStorage(root=tmp_path))
    monkeypatch.setattr(planning_service.settings, "osrm_base_url", None)
    return TestClient(create_app())


def test_health_endpoint(api_client: TestClient):
    response = api_client.get("/api/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_generate_plan_endpoint(api_client: TestClient):
    response = api_client.post("/api/plans/generate", json=_request().model_dump(mode="json"))

    assert response.status_code == 200
    payload = response.json()
    assert len(payload["routes"]) == 1
    route = payload["routes"][0]
    assert route["route_id"] == "AcmeFreight_1"
    assert route["estimated_cost"] == 200.0
    assert route["detailed_route"] == "DC (50 mi) -> S1"
    assert route["shipments"][0]["store_id"] == "S1"
    assert payload["overspill"] == []
    assert payload["metadata"]["next_route_number"] == 2
    assert payload["diagnostics"]["total_routes"] == 1


def test_generate_plan_persists_outputs(api_client: TestClient, tmp_path: Path):
    response = api_client.post("/api/plans/generate", json=_request(persist=True, run_label="night").model_dump(mode="json"))

    assert response.status_code == 200
    output_dirs = list((tmp_path / "outputs").glob("plan_night_*"))
    assert output_dirs
    run_dir = output_dirs[0]
    assert (run_dir / "summary.json").exists()
    routes_csv = (run_dir / "routes.csv").read_text(encoding="utf-8")
    assert routes_csv.splitlines()[0].startswith("carrier,route_id,time_slot")
    assert "AcmeFreight_1" in routes_csv


def test_missing_depot_distance_returns_400(api_client: TestClient):
    request = _request(shipments=[ShipmentModel(store_id="S9", category="Ambient", pallets=10)])

    response = api_client.post("/api/plans/generate", json=request.model_dump(mode="json"))

    assert response.status_code == 400
    assert response.json()["detail"] == "Missing distance data from DC to S9."


def test_invalid_pallets_fail_validation(api_client: TestClient):
    payload = _request().model_dump(mode="json")
    payload["shipments"][0]["pallets"] = 0

    response = api_client.post("/api/plans/generate", json=payload)

    assert response.status_code == 422


def test_unused_carrier_is_diagnosed(api_client: TestClient):
    carriers = _request().carriers + [
        CarrierModel(name="Idle", cost_per_mile=9.0, cost_per_route=900.0, time_slots=[TimeSlotModel(label="08:00", capacity=1)])
    ]

    response = api_client.post("/api/plans/generate", json=_request(carriers=carriers).model_dump(mode="json"))

    assert response.status_code == 200
    rows = response.json()["unused_capacity"]
    assert [(row["carrier"], row["status"]) for row in rows] == [("Idle", "NOT PLANNED")]
    assert rows[0]["reason"].startswith("NOTE: Valid for store S1 at 08:00")


def test_replan_candidates_and_replan(api_client: TestClient):
    request = _request()
    plan = api_client.post("/api/plans/generate", json=request.model_dump(mode="json")).json()

    candidates = api_client.post("/api/plans/replan-candidates", json={"plan": plan, "filter": "low-utilization"})
    assert candidates.status_code == 200
    assert [route["route_id"] for route in candidates.json()["routes"]] == ["AcmeFreight_1"]

    replanned = api_client.post(
        "/api/plans/replan",
        json={"request": request.model_dump(mode="json"), "plan": plan, "route_ids": ["AcmeFreight_1"]},
    )
    assert replanned.status_code == 200
    payload = replanned.json()
    assert [route["route_id"] for route in payload["routes"]] == ["AcmeFreight_2"]
    assert payload["metadata"]["replanned_routes"] == ["AcmeFreight_1"]


def test_unknown_replan_filter_returns_400(api_client: TestClient):
    plan = api_client.post("/api/plans/generate", json=_request().model_dump(mode="json")).json()

    response = api_client.post("/api/plans/replan-candidates", json={"plan": plan, "filter": "cheapest"})

    assert response.status_code == 400


def _write_workbook(path: Path, *, carriers: bool = True) -> Path:
    workbook = Workbook()
    shipments = workbook.active
    shipments.title = "Shipments"
    shipments.append(["Store", "Pallet Type 1", "Pallet Type 2", "Pallets"])
    shipments.append(["S1", "Dry", "Bakery", 10])
    if carriers:
        slots = workbook.create_sheet("Carriers")
        slots.append(["Carrier", "08:00"])
        slots.append(["Acme Freight", 1])
        costs = workbook.create_sheet("Carrier Costs")
        costs.append(["Carrier", "Cost Per Mile", "Cost Per Route", "Cost Not To Use"])
        costs.append(["Acme Freight", 2, 100, 0])
    distances = workbook.create_sheet("Distance Matrix")
    distances.append(["From", "To", "Miles", "Minutes"])
    distances.append(["DC", "S1", 50, 60])
    target = path / "planning.xlsx"
    workbook.save(target)
    return target


def test_generate_plan_from_workbook(api_client: TestClient, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    from dispatch_planner.services.planning import service as planning_service

    monkeypatch.setattr(planning_service.settings, "workbook_file", _write_workbook(tmp_path))

    response = api_client.post(
        "/api/plans/generate-from-workbook",
        json={"warehouse_id": "DC", "constraints": {"min_pallets_per_route": 5}},
    )

    assert response.status_code == 200
    payload = response.json()
    route = payload["routes"][0]
    assert route["route_id"] == "AcmeFreight_1"
    assert route["estimated_cost"] == 200.0
    assert route["shipments"][0]["secondary_pallet_type"] == "Bakery"
    assert payload["metadata"]["shipment_count"] == 1
    assert payload["metadata"]["source_workbook"] == "planning.xlsx"


def test_missing_workbook_returns_404(api_client: TestClient, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    from dispatch_planner.services.planning import service as planning_service

    monkeypatch.setattr(planning_service.settings, "workbook_file", tmp_path / "absent.xlsx")

    response = api_client.post("/api/plans/generate-from-workbook", json={})

    assert response.status_code == 404


def test_workbook_without_carriers_returns_400(api_client: TestClient, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    from dispatch_planner.services.planning import service as planning_service

    monkeypatch.setattr(planning_service.settings, "workbook_file", _write_workbook(tmp_path, carriers=False))

    response = api_client.post("/api/plans/generate-from-workbook", json={"warehouse_id": "DC"})

    assert response.status_code == 400
    assert response.json()["detail"] == "No carriers with departure slots found in planning.xlsx."
