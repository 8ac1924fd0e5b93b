import json
import threading
from typing import Dict, Iterator

import pytest
from fastapi.testclient import TestClient

from app import api as api_routes
from app.main import create_app
from datastore.readings import CachePolicy, CachedReadingProvider, JsonFileReadingSource
from services.aggregator import RiskThresholds, SchoolAggregator
from services.analyzer import DeviceAnalyzer
from services.pipeline import FleetAnalysisService, build_default_service

_READINGS = [
    {"academyId": 1, "batteryLevel": 1.0, "employeeId": "E1", "serialNumber": "A", "timestamp": "2024-01-01T09:00:00Z"},
    {"academyId": 1, "batteryLevel": 0.9, "employeeId": "E1", "serialNumber": "A", "timestamp": "2024-01-01T21:00:00Z"},
    {"academyId": 1, "batteryLevel": 0.8, "employeeId": "E1", "serialNumber": "A", "timestamp": "2024-01-02T21:00:00Z"},
    {"academyId": 1, "batteryLevel": 1.0, "employeeId": "E1", "serialNumber": "A", "timestamp": "2024-01-02T22:00:00Z"},
    {"academyId": 2, "batteryLevel": 1.0, "employeeId": "E2", "serialNumber": "B", "timestamp": "2024-01-01T08:00:00Z"},
    {"academyId": 2, "batteryLevel": 0.6, "employeeId": "E2", "serialNumber": "B", "timestamp": "2024-01-01T20:00:00Z"},
    {"academyId": 2, "batteryLevel": 0.7, "employeeId": "E3", "serialNumber": "C", "timestamp": "2024-01-01T08:00:00Z"},
]


@pytest.fixture
def readings_path(tmp_path):
    path = tmp_path / "battery.json"
    path.write_text(json.dumps(_READINGS))
    return path


@pytest.fixture
def api_client(readings_path, monkeypatch) -> Iterator[TestClient]:
    services: Dict[int, FleetAnalysisService] = {}

    def build_test_service(workers: int | None = None) -> FleetAnalysisService:
        worker_count = workers or 1
        service = services.get(worker_count)
        if service is None:
            provider = CachedReadingProvider(
                JsonFileReadingSource(readings_path), CachePolicy(ttl_seconds=300)
            )
            service = FleetAnalysisService(
                provider=provider,
                analyzer=DeviceAnalyzer(),
                aggregator=SchoolAggregator(),
                workers=worker_count,
            )
            services[worker_count] = service
        return service

    def cache_clear() -> None:
        while services:
            _, service = services.popitem()
            service.shutdown()

    build_test_service.cache_clear = cache_clear  # type: ignore[attr-defined]

    monkeypatch.setattr("app.main.build_default_service", build_test_service)
    monkeypatch.setattr("app.api.build_default_service", build_test_service)
    monkeypatch.setattr("services.pipeline.build_default_service", build_test_service)

    app = create_app()
    with TestClient(app) as client:
        yield client

    cache_clear()


def test_lifespan_shuts_down_service_and_clears_cache() -> None:
    app = create_app()

    with TestClient(app):
        service_during = build_default_service()
        assert service_during.executor._shutdown is False

    service_after = build_default_service()
    try:
        assert service_after is not service_during
        assert service_after.executor._shutdown is False
    finally:
        service_after.shutdown()
        build_default_service.cache_clear()


def test_list_schools_ranks_by_urgency(api_client: TestClient) -> None:
    response = api_client.get("/schools")

    assert response.status_code == 200
    payload = response.json()
    assert payload["reading_count"] == 7
    assert payload["device_count"] == 3
    assert payload["failures"] == []
    assert [school["school_id"] for school in payload["schools"]] == [2, 1]

    top = payload["schools"][0]
    assert top["rank"] == 1
    assert top["unhealthy_devices"] == 1
    assert top["unknown_devices"] == 1
    assert top["unhealthy_percentage"] == pytest.approx(50.0)
    assert top["risk_score"] == pytest.approx(0.6 * 10 + 0.4 * 50)
    assert top["risk_level"] == "High"
    assert {device["device_id"] for device in top["devices"]} == {"B", "C"}

    healthy = payload["schools"][1]
    assert healthy["risk_level"] == "Low"
    assert healthy["devices"][0]["health_status"] == "Healthy"
    assert healthy["devices"][0]["daily_usage_rate"] == pytest.approx(0.1333, abs=0.001)


def test_get_school(api_client: TestClient) -> None:
    response = api_client.get("/schools/1")

    assert response.status_code == 200
    body = response.json()
    assert body["school_id"] == 1
    assert body["rank"] == 2
    assert body["healthy_devices"] == 1


def test_get_missing_school_returns_not_found(api_client: TestClient) -> None:
    response = api_client.get("/schools/404")

    assert response.status_code == 404
    assert "404" in response.json()["detail"]


def test_get_device_breakdown(api_client: TestClient) -> None:
    response = api_client.get("/devices/A")

    assert response.status_code == 200
    body = response.json()
    assert body["device"]["total_readings"] == 4
    assert body["device"]["current_battery_level"] == 1.0
    assert body["daily_usage_rate"] == pytest.approx(0.1333, abs=0.001)
    assert len(body["segments"]) == 1
    assert body["segments"][0]["reading_count"] == 3
    assert body["segments"][0]["elapsed_hours"] == pytest.approx(36)


def test_get_missing_device_returns_not_found(api_client: TestClient) -> None:
    response = api_client.get("/devices/ghost")

    assert response.status_code == 404
    assert "ghost" in response.json()["detail"]


def test_post_analysis_uses_request_body(api_client: TestClient) -> None:
    response = api_client.post(
        "/analyses",
        json=[
            {"academyId": 9, "batteryLevel": 1.0, "employeeId": "E9", "serialNumber": "Z", "timestamp": "2024-01-01T00:00:00Z"},
            {"academyId": 9, "batteryLevel": 0.6, "employeeId": "E9", "serialNumber": "Z", "timestamp": "2024-01-01T12:00:00Z"},
        ],
    )

    assert response.status_code == 200
    body = response.json()
    assert [school["school_id"] for school in body["schools"]] == [9]
    assert body["schools"][0]["devices"][0]["health_status"] == "Needs Replacement"


def test_post_analysis_rejects_invalid_readings(api_client: TestClient) -> None:
    response = api_client.post(
        "/analyses",
        json=[{"academyId": 9, "batteryLevel": 3.0, "employeeId": "E9", "serialNumber": "Z", "timestamp": "2024-01-01T00:00:00Z"}],
    )

    assert response.status_code == 422


def test_refresh_reloads_readings(api_client: TestClient, readings_path) -> None:
    assert api_client.get("/schools").json()["device_count"] == 3

    readings_path.write_text(json.dumps(_READINGS[:3]))
    assert api_client.get("/schools").json()["device_count"] == 3

    response = api_client.post("/readings/refresh")
    assert response.status_code == 200
    assert api_client.get("/schools").json()["device_count"] == 1


def test_unreadable_source_returns_service_unavailable(api_client: TestClient, readings_path) -> None:
    readings_path.write_text("not json")
    api_client.post("/readings/refresh")

    response = api_client.get("/schools")

    assert response.status_code == 503
    assert "Failed to load battery data" in response.json()["detail"]


def test_healthcheck(api_client: TestClient) -> None:
    assert api_client.get("/health").json() == {"status": "ok"}


def test_slow_analysis_does_not_block_other_requests(api_client: TestClient, monkeypatch) -> None:
    service = api_routes.build_default_service()
    original_report = service.report
    started = threading.Event()
    released = threading.Event()
    outcome: Dict[str, object] = {}

    def slow_report():
        started.set()
        outcome["released_in_time"] = released.wait(timeout=5)
        return original_report()

    monkeypatch.setattr(service, "report", slow_report)

    def fetch_schools() -> None:
        outcome["status_code"] = api_client.get("/schools").status_code

    worker = threading.Thread(target=fetch_schools)
    worker.start()
    try:
        assert started.wait(timeout=5)
        assert api_client.get("/health").json() == {"status": "ok"}
    finally:
        released.set()
        worker.join(timeout=10)

    assert outcome == {"released_in_time": True, "status_code": 200}


def test_risk_levels_follow_service_thresholds(api_client: TestClient, monkeypatch) -> None:
    service = api_routes.build_default_service()
    strict = SchoolAggregator(RiskThresholds(critical=5.0, high=3.0, medium=1.0))
    monkeypatch.setattr(service, "aggregator", strict)

    schools = api_client.get("/schools").json()["schools"]
    school = api_client.get("/schools/2").json()

    assert schools[0]["school_id"] == 2
    assert schools[0]["risk_level"] == "Critical"
    assert school["risk_level"] == "Critical"
    assert school["rank"] == 1
