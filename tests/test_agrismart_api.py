"""
HTTP API tests with fastapi.testclient.TestClient.

Randomness and the weather backend are replaced through dependency
overrides; the client is used as a context manager so background tasks
share one event loop and are stopped by the app lifespan.
"""
from io import BytesIO

import httpx
from fastapi.testclient import TestClient
from openpyxl import load_workbook
import pytest

from agrismart.main import create_app
from agrismart.routers.agrismart import (
    get_prediction_service,
    get_sensor_registry,
    get_weather_monitor,
    get_weather_service,
    get_yield_estimator,
)
from agrismart.services.sensor_simulator import SensorSessionRegistry, SensorSimulator
from agrismart.services.weather_service import WeatherMonitor, WeatherService

WEATHER_PAYLOAD = {
    "current": {
        "temperature_2m": 31.6,
        "relative_humidity_2m": 44,
        "wind_speed_10m": 7.5,
        "weather_code": 0,
    }
}


async def no_sleep(delay):
    return None


class WeatherBackend:
    """Mock Open-Meteo endpoint counting requests."""

    def __init__(self, status_code=200):
        self.status_code = status_code
        self.calls = 0

    def __call__(self, request):
        self.calls += 1
        if self.status_code != 200:
            return httpx.Response(self.status_code)
        return httpx.Response(200, json=WEATHER_PAYLOAD)


@pytest.fixture
def weather_backend():
    return WeatherBackend()


@pytest.fixture
def app(estimator, prediction_service, weather_backend):
    app = create_app()
    registry = SensorSessionRegistry(lambda: SensorSimulator(tick_seconds=60))
    weather_service = WeatherService(
        client=httpx.AsyncClient(transport=httpx.MockTransport(weather_backend)),
        max_retries=2,
        sleep=no_sleep,
    )
    weather_monitor = WeatherMonitor(weather_service, refresh_seconds=60)

    app.dependency_overrides[get_yield_estimator] = lambda: estimator
    app.dependency_overrides[get_prediction_service] = lambda: prediction_service
    app.dependency_overrides[get_sensor_registry] = lambda: registry
    app.dependency_overrides[get_weather_service] = lambda: weather_service
    app.dependency_overrides[get_weather_monitor] = lambda: weather_monitor
    return app


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


class TestCatalogEndpoints:

    def test_health(self, client):
        assert client.get("/").json()["status"] == "AgriSmart API is online"

    def test_locations(self, client):
        data = client.get("/api/agrismart/locations").json()
        assert data["total"] == 6
        assert data["items"][0]["name"] == "Hamirpur"

    def test_location_lookup(self, client):
        response = client.get("/api/agrismart/locations/lucknow")
        assert response.status_code == 200
        assert response.json()["soil_type"] == "Sandy Clay"

    def test_unknown_location(self, client):
        assert client.get("/api/agrismart/locations/Atlantis").status_code == 404

    def test_fertilizers(self, client):
        data = client.get("/api/agrismart/fertilizers").json()
        assert data["total"] == 6
        assert {"id": "dap", "label": "DAP (18-46-0)", "npk": "18-46-0"} in data["items"]


class TestEstimationEndpoints:

    def test_yield_estimate(self, client):
        response = client.post("/api/agrismart/yield/estimate", json={
            "crop": "Rice", "area_ha": 2, "rainfall_mm": 1500, "temperature_c": 25, "fertilizer_kg": 300,
        })
        assert response.status_code == 200
        assert response.json() == {"crop": "Rice", "tons_per_hectare": 3.23, "crop_image": "rice"}

    def test_yield_estimate_rejects_zero_area(self, client):
        response = client.post("/api/agrismart/yield/estimate", json={
            "crop": "Rice", "area_ha": 0, "rainfall_mm": 1500, "temperature_c": 25, "fertilizer_kg": 300,
        })
        assert response.status_code == 422

    def test_fertilizer_plan(self, client):
        response = client.post("/api/agrismart/fertilizer-plan", json={
            "crop": "Maize", "area_ha": 5, "selected_product": "dap",
        })
        assert response.status_code == 200
        amounts = [r["amount_kg"] for r in response.json()["recommendations"]]
        assert amounts == [280, 761, 417, 913, 125]

    def test_optimizations(self, client):
        response = client.post("/api/agrismart/optimizations", json={
            "crop": "Wheat", "area_ha": 10, "rainfall_mm": 900, "temperature_c": 32,
            "fertilizer_kg": 1500, "predicted_yield": 3.0,
        })
        assert response.status_code == 200
        assert response.json()["suggestions"] == [{
            "title": "Adjust Wheat Planting Schedule",
            "description": (
                "High temperature affects wheat. Plant earlier (Oct-Nov) to avoid heat stress "
                "during grain filling."
            ),
            "priority": "medium",
        }]


class TestPredictionEndpoints:

    def test_predict_with_location(self, client):
        response = client.post("/api/agrismart/predict", json={"crop": "Rice", "area_ha": 2, "location": "Kanpur"})
        assert response.status_code == 200
        data = response.json()
        assert data["yield_tons_per_ha"] == 1.7
        assert data["inputs"]["rainfall_mm"] == 780
        assert data["inputs"]["soil_type"] == "Alluvial"
        assert data["suggestions"][0]["title"] == "Implement Drip Irrigation"

    def test_predict_unknown_location(self, client):
        response = client.post("/api/agrismart/predict", json={"crop": "Rice", "area_ha": 2, "location": "Atlantis"})
        assert response.status_code == 404

    def test_predict_missing_climate(self, client):
        response = client.post("/api/agrismart/predict", json={"crop": "Rice", "area_ha": 2})
        assert response.status_code == 400

    def test_excel_export(self, client):
        response = client.post("/api/agrismart/predict/excel", json={"crop": "Rice", "area_ha": 2, "location": "Kanpur"})
        assert response.status_code == 200
        assert "agrismart_rice_report.xlsx" in response.headers["content-disposition"]
        workbook = load_workbook(BytesIO(response.content))
        assert workbook.sheetnames == ["Summary", "Fertilizer Plan", "Suggestions"]

    def test_pdf_export(self, client):
        response = client.post("/api/agrismart/predict/pdf", json={
            "crop": "Cotton(lint)", "area_ha": 2, "rainfall_mm": 900, "temperature_c": 25,
        })
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert "agrismart_cotton_lint_report.pdf" in response.headers["content-disposition"]
        assert response.content.startswith(b"%PDF")


class TestSensorEndpoints:

    def test_session_lifecycle(self, client):
        created = client.post("/api/agrismart/sensors/sessions")
        assert created.status_code == 201
        body = created.json()
        assert body["running"] is True
        assert body["summary"] == {"active": 4, "total": 4, "alerts": 1}
        session_id = body["session_id"]

        snapshot = client.get(f"/api/agrismart/sensors/sessions/{session_id}").json()
        assert [r["id"] for r in snapshot["readings"]] == ["soil-temp", "soil-moisture", "air-humidity", "soil-ph"]
        assert snapshot["readings"][3]["status"] == "warning"

        assert client.delete(f"/api/agrismart/sensors/sessions/{session_id}").status_code == 204
        assert client.get(f"/api/agrismart/sensors/sessions/{session_id}").status_code == 404
        assert client.delete(f"/api/agrismart/sensors/sessions/{session_id}").status_code == 404

    def test_unknown_session(self, client):
        assert client.get("/api/agrismart/sensors/sessions/nope").status_code == 404


class TestWeatherEndpoint:

    def test_weather_is_fetched_once_then_cached(self, client, weather_backend):
        first = client.get("/api/agrismart/weather/Jhansi")
        assert first.status_code == 200
        data = first.json()
        assert data["location"] == "Jhansi"
        assert data["temperature_c"] == 32
        assert data["wind_speed_kmh"] == 8
        assert data["description"] == "Clear sky"

        second = client.get("/api/agrismart/weather/jhansi")
        assert second.status_code == 200
        assert weather_backend.calls == 1

        padded = client.get("/api/agrismart/weather/%20Jhansi%20")
        assert padded.status_code == 200
        assert weather_backend.calls == 1

    def test_unknown_location(self, client):
        assert client.get("/api/agrismart/weather/Atlantis").status_code == 404

    def test_upstream_failure(self, client, weather_backend):
        weather_backend.status_code = 503
        response = client.get("/api/agrismart/weather/Kanpur")
        assert response.status_code == 502
        assert weather_backend.calls == 2
