"""Integration tests for health, metrics and root endpoints."""

from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from backend.daystream.api.routes.itineraries import get_provider
from backend.daystream.db.inmemory import InMemoryTripStore, get_trip_store
from backend.daystream.llm.client import DeterministicStubProvider, OpenAIDayProvider
from backend.daystream.main import app

client = TestClient(app)


def test_root() -> None:
    response = client.get("/")

    assert response.status_code == 200
    assert response.json() == {"message": "Daystream Itinerary API", "version": "0.1.0"}


def test_health_endpoint() -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_healthz_reports_components() -> None:
    response = client.get("/healthz")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    components = data["components"]
    assert components["provider"] == "stub"
    assert components["store"].startswith("in_memory:")
    assert components["streaming"] == "enabled"


def test_healthz_pings_configured_provider(monkeypatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("OPENAI_MODEL", "gpt-4o")

    with patch.object(OpenAIDayProvider, "ping", AsyncMock()) as ping:
        response = client.get("/healthz")

    assert response.status_code == 200
    assert response.json()["components"]["provider"] == "openai:gpt-4o"
    ping.assert_awaited_once()


def test_healthz_is_degraded_when_provider_unreachable(monkeypatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

    with patch.object(OpenAIDayProvider, "ping", AsyncMock(side_effect=ConnectionError("down"))):
        response = client.get("/healthz")

    assert response.status_code == 503
    data = response.json()
    assert data["status"] == "degraded"
    assert data["components"]["provider"] == "error: ConnectionError"


def test_metrics_endpoint_exposes_stream_metrics() -> None:
    app.dependency_overrides[get_trip_store] = lambda: InMemoryTripStore()
    app.dependency_overrides[get_provider] = lambda: DeterministicStubProvider()
    try:
        client.post(
            "/itineraries",
            json={
                "trip_id": "trip-metrics",
                "destination": "Porto",
                "start_date": "2025-09-01",
                "num_days": 1,
                "budget": 100,
                "enable_places_enrichment": False,
            },
        )
    finally:
        app.dependency_overrides.clear()

    response = client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    body = response.text
    assert 'stream_events_total{kind="done"}' in body
    assert 'stream_runs_total{status="complete"}' in body
    assert "stream_day_latency_ms_bucket" in body
