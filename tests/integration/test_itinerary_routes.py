"""Integration tests for the itinerary streaming endpoints."""

import asyncio
import json
from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from backend.daystream.api.routes.itineraries import get_provider
from backend.daystream.config import Settings, get_settings
from backend.daystream.db.inmemory import InMemoryTripStore, get_trip_store
from backend.daystream.llm.client import DeterministicStubProvider
from backend.daystream.main import app
from backend.daystream.models.itinerary import Day
from backend.daystream.models.request import GenerationRequest

TRIP_BODY = {
    "trip_id": "trip-lisbon",
    "destination": "Lisbon",
    "start_date": "2025-06-10",
    "num_days": 3,
    "budget": 300,
    "enable_places_enrichment": False,
}


def parse_sse(body: str) -> list[dict]:
    """Split an SSE body into frames; comment frames are returned with kind "comment"."""
    frames = []
    for block in body.split("\n\n"):
        if not block.strip():
            continue
        if block.startswith(":"):
            frames.append({"kind": "comment", "text": block})
            continue
        fields = dict(line.split(": ", 1) for line in block.split("\n"))
        frames.append({"id": fields["id"], "kind": fields["event"], "data": json.loads(fields["data"])})
    return frames


@pytest.fixture
def store() -> InMemoryTripStore:
    return InMemoryTripStore()


@pytest.fixture
def settings() -> Settings:
    return Settings(heartbeat_interval_seconds=30)


@pytest.fixture
def client(store: InMemoryTripStore, settings: Settings) -> Iterator[TestClient]:
    app.dependency_overrides[get_trip_store] = lambda: store
    app.dependency_overrides[get_provider] = lambda: DeterministicStubProvider()
    app.dependency_overrides[get_settings] = lambda: settings
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_stream_endpoint_emits_full_run(client: TestClient, store: InMemoryTripStore) -> None:
    response = client.post("/itineraries/stream", json=TRIP_BODY)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["cache-control"] == "no-cache"
    assert response.headers["x-accel-buffering"] == "no"

    frames = parse_sse(response.text)
    assert [f["id"] for f in frames] == [
        "meta-0",
        "progress-0",
        "day-0",
        "progress-1",
        "day-1",
        "progress-2",
        "day-2",
        "validation-1",
        "done-0",
    ]
    done = frames[-1]["data"]
    assert done["trip_id"] == "trip-lisbon"
    assert done["complete"] is True
    assert done["cost_verification"]["enabled"] is False

    assert [d.day for d in store.get_days("trip-lisbon")] == [1, 2, 3]


def test_stream_assigns_trip_id_when_missing(client: TestClient, store: InMemoryTripStore) -> None:
    body = {k: v for k, v in TRIP_BODY.items() if k != "trip_id"}

    frames = parse_sse(client.post("/itineraries/stream", json=body).text)

    trip_id = frames[0]["data"]["trip_id"]
    assert trip_id
    assert store.get_request(trip_id) is not None


def test_resume_replays_days_after_last_event_id(client: TestClient, store: InMemoryTripStore) -> None:
    first_run = parse_sse(client.post("/itineraries/stream", json=TRIP_BODY).text)
    full_days = [Day.model_validate(d) for d in first_run[-1]["data"]["itinerary"]]

    # An interrupted run that only saved two days
    interrupted = InMemoryTripStore()
    interrupted.save_request(GenerationRequest.model_validate(TRIP_BODY))
    for day in full_days[:2]:
        asyncio.run(interrupted.save_day("trip-lisbon", day, full_days[:2]))
    app.dependency_overrides[get_trip_store] = lambda: interrupted

    response = client.get("/trips/trip-lisbon/stream", headers={"Last-Event-ID": "day-0"})

    assert response.status_code == 200
    frames = parse_sse(response.text)
    assert [f["id"] for f in frames] == [
        "meta-0",
        "day-1",
        "progress-2",
        "day-2",
        "validation-1",
        "done-0",
    ]
    assert frames[0]["data"]["resumed_from"] == 2
    assert frames[1]["data"]["cached"] is True
    resumed_names = [[a["name"] for a in d["activities"]] for d in frames[-1]["data"]["itinerary"]]
    assert resumed_names == [[a.name for a in d.activities] for d in full_days]


def test_resume_unknown_trip_returns_404(client: TestClient) -> None:
    response = client.get("/trips/missing/stream")

    assert response.status_code == 404
    assert response.json()["detail"] == "Trip not found"


def test_non_streaming_endpoint_returns_done_payload(client: TestClient) -> None:
    response = client.post("/itineraries", json=TRIP_BODY)

    assert response.status_code == 200
    data = response.json()
    assert data["total_days"] == 3
    assert data["total_activities"] == 9
    assert data["validation"]["status"] == "APPROVED"


def test_non_streaming_endpoint_can_stream(client: TestClient) -> None:
    response = client.post("/itineraries", params={"stream": 1}, json=TRIP_BODY)

    assert response.headers["content-type"].startswith("text/event-stream")
    assert parse_sse(response.text)[-1]["kind"] == "done"


def test_non_streaming_day_ceiling_is_a_bad_request(client: TestClient) -> None:
    response = client.post("/itineraries", json={**TRIP_BODY, "num_days": 20})

    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["budget_type"] == "days"
    assert detail["recoverable"] is False


def test_day_ceiling_on_stream_is_a_single_error_event(client: TestClient) -> None:
    frames = parse_sse(client.post("/itineraries/stream", json={**TRIP_BODY, "num_days": 20}).text)

    assert [f["id"] for f in frames] == ["error-0"]
    assert frames[0]["data"]["partial_days"] == 0


def test_invalid_request_is_rejected(client: TestClient) -> None:
    response = client.post("/itineraries/stream", json={**TRIP_BODY, "num_days": 0})

    assert response.status_code == 422


def test_streaming_can_be_disabled(client: TestClient) -> None:
    app.dependency_overrides[get_settings] = lambda: Settings(streaming_enabled=False)

    response = client.post("/itineraries/stream", json=TRIP_BODY)

    assert response.status_code == 404
    assert client.post("/itineraries", json=TRIP_BODY).status_code == 200


def test_call_ceiling_mid_run_still_returns_partial_itinerary(client: TestClient) -> None:
    app.dependency_overrides[get_settings] = lambda: Settings(max_provider_calls=2)

    frames = parse_sse(client.post("/itineraries/stream", json=TRIP_BODY).text)
    assert [f["kind"] for f in frames[-2:]] == ["error", "done"]
    assert frames[-2]["data"]["budget_type"] == "calls"

    response = client.post("/itineraries", json=TRIP_BODY)
    assert response.status_code == 200
    assert response.json()["complete"] is False
    assert response.json()["total_days"] == 2
