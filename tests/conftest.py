"""Shared pytest fixtures for all test suites."""

from datetime import date

import pytest

from backend.daystream.models.request import GenerationRequest
from tests.support import RecordingMetricsSink, RecordingStreamLogger


@pytest.fixture
def sample_request() -> GenerationRequest:
    """Three-day Lisbon trip with validation on and enrichment off."""
    return GenerationRequest(
        trip_id="trip-123",
        destination="Lisbon",
        start_date=date(2025, 6, 10),
        num_days=3,
        budget=300,
        enable_cost_verification=False,
        enable_places_enrichment=False,
    )


@pytest.fixture
def metrics_sink() -> RecordingMetricsSink:
    return RecordingMetricsSink()


@pytest.fixture
def stream_logger() -> RecordingStreamLogger:
    return RecordingStreamLogger()
