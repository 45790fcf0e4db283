"""Tests for provider reply parsing and the day generator."""

import json
from datetime import date

import pytest

from backend.daystream.generation.day_generator import DayGenerator, parse_day_response
from backend.daystream.models.common import ActivityCategory
from backend.daystream.models.request import GenerationRequest
from backend.daystream.orchestration.errors import (
    ClientDisconnect,
    DayGenerationFailure,
    DayParseFailure,
)
from backend.daystream.orchestration.state import CancelToken, RunMetrics
from tests.support import ScriptedProvider, day_reply


def make_metrics(request: GenerationRequest) -> RunMetrics:
    return RunMetrics(
        trip_id=request.trip_id, destination=request.destination, total_days=request.num_days
    )


def test_parse_accepts_camel_case_and_coerces_fields() -> None:
    content = json.dumps(
        {
            "day": 99,
            "date": "1999-01-01",
            "title": "Alfama",
            "activities": [
                {
                    "time": "10:00",
                    "name": "Castle",
                    "type": "ACTIVITY",
                    "estimatedCost": "15",
                    "transportMode": "walk",
                    "coordinates": {"lat": 38.71, "lng": -9.13},
                },
                {"name": "Mystery", "type": "spa", "estimated_cost": -5, "coordinates": {"lat": 0, "lng": 0}},
            ],
            "localFood": [{"name": "Pasteis", "priceRange": "$", "estimatedCost": 3}, {"cuisine": "no name"}],
        }
    )

    day = parse_day_response(content, 2, date(2025, 6, 11))

    assert day.day == 2
    assert day.date == date(2025, 6, 11)
    assert day.title == "Alfama"
    castle, mystery = day.activities
    assert castle.estimated_cost == 15
    assert castle.category == ActivityCategory.activity
    assert castle.transport_mode == "walk"
    assert castle.coordinates is not None and castle.coordinates.lat == 38.71
    assert mystery.category == ActivityCategory.activity
    assert mystery.estimated_cost == 20
    assert mystery.coordinates is None
    assert mystery.time == "09:00"
    assert [f.name for f in day.local_food] == ["Pasteis"]
    assert day.local_food[0].price_range == "$"


@pytest.mark.parametrize("content", ["not json", "[1, 2]", '{"activities": "many"}'])
def test_parse_rejects_malformed_replies(content: str) -> None:
    with pytest.raises(DayParseFailure) as exc_info:
        parse_day_response(content, 1, date(2025, 6, 10))

    assert exc_info.value.day_number == 1


@pytest.mark.asyncio
async def test_try_generate_day_counts_calls(sample_request: GenerationRequest) -> None:
    provider = ScriptedProvider(lambda i, p: day_reply({"name": "Castle", "estimated_cost": 15}))
    metrics = make_metrics(sample_request)
    generator = DayGenerator(provider, sample_request, metrics)

    day = await generator.try_generate_day(1, ["Day 1: Tram"])

    assert day.day == 2
    assert day.date == date(2025, 6, 11)
    assert metrics.provider_calls == 1
    assert provider.calls[0]["temperature"] == 0.4
    assert "Day 1: Tram" in str(provider.calls[0]["prompt"])


@pytest.mark.asyncio
async def test_provider_error_becomes_generation_failure(sample_request: GenerationRequest) -> None:
    def reply(index: int, prompt: str) -> str:
        raise TimeoutError("provider timed out")

    generator = DayGenerator(ScriptedProvider(reply), sample_request, make_metrics(sample_request))

    with pytest.raises(DayGenerationFailure) as exc_info:
        await generator.try_generate_day(0, [])

    assert isinstance(exc_info.value.cause, TimeoutError)


@pytest.mark.asyncio
async def test_generate_day_substitutes_empty_day_on_parse_failure(
    sample_request: GenerationRequest,
) -> None:
    metrics = make_metrics(sample_request)
    generator = DayGenerator(ScriptedProvider(lambda i, p: "{broken"), sample_request, metrics)

    day = await generator.generate_day(2, [])

    assert day.day == 3
    assert day.activities == []
    assert day.title == "Day 3"
    assert metrics.recoverable_errors == 1


@pytest.mark.asyncio
async def test_cancelled_generator_makes_no_provider_call(sample_request: GenerationRequest) -> None:
    provider = ScriptedProvider(lambda i, p: day_reply())
    token = CancelToken()
    token.cancel()
    generator = DayGenerator(provider, sample_request, make_metrics(sample_request), token)

    with pytest.raises(ClientDisconnect):
        await generator.try_generate_day(0, [])

    assert provider.calls == []


@pytest.mark.asyncio
async def test_refine_day_titles_and_failures(sample_request: GenerationRequest) -> None:
    replies = iter([json.dumps({"activities": [{"name": "Garden"}]}), "oops"])
    provider = ScriptedProvider(lambda i, p: next(replies))
    metrics = make_metrics(sample_request)
    generator = DayGenerator(provider, sample_request, metrics)

    refined = await generator.refine_day(0, [], ["too expensive"], "feedback")
    failed = await generator.refine_day(0, [], [], "feedback")

    assert refined is not None
    assert refined.title == "Day 1 (Refined)"
    assert provider.calls[0]["temperature"] == 0.3
    assert "Regenerate Day 1" in str(provider.calls[0]["prompt"])
    assert failed is None
    assert metrics.recoverable_errors == 1
    assert metrics.provider_calls == 2
