"""Tests for the Director validate/refine loop."""

from datetime import date
from unittest.mock import AsyncMock

import pytest

from backend.daystream.generation.day_generator import DayGenerator
from backend.daystream.generation.dedup import dedupe_activities
from backend.daystream.models.events import StreamEvent
from backend.daystream.models.itinerary import Day
from backend.daystream.models.request import GenerationRequest
from backend.daystream.models.verdicts import OverallStatus
from backend.daystream.orchestration.budget_guard import BudgetGuard
from backend.daystream.orchestration.director import (
    Director,
    build_day_feedback,
    build_refinement_prompt,
    combine_verdicts,
    validate_itinerary,
)
from backend.daystream.orchestration.errors import ValidationNeverApproved
from backend.daystream.orchestration.state import CancelToken, RunMetrics, RunState
from backend.daystream.verification.budget import validate_budget
from backend.daystream.verification.logistics import validate_logistics
from tests.support import ScriptedProvider, day_reply, make_activity, make_day


@pytest.fixture
def one_day_request() -> GenerationRequest:
    return GenerationRequest(
        trip_id="trip-dir",
        destination="Lisbon",
        start_date=date(2025, 6, 10),
        num_days=1,
        budget=100,
    )


def seeded_state(*days: Day) -> RunState:
    state = RunState()
    for day in days:
        kept, keys = dedupe_activities(day.activities, state.used_keys)
        state.add_keys(keys)
        state.days.append(day.model_copy(update={"activities": kept}))
        state.summaries.append(f"Day {day.day}")
    return state


def make_director(
    request: GenerationRequest, provider: ScriptedProvider, state: RunState
) -> tuple[Director, RunMetrics, AsyncMock]:
    metrics = RunMetrics(trip_id=request.trip_id, destination=request.destination, total_days=1)
    persist = AsyncMock()
    director = Director(
        DayGenerator(provider, request, metrics),
        state,
        BudgetGuard(),
        metrics,
        persist,
        CancelToken(),
    )
    return director, metrics, persist


async def collect(director: Director) -> list[StreamEvent]:
    return [event async for event in director.validate_and_refine()]


def test_scenario_f_budget_rejection_dominates() -> None:
    over = make_day(1, [make_activity("Gold Tour", cost=500)])
    fine = make_day(2, [make_activity("Park", "10:00")])

    budget = validate_budget([over, fine], total_budget=200, num_days=2)
    logistics = validate_logistics([over, fine])
    verdict = combine_verdicts(budget, logistics)

    assert logistics.status.value in ("APPROVED", "RELAXED")
    assert verdict.status == OverallStatus.REJECTED
    assert verdict.flagged_days == [1]
    assert verdict.feedback.startswith("VALIDATION FEEDBACK:\n\nBUDGET VALIDATION FAILED:")
    assert verdict.logs[-1] == "[Director] FINAL: REJECTED - Critical validation failures detected"


def test_refinement_prompt_and_day_feedback() -> None:
    over = make_day(1, [make_activity("Gold Tour", cost=500)])
    verdict = combine_verdicts(validate_budget([over], 100, 1), validate_logistics([over]))

    prompt = build_refinement_prompt(verdict, 1)

    assert prompt.startswith("--- REFINEMENT REQUIRED (Attempt 1) ---")
    assert "Days requiring changes: 1" in prompt
    assert build_day_feedback(verdict, 1) == [
        "Day 1 costs $500 but should be ≤$90. REDUCE costs by $410."
    ]
    assert build_day_feedback(verdict, 2) == []


@pytest.mark.asyncio
async def test_validate_itinerary_runs_both_validators() -> None:
    day = make_day(1, [make_activity("Park", "10:00", cost=20)])

    verdict = await validate_itinerary([day], total_budget=100, num_days=1)

    assert verdict.status == OverallStatus.APPROVED
    assert verdict.logs[0] == "[Director] Starting combined validation for 1 days"
    assert any(line.startswith("[Bursar]") for line in verdict.logs)
    assert any(line.startswith("[Logistician]") for line in verdict.logs)


@pytest.mark.asyncio
async def test_approved_itinerary_is_validated_once(one_day_request: GenerationRequest) -> None:
    provider = ScriptedProvider(lambda i, p: day_reply())
    state = seeded_state(make_day(1, [make_activity("Park", "10:00", cost=20)]))
    director, metrics, persist = make_director(one_day_request, provider, state)

    events = await collect(director)

    assert [e.id for e in events] == ["validation-1"]
    assert events[0].data["status"] == "APPROVED"
    assert director.verdict is not None and director.verdict.iterations == 0
    assert director.best_effort is None
    assert provider.calls == []
    persist.assert_not_awaited()


@pytest.mark.asyncio
async def test_successful_refinement_replaces_day(one_day_request: GenerationRequest) -> None:
    provider = ScriptedProvider(
        lambda i, p: day_reply({"time": "10:00", "name": "Free Walking Tour", "estimated_cost": 0})
    )
    state = seeded_state(make_day(1, [make_activity("Gold Tour", cost=500)]))
    director, metrics, persist = make_director(one_day_request, provider, state)

    events = await collect(director)

    assert [e.id for e in events] == ["validation-1", "refinement-1", "day-0-r1", "validation-2"]
    refined_event = events[2]
    assert refined_event.data["refined"] is True
    assert refined_event.data["iteration"] == 1
    assert state.days[0].activities[0].name == "Free Walking Tour"
    assert state.summaries[0] == "Day 1: Free Walking Tour"
    assert "free-walking-tour-morning" in state.used_keys
    assert "gold-tour-morning" in state.used_keys

    verdict = director.verdict
    assert verdict is not None
    assert verdict.status == OverallStatus.APPROVED
    assert verdict.iterations == 1
    assert verdict.validation_passes == 2
    assert verdict.refined_days == [1]
    persist.assert_awaited_once()


@pytest.mark.asyncio
async def test_refinement_stops_at_cap_with_best_effort(one_day_request: GenerationRequest) -> None:
    provider = ScriptedProvider(
        lambda i, p: day_reply({"time": "10:00", "name": "Luxury Spa", "estimated_cost": 500})
    )
    state = seeded_state(make_day(1, [make_activity("Gold Tour", cost=500)]))
    director, metrics, persist = make_director(one_day_request, provider, state)

    events = await collect(director)

    assert [e.id for e in events] == [
        "validation-1",
        "refinement-1",
        "day-0-r1",
        "validation-2",
        "refinement-2",
        "day-0-r2",
        "validation-3",
    ]
    assert len(provider.calls) == 2
    assert metrics.provider_calls == 2
    assert isinstance(director.best_effort, ValidationNeverApproved)
    assert director.verdict is not None
    assert director.verdict.status == OverallStatus.REJECTED
    assert director.verdict.iterations == 2
    assert director.verdict.validation_passes == 3
    # A refined day may keep its own activities
    assert [a.name for a in state.days[0].activities] == ["Luxury Spa"]


@pytest.mark.asyncio
async def test_failed_refinement_keeps_previous_day(one_day_request: GenerationRequest) -> None:
    def reply(index: int, prompt: str) -> str:
        raise ConnectionError("provider down")

    original = make_day(1, [make_activity("Gold Tour", cost=500)])
    state = seeded_state(original)
    director, metrics, persist = make_director(one_day_request, ScriptedProvider(reply), state)

    events = await collect(director)

    assert [e.kind for e in events] == [
        "validation",
        "refinement",
        "validation",
        "refinement",
        "validation",
    ]
    assert state.days[0].activities[0].name == "Gold Tour"
    assert metrics.recoverable_errors == 2
    assert director.verdict is not None and director.verdict.refined_days == []
    persist.assert_not_awaited()


@pytest.mark.asyncio
async def test_warning_without_flagged_days_is_accepted(one_day_request: GenerationRequest) -> None:
    # Tight schedule: warnings only, so no day is flagged for refinement
    state = seeded_state(
        make_day(
            1,
            [
                make_activity("Day Trip", "07:00", duration="6 hours"),
                make_activity("Gallery", "13:20", duration="5 hours"),
            ],
        )
    )
    provider = ScriptedProvider(lambda i, p: day_reply())
    director, metrics, persist = make_director(one_day_request, provider, state)

    events = await collect(director)

    assert [e.id for e in events] == ["validation-1"]
    assert events[0].data["status"] == "WARNING"
    assert events[0].data["flagged_days"] == []
    assert provider.calls == []
