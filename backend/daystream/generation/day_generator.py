"""Day generator - one provider call per day, reply parsed into a Day.

Provider output is untrusted: every field is defaulted or coerced, and day
number and date always come from the index, never from the reply.
"""

import json
import logging
from datetime import date
from typing import Any

from pydantic import ValidationError

from backend.daystream.generation.prompts import (
    REFINEMENT_SYSTEM_PROMPT,
    build_day_prompt,
    build_refinement_day_prompt,
    day_date,
    generation_system_prompt,
)
from backend.daystream.llm.client import DayProvider
from backend.daystream.models.common import ActivityCategory, Geo
from backend.daystream.models.itinerary import Activity, Day, LocalFood, empty_day
from backend.daystream.models.request import GenerationRequest
from backend.daystream.orchestration.errors import DayGenerationFailure, DayParseFailure
from backend.daystream.orchestration.state import CancelToken, RunMetrics

logger = logging.getLogger(__name__)

GENERATION_TEMPERATURE = 0.4
REFINEMENT_TEMPERATURE = 0.3
DEFAULT_ACTIVITY_COST = 20.0

_CATEGORIES = {c.value for c in ActivityCategory}


def _first(raw: dict[str, Any], *keys: str) -> Any:
    """First present, non-empty value among snake_case/camelCase spellings."""
    for key in keys:
        value = raw.get(key)
        if value not in (None, ""):
            return value
    return None


def _coerce_cost(value: Any, default: float) -> float:
    if value is None or isinstance(value, bool):
        return default
    try:
        cost = float(value)
    except (TypeError, ValueError):
        return default
    return cost if cost >= 0 else default


def _coerce_geo(value: Any) -> Geo | None:
    """Coordinates or None; (0, 0) is treated as missing."""
    if not isinstance(value, dict):
        return None
    lat, lng = value.get("lat"), value.get("lng")
    if not isinstance(lat, int | float) or not isinstance(lng, int | float):
        return None
    if not lat and not lng:
        return None
    try:
        return Geo(lat=lat, lng=lng)
    except ValidationError:
        return None


def _parse_activity(raw: dict[str, Any]) -> Activity:
    name = str(_first(raw, "name") or "Activity")
    category = str(_first(raw, "type", "category") or "activity").lower()
    transport_mode = _first(raw, "transport_mode", "transportMode")

    return Activity(
        time=str(_first(raw, "time") or "09:00"),
        name=name,
        description=str(_first(raw, "description") or name),
        category=ActivityCategory(category) if category in _CATEGORIES else ActivityCategory.activity,
        estimated_cost=_coerce_cost(
            _first(raw, "estimated_cost", "estimatedCost"), DEFAULT_ACTIVITY_COST
        ),
        duration=str(_first(raw, "duration") or "2 hours"),
        location=str(_first(raw, "location") or name),
        coordinates=_coerce_geo(raw.get("coordinates")),
        transport_mode=str(transport_mode) if transport_mode else None,
    )


def _parse_local_food(raw: dict[str, Any]) -> LocalFood | None:
    name = _first(raw, "name")
    if not name:
        return None
    address = _first(raw, "address")
    return LocalFood(
        name=str(name),
        cuisine=str(_first(raw, "cuisine") or ""),
        price_range=str(_first(raw, "price_range", "priceRange") or ""),
        estimated_cost=_coerce_cost(_first(raw, "estimated_cost", "estimatedCost"), 0.0),
        must_try=str(_first(raw, "must_try", "mustTry") or ""),
        address=str(address) if address else None,
    )


def parse_day_response(content: str, day_number: int, date_: date) -> Day:
    """Parse a provider reply into a Day.

    Args:
        content: Raw reply text
        day_number: 1-based day number (authoritative)
        date_: Day date (authoritative)

    Returns:
        Parsed Day

    Raises:
        DayParseFailure: If the reply is not a JSON object
    """
    try:
        parsed = json.loads(content or "{}")
    except json.JSONDecodeError as e:
        raise DayParseFailure(day_number, f"invalid JSON: {e.msg}") from e

    if not isinstance(parsed, dict):
        raise DayParseFailure(day_number, f"expected object, got {type(parsed).__name__}")

    raw_activities = parsed.get("activities") or []
    raw_food = _first(parsed, "local_food", "localFood") or []
    if not isinstance(raw_activities, list) or not isinstance(raw_food, list):
        raise DayParseFailure(day_number, "activities/local_food must be lists")

    activities = [_parse_activity(a) for a in raw_activities if isinstance(a, dict)]
    local_food = [
        food
        for food in (_parse_local_food(f) for f in raw_food if isinstance(f, dict))
        if food is not None
    ]

    return Day(
        day=day_number,
        date=date_,
        title=str(_first(parsed, "title") or f"Day {day_number}"),
        activities=activities,
        local_food=local_food,
    )


class DayGenerator:
    """Generates and refines single days for one run."""

    def __init__(
        self,
        provider: DayProvider,
        request: GenerationRequest,
        metrics: RunMetrics,
        cancel_token: CancelToken | None = None,
    ):
        self.provider = provider
        self.request = request
        self.metrics = metrics
        self.cancel_token = cancel_token or CancelToken()

    async def _call(self, day_number: int, system: str, prompt: str, temperature: float) -> str:
        self.cancel_token.throw_if_cancelled()
        self.metrics.provider_calls += 1
        try:
            content = await self.provider.complete_json(
                system=system, prompt=prompt, temperature=temperature
            )
        except Exception as e:
            raise DayGenerationFailure(day_number, e) from e
        self.cancel_token.throw_if_cancelled()
        return content

    async def try_generate_day(self, day_index: int, previous_summaries: list[str]) -> Day:
        """Generate one day, raising on provider or parse failure.

        Raises:
            ClientDisconnect: Cancelled before or after the provider call
            DayGenerationFailure: Provider call failed
            DayParseFailure: Reply could not be parsed
        """
        day_number = day_index + 1
        prompt = build_day_prompt(self.request, day_index, previous_summaries)
        content = await self._call(
            day_number,
            generation_system_prompt(self.request.destination),
            prompt,
            GENERATION_TEMPERATURE,
        )
        day = parse_day_response(
            content, day_number, day_date(self.request.start_date, day_index)
        )
        logger.info(
            f"[StreamDay] Generated day {day_number}: {len(day.activities)} activities",
            extra={"structured": {"day": day_number, "activities": len(day.activities)}},
        )
        return day

    async def generate_day(self, day_index: int, previous_summaries: list[str]) -> Day:
        """Generate one day; a malformed reply yields an empty day instead of raising."""
        try:
            return await self.try_generate_day(day_index, previous_summaries)
        except DayParseFailure as e:
            logger.error(f"[StreamDay] Parse error for day {day_index + 1}: {e.reason}")
            self.metrics.recoverable_errors += 1
            return empty_day(day_index + 1, day_date(self.request.start_date, day_index))

    async def refine_day(
        self,
        day_index: int,
        other_summaries: list[str],
        day_issues: list[str],
        refinement_feedback: str,
    ) -> Day | None:
        """Regenerate a flagged day with validator feedback.

        Returns:
            The refined Day, or None if the provider failed or the reply was
            unusable (the caller keeps the previous version)
        """
        day_number = day_index + 1
        prompt = build_refinement_day_prompt(
            self.request, day_index, other_summaries, day_issues, refinement_feedback
        )
        try:
            content = await self._call(
                day_number, REFINEMENT_SYSTEM_PROMPT, prompt, REFINEMENT_TEMPERATURE
            )
            day = parse_day_response(
                content, day_number, day_date(self.request.start_date, day_index)
            )
        except (DayGenerationFailure, DayParseFailure) as e:
            logger.error(f"[Validation] Error refining day {day_number}: {e}")
            self.metrics.recoverable_errors += 1
            return None

        if day.title == f"Day {day_number}":
            day = day.model_copy(update={"title": f"Day {day_number} (Refined)"})
        return day
