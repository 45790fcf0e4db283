"""Prompt builders for day generation and refinement."""

from datetime import date, timedelta

from backend.daystream.models.common import DayType
from backend.daystream.models.itinerary import Day
from backend.daystream.models.request import GenerationRequest

REFINEMENT_SYSTEM_PROMPT = (
    "You are a travel expert FIXING an itinerary based on validation feedback. "
    "The previous version had budget or logistics issues. Return valid JSON only."
)

_DAY_TYPE_HINTS: dict[DayType, str] = {
    DayType.arrival: (
        "ARRIVAL DAY - lighter schedule, include hotel check-in, traveler is tired from journey"
    ),
    DayType.departure: (
        "DEPARTURE DAY - include hotel check-out, allow time for packing and airport transfer"
    ),
    DayType.mid_trip: "MID-TRIP DAY {number} - full exploration, 3-4 activities",
}

_ACTIVITY_SCHEMA = """    {
      "time": "09:00",
      "name": "Specific Place Name",
      "description": "Brief 2-5 word description",
      "type": "activity|meal|transport|lodging",
      "estimated_cost": 20,
      "duration": "2 hours",
      "location": "Specific location",
      "coordinates": {"lat": 0.0, "lng": 0.0},
      "transport_mode": "walk|metro|taxi|bus"
    }"""

_LOCAL_FOOD_SCHEMA = """    {
      "name": "Restaurant Name",
      "cuisine": "Type of food",
      "price_range": "$|$$|$$$",
      "estimated_cost": 15,
      "must_try": "Signature dish"
    }"""


def classify_day_type(day_index: int, num_days: int) -> DayType:
    """Positional day type: first is arrival, last is departure.

    Ignores actual flight times; a one-day trip is an arrival day.
    """
    if day_index == 0:
        return DayType.arrival
    if day_index == num_days - 1:
        return DayType.departure
    return DayType.mid_trip


def day_date(start_date: date, day_index: int) -> date:
    return start_date + timedelta(days=day_index)


def summarize_day(day: Day) -> str:
    """One-line summary used as repetition-avoidance context."""
    return f"Day {day.day}: {', '.join(a.name for a in day.activities)}"


def generation_system_prompt(destination: str) -> str:
    return (
        f"You are a travel expert creating a day-by-day itinerary for {destination}. "
        "Return valid JSON only, no markdown."
    )


def _json_template(day_number: int, date_str: str, title_hint: str) -> str:
    return (
        "Return JSON ONLY:\n"
        "{\n"
        f'  "day": {day_number},\n'
        f'  "date": "{date_str}",\n'
        f'  "title": "{title_hint}",\n'
        '  "activities": [\n'
        f"{_ACTIVITY_SCHEMA}\n"
        "  ],\n"
        '  "local_food": [\n'
        f"{_LOCAL_FOOD_SCHEMA}\n"
        "  ]\n"
        "}"
    )


def build_day_prompt(
    request: GenerationRequest, day_index: int, previous_summaries: list[str]
) -> str:
    """Build the user prompt for generating one day.

    Args:
        request: The run's request
        day_index: Zero-based day index
        previous_summaries: "Day N: a, b" lines for days already generated

    Returns:
        Prompt text
    """
    day_number = day_index + 1
    date_str = day_date(request.start_date, day_index).isoformat()
    day_type = classify_day_type(day_index, request.num_days)
    hint = _DAY_TYPE_HINTS[day_type].format(number=day_number)

    lines = [
        f"Generate Day {day_number} of a {request.num_days}-day {request.destination} itinerary.",
        "",
        f"DATE: {date_str}",
        f"DAY TYPE: {hint}",
        f"STYLE: {request.travel_style}",
        f"BUDGET: {request.currency} {request.budget:g} total trip "
        f"(so daily ~{round(request.daily_budget)})",
        f"TRAVELERS: {request.group_size}",
    ]

    if previous_summaries:
        lines.append("")
        lines.append("PREVIOUS DAYS (DO NOT REPEAT these activities):")
        lines.extend(previous_summaries)

    requirements = [
        "Use REAL place names, not generic descriptions",
        f"Include realistic GPS coordinates for {request.destination}",
        "estimated_cost in USD (NEVER 0 for paid attractions)",
    ]
    if day_type == DayType.arrival:
        requirements.append("Include lodging type activity for hotel check-in")
    if day_type == DayType.departure:
        requirements.append("Include lodging type activity for hotel check-out")
    requirements += [
        "3-4 activities maximum - quality over quantity",
        'Creative day title (e.g., "Habsburg Splendor", "Hidden Gems & Local Flavors")',
        "DO NOT repeat any activity names from previous days",
    ]

    lines.append("")
    lines.append("REQUIREMENTS:")
    lines.extend(f"{i}. {req}" for i, req in enumerate(requirements, start=1))
    lines.append("")
    lines.append(_json_template(day_number, date_str, "Creative evocative title"))

    return "\n".join(lines)


def build_refinement_day_prompt(
    request: GenerationRequest,
    day_index: int,
    other_summaries: list[str],
    day_issues: list[str],
    refinement_feedback: str,
) -> str:
    """Build the "fix these issues" prompt for one flagged day."""
    day_number = day_index + 1
    date_str = day_date(request.start_date, day_index).isoformat()

    lines = [
        f"REFINEMENT REQUEST: Regenerate Day {day_number} fixing the issues below.",
        "",
        f"DATE: {date_str}",
        f"DESTINATION: {request.destination}",
        f"STYLE: {request.travel_style}",
        f"DAILY BUDGET: ~${round(request.daily_budget)}",
        f"TRAVELERS: {request.group_size}",
    ]

    if other_summaries:
        lines.append("")
        lines.append("OTHER DAYS (DO NOT REPEAT):")
        lines.extend(other_summaries)

    lines.append("")
    lines.append("ISSUES TO FIX:")
    lines.extend(day_issues or ["(see refinement instructions)"])
    lines.append("")
    lines.append("REFINEMENT INSTRUCTIONS:")
    lines.append(refinement_feedback)
    lines.append("")
    lines.append("REQUIREMENTS:")
    lines.append("1. Fix ALL issues mentioned above")
    lines.append("2. Keep activities realistic and properly spaced (minimum 1 hour between activities)")
    lines.append("3. ALL costs must be realistic (use free alternatives if over budget)")
    lines.append("4. Ensure morning activities are before afternoon, afternoon before evening")
    lines.append("5. Include realistic transit time between locations")
    lines.append("")
    lines.append(_json_template(day_number, date_str, "Creative title"))

    return "\n".join(lines)
