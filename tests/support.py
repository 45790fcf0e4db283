"""Test doubles and builders shared by the unit and integration suites."""

import json
from collections.abc import Callable
from datetime import date, timedelta

from backend.daystream.models.common import ActivityCategory, Geo
from backend.daystream.models.itinerary import Activity, Day, LocalFood
from backend.daystream.orchestration.state import RunMetrics
from backend.daystream.orchestration.stream import StreamLogger, StreamMetricsSink

START_DATE = date(2025, 6, 10)


class ScriptedProvider:
    """Provider double returning a reply chosen per call.

    `reply` receives (call_index, prompt) and returns raw text or raises.
    """

    def __init__(self, reply: Callable[[int, str], str]):
        self.reply = reply
        self.calls: list[dict[str, object]] = []

    async def complete_json(self, *, system: str, prompt: str, temperature: float) -> str:
        index = len(self.calls)
        self.calls.append({"system": system, "prompt": prompt, "temperature": temperature})
        return self.reply(index, prompt)


class RecordingMetricsSink(StreamMetricsSink):
    """Collects everything the orchestrator reports."""

    def __init__(self) -> None:
        self.events: list[str] = []
        self.day_latencies: list[float] = []
        self.runs: list[RunMetrics] = []

    def inc_event(self, kind: str) -> None:
        self.events.append(kind)

    def record_day_latency(self, latency_ms: float) -> None:
        self.day_latencies.append(latency_ms)

    def record_run(self, metrics: RunMetrics) -> None:
        self.runs.append(metrics)


class RecordingStreamLogger(StreamLogger):
    def __init__(self) -> None:
        self.summaries: list[RunMetrics] = []

    def log_summary(self, metrics: RunMetrics) -> None:
        self.summaries.append(metrics)


def make_activity(
    name: str,
    time: str = "09:00",
    cost: float = 0,
    duration: str = "1 hour",
    category: ActivityCategory = ActivityCategory.activity,
    coordinates: Geo | None = None,
    transport_mode: str | None = None,
) -> Activity:
    return Activity(
        time=time,
        name=name,
        category=category,
        estimated_cost=cost,
        duration=duration,
        coordinates=coordinates,
        transport_mode=transport_mode,
    )


def make_day(
    number: int,
    activities: list[Activity],
    local_food: list[LocalFood] | None = None,
) -> Day:
    return Day(
        day=number,
        date=START_DATE + timedelta(days=number - 1),
        title=f"Day {number}",
        activities=activities,
        local_food=local_food or [],
    )


def day_reply(*activities: dict[str, object], title: str = "Test Day") -> str:
    """Serialize a provider reply for one day."""
    return json.dumps({"title": title, "activities": list(activities), "local_food": []})
