"""Stream event models - what the orchestrator emits during a run."""

import json
import re
from datetime import date
from typing import Any, Literal

from pydantic import BaseModel, Field

from backend.daystream.models.itinerary import Day

EventKind = Literal["meta", "progress", "day", "validation", "refinement", "done", "error"]

# "day-3" or a refined "day-3-r1"
_DAY_EVENT_ID = re.compile(r"^day-(\d+)(?:-r\d+)?$")


def parse_last_event_id(value: str | None) -> int:
    """Zero-based index of the last day event a consumer saw, or -1."""
    if not value:
        return -1
    match = _DAY_EVENT_ID.match(value.strip())
    return int(match.group(1)) if match else -1


class MetaPayload(BaseModel):
    """Run identifiers, emitted once at the start of a run."""

    trip_id: str
    destination: str
    total_days: int
    start_date: date
    resumed_from: int | None = None


class ProgressPayload(BaseModel):
    current_day: int
    total_days: int
    percent: int
    message: str


class DayPayload(BaseModel):
    """A completed day, possibly replayed from cache or refined."""

    day_index: int
    day: Day
    cached: bool = False
    refined: bool = False
    iteration: int | None = None


class ValidationPayload(BaseModel):
    iteration: int
    status: str
    budget_status: str
    logistics_status: str
    budget_verified: bool
    logistics_verified: bool
    flagged_days: list[int]
    logs: list[str] = Field(default_factory=list)


class RefinementPayload(BaseModel):
    iteration: int
    days_to_refine: list[int]
    budget_issues: list[str] = Field(default_factory=list)
    logistics_issues: list[str] = Field(default_factory=list)


class DonePayload(BaseModel):
    """Final event of a run that was not cancelled or stopped by a budget."""

    trip_id: str
    total_days: int
    total_activities: int
    generation_time_ms: int
    complete: bool
    itinerary: list[Day]
    validation: dict[str, Any] | None = None
    cost_verification: dict[str, Any] | None = None


class ErrorPayload(BaseModel):
    message: str
    recoverable: bool
    partial_days: int
    day_index: int | None = None
    budget_type: str | None = None


class StreamEvent(BaseModel):
    """Tagged stream event.

    `id` has the form "{kind}-{index}" so a reconnecting consumer can send the
    last one it received; `sequence` is monotonic across the whole run.
    """

    kind: EventKind
    id: str
    sequence: int = Field(..., ge=0)
    data: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def build(cls, kind: EventKind, event_id: str, sequence: int, payload: BaseModel) -> "StreamEvent":
        """Create an event from a typed payload."""
        return cls(
            kind=kind,
            id=event_id,
            sequence=sequence,
            data=payload.model_dump(mode="json", exclude_none=True),
        )

    def to_sse(self) -> str:
        """Render as a Server-Sent Events frame."""
        return f"id: {self.id}\nevent: {self.kind}\ndata: {json.dumps(self.data)}\n\n"
