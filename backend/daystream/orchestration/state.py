"""Run-scoped state for one streaming generation."""

import time
import uuid
from dataclasses import dataclass, field
from typing import Literal

from pydantic import BaseModel

from backend.daystream.models.events import EventKind, StreamEvent
from backend.daystream.models.itinerary import Day
from backend.daystream.orchestration.errors import ClientDisconnect

RunStatus = Literal["complete", "abort", "error", "budget_exceeded"]
BudgetType = Literal["days", "time", "calls"]


@dataclass
class BudgetExceeded:
    """Which generation budget was exceeded, if any."""

    type: BudgetType
    limit: int
    actual: int


@dataclass
class RunMetrics:
    """Counters for one run, logged once as a stream summary."""

    trip_id: str
    destination: str
    total_days: int
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    status: RunStatus = "complete"
    generated_days: int = 0
    cached_days: int = 0
    time_to_first_day_ms: int | None = None
    total_ms: int = 0
    provider_calls: int = 0
    recoverable_errors: int = 0
    persistence_failures: int = 0
    budget_exceeded: BudgetExceeded | None = None
    started_at: float = field(default_factory=time.monotonic)

    def elapsed_ms(self, now: float | None = None) -> int:
        """Milliseconds since the run started."""
        current = time.monotonic() if now is None else now
        return int((current - self.started_at) * 1000)


@dataclass
class CancelToken:
    """Token for cancellation signaling (set on client disconnect)."""

    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True

    def throw_if_cancelled(self) -> None:
        """Raise ClientDisconnect if cancelled."""
        if self.cancelled:
            raise ClientDisconnect("client disconnected")


@dataclass
class RunState:
    """Mutable state owned by exactly one run.

    The used-key set only grows; `days` holds at most one entry per day number.
    """

    days: list[Day] = field(default_factory=list)
    used_keys: set[str] = field(default_factory=set)
    summaries: list[str] = field(default_factory=list)
    sequence_counter: int = 0

    def next_sequence(self) -> int:
        """Get next sequence number for events."""
        seq = self.sequence_counter
        self.sequence_counter += 1
        return seq

    def event(self, kind: EventKind, event_id: str, payload: BaseModel) -> StreamEvent:
        """Build the next event in this run's sequence."""
        return StreamEvent.build(kind, event_id, self.next_sequence(), payload)

    def add_keys(self, keys: list[str]) -> None:
        self.used_keys.update(keys)

    def replace_day(self, day: Day) -> None:
        """Swap in a refined version of an existing day."""
        for i, existing in enumerate(self.days):
            if existing.day == day.day:
                self.days[i] = day
                return
        raise KeyError(f"Day {day.day} not in run")
