"""In-memory trip store backing the persistence callback."""

import logging
from functools import lru_cache

from backend.daystream.models.itinerary import Day
from backend.daystream.models.request import GenerationRequest
from backend.daystream.orchestration.errors import PersistenceFailure
from backend.daystream.orchestration.stream import PersistCallback

logger = logging.getLogger(__name__)


class InMemoryTripStore:
    """Keeps each trip's request and the latest version of every generated day."""

    def __init__(self) -> None:
        self._requests: dict[str, GenerationRequest] = {}
        self._days: dict[str, dict[int, Day]] = {}

    def save_request(self, request: GenerationRequest) -> None:
        """Register a trip; days saved earlier for the same trip are kept."""
        self._requests[request.trip_id] = request
        self._days.setdefault(request.trip_id, {})

    def get_request(self, trip_id: str) -> GenerationRequest | None:
        return self._requests.get(trip_id)

    def trip_count(self) -> int:
        return len(self._requests)

    def get_days(self, trip_id: str) -> list[Day]:
        """Saved days ordered by day number."""
        days = self._days.get(trip_id, {})
        return [days[n] for n in sorted(days)]

    async def save_day(self, trip_id: str, day: Day, all_days: list[Day]) -> None:
        """Upsert one day; a refined day replaces the earlier version."""
        if trip_id not in self._requests:
            raise PersistenceFailure(f"Unknown trip {trip_id}")

        self._days[trip_id][day.day] = day
        logger.debug(f"[TripStore] Saved day {day.day} for {trip_id} ({len(all_days)} days so far)")

    def callback_for(self, trip_id: str) -> PersistCallback:
        """Persistence callback bound to one trip."""

        async def persist(day: Day, all_days: list[Day]) -> None:
            await self.save_day(trip_id, day, all_days)

        return persist


@lru_cache
def get_trip_store() -> InMemoryTripStore:
    """Process-wide trip store."""
    return InMemoryTripStore()
