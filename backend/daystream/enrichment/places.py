"""Place enrichment - ratings, opening hours and map links for activities.

Enrichment never blocks the core loop: if the lookup is unavailable or fails,
the day is returned unchanged.
"""

import asyncio
import logging
from typing import Protocol

from backend.daystream.config import get_settings
from backend.daystream.enrichment.cache import TTLCache
from backend.daystream.models.common import ActivityCategory, Geo
from backend.daystream.models.itinerary import Day, PlaceDetails

logger = logging.getLogger(__name__)

ENRICHABLE_CATEGORIES = (ActivityCategory.activity, ActivityCategory.meal)
MAX_CONCURRENT_LOOKUPS = 2


class PlaceLookup(Protocol):
    """Protocol for place metadata providers."""

    def is_configured(self) -> bool:
        ...

    async def find_place(
        self, name: str, destination: str, near: Geo | None = None
    ) -> PlaceDetails | None:
        ...


class CachedPlaceLookup:
    """Wraps a PlaceLookup with a TTL cache keyed by "name-destination"."""

    def __init__(self, inner: PlaceLookup, cache: TTLCache[PlaceDetails] | None = None):
        self.inner = inner
        self.cache: TTLCache[PlaceDetails] = cache or TTLCache.from_settings(get_settings())

    def is_configured(self) -> bool:
        return self.inner.is_configured()

    async def find_place(
        self, name: str, destination: str, near: Geo | None = None
    ) -> PlaceDetails | None:
        key = f"{name}-{destination}".lower()
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        details = await self.inner.find_place(name, destination, near)
        if details is not None:
            self.cache.set(key, details)
        return details


async def enrich_day(day: Day, destination: str, lookup: PlaceLookup | None) -> Day:
    """Attach place details to activity and meal items of one day."""
    if lookup is None or not lookup.is_configured():
        logger.info("[PlacesEnrich] Place lookup not configured, skipping enrichment")
        return day

    targets = [
        i for i, a in enumerate(day.activities) if a.category in ENRICHABLE_CATEGORIES
    ]
    if not targets:
        return day

    semaphore = asyncio.Semaphore(MAX_CONCURRENT_LOOKUPS)

    async def fetch(index: int) -> PlaceDetails | None:
        activity = day.activities[index]
        async with semaphore:
            return await lookup.find_place(activity.name, destination, activity.coordinates)

    try:
        found = await asyncio.gather(*(fetch(i) for i in targets))
    except Exception as e:
        logger.error(f"[PlacesEnrich] Error enriching day {day.day}: {e}")
        return day

    details_by_index = {i: d for i, d in zip(targets, found) if d is not None}
    activities = [
        a.model_copy(update={"place_details": details_by_index[i]}) if i in details_by_index else a
        for i, a in enumerate(day.activities)
    ]

    logger.info(
        f"[PlacesEnrich] Day {day.day}: Enriched {len(details_by_index)}/{len(targets)} "
        "activities with place data"
    )
    return day.model_copy(update={"activities": activities})
