"""Itinerary models - days and the activities inside them."""

from datetime import date
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from backend.daystream.models.common import ActivityCategory, Geo

CostSource = Literal["rag_knowledge", "api_estimate", "ai_estimate", "user_input"]
Confidence = Literal["high", "medium", "low"]


class CostVerification(BaseModel):
    """Where an activity's cost came from and how much to trust it."""

    source: CostSource
    confidence: Confidence
    last_verified: str | None = None
    citation: str | None = None
    original_estimate: float | None = None


class OpeningHours(BaseModel):
    """Opening hours snapshot from a place lookup."""

    is_open: bool | None = None
    weekday_text: list[str] = Field(default_factory=list)


class PlaceDetails(BaseModel):
    """Place metadata attached by an enrichment collaborator."""

    place_id: str | None = None
    rating: float | None = None
    user_ratings_total: int | None = None
    price_level: int | None = None
    maps_url: str | None = None
    website: str | None = None
    opening_hours: OpeningHours | None = None


class Activity(BaseModel):
    """A single scheduled item in a day."""

    model_config = ConfigDict(populate_by_name=True)

    time: str = "09:00"
    name: str
    description: str = ""
    category: ActivityCategory = Field(default=ActivityCategory.activity, alias="type")
    estimated_cost: float = Field(default=0, ge=0)
    duration: str = "2 hours"
    location: str = ""
    coordinates: Geo | None = None
    transport_mode: str | None = None
    activity_key: str | None = None
    cost_verification: CostVerification | None = None
    place_details: PlaceDetails | None = None


class LocalFood(BaseModel):
    """Local food recommendation for a day."""

    name: str
    cuisine: str = ""
    price_range: str = ""
    estimated_cost: float = Field(default=0, ge=0)
    must_try: str = ""
    address: str | None = None


class Day(BaseModel):
    """One generated itinerary day."""

    day: int = Field(..., ge=1)
    date: date
    title: str
    activities: list[Activity] = Field(default_factory=list)
    local_food: list[LocalFood] = Field(default_factory=list)

    @property
    def total_cost(self) -> float:
        """Sum of activity and local-food costs."""
        return sum(a.estimated_cost for a in self.activities) + sum(
            f.estimated_cost for f in self.local_food
        )


def empty_day(day_number: int, day_date: date) -> Day:
    """Minimal valid day used when generation or parsing fails."""
    return Day(day=day_number, date=day_date, title=f"Day {day_number}")
