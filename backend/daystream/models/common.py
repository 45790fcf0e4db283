"""Common types and enums shared across all models."""

from enum import Enum

from pydantic import BaseModel, Field


class Geo(BaseModel):
    """Geographic coordinates (WGS84)."""

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class ActivityCategory(str, Enum):
    """Cost category of an itinerary item."""

    activity = "activity"
    meal = "meal"
    transport = "transport"
    lodging = "lodging"


class TransitMode(str, Enum):
    """Transit mode used between consecutive activities."""

    walk = "walk"
    metro = "metro"
    bus = "bus"
    taxi = "taxi"
    train = "train"


class TimeBucket(str, Enum):
    """Coarse time-of-day bucket."""

    morning = "morning"
    afternoon = "afternoon"
    evening = "evening"


class DayType(str, Enum):
    """Positional day classification used in prompts."""

    arrival = "arrival"
    mid_trip = "mid_trip"
    departure = "departure"
