"""Time, duration and distance helpers shared by the logistics checks and dedup."""

import math
import re

from backend.daystream.models.common import Geo, TimeBucket, TransitMode

DEFAULT_START_MINUTES = 9 * 60
DEFAULT_DURATION_MINUTES = 60
UNKNOWN_TRANSIT_MINUTES = 15
EARTH_RADIUS_KM = 6371.0

# Minutes per km, including typical stops
TRANSIT_MINUTES_PER_KM: dict[TransitMode, float] = {
    TransitMode.walk: 15,
    TransitMode.metro: 3,
    TransitMode.bus: 4,
    TransitMode.taxi: 2.5,
    TransitMode.train: 1.5,
}

# Waiting and station access for anything that is not walking
NON_WALK_OVERHEAD_MINUTES = 10

_MODE_ALIASES: dict[str, TransitMode] = {
    "walk": TransitMode.walk,
    "walking": TransitMode.walk,
    "foot": TransitMode.walk,
    "metro": TransitMode.metro,
    "subway": TransitMode.metro,
    "underground": TransitMode.metro,
    "tram": TransitMode.metro,
    "bus": TransitMode.bus,
    "taxi": TransitMode.taxi,
    "car": TransitMode.taxi,
    "uber": TransitMode.taxi,
    "rideshare": TransitMode.taxi,
    "train": TransitMode.train,
    "rail": TransitMode.train,
}

_TIME_RE = re.compile(r"(\d{1,2}):(\d{2})\s*(AM|PM)?", re.IGNORECASE)
_HOURS_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(?:hours?|hrs?|h)\b")
_MINUTES_RE = re.compile(r"(\d+)\s*(?:minutes?|mins?|m)\b")
_COMBINED_RE = re.compile(r"(\d+)\s*(?:h(?:ours?|rs?)?|:)\s*(?:and\s*)?(\d+)")


def parse_time_to_minutes(value: str | None) -> int:
    """Parse "9:00 AM" or "14:30" to minutes from midnight (default 09:00)."""
    if not value:
        return DEFAULT_START_MINUTES

    match = _TIME_RE.search(value)
    if not match:
        return DEFAULT_START_MINUTES

    hours = int(match.group(1))
    minutes = int(match.group(2))
    period = (match.group(3) or "").upper()

    if period == "PM" and hours != 12:
        hours += 12
    if period == "AM" and hours == 12:
        hours = 0

    return hours * 60 + minutes


def parse_duration_to_minutes(value: str | None) -> int:
    """Parse "2 hours", "1.5h", "90 minutes" or "2 hours 30 minutes" to minutes (default 60)."""
    if not value:
        return DEFAULT_DURATION_MINUTES

    normalized = value.lower().strip()

    combined = _COMBINED_RE.search(normalized)
    if combined:
        return int(combined.group(1)) * 60 + int(combined.group(2))

    hours = _HOURS_RE.search(normalized)
    if hours:
        return round(float(hours.group(1)) * 60)

    minutes = _MINUTES_RE.search(normalized)
    if minutes:
        return int(minutes.group(1))

    return DEFAULT_DURATION_MINUTES


def format_minutes(minutes: int) -> str:
    """Format minutes from midnight as "h:mm AM/PM"."""
    hours, mins = divmod(minutes, 60)
    period = "PM" if hours % 24 >= 12 else "AM"
    display = hours % 12 or 12
    return f"{display}:{mins:02d} {period}"


def time_bucket(value: str | None) -> TimeBucket:
    """Coarse morning/afternoon/evening bucket for a start time."""
    hour = parse_time_to_minutes(value or "12:00") // 60
    if hour < 12:
        return TimeBucket.morning
    if hour < 17:
        return TimeBucket.afternoon
    return TimeBucket.evening


def haversine_km(a: Geo, b: Geo) -> float:
    """Great-circle distance between two coordinates in km."""
    d_lat = math.radians(b.lat - a.lat)
    d_lng = math.radians(b.lng - a.lng)
    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(a.lat)) * math.cos(math.radians(b.lat)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def resolve_mode(mode: str | None) -> TransitMode | None:
    """Map free-text transport mode to a known mode, or None if unrecognised."""
    if not mode:
        return None
    normalized = mode.strip().lower()
    for alias, resolved in _MODE_ALIASES.items():
        if alias in normalized:
            return resolved
    return None


def auto_select_mode(distance_km: float, walking_threshold_km: float = 2.0) -> TransitMode:
    """Pick a mode by distance bucket when none was given."""
    if distance_km <= walking_threshold_km:
        return TransitMode.walk
    if distance_km < 5:
        return TransitMode.taxi
    if distance_km < 20:
        return TransitMode.metro
    return TransitMode.train


def estimate_transit_minutes(
    origin: Geo | None,
    destination: Geo | None,
    mode: str | None = None,
    walking_threshold_km: float = 2.0,
) -> int:
    """Estimate travel minutes between two points.

    Unknown coordinates fall back to a flat estimate. An explicit, recognised
    mode is honoured; otherwise the mode is auto-selected by distance.
    """
    if origin is None or destination is None:
        return UNKNOWN_TRANSIT_MINUTES

    distance = haversine_km(origin, destination)
    transit_mode = resolve_mode(mode) or auto_select_mode(distance, walking_threshold_km)

    minutes = math.ceil(distance * TRANSIT_MINUTES_PER_KM[transit_mode])
    overhead = 0 if transit_mode == TransitMode.walk else NON_WALK_OVERHEAD_MINUTES
    return minutes + overhead
