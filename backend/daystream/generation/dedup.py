"""Activity deduplication across one run.

Key = slug(name)[:30] + "-" + time bucket, e.g. "louvre-museum-morning".
"""

import logging
import re
from collections.abc import Iterable, Sequence

from backend.daystream.models.itinerary import Activity
from backend.daystream.verification.schedule import time_bucket

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
MAX_SLUG_LENGTH = 30


def slugify(name: str) -> str:
    """Lower-case, collapse non-alphanumerics to "-", trim, cap at 30 chars."""
    return _NON_ALNUM.sub("-", name.lower()).strip("-")[:MAX_SLUG_LENGTH]


def activity_key(activity: Activity) -> str:
    """Deterministic fingerprint of an activity."""
    return f"{slugify(activity.name)}-{time_bucket(activity.time).value}"


def dedupe_activities(
    activities: Sequence[Activity], used_keys: Iterable[str]
) -> tuple[list[Activity], list[str]]:
    """Drop activities whose key was already used in this run.

    Duplicates inside `activities` are dropped too. Inputs are not mutated;
    kept activities are copies carrying their `activity_key`.

    Args:
        activities: Candidate activities for one day
        used_keys: Keys already used earlier in the run

    Returns:
        (kept activities, keys to add to the run's key set)
    """
    seen = set(used_keys)
    kept: list[Activity] = []
    new_keys: list[str] = []

    for activity in activities:
        key = activity_key(activity)
        if key in seen:
            logger.info(f"[Dedupe] Filtered duplicate activity: {activity.name} (key: {key})")
            continue
        seen.add(key)
        new_keys.append(key)
        kept.append(activity.model_copy(update={"activity_key": key}))

    return kept, new_keys
