"""Models package - re-exports for convenience."""

from backend.daystream.models.common import ActivityCategory, DayType, Geo, TimeBucket, TransitMode
from backend.daystream.models.events import (
    DayPayload,
    DonePayload,
    ErrorPayload,
    EventKind,
    MetaPayload,
    ProgressPayload,
    RefinementPayload,
    StreamEvent,
    ValidationPayload,
    parse_last_event_id,
)
from backend.daystream.models.itinerary import (
    Activity,
    CostVerification,
    Day,
    LocalFood,
    OpeningHours,
    PlaceDetails,
    empty_day,
)
from backend.daystream.models.request import GenerationRequest, GroupProfile
from backend.daystream.models.verdicts import (
    BudgetStatus,
    BudgetVerdict,
    CategoryBreakdown,
    CombinedVerdict,
    ConflictType,
    DayBudgetBreakdown,
    DayLogistics,
    LogisticsConflict,
    LogisticsStatus,
    LogisticsVerdict,
    OverallStatus,
)

__all__ = [
    # Common
    "ActivityCategory",
    "DayType",
    "Geo",
    "TimeBucket",
    "TransitMode",
    # Request
    "GenerationRequest",
    "GroupProfile",
    # Itinerary
    "Activity",
    "CostVerification",
    "Day",
    "LocalFood",
    "OpeningHours",
    "PlaceDetails",
    "empty_day",
    # Verdicts
    "BudgetStatus",
    "BudgetVerdict",
    "CategoryBreakdown",
    "CombinedVerdict",
    "ConflictType",
    "DayBudgetBreakdown",
    "DayLogistics",
    "LogisticsConflict",
    "LogisticsStatus",
    "LogisticsVerdict",
    "OverallStatus",
    # Events
    "DayPayload",
    "DonePayload",
    "ErrorPayload",
    "EventKind",
    "MetaPayload",
    "ProgressPayload",
    "RefinementPayload",
    "StreamEvent",
    "ValidationPayload",
    "parse_last_event_id",
]
