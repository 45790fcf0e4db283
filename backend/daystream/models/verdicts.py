"""Verdict models - results of the deterministic validators and the Director."""

from datetime import date
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


class BudgetStatus(str, Enum):
    """Bursar status for a day or a whole itinerary."""

    APPROVED = "APPROVED"
    OVER_BUDGET = "OVER_BUDGET"
    NEAR_LIMIT = "NEAR_LIMIT"
    UNDER_BUDGET = "UNDER_BUDGET"


class LogisticsStatus(str, Enum):
    """Logistician status for a day or a whole itinerary."""

    APPROVED = "APPROVED"
    IMPOSSIBLE = "IMPOSSIBLE"
    TIGHT = "TIGHT"
    RELAXED = "RELAXED"


class OverallStatus(str, Enum):
    """Combined Director verdict."""

    APPROVED = "APPROVED"
    WARNING = "WARNING"
    REJECTED = "REJECTED"


class ConflictType(str, Enum):
    """Kinds of logistics conflicts."""

    timing = "timing"
    transit = "transit"
    buffer = "buffer"
    density = "density"
    opening_hours = "opening_hours"
    duration = "duration"


ConflictSeverity = Literal["error", "warning"]


class CategoryBreakdown(BaseModel):
    """Costs summed per category."""

    activities: float = 0
    meals: float = 0
    transport: float = 0
    lodging: float = 0


class DayBudgetBreakdown(BaseModel):
    """Per-day Bursar result."""

    day: int
    date: date
    allocated: float
    actual: float
    delta: float  # positive = over budget
    status: BudgetStatus
    breakdown: CategoryBreakdown


class BudgetVerdict(BaseModel):
    """Bursar result for an itinerary."""

    status: BudgetStatus
    total_budget: float
    total_estimated_cost: float
    delta: float
    delta_percentage: float
    daily_allocation: float
    per_day: list[DayBudgetBreakdown] = Field(default_factory=list)
    flagged_days: list[int] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    logs: list[str] = Field(default_factory=list)

    @property
    def acceptable(self) -> bool:
        """APPROVED and UNDER_BUDGET need no refinement."""
        return self.status in (BudgetStatus.APPROVED, BudgetStatus.UNDER_BUDGET)


class LogisticsConflict(BaseModel):
    """A single time/space problem found in a day."""

    day: int
    type: ConflictType
    severity: ConflictSeverity
    activity1: str
    activity2: str | None = None
    issue: str
    suggestion: str


class DayLogistics(BaseModel):
    """Per-day Logistician result."""

    day: int
    date: date
    status: LogisticsStatus
    activity_count: int
    total_duration_minutes: int
    total_transit_minutes: int
    buffer_minutes: int
    conflicts: list[LogisticsConflict] = Field(default_factory=list)


class LogisticsVerdict(BaseModel):
    """Logistician result for an itinerary."""

    status: LogisticsStatus
    total_conflicts: int
    error_count: int
    warning_count: int
    required_buffer_minutes: int
    per_day: list[DayLogistics] = Field(default_factory=list)
    conflicts: list[LogisticsConflict] = Field(default_factory=list)
    flagged_days: list[int] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    logs: list[str] = Field(default_factory=list)

    @property
    def acceptable(self) -> bool:
        """APPROVED and RELAXED need no refinement."""
        return self.status in (LogisticsStatus.APPROVED, LogisticsStatus.RELAXED)


class CombinedVerdict(BaseModel):
    """Director verdict merging both validators."""

    status: OverallStatus
    budget: BudgetVerdict
    logistics: LogisticsVerdict
    flagged_days: list[int] = Field(default_factory=list)
    feedback: str = ""
    logs: list[str] = Field(default_factory=list)
    iterations: int = 0
    validation_passes: int = 1
    refined_days: list[int] = Field(default_factory=list)

    @property
    def budget_verified(self) -> bool:
        return self.budget.acceptable

    @property
    def logistics_verified(self) -> bool:
        return self.logistics.acceptable

    def summary(self, log_lines: int = 10) -> dict[str, object]:
        """Compact JSON-able summary carried by the done event."""
        return {
            "status": self.status.value,
            "budget_status": self.budget.status.value,
            "logistics_status": self.logistics.status.value,
            "budget_verified": self.budget_verified,
            "logistics_verified": self.logistics_verified,
            "flagged_days": list(self.flagged_days),
            "iterations": self.iterations,
            "validation_passes": self.validation_passes,
            "refined_days": list(self.refined_days),
            "logs": self.logs[-log_lines:],
        }
