"""Budget validator (the Bursar).

Deterministic check of itinerary costs against the user's budget. Pure
functions only: every call returns a verdict plus its own log trail.
"""

from collections.abc import Sequence
from dataclasses import dataclass

from backend.daystream.config import Settings
from backend.daystream.models.common import ActivityCategory
from backend.daystream.models.itinerary import Day
from backend.daystream.models.verdicts import (
    BudgetStatus,
    BudgetVerdict,
    CategoryBreakdown,
    DayBudgetBreakdown,
)

_CATEGORY_FIELD: dict[ActivityCategory, str] = {
    ActivityCategory.activity: "activities",
    ActivityCategory.meal: "meals",
    ActivityCategory.transport: "transport",
    ActivityCategory.lodging: "lodging",
}


@dataclass(frozen=True)
class BudgetValidatorConfig:
    """Thresholds are fractions of the allocation (0.2 = 20%)."""

    warning_threshold: float = 0.10
    reject_threshold: float = 0.20
    under_budget_threshold: float = 0.30
    aggregate_under_budget_threshold: float = 0.75
    buffer_fraction: float = 0.10
    include_accommodation: bool = True

    @classmethod
    def from_settings(cls, settings: Settings) -> "BudgetValidatorConfig":
        return cls(
            warning_threshold=settings.budget_warning_threshold,
            reject_threshold=settings.budget_reject_threshold,
            under_budget_threshold=settings.budget_under_threshold,
            aggregate_under_budget_threshold=settings.budget_aggregate_under_threshold,
            buffer_fraction=settings.budget_buffer_fraction,
            include_accommodation=settings.budget_include_accommodation,
        )


def _classify(
    delta_pct: float, config: BudgetValidatorConfig, under_threshold: float
) -> BudgetStatus:
    if delta_pct > config.reject_threshold:
        return BudgetStatus.OVER_BUDGET
    if delta_pct > config.warning_threshold:
        return BudgetStatus.NEAR_LIMIT
    if delta_pct < -under_threshold:
        return BudgetStatus.UNDER_BUDGET
    return BudgetStatus.APPROVED


def day_breakdown(
    day: Day, daily_allocation: float, config: BudgetValidatorConfig
) -> DayBudgetBreakdown:
    """Sum one day's costs by category and classify it against the allocation."""
    breakdown = CategoryBreakdown()

    for activity in day.activities:
        field = _CATEGORY_FIELD.get(activity.category, "activities")
        setattr(breakdown, field, getattr(breakdown, field) + activity.estimated_cost)

    for food in day.local_food:
        breakdown.meals += food.estimated_cost

    actual = breakdown.activities + breakdown.meals + breakdown.transport
    if config.include_accommodation:
        actual += breakdown.lodging

    delta = actual - daily_allocation
    delta_pct = delta / daily_allocation if daily_allocation > 0 else 0.0

    return DayBudgetBreakdown(
        day=day.day,
        date=day.date,
        allocated=daily_allocation,
        actual=actual,
        delta=delta,
        status=_classify(delta_pct, config, config.under_budget_threshold),
        breakdown=breakdown,
    )


def validate_budget(
    days: Sequence[Day],
    total_budget: float,
    num_days: int,
    config: BudgetValidatorConfig | None = None,
) -> BudgetVerdict:
    """Validate itinerary costs against the total budget.

    Args:
        days: Generated days (may be fewer than num_days on partial runs)
        total_budget: User's budget for the whole trip
        num_days: Requested trip length, used for the daily allocation
        config: Threshold overrides

    Returns:
        BudgetVerdict with per-day breakdown, flagged days, suggestions and logs
    """
    cfg = config or BudgetValidatorConfig()
    logs: list[str] = []

    logs.append(f"[Bursar] Starting budget validation: ${total_budget:.2f} for {num_days} days")

    effective_budget = total_budget * (1 - cfg.buffer_fraction)
    daily_allocation = effective_budget / num_days if num_days > 0 else 0.0
    logs.append(
        f"[Bursar] Daily allocation: ${daily_allocation:.2f} "
        f"(with {cfg.buffer_fraction * 100:.0f}% buffer)"
    )

    per_day: list[DayBudgetBreakdown] = []
    flagged_days: list[int] = []
    total_cost = 0.0

    for day in days:
        breakdown = day_breakdown(day, daily_allocation, cfg)
        per_day.append(breakdown)
        total_cost += breakdown.actual

        if breakdown.status == BudgetStatus.OVER_BUDGET:
            flagged_days.append(day.day)
            logs.append(
                f"[Bursar] Day {day.day} REJECTED: ${breakdown.actual:.2f} exceeds allocation of "
                f"${daily_allocation:.2f} by ${breakdown.delta:.2f}"
            )
        elif breakdown.status == BudgetStatus.NEAR_LIMIT:
            logs.append(
                f"[Bursar] Day {day.day} WARNING: ${breakdown.actual:.2f} is near limit "
                f"(${daily_allocation:.2f})"
            )
        else:
            logs.append(f"[Bursar] Day {day.day} APPROVED: ${breakdown.actual:.2f} within budget")

    delta = total_cost - total_budget
    delta_pct = delta / total_budget if total_budget > 0 else 0.0
    status = _classify(delta_pct, cfg, cfg.aggregate_under_budget_threshold)

    if status == BudgetStatus.OVER_BUDGET:
        logs.append(
            f"[Bursar] FINAL VERDICT: REJECTED - Total ${total_cost:.2f} exceeds budget "
            f"by {delta_pct * 100:.1f}%"
        )
    elif status == BudgetStatus.NEAR_LIMIT:
        logs.append(
            f"[Bursar] FINAL VERDICT: WARNING - Total ${total_cost:.2f} is "
            f"{delta_pct * 100:.1f}% over budget"
        )
    elif status == BudgetStatus.UNDER_BUDGET:
        logs.append(
            f"[Bursar] FINAL VERDICT: UNDER BUDGET - Only using "
            f"{total_cost / total_budget * 100:.1f}% of budget"
        )
    else:
        logs.append(f"[Bursar] FINAL VERDICT: APPROVED - Total ${total_cost:.2f} within budget")

    suggestions = budget_suggestions(flagged_days, per_day, total_budget, total_cost, status)

    return BudgetVerdict(
        status=status,
        total_budget=total_budget,
        total_estimated_cost=total_cost,
        delta=delta,
        delta_percentage=delta_pct,
        daily_allocation=daily_allocation,
        per_day=per_day,
        flagged_days=flagged_days,
        suggestions=suggestions,
        logs=logs,
    )


def budget_suggestions(
    flagged_days: list[int],
    per_day: list[DayBudgetBreakdown],
    total_budget: float,
    total_cost: float,
    status: BudgetStatus,
) -> list[str]:
    """Actionable suggestions sized to the overage."""
    if status == BudgetStatus.APPROVED:
        return ["Budget looks good! No changes needed."]

    if status == BudgetStatus.UNDER_BUDGET:
        unused = total_budget - total_cost
        return [f"You have ${unused:.0f} unused - consider adding premium experiences."]

    suggestions: list[str] = []

    totals = CategoryBreakdown()
    for day in per_day:
        totals.activities += day.breakdown.activities
        totals.meals += day.breakdown.meals
        totals.transport += day.breakdown.transport
        totals.lodging += day.breakdown.lodging

    top_category, top_amount = max(totals.model_dump().items(), key=lambda item: item[1])
    over_amount = total_cost - total_budget

    if flagged_days:
        plural = "s" if len(flagged_days) > 1 else ""
        suggestions.append(f"Reduce costs on Day{plural} {', '.join(map(str, flagged_days))}.")

    if top_category == "activities" and top_amount > over_amount:
        savings = min(top_amount * 0.3, over_amount)
        suggestions.append(
            f"Consider free alternatives for some activities (-${savings:.0f} potential savings)."
        )
    elif top_category == "meals" and top_amount > over_amount * 0.5:
        savings = min(top_amount * 0.4, over_amount)
        suggestions.append(
            f"Switch some restaurant meals to local street food (-${savings:.0f} potential savings)."
        )
    elif top_category == "lodging" and top_amount > over_amount:
        savings = min(top_amount * 0.5, over_amount)
        suggestions.append(
            f"Consider budget accommodations or hostels (-${savings:.0f} potential savings)."
        )
    elif top_category == "transport" and top_amount > over_amount * 0.3:
        savings = min(top_amount * 0.6, over_amount)
        suggestions.append(
            f"Use public transit instead of taxis/rideshare (-${savings:.0f} potential savings)."
        )

    if over_amount > total_budget * 0.3:
        suggestions.append("Consider reducing trip length by 1 day to stay within budget.")

    return suggestions


def calculate_total_cost(days: Sequence[Day]) -> float:
    """Total of all activity and local-food costs."""
    return sum(day.total_cost for day in days)


def is_within_budget(days: Sequence[Day], total_budget: float, threshold: float = 0.2) -> bool:
    """Quick check without a breakdown."""
    return calculate_total_cost(days) <= total_budget * (1 + threshold)


def format_budget_feedback(verdict: BudgetVerdict) -> str:
    """Render a verdict as feedback for the generative provider (empty when acceptable)."""
    if verdict.acceptable:
        return ""

    lines = [
        "BUDGET VALIDATION FAILED:",
        f"- Total estimated cost: ${verdict.total_estimated_cost:.2f}",
        f"- User budget: ${verdict.total_budget:.2f}",
        f"- Over by: ${verdict.delta:.2f} ({verdict.delta_percentage * 100:.1f}%)",
    ]

    if verdict.flagged_days:
        lines.append(f"- Problem days: {', '.join(map(str, verdict.flagged_days))}")
        by_day = {d.day: d for d in verdict.per_day}
        for day_number in verdict.flagged_days:
            day = by_day.get(day_number)
            if day:
                lines.append(
                    f"  - Day {day_number}: ${day.actual:.2f} (should be <=${day.allocated:.2f})"
                )

    lines.append(f"REQUIRED: Reduce costs to stay within ${verdict.total_budget:.2f} total.")
    lines.append(f"SUGGESTIONS: {' '.join(verdict.suggestions)}")

    return "\n".join(lines)
