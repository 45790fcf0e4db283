"""Director - runs both validators, merges verdicts, drives refinement.

The generative provider is never trusted: every refinement is followed by
another validation pass, and after the refinement cap the best available
result is accepted.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence

from backend.daystream.generation.day_generator import DayGenerator
from backend.daystream.generation.dedup import dedupe_activities
from backend.daystream.generation.prompts import summarize_day
from backend.daystream.models.events import DayPayload, RefinementPayload, StreamEvent, ValidationPayload
from backend.daystream.models.itinerary import Day
from backend.daystream.models.request import GroupProfile
from backend.daystream.models.verdicts import (
    BudgetStatus,
    BudgetVerdict,
    CombinedVerdict,
    LogisticsStatus,
    LogisticsVerdict,
    OverallStatus,
)
from backend.daystream.orchestration.budget_guard import BudgetGuard
from backend.daystream.orchestration.errors import ValidationNeverApproved
from backend.daystream.orchestration.state import CancelToken, RunMetrics, RunState
from backend.daystream.verification.budget import (
    BudgetValidatorConfig,
    format_budget_feedback,
    validate_budget,
)
from backend.daystream.verification.logistics import (
    LogisticsValidatorConfig,
    format_logistics_feedback,
    validate_logistics,
)

logger = logging.getLogger(__name__)

MAX_REFINEMENT_ITERATIONS = 2
VALIDATION_EVENT_LOG_LINES = 5


def combine_verdicts(budget: BudgetVerdict, logistics: LogisticsVerdict) -> CombinedVerdict:
    """Merge both validator verdicts.

    REJECTED if budget is OVER_BUDGET or logistics is IMPOSSIBLE; APPROVED if
    both are acceptable; WARNING otherwise. Flagged days are the sorted union.
    """
    logs = [*budget.logs, *logistics.logs]

    if budget.status == BudgetStatus.OVER_BUDGET or logistics.status == LogisticsStatus.IMPOSSIBLE:
        status = OverallStatus.REJECTED
        logs.append("[Director] FINAL: REJECTED - Critical validation failures detected")
    elif budget.acceptable and logistics.acceptable:
        status = OverallStatus.APPROVED
        logs.append("[Director] FINAL: APPROVED - Both budget and logistics validated")
    else:
        status = OverallStatus.WARNING
        logs.append("[Director] FINAL: WARNING - Minor issues detected, may need refinement")

    feedback_parts = [
        part for part in (format_budget_feedback(budget), format_logistics_feedback(logistics)) if part
    ]
    feedback = "VALIDATION FEEDBACK:\n\n" + "\n\n".join(feedback_parts) if feedback_parts else ""

    return CombinedVerdict(
        status=status,
        budget=budget,
        logistics=logistics,
        flagged_days=sorted(set(budget.flagged_days) | set(logistics.flagged_days)),
        feedback=feedback,
        logs=logs,
    )


async def validate_itinerary(
    days: Sequence[Day],
    total_budget: float,
    num_days: int,
    group_profile: GroupProfile | None = None,
    budget_config: BudgetValidatorConfig | None = None,
    logistics_config: LogisticsValidatorConfig | None = None,
) -> CombinedVerdict:
    """Run both validators concurrently and combine their verdicts."""
    snapshot = list(days)
    budget, logistics = await asyncio.gather(
        asyncio.to_thread(validate_budget, snapshot, total_budget, num_days, budget_config),
        asyncio.to_thread(validate_logistics, snapshot, group_profile, logistics_config),
    )
    verdict = combine_verdicts(budget, logistics)
    verdict.logs.insert(0, f"[Director] Starting combined validation for {len(snapshot)} days")
    return verdict


def build_refinement_prompt(verdict: CombinedVerdict, iteration: int) -> str:
    """Natural-language refinement instruction for the provider (empty if APPROVED)."""
    if verdict.status == OverallStatus.APPROVED:
        return ""

    return "\n".join(
        [
            f"--- REFINEMENT REQUIRED (Attempt {iteration}) ---",
            "",
            verdict.feedback,
            "",
            f"Days requiring changes: {', '.join(map(str, verdict.flagged_days))}",
            "",
            "INSTRUCTIONS:",
            "1. Fix the issues identified above for the flagged days ONLY.",
            "2. Keep all other days unchanged.",
            "3. Ensure costs are realistic and times are feasible.",
            "4. Return the corrected JSON for the flagged days.",
        ]
    )


def build_day_feedback(verdict: CombinedVerdict, day_number: int) -> list[str]:
    """Specific violated constraints for one day."""
    issues: list[str] = []

    for day_budget in verdict.budget.per_day:
        if day_budget.day == day_number and day_budget.status == BudgetStatus.OVER_BUDGET:
            issues.append(
                f"Day {day_number} costs ${day_budget.actual:.0f} but should be "
                f"≤${day_budget.allocated:.0f}. REDUCE costs by ${day_budget.delta:.0f}."
            )

    for day_logistics in verdict.logistics.per_day:
        if day_logistics.day == day_number:
            issues.extend(c.issue for c in day_logistics.conflicts if c.severity == "error")

    return issues


class Director:
    """Validate-and-refine loop over one run's days.

    After the generator finishes, `verdict` holds the last combined verdict
    and `best_effort` is set when the cap was reached without APPROVED.
    """

    def __init__(
        self,
        generator: DayGenerator,
        state: RunState,
        guard: BudgetGuard,
        metrics: RunMetrics,
        persist: Callable[[Day], Awaitable[None]],
        cancel_token: CancelToken,
        max_iterations: int = MAX_REFINEMENT_ITERATIONS,
        budget_config: BudgetValidatorConfig | None = None,
        logistics_config: LogisticsValidatorConfig | None = None,
    ):
        self.generator = generator
        self.request = generator.request
        self.state = state
        self.guard = guard
        self.metrics = metrics
        self.persist = persist
        self.cancel_token = cancel_token
        self.max_iterations = min(max_iterations, MAX_REFINEMENT_ITERATIONS)
        self.budget_config = budget_config
        self.logistics_config = logistics_config
        self.verdict: CombinedVerdict | None = None
        self.best_effort: ValidationNeverApproved | None = None

    async def _validate(self) -> CombinedVerdict:
        return await validate_itinerary(
            self.state.days,
            self.request.budget,
            self.request.num_days,
            self.request.effective_group_profile(),
            self.budget_config,
            self.logistics_config,
        )

    async def validate_and_refine(self) -> AsyncIterator[StreamEvent]:
        """Yield validation, refinement and refined-day events.

        Raises:
            ClientDisconnect: Cancelled at a loop boundary
            GenerationBudgetExceeded: Time or call ceiling hit before a pass or call
        """
        passes = 0
        refinements = 0
        refined_days: list[int] = []

        while True:
            self.cancel_token.throw_if_cancelled()
            self.guard.check(self.metrics)

            passes += 1
            logger.info(f"[Validation] Running validation iteration {passes}...")
            verdict = (await self._validate()).model_copy(
                update={
                    "iterations": refinements,
                    "validation_passes": passes,
                    "refined_days": sorted(set(refined_days)),
                }
            )
            self.verdict = verdict

            yield self.state.event(
                "validation",
                f"validation-{passes}",
                ValidationPayload(
                    iteration=passes,
                    status=verdict.status.value,
                    budget_status=verdict.budget.status.value,
                    logistics_status=verdict.logistics.status.value,
                    budget_verified=verdict.budget_verified,
                    logistics_verified=verdict.logistics_verified,
                    flagged_days=verdict.flagged_days,
                    logs=verdict.logs[-VALIDATION_EVENT_LOG_LINES:],
                ),
            )

            if verdict.status == OverallStatus.APPROVED:
                logger.info(f"[Validation] APPROVED on iteration {passes}")
                return

            if not verdict.flagged_days:
                logger.info(
                    f"[Validation] Status is {verdict.status.value} but no flagged days, "
                    "accepting"
                )
                return

            if refinements >= self.max_iterations:
                self.best_effort = ValidationNeverApproved(
                    f"Max iterations ({self.max_iterations}) reached, accepting {verdict.status.value}"
                )
                logger.warning(
                    f"[Validation] {self.best_effort}",
                    extra={
                        "structured": {
                            "trip_id": self.request.trip_id,
                            "status": verdict.status.value,
                            "flagged_days": verdict.flagged_days,
                        }
                    },
                )
                return

            refinements += 1
            feedback = build_refinement_prompt(verdict, refinements)
            logger.info(
                f"[Validation] Refining days: {', '.join(map(str, verdict.flagged_days))}"
            )

            yield self.state.event(
                "refinement",
                f"refinement-{refinements}",
                RefinementPayload(
                    iteration=refinements,
                    days_to_refine=verdict.flagged_days,
                    budget_issues=verdict.budget.suggestions,
                    logistics_issues=verdict.logistics.suggestions,
                ),
            )

            for day_number in verdict.flagged_days:
                self.cancel_token.throw_if_cancelled()
                self.guard.check(self.metrics)

                refined = await self._refine(day_number, verdict, feedback)
                if refined is None:
                    continue

                refined_days.append(day_number)
                day_index = day_number - 1
                yield self.state.event(
                    "day",
                    f"day-{day_index}-r{refinements}",
                    DayPayload(day_index=day_index, day=refined, refined=True, iteration=refinements),
                )

    async def _refine(self, day_number: int, verdict: CombinedVerdict, feedback: str) -> Day | None:
        day_index = day_number - 1
        others = [summarize_day(d) for d in self.state.days if d.day != day_number]

        refined = await self.generator.refine_day(
            day_index, others, build_day_feedback(verdict, day_number), feedback
        )
        if refined is None:
            logger.warning(f"[Validation] Keeping previous version of day {day_number}")
            return None

        # The day being replaced may reuse its own activities
        own_keys = {
            a.activity_key
            for d in self.state.days
            if d.day == day_number
            for a in d.activities
            if a.activity_key
        }
        kept, new_keys = dedupe_activities(refined.activities, self.state.used_keys - own_keys)
        self.state.add_keys(new_keys)
        refined = refined.model_copy(update={"activities": kept})

        self.state.replace_day(refined)
        if day_index < len(self.state.summaries):
            self.state.summaries[day_index] = summarize_day(refined)

        total = sum(a.estimated_cost for a in kept)
        logger.info(f"[Validation] Refined Day {day_number}: {len(kept)} activities, ${total:.0f} total")

        await self.persist(refined)
        return refined
