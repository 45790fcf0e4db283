"""Generation budget guard - hard ceilings on day count, wall-clock time and provider calls."""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from backend.daystream.config import Settings
from backend.daystream.orchestration.errors import GenerationBudgetExceeded
from backend.daystream.orchestration.state import BudgetExceeded, BudgetType, RunMetrics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationBudgets:
    max_days: int = 14
    max_total_ms: int = 5 * 60 * 1000
    max_provider_calls: int = 20
    # Carried for retry-capable generators; the sequential loop does not retry
    max_retries_per_day: int = 2

    @classmethod
    def from_settings(cls, settings: Settings) -> "GenerationBudgets":
        return cls(
            max_days=settings.max_days,
            max_total_ms=settings.max_total_ms,
            max_provider_calls=settings.max_provider_calls,
            max_retries_per_day=settings.max_retries_per_day,
        )


class BudgetGuard:
    """Checks ceilings and records the first one exceeded on RunMetrics.

    Exceeding any ceiling is a hard stop, never a throttle.
    """

    def __init__(
        self,
        budgets: GenerationBudgets | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.budgets = budgets or GenerationBudgets()
        self._clock = clock

    def _exceed(
        self, metrics: RunMetrics | None, budget_type: BudgetType, limit: int, actual: int
    ) -> GenerationBudgetExceeded:
        if metrics is not None and metrics.budget_exceeded is None:
            metrics.budget_exceeded = BudgetExceeded(type=budget_type, limit=limit, actual=actual)
            metrics.status = "budget_exceeded"
        logger.warning(
            f"[BudgetGuard] {budget_type} budget exceeded: {actual} > {limit}",
            extra={"structured": {"budget_type": budget_type, "limit": limit, "actual": actual}},
        )
        return GenerationBudgetExceeded(budget_type, limit, actual)

    def check_day_count(self, num_days: int, metrics: RunMetrics | None = None) -> None:
        """Reject a run before it starts if it asks for too many days."""
        if num_days > self.budgets.max_days:
            raise self._exceed(metrics, "days", self.budgets.max_days, num_days)

    def check(self, metrics: RunMetrics) -> None:
        """Check time and call ceilings mid-run.

        Raises:
            GenerationBudgetExceeded: If either ceiling is exceeded
        """
        elapsed = metrics.elapsed_ms(self._clock())
        if elapsed > self.budgets.max_total_ms:
            raise self._exceed(metrics, "time", self.budgets.max_total_ms, elapsed)

        if metrics.provider_calls >= self.budgets.max_provider_calls:
            raise self._exceed(
                metrics, "calls", self.budgets.max_provider_calls, metrics.provider_calls
            )
