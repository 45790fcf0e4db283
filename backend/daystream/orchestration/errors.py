"""Error taxonomy for a generation run.

Only ClientDisconnect and GenerationBudgetExceeded end a run; everything
else degrades to a partial but usable result.
"""


class ClientDisconnect(Exception):
    """Consumer went away; stop gracefully without further provider calls."""

    pass


class GenerationBudgetExceeded(Exception):
    """A hard ceiling (days, time, calls) was exceeded."""

    def __init__(self, budget_type: str, limit: int, actual: int):
        self.budget_type = budget_type
        self.limit = limit
        self.actual = actual
        super().__init__(f"Generation budget exceeded: {budget_type} ({actual} > {limit})")


class DayGenerationFailure(Exception):
    """Provider call for a day failed."""

    def __init__(self, day_number: int, cause: Exception):
        self.day_number = day_number
        self.cause = cause
        super().__init__(f"Day {day_number} generation failed: {cause}")


class DayParseFailure(Exception):
    """Provider reply for a day could not be parsed."""

    def __init__(self, day_number: int, reason: str):
        self.day_number = day_number
        self.reason = reason
        super().__init__(f"Day {day_number} reply could not be parsed: {reason}")


class ValidationNeverApproved(Exception):
    """Refinement cap reached without APPROVED; best effort is accepted."""

    pass


class PersistenceFailure(Exception):
    """Persistence callback failed; logged only."""

    pass


class CollaboratorUnavailable(Exception):
    """Optional enrichment collaborator is unavailable; the step is skipped."""

    pass
