"""Stream orchestrator - sequences generation, persistence, validation and events.

Per run:
- Day-count ceiling checked before anything is emitted
- meta, then cached days on resume, then one progress/day pair per new day
- Director validate/refine loop
- Verification metadata, optional cost verification and place enrichment
- done; a time or call ceiling adds a non-recoverable error before it
- A day-count rejection or a cancellation ends the run with an error and no done

The orchestrator only yields StreamEvents; delivery is the transport's job.
"""

import contextlib
import itertools
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence

from pydantic import BaseModel

from backend.daystream.config import Settings, get_settings
from backend.daystream.enrichment.cache import TTLCache
from backend.daystream.enrichment.cost_verifier import (
    CostConfidenceConfig,
    CostVerifier,
    annotate_with_verification,
    verify_costs,
)
from backend.daystream.enrichment.places import CachedPlaceLookup, PlaceLookup, enrich_day
from backend.daystream.generation.day_generator import DayGenerator
from backend.daystream.generation.dedup import activity_key, dedupe_activities
from backend.daystream.generation.prompts import day_date, summarize_day
from backend.daystream.llm.client import DayProvider
from backend.daystream.models.events import (
    DayPayload,
    DonePayload,
    ErrorPayload,
    EventKind,
    MetaPayload,
    ProgressPayload,
    StreamEvent,
    parse_last_event_id,
)
from backend.daystream.models.itinerary import Day, empty_day
from backend.daystream.models.request import GenerationRequest
from backend.daystream.models.verdicts import CombinedVerdict
from backend.daystream.orchestration.budget_guard import BudgetGuard, GenerationBudgets
from backend.daystream.orchestration.director import Director
from backend.daystream.orchestration.errors import (
    ClientDisconnect,
    CollaboratorUnavailable,
    DayGenerationFailure,
    DayParseFailure,
    GenerationBudgetExceeded,
    PersistenceFailure,
)
from backend.daystream.orchestration.state import CancelToken, RunMetrics, RunState
from backend.daystream.verification.budget import BudgetValidatorConfig
from backend.daystream.verification.logistics import LogisticsValidatorConfig

logger = logging.getLogger(__name__)

PersistCallback = Callable[[Day, list[Day]], Awaitable[None]]

DONE_VALIDATION_LOG_LINES = 10


# Metrics interface (implemented by utils.metrics)
class StreamMetricsSink:
    """Interface for stream metrics."""

    def inc_event(self, kind: str) -> None:
        """Count an emitted event."""
        pass

    def record_day_latency(self, latency_ms: float) -> None:
        """Record time spent generating one day."""
        pass

    def record_run(self, metrics: RunMetrics) -> None:
        """Record a finished run."""
        pass


# Logging interface (implemented by utils.logging)
class StreamLogger:
    """Interface for the per-run summary line."""

    def log_summary(self, metrics: RunMetrics) -> None:
        pass


def restore_days(existing_days: Sequence[Day] | None, num_days: int) -> list[Day]:
    """Contiguous prefix of previously generated days (1, 2, 3 ...), capped at num_days."""
    restored: list[Day] = []
    for day in sorted(existing_days or [], key=lambda d: d.day):
        if len(restored) >= num_days or day.day != len(restored) + 1:
            break
        restored.append(day)
    return restored


class StreamOrchestrator:
    """Runs one generation per `stream()` call; holds no per-run state itself."""

    def __init__(
        self,
        provider: DayProvider,
        persist: PersistCallback | None = None,
        settings: Settings | None = None,
        budgets: GenerationBudgets | None = None,
        cost_verifier: CostVerifier | None = None,
        place_lookup: PlaceLookup | None = None,
        metrics_sink: StreamMetricsSink | None = None,
        stream_logger: StreamLogger | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.provider = provider
        self.persist = persist
        self.settings = settings or get_settings()
        self.guard = BudgetGuard(budgets or GenerationBudgets.from_settings(self.settings), clock)
        self.cost_verifier = cost_verifier
        if place_lookup is not None and not isinstance(place_lookup, CachedPlaceLookup):
            place_lookup = CachedPlaceLookup(place_lookup, TTLCache.from_settings(self.settings))
        self.place_lookup = place_lookup
        self.metrics_sink = metrics_sink or StreamMetricsSink()
        self.stream_logger = stream_logger or StreamLogger()
        self._clock = clock

    async def _persist(self, day: Day, state: RunState, metrics: RunMetrics) -> None:
        """Invoke the persistence callback; failures are logged, never raised."""
        if self.persist is None:
            return
        try:
            await self.persist(day, list(state.days))
        except Exception as e:
            metrics.persistence_failures += 1
            failure = PersistenceFailure(f"Failed to persist day {day.day}: {e}")
            logger.error(
                f"[StreamItinerary] {failure}",
                extra={"structured": {"trip_id": metrics.trip_id, "day": day.day}},
            )

    def _emit(
        self, state: RunState, kind: EventKind, event_id: str, payload: BaseModel
    ) -> StreamEvent:
        event = state.event(kind, event_id, payload)
        self.metrics_sink.inc_event(kind)
        return event

    async def stream(
        self,
        request: GenerationRequest,
        existing_days: Sequence[Day] | None = None,
        last_event_id: str | None = None,
        cancel_token: CancelToken | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Generate a trip day by day as a lazy, finite stream of events.

        Args:
            request: Run input
            existing_days: Days already generated by an earlier, interrupted run
            last_event_id: Last event id the consumer received (resume)
            cancel_token: Set by the transport when the consumer disconnects

        Yields:
            StreamEvents in emission order
        """
        cancel = cancel_token or CancelToken()
        state = RunState()
        metrics = RunMetrics(
            trip_id=request.trip_id,
            destination=request.destination,
            total_days=request.num_days,
            started_at=self._clock(),
        )
        error_ids = itertools.count()
        completed = False

        def error_event(payload: ErrorPayload) -> StreamEvent:
            return self._emit(state, "error", f"error-{next(error_ids)}", payload)

        logger.info(
            f"[StreamItinerary] Starting {request.num_days}-day generation for {request.destination}",
            extra={"structured": {"trip_id": request.trip_id, "request_id": metrics.request_id}},
        )

        try:
            try:
                self.guard.check_day_count(request.num_days, metrics)
            except GenerationBudgetExceeded as e:
                yield error_event(
                    ErrorPayload(
                        message=f"Generation budget exceeded: max {e.limit} days allowed",
                        recoverable=False,
                        partial_days=0,
                        budget_type=e.budget_type,
                    )
                )
                return

            restored = restore_days(existing_days, request.num_days)
            for day in restored:
                state.days.append(day)
                state.summaries.append(summarize_day(day))
                state.add_keys([a.activity_key or activity_key(a) for a in day.activities])
            metrics.cached_days = len(restored)

            yield self._emit(
                state,
                "meta",
                "meta-0",
                MetaPayload(
                    trip_id=request.trip_id,
                    destination=request.destination,
                    total_days=request.num_days,
                    start_date=request.start_date,
                    resumed_from=len(restored) if existing_days is not None else None,
                ),
            )

            if restored:
                logger.info(f"[StreamItinerary] Resuming from day {len(restored) + 1}")
                last_seen = parse_last_event_id(last_event_id)
                for index, day in enumerate(restored):
                    if index > last_seen:
                        yield self._emit(
                            state,
                            "day",
                            f"day-{index}",
                            DayPayload(day_index=index, day=day, cached=True),
                        )

            generator = DayGenerator(self.provider, request, metrics, cancel)
            director: Director | None = None
            budget_stop: GenerationBudgetExceeded | None = None

            try:
                for index in range(len(state.days), request.num_days):
                    cancel.throw_if_cancelled()
                    self.guard.check(metrics)

                    yield self._emit(
                        state,
                        "progress",
                        f"progress-{index}",
                        ProgressPayload(
                            current_day=index + 1,
                            total_days=request.num_days,
                            percent=round(index / request.num_days * 100),
                            message=f"Generating Day {index + 1}...",
                        ),
                    )

                    day_started = self._clock()
                    try:
                        day = await generator.try_generate_day(index, list(state.summaries))
                    except (DayGenerationFailure, DayParseFailure) as e:
                        metrics.recoverable_errors += 1
                        logger.error(f"[StreamItinerary] Error generating day {index + 1}: {e}")
                        yield error_event(
                            ErrorPayload(
                                message=f"Failed to generate Day {index + 1}",
                                recoverable=True,
                                partial_days=len(state.days),
                                day_index=index,
                            )
                        )
                        day = empty_day(index + 1, day_date(request.start_date, index))

                    kept, new_keys = dedupe_activities(day.activities, state.used_keys)
                    state.add_keys(new_keys)
                    day = day.model_copy(update={"activities": kept})

                    state.days.append(day)
                    state.summaries.append(summarize_day(day))
                    metrics.generated_days += 1
                    if metrics.time_to_first_day_ms is None:
                        metrics.time_to_first_day_ms = metrics.elapsed_ms(self._clock())
                    self.metrics_sink.record_day_latency((self._clock() - day_started) * 1000)

                    await self._persist(day, state, metrics)

                    yield self._emit(
                        state, "day", f"day-{index}", DayPayload(day_index=index, day=day)
                    )

                total_activities = sum(len(d.activities) for d in state.days)
                logger.info(
                    f"[StreamItinerary] Generation phase complete: {len(state.days)} days, "
                    f"{total_activities} activities"
                )

                if request.enable_validation and state.days:
                    director = Director(
                        generator,
                        state,
                        self.guard,
                        metrics,
                        lambda d: self._persist(d, state, metrics),
                        cancel,
                        max_iterations=self.settings.max_refinement_iterations,
                        budget_config=BudgetValidatorConfig.from_settings(self.settings),
                        logistics_config=LogisticsValidatorConfig.from_settings(self.settings),
                    )
                    try:
                        async with contextlib.aclosing(director.validate_and_refine()) as events:
                            async for event in events:
                                self.metrics_sink.inc_event(event.kind)
                                yield event
                    except (ClientDisconnect, GenerationBudgetExceeded):
                        raise
                    except Exception as e:
                        metrics.recoverable_errors += 1
                        logger.exception(f"[StreamItinerary] Validation loop error: {e}")

            except GenerationBudgetExceeded as e:
                budget_stop = e
                logger.info(
                    f"[StreamItinerary] Budget exceeded after {len(state.days)} days: {e.budget_type}"
                )
                yield error_event(
                    ErrorPayload(
                        message=f"Generation budget exceeded: {e.budget_type}",
                        recoverable=False,
                        partial_days=len(state.days),
                        budget_type=e.budget_type,
                    )
                )

            # Best verdict so far; unvalidated activities are labelled low confidence
            verdict: CombinedVerdict | None = director.verdict if director is not None else None
            state.days = annotate_with_verification(
                state.days, verdict is not None and verdict.budget_verified
            )

            # A budget stop is a hard stop: no further external lookups
            cost_stats = None
            if budget_stop is None:
                cost_stats = await self._verify_costs(request, state, metrics, cancel)
                await self._enrich_places(request, state, metrics, cancel)

            cancel.throw_if_cancelled()

            completed = True
            yield self._emit(
                state,
                "done",
                "done-0",
                DonePayload(
                    trip_id=request.trip_id,
                    total_days=len(state.days),
                    total_activities=sum(len(d.activities) for d in state.days),
                    generation_time_ms=metrics.elapsed_ms(self._clock()),
                    complete=len(state.days) >= request.num_days,
                    itinerary=state.days,
                    validation=verdict.summary(DONE_VALIDATION_LOG_LINES) if verdict else None,
                    cost_verification=cost_stats,
                ),
            )

        except ClientDisconnect:
            metrics.status = "abort"
            logger.info(f"[StreamItinerary] Aborted after {len(state.days)} days, stopping generation")
            yield error_event(
                ErrorPayload(
                    message="Generation cancelled",
                    recoverable=True,
                    partial_days=len(state.days),
                )
            )

        except Exception as e:
            metrics.status = "error"
            logger.exception(f"[StreamItinerary] Unexpected error: {e}")
            yield error_event(
                ErrorPayload(
                    message="Generation failed",
                    recoverable=False,
                    partial_days=len(state.days),
                )
            )

        finally:
            metrics.total_ms = metrics.elapsed_ms(self._clock())
            if metrics.status == "complete":
                if not completed:
                    metrics.status = "abort"
                elif len(state.days) < request.num_days:
                    metrics.status = "error"
            self.metrics_sink.record_run(metrics)
            self.stream_logger.log_summary(metrics)

    async def _verify_costs(
        self,
        request: GenerationRequest,
        state: RunState,
        metrics: RunMetrics,
        cancel: CancelToken,
    ) -> dict[str, object] | None:
        if not request.enable_cost_verification or not state.days:
            return None
        cancel.throw_if_cancelled()

        try:
            verified, stats = await verify_costs(
                state.days,
                request.destination,
                self.cost_verifier,
                CostConfidenceConfig.from_settings(self.settings),
            )
        except CollaboratorUnavailable:
            logger.info("[StreamItinerary] Cost verification skipped - no pricing source available")
            return {"enabled": False, "verified": 0, "unverified": 0}
        except Exception as e:
            metrics.recoverable_errors += 1
            logger.error(f"[StreamItinerary] Cost verification error: {e}")
            return {"enabled": False, "verified": 0, "unverified": 0}

        state.days = verified
        return {"enabled": True, **stats.as_dict()}

    async def _enrich_places(
        self,
        request: GenerationRequest,
        state: RunState,
        metrics: RunMetrics,
        cancel: CancelToken,
    ) -> None:
        if not request.enable_places_enrichment or self.place_lookup is None:
            return

        enriched: list[Day] = []
        for day in state.days:
            cancel.throw_if_cancelled()
            enriched.append(await enrich_day(day, request.destination, self.place_lookup))
        state.days = enriched
