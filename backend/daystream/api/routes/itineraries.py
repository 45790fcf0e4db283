"""Itinerary endpoints - streaming generation, resume and a non-streaming fallback."""

import contextlib
import logging
import uuid
from collections.abc import AsyncGenerator, AsyncIterator
from functools import lru_cache
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from fastapi.responses import StreamingResponse
from pydantic import Field

from backend.daystream.api.sse import SSE_HEADERS, with_heartbeat
from backend.daystream.config import Settings, get_settings
from backend.daystream.db.inmemory import InMemoryTripStore, get_trip_store
from backend.daystream.llm.client import DayProvider, get_day_provider
from backend.daystream.models.events import StreamEvent
from backend.daystream.models.itinerary import Day
from backend.daystream.models.request import GenerationRequest
from backend.daystream.orchestration.state import CancelToken
from backend.daystream.orchestration.stream import StreamOrchestrator
from backend.daystream.utils.logging import StructuredStreamLogger
from backend.daystream.utils.metrics import PrometheusStreamMetrics

logger = logging.getLogger(__name__)

router = APIRouter()

_stream_metrics = PrometheusStreamMetrics()
_stream_logger = StructuredStreamLogger()


class CreateItineraryRequest(GenerationRequest):
    """Request body for itinerary generation; trip_id is assigned when omitted."""

    trip_id: str = Field(default_factory=lambda: str(uuid.uuid4()))


@lru_cache
def get_provider() -> DayProvider:
    return get_day_provider()


def _orchestrator(
    provider: DayProvider, store: InMemoryTripStore, trip_id: str, settings: Settings
) -> StreamOrchestrator:
    return StreamOrchestrator(
        provider,
        persist=store.callback_for(trip_id),
        settings=settings,
        metrics_sink=_stream_metrics,
        stream_logger=_stream_logger,
    )


def _sse_response(
    orchestrator: StreamOrchestrator,
    request: GenerationRequest,
    settings: Settings,
    existing_days: list[Day] | None = None,
    last_event_id: str | None = None,
) -> StreamingResponse:
    cancel = CancelToken()
    events = orchestrator.stream(
        request,
        existing_days=existing_days,
        last_event_id=last_event_id,
        cancel_token=cancel,
    )

    async def event_generator() -> AsyncGenerator[str, None]:
        """Generate SSE frames; a closed connection cancels the run."""
        try:
            async with contextlib.aclosing(
                with_heartbeat(events, settings.heartbeat_interval_seconds)
            ) as frames:
                async for frame in frames:
                    yield frame
        finally:
            cancel.cancel()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


def _require_streaming(settings: Settings) -> None:
    if not settings.streaming_enabled:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Streaming is disabled",
        )


@router.post("/itineraries/stream")
async def stream_itinerary(
    request: CreateItineraryRequest,
    provider: Annotated[DayProvider, Depends(get_provider)],
    store: Annotated[InMemoryTripStore, Depends(get_trip_store)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> StreamingResponse:
    """Generate an itinerary day by day as Server-Sent Events."""
    _require_streaming(settings)
    store.save_request(request)
    return _sse_response(_orchestrator(provider, store, request.trip_id, settings), request, settings)


@router.get("/trips/{trip_id}/stream")
async def resume_itinerary_stream(
    trip_id: str,
    provider: Annotated[DayProvider, Depends(get_provider)],
    store: Annotated[InMemoryTripStore, Depends(get_trip_store)],
    settings: Annotated[Settings, Depends(get_settings)],
    last_event_id: Annotated[str | None, Header()] = None,
) -> StreamingResponse:
    """Resume an interrupted generation.

    Days already saved for the trip are replayed (those after Last-Event-ID)
    and generation continues from the first missing day.
    """
    _require_streaming(settings)
    request = store.get_request(trip_id)
    if request is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Trip not found",
        )

    existing_days = store.get_days(trip_id)
    logger.info(
        f"[Itineraries] Resuming {trip_id} with {len(existing_days)} saved days",
        extra={"structured": {"trip_id": trip_id, "last_event_id": last_event_id}},
    )
    return _sse_response(
        _orchestrator(provider, store, trip_id, settings),
        request,
        settings,
        existing_days=existing_days,
        last_event_id=last_event_id,
    )


async def _drain(events: AsyncIterator[StreamEvent]) -> tuple[dict[str, Any] | None, dict[str, Any] | None]:
    """Consume a run; return (done payload, terminal error payload)."""
    done: dict[str, Any] | None = None
    terminal: dict[str, Any] | None = None
    async for event in events:
        if event.kind == "done":
            done = event.data
        elif event.kind == "error" and not event.data.get("recoverable", True):
            terminal = event.data
    return done, terminal


@router.post("/itineraries", response_model=None)
async def create_itinerary(
    request: CreateItineraryRequest,
    provider: Annotated[DayProvider, Depends(get_provider)],
    store: Annotated[InMemoryTripStore, Depends(get_trip_store)],
    settings: Annotated[Settings, Depends(get_settings)],
    stream: Annotated[bool, Query()] = False,
) -> dict[str, Any] | StreamingResponse:
    """Generate a whole itinerary and return the final payload.

    With ?stream=1 the response is the same SSE stream as /itineraries/stream.
    """
    store.save_request(request)
    orchestrator = _orchestrator(provider, store, request.trip_id, settings)

    if stream:
        _require_streaming(settings)
        return _sse_response(orchestrator, request, settings)

    async with contextlib.aclosing(orchestrator.stream(request)) as events:
        done, terminal = await _drain(events)

    if done is not None:
        return done

    if terminal is not None and terminal.get("budget_type"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=terminal)

    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=terminal or {"message": "Generation failed"},
    )
