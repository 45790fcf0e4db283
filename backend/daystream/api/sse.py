"""SSE transport helpers - frame formatting and heartbeat interleaving."""

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Callable
from datetime import UTC, datetime

from backend.daystream.models.events import StreamEvent, parse_last_event_id

logger = logging.getLogger(__name__)

__all__ = ["SSE_HEADERS", "format_sse", "heartbeat_frame", "parse_last_event_id", "with_heartbeat"]

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}


def format_sse(event: StreamEvent) -> str:
    """Render an event as an SSE frame (id, event and data lines)."""
    return event.to_sse()


def heartbeat_frame(now: datetime | None = None) -> str:
    """SSE comment frame; ignored by EventSource consumers."""
    ts = (now or datetime.now(UTC)).isoformat()
    return f": ping {ts}\n\n"


async def with_heartbeat(
    events: AsyncIterator[StreamEvent],
    interval_seconds: float = 15.0,
    on_event: Callable[[StreamEvent], None] | None = None,
) -> AsyncIterator[str]:
    """Yield SSE frames, inserting a heartbeat whenever the source is idle.

    The pending read is cancelled and the source closed on completion, error
    or when the consumer closes this iterator.
    """
    pending: asyncio.Task[StreamEvent] | None = None
    try:
        while True:
            if pending is None:
                pending = asyncio.ensure_future(events.__anext__())

            done, _ = await asyncio.wait({pending}, timeout=interval_seconds)
            if not done:
                yield heartbeat_frame()
                continue

            task, pending = pending, None
            try:
                event = task.result()
            except StopAsyncIteration:
                return

            if on_event is not None:
                on_event(event)
            yield format_sse(event)
    finally:
        if pending is not None and not pending.done():
            pending.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await pending
        aclose = getattr(events, "aclose", None)
        if aclose is not None:
            await aclose()
