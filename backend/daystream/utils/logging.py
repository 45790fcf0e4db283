"""Structured logging for streaming generation runs."""

import logging
from dataclasses import asdict
from datetime import UTC, datetime
from typing import Any

from backend.daystream.orchestration.state import RunMetrics

logger = logging.getLogger(__name__)


class StructuredStreamLogger:
    """Emits one stream_summary line per run."""

    def log_summary(self, metrics: RunMetrics) -> None:
        """Log run metrics with structured data."""
        log_data: dict[str, Any] = {
            "type": "stream_summary",
            **asdict(metrics),
            "timestamp": datetime.now(UTC).isoformat(),
        }
        log_data.pop("started_at", None)

        log_msg = (
            f"[StreamSummary] {metrics.trip_id} - {metrics.status} "
            f"({metrics.generated_days} generated, {metrics.cached_days} cached, "
            f"{metrics.provider_calls} provider calls, {metrics.total_ms}ms)"
        )

        if metrics.status == "complete":
            logger.info(log_msg, extra={"structured": log_data})
        else:
            logger.warning(log_msg, extra={"structured": log_data})
