"""Prometheus metrics endpoint."""

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter()


@router.get("/metrics")
async def metrics() -> Response:
    """Expose registered Prometheus metrics.

    Includes stream_events_total{kind}, stream_runs_total{status} and the
    day latency / run duration histograms.
    """
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
