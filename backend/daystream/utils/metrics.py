"""Prometheus metrics for streaming generation runs."""

from prometheus_client import Counter, Histogram

from backend.daystream.orchestration.state import RunMetrics

stream_events_total = Counter(
    "stream_events_total",
    "Total stream events emitted",
    ["kind"],
)

stream_runs_total = Counter(
    "stream_runs_total",
    "Total generation runs by final status",
    ["status"],
)

stream_budget_exceeded_total = Counter(
    "stream_budget_exceeded_total",
    "Total runs stopped by a generation budget",
    ["budget_type"],
)

stream_day_latency_ms = Histogram(
    "stream_day_latency_ms",
    "Time to generate one day in milliseconds",
    buckets=[250, 500, 1000, 2000, 4000, 8000, 16000, 32000],
)

stream_run_duration_ms = Histogram(
    "stream_run_duration_ms",
    "Total run duration in milliseconds",
    ["status"],
    buckets=[1000, 5000, 15000, 30000, 60000, 120000, 300000],
)

stream_provider_calls = Histogram(
    "stream_provider_calls",
    "Provider calls per run",
    buckets=[1, 2, 4, 8, 12, 16, 20],
)


class PrometheusStreamMetrics:
    """Prometheus-based stream metrics implementation."""

    def inc_event(self, kind: str) -> None:
        """Count an emitted event."""
        stream_events_total.labels(kind=kind).inc()

    def record_day_latency(self, latency_ms: float) -> None:
        """Record time spent generating one day."""
        stream_day_latency_ms.observe(latency_ms)

    def record_run(self, metrics: RunMetrics) -> None:
        """Record a finished run."""
        stream_runs_total.labels(status=metrics.status).inc()
        stream_run_duration_ms.labels(status=metrics.status).observe(metrics.total_ms)
        stream_provider_calls.observe(metrics.provider_calls)
        if metrics.budget_exceeded is not None:
            stream_budget_exceeded_total.labels(budget_type=metrics.budget_exceeded.type).inc()
