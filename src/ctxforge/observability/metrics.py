"""Prometheus metrics for the context runtime.

Tracks instance creation, renders, mutations and persistence operations.
"""

from typing import Optional

from prometheus_client import Counter, Histogram, generate_latest

contexts_created_total = Counter(
    "ctxforge_contexts_created_total",
    "Total number of context instances created",
    labelnames=["type_id", "origin"],
)

context_renders_total = Counter(
    "ctxforge_context_renders_total",
    "Total number of context renders",
    labelnames=["type_id"],
)

context_render_duration_seconds = Histogram(
    "ctxforge_context_render_duration_seconds",
    "Context render duration in seconds",
    labelnames=["type_id"],
    buckets=[0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0],
)

context_mutations_total = Counter(
    "ctxforge_context_mutations_total",
    "Total number of context mutations",
    labelnames=["type_id", "status"],
)

persistence_operations_total = Counter(
    "ctxforge_persistence_operations_total",
    "Total number of persistence adapter operations",
    labelnames=["operation", "status"],
)


class MetricsCollector:
    """Records context runtime metrics in the Prometheus registry."""

    def record_created(self, type_id: str, origin: str) -> None:
        """Record an instance creation.

        Args:
            type_id: Context type id
            origin: "created" when built by create_fn, "restored" when loaded
        """
        contexts_created_total.labels(type_id=type_id, origin=origin).inc()

    def record_render(self, type_id: str, duration_seconds: float) -> None:
        context_renders_total.labels(type_id=type_id).inc()
        context_render_duration_seconds.labels(type_id=type_id).observe(duration_seconds)

    def record_mutation(self, type_id: str, status: str) -> None:
        """Record a mutation outcome (committed, rolled_back)."""
        context_mutations_total.labels(type_id=type_id, status=status).inc()

    def record_persistence(self, operation: str, status: str) -> None:
        persistence_operations_total.labels(operation=operation, status=status).inc()

    def get_metrics(self) -> bytes:
        """Get all metrics in Prometheus exposition format."""
        return generate_latest()


_metrics_collector: Optional[MetricsCollector] = None


def get_metrics_collector() -> MetricsCollector:
    """Get the global metrics collector instance."""
    global _metrics_collector
    if _metrics_collector is None:
        _metrics_collector = MetricsCollector()
    return _metrics_collector
