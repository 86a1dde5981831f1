"""Observability module for logging and metrics.

This module provides:
- Structured logging with turn ids
- Prometheus metrics for context creation, renders, mutations and persistence
"""

from ctxforge.observability.logging import get_logger, setup_logging
from ctxforge.observability.metrics import MetricsCollector, get_metrics_collector

__all__ = [
    "setup_logging",
    "get_logger",
    "MetricsCollector",
    "get_metrics_collector",
]
