"""Observability package for flusio."""

from .logging import (
    setup_logging,
    get_logger,
    get_structured_logger,
    StructuredLogger,
    log_performance
)
from .prometheus_metrics import (
    setup_prometheus_metrics,
    record_feed_fetch,
    record_link_fetch,
    record_job,
    PrometheusMiddleware,
    flusio_registry
)

__all__ = [
    'setup_logging',
    'get_logger',
    'get_structured_logger',
    'StructuredLogger',
    'log_performance',
    'setup_prometheus_metrics',
    'record_feed_fetch',
    'record_link_fetch',
    'record_job',
    'PrometheusMiddleware',
    'flusio_registry'
]
