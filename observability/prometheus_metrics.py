"""Prometheus metrics of the flusio API and workers."""

import logging
import re
import time

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, Info, generate_latest
from prometheus_client.core import CollectorRegistry

from config.settings import settings

logger = logging.getLogger(__name__)

flusio_registry = CollectorRegistry()

# HTTP
request_count = Counter(
    'flusio_http_requests_total',
    'Total number of HTTP requests',
    ['method', 'endpoint', 'status_code'],
    registry=flusio_registry
)

request_duration = Histogram(
    'flusio_http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint'],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
    registry=flusio_registry
)

# Fetchers
feed_fetches = Counter(
    'flusio_feed_fetches_total',
    'Total number of feed synchronizations',
    ['status'],
    registry=flusio_registry
)

feed_fetch_duration = Histogram(
    'flusio_feed_fetch_duration_seconds',
    'Feed synchronization duration in seconds',
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
    registry=flusio_registry
)

links_created = Counter(
    'flusio_feed_links_created_total',
    'Total number of links created by feed synchronizations',
    registry=flusio_registry
)

link_fetches = Counter(
    'flusio_link_fetches_total',
    'Total number of link fetches',
    ['status'],
    registry=flusio_registry
)

# Jobs
jobs_executed = Counter(
    'flusio_jobs_executed_total',
    'Total number of executed jobs',
    ['handler', 'status'],
    registry=flusio_registry
)

job_duration = Histogram(
    'flusio_job_duration_seconds',
    'Job duration in seconds',
    ['handler'],
    buckets=[0.1, 0.5, 1.0, 5.0, 10.0, 30.0, 60.0],
    registry=flusio_registry
)

app_info = Info(
    'flusio_app',
    'flusio application information',
    registry=flusio_registry
)

_ID_PATTERN = re.compile(r'/\d+(?=/|$)')


class PrometheusMiddleware:
    """ASGI middleware counting HTTP requests and their duration."""

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope)
        method = request.method
        endpoint = self._normalize_endpoint(request.url.path)
        status_code = 500
        start_time = time.time()

        async def send_wrapper(message):
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            request_count.labels(
                method=method,
                endpoint=endpoint,
                status_code=str(status_code)
            ).inc()
            request_duration.labels(method=method, endpoint=endpoint).observe(time.time() - start_time)

    @staticmethod
    def _normalize_endpoint(path: str) -> str:
        # Identifiers are numeric: keep the cardinality of the labels low
        return _ID_PATTERN.sub('/{id}', path)


def setup_prometheus_metrics(app: FastAPI) -> None:
    """Add the metrics middleware and the ``/metrics`` endpoint to the app."""
    app.add_middleware(PrometheusMiddleware)

    @app.get("/metrics", response_class=PlainTextResponse, include_in_schema=False)
    async def metrics_endpoint():
        return PlainTextResponse(
            generate_latest(flusio_registry),
            media_type=CONTENT_TYPE_LATEST
        )

    app_info.info({
        'version': settings.app_version,
        'environment': settings.environment,
    })

    logger.info("Prometheus metrics configured")


def record_feed_fetch(status: str, duration: float, number_created: int = 0) -> None:
    """Record a feed synchronization; ``status`` is success, error or unchanged."""
    feed_fetches.labels(status=status).inc()
    feed_fetch_duration.observe(duration)
    if number_created:
        links_created.inc(number_created)


def record_link_fetch(success: bool) -> None:
    link_fetches.labels(status="success" if success else "error").inc()


def record_job(handler: str, duration: float, error: bool = False) -> None:
    jobs_executed.labels(handler=handler, status="error" if error else "success").inc()
    job_duration.labels(handler=handler).observe(duration)
