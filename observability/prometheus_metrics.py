"""Prometheus metrics for the weblink ingestion pipeline."""

from prometheus_client import Counter, Histogram, Info, generate_latest, CONTENT_TYPE_LATEST
from prometheus_client.core import CollectorRegistry
from fastapi import FastAPI, Request, Response
import re
import time
from typing import Optional
import logging
import os

logger = logging.getLogger(__name__)

# Custom registry so tests and multiple apps do not collide with the default one
linkfoundry_registry = CollectorRegistry()

# Request metrics
request_count = Counter(
    'linkfoundry_http_requests_total',
    'Total number of HTTP requests',
    ['method', 'endpoint', 'status_code'],
    registry=linkfoundry_registry
)

request_duration = Histogram(
    'linkfoundry_http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint'],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
    registry=linkfoundry_registry
)

# Pipeline metrics
jobs_processed = Counter(
    'linkfoundry_jobs_total',
    'Queue jobs handled by the ingestion orchestrator',
    ['channel', 'outcome'],
    registry=linkfoundry_registry
)

step_duration = Histogram(
    'linkfoundry_step_duration_seconds',
    'Duration of lock-guarded pipeline steps',
    ['step'],
    buckets=[0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
    registry=linkfoundry_registry
)

lock_contention = Counter(
    'linkfoundry_lock_contention_total',
    'Lock acquisitions that found the lock already held',
    ['step'],
    registry=linkfoundry_registry
)

cache_requests = Counter(
    'linkfoundry_content_cache_requests_total',
    'Content cache lookups',
    ['result'],
    registry=linkfoundry_registry
)

artifact_uploads = Counter(
    'linkfoundry_artifact_uploads_total',
    'Artifacts written to object storage',
    ['artifact_type'],
    registry=linkfoundry_registry
)

error_count = Counter(
    'linkfoundry_errors_total',
    'Total number of errors',
    ['error_type', 'component'],
    registry=linkfoundry_registry
)

app_info = Info(
    'linkfoundry_app_info',
    'linkfoundry application information',
    registry=linkfoundry_registry
)


class PrometheusMiddleware:
    """Middleware to collect Prometheus metrics for HTTP requests."""

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope, receive)
        method = request.method
        endpoint = self._normalize_endpoint(request.url.path)

        start_time = time.time()
        status_code = 500  # Default to error

        async def send_wrapper(message):
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as e:
            logger.error(f"Request processing error: {e}")
            error_count.labels(error_type=type(e).__name__, component="http").inc()
            raise
        finally:
            duration = time.time() - start_time
            request_count.labels(
                method=method,
                endpoint=endpoint,
                status_code=str(status_code)
            ).inc()
            request_duration.labels(method=method, endpoint=endpoint).observe(duration)

    def _normalize_endpoint(self, path: str) -> str:
        """Normalize endpoint path to reduce cardinality."""
        path = re.sub(r'/\d+', '/{id}', path)
        path = re.sub(r'/[a-f0-9]{32,}', '/{hash}', path)
        return path


def setup_prometheus_metrics(app: FastAPI) -> None:
    """Setup Prometheus metrics collection for a FastAPI app."""
    app.add_middleware(PrometheusMiddleware)

    @app.get("/metrics")
    async def metrics_endpoint():
        """Prometheus metrics endpoint."""
        return Response(generate_latest(linkfoundry_registry), media_type=CONTENT_TYPE_LATEST)

    app_info.info({
        'version': os.getenv('APP_VERSION', 'unknown'),
        'environment': os.getenv('ENVIRONMENT', 'development'),
    })

    logger.info("Prometheus metrics configured")


def record_job(channel: str, outcome: str) -> None:
    """Count one handled queue job."""
    jobs_processed.labels(channel=channel, outcome=outcome).inc()


def record_step(step: str, duration: float, error: Optional[str] = None) -> None:
    """Record the duration of a pipeline step and count its failures."""
    step_duration.labels(step=step).observe(duration)
    if error:
        error_count.labels(error_type=error, component=step).inc()


def record_lock_contention(step: str) -> None:
    lock_contention.labels(step=step).inc()


def record_cache_lookup(hit: bool) -> None:
    cache_requests.labels(result="hit" if hit else "miss").inc()


def record_artifact_upload(artifact_type: str) -> None:
    artifact_uploads.labels(artifact_type=artifact_type).inc()
