"""Observability package for linkfoundry."""

from .logging import setup_logging, get_logger, JSONFormatter, ColoredFormatter
from .prometheus_metrics import (
    setup_prometheus_metrics,
    record_job,
    record_step,
    record_lock_contention,
    record_cache_lookup,
    record_artifact_upload,
    PrometheusMiddleware,
    linkfoundry_registry
)

__all__ = [
    'setup_logging',
    'get_logger',
    'JSONFormatter',
    'ColoredFormatter',
    'setup_prometheus_metrics',
    'record_job',
    'record_step',
    'record_lock_contention',
    'record_cache_lookup',
    'record_artifact_upload',
    'PrometheusMiddleware',
    'linkfoundry_registry'
]
