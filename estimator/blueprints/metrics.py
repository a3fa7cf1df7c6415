"""
Prometheus instrumentation and the /metrics scrape endpoint.

The endpoint is unauthenticated; expose it to the monitoring network only.
"""
import os
import time

from flask import Blueprint, Response, request, g
from prometheus_client import (
    CONTENT_TYPE_LATEST, REGISTRY, CollectorRegistry, Counter, Gauge, Histogram,
    generate_latest, multiprocess,
)

metrics_bp = Blueprint('metrics', __name__)

# Gunicorn workers write to PROMETHEUS_MULTIPROC_DIR and are merged at scrape time
MULTIPROCESS_MODE = bool(os.environ.get('PROMETHEUS_MULTIPROC_DIR'))

if MULTIPROCESS_MODE:
    registry = CollectorRegistry()
    multiprocess.MultiProcessCollector(registry)
    _metric_registry = None
else:
    registry = REGISTRY
    _metric_registry = REGISTRY

LATENCY_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)

http_requests_total = Counter(
    'http_requests_total', 'HTTP requests served',
    ['method', 'endpoint', 'http_status'], registry=_metric_registry,
)
http_request_duration_seconds = Histogram(
    'http_request_duration_seconds', 'Time spent serving a request',
    ['method', 'endpoint'], buckets=LATENCY_BUCKETS, registry=_metric_registry,
)
http_requests_in_flight = Gauge(
    'http_requests_in_flight', 'Requests being served right now',
    registry=_metric_registry,
)
estimations_saved_total = Counter(
    'estimations_saved_total', 'Estimation snapshots saved',
    registry=_metric_registry,
)


def setup_metrics_instrumentation(app):
    """Time every request and count it by endpoint and status."""

    @app.before_request
    def _start_timer():
        g.metrics_started_at = time.perf_counter()
        http_requests_in_flight.inc()

    @app.after_request
    def _record_request(response):
        started_at = g.pop('metrics_started_at', None)
        if started_at is None:
            return response
        endpoint = request.endpoint or 'unknown'
        try:
            http_request_duration_seconds.labels(request.method, endpoint).observe(
                time.perf_counter() - started_at
            )
            http_requests_total.labels(request.method, endpoint, response.status_code).inc()
        except ValueError as e:
            app.logger.warning(f"[METRICS] Could not record {endpoint}: {e}")
        finally:
            http_requests_in_flight.dec()
        return response


@metrics_bp.route('/metrics')
def metrics():
    """Scrape endpoint in the Prometheus text format."""
    return Response(generate_latest(registry), mimetype=CONTENT_TYPE_LATEST)
