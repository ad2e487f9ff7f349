"""
Prometheus Metrics Module

Provides application metrics using the prometheus_client library.
Metrics are exposed at /metrics endpoint for Prometheus scraping.
"""

import time
from collections.abc import Callable

from prometheus_client import Counter, Gauge, Histogram, Info
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

# =============================================================================
# Application Info
# =============================================================================

APP_INFO = Info("viewstats_app", "viewstats application information")


def set_app_info(version: str, environment: str) -> None:
    """Set application info labels."""
    APP_INFO.info({"version": version, "environment": environment})


# =============================================================================
# HTTP Request Metrics
# =============================================================================

HTTP_REQUESTS_TOTAL = Counter(
    "viewstats_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "viewstats_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# =============================================================================
# View Tracking Metrics
# =============================================================================

VIEWS_TOTAL = Counter(
    "viewstats_views_total",
    "View tracking attempts by outcome",
    ["resource_type", "outcome"],  # tracked, duplicate, error
)

GEO_LOOKUPS_TOTAL = Counter(
    "viewstats_geo_lookups_total",
    "Geolocation lookups by outcome",
    ["outcome"],  # resolved, skipped, invalid, not_found, error
)

# =============================================================================
# Aggregate Analytics Metrics
# =============================================================================

RECALCULATIONS_TOTAL = Counter(
    "viewstats_recalculations_total",
    "Aggregate recalculations",
    ["entity_type", "mode", "outcome"],  # mode: sync, background; outcome: success, failure
)

RECALCULATION_DURATION_SECONDS = Histogram(
    "viewstats_recalculation_duration_seconds",
    "Aggregate recalculation duration in seconds",
    ["entity_type"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

BACKGROUND_TASKS_PENDING = Gauge(
    "viewstats_background_tasks_pending",
    "Background tasks submitted and not yet finished",
)

# =============================================================================
# Prometheus Metrics Middleware
# =============================================================================


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Collect request count and duration per normalized endpoint."""

    EXCLUDED_PATHS = {"/metrics", "/health", "/favicon.ico"}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if path in self.EXCLUDED_PATHS:
            return await call_next(request)

        method = request.method
        endpoint = self._normalize_path(path)
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
            status_code = response.status_code
        except Exception:
            status_code = 500
            raise
        finally:
            duration = time.perf_counter() - start_time
            HTTP_REQUEST_DURATION_SECONDS.labels(method=method, endpoint=endpoint).observe(duration)
            HTTP_REQUESTS_TOTAL.labels(method=method, endpoint=endpoint, status_code=str(status_code)).inc()

        return response

    @staticmethod
    def _normalize_path(path: str) -> str:
        """
        Normalize URL path for metrics by replacing dynamic segments.

        Examples:
            /analytics/posts/3f1c...-uuid -> /analytics/posts/{uuid}
            /tracking/posts/42/view -> /tracking/posts/{id}/view
        """
        normalized = []
        for part in path.split("/"):
            if part.isdigit():
                normalized.append("{id}")
            elif part and len(part) == 36 and "-" in part:
                normalized.append("{uuid}")
            else:
                normalized.append(part)
        return "/".join(normalized)


# =============================================================================
# Helper Functions
# =============================================================================


def record_view_outcome(resource_type: str, outcome: str) -> None:
    """Record a view tracking outcome (tracked/duplicate/error)."""
    VIEWS_TOTAL.labels(resource_type=resource_type, outcome=outcome).inc()


def record_geo_lookup(outcome: str) -> None:
    """Record a geolocation lookup outcome."""
    GEO_LOOKUPS_TOTAL.labels(outcome=outcome).inc()


def record_recalculation(entity_type: str, mode: str, outcome: str, duration: float | None = None) -> None:
    """Record an aggregate recalculation and, when known, its duration."""
    RECALCULATIONS_TOTAL.labels(entity_type=entity_type, mode=mode, outcome=outcome).inc()
    if duration is not None:
        RECALCULATION_DURATION_SECONDS.labels(entity_type=entity_type).observe(duration)
