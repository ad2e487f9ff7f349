"""
FastAPI Dependencies

Services are built once in `create_app` and stored on `app.state`; routes
receive them through these dependencies so tests can override them with
`app.dependency_overrides`.
"""

from fastapi import Request

from viewstats.services.analytics_service import AnalyticsService
from viewstats.services.request_context import RequestContext
from viewstats.services.tracking_service import ViewTracker


def get_view_tracker(request: Request) -> ViewTracker:
    return request.app.state.view_tracker


def get_analytics_service(request: Request) -> AnalyticsService:
    return request.app.state.analytics_service


def get_request_context(request: Request) -> RequestContext:
    return RequestContext.from_request(request)


def get_viewer_user_id(request: Request) -> str | None:
    """Authenticated viewer, set on `request.state` by the upstream authentication layer."""
    return getattr(request.state, "user_id", None)
