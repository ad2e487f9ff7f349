"""
Tracking Routes

Endpoints recording views of profiles, posts, videos and photos. A tracked
view schedules a background refresh of the viewed entity's analytics and of
its owner's user analytics.
"""

import logging

from fastapi import APIRouter, Depends

from viewstats.constants import ResourceType
from viewstats.dependencies import (
    get_analytics_service,
    get_request_context,
    get_view_tracker,
    get_viewer_user_id,
)
from viewstats.exceptions import ResourceNotFoundError
from viewstats.schemas.tracking import TrackViewResponse
from viewstats.services.analytics_service import SOURCE_ERRORS, AnalyticsService, parse_resource_type
from viewstats.services.request_context import RequestContext
from viewstats.services.tracking_service import ERROR_SAVING_VIEW, ViewTracker
from viewstats.utils.metrics import record_view_outcome

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Tracking"])


async def _track(
    resource_type: ResourceType | str,
    resource_id: str,
    tracker: ViewTracker,
    analytics: AnalyticsService,
    context: RequestContext,
    viewer_user_id: str | None,
) -> TrackViewResponse:
    resource_type = parse_resource_type(resource_type)
    try:
        owner_user_id = await analytics.owner_of(resource_type, resource_id)
    except SOURCE_ERRORS as e:
        # Storage outages never fail a tracking request
        logger.error(
            f"Error looking up owner of {resource_type.value} {resource_id}: {e}",
            extra={"resource_type": resource_type.value, "resource_id": resource_id},
        )
        record_view_outcome(resource_type.value, "error")
        return TrackViewResponse(success=True, tracked=False, reason=ERROR_SAVING_VIEW)

    if owner_user_id is None:
        raise ResourceNotFoundError(resource_type.value, resource_id)

    result = await tracker.track_view(
        resource_type,
        resource_id,
        owner_user_id,
        context,
        viewer_user_id=viewer_user_id,
    )
    if result.tracked:
        analytics.notify_interaction(resource_type, resource_id, owner_user_id)

    return TrackViewResponse(success=True, tracked=result.tracked, reason=result.reason)


@router.post("/resources/{resource_type}/{resource_id}/view", response_model=TrackViewResponse)
async def track_resource_view(
    resource_type: str,
    resource_id: str,
    tracker: ViewTracker = Depends(get_view_tracker),
    analytics: AnalyticsService = Depends(get_analytics_service),
    context: RequestContext = Depends(get_request_context),
    viewer_user_id: str | None = Depends(get_viewer_user_id),
):
    """
    Track a view of any resource type.

    **Path**: resource_type is one of profile, post, video, photo

    **Returns**: `tracked=false` with a reason when the view is a duplicate
    within the deduplication window or could not be saved
    """
    return await _track(resource_type, resource_id, tracker, analytics, context, viewer_user_id)


@router.post("/profiles/{user_id}/view", response_model=TrackViewResponse)
async def track_profile_view(
    user_id: str,
    tracker: ViewTracker = Depends(get_view_tracker),
    analytics: AnalyticsService = Depends(get_analytics_service),
    context: RequestContext = Depends(get_request_context),
    viewer_user_id: str | None = Depends(get_viewer_user_id),
):
    """Track a profile view."""
    return await _track(ResourceType.PROFILE, user_id, tracker, analytics, context, viewer_user_id)


@router.post("/posts/{post_id}/view", response_model=TrackViewResponse)
async def track_post_view(
    post_id: str,
    tracker: ViewTracker = Depends(get_view_tracker),
    analytics: AnalyticsService = Depends(get_analytics_service),
    context: RequestContext = Depends(get_request_context),
    viewer_user_id: str | None = Depends(get_viewer_user_id),
):
    """Track a post view."""
    return await _track(ResourceType.POST, post_id, tracker, analytics, context, viewer_user_id)


@router.post("/videos/{video_id}/view", response_model=TrackViewResponse)
async def track_video_view(
    video_id: str,
    tracker: ViewTracker = Depends(get_view_tracker),
    analytics: AnalyticsService = Depends(get_analytics_service),
    context: RequestContext = Depends(get_request_context),
    viewer_user_id: str | None = Depends(get_viewer_user_id),
):
    """Track a video view."""
    return await _track(ResourceType.VIDEO, video_id, tracker, analytics, context, viewer_user_id)


@router.post("/photos/{photo_id}/view", response_model=TrackViewResponse)
async def track_photo_view(
    photo_id: str,
    tracker: ViewTracker = Depends(get_view_tracker),
    analytics: AnalyticsService = Depends(get_analytics_service),
    context: RequestContext = Depends(get_request_context),
    viewer_user_id: str | None = Depends(get_viewer_user_id),
):
    """Track a photo view."""
    return await _track(ResourceType.PHOTO, photo_id, tracker, analytics, context, viewer_user_id)
