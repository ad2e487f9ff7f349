"""
Analytics Routes

API endpoints for aggregate analytics and view reports.
"""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from viewstats.constants import ENTITY_PATH_ALIASES, EntityType, ResourceType
from viewstats.dependencies import get_analytics_service
from viewstats.exceptions import ResourceNotFoundError
from viewstats.schemas.analytics import (
    AggregateAnalyticsResponse,
    GeographicAnalyticsResponse,
    PhotoAnalyticsResponse,
    PostAnalyticsResponse,
    ResourceAnalyticsResponse,
    UserAnalyticsResponse,
    VideoAnalyticsResponse,
)
from viewstats.services.analytics_service import AnalyticsService, parse_entity_type

router = APIRouter(tags=["Analytics"])

RESPONSE_SCHEMAS: dict[EntityType, type[BaseModel]] = {
    EntityType.USER: UserAnalyticsResponse,
    EntityType.POST: PostAnalyticsResponse,
    EntityType.VIDEO: VideoAnalyticsResponse,
    EntityType.PHOTO: PhotoAnalyticsResponse,
}


# =============================================================================
# View reports
# =============================================================================


@router.get("/users/{user_id}/geographic", response_model=GeographicAnalyticsResponse)
async def get_geographic_analytics(
    user_id: str,
    resource_type: ResourceType = Query(ResourceType.PROFILE),
    analytics: AnalyticsService = Depends(get_analytics_service),
):
    """
    Get the countries viewing a user's resources.

    **Returns**:
    - Total views of the user's resources of the given type
    - Top 20 countries by views
    """
    return await analytics.get_geographic_analytics(user_id, resource_type)


@router.get("/users/{user_id}/aggregate", response_model=AggregateAnalyticsResponse)
async def get_aggregate_analytics(
    user_id: str,
    analytics: AnalyticsService = Depends(get_analytics_service),
):
    """
    Get view analytics across everything a user owns.

    **Returns**:
    - Total views
    - Views by resource type
    - Top 20 countries
    - Views per day for the last 30 days
    """
    return await analytics.get_aggregate_analytics(user_id)


@router.get("/resources/{resource_type}/{resource_id}/views", response_model=ResourceAnalyticsResponse)
async def get_resource_analytics(
    resource_type: str,
    resource_id: str,
    analytics: AnalyticsService = Depends(get_analytics_service),
):
    """
    Get view analytics for a single resource.

    **Returns**:
    - Total views
    - Top 10 countries
    - Views per day for the last 30 days
    """
    if await analytics.owner_of(resource_type, resource_id) is None:
        raise ResourceNotFoundError(resource_type, resource_id)
    return await analytics.get_resource_analytics(resource_type, resource_id)


# =============================================================================
# Aggregate analytics
# =============================================================================


@router.get("/users/{user_id}", response_model=UserAnalyticsResponse)
async def get_user_analytics(
    user_id: str,
    force_recalculate: bool = Query(False),
    analytics: AnalyticsService = Depends(get_analytics_service),
):
    """Get a user's analytics: profile views, followers, content and engagement received."""
    return await analytics.get_user_analytics(user_id, force_recalculate)


@router.get("/posts/{post_id}", response_model=PostAnalyticsResponse)
async def get_post_analytics(
    post_id: str,
    force_recalculate: bool = Query(False),
    analytics: AnalyticsService = Depends(get_analytics_service),
):
    """Get a post's analytics, including total engagements and engagement rate."""
    return await analytics.get_post_analytics(post_id, force_recalculate)


@router.get("/videos/{video_id}", response_model=VideoAnalyticsResponse)
async def get_video_analytics(
    video_id: str,
    force_recalculate: bool = Query(False),
    analytics: AnalyticsService = Depends(get_analytics_service),
):
    return await analytics.get_video_analytics(video_id, force_recalculate)


@router.get("/photos/{photo_id}", response_model=PhotoAnalyticsResponse)
async def get_photo_analytics(
    photo_id: str,
    force_recalculate: bool = Query(False),
    analytics: AnalyticsService = Depends(get_analytics_service),
):
    return await analytics.get_photo_analytics(photo_id, force_recalculate)


@router.get("/{entity_type}/{entity_id}")
async def get_entity_analytics(
    entity_type: str,
    entity_id: str,
    force_recalculate: bool = Query(False),
    analytics: AnalyticsService = Depends(get_analytics_service),
):
    """
    Get analytics for any entity type.

    **Path**: entity_type is one of user, post, video, photo

    **Returns**: The stored aggregate, recalculated first when missing or
    when `force_recalculate` is set
    """
    parsed = ENTITY_PATH_ALIASES.get(entity_type) or parse_entity_type(entity_type)
    record = await analytics.get_or_refresh(parsed, entity_id, force_recalculate)
    return RESPONSE_SCHEMAS[parsed].model_validate(record)
