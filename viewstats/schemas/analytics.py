"""
Analytics Schemas

Pydantic models for aggregate analytics and view reports.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class UserAnalyticsResponse(BaseModel):
    user_id: str
    views_count: int = 0
    followers_count: int = 0
    following_count: int = 0
    posts_count: int = 0
    videos_count: int = 0
    comments_count: int = 0
    likes_received_count: int = 0
    shares_received_count: int = 0
    last_calculated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PostAnalyticsResponse(BaseModel):
    post_id: str
    views_count: int = 0
    likes_count: int = 0
    comments_count: int = 0
    shares_count: int = 0
    bookmarks_count: int = 0
    reports_count: int = 0
    reactions_count: int = 0
    total_engagements: int = 0
    engagement_rate: float = Field(0.0, description="Engagements per 100 views")
    last_calculated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class VideoAnalyticsResponse(BaseModel):
    video_id: str
    views_count: int = 0
    likes_count: int = 0
    comments_count: int = 0
    shares_count: int = 0
    total_watch_time: int = 0
    average_watch_time: float = 0.0
    completion_rate: float = 0.0
    last_calculated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PhotoAnalyticsResponse(BaseModel):
    photo_id: str
    views_count: int = 0
    likes_count: int = 0
    comments_count: int = 0
    shares_count: int = 0
    last_calculated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CountryViews(BaseModel):
    country_code: str
    country_name: str
    count: int


class DailyViews(BaseModel):
    date: str  # YYYY-MM-DD
    count: int


class GeographicAnalyticsResponse(BaseModel):
    resource_type: str
    total_views: int
    top_countries: list[CountryViews]


class AggregateAnalyticsResponse(BaseModel):
    total_views: int
    views_by_type: dict[str, int]
    top_countries: list[CountryViews]
    views_over_time: list[DailyViews]


class ResourceAnalyticsResponse(BaseModel):
    resource_type: str
    resource_id: str
    total_views: int
    top_countries: list[CountryViews]
    views_over_time: list[DailyViews]
