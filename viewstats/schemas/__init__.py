from .analytics import (
    AggregateAnalyticsResponse,
    GeographicAnalyticsResponse,
    PhotoAnalyticsResponse,
    PostAnalyticsResponse,
    ResourceAnalyticsResponse,
    UserAnalyticsResponse,
    VideoAnalyticsResponse,
)
from .tracking import TrackViewResponse

# Define the public API of this module
__all__ = [
    "AggregateAnalyticsResponse",
    "GeographicAnalyticsResponse",
    "PhotoAnalyticsResponse",
    "PostAnalyticsResponse",
    "ResourceAnalyticsResponse",
    "UserAnalyticsResponse",
    "VideoAnalyticsResponse",
    "TrackViewResponse",
]
