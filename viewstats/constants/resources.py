"""
Resource Constants for viewstats

Resource types that can be viewed, and entity types that carry aggregate
analytics.
"""

from enum import Enum


class ResourceType(str, Enum):
    """Kinds of resource a view can be recorded against."""

    PROFILE = "profile"
    POST = "post"
    VIDEO = "video"
    PHOTO = "photo"


class EntityType(str, Enum):
    """Kinds of entity that have an aggregate analytics row."""

    USER = "user"
    POST = "post"
    VIDEO = "video"
    PHOTO = "photo"


# A profile view counts towards the profile owner's user aggregate
RESOURCE_TO_ENTITY = {
    ResourceType.PROFILE: EntityType.USER,
    ResourceType.POST: EntityType.POST,
    ResourceType.VIDEO: EntityType.VIDEO,
    ResourceType.PHOTO: EntityType.PHOTO,
}

ENTITY_TO_RESOURCE = {entity: resource for resource, entity in RESOURCE_TO_ENTITY.items()}

# URL segments used by the shortcut routes (/analytics/users/{id}, ...)
ENTITY_PATH_ALIASES = {
    "users": EntityType.USER,
    "posts": EntityType.POST,
    "videos": EntityType.VIDEO,
    "photos": EntityType.PHOTO,
}

# Default rolling window for view deduplication
DEFAULT_DEDUP_WINDOW_MINUTES = 60

# Default maximum age of an aggregate before a background refresh
DEFAULT_STALE_TTL_SECONDS = 60 * 60

# Report sizes for geographic breakdowns
TOP_COUNTRIES_LIMIT = 20
RESOURCE_TOP_COUNTRIES_LIMIT = 10
VIEWS_OVER_TIME_DAYS = 30
