"""Constants package for viewstats."""

from .geo import COUNTRY_NAMES, country_name_for
from .resources import (
    DEFAULT_DEDUP_WINDOW_MINUTES,
    DEFAULT_STALE_TTL_SECONDS,
    ENTITY_PATH_ALIASES,
    ENTITY_TO_RESOURCE,
    RESOURCE_TO_ENTITY,
    EntityType,
    ResourceType,
)

__all__ = [
    # Resource constants
    "ResourceType",
    "EntityType",
    "RESOURCE_TO_ENTITY",
    "ENTITY_TO_RESOURCE",
    "ENTITY_PATH_ALIASES",
    "DEFAULT_DEDUP_WINDOW_MINUTES",
    "DEFAULT_STALE_TTL_SECONDS",
    # Geo constants
    "COUNTRY_NAMES",
    "country_name_for",
]
