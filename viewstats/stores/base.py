"""
Storage Interfaces

The tracker and the analytics service depend only on these abstract stores.
`viewstats.stores.sql` provides the SQLAlchemy implementations; tests swap in
doubles to inject failures.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from viewstats.constants import EntityType, ResourceType
from viewstats.models.view_record import ViewRecord


@dataclass(frozen=True)
class CountryCount:
    country_code: str
    country_name: str
    count: int


@dataclass(frozen=True)
class DailyCount:
    date: str
    count: int


@dataclass(frozen=True)
class ViewFilter:
    """Narrows view queries; unset fields are not filtered on."""

    resource_type: ResourceType | str | None = None
    resource_id: str | None = None
    owner_user_id: str | None = None


class ViewStore(ABC):
    """Append-only store of view records."""

    @abstractmethod
    async def has_recent_view(
        self,
        resource_type: ResourceType | str,
        resource_id: str,
        since: datetime,
        viewer_user_id: str | None = None,
        ip_address: str | None = None,
    ) -> bool:
        """
        True if a view of the resource exists at or after `since` for the
        viewer user id, or, when no user id is given, for the IP address.
        """

    @abstractmethod
    async def add(self, record: ViewRecord) -> ViewRecord:
        """Persist a new view record."""

    @abstractmethod
    async def count_views(self, view_filter: ViewFilter) -> int: ...

    @abstractmethod
    async def count_views_by_resource_type(self, owner_user_id: str) -> dict[str, int]: ...

    @abstractmethod
    async def top_countries(self, view_filter: ViewFilter, limit: int) -> list[CountryCount]:
        """Most frequent countries, views without a country excluded."""

    @abstractmethod
    async def views_per_day(self, view_filter: ViewFilter, since: datetime) -> list[DailyCount]: ...


class AggregateStore(ABC):
    """One aggregate row per (entity type, entity id)."""

    @abstractmethod
    async def get(self, entity_type: EntityType, entity_id: str) -> Any | None: ...

    @abstractmethod
    async def save(
        self,
        entity_type: EntityType,
        entity_id: str,
        counters: dict[str, Any],
        calculated_at: datetime,
    ) -> Any:
        """
        Create or overwrite the row's counters. `last_calculated_at` never
        moves backwards: an older `calculated_at` keeps the stored value.
        """


class InteractionSource(ABC):
    """Read-only counts over the interaction tables owned by other services."""

    @abstractmethod
    async def count_likes(self, resource_type: str, resource_id: str) -> int: ...

    @abstractmethod
    async def count_comments(self, resource_type: str, resource_id: str) -> int:
        """Comments on a resource, soft-deleted comments excluded."""

    @abstractmethod
    async def count_shares(self, resource_type: str, resource_id: str) -> int: ...

    @abstractmethod
    async def count_bookmarks(self, post_id: str) -> int: ...

    @abstractmethod
    async def count_reports(self, post_id: str) -> int: ...

    @abstractmethod
    async def count_reactions(self, post_id: str) -> int: ...

    @abstractmethod
    async def count_followers(self, user_id: str) -> int: ...

    @abstractmethod
    async def count_following(self, user_id: str) -> int: ...

    @abstractmethod
    async def count_posts(self, user_id: str) -> int: ...

    @abstractmethod
    async def count_videos(self, user_id: str) -> int: ...

    @abstractmethod
    async def count_comments_by_user(self, user_id: str) -> int: ...

    @abstractmethod
    async def count_likes_received(self, user_id: str) -> int:
        """Likes on the user's posts."""

    @abstractmethod
    async def count_shares_received(self, user_id: str) -> int:
        """Shares of the user's posts."""


class ResourceDirectory(ABC):
    """Existence and ownership lookups for users and their content."""

    @abstractmethod
    async def exists(self, entity_type: EntityType, entity_id: str) -> bool: ...

    @abstractmethod
    async def owner_of(self, resource_type: ResourceType, resource_id: str) -> str | None:
        """User id owning the resource, or None if it does not exist. A profile is owned by itself."""
