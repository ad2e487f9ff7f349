"""
Analytics Service

Maintains per-entity aggregate counters (users, posts, videos, photos) derived
from view records and the platform's interaction tables.

Reads are served from the stored aggregate. A missing aggregate is computed
synchronously; a stale one is returned as-is while a recomputation runs in
the background. Recomputations are also triggered by interactions (views,
likes, comments, shares) through `notify_interaction`.
"""

import logging
import time
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from viewstats.constants import DEFAULT_STALE_TTL_SECONDS, RESOURCE_TO_ENTITY, EntityType, ResourceType
from viewstats.constants.resources import RESOURCE_TOP_COUNTRIES_LIMIT, TOP_COUNTRIES_LIMIT, VIEWS_OVER_TIME_DAYS
from viewstats.exceptions import (
    AnalyticsUnavailableError,
    DatabaseError,
    EntityNotFoundError,
    UnsupportedResourceTypeError,
)
from viewstats.services.background import BackgroundTaskRunner
from viewstats.stores.base import AggregateStore, InteractionSource, ResourceDirectory, ViewFilter, ViewStore
from viewstats.utils.clock import utcnow
from viewstats.utils.metrics import record_recalculation

logger = logging.getLogger(__name__)

# Failures of the raw sources that make an aggregate temporarily unavailable
SOURCE_ERRORS = (SQLAlchemyError, OSError, DatabaseError)


def engagement_rate(total_engagements: int, views: int) -> float:
    """Engagements per hundred views, two decimals; 0 without views."""
    if views <= 0:
        return 0.0
    return round(total_engagements / views * 100, 2)


def average_watch_time(total_watch_time: int, views: int) -> float:
    if views <= 0:
        return 0.0
    return round(total_watch_time / views, 2)


def parse_entity_type(entity_type: EntityType | str) -> EntityType:
    try:
        return EntityType(entity_type)
    except ValueError:
        raise UnsupportedResourceTypeError(str(entity_type)) from None


def parse_resource_type(resource_type: ResourceType | str) -> ResourceType:
    try:
        return ResourceType(resource_type)
    except ValueError:
        raise UnsupportedResourceTypeError(str(resource_type)) from None


class AnalyticsService:
    """Service computing, caching and reporting view and engagement analytics"""

    def __init__(
        self,
        view_store: ViewStore,
        aggregate_store: AggregateStore,
        interactions: InteractionSource,
        directory: ResourceDirectory,
        runner: BackgroundTaskRunner,
        stale_ttl_seconds: int = DEFAULT_STALE_TTL_SECONDS,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.view_store = view_store
        self.aggregate_store = aggregate_store
        self.interactions = interactions
        self.directory = directory
        self.runner = runner
        self.stale_ttl = timedelta(seconds=stale_ttl_seconds)
        self.clock = clock

        self._calculators = {
            EntityType.USER: self._user_counters,
            EntityType.POST: self._post_counters,
            EntityType.VIDEO: self._video_counters,
            EntityType.PHOTO: self._photo_counters,
        }

    # =========================================================================
    # Calculation
    # =========================================================================

    async def calculate(self, entity_type: EntityType | str, entity_id: str) -> Any:
        """
        Recompute an entity's aggregate from the raw sources and persist it.

        Raises:
            EntityNotFoundError: The entity does not exist
            AnalyticsUnavailableError: A raw source could not be read
        """
        return await self._calculate(parse_entity_type(entity_type), entity_id, mode="sync")

    async def _calculate(self, entity_type: EntityType, entity_id: str, mode: str) -> Any:
        start_time = time.perf_counter()
        try:
            if not await self.directory.exists(entity_type, entity_id):
                record_recalculation(entity_type.value, mode, "not_found")
                raise EntityNotFoundError(entity_type.value, entity_id)

            counters = await self._calculators[entity_type](entity_id)
            record = await self.aggregate_store.save(entity_type, entity_id, counters, self.clock())
        except SOURCE_ERRORS as e:
            record_recalculation(entity_type.value, mode, "failure", time.perf_counter() - start_time)
            logger.error(
                f"Error calculating {entity_type.value} analytics for {entity_id}: {e}",
                extra={"entity_type": entity_type.value, "entity_id": entity_id},
            )
            raise AnalyticsUnavailableError(entity_type.value, entity_id, reason=type(e).__name__) from e

        record_recalculation(entity_type.value, mode, "success", time.perf_counter() - start_time)
        return record

    async def _views_of(self, resource_type: ResourceType, resource_id: str) -> int:
        return await self.view_store.count_views(ViewFilter(resource_type=resource_type, resource_id=resource_id))

    async def _user_counters(self, user_id: str) -> dict[str, Any]:
        return {
            "views_count": await self._views_of(ResourceType.PROFILE, user_id),
            "followers_count": await self.interactions.count_followers(user_id),
            "following_count": await self.interactions.count_following(user_id),
            "posts_count": await self.interactions.count_posts(user_id),
            "videos_count": await self.interactions.count_videos(user_id),
            "comments_count": await self.interactions.count_comments_by_user(user_id),
            "likes_received_count": await self.interactions.count_likes_received(user_id),
            "shares_received_count": await self.interactions.count_shares_received(user_id),
        }

    async def _post_counters(self, post_id: str) -> dict[str, Any]:
        post = ResourceType.POST
        views = await self._views_of(post, post_id)
        likes = await self.interactions.count_likes(post, post_id)
        comments = await self.interactions.count_comments(post, post_id)
        shares = await self.interactions.count_shares(post, post_id)
        reactions = await self.interactions.count_reactions(post_id)
        total_engagements = likes + comments + shares + reactions

        return {
            "views_count": views,
            "likes_count": likes,
            "comments_count": comments,
            "shares_count": shares,
            "bookmarks_count": await self.interactions.count_bookmarks(post_id),
            "reports_count": await self.interactions.count_reports(post_id),
            "reactions_count": reactions,
            "total_engagements": total_engagements,
            "engagement_rate": engagement_rate(total_engagements, views),
        }

    async def _video_counters(self, video_id: str) -> dict[str, Any]:
        video = ResourceType.VIDEO
        views = await self._views_of(video, video_id)
        # Watch sessions are not recorded yet
        total_watch_time = 0

        return {
            "views_count": views,
            "likes_count": await self.interactions.count_likes(video, video_id),
            "comments_count": await self.interactions.count_comments(video, video_id),
            "shares_count": await self.interactions.count_shares(video, video_id),
            "total_watch_time": total_watch_time,
            "average_watch_time": average_watch_time(total_watch_time, views),
            "completion_rate": 0.0,
        }

    async def _photo_counters(self, photo_id: str) -> dict[str, Any]:
        photo = ResourceType.PHOTO
        return {
            "views_count": await self._views_of(photo, photo_id),
            "likes_count": await self.interactions.count_likes(photo, photo_id),
            "comments_count": await self.interactions.count_comments(photo, photo_id),
            "shares_count": await self.interactions.count_shares(photo, photo_id),
        }

    # =========================================================================
    # Cached reads
    # =========================================================================

    def is_stale(self, record: Any) -> bool:
        if record.last_calculated_at is None:
            return True
        return self.clock() - record.last_calculated_at >= self.stale_ttl

    async def get_or_refresh(
        self,
        entity_type: EntityType | str,
        entity_id: str,
        force_recalculate: bool = False,
    ) -> Any:
        """
        Return an entity's aggregate, computing it if needed.

        Without a stored aggregate, or when forced, the caller waits for a
        full calculation. A stale aggregate is returned immediately and a
        background recalculation is scheduled, unless one is already running.
        A stored aggregate of content deleted since is not served.
        """
        entity_type = parse_entity_type(entity_type)

        if not force_recalculate:
            try:
                cached = await self.aggregate_store.get(entity_type, entity_id)
                if cached is not None and not await self.directory.exists(entity_type, entity_id):
                    raise EntityNotFoundError(entity_type.value, entity_id)
            except SOURCE_ERRORS as e:
                logger.error(f"Error reading {entity_type.value} analytics for {entity_id}: {e}")
                raise AnalyticsUnavailableError(entity_type.value, entity_id, reason=type(e).__name__) from e

            if cached is not None:
                if self.is_stale(cached):
                    self.schedule_recalculation(entity_type, entity_id, follow_up=False)
                return cached

        return await self._calculate(entity_type, entity_id, mode="sync")

    async def calculate_user_analytics(self, user_id: str) -> Any:
        return await self.calculate(EntityType.USER, user_id)

    async def calculate_post_analytics(self, post_id: str) -> Any:
        return await self.calculate(EntityType.POST, post_id)

    async def calculate_video_analytics(self, video_id: str) -> Any:
        return await self.calculate(EntityType.VIDEO, video_id)

    async def calculate_photo_analytics(self, photo_id: str) -> Any:
        return await self.calculate(EntityType.PHOTO, photo_id)

    async def get_user_analytics(self, user_id: str, force_recalculate: bool = False) -> Any:
        return await self.get_or_refresh(EntityType.USER, user_id, force_recalculate)

    async def get_post_analytics(self, post_id: str, force_recalculate: bool = False) -> Any:
        return await self.get_or_refresh(EntityType.POST, post_id, force_recalculate)

    async def get_video_analytics(self, video_id: str, force_recalculate: bool = False) -> Any:
        return await self.get_or_refresh(EntityType.VIDEO, video_id, force_recalculate)

    async def get_photo_analytics(self, photo_id: str, force_recalculate: bool = False) -> Any:
        return await self.get_or_refresh(EntityType.PHOTO, photo_id, force_recalculate)

    # =========================================================================
    # Recalculation triggers
    # =========================================================================

    def schedule_recalculation(
        self,
        entity_type: EntityType | str,
        entity_id: str,
        follow_up: bool = True,
    ) -> bool:
        """
        Queue a background recalculation.

        Returns False when one is already running for the entity. With
        `follow_up`, another run is queued to start after it, picking up
        whatever changed meanwhile; otherwise the running one suffices.
        """
        entity_type = parse_entity_type(entity_type)
        return self.runner.submit(
            ("recalculate", entity_type, entity_id),
            lambda: self._recalculate_in_background(entity_type, entity_id),
            description=f"recalculate {entity_type.value} {entity_id}",
            follow_up=follow_up,
        )

    async def _recalculate_in_background(self, entity_type: EntityType, entity_id: str) -> None:
        try:
            await self._calculate(entity_type, entity_id, mode="background")
        except EntityNotFoundError:
            logger.warning(
                f"Skipped background recalculation of missing {entity_type.value} {entity_id}",
                extra={"entity_type": entity_type.value, "entity_id": entity_id},
            )

    def notify_interaction(
        self,
        resource_type: ResourceType | str,
        resource_id: str,
        owner_user_id: str | None = None,
    ) -> None:
        """
        Schedule recalculation after a view, like, comment, share or unshare.

        Recomputes the resource's own aggregate and, for content, the owner's
        user aggregate. When the owner is not known, it is looked up in the
        background.
        """
        resource_type = parse_resource_type(resource_type)
        entity_type = RESOURCE_TO_ENTITY[resource_type]
        self.schedule_recalculation(entity_type, resource_id)

        if resource_type == ResourceType.PROFILE:
            return

        if owner_user_id is not None:
            self.schedule_recalculation(EntityType.USER, owner_user_id)
            return

        self.runner.submit(
            ("owner", resource_type, resource_id),
            lambda: self._recalculate_owner(resource_type, resource_id),
            description=f"recalculate owner of {resource_type.value} {resource_id}",
        )

    async def _recalculate_owner(self, resource_type: ResourceType, resource_id: str) -> None:
        owner_user_id = await self.directory.owner_of(resource_type, resource_id)
        if owner_user_id is None:
            logger.debug(f"No owner found for {resource_type.value} {resource_id}")
            return
        self.schedule_recalculation(EntityType.USER, owner_user_id)

    # =========================================================================
    # View reports
    # =========================================================================

    def _since(self, days: int) -> datetime:
        return self.clock() - timedelta(days=days)

    @staticmethod
    def _countries(rows) -> list[dict[str, Any]]:
        return [
            {"country_code": row.country_code, "country_name": row.country_name, "count": row.count} for row in rows
        ]

    @staticmethod
    def _days(rows) -> list[dict[str, Any]]:
        return [{"date": row.date, "count": row.count} for row in rows]

    async def get_geographic_analytics(
        self,
        user_id: str,
        resource_type: ResourceType | str = ResourceType.PROFILE,
    ) -> dict[str, Any]:
        """
        Top countries viewing a user's resources of one type.

        Returns:
            Dict with total_views and up to 20 top_countries; empty on
            storage failure
        """
        resource_type = parse_resource_type(resource_type)
        view_filter = ViewFilter(resource_type=resource_type, owner_user_id=user_id)
        try:
            total_views = await self.view_store.count_views(view_filter)
            top_countries = await self.view_store.top_countries(view_filter, TOP_COUNTRIES_LIMIT)
        except SOURCE_ERRORS as e:
            logger.error(f"Error getting geographic analytics for user {user_id}: {e}")
            return {"resource_type": resource_type.value, "total_views": 0, "top_countries": []}

        return {
            "resource_type": resource_type.value,
            "total_views": total_views,
            "top_countries": self._countries(top_countries),
        }

    async def get_aggregate_analytics(self, user_id: str) -> dict[str, Any]:
        """
        Views of everything a user owns.

        Returns:
            Dict with total_views, views_by_type, top_countries and
            views_over_time (last 30 days); zeros on storage failure
        """
        view_filter = ViewFilter(owner_user_id=user_id)
        views_by_type = {resource_type.value: 0 for resource_type in ResourceType}
        try:
            total_views = await self.view_store.count_views(view_filter)
            views_by_type.update(await self.view_store.count_views_by_resource_type(user_id))
            top_countries = await self.view_store.top_countries(view_filter, TOP_COUNTRIES_LIMIT)
            views_over_time = await self.view_store.views_per_day(view_filter, self._since(VIEWS_OVER_TIME_DAYS))
        except SOURCE_ERRORS as e:
            logger.error(f"Error getting aggregate analytics for user {user_id}: {e}")
            return {
                "total_views": 0,
                "views_by_type": {resource_type.value: 0 for resource_type in ResourceType},
                "top_countries": [],
                "views_over_time": [],
            }

        return {
            "total_views": total_views,
            "views_by_type": views_by_type,
            "top_countries": self._countries(top_countries),
            "views_over_time": self._days(views_over_time),
        }

    async def get_resource_analytics(self, resource_type: ResourceType | str, resource_id: str) -> dict[str, Any]:
        """
        Views of a single resource: total, top 10 countries and views per day
        for the last 30 days. Zeros on storage failure.
        """
        resource_type = parse_resource_type(resource_type)
        view_filter = ViewFilter(resource_type=resource_type, resource_id=resource_id)
        try:
            total_views = await self.view_store.count_views(view_filter)
            top_countries = await self.view_store.top_countries(view_filter, RESOURCE_TOP_COUNTRIES_LIMIT)
            views_over_time = await self.view_store.views_per_day(view_filter, self._since(VIEWS_OVER_TIME_DAYS))
        except SOURCE_ERRORS as e:
            logger.error(f"Error getting analytics for {resource_type.value} {resource_id}: {e}")
            return {
                "resource_type": resource_type.value,
                "resource_id": resource_id,
                "total_views": 0,
                "top_countries": [],
                "views_over_time": [],
            }

        return {
            "resource_type": resource_type.value,
            "resource_id": resource_id,
            "total_views": total_views,
            "top_countries": self._countries(top_countries),
            "views_over_time": self._days(views_over_time),
        }

    async def owner_of(self, resource_type: ResourceType | str, resource_id: str) -> str | None:
        """Owner of an existing resource, or None when it does not exist."""
        return await self.directory.owner_of(parse_resource_type(resource_type), resource_id)
