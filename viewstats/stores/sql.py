"""
SQLAlchemy Stores

Every operation opens its own short-lived session from the session factory,
so background recalculations never share a request's session.
"""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import and_, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.future import select

from viewstats.constants import EntityType, ResourceType
from viewstats.exceptions import DatabaseError
from viewstats.models.analytics import ANALYTICS_MODELS
from viewstats.models.social import (
    Bookmark,
    Comment,
    Follow,
    Like,
    Photo,
    Post,
    Reaction,
    Report,
    Share,
    User,
    Video,
)
from viewstats.models.view_record import ViewRecord
from viewstats.stores.base import (
    AggregateStore,
    CountryCount,
    DailyCount,
    InteractionSource,
    ResourceDirectory,
    ViewFilter,
    ViewStore,
)

logger = logging.getLogger(__name__)


def _value(enum_or_str) -> str:
    return getattr(enum_or_str, "value", enum_or_str)


class _SessionScoped:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def _scalar_count(self, statement) -> int:
        async with self._session_factory() as db:
            result = await db.execute(statement)
            return int(result.scalar() or 0)


class SqlViewStore(_SessionScoped, ViewStore):
    @staticmethod
    def _conditions(view_filter: ViewFilter) -> list:
        conditions = []
        if view_filter.resource_type is not None:
            conditions.append(ViewRecord.resource_type == _value(view_filter.resource_type))
        if view_filter.resource_id is not None:
            conditions.append(ViewRecord.resource_id == view_filter.resource_id)
        if view_filter.owner_user_id is not None:
            conditions.append(ViewRecord.owner_user_id == view_filter.owner_user_id)
        return conditions

    async def has_recent_view(
        self,
        resource_type,
        resource_id: str,
        since: datetime,
        viewer_user_id: str | None = None,
        ip_address: str | None = None,
    ) -> bool:
        conditions = [
            ViewRecord.resource_type == _value(resource_type),
            ViewRecord.resource_id == resource_id,
            ViewRecord.created_at >= since,
        ]
        if viewer_user_id:
            conditions.append(ViewRecord.viewer_user_id == viewer_user_id)
        elif ip_address:
            conditions.append(ViewRecord.ip_address == ip_address)
        else:
            return False

        count = await self._scalar_count(select(func.count(ViewRecord.id)).where(and_(*conditions)))
        return count > 0

    async def add(self, record: ViewRecord) -> ViewRecord:
        async with self._session_factory() as db:
            db.add(record)
            await db.commit()
            return record

    async def count_views(self, view_filter: ViewFilter) -> int:
        statement = select(func.count(ViewRecord.id))
        conditions = self._conditions(view_filter)
        if conditions:
            statement = statement.where(and_(*conditions))
        return await self._scalar_count(statement)

    async def count_views_by_resource_type(self, owner_user_id: str) -> dict[str, int]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(ViewRecord.resource_type, func.count(ViewRecord.id))
                .where(ViewRecord.owner_user_id == owner_user_id)
                .group_by(ViewRecord.resource_type)
            )
            return {resource_type: int(count) for resource_type, count in result.all()}

    async def top_countries(self, view_filter: ViewFilter, limit: int) -> list[CountryCount]:
        conditions = self._conditions(view_filter) + [ViewRecord.country_code.is_not(None)]
        async with self._session_factory() as db:
            result = await db.execute(
                select(
                    ViewRecord.country_code,
                    ViewRecord.country_name,
                    func.count(ViewRecord.id).label("count"),
                )
                .where(and_(*conditions))
                .group_by(ViewRecord.country_code, ViewRecord.country_name)
                .order_by(func.count(ViewRecord.id).desc())
                .limit(limit)
            )
            return [
                CountryCount(country_code=code, country_name=name or code, count=int(count))
                for code, name, count in result.all()
            ]

    async def views_per_day(self, view_filter: ViewFilter, since: datetime) -> list[DailyCount]:
        conditions = self._conditions(view_filter) + [ViewRecord.created_at >= since]
        day = func.date(ViewRecord.created_at)
        async with self._session_factory() as db:
            result = await db.execute(
                select(day.label("date"), func.count(ViewRecord.id).label("count"))
                .where(and_(*conditions))
                .group_by(day)
                .order_by(day)
            )
            return [DailyCount(date=str(date), count=int(count)) for date, count in result.all()]


class SqlAggregateStore(_SessionScoped, AggregateStore):
    async def get(self, entity_type: EntityType, entity_id: str) -> Any | None:
        model = ANALYTICS_MODELS[entity_type]
        async with self._session_factory() as db:
            result = await db.execute(select(model).where(getattr(model, model.entity_key) == entity_id))
            return result.scalars().first()

    async def save(
        self,
        entity_type: EntityType,
        entity_id: str,
        counters: dict[str, Any],
        calculated_at: datetime,
    ) -> Any:
        model = ANALYTICS_MODELS[entity_type]
        key_column = getattr(model, model.entity_key)

        async with self._session_factory() as db:
            result = await db.execute(select(model).where(key_column == entity_id))
            row = result.scalars().first()
            if row is None:
                row = model(**{model.entity_key: entity_id})
                db.add(row)
            self._apply(row, counters, calculated_at)

            try:
                await db.commit()
            except IntegrityError as e:
                # A concurrent recalculation inserted the row first; overwrite it
                await db.rollback()
                result = await db.execute(select(model).where(key_column == entity_id))
                row = result.scalars().first()
                if row is None:
                    # Not a duplicate key: the entity row itself is gone
                    raise DatabaseError(
                        f"Could not save {_value(entity_type)} analytics for {entity_id}: {e.orig}",
                        operation="save_aggregate",
                    ) from e
                logger.debug(f"Aggregate row for {_value(entity_type)} {entity_id} created concurrently, updating")
                self._apply(row, counters, calculated_at)
                await db.commit()

            return row

    @staticmethod
    def _apply(row, counters: dict[str, Any], calculated_at: datetime) -> None:
        for field_name, value in counters.items():
            setattr(row, field_name, value)
        previous = row.last_calculated_at
        if previous is None or calculated_at > previous:
            row.last_calculated_at = calculated_at


class SqlInteractionSource(_SessionScoped, InteractionSource):
    async def count_likes(self, resource_type: str, resource_id: str) -> int:
        return await self._scalar_count(
            select(func.count(Like.id)).where(
                and_(Like.resource_type == _value(resource_type), Like.resource_id == resource_id)
            )
        )

    async def count_comments(self, resource_type: str, resource_id: str) -> int:
        return await self._scalar_count(
            select(func.count(Comment.id)).where(
                and_(
                    Comment.resource_type == _value(resource_type),
                    Comment.resource_id == resource_id,
                    Comment.deleted_at.is_(None),
                )
            )
        )

    async def count_shares(self, resource_type: str, resource_id: str) -> int:
        return await self._scalar_count(
            select(func.count(Share.id)).where(
                and_(Share.resource_type == _value(resource_type), Share.resource_id == resource_id)
            )
        )

    async def count_bookmarks(self, post_id: str) -> int:
        return await self._scalar_count(select(func.count(Bookmark.id)).where(Bookmark.post_id == post_id))

    async def count_reports(self, post_id: str) -> int:
        return await self._scalar_count(select(func.count(Report.id)).where(Report.post_id == post_id))

    async def count_reactions(self, post_id: str) -> int:
        return await self._scalar_count(select(func.count(Reaction.id)).where(Reaction.post_id == post_id))

    async def count_followers(self, user_id: str) -> int:
        return await self._scalar_count(select(func.count(Follow.id)).where(Follow.following_id == user_id))

    async def count_following(self, user_id: str) -> int:
        return await self._scalar_count(select(func.count(Follow.id)).where(Follow.follower_id == user_id))

    async def count_posts(self, user_id: str) -> int:
        return await self._scalar_count(
            select(func.count(Post.id)).where(and_(Post.user_id == user_id, Post.deleted_at.is_(None)))
        )

    async def count_videos(self, user_id: str) -> int:
        return await self._scalar_count(
            select(func.count(Video.id)).where(and_(Video.user_id == user_id, Video.deleted_at.is_(None)))
        )

    async def count_comments_by_user(self, user_id: str) -> int:
        return await self._scalar_count(
            select(func.count(Comment.id)).where(and_(Comment.user_id == user_id, Comment.deleted_at.is_(None)))
        )

    async def count_likes_received(self, user_id: str) -> int:
        return await self._scalar_count(
            select(func.count(Like.id))
            .select_from(Like)
            .join(Post, Post.id == Like.resource_id)
            .where(and_(Post.user_id == user_id, Like.resource_type == ResourceType.POST.value))
        )

    async def count_shares_received(self, user_id: str) -> int:
        return await self._scalar_count(
            select(func.count(Share.id))
            .select_from(Share)
            .join(Post, Post.id == Share.resource_id)
            .where(and_(Post.user_id == user_id, Share.resource_type == ResourceType.POST.value))
        )


_CONTENT_MODELS = {
    ResourceType.POST: Post,
    ResourceType.VIDEO: Video,
    ResourceType.PHOTO: Photo,
}


class SqlResourceDirectory(_SessionScoped, ResourceDirectory):
    async def exists(self, entity_type: EntityType, entity_id: str) -> bool:
        if entity_type == EntityType.USER:
            return await self._scalar_count(select(func.count(User.id)).where(User.id == entity_id)) > 0
        return await self.owner_of(ResourceType(entity_type.value), entity_id) is not None

    async def owner_of(self, resource_type: ResourceType, resource_id: str) -> str | None:
        if resource_type == ResourceType.PROFILE:
            found = await self._scalar_count(select(func.count(User.id)).where(User.id == resource_id))
            return resource_id if found else None

        model = _CONTENT_MODELS[resource_type]
        async with self._session_factory() as db:
            result = await db.execute(
                select(model.user_id).where(and_(model.id == resource_id, model.deleted_at.is_(None)))
            )
            return result.scalar()
