"""
Tests for aggregate analytics calculation, caching and view reports.
"""

import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from viewstats.constants import EntityType, ResourceType
from viewstats.exceptions import (
    AnalyticsUnavailableError,
    DatabaseError,
    EntityNotFoundError,
    UnsupportedResourceTypeError,
)
from viewstats.services.analytics_service import average_watch_time, engagement_rate
from viewstats.services.request_context import RequestContext
from viewstats.stores.sql import SqlAggregateStore

from utils.mock_utils import (
    create_test_bookmark,
    create_test_comment,
    create_test_follow,
    create_test_likes,
    create_test_photo,
    create_test_post,
    create_test_reaction,
    create_test_report,
    create_test_share,
    create_test_user,
    create_test_video,
    create_test_view,
)
from utils.mocks import FailingViewStore


def enable_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class TestRateHelpers:
    def test_engagement_rate(self):
        assert engagement_rate(3, 1) == 300.0
        assert engagement_rate(1, 3) == 33.33

    def test_engagement_rate_without_views(self):
        assert engagement_rate(5, 0) == 0.0

    def test_average_watch_time_without_views(self):
        assert average_watch_time(120, 0) == 0.0


class TestPostAnalytics:
    """Tests for post aggregate calculation."""

    @pytest.mark.asyncio
    async def test_counts_all_interactions(self, analytics_service, clock, test_db, test_user, test_viewer):
        post = await create_test_post(test_db, test_user.id)
        for ip in ("8.8.8.8", "81.2.69.160"):
            await create_test_view(test_db, ResourceType.POST, post.id, test_user.id, clock.now, ip_address=ip)
        await create_test_likes(test_db, test_viewer.id, ResourceType.POST, post.id, count=2)
        await create_test_comment(test_db, test_viewer.id, ResourceType.POST, post.id)
        await create_test_comment(test_db, test_viewer.id, ResourceType.POST, post.id, deleted=True)
        await create_test_share(test_db, test_viewer.id, ResourceType.POST, post.id)
        await create_test_bookmark(test_db, test_viewer.id, post.id)
        await create_test_report(test_db, test_viewer.id, post.id)
        await create_test_reaction(test_db, test_viewer.id, post.id)

        analytics = await analytics_service.calculate_post_analytics(post.id)

        assert analytics.post_id == post.id
        assert analytics.views_count == 2
        assert analytics.likes_count == 2
        assert analytics.comments_count == 1
        assert analytics.shares_count == 1
        assert analytics.bookmarks_count == 1
        assert analytics.reports_count == 1
        assert analytics.reactions_count == 1
        assert analytics.total_engagements == 5
        assert analytics.engagement_rate == 250.0
        assert analytics.last_calculated_at == clock.now

    @pytest.mark.asyncio
    async def test_zero_views_has_zero_rate(self, analytics_service, test_db, test_user, test_viewer):
        post = await create_test_post(test_db, test_user.id)
        await create_test_likes(test_db, test_viewer.id, ResourceType.POST, post.id, count=4)

        analytics = await analytics_service.calculate_post_analytics(post.id)

        assert analytics.views_count == 0
        assert analytics.total_engagements == 4
        assert analytics.engagement_rate == 0.0

    @pytest.mark.asyncio
    async def test_interactions_on_other_resources_are_ignored(self, analytics_service, test_db, test_user):
        post = await create_test_post(test_db, test_user.id)
        other = await create_test_post(test_db, test_user.id)
        await create_test_likes(test_db, test_user.id, ResourceType.POST, other.id, count=3)
        # Same id, different resource type
        await create_test_likes(test_db, test_user.id, ResourceType.VIDEO, post.id)

        analytics = await analytics_service.calculate_post_analytics(post.id)

        assert analytics.likes_count == 0

    @pytest.mark.asyncio
    async def test_end_to_end_view_and_likes(self, analytics_service, tracker, runner, clock, test_db, test_user):
        post = await create_test_post(test_db, test_user.id)

        before = await analytics_service.get_post_analytics(post.id)
        assert before.views_count == 0
        assert before.likes_count == 0
        assert before.engagement_rate == 0.0
        first_calculated_at = before.last_calculated_at

        clock.advance(minutes=5)
        result = await tracker.track_post_view(post.id, test_user.id, RequestContext(remote_addr="8.8.8.8"))
        assert result.tracked is True
        await create_test_likes(test_db, test_user.id, ResourceType.POST, post.id, count=3)

        analytics_service.notify_interaction(ResourceType.POST, post.id, test_user.id)
        await runner.drain()

        after = await analytics_service.get_post_analytics(post.id)
        assert after.views_count == 1
        assert after.likes_count == 3
        assert after.total_engagements == 3
        assert after.engagement_rate == 300.0
        assert after.last_calculated_at > first_calculated_at


class TestUserAnalytics:
    @pytest.mark.asyncio
    async def test_counts(self, analytics_service, clock, test_db, test_user, test_viewer):
        third = await create_test_user(test_db, "third")
        await create_test_follow(test_db, test_viewer.id, test_user.id)
        await create_test_follow(test_db, third.id, test_user.id)
        await create_test_follow(test_db, test_user.id, third.id)

        post = await create_test_post(test_db, test_user.id)
        await create_test_post(test_db, test_user.id, deleted=True)
        await create_test_video(test_db, test_user.id)
        await create_test_video(test_db, test_user.id, deleted=True)

        await create_test_comment(test_db, test_user.id, ResourceType.POST, post.id)
        await create_test_comment(test_db, test_user.id, ResourceType.POST, post.id, deleted=True)
        await create_test_likes(test_db, test_viewer.id, ResourceType.POST, post.id, count=2)
        await create_test_share(test_db, test_viewer.id, ResourceType.POST, post.id)
        # Likes on someone else's post are not received by the user
        other_post = await create_test_post(test_db, third.id)
        await create_test_likes(test_db, test_user.id, ResourceType.POST, other_post.id)

        await create_test_view(test_db, ResourceType.PROFILE, test_user.id, test_user.id, clock.now)
        await create_test_view(test_db, ResourceType.POST, post.id, test_user.id, clock.now, ip_address="8.8.8.8")

        analytics = await analytics_service.calculate_user_analytics(test_user.id)

        assert analytics.user_id == test_user.id
        assert analytics.views_count == 1
        assert analytics.followers_count == 2
        assert analytics.following_count == 1
        assert analytics.posts_count == 1
        assert analytics.videos_count == 1
        assert analytics.comments_count == 1
        assert analytics.likes_received_count == 2
        assert analytics.shares_received_count == 1


class TestVideoAndPhotoAnalytics:
    @pytest.mark.asyncio
    async def test_video(self, analytics_service, clock, test_db, test_user, test_viewer):
        video = await create_test_video(test_db, test_user.id)
        await create_test_view(test_db, ResourceType.VIDEO, video.id, test_user.id, clock.now, ip_address="8.8.8.8")
        await create_test_likes(test_db, test_viewer.id, ResourceType.VIDEO, video.id)
        await create_test_comment(test_db, test_viewer.id, ResourceType.VIDEO, video.id)
        await create_test_comment(test_db, test_viewer.id, ResourceType.VIDEO, video.id, deleted=True)
        await create_test_share(test_db, test_viewer.id, ResourceType.VIDEO, video.id)

        analytics = await analytics_service.calculate_video_analytics(video.id)

        assert analytics.views_count == 1
        assert analytics.likes_count == 1
        assert analytics.comments_count == 1
        assert analytics.shares_count == 1
        assert analytics.total_watch_time == 0
        assert analytics.average_watch_time == 0.0
        assert analytics.completion_rate == 0.0

    @pytest.mark.asyncio
    async def test_photo(self, analytics_service, test_db, test_user, test_viewer):
        photo = await create_test_photo(test_db, test_user.id)
        await create_test_likes(test_db, test_viewer.id, ResourceType.PHOTO, photo.id, count=3)
        await create_test_share(test_db, test_viewer.id, ResourceType.PHOTO, photo.id)

        analytics = await analytics_service.get_photo_analytics(photo.id)

        assert analytics.photo_id == photo.id
        assert analytics.views_count == 0
        assert analytics.likes_count == 3
        assert analytics.comments_count == 0
        assert analytics.shares_count == 1


class TestMissingEntities:
    """Unknown entities are errors, distinct from zero aggregates."""

    @pytest.mark.asyncio
    async def test_unknown_post(self, analytics_service):
        with pytest.raises(EntityNotFoundError) as exc_info:
            await analytics_service.get_post_analytics("does-not-exist")

        assert exc_info.value.status_code == 404
        assert exc_info.value.details == {"resource_type": "post", "resource_id": "does-not-exist"}

    @pytest.mark.asyncio
    async def test_soft_deleted_post(self, analytics_service, test_db, test_user):
        post = await create_test_post(test_db, test_user.id, deleted=True)

        with pytest.raises(EntityNotFoundError):
            await analytics_service.calculate(EntityType.POST, post.id)

    @pytest.mark.asyncio
    async def test_cached_aggregate_of_deleted_post(self, analytics_service, clock, test_db, test_user):
        post = await create_test_post(test_db, test_user.id)
        await analytics_service.get_post_analytics(post.id)

        post.deleted_at = clock.now
        await test_db.commit()

        with pytest.raises(EntityNotFoundError):
            await analytics_service.get_post_analytics(post.id)

    @pytest.mark.asyncio
    async def test_unknown_user(self, analytics_service):
        with pytest.raises(EntityNotFoundError):
            await analytics_service.get_user_analytics("nobody")

    @pytest.mark.asyncio
    async def test_unsupported_entity_type(self, analytics_service):
        with pytest.raises(UnsupportedResourceTypeError) as exc_info:
            await analytics_service.get_or_refresh("story", "1")

        assert exc_info.value.status_code == 404


class TestStaleness:
    """Tests for the cache-with-staleness-refresh policy."""

    @pytest.mark.asyncio
    async def test_reads_within_ttl_share_timestamp(self, analytics_service, runner, clock, test_db, test_user):
        post = await create_test_post(test_db, test_user.id)
        first = await analytics_service.get_post_analytics(post.id)

        clock.advance(minutes=30)
        second = await analytics_service.get_post_analytics(post.id)

        assert second.last_calculated_at == first.last_calculated_at
        assert runner.pending == 0

    @pytest.mark.asyncio
    async def test_stale_read_returns_cached_and_refreshes(
        self, analytics_service, aggregate_store, runner, clock, test_db, test_user, test_viewer
    ):
        post = await create_test_post(test_db, test_user.id)
        first = await analytics_service.get_post_analytics(post.id)
        await create_test_likes(test_db, test_viewer.id, ResourceType.POST, post.id)

        clock.advance(hours=1, seconds=1)
        stale = await analytics_service.get_post_analytics(post.id)

        assert stale.last_calculated_at == first.last_calculated_at
        assert stale.likes_count == 0
        assert runner.pending == 1

        await runner.drain()
        refreshed = await aggregate_store.get(EntityType.POST, post.id)
        assert refreshed.last_calculated_at == clock.now
        assert refreshed.last_calculated_at > first.last_calculated_at
        assert refreshed.likes_count == 1

    @pytest.mark.asyncio
    async def test_repeated_stale_reads_are_coalesced(self, analytics_service, runner, clock, test_db, test_user):
        post = await create_test_post(test_db, test_user.id)
        await analytics_service.get_post_analytics(post.id)

        clock.advance(hours=2)
        await analytics_service.get_post_analytics(post.id)
        await analytics_service.get_post_analytics(post.id)

        assert runner.pending == 1
        await runner.drain()

    @pytest.mark.asyncio
    async def test_stale_reads_during_refresh_queue_no_follow_up(
        self, analytics_service, runner, clock, test_db, test_user
    ):
        post = await create_test_post(test_db, test_user.id)
        await analytics_service.get_post_analytics(post.id)
        clock.advance(hours=2)

        release = asyncio.Event()
        calculations = []
        calculate = analytics_service._calculate

        async def held_calculate(*args, **kwargs):
            calculations.append(args)
            await release.wait()
            return await calculate(*args, **kwargs)

        analytics_service._calculate = held_calculate
        for _ in range(3):
            await analytics_service.get_post_analytics(post.id)

        release.set()
        await runner.drain()

        assert len(calculations) == 1

    @pytest.mark.asyncio
    async def test_interaction_during_refresh_queues_follow_up(
        self, analytics_service, runner, clock, test_db, test_user
    ):
        post = await create_test_post(test_db, test_user.id)
        await analytics_service.get_post_analytics(post.id)
        clock.advance(hours=2)

        release = asyncio.Event()
        calculations = []
        calculate = analytics_service._calculate

        async def held_calculate(*args, **kwargs):
            calculations.append(args)
            await release.wait()
            return await calculate(*args, **kwargs)

        analytics_service._calculate = held_calculate
        await analytics_service.get_post_analytics(post.id)
        analytics_service.schedule_recalculation(EntityType.POST, post.id)

        release.set()
        await runner.drain()

        assert len(calculations) == 2

    @pytest.mark.asyncio
    async def test_force_recalculate(self, analytics_service, clock, test_db, test_user, test_viewer):
        post = await create_test_post(test_db, test_user.id)
        first = await analytics_service.get_post_analytics(post.id)
        await create_test_likes(test_db, test_viewer.id, ResourceType.POST, post.id, count=2)

        clock.advance(minutes=1)
        forced = await analytics_service.get_post_analytics(post.id, force_recalculate=True)

        assert forced.likes_count == 2
        assert forced.last_calculated_at > first.last_calculated_at

    @pytest.mark.asyncio
    async def test_background_failure_is_swallowed(
        self, analytics_service, aggregate_store, runner, clock, test_db, test_user
    ):
        post = await create_test_post(test_db, test_user.id)
        first = await analytics_service.get_post_analytics(post.id)

        analytics_service.view_store = FailingViewStore()
        clock.advance(hours=3)
        stale = await analytics_service.get_post_analytics(post.id)
        await runner.drain()

        assert stale.last_calculated_at == first.last_calculated_at
        stored = await aggregate_store.get(EntityType.POST, post.id)
        assert stored.last_calculated_at == first.last_calculated_at

    @pytest.mark.asyncio
    async def test_synchronous_failure_is_unavailable(self, analytics_service, test_db, test_user):
        post = await create_test_post(test_db, test_user.id)
        analytics_service.view_store = FailingViewStore()

        with pytest.raises(AnalyticsUnavailableError) as exc_info:
            await analytics_service.get_post_analytics(post.id)

        assert exc_info.value.status_code == 503
        assert exc_info.value.details["retryable"] is True
        assert exc_info.value.details["entity_type"] == "post"


class TestAggregateStore:
    @pytest.mark.asyncio
    async def test_last_calculated_at_never_moves_backwards(self, aggregate_store, clock, test_db, test_user):
        post = await create_test_post(test_db, test_user.id)
        later = clock.now
        earlier = later - timedelta(minutes=10)

        await aggregate_store.save(EntityType.POST, post.id, {"likes_count": 1}, later)
        row = await aggregate_store.save(EntityType.POST, post.id, {"likes_count": 2}, earlier)

        assert row.likes_count == 2
        assert row.last_calculated_at == later

    @pytest.mark.asyncio
    async def test_one_row_per_entity(self, aggregate_store, clock, test_db, test_user):
        post = await create_test_post(test_db, test_user.id)

        first = await aggregate_store.save(EntityType.POST, post.id, {"views_count": 1}, clock.now)
        second = await aggregate_store.save(EntityType.POST, post.id, {"views_count": 2}, clock.advance(minutes=1))

        assert first.id == second.id
        stored = await aggregate_store.get(EntityType.POST, post.id)
        assert stored.views_count == 2

    @pytest.mark.asyncio
    async def test_save_for_missing_entity_is_database_error(self, test_engine, clock):
        # Pooled connections predate the listener
        await test_engine.dispose()
        event.listen(test_engine.sync_engine, "connect", enable_foreign_keys)
        store = SqlAggregateStore(async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False))

        with pytest.raises(DatabaseError) as exc_info:
            await store.save(EntityType.POST, "no-such-post", {"views_count": 1}, clock.now)

        assert exc_info.value.details == {"operation": "save_aggregate"}
        assert await store.get(EntityType.POST, "no-such-post") is None


class TestRecalculationTriggers:
    @pytest.mark.asyncio
    async def test_notify_interaction_refreshes_entity_and_owner(
        self, analytics_service, aggregate_store, runner, test_db, test_user
    ):
        post = await create_test_post(test_db, test_user.id)

        analytics_service.notify_interaction(ResourceType.POST, post.id)
        await runner.drain()

        assert await aggregate_store.get(EntityType.POST, post.id) is not None
        owner = await aggregate_store.get(EntityType.USER, test_user.id)
        assert owner is not None
        assert owner.posts_count == 1

    @pytest.mark.asyncio
    async def test_notify_profile_view(self, analytics_service, aggregate_store, runner, test_user):
        analytics_service.notify_interaction("profile", test_user.id, test_user.id)
        await runner.drain()

        assert (await aggregate_store.get(EntityType.USER, test_user.id)) is not None

    @pytest.mark.asyncio
    async def test_notify_missing_resource_is_logged_only(self, analytics_service, aggregate_store, runner):
        analytics_service.notify_interaction(ResourceType.VIDEO, "gone")
        await runner.drain()

        assert await aggregate_store.get(EntityType.VIDEO, "gone") is None

    @pytest.mark.asyncio
    async def test_schedule_recalculation(self, analytics_service, aggregate_store, runner, test_db, test_user):
        photo = await create_test_photo(test_db, test_user.id)

        assert analytics_service.schedule_recalculation("photo", photo.id) is True
        await runner.drain()

        assert (await aggregate_store.get(EntityType.PHOTO, photo.id)) is not None


class TestViewReports:
    """Tests for geographic, aggregate and per-resource view reports."""

    async def _seed_views(self, db, clock, owner, post):
        us = ("US", "United States")
        gb = ("GB", "United Kingdom")
        views = [
            (ResourceType.PROFILE, owner.id, 0, "8.8.8.8", us),
            (ResourceType.PROFILE, owner.id, 1, "81.2.69.160", gb),
            (ResourceType.PROFILE, owner.id, 1, "2.125.160.216", gb),
            (ResourceType.PROFILE, owner.id, 0, "10.0.0.1", (None, None)),
            (ResourceType.POST, post.id, 0, "8.8.8.8", us),
            (ResourceType.POST, post.id, 40, "8.8.4.4", us),
        ]
        for resource_type, resource_id, days_ago, ip, (code, name) in views:
            await create_test_view(
                db,
                resource_type,
                resource_id,
                owner.id,
                clock.now - timedelta(days=days_ago),
                ip_address=ip,
                country_code=code,
                country_name=name,
            )

    @pytest.mark.asyncio
    async def test_geographic_analytics(self, analytics_service, clock, test_db, test_user):
        post = await create_test_post(test_db, test_user.id)
        await self._seed_views(test_db, clock, test_user, post)

        report = await analytics_service.get_geographic_analytics(test_user.id)

        assert report["resource_type"] == "profile"
        assert report["total_views"] == 4
        assert report["top_countries"] == [
            {"country_code": "GB", "country_name": "United Kingdom", "count": 2},
            {"country_code": "US", "country_name": "United States", "count": 1},
        ]

    @pytest.mark.asyncio
    async def test_geographic_analytics_for_posts(self, analytics_service, clock, test_db, test_user):
        post = await create_test_post(test_db, test_user.id)
        await self._seed_views(test_db, clock, test_user, post)

        report = await analytics_service.get_geographic_analytics(test_user.id, ResourceType.POST)

        assert report["total_views"] == 2
        assert report["top_countries"] == [{"country_code": "US", "country_name": "United States", "count": 2}]

    @pytest.mark.asyncio
    async def test_aggregate_analytics(self, analytics_service, clock, test_db, test_user):
        post = await create_test_post(test_db, test_user.id)
        await self._seed_views(test_db, clock, test_user, post)

        report = await analytics_service.get_aggregate_analytics(test_user.id)

        assert report["total_views"] == 6
        assert report["views_by_type"] == {"profile": 4, "post": 2, "video": 0, "photo": 0}
        assert report["top_countries"][0] == {"country_code": "US", "country_name": "United States", "count": 3}
        today = clock.now.date().isoformat()
        yesterday = (clock.now - timedelta(days=1)).date().isoformat()
        assert report["views_over_time"] == [
            {"date": yesterday, "count": 2},
            {"date": today, "count": 3},
        ]

    @pytest.mark.asyncio
    async def test_resource_analytics(self, analytics_service, clock, test_db, test_user):
        post = await create_test_post(test_db, test_user.id)
        await self._seed_views(test_db, clock, test_user, post)

        report = await analytics_service.get_resource_analytics("post", post.id)

        assert report["total_views"] == 2
        assert report["top_countries"] == [{"country_code": "US", "country_name": "United States", "count": 2}]
        # The 40-day-old view is outside the 30-day series
        assert report["views_over_time"] == [{"date": clock.now.date().isoformat(), "count": 1}]

    @pytest.mark.asyncio
    async def test_reports_degrade_on_storage_failure(self, analytics_service, test_user):
        analytics_service.view_store = FailingViewStore()

        geographic = await analytics_service.get_geographic_analytics(test_user.id)
        aggregate = await analytics_service.get_aggregate_analytics(test_user.id)
        resource = await analytics_service.get_resource_analytics("profile", test_user.id)

        assert geographic["total_views"] == 0
        assert geographic["top_countries"] == []
        assert aggregate["total_views"] == 0
        assert aggregate["views_by_type"] == {"profile": 0, "post": 0, "video": 0, "photo": 0}
        assert aggregate["views_over_time"] == []
        assert resource["total_views"] == 0
        assert resource["views_over_time"] == []
