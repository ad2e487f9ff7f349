"""
View Tracking Service

Records views of profiles, posts, videos and photos. A view is suppressed
when the same viewer already viewed the same resource within the
deduplication window. The viewer is identified by user id when
authenticated, otherwise by client IP.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from viewstats.constants import DEFAULT_DEDUP_WINDOW_MINUTES, ResourceType
from viewstats.models.view_record import ViewRecord
from viewstats.services.geo_service import GeoResolver
from viewstats.services.request_context import RequestContext
from viewstats.stores.base import ViewStore
from viewstats.utils.clock import utcnow
from viewstats.utils.metrics import record_view_outcome

logger = logging.getLogger(__name__)

ERROR_SAVING_VIEW = "error saving view"


@dataclass(frozen=True)
class TrackResult:
    tracked: bool
    reason: str | None = None


def duplicate_reason(window_minutes: int) -> str:
    return f"duplicate view within {window_minutes} minute window"


class ViewTracker:
    def __init__(
        self,
        view_store: ViewStore,
        geo_resolver: GeoResolver,
        window_minutes: int = DEFAULT_DEDUP_WINDOW_MINUTES,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.view_store = view_store
        self.geo_resolver = geo_resolver
        self.window_minutes = window_minutes
        self.clock = clock

    async def track_view(
        self,
        resource_type: ResourceType,
        resource_id: str,
        owner_user_id: str,
        request_context: RequestContext,
        viewer_user_id: str | None = None,
        window_minutes: int | None = None,
    ) -> TrackResult:
        """
        Track a view of a resource.

        Args:
            resource_type: Kind of resource viewed
            resource_id: ID of the resource
            owner_user_id: User owning the resource
            request_context: Headers and remote address of the viewing request
            viewer_user_id: Authenticated viewer, if any
            window_minutes: Deduplication window, defaults to the tracker's

        Returns:
            TrackResult: `tracked=False` with a reason for duplicates and
            storage failures; never raises for either
        """
        resource_type = ResourceType(resource_type)
        window = self.window_minutes if window_minutes is None else window_minutes

        ip_address = request_context.client_ip
        location = self.geo_resolver.resolve(ip_address)
        now = self.clock()

        try:
            if viewer_user_id or ip_address:
                duplicate = await self.view_store.has_recent_view(
                    resource_type,
                    resource_id,
                    since=now - timedelta(minutes=window),
                    viewer_user_id=viewer_user_id,
                    ip_address=ip_address,
                )
                if duplicate:
                    record_view_outcome(resource_type.value, "duplicate")
                    return TrackResult(tracked=False, reason=duplicate_reason(window))

            record = ViewRecord(
                resource_type=resource_type.value,
                resource_id=resource_id,
                owner_user_id=owner_user_id,
                viewer_user_id=viewer_user_id,
                ip_address=ip_address,
                country_code=location.country_code,
                country_name=location.country_name,
                city=location.city,
                region=location.region,
                user_agent=request_context.user_agent,
                referrer=request_context.referrer,
                created_at=now,
            )
            await self.view_store.add(record)
        except Exception as e:
            logger.error(
                f"Error tracking {resource_type.value} view for {resource_id}: {e}",
                exc_info=True,
                extra={"resource_type": resource_type.value, "resource_id": resource_id},
            )
            record_view_outcome(resource_type.value, "error")
            return TrackResult(tracked=False, reason=ERROR_SAVING_VIEW)

        record_view_outcome(resource_type.value, "tracked")
        return TrackResult(tracked=True)

    async def track_profile_view(
        self,
        user_id: str,
        request_context: RequestContext,
        viewer_user_id: str | None = None,
    ) -> TrackResult:
        """A profile is owned by the user it belongs to."""
        return await self.track_view(ResourceType.PROFILE, user_id, user_id, request_context, viewer_user_id)

    async def track_post_view(
        self,
        post_id: str,
        owner_user_id: str,
        request_context: RequestContext,
        viewer_user_id: str | None = None,
    ) -> TrackResult:
        return await self.track_view(ResourceType.POST, post_id, owner_user_id, request_context, viewer_user_id)

    async def track_video_view(
        self,
        video_id: str,
        owner_user_id: str,
        request_context: RequestContext,
        viewer_user_id: str | None = None,
    ) -> TrackResult:
        return await self.track_view(ResourceType.VIDEO, video_id, owner_user_id, request_context, viewer_user_id)

    async def track_photo_view(
        self,
        photo_id: str,
        owner_user_id: str,
        request_context: RequestContext,
        viewer_user_id: str | None = None,
    ) -> TrackResult:
        return await self.track_view(ResourceType.PHOTO, photo_id, owner_user_id, request_context, viewer_user_id)
