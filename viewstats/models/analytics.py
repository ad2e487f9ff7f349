"""
Aggregate Analytics Models

One table per entity type, one row per entity. Counters are derived from
view records and interaction tables and refreshed by the analytics service.
"""

import uuid

from sqlalchemy import BigInteger, Column, DateTime, Float, ForeignKey, Integer, String

from viewstats.constants import EntityType
from viewstats.database import Base
from viewstats.utils.clock import utcnow


def _new_id() -> str:
    return str(uuid.uuid4())


class UserAnalytics(Base):
    __tablename__ = "user_analytics"

    entity_type = EntityType.USER
    entity_key = "user_id"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)

    # Profile views
    views_count = Column(Integer, default=0, nullable=False)
    followers_count = Column(Integer, default=0, nullable=False)
    following_count = Column(Integer, default=0, nullable=False)
    posts_count = Column(Integer, default=0, nullable=False)
    videos_count = Column(Integer, default=0, nullable=False)
    # Comments authored by the user
    comments_count = Column(Integer, default=0, nullable=False)
    # Likes and shares on the user's posts
    likes_received_count = Column(Integer, default=0, nullable=False)
    shares_received_count = Column(Integer, default=0, nullable=False)

    last_calculated_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<UserAnalytics(user={self.user_id}, views={self.views_count})>"


class PostAnalytics(Base):
    __tablename__ = "post_analytics"

    entity_type = EntityType.POST
    entity_key = "post_id"

    id = Column(String(36), primary_key=True, default=_new_id)
    post_id = Column(String(36), ForeignKey("posts.id", ondelete="CASCADE"), unique=True, nullable=False)

    views_count = Column(Integer, default=0, nullable=False)
    likes_count = Column(Integer, default=0, nullable=False)
    comments_count = Column(Integer, default=0, nullable=False)
    shares_count = Column(Integer, default=0, nullable=False)
    bookmarks_count = Column(Integer, default=0, nullable=False)
    reports_count = Column(Integer, default=0, nullable=False)
    reactions_count = Column(Integer, default=0, nullable=False)
    # likes + comments + shares + reactions
    total_engagements = Column(Integer, default=0, nullable=False)
    # total_engagements / views * 100, two decimals
    engagement_rate = Column(Float, default=0.0, nullable=False)

    last_calculated_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<PostAnalytics(post={self.post_id}, views={self.views_count}, rate={self.engagement_rate})>"


class VideoAnalytics(Base):
    __tablename__ = "video_analytics"

    entity_type = EntityType.VIDEO
    entity_key = "video_id"

    id = Column(String(36), primary_key=True, default=_new_id)
    video_id = Column(String(36), ForeignKey("videos.id", ondelete="CASCADE"), unique=True, nullable=False)

    views_count = Column(Integer, default=0, nullable=False)
    likes_count = Column(Integer, default=0, nullable=False)
    comments_count = Column(Integer, default=0, nullable=False)
    shares_count = Column(Integer, default=0, nullable=False)
    # Watch-time fields stay zero until watch sessions are recorded (seconds)
    total_watch_time = Column(BigInteger, default=0, nullable=False)
    average_watch_time = Column(Float, default=0.0, nullable=False)
    completion_rate = Column(Float, default=0.0, nullable=False)

    last_calculated_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<VideoAnalytics(video={self.video_id}, views={self.views_count})>"


class PhotoAnalytics(Base):
    __tablename__ = "photo_analytics"

    entity_type = EntityType.PHOTO
    entity_key = "photo_id"

    id = Column(String(36), primary_key=True, default=_new_id)
    photo_id = Column(String(36), ForeignKey("photos.id", ondelete="CASCADE"), unique=True, nullable=False)

    views_count = Column(Integer, default=0, nullable=False)
    likes_count = Column(Integer, default=0, nullable=False)
    comments_count = Column(Integer, default=0, nullable=False)
    shares_count = Column(Integer, default=0, nullable=False)

    last_calculated_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<PhotoAnalytics(photo={self.photo_id}, views={self.views_count})>"


ANALYTICS_MODELS = {
    EntityType.USER: UserAnalytics,
    EntityType.POST: PostAnalytics,
    EntityType.VIDEO: VideoAnalytics,
    EntityType.PHOTO: PhotoAnalytics,
}
