from .analytics import ANALYTICS_MODELS, PhotoAnalytics, PostAnalytics, UserAnalytics, VideoAnalytics
from .social import Bookmark, Comment, Follow, Like, Photo, Post, Reaction, Report, Share, User, Video
from .view_record import ViewRecord

__all__ = [
    "ANALYTICS_MODELS",
    "UserAnalytics",
    "PostAnalytics",
    "VideoAnalytics",
    "PhotoAnalytics",
    "User",
    "Post",
    "Video",
    "Photo",
    "Follow",
    "Like",
    "Comment",
    "Share",
    "Bookmark",
    "Report",
    "Reaction",
    "ViewRecord",
]
