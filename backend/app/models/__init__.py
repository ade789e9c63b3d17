"""SQLAlchemy models package - imports all models so they register with Base.metadata"""
from app.models.base import Base
from app.models.user import User
from app.models.video import Video
from app.models.video_queue import VideoQueueItem
from app.models.connected_account import ConnectedAccount
from app.models.upload import YouTubeUpload, SocialUpload

# Export all for convenience
__all__ = [
    "Base", "User", "Video", "VideoQueueItem", "ConnectedAccount",
    "YouTubeUpload", "SocialUpload"
]
