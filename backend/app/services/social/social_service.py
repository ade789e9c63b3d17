"""Cross-platform posting on top of the YouTube and Instagram adapters"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.config import SUPPORTED_PLATFORMS
from app.core.metrics import platform_posts_counter
from app.db.helpers import get_connected_accounts, get_upload_history, as_utc
from app.models.video import Video
from app.services.social.instagram import InstagramService
from app.services.social.media import public_video_url
from app.services.social.youtube import YouTubeService

logger = logging.getLogger(__name__)


@dataclass
class PostResult:
    platform: str
    success: bool
    error: Optional[str] = None
    post_id: Optional[str] = None
    url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"platform": self.platform, "success": self.success}
        if self.error is not None:
            data["error"] = self.error
        if self.post_id is not None:
            data["postId"] = self.post_id
        if self.url is not None:
            data["url"] = self.url
        return data


class SocialMediaService:
    def __init__(self, youtube: YouTubeService, instagram: InstagramService):
        self.youtube = youtube
        self.instagram = instagram

    def _adapter(self, platform: str):
        return {"youtube": self.youtube, "instagram": self.instagram}.get(platform)

    def get_connected_accounts(self, user_id: int, db: Session = None) -> List[Dict[str, Any]]:
        return [
            {
                "id": account.id,
                "platform": account.platform,
                "username": account.platform_username,
                "userId": account.platform_user_id,
                "connectedAt": as_utc(account.created_at),
                "updatedAt": as_utc(account.updated_at),
            }
            for account in get_connected_accounts(user_id, db=db)
        ]

    def is_connected(self, user_id: int, platform: str, db: Session = None) -> bool:
        adapter = self._adapter(platform)
        return bool(adapter and adapter.is_connected(user_id, db=db))

    def disconnect(self, user_id: int, platform: str, db: Session = None) -> bool:
        adapter = self._adapter(platform)
        if adapter is None:
            raise ValueError(f"Unsupported platform: {platform}")
        return adapter.disconnect(user_id, db=db)

    async def post_video(self, video: Video, platforms: List[str], db: Session = None) -> List[PostResult]:
        """Publish to each platform independently. Exceptions become failed results."""
        results = []
        for platform in platforms:
            try:
                posted = await self._post_to_platform(video, platform, db)
                if posted:
                    result = PostResult(platform, True, post_id=posted.get("post_id"), url=posted.get("url"))
                else:
                    result = PostResult(platform, False, error=f"Failed to post to {platform}")
            except Exception as e:
                logger.error(f"❌ Posting video {video.id} to {platform} raised: {e}",
                             extra={"video_id": video.id, "platform": platform, "error_type": type(e).__name__})
                result = PostResult(platform, False, error=str(e))

            platform_posts_counter.labels(platform=platform, outcome="success" if result.success else "failure").inc()
            results.append(result)
        return results

    async def _post_to_platform(self, video: Video, platform: str, db: Session = None) -> Optional[Dict[str, Any]]:
        """Returns {post_id, url} on success, None when the platform cannot be posted to"""
        if platform not in SUPPORTED_PLATFORMS:
            logger.warning(f"Unsupported platform {platform} for video {video.id}")
            return None
        if not video.video_url:
            logger.warning(f"Video {video.id} has no rendered file to post")
            return None

        if platform == "youtube":
            if not self.youtube.is_connected(video.user_id, db=db):
                return None
            uploaded = await self.youtube.upload_video(video.user_id, video.video_url, {
                "title": video.title,
                "description": video.caption or "",
                "tags": video.hashtags,
                "privacyStatus": "public",
                "videoId": video.id,
            }, db=db)
            return {"post_id": uploaded["video_id"], "url": uploaded["url"]}

        if not self.instagram.get_stored_account(video.user_id, db=db):
            return None
        published = await self.instagram.publish_reel(
            video.user_id,
            public_video_url(video.video_url),
            caption=video.caption or video.title or "",
            hashtags=video.hashtags,
            video_id=video.id,
            db=db,
        )
        return {"post_id": published["media_id"], "url": None}

    def get_upload_history(self, user_id: int, limit: int = 20, db: Session = None) -> List[Dict[str, Any]]:
        return get_upload_history(user_id, limit=limit, db=db)
