"""Auto-post scheduler: publishes due queue items to their platforms"""
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.metrics import auto_post_ticks_counter
from app.db.helpers import get_due_queue_items, get_queue_item, get_video, update_queue_item
from app.db.redis import acquire_lock, release_lock
from app.db.session import SessionLocal
from app.models.video import Video
from app.models.video_queue import VideoQueueItem
from app.services.social.social_service import SocialMediaService
from app.tasks.scheduled import ScheduledTask

auto_post_logger = logging.getLogger("auto_post")

POST_LOCK_TIMEOUT = 15 * 60


class AutoPostScheduler:
    """Moves queue items from queued to posted/failed"""

    def __init__(self, social: SocialMediaService, interval: float = None,
                 session_factory: Callable[[], Session] = SessionLocal):
        self.social = social
        self.session_factory = session_factory
        self.task = ScheduledTask(
            "auto-post-scheduler",
            interval or settings.AUTO_POST_INTERVAL_SECONDS,
            self.tick,
            on_error=lambda e: auto_post_ticks_counter.labels(status="error").inc(),
        )

    def start(self) -> None:
        self.task.start(run_immediately=False)

    async def stop(self) -> None:
        await self.task.stop()

    async def tick(self) -> None:
        """Post every queued item whose scheduled time has passed, oldest first"""
        db = self.session_factory()
        try:
            due = get_due_queue_items(datetime.now(timezone.utc), db=db)
            if due:
                auto_post_logger.info(f"Found {len(due)} queued video(s) ready to post")
            for item, video in due:
                await self._post_with_lock(item, video, db)
            auto_post_ticks_counter.labels(status="success").inc()
        finally:
            db.close()

    async def post_now(self, queue_id: str, user_id: int) -> Dict[str, Any]:
        """Post a queue item immediately, ignoring its scheduled time"""
        db = self.session_factory()
        try:
            item = get_queue_item(queue_id, user_id=user_id, db=db)
            if not item:
                return {"success": False, "error": "Queue item not found"}
            if item.status == "posted":
                auto_post_logger.info(f"Queue item {queue_id} already posted, skipping")
                return {"success": False, "error": "Queue item already posted"}

            video = get_video(item.video_id, db=db)
            if not video:
                return {"success": False, "error": "Video not found"}

            result = await self._post_with_lock(item, video, db, retry_failed=True)
            if result is None:
                return {"success": False, "error": "Queue item is already being posted"}
            return result
        finally:
            db.close()

    async def _post_with_lock(self, item: VideoQueueItem, video: Video, db: Session,
                              retry_failed: bool = False):
        # A manual post-now can overlap a tick on the same row
        lock_key = f"queue_post_lock:{item.id}"
        if not acquire_lock(lock_key, timeout=POST_LOCK_TIMEOUT):
            auto_post_logger.info(f"Queue item {item.id} is being posted elsewhere, skipping")
            return None
        try:
            # The row may have been posted between selection and locking
            db.refresh(item)
            if item.status == "posted" or (item.status != "queued" and not retry_failed):
                auto_post_logger.info(f"Queue item {item.id} is now {item.status}, skipping")
                return {"success": False, "error": f"Queue item already {item.status}"}
            return await self.process_item(item, video, db)
        finally:
            release_lock(lock_key)

    async def process_item(self, item: VideoQueueItem, video: Video, db: Session) -> Dict[str, Any]:
        """Post to every platform of one row and store the aggregate outcome"""
        platforms = list(item.platforms or [])
        results = await self.social.post_video(video, platforms, db=db)
        failures = [r.to_dict() for r in results if not r.success]
        status = "failed" if failures or not results else "posted"

        update_queue_item(item.id, db=db, status=status, queue_metadata=failures)

        if status == "posted":
            auto_post_logger.info(f"✅ Queue item {item.id} posted to {', '.join(platforms)}")
            return {"success": True, "results": [r.to_dict() for r in results]}

        errors = "; ".join(f"{f['platform']}: {f['error']}" for f in failures) or "No platforms to post to"
        auto_post_logger.error(f"❌ Queue item {item.id} failed: {errors}",
                               extra={"queue_id": item.id, "video_id": video.id, "failed": [f["platform"] for f in failures]})
        return {"success": False, "error": errors, "results": [r.to_dict() for r in results]}
