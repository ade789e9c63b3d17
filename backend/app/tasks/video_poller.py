"""Status poller: advances processing AI video jobs by asking their provider"""
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.metrics import poller_ticks_counter, poller_transitions_counter, jobs_in_flight_gauge
from app.db.helpers import get_pollable_videos, get_video, update_video
from app.db.session import SessionLocal
from app.models.video import Video
from app.services.providers.base import ProviderResult, ProviderStatus
from app.services.providers.unified import UnifiedVideoService
from app.tasks.scheduled import ScheduledTask

polling_logger = logging.getLogger("polling")

TIMEOUT_ERROR = "Polling timeout - video generation took too long"
DEFAULT_ERROR = "Video generation failed"


class VideoPollingService:
    """Moves rows from processing to completed/failed, bounded by max_attempts polls"""

    def __init__(self, unified: UnifiedVideoService, max_attempts: int = None, interval: float = None,
                 session_factory: Callable[[], Session] = SessionLocal):
        self.unified = unified
        self.max_attempts = max_attempts or settings.POLL_MAX_ATTEMPTS
        self.session_factory = session_factory
        self.task = ScheduledTask(
            "video-status-poller",
            interval or settings.POLL_INTERVAL_SECONDS,
            self.tick,
            on_error=lambda e: poller_ticks_counter.labels(status="error").inc(),
        )

    def start(self) -> None:
        self.task.start(run_immediately=True)

    async def stop(self) -> None:
        await self.task.stop()

    async def tick(self) -> None:
        """Poll every eligible row once, one at a time"""
        db = self.session_factory()
        try:
            videos = get_pollable_videos(self.max_attempts, db=db)
            jobs_in_flight_gauge.set(len(videos))
            if videos:
                polling_logger.info(f"Checking {len(videos)} processing video(s)")
            for video in videos:
                await self._check_video(video, db)
            poller_ticks_counter.labels(status="success").inc()
        finally:
            db.close()

    async def check_video_now(self, video_id: str, user_id: Optional[int] = None) -> Optional[Dict]:
        """Poll a single row on demand. Returns the row's status afterwards, or None if not found."""
        db = self.session_factory()
        try:
            video = get_video(video_id, user_id=user_id, db=db)
            if video is None:
                return None

            meta = video.job_metadata or {}
            if video.status == "processing" and meta.get("aiVideoProvider") and meta.get("aiVideoRequestId"):
                await self._check_video(video, db)
                db.refresh(video)

            return {
                "videoId": video.id,
                "status": video.status,
                "videoUrl": video.video_url,
                "error": (video.job_metadata or {}).get("error"),
                "pollingAttempts": (video.job_metadata or {}).get("pollingAttempts"),
            }
        finally:
            db.close()

    async def _check_video(self, video: Video, db: Session) -> str:
        meta = video.job_metadata or {}
        provider = meta["aiVideoProvider"]
        request_id = meta["aiVideoRequestId"]

        try:
            result = await self.unified.check_status(provider, request_id)
        except Exception as e:
            polling_logger.warning(f"Status check raised for video {video.id}: {e}",
                                   extra={"video_id": video.id, "provider": provider})
            result = ProviderResult.processing(request_id)

        outcome = self.apply_result(video, result, db)
        poller_transitions_counter.labels(result=outcome).inc()
        return outcome

    def apply_result(self, video: Video, result: ProviderResult, db: Session) -> str:
        """Write one status result onto the row. Returns completed, failed, timeout or pending."""
        if result.status == ProviderStatus.SUCCESS:
            update_video(
                video.id, db=db,
                status="completed",
                video_url=result.stored_url,
                metadata_changes={
                    "pollingAttempts": 0,
                    "aiVideoUrl": result.video_url,
                    "completedAt": datetime.now(timezone.utc).isoformat(),
                },
            )
            polling_logger.info(f"✅ Video {video.id} completed")
            return "completed"

        if result.status == ProviderStatus.ERROR:
            error = result.error or DEFAULT_ERROR
            update_video(video.id, db=db, status="failed", metadata_changes={"error": error})
            polling_logger.error(f"❌ Video {video.id} failed: {error}",
                                 extra={"video_id": video.id, "request_id": result.request_id})
            return "failed"

        attempts = ((video.job_metadata or {}).get("pollingAttempts") or 0) + 1
        if attempts >= self.max_attempts:
            update_video(video.id, db=db, status="failed",
                         metadata_changes={"pollingAttempts": attempts, "error": TIMEOUT_ERROR})
            polling_logger.error(f"❌ Video {video.id} timed out after {attempts} polls",
                                 extra={"video_id": video.id})
            return "timeout"

        update_video(video.id, db=db, metadata_changes={"pollingAttempts": attempts})
        return "pending"
