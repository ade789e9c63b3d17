"""Posting queue API routes"""
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.core.config import SUPPORTED_PLATFORMS
from app.core.container import Container, get_container
from app.core.security import require_auth
from app.db.helpers import (
    as_utc, create_queue_item, delete_queue_item, find_queue_item, get_queue_item,
    get_user_queue, get_video, update_queue_item
)
from app.db.session import get_db
from app.models.video import Video
from app.models.video_queue import VideoQueueItem
from app.schemas.requests import QueueCreateRequest, QueueUpdateRequest

logger = logging.getLogger(__name__)
auto_post_logger = logging.getLogger("auto_post")

router = APIRouter(prefix="/api/queue", tags=["queue"])

QUEUE_STATUSES = ("queued", "posted", "failed")


def queue_item_to_dict(item: VideoQueueItem) -> Dict[str, Any]:
    return {
        "id": item.id,
        "videoId": item.video_id,
        "scheduledAt": as_utc(item.scheduled_at),
        "platforms": item.platforms or [],
        "status": item.status,
        "createdAt": as_utc(item.created_at),
    }


def queued_video_to_dict(item: VideoQueueItem, video: Video) -> Dict[str, Any]:
    return {
        "id": item.id,
        "videoId": video.id,
        "title": video.title,
        "caption": video.caption,
        "niche": video.niche,
        "duration": video.duration,
        "visualStyle": video.visual_style,
        "videoUrl": video.video_url,
        "thumbnailUrl": video.thumbnail_url,
        "scheduledAt": as_utc(item.scheduled_at),
        "platforms": item.platforms or [],
        "status": item.status,
        "errors": item.queue_metadata or [],
        "createdAt": as_utc(item.created_at),
        "updatedAt": as_utc(item.updated_at),
    }


def validate_platforms(platforms) -> None:
    unsupported = [p for p in platforms if p not in SUPPORTED_PLATFORMS]
    if unsupported:
        raise HTTPException(400, f"Unsupported platform: {', '.join(unsupported)}")


@router.post("/{video_id}", status_code=201)
def add_to_queue(
    video_id: str,
    request_data: QueueCreateRequest,
    user_id: int = Depends(require_auth),
    db: Session = Depends(get_db)
):
    """Schedule a video for cross-posting"""
    if not request_data.platforms:
        raise HTTPException(400, "At least one platform is required")
    if not request_data.scheduledAt:
        raise HTTPException(400, "Scheduled date/time is required")
    validate_platforms(request_data.platforms)

    if not get_video(video_id, user_id=user_id, db=db):
        raise HTTPException(404, "Video not found")
    if find_queue_item(video_id, user_id, db=db):
        raise HTTPException(400, "Video is already in queue. Remove it first to reschedule.")

    item = create_queue_item(video_id, user_id, as_utc(request_data.scheduledAt), request_data.platforms, db=db)
    logger.info(f"Video {video_id} queued for {', '.join(item.platforms)} at {item.scheduled_at}")

    return {
        "success": True,
        "queueId": item.id,
        "message": "Video added to queue successfully",
        "queueItem": queue_item_to_dict(item),
    }


@router.get("")
def list_queue(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user_id: int = Depends(require_auth),
    db: Session = Depends(get_db)
):
    rows, total = get_user_queue(user_id, page=page, limit=limit, db=db)
    return {
        "success": True,
        "queuedVideos": [queued_video_to_dict(item, video) for item, video in rows],
        "pagination": {"page": page, "limit": limit, "total": total, "totalPages": -(-total // limit)},
    }


@router.delete("/{queue_id}")
def remove_from_queue(queue_id: str, user_id: int = Depends(require_auth), db: Session = Depends(get_db)):
    if not delete_queue_item(queue_id, user_id, db=db):
        raise HTTPException(404, "Queue item not found")
    return {"success": True, "message": "Video removed from queue successfully"}


@router.put("/{queue_id}")
def update_queue(
    queue_id: str,
    request_data: QueueUpdateRequest,
    user_id: int = Depends(require_auth),
    db: Session = Depends(get_db)
):
    """Reschedule a queue item or change its platforms"""
    if not get_queue_item(queue_id, user_id=user_id, db=db):
        raise HTTPException(404, "Queue item not found")

    changes = {}
    if request_data.scheduledAt is not None:
        changes["scheduled_at"] = as_utc(request_data.scheduledAt)
    if request_data.platforms is not None:
        if not request_data.platforms:
            raise HTTPException(400, "At least one platform is required")
        validate_platforms(request_data.platforms)
        changes["platforms"] = request_data.platforms
    if request_data.status is not None:
        if request_data.status not in QUEUE_STATUSES:
            raise HTTPException(400, f"Invalid status: {request_data.status}")
        changes["status"] = request_data.status
    if not changes:
        raise HTTPException(400, "No fields to update")

    item = update_queue_item(queue_id, db=db, **changes)
    return {"success": True, "message": "Queue item updated successfully", "queueItem": queue_item_to_dict(item)}


@router.post("/{queue_id}/post-now")
async def post_now(
    queue_id: str,
    user_id: int = Depends(require_auth),
    container: Container = Depends(get_container)
):
    """Publish a queue item immediately"""
    result = await container.auto_post.post_now(queue_id, user_id)
    if result["success"]:
        return {"success": True, "message": "Video posted successfully", "results": result.get("results", [])}

    error = result.get("error")
    if error == "Queue item not found":
        raise HTTPException(404, error)
    if error in ("Queue item already posted", "Queue item is already being posted"):
        raise HTTPException(409, error)
    auto_post_logger.error(f"❌ Post-now failed for queue item {queue_id}: {error}")
    raise HTTPException(500, {"message": "Failed to post video", "error": error})
