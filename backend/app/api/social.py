"""Social posting API routes"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.core.config import SUPPORTED_PLATFORMS
from app.core.container import Container, get_container
from app.core.security import require_auth
from app.db.helpers import get_video
from app.db.session import get_db
from app.schemas.requests import SocialPostRequest
from app.services.social.errors import SocialPlatformError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/social", tags=["social"])


@router.get("/accounts")
def accounts(
    user_id: int = Depends(require_auth),
    db: Session = Depends(get_db),
    container: Container = Depends(get_container)
):
    return {"success": True, "accounts": container.social.get_connected_accounts(user_id, db=db)}


@router.get("/status/{platform}")
def platform_status(
    platform: str,
    user_id: int = Depends(require_auth),
    db: Session = Depends(get_db),
    container: Container = Depends(get_container)
):
    """Connection state for one platform, with channel details for YouTube"""
    if platform not in SUPPORTED_PLATFORMS:
        raise HTTPException(400, "Invalid platform")

    connected = container.social.is_connected(user_id, platform, db=db)
    response = {"success": True, "platform": platform, "connected": connected}
    if connected and platform == "youtube":
        try:
            response["channel"] = container.youtube.get_channel_info(user_id, db=db)
        except SocialPlatformError as e:
            logger.warning(f"Could not load YouTube channel for user {user_id}: {e.message}")
            response["channel"] = None
    return response


@router.post("/post")
async def post_video(
    request_data: SocialPostRequest,
    user_id: int = Depends(require_auth),
    db: Session = Depends(get_db),
    container: Container = Depends(get_container)
):
    """Publish a video to the given platforms right away"""
    if not request_data.videoId:
        raise HTTPException(400, "Video ID is required")
    if not request_data.platforms:
        raise HTTPException(400, "At least one platform is required")

    video = get_video(request_data.videoId, user_id=user_id, db=db)
    if not video:
        raise HTTPException(404, "Video not found")

    results = await container.social.post_video(video, request_data.platforms, db=db)
    return {
        "success": all(r.success for r in results),
        "results": [r.to_dict() for r in results],
    }


@router.get("/history")
def history(
    limit: int = Query(20, ge=1, le=100),
    user_id: int = Depends(require_auth),
    db: Session = Depends(get_db),
    container: Container = Depends(get_container)
):
    return {"success": True, "uploads": container.social.get_upload_history(user_id, limit=limit, db=db)}


@router.post("/disconnect/{platform}")
def disconnect_platform(
    platform: str,
    user_id: int = Depends(require_auth),
    db: Session = Depends(get_db),
    container: Container = Depends(get_container)
):
    if platform not in SUPPORTED_PLATFORMS:
        raise HTTPException(400, "Invalid platform")
    if not container.social.disconnect(user_id, platform, db=db):
        raise HTTPException(400, f"No connected {platform} account to disconnect")
    logger.info(f"User {user_id} disconnected {platform}")
    return {"success": True, "message": f"{platform} account disconnected successfully"}
