"""Direct YouTube and Instagram routes: upload, status and account management"""
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.container import Container, get_container
from app.core.security import require_auth
from app.db.helpers import as_utc, get_youtube_upload
from app.db.session import get_db
from app.schemas.requests import InstagramUploadRequest, YouTubeUploadRequest
from app.services.social.errors import AccountNotConnectedError, SocialPlatformError, TokenExpiredError

youtube_logger = logging.getLogger("youtube")
instagram_logger = logging.getLogger("instagram")

youtube_router = APIRouter(prefix="/api/youtube", tags=["youtube"])
instagram_router = APIRouter(prefix="/api/instagram", tags=["instagram"])


# ============================================================================
# YOUTUBE
# ============================================================================

@youtube_router.post("/upload")
async def youtube_upload(
    request_data: YouTubeUploadRequest,
    user_id: int = Depends(require_auth),
    db: Session = Depends(get_db),
    container: Container = Depends(get_container)
):
    if not container.youtube.is_connected(user_id, db=db):
        raise HTTPException(400, "YouTube account not connected. Please connect your YouTube account first.")
    if not request_data.videoPath or not request_data.title:
        raise HTTPException(400, "Video path and title are required")

    try:
        uploaded = await container.youtube.upload_video(user_id, request_data.videoPath, {
            "title": request_data.title,
            "description": request_data.description,
            "tags": request_data.tags,
            "privacyStatus": request_data.privacyStatus or "private",
            "videoId": request_data.videoId,
        }, db=db)
    except (SocialPlatformError, FileNotFoundError) as e:
        raise HTTPException(500, {"message": "Failed to upload video to YouTube",
                                  "error": getattr(e, "message", None) or str(e)})

    return {
        "success": True,
        "message": "Video uploaded successfully",
        "data": {"uploadId": uploaded["upload_id"], "videoId": uploaded["video_id"], "videoUrl": uploaded["url"]},
    }


@youtube_router.get("/status/{upload_id}")
def youtube_upload_status(upload_id: int, user_id: int = Depends(require_auth), db: Session = Depends(get_db)):
    upload = get_youtube_upload(upload_id, user_id, db=db)
    if not upload:
        raise HTTPException(404, "Upload not found")
    return {
        "success": True,
        "data": {
            "id": upload.id,
            "videoId": upload.video_id,
            "youtubeVideoId": upload.youtube_video_id,
            "title": upload.title,
            "status": upload.status,
            "error": upload.error,
            "createdAt": as_utc(upload.created_at),
            "updatedAt": as_utc(upload.updated_at),
        },
    }


@youtube_router.delete("/disconnect")
def youtube_disconnect(
    user_id: int = Depends(require_auth),
    db: Session = Depends(get_db),
    container: Container = Depends(get_container)
):
    container.youtube.disconnect(user_id, db=db)
    youtube_logger.info(f"YouTube disconnected for user {user_id}")
    return {"success": True, "message": "YouTube account disconnected successfully"}


@youtube_router.get("/channel")
def youtube_channel(
    user_id: int = Depends(require_auth),
    db: Session = Depends(get_db),
    container: Container = Depends(get_container)
):
    if not container.youtube.is_connected(user_id, db=db):
        raise HTTPException(400, "YouTube account not connected")
    try:
        channel = container.youtube.get_channel_info(user_id, db=db)
    except SocialPlatformError as e:
        raise HTTPException(500, {"message": "Failed to get channel info", "error": e.message})
    if not channel:
        raise HTTPException(404, "YouTube channel not found")
    return {"success": True, "data": channel}


# ============================================================================
# INSTAGRAM
# ============================================================================

@instagram_router.post("/upload")
async def instagram_upload(
    request_data: InstagramUploadRequest,
    user_id: int = Depends(require_auth),
    db: Session = Depends(get_db),
    container: Container = Depends(get_container)
):
    """Create, process and publish a reel in one call"""
    if not request_data.videoUrl:
        raise HTTPException(400, "Video URL is required")
    if not request_data.caption:
        raise HTTPException(400, "Caption is required")

    try:
        published = await container.instagram.publish_reel(
            user_id, request_data.videoUrl, request_data.caption,
            hashtags=request_data.hashtags, video_id=request_data.videoId, db=db,
        )
    except (AccountNotConnectedError, TokenExpiredError):
        raise HTTPException(401, "Instagram account not connected or token expired. "
                                 "Please reconnect your Instagram account.")
    except SocialPlatformError as e:
        raise HTTPException(500, {"message": "Failed to upload reel to Instagram", "error": e.message})

    reel_id = published["media_id"]
    return {
        "success": True,
        "message": "Reel uploaded and published successfully",
        "reelId": reel_id,
        "containerId": published["container_id"],
        "status": "published",
        "instagramUrl": f"https://instagram.com/reel/{reel_id}",
    }


@instagram_router.get("/status/{reel_id}")
async def instagram_reel_status(
    reel_id: str,
    user_id: int = Depends(require_auth),
    db: Session = Depends(get_db),
    container: Container = Depends(get_container)
):
    access_token = await container.instagram.refresh_token_if_needed(user_id, db=db)
    if not access_token:
        raise HTTPException(401, "Instagram account not connected or token expired")
    try:
        status = await container.instagram.check_container_status(reel_id, access_token)
    except TokenExpiredError:
        raise HTTPException(401, "Instagram account not connected or token expired")
    except SocialPlatformError as e:
        raise HTTPException(500, {"message": "Failed to check reel status", "error": e.message})

    return {
        "success": True,
        "reelId": reel_id,
        "status": status["status"],
        "statusCode": status["status_code"],
        "isReady": status["status"] == "finished",
    }


@instagram_router.get("/account")
async def instagram_account(
    user_id: int = Depends(require_auth),
    db: Session = Depends(get_db),
    container: Container = Depends(get_container)
):
    account = container.instagram.get_stored_account(user_id, db=db)
    if not account:
        raise HTTPException(404, "Instagram account not connected")
    return {
        "success": True,
        "account": {
            "id": account.id,
            "platformUserId": account.platform_user_id,
            "username": account.platform_username,
            "isActive": account.is_active,
            "tokenExpiresAt": account.token_expires_at,
            "tokenValid": await container.instagram.validate_token(account.access_token),
            "connectedAt": account.created_at,
        },
    }


@instagram_router.delete("/disconnect")
def instagram_disconnect(
    user_id: int = Depends(require_auth),
    db: Session = Depends(get_db),
    container: Container = Depends(get_container)
):
    container.instagram.disconnect(user_id, db=db)
    instagram_logger.info(f"Instagram disconnected for user {user_id}")
    return {"success": True, "message": "Instagram account disconnected successfully"}


@instagram_router.post("/refresh")
async def instagram_refresh(
    user_id: int = Depends(require_auth),
    db: Session = Depends(get_db),
    container: Container = Depends(get_container)
):
    if not await container.instagram.refresh_token_if_needed(user_id, db=db):
        raise HTTPException(401, "Failed to refresh token. Please reconnect your Instagram account.")
    return {"success": True, "message": "Token refreshed successfully"}
