"""OAuth API routes for connecting YouTube and Instagram accounts"""
import logging
import secrets
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from app.core.config import settings, SUPPORTED_PLATFORMS
from app.core.container import Container, get_container
from app.core.security import get_session_user, require_auth
from app.db.redis import set_oauth_state, pop_oauth_state
from app.db.session import get_db
from app.services.social.errors import SocialPlatformError

# Loggers
logger = logging.getLogger(__name__)
youtube_logger = logging.getLogger("youtube")
instagram_logger = logging.getLogger("instagram")

router = APIRouter(prefix="/api/auth", tags=["oauth"])


def settings_redirect(platform: str, connected: bool, message: str) -> RedirectResponse:
    """Send the browser back to the frontend settings page with the outcome"""
    key = "message" if connected else "error"
    url = (
        f"{settings.FRONTEND_URL}/settings?platform={platform}"
        f"&connected={'true' if connected else 'false'}&{key}={quote(message)}"
    )
    return RedirectResponse(url=url, status_code=302)


def resolve_callback_user(request: Request, state: Optional[str], platform: str) -> Optional[int]:
    """The user completing a callback: the session cookie first, then the state nonce"""
    from_state = pop_oauth_state(state, platform) if state else None
    return get_session_user(request) or from_state


def start_oauth(user_id: int, platform: str, build_auth_url) -> dict:
    state = secrets.token_urlsafe(32)
    try:
        auth_url = build_auth_url(state)
    except ValueError as e:
        raise HTTPException(500, str(e))
    set_oauth_state(state, user_id, platform)
    return {"success": True, "authUrl": auth_url}


# ============================================================================
# YOUTUBE
# ============================================================================

@router.get("/youtube")
def auth_youtube(user_id: int = Depends(require_auth), container: Container = Depends(get_container)):
    """Start the YouTube OAuth flow"""
    return start_oauth(user_id, "youtube", container.youtube.build_auth_url)


@router.get("/callback/youtube")
async def youtube_callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    db: Session = Depends(get_db),
    container: Container = Depends(get_container)
):
    """Finish the YouTube OAuth flow and store the channel's tokens"""
    if not code:
        raise HTTPException(400, "Authorization code is required")

    user_id = resolve_callback_user(request, state, "youtube")
    if not user_id:
        youtube_logger.warning("YouTube callback without an authenticated user")
        raise HTTPException(401, "User not authenticated")

    try:
        await container.youtube.complete_oauth(user_id, code, db=db)
    except SocialPlatformError as e:
        youtube_logger.error(f"❌ YouTube OAuth failed for user {user_id}: {e.message}",
                             extra={"user_id": user_id, "platform": "youtube"})
        return settings_redirect("youtube", False, e.message)
    except Exception as e:
        youtube_logger.error(f"❌ YouTube OAuth failed for user {user_id}: {e}", exc_info=True)
        return settings_redirect("youtube", False, str(e))

    return settings_redirect("youtube", True, "YouTube account connected successfully")


# ============================================================================
# INSTAGRAM
# ============================================================================

@router.get("/instagram")
def auth_instagram(user_id: int = Depends(require_auth), container: Container = Depends(get_container)):
    """Start the Instagram OAuth flow"""
    return start_oauth(user_id, "instagram", container.instagram.build_auth_url)


@router.get("/callback/instagram")
async def instagram_callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    db: Session = Depends(get_db),
    container: Container = Depends(get_container)
):
    """Finish the Instagram OAuth flow and store the business account"""
    if not code:
        raise HTTPException(400, "Authorization code is required")

    user_id = resolve_callback_user(request, state, "instagram")
    if not user_id:
        instagram_logger.warning("Instagram callback without an authenticated user")
        raise HTTPException(401, "User not authenticated")

    try:
        await container.instagram.complete_oauth(user_id, code, db=db)
    except SocialPlatformError as e:
        instagram_logger.error(f"❌ Instagram OAuth failed for user {user_id}: {e.message}",
                               extra={"user_id": user_id, "platform": "instagram"})
        return settings_redirect("instagram", False, e.message)
    except Exception as e:
        instagram_logger.error(f"❌ Instagram OAuth failed for user {user_id}: {e}", exc_info=True)
        return settings_redirect("instagram", False, str(e))

    return settings_redirect("instagram", True, "Instagram account connected successfully")


# ============================================================================
# DISCONNECT
# ============================================================================

@router.delete("/account/{platform}")
def disconnect_account(
    platform: str,
    user_id: int = Depends(require_auth),
    db: Session = Depends(get_db),
    container: Container = Depends(get_container)
):
    """Soft-disconnect a platform account"""
    if platform not in SUPPORTED_PLATFORMS:
        raise HTTPException(400, "Invalid platform")

    try:
        container.social.disconnect(user_id, platform, db=db)
    except Exception as e:
        logger.error(f"❌ Failed to disconnect {platform} for user {user_id}: {e}", exc_info=True)
        raise HTTPException(500, "Failed to disconnect account")

    return {"success": True, "message": f"{platform} account disconnected successfully"}
