"""Security dependencies and session cookies"""
import logging
from typing import Optional
from fastapi import HTTPException, Request, Response
from app.db import redis as redis_store
from app.core.config import settings

security_logger = logging.getLogger("security")

SESSION_COOKIE = "session_id"


def get_session_user(request: Request) -> Optional[int]:
    """Resolve the session cookie to a user id, or None"""
    session_id = request.cookies.get(SESSION_COOKIE)
    if not session_id:
        return None
    try:
        return redis_store.get_session(session_id)
    except Exception as e:
        security_logger.warning(f"Session lookup failed: {e}")
        return None


def require_auth(request: Request) -> int:
    """Dependency: Require authentication, return user_id"""
    session_id = request.cookies.get(SESSION_COOKIE)

    if not session_id:
        raise HTTPException(401, "Not authenticated. Please log in.")

    user_id = redis_store.get_session(session_id)
    if not user_id:
        raise HTTPException(401, "Session expired. Please log in again.")

    return user_id


def set_auth_cookie(response: Response, session_id: str) -> None:
    """Set the session cookie"""
    response.set_cookie(
        key=SESSION_COOKIE,
        value=session_id,
        httponly=True,
        max_age=redis_store.SESSION_TTL,
        samesite="lax",
        secure=settings.ENVIRONMENT == "production",
    )


# Path prefix -> settings attribute holding that group's request budget
RATE_LIMIT_GROUPS = {
    "/api/auth": None,
    "/api/tts": "TTS_MAX_REQUESTS",
    "/api/images": "IMAGE_MAX_REQUESTS",
}


def get_client_identifier(request: Request, session_id: Optional[str] = None) -> str:
    """Get a unique identifier for rate limiting"""
    if session_id:
        return f"session:{session_id}"

    # Fallback to IP address
    client_ip = request.headers.get("X-Forwarded-For", "").split(",")[0].strip()
    if not client_ip:
        client_ip = request.client.host if request.client else "unknown"
    return f"ip:{client_ip}"


def rate_limit_group(path: str) -> Optional[str]:
    for prefix in RATE_LIMIT_GROUPS:
        if path == prefix or path.startswith(prefix + "/"):
            return prefix.rsplit("/", 1)[-1]
    return None


def group_limit(group: str) -> int:
    attr = RATE_LIMIT_GROUPS.get(f"/api/{group}")
    if attr is None:
        # Login and registration get half the general budget
        return max(1, settings.RATE_LIMIT_MAX_REQUESTS // 2)
    return getattr(settings, attr)


def check_rate_limit(identifier: str, group: str) -> bool:
    """Check if request is within the group's rate limit

    Args:
        identifier: Client identifier (session ID or IP)
        group: Limited route group (auth, tts or images)

    Returns:
        True if within limit, False if exceeded
    """
    try:
        count = redis_store.increment_rate_limit(f"{group}:{identifier}", settings.RATE_LIMIT_WINDOW_SECONDS)
    except Exception as e:
        security_logger.warning(f"Rate limit check failed, allowing request: {e}")
        return True
    return count <= group_limit(group)
