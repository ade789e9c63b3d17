"""Redis-backed sessions, OAuth state nonces, post locks and rate-limit counters"""
import logging
from typing import Optional

import redis

from app.core.config import settings

logger = logging.getLogger(__name__)

SESSION_TTL = 30 * 24 * 60 * 60
OAUTH_STATE_TTL = 10 * 60

# Created on first use so tests can swap in fakeredis before anything connects
_client = None


def get_redis_client():
    global _client
    if _client is None:
        _client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    return _client


def _session_key(session_id: str) -> str:
    return f"session:{session_id}"


def _state_key(platform: str, state: str) -> str:
    return f"oauth_state:{platform}:{state}"


def set_session(session_id: str, user_id: int) -> None:
    get_redis_client().setex(_session_key(session_id), SESSION_TTL, user_id)


def get_session(session_id: str) -> Optional[int]:
    """User id behind a session cookie, or None when unknown or expired"""
    user_id = get_redis_client().get(_session_key(session_id))
    return int(user_id) if user_id else None


def delete_session(session_id: str) -> None:
    get_redis_client().delete(_session_key(session_id))


def set_oauth_state(state: str, user_id: int, platform: str) -> None:
    """Bind an OAuth state nonce to the user who opened the consent screen"""
    get_redis_client().setex(_state_key(platform, state), OAUTH_STATE_TTL, user_id)


def pop_oauth_state(state: str, platform: str) -> Optional[int]:
    """Consume a state nonce. Each nonce resolves at most once."""
    if not state:
        return None
    pipe = get_redis_client().pipeline()
    pipe.get(_state_key(platform, state))
    pipe.delete(_state_key(platform, state))
    user_id, _ = pipe.execute()
    return int(user_id) if user_id else None


def acquire_lock(lock_key: str, timeout: int = 30) -> bool:
    """SET NX EX lock. False when another holder already has lock_key."""
    return get_redis_client().set(lock_key, "1", nx=True, ex=timeout) is True


def release_lock(lock_key: str) -> None:
    get_redis_client().delete(lock_key)


def increment_rate_limit(identifier: str, window: int) -> int:
    """Fixed-window counter. The TTL is set only when the window opens."""
    key = f"ratelimit:{identifier}"
    client = get_redis_client()
    count = client.incr(key)
    if count == 1:
        client.expire(key, window)
    return int(count)
