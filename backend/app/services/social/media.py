"""Helpers for turning a stored video_url into something a platform can consume"""
from pathlib import Path
from typing import Optional

from app.core.config import settings


def is_remote(video_url: str) -> bool:
    return video_url.startswith("http://") or video_url.startswith("https://")


def local_media_path(video_url: str) -> Optional[Path]:
    """Filesystem path for a /renders or /images URL, or for an absolute local path"""
    if not video_url or is_remote(video_url):
        return None
    if video_url.startswith("/renders/") or video_url.startswith("/images/"):
        return settings.PUBLIC_DIR / video_url.lstrip("/")
    return Path(video_url)


def public_video_url(video_url: str) -> str:
    """Absolute URL a platform can fetch. Local /renders paths are served by this backend."""
    if is_remote(video_url):
        return video_url
    return f"{settings.BACKEND_URL}/{video_url.lstrip('/')}"


def build_caption(caption: Optional[str], hashtags=None, limit: int = 2200) -> str:
    """Caption followed by #tag tokens"""
    tags = []
    for tag in hashtags or []:
        tag = str(tag).strip().replace(" ", "")
        if tag:
            tags.append(tag if tag.startswith("#") else f"#{tag}")
    text = " ".join(part for part in [(caption or "").strip(), " ".join(tags)] if part)
    return text[:limit]
