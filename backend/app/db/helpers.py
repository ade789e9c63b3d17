"""Database helper functions for videos, the posting queue and connected accounts"""
from dataclasses import dataclass, field
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified
from typing import Optional, List, Dict, Any, Tuple
import logging
from datetime import datetime, timezone

from app.models.video import Video
from app.models.video_queue import VideoQueueItem
from app.models.connected_account import ConnectedAccount
from app.models.upload import YouTubeUpload, SocialUpload
from app.db.session import SessionLocal
from app.schemas.metadata import parse_metadata, dump_metadata, merge_metadata
from app.utils.encryption import encrypt, decrypt

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; everything is stored in UTC"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ---------------------------------------------------------------------------
# Connected accounts
# ---------------------------------------------------------------------------

@dataclass
class StoredAccount:
    """Decrypted view of a connected account row. Never attached to a session."""
    id: int
    user_id: int
    platform: str
    access_token: Optional[str]
    refresh_token: Optional[str] = None
    token_expires_at: Optional[datetime] = None
    platform_user_id: Optional[str] = None
    platform_username: Optional[str] = None
    is_active: bool = True
    extra_data: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


def get_connected_account(user_id: int, platform: str, db: Session = None,
                          active_only: bool = True) -> Optional[StoredAccount]:
    """Get the user's account for a platform with tokens decrypted

    Returns None when there is no (active) account or its tokens cannot be decrypted.
    """
    should_close = False
    if db is None:
        db = SessionLocal()
        should_close = True

    try:
        query = db.query(ConnectedAccount).filter(
            ConnectedAccount.user_id == user_id,
            ConnectedAccount.platform == platform
        )
        if active_only:
            query = query.filter(ConnectedAccount.is_active.is_(True))
        account = query.first()

        if not account:
            return None

        try:
            access_token = decrypt(account.access_token)
            refresh_token = decrypt(account.refresh_token) if account.refresh_token else None
        except ValueError as e:
            logger.warning(f"Failed to decrypt {platform} tokens for user {user_id}: {e}")
            return None

        return StoredAccount(
            id=account.id,
            user_id=account.user_id,
            platform=account.platform,
            access_token=access_token,
            refresh_token=refresh_token,
            token_expires_at=as_utc(account.token_expires_at),
            platform_user_id=account.platform_user_id,
            platform_username=account.platform_username,
            is_active=account.is_active,
            extra_data=dict(account.extra_data or {}),
            created_at=as_utc(account.created_at),
            updated_at=as_utc(account.updated_at),
        )
    finally:
        if should_close:
            db.close()


def get_connected_accounts(user_id: int, db: Session = None) -> List[ConnectedAccount]:
    """Active accounts for a user (tokens stay encrypted)"""
    should_close = False
    if db is None:
        db = SessionLocal()
        should_close = True

    try:
        return db.query(ConnectedAccount).filter(
            ConnectedAccount.user_id == user_id,
            ConnectedAccount.is_active.is_(True)
        ).order_by(ConnectedAccount.platform).all()
    finally:
        if should_close:
            db.close()


def upsert_connected_account(user_id: int, platform: str, access_token: str,
                             refresh_token: str = None, expires_at: datetime = None,
                             platform_user_id: str = None, platform_username: str = None,
                             extra_data: Dict = None, db: Session = None) -> ConnectedAccount:
    """Create or update the (user, platform) account and mark it active. Tokens are encrypted."""
    should_close = False
    if db is None:
        db = SessionLocal()
        should_close = True

    try:
        account = db.query(ConnectedAccount).filter(
            ConnectedAccount.user_id == user_id,
            ConnectedAccount.platform == platform
        ).first()

        encrypted_access = encrypt(access_token) if access_token else ""
        encrypted_refresh = encrypt(refresh_token) if refresh_token else None

        if account:
            account.access_token = encrypted_access
            # Keep the old refresh token when the provider does not send a new one
            if encrypted_refresh is not None:
                account.refresh_token = encrypted_refresh
            account.token_expires_at = expires_at
            if platform_user_id:
                account.platform_user_id = platform_user_id
            if platform_username:
                account.platform_username = platform_username
            if extra_data:
                account.extra_data = {**(account.extra_data or {}), **extra_data}
                flag_modified(account, "extra_data")
            account.is_active = True
            account.updated_at = utcnow()
        else:
            account = ConnectedAccount(
                user_id=user_id,
                platform=platform,
                access_token=encrypted_access,
                refresh_token=encrypted_refresh,
                token_expires_at=expires_at,
                platform_user_id=platform_user_id,
                platform_username=platform_username,
                extra_data=extra_data or {},
                is_active=True,
            )
            db.add(account)

        db.commit()
        db.refresh(account)
        logger.info(f"Stored {platform} account for user {user_id}")
        return account
    finally:
        if should_close:
            db.close()


def update_account_tokens(user_id: int, platform: str, access_token: str,
                          expires_at: Optional[datetime], refresh_token: str = None,
                          db: Session = None) -> bool:
    """Persist refreshed tokens in place"""
    should_close = False
    if db is None:
        db = SessionLocal()
        should_close = True

    try:
        account = db.query(ConnectedAccount).filter(
            ConnectedAccount.user_id == user_id,
            ConnectedAccount.platform == platform
        ).first()
        if not account:
            return False

        account.access_token = encrypt(access_token)
        if refresh_token:
            account.refresh_token = encrypt(refresh_token)
        account.token_expires_at = expires_at
        account.updated_at = utcnow()
        db.commit()
        return True
    finally:
        if should_close:
            db.close()


def deactivate_connected_account(user_id: int, platform: str, db: Session = None) -> bool:
    """Soft-disconnect: the row is kept with is_active=False"""
    should_close = False
    if db is None:
        db = SessionLocal()
        should_close = True

    try:
        account = db.query(ConnectedAccount).filter(
            ConnectedAccount.user_id == user_id,
            ConnectedAccount.platform == platform
        ).first()
        if not account:
            return False

        account.is_active = False
        account.updated_at = utcnow()
        db.commit()
        return True
    finally:
        if should_close:
            db.close()


# ---------------------------------------------------------------------------
# Videos
# ---------------------------------------------------------------------------

def create_video(user_id: int, metadata: Optional[Dict[str, Any]] = None, db: Session = None, **fields) -> Video:
    """Insert a video row. Metadata is validated against its job kind first."""
    should_close = False
    if db is None:
        db = SessionLocal()
        should_close = True

    try:
        video = Video(
            user_id=user_id,
            job_metadata=dump_metadata(parse_metadata(metadata)),
            **fields
        )
        db.add(video)
        db.commit()
        db.refresh(video)
        return video
    finally:
        if should_close:
            db.close()


def get_video(video_id: str, user_id: Optional[int] = None, db: Session = None) -> Optional[Video]:
    should_close = False
    if db is None:
        db = SessionLocal()
        should_close = True

    try:
        query = db.query(Video).filter(Video.id == video_id)
        if user_id is not None:
            query = query.filter(Video.user_id == user_id)
        return query.first()
    finally:
        if should_close:
            db.close()


def update_video(video_id: str, db: Session = None, metadata_changes: Optional[Dict[str, Any]] = None,
                 **fields) -> Optional[Video]:
    """Update columns and merge metadata keys (re-validated) on a video"""
    should_close = False
    if db is None:
        db = SessionLocal()
        should_close = True

    try:
        video = db.query(Video).filter(Video.id == video_id).first()
        if not video:
            return None

        for key, value in fields.items():
            setattr(video, key, value)

        if metadata_changes:
            video.job_metadata = merge_metadata(video.job_metadata, **metadata_changes)
            flag_modified(video, "job_metadata")

        video.updated_at = utcnow()
        db.commit()
        db.refresh(video)
        return video
    finally:
        if should_close:
            db.close()


def get_user_videos(user_id: int, page: int = 1, limit: int = 20, status: str = None,
                    db: Session = None) -> Tuple[List[Video], int]:
    """One page of a user's videos, newest first, plus the total count"""
    should_close = False
    if db is None:
        db = SessionLocal()
        should_close = True

    try:
        query = db.query(Video).filter(Video.user_id == user_id)
        if status:
            query = query.filter(Video.status == status)
        total = query.count()
        videos = query.order_by(Video.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
        return videos, total
    finally:
        if should_close:
            db.close()


def find_video_by_request_id(user_id: int, request_id: str, db: Session = None) -> Optional[Video]:
    """The user's video whose provider job id is request_id"""
    should_close = False
    if db is None:
        db = SessionLocal()
        should_close = True

    try:
        videos = db.query(Video).filter(Video.user_id == user_id).order_by(Video.created_at.desc()).all()
        return next((v for v in videos if (v.job_metadata or {}).get("aiVideoRequestId") == request_id), None)
    finally:
        if should_close:
            db.close()


def delete_video(video_id: str, user_id: int, db: Session = None) -> bool:
    should_close = False
    if db is None:
        db = SessionLocal()
        should_close = True

    try:
        video = db.query(Video).filter(Video.id == video_id, Video.user_id == user_id).first()
        if not video:
            return False
        db.delete(video)
        db.commit()
        return True
    finally:
        if should_close:
            db.close()


def get_pollable_videos(max_attempts: int, db: Session = None) -> List[Video]:
    """Processing videos that carry a provider job id and still have polling attempts left"""
    should_close = False
    if db is None:
        db = SessionLocal()
        should_close = True

    try:
        candidates = db.query(Video).filter(Video.status == "processing").order_by(Video.created_at).all()
        pollable = []
        for video in candidates:
            meta = video.job_metadata or {}
            if not meta.get("aiVideoProvider") or not meta.get("aiVideoRequestId"):
                continue
            attempts = meta.get("pollingAttempts")
            if attempts is not None and attempts >= max_attempts:
                continue
            pollable.append(video)
        return pollable
    finally:
        if should_close:
            db.close()


# ---------------------------------------------------------------------------
# Posting queue
# ---------------------------------------------------------------------------

def find_queue_item(video_id: str, user_id: int, db: Session = None) -> Optional[VideoQueueItem]:
    should_close = False
    if db is None:
        db = SessionLocal()
        should_close = True

    try:
        return db.query(VideoQueueItem).filter(
            VideoQueueItem.video_id == video_id,
            VideoQueueItem.user_id == user_id
        ).first()
    finally:
        if should_close:
            db.close()


def get_queue_item(queue_id: str, user_id: Optional[int] = None, db: Session = None) -> Optional[VideoQueueItem]:
    should_close = False
    if db is None:
        db = SessionLocal()
        should_close = True

    try:
        query = db.query(VideoQueueItem).filter(VideoQueueItem.id == queue_id)
        if user_id is not None:
            query = query.filter(VideoQueueItem.user_id == user_id)
        return query.first()
    finally:
        if should_close:
            db.close()


def create_queue_item(video_id: str, user_id: int, scheduled_at: datetime, platforms: List[str],
                      db: Session = None) -> VideoQueueItem:
    should_close = False
    if db is None:
        db = SessionLocal()
        should_close = True

    try:
        item = VideoQueueItem(
            video_id=video_id,
            user_id=user_id,
            scheduled_at=scheduled_at,
            platforms=list(platforms),
            status="queued",
            queue_metadata=[],
        )
        db.add(item)
        db.commit()
        db.refresh(item)
        return item
    finally:
        if should_close:
            db.close()


def get_user_queue(user_id: int, page: int = 1, limit: int = 20,
                   db: Session = None) -> Tuple[List[Tuple[VideoQueueItem, Video]], int]:
    """Queue rows joined with their videos, soonest first"""
    should_close = False
    if db is None:
        db = SessionLocal()
        should_close = True

    try:
        query = db.query(VideoQueueItem, Video).join(Video, Video.id == VideoQueueItem.video_id).filter(
            VideoQueueItem.user_id == user_id
        )
        total = query.count()
        rows = query.order_by(VideoQueueItem.scheduled_at.asc()).offset((page - 1) * limit).limit(limit).all()
        return rows, total
    finally:
        if should_close:
            db.close()


def update_queue_item(queue_id: str, db: Session = None, **fields) -> Optional[VideoQueueItem]:
    should_close = False
    if db is None:
        db = SessionLocal()
        should_close = True

    try:
        item = db.query(VideoQueueItem).filter(VideoQueueItem.id == queue_id).first()
        if not item:
            return None

        for key, value in fields.items():
            setattr(item, key, value)
            if key in ("platforms", "queue_metadata"):
                flag_modified(item, key)
        item.updated_at = utcnow()
        db.commit()
        db.refresh(item)
        return item
    finally:
        if should_close:
            db.close()


def delete_queue_item(queue_id: str, user_id: int, db: Session = None) -> bool:
    should_close = False
    if db is None:
        db = SessionLocal()
        should_close = True

    try:
        item = db.query(VideoQueueItem).filter(
            VideoQueueItem.id == queue_id,
            VideoQueueItem.user_id == user_id
        ).first()
        if not item:
            return False
        db.delete(item)
        db.commit()
        return True
    finally:
        if should_close:
            db.close()


def get_due_queue_items(now: Optional[datetime] = None, db: Session = None) -> List[Tuple[VideoQueueItem, Video]]:
    """Queued rows whose scheduled time has passed, oldest first"""
    should_close = False
    if db is None:
        db = SessionLocal()
        should_close = True

    try:
        return db.query(VideoQueueItem, Video).join(Video, Video.id == VideoQueueItem.video_id).filter(
            VideoQueueItem.status == "queued",
            VideoQueueItem.scheduled_at <= (now or utcnow())
        ).order_by(VideoQueueItem.scheduled_at.asc()).all()
    finally:
        if should_close:
            db.close()


# ---------------------------------------------------------------------------
# Upload history
# ---------------------------------------------------------------------------

def create_youtube_upload(user_id: int, title: str, video_id: str = None, db: Session = None) -> YouTubeUpload:
    should_close = False
    if db is None:
        db = SessionLocal()
        should_close = True

    try:
        upload = YouTubeUpload(user_id=user_id, video_id=video_id, title=title, status="uploading")
        db.add(upload)
        db.commit()
        db.refresh(upload)
        return upload
    finally:
        if should_close:
            db.close()


def finish_youtube_upload(upload_id: int, status: str, youtube_video_id: str = None, error: str = None,
                          db: Session = None) -> None:
    should_close = False
    if db is None:
        db = SessionLocal()
        should_close = True

    try:
        upload = db.query(YouTubeUpload).filter(YouTubeUpload.id == upload_id).first()
        if upload:
            upload.status = status
            upload.youtube_video_id = youtube_video_id
            upload.error = error
            upload.updated_at = utcnow()
            db.commit()
    finally:
        if should_close:
            db.close()


def get_youtube_upload(upload_id: int, user_id: int, db: Session = None) -> Optional[YouTubeUpload]:
    should_close = False
    if db is None:
        db = SessionLocal()
        should_close = True

    try:
        return db.query(YouTubeUpload).filter(
            YouTubeUpload.id == upload_id,
            YouTubeUpload.user_id == user_id,
        ).first()
    finally:
        if should_close:
            db.close()


def record_social_upload(user_id: int, platform: str, status: str, platform_post_id: str = None,
                         error: str = None, video_id: str = None, db: Session = None) -> SocialUpload:
    should_close = False
    if db is None:
        db = SessionLocal()
        should_close = True

    try:
        upload = SocialUpload(
            user_id=user_id,
            video_id=video_id,
            platform=platform,
            platform_post_id=platform_post_id,
            status=status,
            error=error,
        )
        db.add(upload)
        db.commit()
        db.refresh(upload)
        return upload
    finally:
        if should_close:
            db.close()


def get_upload_history(user_id: int, limit: int = 20, db: Session = None) -> List[Dict[str, Any]]:
    """YouTube and social uploads merged, newest first"""
    should_close = False
    if db is None:
        db = SessionLocal()
        should_close = True

    try:
        youtube = db.query(YouTubeUpload).filter(YouTubeUpload.user_id == user_id).order_by(
            YouTubeUpload.created_at.desc()).limit(limit).all()
        social = db.query(SocialUpload).filter(SocialUpload.user_id == user_id).order_by(
            SocialUpload.created_at.desc()).limit(limit).all()

        history = [
            {
                "platform": "youtube",
                "videoId": u.video_id,
                "postId": u.youtube_video_id,
                "title": u.title,
                "status": u.status,
                "error": u.error,
                "createdAt": as_utc(u.created_at),
            }
            for u in youtube
        ] + [
            {
                "platform": u.platform,
                "videoId": u.video_id,
                "postId": u.platform_post_id,
                "title": None,
                "status": u.status,
                "error": u.error,
                "createdAt": as_utc(u.created_at),
            }
            for u in social
        ]
        history.sort(key=lambda h: h["createdAt"], reverse=True)
        return history[:limit]
    finally:
        if should_close:
            db.close()
