"""Upload history models"""
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Index
from datetime import datetime, timezone
from app.models.base import Base


class YouTubeUpload(Base):
    """One YouTube upload attempt"""
    __tablename__ = "youtube_uploads"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    video_id = Column(String(36), nullable=True)
    youtube_video_id = Column(String(64))
    title = Column(String(500))
    status = Column(String(20), default="uploading", nullable=False)  # uploading, completed, failed
    error = Column(Text)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))


class SocialUpload(Base):
    """One publish attempt to a non-YouTube platform"""
    __tablename__ = "social_uploads"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    video_id = Column(String(36), nullable=True)
    platform = Column(String(50), nullable=False)
    platform_post_id = Column(String(128))
    status = Column(String(20), default="pending", nullable=False)  # pending, completed, failed
    error = Column(Text)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    __table_args__ = (
        Index('ix_social_uploads_user_platform', 'user_id', 'platform'),
    )
