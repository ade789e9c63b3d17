"""Video model"""
import uuid
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON, Index
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from app.models.base import Base


VIDEO_STATUSES = (
    "draft", "processing", "generating", "rendering",
    "completed", "failed", "queued", "posted",
)


class Video(Base):
    """Generated video job"""
    __tablename__ = "videos"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(500))
    caption = Column(Text)
    niche = Column(String(100))
    language = Column(String(20), default="en")
    duration = Column(Integer)  # seconds
    visual_style = Column(String(100))
    status = Column(String(50), default="draft", nullable=False)
    # Either a local /renders path (downloaded) or the provider's remote URL
    video_url = Column(Text)
    thumbnail_url = Column(Text)
    scenes = Column(JSON, default=list)
    # "metadata" is reserved on declarative classes, so the attribute name differs from the column
    job_metadata = Column("metadata", JSON, default=dict)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    # Relationships
    user = relationship("User", back_populates="videos")
    queue_items = relationship("VideoQueueItem", back_populates="video", cascade="all, delete-orphan")

    __table_args__ = (
        Index('ix_videos_user_status', 'user_id', 'status'),
        Index('ix_videos_status', 'status'),
    )

    @property
    def hashtags(self):
        return (self.job_metadata or {}).get("hashtags", [])
