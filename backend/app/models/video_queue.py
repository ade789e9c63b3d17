"""Video queue model"""
import uuid
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from app.models.base import Base


class VideoQueueItem(Base):
    """Scheduled cross-post of a generated video"""
    __tablename__ = "video_queue"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    video_id = Column(String(36), ForeignKey("videos.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    scheduled_at = Column(DateTime(timezone=True), nullable=False)
    platforms = Column(JSON, default=list, nullable=False)
    status = Column(String(20), default="queued", nullable=False)  # queued, posted, failed
    # List of failed per-platform results ({platform, success, error})
    queue_metadata = Column("metadata", JSON, default=list)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    # Relationships
    video = relationship("Video", back_populates="queue_items")
    user = relationship("User", back_populates="queue_items")

    __table_args__ = (
        UniqueConstraint('video_id', 'user_id', name='uq_video_queue_video_user'),
        Index('ix_video_queue_status_scheduled_at', 'status', 'scheduled_at'),
    )
