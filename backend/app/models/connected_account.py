"""ConnectedAccount model"""
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Boolean, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from app.models.base import Base


class ConnectedAccount(Base):
    """Social platform OAuth credentials (encrypted), one per user and platform"""
    __tablename__ = "connected_accounts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    platform = Column(String(50), nullable=False)  # youtube, instagram
    platform_user_id = Column(String(255))
    platform_username = Column(String(255))
    access_token = Column(Text, nullable=False)  # Encrypted
    refresh_token = Column(Text)  # Encrypted
    token_expires_at = Column(DateTime(timezone=True))
    is_active = Column(Boolean, default=True, nullable=False)  # Soft-disconnect marker
    extra_data = Column(JSON)  # For platform-specific data
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    # Relationship
    user = relationship("User", back_populates="connected_accounts")

    __table_args__ = (
        UniqueConstraint('user_id', 'platform', name='uq_connected_accounts_user_platform'),
    )
