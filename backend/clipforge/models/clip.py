"""Clip model."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Float, ForeignKey
from sqlalchemy.orm import relationship

from clipforge.db.database import Base


class Clip(Base):
    """A generated highlight clip, stored in object storage until it expires."""

    __tablename__ = "clips"

    id = Column(String(128), primary_key=True, index=True)
    video_id = Column(String(32), ForeignKey("videos.id", ondelete="CASCADE"), nullable=False, index=True)

    filename = Column(String(1024), nullable=False)

    # Source scene
    timestamp = Column(Integer, nullable=False)  # Seconds from video start
    score = Column(Integer, nullable=False)
    kill_type = Column(String(16), nullable=True)
    confidence = Column(Float, nullable=True)

    storage_key = Column(String(2048), nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)

    # Relationships
    video = relationship("Video", back_populates="clips")

    def __repr__(self):
        return f"<Clip(id={self.id}, video={self.video_id}, t={self.timestamp}, score={self.score})>"

    def is_expired(self, now: datetime = None) -> bool:
        """Whether the clip is past its expiry time."""
        now = now or datetime.utcnow()
        return now > self.expires_at

    def to_dict(self):
        """Convert to dictionary."""
        return {
            "id": self.id,
            "video_id": self.video_id,
            "filename": self.filename,
            "timestamp": self.timestamp,
            "score": self.score,
            "kill_type": self.kill_type,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }
