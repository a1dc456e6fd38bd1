"""Video model."""
import enum
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Enum, Float, Boolean, ForeignKey
from sqlalchemy.orm import relationship

from clipforge.db.database import Base


class VideoStatus(str, enum.Enum):
    """Video lifecycle status."""
    UPLOADED = "uploaded"
    PROCESSING = "processing"
    COMPLETED = "completed"


class FilterMode(str, enum.Enum):
    """Scene filter strictness."""
    ALL = "all"
    MEDIUM = "medium"
    HIGHLIGHT = "highlight"


class AspectRatio(str, enum.Enum):
    """Output aspect ratio for generated clips."""
    LANDSCAPE = "16:9"
    PORTRAIT = "9:16"
    SQUARE = "1:1"


class Video(Base):
    """An uploaded gameplay recording."""

    __tablename__ = "videos"

    id = Column(String(32), primary_key=True, index=True)
    user_id = Column(String(255), ForeignKey("credit_accounts.user_id"), nullable=False, index=True)

    # Source information
    filename = Column(String(1024), nullable=False)
    content_type = Column(String(255), nullable=True)
    storage_key = Column(String(2048), nullable=False)
    duration = Column(Float, nullable=True)  # Filled in after probing

    # Status
    status = Column(
        Enum(VideoStatus, values_callable=lambda e: [m.value for m in e]),
        default=VideoStatus.UPLOADED,
        nullable=False,
    )

    # Processing config (persisted with the uploaded -> processing transition)
    filter_mode = Column(
        Enum(FilterMode, values_callable=lambda e: [m.value for m in e]),
        default=FilterMode.ALL,
        nullable=False,
    )
    subtitle_enabled = Column(Boolean, default=False, nullable=False)
    aspect_ratio = Column(
        Enum(AspectRatio, values_callable=lambda e: [m.value for m in e]),
        default=AspectRatio.LANDSCAPE,
        nullable=False,
    )

    credits_used = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    clips = relationship(
        "Clip",
        back_populates="video",
        cascade="all, delete-orphan",
        order_by="Clip.timestamp",
    )

    def __repr__(self):
        return f"<Video(id={self.id}, user={self.user_id}, status={self.status})>"

    @property
    def extension(self) -> str:
        """File extension of the stored upload, without the dot."""
        name = self.storage_key.rsplit("/", 1)[-1]
        if "." in name:
            return name.rsplit(".", 1)[-1].lower() or "mp4"
        return "mp4"
