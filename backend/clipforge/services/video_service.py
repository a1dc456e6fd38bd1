"""Video and clip persistence."""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update, delete
from sqlalchemy.ext.asyncio import AsyncSession

from clipforge.models.clip import Clip
from clipforge.models.video import Video, VideoStatus, FilterMode, AspectRatio

logger = logging.getLogger(__name__)


class VideoService:
    """Single-row reads and writes on videos and their clips."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_video(
        self,
        video_id: str,
        user_id: str,
        filename: str,
        content_type: str,
        storage_key: str,
    ) -> Video:
        """Record a freshly uploaded video."""
        video = Video(
            id=video_id,
            user_id=user_id,
            filename=filename,
            content_type=content_type,
            storage_key=storage_key,
            status=VideoStatus.UPLOADED,
            filter_mode=FilterMode.ALL,
            subtitle_enabled=False,
            aspect_ratio=AspectRatio.LANDSCAPE,
            credits_used=0,
        )
        self.db.add(video)
        await self.db.commit()
        await self.db.refresh(video)
        return video

    async def get_video(self, video_id: str) -> Optional[Video]:
        """Get a video by ID."""
        return await self.db.get(Video, video_id)

    async def claim_for_processing(
        self,
        video_id: str,
        filter_mode: FilterMode,
        subtitle_enabled: bool,
        aspect_ratio: AspectRatio,
    ) -> bool:
        """
        Move a video from ``uploaded`` to ``processing`` and store the job config.

        This is a compare-and-set: it only succeeds while the persisted status
        is still ``uploaded``. Returns False when another run got there first.
        """
        result = await self.db.execute(
            update(Video)
            .where(Video.id == video_id, Video.status == VideoStatus.UPLOADED)
            .values(
                status=VideoStatus.PROCESSING,
                filter_mode=filter_mode,
                subtitle_enabled=subtitle_enabled,
                aspect_ratio=aspect_ratio,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount == 1

    async def rollback_to_uploaded(self, video_id: str) -> None:
        """Return a failed run's video to ``uploaded`` so it can be resubmitted."""
        await self.db.execute(
            update(Video)
            .where(Video.id == video_id, Video.status == VideoStatus.PROCESSING)
            .values(status=VideoStatus.UPLOADED, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

    async def set_duration(self, video_id: str, duration: float) -> None:
        await self.db.execute(
            update(Video)
            .where(Video.id == video_id)
            .values(duration=duration)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

    def add_clip(
        self,
        clip_id: str,
        video_id: str,
        filename: str,
        timestamp: int,
        score: int,
        kill_type: str,
        confidence: float,
        storage_key: str,
        created_at: datetime,
        expires_at: datetime,
    ) -> Clip:
        """Stage a clip row in the current transaction (no commit)."""
        clip = Clip(
            id=clip_id,
            video_id=video_id,
            filename=filename,
            timestamp=timestamp,
            score=score,
            kill_type=kill_type,
            confidence=confidence,
            storage_key=storage_key,
            created_at=created_at,
            expires_at=expires_at,
        )
        self.db.add(clip)
        return clip

    async def mark_completed(self, video_id: str, credits_used: int) -> None:
        """Stage the final transition (no commit)."""
        await self.db.execute(
            update(Video)
            .where(Video.id == video_id, Video.status == VideoStatus.PROCESSING)
            .values(
                status=VideoStatus.COMPLETED,
                credits_used=credits_used,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )

    async def list_clips(self, video_id: str) -> List[Clip]:
        """Clips of a video in timestamp order."""
        result = await self.db.execute(
            select(Clip).where(Clip.video_id == video_id).order_by(Clip.timestamp, Clip.created_at)
        )
        return result.scalars().all()

    async def get_clip(self, clip_id: str) -> Optional[Clip]:
        return await self.db.get(Clip, clip_id)

    async def list_expired_clips(self, now: datetime = None) -> List[Clip]:
        now = now or datetime.utcnow()
        result = await self.db.execute(select(Clip).where(Clip.expires_at < now))
        return result.scalars().all()

    async def delete_clips(self, clip_ids: List[str]) -> int:
        if not clip_ids:
            return 0
        result = await self.db.execute(
            delete(Clip).where(Clip.id.in_(clip_ids)).execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount
