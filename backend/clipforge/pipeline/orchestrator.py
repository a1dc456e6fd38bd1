"""Job orchestrator.

Drives one video through download, validation, credit pre-flight, frame
sampling, kill detection, scene filtering, clip assembly and settlement.
Owns the video status state machine:

    uploaded -> processing -> completed
    processing -> uploaded   (any failure, timeout or cancellation)

Credits are only debited in the same transaction that records the clips and
marks the video completed.
"""
import asyncio
import logging
import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List

from clipforge.config import Settings, settings as default_settings
from clipforge.db.database import Database
from clipforge.errors import (
    AuthorizationError,
    ClipForgeError,
    ConflictError,
    InsufficientCreditsError,
    JobTimeoutError,
    ProcessingError,
    ValidationError,
    VideoNotFoundError,
)
from clipforge.models.video import AspectRatio, FilterMode, VideoStatus
from clipforge.services.credit_ledger import CreditLedger, required_credits
from clipforge.services.storage_service import ObjectNotFoundError, ObjectStorage
from clipforge.services.video_service import VideoService
from clipforge.utils.ffmpeg import FFmpegError, InvalidVideoError, validate_video
from .assembler import AssemblyOptions, ClipAssembler, GeneratedClip
from .detector import KillTemplates, detect_kill_scenes
from .sampler import sample_frames
from .scene_filter import filter_kill_scenes

logger = logging.getLogger(__name__)


@dataclass
class JobConfig:
    """Caller-selected options for a run."""
    filter_mode: FilterMode = FilterMode.ALL
    subtitle_enabled: bool = False
    aspect_ratio: AspectRatio = AspectRatio.LANDSCAPE


@dataclass
class JobResult:
    """Outcome of a successful run."""
    video_id: str
    total_kills: int
    selected: int
    generated: int
    credits_used: int
    duration: float
    clips: List[GeneratedClip] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "success": True,
            "video_id": self.video_id,
            "total_kills": self.total_kills,
            "selected": self.selected,
            "generated": self.generated,
            "credits_used": self.credits_used,
            "clips": [clip.to_dict() for clip in self.clips],
        }


class JobBudget:
    """Wall-clock budget checked at cooperative checkpoints.

    Work in flight when the budget runs out finishes before the next
    checkpoint notices, so the limit is a soft ceiling.
    """

    def __init__(self, limit_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.limit_seconds = limit_seconds
        self._clock = clock
        self.started_at = clock()

    @property
    def elapsed(self) -> float:
        return self._clock() - self.started_at

    def checkpoint(self, stage: str) -> None:
        """Raise JobTimeoutError if the budget is exhausted."""
        if self.elapsed > self.limit_seconds:
            raise JobTimeoutError(
                f"Job exceeded {self.limit_seconds:g}s budget at {stage} "
                f"(elapsed {self.elapsed:.1f}s)"
            )


class JobOrchestrator:
    """Runs the detection-and-generation pipeline for one video at a time."""

    def __init__(
        self,
        database: Database,
        storage: ObjectStorage,
        templates: KillTemplates,
        transcriber=None,
        config: Settings = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.database = database
        self.storage = storage
        self.templates = templates
        self.config = config or default_settings
        self.assembler = ClipAssembler(storage, transcriber, self.config)
        self._clock = clock

    def workspace_path(self, video_id: str) -> Path:
        """Per-job temp directory."""
        return Path(self.config.temp_root) / f"{self.config.workspace_prefix}{video_id}"

    async def run(self, video_id: str, requester_id: str, job_config: JobConfig = None) -> JobResult:
        """
        Process a video end to end.

        Args:
            video_id: Video to process
            requester_id: Authenticated user submitting the job
            job_config: Filter mode, caption flag and aspect ratio

        Returns:
            JobResult with selected and generated counts

        Raises:
            VideoNotFoundError, AuthorizationError, ConflictError: before any state change
            ValidationError, InsufficientCreditsError, JobTimeoutError, ProcessingError:
                after rolling the video back to ``uploaded``
        """
        job_config = job_config or JobConfig()

        async with self.database.session() as session:
            videos = VideoService(session)
            video = await videos.get_video(video_id)
            if video is None:
                raise VideoNotFoundError(f"Video {video_id} not found")
            if video.user_id != requester_id:
                raise AuthorizationError(f"User {requester_id} does not own video {video_id}")
            if video.status == VideoStatus.PROCESSING:
                raise ConflictError(f"Video {video_id} is already processing")
            if video.status == VideoStatus.COMPLETED:
                raise ConflictError(
                    f"Video {video_id} is already completed",
                    public_message="Video has already been processed",
                )

            storage_key = video.storage_key
            extension = video.extension
            owner_id = video.user_id

            claimed = await videos.claim_for_processing(
                video_id,
                filter_mode=job_config.filter_mode,
                subtitle_enabled=job_config.subtitle_enabled,
                aspect_ratio=job_config.aspect_ratio,
            )
            if not claimed:
                raise ConflictError(f"Video {video_id} was claimed by another run")

        logger.info(
            f"Processing video {video_id} (mode: {job_config.filter_mode.value}, "
            f"captions: {job_config.subtitle_enabled}, aspect: {job_config.aspect_ratio.value})"
        )

        budget = JobBudget(self.config.job_timeout_seconds, self._clock)
        workspace = self.workspace_path(video_id)
        uploaded: List[GeneratedClip] = []

        try:
            result = await self._process(
                video_id, owner_id, storage_key, extension, job_config, budget, workspace, uploaded
            )
        except asyncio.CancelledError:
            logger.warning(f"Processing of video {video_id} was cancelled")
            await self._fail(video_id, uploaded)
            raise
        except ClipForgeError as e:
            logger.warning(f"Processing of video {video_id} failed: {e}")
            await self._fail(video_id, uploaded)
            raise
        except Exception as e:
            logger.exception(f"Processing of video {video_id} failed unexpectedly: {e}")
            await self._fail(video_id, uploaded)
            raise ProcessingError(str(e)) from e
        finally:
            self._remove_workspace(workspace)

        logger.info(
            f"Processing completed for video {video_id} in {budget.elapsed:.1f}s "
            f"(clips: {result.generated}/{result.selected}, credits used: {result.credits_used})"
        )
        return result

    async def _process(
        self,
        video_id: str,
        user_id: str,
        storage_key: str,
        extension: str,
        job_config: JobConfig,
        budget: JobBudget,
        workspace: Path,
        uploaded: List[GeneratedClip],
    ) -> JobResult:
        budget.checkpoint("workspace setup")
        workspace.mkdir(parents=True, exist_ok=True)
        budget.checkpoint("download")

        video_path = workspace / f"{video_id}.{extension}"
        try:
            await self.storage.download_to_file(storage_key, video_path)
        except ObjectNotFoundError as e:
            raise ProcessingError(str(e), public_message="Video file could not be found") from e
        logger.info(f"Video saved to: {video_path}")
        budget.checkpoint("validation")

        try:
            info = await validate_video(
                video_path, self.config.max_video_duration_seconds, config=self.config
            )
        except InvalidVideoError as e:
            raise ValidationError(str(e), public_message=str(e)) from e
        except FFmpegError as e:
            raise ValidationError(str(e), public_message="File is corrupted or unsupported") from e

        async with self.database.session() as session:
            await VideoService(session).set_duration(video_id, info.duration)
        budget.checkpoint("credit check")

        required = required_credits(info.duration)
        async with self.database.session() as session:
            ledger = CreditLedger(session)
            balance = await ledger.get_balance(user_id)
        if balance < required:
            raise InsufficientCreditsError(required, balance, self.config.credits_redirect_url)

        budget.checkpoint("detection")
        logger.info("Detecting kill scenes...")
        frames = await sample_frames(
            video_path,
            workspace / "frames",
            interval_seconds=self.config.sample_interval_seconds,
            duration=info.duration,
            config=self.config,
        )
        scenes = await detect_kill_scenes(
            frames,
            self.templates,
            self.config.detection,
            checkpoint=lambda: budget.checkpoint("detection"),
            checkpoint_every=self.config.checkpoint_every_frames,
        )
        selected = filter_kill_scenes(scenes, job_config.filter_mode, self.config.detection)
        logger.info(f"Detected {len(scenes)} kills, filtered to {len(selected)}")

        budget.checkpoint("clip generation")
        assembly = await self.assembler.assemble(
            video_path,
            selected,
            AssemblyOptions(
                video_id=video_id,
                work_dir=workspace / "clips",
                subtitle_enabled=job_config.subtitle_enabled,
                aspect_ratio=job_config.aspect_ratio.value,
                source_duration=info.duration,
            ),
        )
        uploaded.extend(assembly.clips)

        async with self.database.session() as session:
            videos = VideoService(session)
            for clip in assembly.clips:
                videos.add_clip(
                    clip_id=clip.clip_id,
                    video_id=video_id,
                    filename=clip.filename,
                    timestamp=clip.scene.timestamp,
                    score=clip.scene.score,
                    kill_type=clip.scene.kill_type.value,
                    confidence=clip.scene.confidence,
                    storage_key=clip.storage_key,
                    created_at=clip.created_at,
                    expires_at=clip.expires_at,
                )
            await CreditLedger(session).debit(user_id, required, self.config.credits_redirect_url)
            await videos.mark_completed(video_id, required)
            await session.commit()

        return JobResult(
            video_id=video_id,
            total_kills=len(scenes),
            selected=assembly.selected,
            generated=assembly.generated,
            credits_used=required,
            duration=info.duration,
            clips=assembly.clips,
        )

    async def _fail(self, video_id: str, uploaded: List[GeneratedClip]) -> None:
        """Roll status back and discard clip objects of the failed run. Never charges."""
        try:
            async with self.database.session() as session:
                await VideoService(session).rollback_to_uploaded(video_id)
        except Exception as e:
            logger.error(f"Failed to roll back status of video {video_id}: {e}")

        for clip in uploaded:
            try:
                await self.storage.delete(clip.storage_key)
            except Exception as e:
                logger.warning(f"Failed to delete orphaned clip object {clip.storage_key}: {e}")

    def _remove_workspace(self, workspace: Path) -> None:
        try:
            shutil.rmtree(workspace, ignore_errors=False)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Failed to remove workspace {workspace}: {e}")
