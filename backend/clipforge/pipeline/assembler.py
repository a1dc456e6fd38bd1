"""Clip assembly: cut, caption, reframe and upload one clip per kill scene."""
import asyncio
import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Optional

from clipforge.config import Settings, settings as default_settings
from clipforge.errors import ClipGenerationError
from clipforge.services.storage_service import ObjectStorage, generate_unique_key
from clipforge.utils.ffmpeg import (
    burn_subtitles,
    convert_aspect_ratio,
    cut_video,
    extract_audio,
)
from .captions import build_srt
from .detector import KillScene

logger = logging.getLogger(__name__)

DEFAULT_ASPECT_RATIO = "16:9"


@dataclass
class AssemblyOptions:
    """Per-job clip options."""
    video_id: str
    work_dir: Path
    subtitle_enabled: bool = False
    aspect_ratio: str = DEFAULT_ASPECT_RATIO
    source_duration: Optional[float] = None  # Source length; clamps the post-roll


@dataclass
class GeneratedClip:
    """A clip uploaded to object storage, ready to be recorded."""
    clip_id: str
    filename: str
    storage_key: str
    scene: KillScene
    start_time: float
    duration: float
    captioned: bool
    created_at: datetime
    expires_at: datetime

    def to_dict(self) -> dict:
        return {
            "clip_id": self.clip_id,
            "filename": self.filename,
            "timestamp": self.scene.timestamp,
            "score": self.scene.score,
            "kill_type": self.scene.kill_type.value,
        }


@dataclass
class AssemblyResult:
    """Outcome of a batch; ``generated < selected`` means partial success."""
    clips: List[GeneratedClip] = field(default_factory=list)
    failed: List[int] = field(default_factory=list)  # Scene timestamps
    selected: int = 0

    @property
    def generated(self) -> int:
        return len(self.clips)


def clip_window(
    timestamp: float,
    pre_roll: float = 10.0,
    post_roll: float = 5.0,
    source_duration: Optional[float] = None,
):
    """(start, duration) of the cut around a scene; shorter near either end of the video."""
    start = max(0.0, timestamp - pre_roll)
    end = timestamp + post_roll
    if source_duration is not None:
        end = max(start, min(end, source_duration))
    return start, end - start


def _release(*paths: Optional[Path]):
    for path in paths:
        if path is None:
            continue
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Failed to remove intermediate file {path}: {e}")


class ClipAssembler:
    """Turns selected scenes into stored clips."""

    def __init__(self, storage: ObjectStorage, transcriber=None, config: Settings = None):
        self.storage = storage
        self.transcriber = transcriber
        self.config = config or default_settings

    async def assemble(
        self,
        video_path: str | Path,
        scenes: List[KillScene],
        options: AssemblyOptions,
    ) -> AssemblyResult:
        """
        Generate one clip per scene, in order.

        A scene that fails is logged and skipped; the batch continues.
        """
        result = AssemblyResult(selected=len(scenes))
        logger.info(f"Generating {len(scenes)} clips...")

        for i, scene in enumerate(scenes):
            logger.info(f"[{i + 1}/{len(scenes)}] Processing scene at {scene.timestamp}s...")
            try:
                clip = await self.generate_clip(video_path, scene, options)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Failed to generate clip at {scene.timestamp}s: {e}")
                result.failed.append(scene.timestamp)
                continue
            result.clips.append(clip)

        logger.info(f"Generated {result.generated}/{result.selected} clips")
        return result

    async def generate_clip(
        self,
        video_path: str | Path,
        scene: KillScene,
        options: AssemblyOptions,
    ) -> GeneratedClip:
        """Cut, caption, reframe and upload a single scene."""
        work_dir = Path(options.work_dir)
        work_dir.mkdir(parents=True, exist_ok=True)

        clip_id = f"clip_{scene.timestamp}_{secrets.token_hex(6)}"
        filename = f"{clip_id}.mp4"

        start, duration = clip_window(
            scene.timestamp,
            self.config.clip_pre_roll_seconds,
            self.config.clip_post_roll_seconds,
            options.source_duration,
        )

        cut_path = work_dir / f"{clip_id}_cut.mp4"
        subtitled_path = None
        converted_path = None

        try:
            try:
                await cut_video(video_path, cut_path, start, duration, self.config)
            except Exception as e:
                raise ClipGenerationError(f"Cut failed at {scene.timestamp}s: {e}") from e
            logger.debug(f"Cut video: {start:.1f}s - {start + duration:.1f}s")

            final_path = cut_path
            captioned = False

            if options.subtitle_enabled:
                subtitled_path = await self._add_captions(cut_path, clip_id, duration, work_dir)
                if subtitled_path is not None:
                    final_path = subtitled_path
                    captioned = True

            if options.aspect_ratio != DEFAULT_ASPECT_RATIO:
                converted_path = work_dir / f"{clip_id}_converted.mp4"
                await convert_aspect_ratio(final_path, converted_path, options.aspect_ratio, self.config)
                final_path = converted_path
                logger.debug(f"Converted to {options.aspect_ratio}")

            storage_key = generate_unique_key(filename, f"clips/{options.video_id}")
            await self.storage.put_file(storage_key, final_path, "video/mp4")
            logger.info(f"Uploaded clip {clip_id} to {storage_key}")

            created_at = datetime.utcnow()
            return GeneratedClip(
                clip_id=clip_id,
                filename=filename,
                storage_key=storage_key,
                scene=scene,
                start_time=start,
                duration=duration,
                captioned=captioned,
                created_at=created_at,
                expires_at=created_at + timedelta(minutes=self.config.clip_ttl_minutes),
            )
        finally:
            _release(cut_path, subtitled_path, converted_path)

    async def _add_captions(
        self,
        cut_path: Path,
        clip_id: str,
        duration: float,
        work_dir: Path,
    ) -> Optional[Path]:
        """Burn captions into the cut. Returns None when captioning is skipped or fails."""
        if self.transcriber is None:
            logger.warning("Captions requested but no transcriber is configured")
            return None

        audio_path = work_dir / f"{clip_id}.mp3"
        srt_path = work_dir / f"{clip_id}.srt"
        subtitled_path = work_dir / f"{clip_id}_subtitled.mp4"

        try:
            await extract_audio(cut_path, audio_path, self.config)
            transcription = await self.transcriber.transcribe(audio_path.read_bytes(), audio_path.name)

            srt = build_srt(transcription, duration)
            if not srt:
                logger.info(f"No speech transcribed for {clip_id}; skipping captions")
                return None

            srt_path.write_text(srt, encoding="utf-8")
            await burn_subtitles(cut_path, subtitled_path, srt_path, self.config)
            logger.debug(f"Subtitles added to {clip_id}")
            return subtitled_path
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Subtitle generation failed for {clip_id}: {e}")
            _release(subtitled_path)
            return None
        finally:
            _release(audio_path, srt_path)
