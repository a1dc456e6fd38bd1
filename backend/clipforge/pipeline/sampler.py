"""Frame sampling: one still frame per interval, extracted with ffmpeg."""
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Callable, Iterable, Optional

import cv2
import numpy as np

from clipforge.config import Settings
from clipforge.utils.ffmpeg import FFmpegError, extract_frame, get_video_info

logger = logging.getLogger(__name__)


@dataclass
class SampledFrame:
    """A decoded still frame addressed by its integer timestamp."""
    timestamp: int
    path: Optional[Path] = None
    image: Optional[np.ndarray] = None

    def load(self) -> np.ndarray:
        """Return the BGR image, reading it from disk on first use."""
        if self.image is None:
            if self.path is None:
                raise FFmpegError(f"Frame at {self.timestamp}s has no image data")
            image = cv2.imread(str(self.path))
            if image is None:
                raise FFmpegError(f"Failed to decode frame at {self.timestamp}s: {self.path}")
            self.image = image
        return self.image


class FrameSequence:
    """Finite, single-pass sequence of sampled frames.

    ``total`` is known up front so scorers can reason about position
    (e.g. "final 20% of the video") before the frames are decoded.
    """

    def __init__(self, total: int, producer: Callable[[], AsyncIterator[SampledFrame]]):
        self.total = total
        self._producer = producer
        self._consumed = False

    def __len__(self) -> int:
        return self.total

    def __aiter__(self) -> AsyncIterator[SampledFrame]:
        if self._consumed:
            raise RuntimeError("Frame sequence can only be iterated once")
        self._consumed = True
        return self._producer()

    @classmethod
    def from_images(cls, images: Iterable[np.ndarray], interval_seconds: int = 1) -> "FrameSequence":
        """Build a sequence from in-memory images at t = 0, interval, 2*interval, ..."""
        frames = [
            SampledFrame(timestamp=i * interval_seconds, image=image)
            for i, image in enumerate(images)
        ]

        async def produce():
            for frame in frames:
                yield frame

        return cls(len(frames), produce)


def frame_timestamps(duration: float, interval_seconds: int = 1) -> range:
    """Sample times from t=0 up to (not including) floor(duration)."""
    if interval_seconds < 1:
        raise ValueError("interval_seconds must be >= 1")
    return range(0, int(math.floor(duration)), interval_seconds)


async def sample_frames(
    video_path: str | Path,
    out_dir: str | Path,
    interval_seconds: int = 1,
    duration: Optional[float] = None,
    config: Settings = None,
) -> FrameSequence:
    """
    Sample one frame per ``interval_seconds`` from a video.

    Frames are extracted lazily as the sequence is iterated, so callers can
    check their time budget between frames.

    Args:
        video_path: Path to source video
        out_dir: Directory to write frame images into
        interval_seconds: Sampling cadence
        duration: Known duration in seconds (probed if not given)
        config: Settings for the ffmpeg binaries (module defaults if not given)

    Returns:
        FrameSequence of SampledFrame

    Raises:
        FFmpegError: If probing or decoding fails
    """
    video_path = Path(video_path)
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    if duration is None:
        duration = (await get_video_info(video_path, config)).duration

    timestamps = frame_timestamps(duration, interval_seconds)
    logger.info(f"Sampling {len(timestamps)} frames from {video_path.name} every {interval_seconds}s")

    async def produce():
        for t in timestamps:
            frame_path = out_dir / f"frame_{t:06d}.jpg"
            await extract_frame(video_path, t, frame_path, config)
            yield SampledFrame(timestamp=t, path=frame_path)

    return FrameSequence(len(timestamps), produce)
