"""FFmpeg and ffprobe utilities."""
import asyncio
import json
import logging
import shutil
from dataclasses import dataclass
from fractions import Fraction
from pathlib import Path
from typing import List, Optional, Tuple

from clipforge.config import Settings, settings

logger = logging.getLogger(__name__)

# Output geometry per aspect ratio. Reframing scales to cover, then crops.
ASPECT_RATIO_DIMENSIONS = {
    "16:9": (1920, 1080),
    "9:16": (1080, 1920),
    "1:1": (1080, 1080),
}

DEFAULT_FRAME_RATE = Fraction(30, 1)


@dataclass
class VideoInfo:
    """Video metadata container."""
    duration: float
    width: int
    height: int
    frame_rate: Fraction
    video_codec: str
    audio_codec: Optional[str]
    format_name: str

    @property
    def fps(self) -> float:
        return float(self.frame_rate)


class FFmpegError(Exception):
    """FFmpeg related error."""
    pass


class InvalidVideoError(FFmpegError):
    """Video probed fine but is not acceptable for processing."""
    pass


def check_ffmpeg_available(config: Settings = None) -> bool:
    """Check if ffmpeg is available."""
    config = config or settings
    return shutil.which(config.ffmpeg_path) is not None


def check_ffprobe_available(config: Settings = None) -> bool:
    """Check if ffprobe is available."""
    config = config or settings
    return shutil.which(config.ffprobe_path) is not None


def parse_frame_rate(value: Optional[str]) -> Fraction:
    """
    Parse an ffprobe rate such as ``"30000/1001"`` into an exact fraction.

    Falls back to 30 fps for missing, malformed or zero-denominator values.
    """
    if not value:
        return DEFAULT_FRAME_RATE

    try:
        if "/" in value:
            num, den = value.split("/", 1)
            num_i, den_i = int(num.strip()), int(den.strip())
            if den_i == 0 or num_i <= 0:
                return DEFAULT_FRAME_RATE
            return Fraction(num_i, den_i)
        rate = Fraction(value.strip())
    except (ValueError, ZeroDivisionError):
        return DEFAULT_FRAME_RATE

    return rate if rate > 0 else DEFAULT_FRAME_RATE


async def _run(cmd: List[str], what: str) -> bytes:
    """Run an ffmpeg/ffprobe command and return stdout, raising FFmpegError on failure."""
    logger.debug("Running %s: %s", what, " ".join(cmd))
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE
        )
    except FileNotFoundError as e:
        raise FFmpegError(f"{what} failed: executable not found ({e})")

    stdout, stderr = await proc.communicate()

    if proc.returncode != 0:
        raise FFmpegError(f"{what} failed: {stderr.decode(errors='ignore')[-2000:]}")

    return stdout


async def get_video_info(video_path: str | Path, config: Settings = None) -> VideoInfo:
    """
    Get video metadata using ffprobe.

    Args:
        video_path: Path to video file
        config: Settings supplying the ffprobe path

    Returns:
        VideoInfo with video metadata

    Raises:
        FFmpegError: If ffprobe fails
    """
    video_path = Path(video_path)
    if not video_path.exists():
        raise FFmpegError(f"Video file not found: {video_path}")

    config = config or settings
    cmd = [
        config.ffprobe_path,
        "-v", "quiet",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        str(video_path)
    ]

    stdout = await _run(cmd, "ffprobe")

    try:
        data = json.loads(stdout.decode())
    except json.JSONDecodeError as e:
        raise FFmpegError(f"Failed to parse ffprobe output: {e}")

    # Find video stream
    video_stream = None
    audio_stream = None
    for stream in data.get("streams", []):
        if stream.get("codec_type") == "video" and video_stream is None:
            video_stream = stream
        elif stream.get("codec_type") == "audio" and audio_stream is None:
            audio_stream = stream

    if not video_stream:
        raise FFmpegError("No video stream found")

    frame_rate = parse_frame_rate(video_stream.get("r_frame_rate"))

    # Get duration
    try:
        duration = float(data.get("format", {}).get("duration") or 0)
        if duration == 0:
            duration = float(video_stream.get("duration") or 0)
    except (TypeError, ValueError):
        duration = 0.0

    return VideoInfo(
        duration=duration,
        width=int(video_stream.get("width") or 0),
        height=int(video_stream.get("height") or 0),
        frame_rate=frame_rate,
        video_codec=video_stream.get("codec_name", "unknown"),
        audio_codec=audio_stream.get("codec_name") if audio_stream else None,
        format_name=data.get("format", {}).get("format_name", "unknown"),
    )


def check_video_info(info: VideoInfo, max_duration: float) -> None:
    """
    Reject videos that cannot be processed.

    Raises:
        InvalidVideoError: On zero/negative duration, over-long video or missing resolution
    """
    if info.duration <= 0:
        raise InvalidVideoError("Invalid duration")
    if info.duration > max_duration:
        raise InvalidVideoError(f"Video exceeds {max_duration / 3600:g} hours")
    if info.width <= 0 or info.height <= 0:
        raise InvalidVideoError("Invalid resolution")


async def validate_video(
    video_path: str | Path,
    max_duration: float = None,
    config: Settings = None
) -> VideoInfo:
    """Probe a video and check it is processable. Returns its metadata."""
    config = config or settings
    if max_duration is None:
        max_duration = config.max_video_duration_seconds
    info = await get_video_info(video_path, config)
    check_video_info(info, max_duration)
    return info


async def extract_frame(
    video_path: str | Path,
    timestamp: float,
    output_path: str | Path,
    config: Settings = None
) -> Path:
    """
    Extract a single still frame at a timestamp.

    Args:
        video_path: Path to video file
        output_path: Path to save the frame (format from extension)
        timestamp: Time in seconds to capture

    Returns:
        Path to extracted frame
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    config = config or settings
    cmd = [
        config.ffmpeg_path,
        "-y",  # Overwrite
        "-ss", str(timestamp),
        "-i", str(video_path),
        "-frames:v", "1",
        "-q:v", str(config.frame_jpeg_quality),
        str(output_path)
    ]

    await _run(cmd, "Frame extraction")

    if not output_path.exists():
        raise FFmpegError(f"Frame extraction produced no output at {timestamp}s")

    return output_path


def _encode_args(config: Settings) -> List[str]:
    return [
        "-c:v", config.export_video_codec,
        "-preset", config.export_video_preset,
        "-crf", str(config.export_video_crf),
        "-c:a", config.export_audio_codec,
        "-b:a", config.export_audio_bitrate,
        "-movflags", "+faststart",
    ]


async def cut_video(
    source_path: str | Path,
    output_path: str | Path,
    start_time: float,
    duration: float,
    config: Settings = None
) -> Path:
    """
    Cut a time range out of the source video.

    Args:
        source_path: Path to source video
        output_path: Path for output file
        start_time: Start time in seconds
        duration: Length of the cut in seconds
        config: Settings supplying the ffmpeg path and encode options

    Returns:
        Path to the cut
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    config = config or settings
    cmd = [
        config.ffmpeg_path,
        "-y",
        "-ss", str(start_time),
        "-i", str(source_path),
        "-t", str(duration),
        *_encode_args(config),
        str(output_path)
    ]

    await _run(cmd, "Cut")
    return output_path


def reframe_dimensions(aspect_ratio: str) -> Tuple[int, int]:
    """Target (width, height) for an aspect ratio."""
    try:
        return ASPECT_RATIO_DIMENSIONS[aspect_ratio]
    except KeyError:
        raise ValueError(f"Unsupported aspect ratio: {aspect_ratio}")


def build_reframe_filter(aspect_ratio: str) -> str:
    """Scale-to-cover then center-crop to the exact target geometry."""
    width, height = reframe_dimensions(aspect_ratio)
    return (
        f"scale={width}:{height}:force_original_aspect_ratio=increase,"
        f"crop={width}:{height}"
    )


async def convert_aspect_ratio(
    source_path: str | Path,
    output_path: str | Path,
    aspect_ratio: str,
    config: Settings = None
) -> Path:
    """Re-encode a clip to the target aspect ratio (never letterboxed)."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    config = config or settings
    cmd = [
        config.ffmpeg_path,
        "-y",
        "-i", str(source_path),
        "-vf", build_reframe_filter(aspect_ratio),
        *_encode_args(config),
        str(output_path)
    ]

    await _run(cmd, "Aspect ratio conversion")
    return output_path


def _escape_filter_path(path: str | Path) -> str:
    """Escape a path for use inside an ffmpeg filter argument."""
    escaped = str(path).replace("\\", "/")
    for char in (":", "'", "[", "]", ","):
        escaped = escaped.replace(char, f"\\{char}")
    return escaped


def build_subtitles_filter(srt_path: str | Path, style: str = None) -> str:
    """Filter string that burns an SRT file into the video."""
    style = settings.subtitle_style if style is None else style
    subtitles = f"subtitles={_escape_filter_path(srt_path)}"
    if style:
        subtitles += f":force_style='{style}'"
    return subtitles


async def burn_subtitles(
    source_path: str | Path,
    output_path: str | Path,
    srt_path: str | Path,
    config: Settings = None
) -> Path:
    """Burn a caption track into the video."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    config = config or settings
    cmd = [
        config.ffmpeg_path,
        "-y",
        "-i", str(source_path),
        "-vf", build_subtitles_filter(srt_path, config.subtitle_style),
        *_encode_args(config),
        str(output_path)
    ]

    await _run(cmd, "Subtitle burn-in")
    return output_path


async def extract_audio(
    source_path: str | Path,
    output_path: str | Path,
    config: Settings = None
) -> Path:
    """Extract the audio track as mp3."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    config = config or settings
    cmd = [
        config.ffmpeg_path,
        "-y",
        "-i", str(source_path),
        "-vn",
        "-c:a", "libmp3lame",
        "-q:a", "4",
        str(output_path)
    ]

    await _run(cmd, "Audio extraction")
    return output_path
