"""Caption track synthesis from a plain transcription."""
import re
from typing import List

# Sentence-ending punctuation (ASCII and full-width) and line breaks
_SPLIT_PATTERN = re.compile(r"[.!?。！？\n]+")


def format_srt_time(seconds: float) -> str:
    """Format seconds as an SRT timestamp (00:00:05,000)."""
    total_ms = int(round(max(0.0, seconds) * 1000))
    hours, rest = divmod(total_ms, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    secs, ms = divmod(rest, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d},{ms:03d}"


def split_caption_lines(text: str) -> List[str]:
    """Split text into caption lines at sentence ends."""
    return [line.strip() for line in _SPLIT_PATTERN.split(text) if line.strip()]


def build_srt(text: str, duration: float) -> str:
    """
    Build an SRT track spreading ``text`` evenly over ``duration`` seconds.

    One cue per sentence; text without split points becomes a single cue
    covering the whole clip. Empty text yields an empty track.
    """
    text = text.strip()
    if not text or duration <= 0:
        return ""

    lines = split_caption_lines(text) or [text]
    per_line = duration / len(lines)

    cues = []
    for i, line in enumerate(lines):
        start = i * per_line
        end = duration if i == len(lines) - 1 else (i + 1) * per_line
        cues.append(f"{i + 1}\n{format_srt_time(start)} --> {format_srt_time(end)}\n{line}\n")

    return "\n".join(cues) + "\n"
