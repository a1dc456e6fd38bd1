"""Tests for frame sampling."""
import cv2
import numpy as np
import pytest

from clipforge.pipeline import sampler
from clipforge.pipeline.sampler import FrameSequence, SampledFrame, frame_timestamps
from clipforge.utils.ffmpeg import FFmpegError


def test_frame_timestamps_floor_duration():
    assert list(frame_timestamps(70.9)) == list(range(70))
    assert list(frame_timestamps(10, interval_seconds=3)) == [0, 3, 6, 9]
    assert list(frame_timestamps(0.5)) == []


def test_frame_timestamps_rejects_zero_interval():
    with pytest.raises(ValueError):
        frame_timestamps(10, interval_seconds=0)


@pytest.mark.asyncio
async def test_sequence_is_single_pass():
    frames = FrameSequence.from_images([np.zeros((4, 4, 3), dtype=np.uint8)] * 3)
    assert len(frames) == 3

    seen = [frame.timestamp async for frame in frames]
    assert seen == [0, 1, 2]

    with pytest.raises(RuntimeError):
        async for _ in frames:
            pass


def test_sampled_frame_without_data():
    with pytest.raises(FFmpegError):
        SampledFrame(timestamp=3).load()


@pytest.mark.asyncio
async def test_sample_frames_extracts_lazily(monkeypatch, tmp_path):
    extracted = []

    async def fake_extract_frame(video_path, timestamp, output_path, config=None):
        extracted.append(timestamp)
        image = np.full((8, 8, 3), timestamp, dtype=np.uint8)
        cv2.imwrite(str(output_path), image)
        return output_path

    monkeypatch.setattr(sampler, "extract_frame", fake_extract_frame)

    frames = await sampler.sample_frames(tmp_path / "match.mp4", tmp_path / "frames", duration=5.2)
    assert frames.total == 5
    assert extracted == []

    loaded = []
    async for frame in frames:
        loaded.append((frame.timestamp, frame.path.name, frame.load().shape))

    assert extracted == [0, 1, 2, 3, 4]
    assert loaded[0] == (0, "frame_000000.jpg", (8, 8, 3))
    assert loaded[-1][0] == 4
