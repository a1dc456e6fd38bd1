"""Tests for ffprobe parsing and reframe/subtitle filter helpers."""
import json
from fractions import Fraction

import pytest

from clipforge.config import Settings
from clipforge.utils import ffmpeg
from clipforge.utils.ffmpeg import (
    FFmpegError,
    InvalidVideoError,
    VideoInfo,
    build_reframe_filter,
    build_subtitles_filter,
    check_video_info,
    parse_frame_rate,
    reframe_dimensions,
)


def _info(duration=60.0, width=1920, height=1080):
    return VideoInfo(
        duration=duration,
        width=width,
        height=height,
        frame_rate=Fraction(30),
        video_codec="h264",
        audio_codec="aac",
        format_name="mp4",
    )


class TestParseFrameRate:
    def test_ntsc_rate_is_exact(self):
        assert parse_frame_rate("30000/1001") == Fraction(30000, 1001)

    def test_integer_rate(self):
        assert parse_frame_rate("60/1") == Fraction(60)
        assert parse_frame_rate("25") == Fraction(25)

    def test_zero_denominator_falls_back(self):
        assert parse_frame_rate("0/0") == Fraction(30)

    def test_garbage_is_never_evaluated(self):
        assert parse_frame_rate("__import__('os').system('true')") == Fraction(30)
        assert parse_frame_rate(None) == Fraction(30)


class TestReframe:
    def test_portrait_from_landscape_source(self):
        # 1920x1080 source reframed to 9:16 fills 1080x1920, no letterbox
        assert reframe_dimensions("9:16") == (1080, 1920)
        assert build_reframe_filter("9:16") == (
            "scale=1080:1920:force_original_aspect_ratio=increase,crop=1080:1920"
        )

    def test_square(self):
        assert "crop=1080:1080" in build_reframe_filter("1:1")

    def test_unknown_aspect_ratio(self):
        with pytest.raises(ValueError):
            reframe_dimensions("4:3")


def test_subtitles_filter_escapes_path_and_applies_style():
    result = build_subtitles_filter("/tmp/work dir/a:b.srt", style="FontName=Noto Sans JP")
    assert result.startswith("subtitles=/tmp/work dir/a\\:b.srt")
    assert result.endswith(":force_style='FontName=Noto Sans JP'")


class TestCheckVideoInfo:
    def test_accepts_normal_video(self):
        check_video_info(_info(), max_duration=4 * 3600)

    def test_rejects_zero_duration(self):
        with pytest.raises(InvalidVideoError):
            check_video_info(_info(duration=0), max_duration=4 * 3600)

    def test_rejects_over_four_hours(self):
        with pytest.raises(InvalidVideoError, match="4 hours"):
            check_video_info(_info(duration=4 * 3600 + 1), max_duration=4 * 3600)

    def test_rejects_missing_resolution(self):
        with pytest.raises(InvalidVideoError):
            check_video_info(_info(width=0), max_duration=4 * 3600)


@pytest.mark.asyncio
async def test_get_video_info_parses_ffprobe_output(monkeypatch, tmp_path):
    video = tmp_path / "match.mp4"
    video.write_bytes(b"\x00")

    probe = {
        "streams": [
            {"codec_type": "audio", "codec_name": "aac"},
            {
                "codec_type": "video",
                "codec_name": "h264",
                "width": 1920,
                "height": 1080,
                "r_frame_rate": "30000/1001",
            },
        ],
        "format": {"duration": "70.5", "format_name": "mov,mp4"},
    }

    async def fake_run(cmd, what):
        return json.dumps(probe).encode()

    monkeypatch.setattr(ffmpeg, "_run", fake_run)

    info = await ffmpeg.get_video_info(video)
    assert info.duration == 70.5
    assert (info.width, info.height) == (1920, 1080)
    assert info.frame_rate == Fraction(30000, 1001)
    assert info.audio_codec == "aac"


@pytest.mark.asyncio
async def test_get_video_info_without_video_stream(monkeypatch, tmp_path):
    video = tmp_path / "audio_only.mp4"
    video.write_bytes(b"\x00")

    async def fake_run(cmd, what):
        return json.dumps({"streams": [{"codec_type": "audio"}], "format": {}}).encode()

    monkeypatch.setattr(ffmpeg, "_run", fake_run)

    with pytest.raises(FFmpegError, match="No video stream"):
        await ffmpeg.get_video_info(video)


@pytest.mark.asyncio
async def test_commands_use_the_given_settings(monkeypatch, tmp_path):
    commands = []

    async def fake_run(cmd, what):
        commands.append(cmd)
        return b""

    monkeypatch.setattr(ffmpeg, "_run", fake_run)
    config = Settings(
        ffmpeg_path="/opt/ffmpeg/bin/ffmpeg",
        export_video_crf=18,
        subtitle_style="FontSize=30",
    )

    await ffmpeg.cut_video(tmp_path / "src.mp4", tmp_path / "cut.mp4", 58.0, 12.0, config)
    await ffmpeg.burn_subtitles(tmp_path / "cut.mp4", tmp_path / "subs.mp4", tmp_path / "c.srt", config)

    cut, burn = commands
    assert cut[0] == burn[0] == "/opt/ffmpeg/bin/ffmpeg"
    assert cut[cut.index("-crf") + 1] == "18"
    assert cut[cut.index("-t") + 1] == "12.0"
    assert "force_style='FontSize=30'" in burn[burn.index("-vf") + 1]
