"""Tests for caption track synthesis."""
from clipforge.pipeline.captions import build_srt, format_srt_time, split_caption_lines


def test_format_srt_time():
    assert format_srt_time(0) == "00:00:00,000"
    assert format_srt_time(7.5) == "00:00:07,500"
    assert format_srt_time(3661.25) == "01:01:01,250"


def test_split_on_ascii_and_full_width_punctuation():
    text = "ナイス！やばい。 Clutch? gg\nwp"
    assert split_caption_lines(text) == ["ナイス", "やばい", "Clutch", "gg", "wp"]


def test_empty_transcription_has_no_track():
    assert build_srt("", 15) == ""
    assert build_srt("   \n ", 15) == ""


def test_cues_cover_the_clip_evenly():
    srt = build_srt("いくぞ。勝った！", 15)
    assert srt == (
        "1\n00:00:00,000 --> 00:00:07,500\nいくぞ\n"
        "\n"
        "2\n00:00:07,500 --> 00:00:15,000\n勝った\n"
        "\n"
    )


def test_text_without_split_points_is_one_cue():
    srt = build_srt("nice shot", 12)
    assert srt.startswith("1\n00:00:00,000 --> 00:00:12,000\nnice shot\n")
