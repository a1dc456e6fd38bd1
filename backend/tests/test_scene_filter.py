"""Tests for scene filtering."""
import pytest

from clipforge.models.video import FilterMode
from clipforge.pipeline.config import DetectionConfig
from clipforge.pipeline.detector import KillScene, KillType
from clipforge.pipeline.scene_filter import filter_kill_scenes, threshold_for_mode


def _scenes(*scores):
    return [
        KillScene(timestamp=i * 10, score=score, kill_type=KillType.SINGLE, confidence=0.9)
        for i, score in enumerate(scores)
    ]


SCENES = _scenes(30, 10, 110, 60, 90, 50)


def test_thresholds():
    assert threshold_for_mode("all") == 10
    assert threshold_for_mode("medium") == 50
    assert threshold_for_mode("highlight") == 80
    assert threshold_for_mode(FilterMode.HIGHLIGHT) == 80


def test_unknown_mode():
    with pytest.raises(ValueError):
        threshold_for_mode("epic")


def test_all_keeps_every_detection():
    assert filter_kill_scenes(SCENES, "all") == SCENES


def test_keeps_original_order():
    result = filter_kill_scenes(SCENES, "medium")
    assert [s.score for s in result] == [110, 60, 90, 50]
    assert [s.timestamp for s in result] == sorted(s.timestamp for s in result)


def test_modes_are_nested_subsets():
    all_ = filter_kill_scenes(SCENES, FilterMode.ALL)
    medium = filter_kill_scenes(SCENES, FilterMode.MEDIUM)
    highlight = filter_kill_scenes(SCENES, FilterMode.HIGHLIGHT)

    assert len(highlight) <= len(medium) <= len(all_)
    assert all(scene in medium for scene in highlight)
    assert all(scene in all_ for scene in medium)
    assert [s.score for s in highlight] == [110, 90]


def test_custom_thresholds():
    config = DetectionConfig(filter_thresholds={"all": 0, "medium": 100, "highlight": 200})
    assert filter_kill_scenes(SCENES, "medium", config) == [SCENES[2]]
    assert filter_kill_scenes(SCENES, "highlight", config) == []
