"""Tests for kill banner detection and scoring."""
import cv2
import numpy as np
import pytest

from clipforge.pipeline.config import DetectionConfig
from clipforge.pipeline.detector import (
    KillTemplates,
    KillType,
    crop_kill_region,
    detect_kill_scenes,
    match_frame,
    score_kill,
    similarity,
)
from clipforge.pipeline.sampler import FrameSequence, SampledFrame

FRAME_HEIGHT = 180
FRAME_WIDTH = 320


def _blank_frame():
    return np.zeros((FRAME_HEIGHT, FRAME_WIDTH, 3), dtype=np.uint8)


def _banner(seed: int) -> np.ndarray:
    """A random pattern exactly the size of the banner crop."""
    shape = crop_kill_region(_blank_frame()).shape
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=shape, dtype=np.uint8)


TRIPLE = _banner(1)
DOUBLE = _banner(2)
SINGLE = _banner(3)


def _frame_with(banner: np.ndarray) -> np.ndarray:
    frame = _blank_frame()
    crop_kill_region(frame)[:] = banner
    return frame


def _video(length: int, banners: dict) -> FrameSequence:
    """One frame per second; ``banners`` maps timestamp -> banner pattern."""
    return FrameSequence.from_images(
        _frame_with(banners[t]) if t in banners else _blank_frame()
        for t in range(length)
    )


@pytest.fixture
def templates():
    return KillTemplates(images={
        KillType.TRIPLE: TRIPLE,
        KillType.DOUBLE: DOUBLE,
        KillType.SINGLE: SINGLE,
    })


class TestSimilarity:
    def test_identical_is_one(self):
        assert similarity(TRIPLE, TRIPLE) == pytest.approx(1.0)

    def test_unrelated_patterns_stay_below_thresholds(self):
        assert similarity(TRIPLE, DOUBLE) < 0.75
        assert similarity(crop_kill_region(_blank_frame()), SINGLE) < 0.75

    def test_crop_is_resized_to_template(self):
        larger = cv2.resize(TRIPLE, (TRIPLE.shape[1] * 2, TRIPLE.shape[0] * 2), interpolation=cv2.INTER_NEAREST)
        assert similarity(larger, TRIPLE) > 0.95

    def test_empty_crop(self):
        assert similarity(np.zeros((0, 0, 3), dtype=np.uint8), TRIPLE) == 0.0


class TestMatchFrame:
    def test_no_banner(self, templates):
        assert match_frame(_blank_frame(), templates) == (KillType.NONE, 0.0)

    def test_each_tier(self, templates):
        assert match_frame(_frame_with(TRIPLE), templates)[0] == KillType.TRIPLE
        assert match_frame(_frame_with(DOUBLE), templates)[0] == KillType.DOUBLE
        assert match_frame(_frame_with(SINGLE), templates)[0] == KillType.SINGLE

    def test_tie_keeps_higher_tier(self):
        same = KillTemplates(images={KillType.TRIPLE: TRIPLE, KillType.SINGLE: TRIPLE})
        kill_type, confidence = match_frame(_frame_with(TRIPLE), same)
        assert kill_type == KillType.TRIPLE
        assert confidence == pytest.approx(1.0)

    def test_missing_tier_is_skipped(self):
        only_single = KillTemplates(images={KillType.SINGLE: SINGLE, KillType.TRIPLE: None})
        assert match_frame(_frame_with(TRIPLE), only_single) == (KillType.NONE, 0.0)
        assert match_frame(_frame_with(SINGLE), only_single)[0] == KillType.SINGLE


class TestScoreKill:
    def test_type_bonuses(self):
        assert score_kill(KillType.SINGLE, 0, 100) == 10
        assert score_kill(KillType.DOUBLE, 0, 100) == 60
        assert score_kill(KillType.TRIPLE, 0, 100) == 90
        assert score_kill(KillType.CLUTCH, 0, 100) == 50

    def test_end_bonus_is_strictly_after_boundary(self):
        assert score_kill(KillType.SINGLE, 80, 100) == 10
        assert score_kill(KillType.SINGLE, 81, 100) == 30

    def test_constants_are_configurable(self):
        config = DetectionConfig(base_score=1, triple_bonus=2, end_bonus=0)
        assert score_kill(KillType.TRIPLE, 99, 100, config) == 3


class TestDetectKillScenes:
    @pytest.mark.asyncio
    async def test_single_triple_in_seventy_seconds(self, templates):
        scenes = await detect_kill_scenes(_video(70, {40: TRIPLE}), templates)

        assert len(scenes) == 1
        assert scenes[0].timestamp == 40
        assert scenes[0].kill_type == KillType.TRIPLE
        assert scenes[0].score == 90

    @pytest.mark.asyncio
    async def test_late_kill_gets_end_bonus(self, templates):
        scenes = await detect_kill_scenes(_video(70, {65: SINGLE}), templates)
        assert [(s.timestamp, s.score) for s in scenes] == [(65, 30)]

    @pytest.mark.asyncio
    async def test_persisting_banner_is_debounced(self, templates):
        # Banner stays on screen for 4 seconds
        banners = {t: DOUBLE for t in (10, 11, 12, 13)}
        scenes = await detect_kill_scenes(_video(30, banners), templates)

        assert [s.timestamp for s in scenes] == [10, 13]

    @pytest.mark.asyncio
    async def test_scenes_are_ordered_and_spaced(self, templates):
        banners = {t: SINGLE for t in range(5, 40)}
        scenes = await detect_kill_scenes(_video(50, banners), templates)

        timestamps = [s.timestamp for s in scenes]
        assert timestamps == sorted(timestamps)
        assert all(b - a >= 3 for a, b in zip(timestamps, timestamps[1:]))

    @pytest.mark.asyncio
    async def test_no_templates_detects_nothing(self):
        scenes = await detect_kill_scenes(_video(20, {5: TRIPLE}), KillTemplates())
        assert scenes == []

    @pytest.mark.asyncio
    async def test_deterministic(self, templates):
        banners = {4: SINGLE, 20: DOUBLE, 33: TRIPLE}
        first = await detect_kill_scenes(_video(40, banners), templates)
        second = await detect_kill_scenes(_video(40, banners), templates)
        assert [s.to_dict() for s in first] == [s.to_dict() for s in second]

    @pytest.mark.asyncio
    async def test_checkpoint_every_ten_frames(self, templates):
        calls = []
        await detect_kill_scenes(_video(25, {}), templates, checkpoint=lambda: calls.append(1))
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_checkpoint_can_abort(self, templates):
        class Stop(Exception):
            pass

        seen = []

        def checkpoint():
            seen.append(1)
            if len(seen) == 2:
                raise Stop()

        with pytest.raises(Stop):
            await detect_kill_scenes(_video(50, {15: TRIPLE}), templates, checkpoint=checkpoint)

    @pytest.mark.asyncio
    async def test_abort_closes_the_frame_producer(self, templates):
        state = {"produced": 0, "closed": False}

        async def produce():
            try:
                for _ in range(30):
                    state["produced"] += 1
                    yield SampledFrame(timestamp=state["produced"] - 1, image=_blank_frame())
            finally:
                state["closed"] = True

        def checkpoint():
            if state["produced"] > 10:
                raise RuntimeError("out of time")

        with pytest.raises(RuntimeError, match="out of time"):
            await detect_kill_scenes(FrameSequence(30, produce), templates, checkpoint=checkpoint)

        assert state["produced"] == 11
        assert state["closed"]


def test_templates_load_missing_files(tmp_path):
    cv2.imwrite(str(tmp_path / "kill.png"), SINGLE)

    templates = KillTemplates.load(tmp_path)

    assert templates.available == ["single"]
    assert templates.get(KillType.TRIPLE) is None
    assert templates.get(KillType.SINGLE).shape == SINGLE.shape
