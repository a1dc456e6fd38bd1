"""Kill banner detection.

Each sampled frame's banner region (top-right of the HUD) is compared with
up to three reference templates using whole-crop pixel MSE. This is a
best-effort heuristic: it does not slide the template over the frame, so
camera motion or a scaled UI can cause misses and false positives.
"""
import enum
import logging
import math
from contextlib import aclosing
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import cv2
import numpy as np

from .config import DetectionConfig, DEFAULT_DETECTION_CONFIG
from .sampler import FrameSequence

logger = logging.getLogger(__name__)


class KillType(str, enum.Enum):
    """Kill classification. CLUTCH is reserved and has no detector path yet."""
    SINGLE = "single"
    DOUBLE = "double"
    TRIPLE = "triple"
    CLUTCH = "clutch"
    NONE = "none"


# Evaluation order; earlier entries win ties
TIER_PRIORITY = (KillType.TRIPLE, KillType.DOUBLE, KillType.SINGLE)

TEMPLATE_FILES = {
    KillType.TRIPLE: "triple_kill.png",
    KillType.DOUBLE: "double_kill.png",
    KillType.SINGLE: "kill.png",
}


@dataclass
class KillScene:
    """A timestamp judged to contain a kill."""
    timestamp: int
    score: int
    kill_type: KillType
    confidence: float
    frame_path: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "score": self.score,
            "kill_type": self.kill_type.value,
            "confidence": round(self.confidence, 4),
        }


@dataclass
class KillTemplates:
    """Reference banner images, one per tier. Missing tiers are None."""
    images: Dict[KillType, Optional[np.ndarray]] = field(default_factory=dict)

    def get(self, kill_type: KillType) -> Optional[np.ndarray]:
        return self.images.get(kill_type)

    @property
    def available(self) -> List[str]:
        return [t.value for t in TIER_PRIORITY if self.images.get(t) is not None]

    @classmethod
    def load(cls, directory: str | Path) -> "KillTemplates":
        """Load templates from a directory; absent files disable their tier."""
        directory = Path(directory)
        images: Dict[KillType, Optional[np.ndarray]] = {}

        for kill_type, filename in TEMPLATE_FILES.items():
            path = directory / filename
            image = cv2.imread(str(path)) if path.exists() else None
            if image is None:
                logger.warning(f"Kill template not available: {path} ({kill_type.value} detection disabled)")
            images[kill_type] = image

        templates = cls(images=images)
        logger.info(f"Kill templates loaded: {templates.available or 'none'}")
        return templates


def crop_kill_region(image: np.ndarray, config: DetectionConfig = DEFAULT_DETECTION_CONFIG) -> np.ndarray:
    """Crop the fractional banner region from a frame."""
    height, width = image.shape[:2]
    x0 = int(math.floor(width * config.region_x[0]))
    x1 = int(math.floor(width * config.region_x[1]))
    y0 = int(math.floor(height * config.region_y[0]))
    y1 = int(math.floor(height * config.region_y[1]))

    # Clamp to frame bounds
    x0, x1 = max(0, min(x0, width)), max(0, min(x1, width))
    y0, y1 = max(0, min(y0, height)), max(0, min(y1, height))

    return image[y0:y1, x0:x1]


def _as_bgr(image: np.ndarray) -> np.ndarray:
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    return image


def similarity(crop: np.ndarray, template: np.ndarray) -> float:
    """
    Similarity in [0, 1] from pixel MSE: ``1 - sqrt(mse) / 255``.

    The crop is resized to the template's size before comparing.
    """
    if crop.size == 0 or template.size == 0:
        return 0.0

    crop = _as_bgr(crop)
    template = _as_bgr(template)

    t_height, t_width = template.shape[:2]
    if crop.shape[:2] != (t_height, t_width):
        crop = cv2.resize(crop, (t_width, t_height), interpolation=cv2.INTER_AREA)

    diff = crop.astype(np.float64) - template.astype(np.float64)
    mse = float(np.mean(diff * diff))
    score = 1.0 - math.sqrt(mse) / 255.0
    return max(0.0, min(1.0, score))


def _threshold_for(kill_type: KillType, config: DetectionConfig) -> float:
    return {
        KillType.TRIPLE: config.triple_threshold,
        KillType.DOUBLE: config.double_threshold,
        KillType.SINGLE: config.single_threshold,
    }[kill_type]


def match_frame(
    image: np.ndarray,
    templates: KillTemplates,
    config: DetectionConfig = DEFAULT_DETECTION_CONFIG,
) -> Tuple[KillType, float]:
    """
    Classify one frame.

    Returns the best tier that clears its threshold and its confidence,
    or (NONE, 0.0). Ties keep the higher tier.
    """
    crop = crop_kill_region(image, config)

    best_type, best_confidence = KillType.NONE, 0.0
    for kill_type in TIER_PRIORITY:
        template = templates.get(kill_type)
        if template is None:
            continue
        confidence = similarity(crop, template)
        if confidence >= _threshold_for(kill_type, config) and confidence > best_confidence:
            best_type, best_confidence = kill_type, confidence

    return best_type, best_confidence


def score_kill(
    kill_type: KillType,
    position: int,
    total_frames: int,
    config: DetectionConfig = DEFAULT_DETECTION_CONFIG,
) -> int:
    """Base + type bonus + end bonus for frames in the final part of the video."""
    bonus = {
        KillType.TRIPLE: config.triple_bonus,
        KillType.DOUBLE: config.double_bonus,
        KillType.CLUTCH: config.clutch_bonus,
        KillType.SINGLE: config.single_bonus,
    }.get(kill_type, 0)

    score = config.base_score + bonus
    if position > total_frames * config.end_fraction:
        score += config.end_bonus
    return score


async def detect_kill_scenes(
    frames: FrameSequence,
    templates: KillTemplates,
    config: Optional[DetectionConfig] = None,
    checkpoint: Optional[Callable[[], None]] = None,
    checkpoint_every: int = 10,
) -> List[KillScene]:
    """
    Detect kill scenes across a sampled frame sequence.

    Args:
        frames: Sampled frames in timestamp order
        templates: Reference templates
        config: Detection config (defaults if not provided)
        checkpoint: Called every ``checkpoint_every`` frames; may raise to abort
        checkpoint_every: Frames between checkpoint calls

    Returns:
        KillScenes in timestamp order, at least ``debounce_seconds`` apart
    """
    config = config or DEFAULT_DETECTION_CONFIG
    total = frames.total

    scenes: List[KillScene] = []
    last_kill: Optional[int] = None
    position = 0

    async with aclosing(aiter(frames)) as stream:
        async for frame in stream:
            if checkpoint and position % checkpoint_every == 0:
                checkpoint()

            current = position
            position += 1

            if last_kill is not None and frame.timestamp - last_kill < config.debounce_seconds:
                continue

            kill_type, confidence = match_frame(frame.load(), templates, config)
            if kill_type == KillType.NONE:
                continue

            score = score_kill(kill_type, current, total, config)
            scenes.append(KillScene(
                timestamp=frame.timestamp,
                score=score,
                kill_type=kill_type,
                confidence=confidence,
                frame_path=str(frame.path) if frame.path else None,
            ))
            last_kill = frame.timestamp

            logger.info(
                f"Kill detected at {frame.timestamp}s: {kill_type.value} "
                f"(score: {score}, confidence: {confidence:.2f})"
            )

    logger.info(f"Total kills detected: {len(scenes)} in {total} frames")
    return scenes
