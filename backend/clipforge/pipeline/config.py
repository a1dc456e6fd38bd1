"""Kill detection configuration.

The scoring constants are heuristics; they are kept here so they can be
tuned without touching the detector (see ``DETECTION__*`` env overrides).
"""
from dataclasses import dataclass, field
from typing import Dict, Tuple


@dataclass
class DetectionConfig:
    """Configuration for kill banner detection and scoring."""

    # Banner region, as fractions of frame width/height
    region_x: Tuple[float, float] = (0.65, 0.95)
    region_y: Tuple[float, float] = (0.05, 0.25)

    # Minimum similarity per template tier
    triple_threshold: float = 0.75
    double_threshold: float = 0.75
    single_threshold: float = 0.80

    # Minimum spacing between two accepted detections
    debounce_seconds: int = 3

    # Scoring
    base_score: int = 10
    triple_bonus: int = 80
    double_bonus: int = 50
    clutch_bonus: int = 40  # Reserved tier, no detection path yet
    single_bonus: int = 0
    end_bonus: int = 20
    end_fraction: float = 0.8  # Frames after this share of the video get end_bonus

    # Scene filter thresholds
    filter_thresholds: Dict[str, int] = field(
        default_factory=lambda: {"all": 10, "medium": 50, "highlight": 80}
    )

    def to_dict(self) -> dict:
        """Convert config to dictionary for serialization."""
        return {
            "region_x": list(self.region_x),
            "region_y": list(self.region_y),
            "triple_threshold": self.triple_threshold,
            "double_threshold": self.double_threshold,
            "single_threshold": self.single_threshold,
            "debounce_seconds": self.debounce_seconds,
            "base_score": self.base_score,
            "triple_bonus": self.triple_bonus,
            "double_bonus": self.double_bonus,
            "clutch_bonus": self.clutch_bonus,
            "single_bonus": self.single_bonus,
            "end_bonus": self.end_bonus,
            "end_fraction": self.end_fraction,
            "filter_thresholds": dict(self.filter_thresholds),
        }


# Default configuration instance
DEFAULT_DETECTION_CONFIG = DetectionConfig()
