"""Scene filtering by requested strictness."""
import logging
from typing import List, Optional

from .config import DetectionConfig, DEFAULT_DETECTION_CONFIG
from .detector import KillScene

logger = logging.getLogger(__name__)


def threshold_for_mode(mode: str, config: Optional[DetectionConfig] = None) -> int:
    """Minimum score for a filter mode (``all``, ``medium`` or ``highlight``)."""
    config = config or DEFAULT_DETECTION_CONFIG
    mode = getattr(mode, "value", mode)
    try:
        return config.filter_thresholds[mode]
    except KeyError:
        raise ValueError(f"Unknown filter mode: {mode}")


def filter_kill_scenes(
    scenes: List[KillScene],
    mode: str,
    config: Optional[DetectionConfig] = None,
) -> List[KillScene]:
    """Keep scenes scoring at least the mode's threshold, in original order."""
    threshold = threshold_for_mode(mode, config)
    filtered = [scene for scene in scenes if scene.score >= threshold]
    logger.info(f"Filtered: {len(scenes)} -> {len(filtered)} (mode: {getattr(mode, 'value', mode)}, threshold: {threshold})")
    return filtered
