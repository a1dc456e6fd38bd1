#!/usr/bin/env python3
"""
CLI tool to run kill detection on a local video file and emit JSON.

No database, storage or credits are involved; useful for tuning the
detection thresholds against real recordings.

Usage:
    python scripts/detect_kills_cli.py <video_path> [--templates <dir>] [--mode all|medium|highlight]

Example:
    python scripts/detect_kills_cli.py ~/Videos/match.mp4 --templates ./templates -o ./detect_output
"""
import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from clipforge.pipeline.config import DetectionConfig
from clipforge.pipeline.detector import KillTemplates, detect_kill_scenes
from clipforge.pipeline.sampler import sample_frames
from clipforge.pipeline.scene_filter import filter_kill_scenes
from clipforge.utils.ffmpeg import get_video_info


logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s'
)
logger = logging.getLogger(__name__)


async def detect_video(
    video_path: Path,
    templates_dir: Path,
    output_dir: Path,
    mode: str = "all",
    config: DetectionConfig = None,
):
    """
    Detect kill scenes in a video file and write them as JSON.

    Args:
        video_path: Path to video file
        templates_dir: Directory holding kill.png, double_kill.png, triple_kill.png
        output_dir: Directory for sampled frames and the JSON summary
        mode: Filter mode applied to the detected scenes
        config: Optional detection config override
    """
    if not video_path.exists():
        raise FileNotFoundError(f"Video not found: {video_path}")

    output_dir.mkdir(parents=True, exist_ok=True)
    config = config or DetectionConfig()

    templates = KillTemplates.load(templates_dir)
    if not templates.available:
        raise FileNotFoundError(f"No kill templates found in {templates_dir}")

    logger.info(f"Analyzing: {video_path}")
    video_info = await get_video_info(video_path)
    logger.info(f"Duration: {video_info.duration:.1f}s, Resolution: {video_info.width}x{video_info.height}")

    frames = await sample_frames(video_path, output_dir / "frames", duration=video_info.duration)
    scenes = await detect_kill_scenes(frames, templates, config)
    selected = filter_kill_scenes(scenes, mode, config)

    output_file = output_dir / "kills.json"
    with open(output_file, 'w') as f:
        json.dump({
            "video_path": str(video_path),
            "duration": video_info.duration,
            "frames_sampled": len(frames),
            "templates": templates.available,
            "config": config.to_dict(),
            "mode": mode,
            "total_kills": len(scenes),
            "selected": [scene.to_dict() for scene in selected],
            "all": [scene.to_dict() for scene in scenes],
        }, f, indent=2)

    logger.info(f"Output written to: {output_file}")
    logger.info(f"Detected {len(scenes)} kills, {len(selected)} pass '{mode}'")
    for scene in selected:
        logger.info(
            f"  {scene.timestamp}s: {scene.kill_type.value} "
            f"(score: {scene.score}, confidence: {scene.confidence:.3f})"
        )


def main():
    parser = argparse.ArgumentParser(
        description="Detect kill scenes in a gameplay video",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Detect with default thresholds
    python scripts/detect_kills_cli.py match.mp4

    # Only keep multi-kills and late-game kills
    python scripts/detect_kills_cli.py match.mp4 --mode highlight

    # Loosen the single-kill threshold
    python scripts/detect_kills_cli.py match.mp4 --single-threshold 0.7
        """
    )

    parser.add_argument(
        "video_path",
        type=Path,
        help="Path to video file to analyze"
    )

    parser.add_argument(
        "--templates", "-t",
        type=Path,
        default=Path("./templates"),
        help="Directory with kill templates (default: ./templates)"
    )

    parser.add_argument(
        "--output-dir", "-o",
        type=Path,
        default=Path("./clipforge_output"),
        help="Output directory (default: ./clipforge_output)"
    )

    parser.add_argument(
        "--mode", "-m",
        choices=["all", "medium", "highlight"],
        default="all",
        help="Filter mode applied to detected scenes"
    )

    parser.add_argument("--single-threshold", type=float, default=None)
    parser.add_argument("--multi-threshold", type=float, default=None)

    args = parser.parse_args()

    config = DetectionConfig()
    if args.single_threshold is not None:
        config = replace(config, single_threshold=args.single_threshold)
    if args.multi_threshold is not None:
        config = replace(
            config,
            double_threshold=args.multi_threshold,
            triple_threshold=args.multi_threshold,
        )

    try:
        asyncio.run(detect_video(
            video_path=args.video_path,
            templates_dir=args.templates,
            output_dir=args.output_dir,
            mode=args.mode,
            config=config,
        ))
    except FileNotFoundError as e:
        logger.error(str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted")
        sys.exit(130)
    except Exception as e:
        logger.exception(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
