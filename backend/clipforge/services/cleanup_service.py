"""Periodic cleanup of expired clips and orphaned job workspaces."""
import logging
import shutil
import time
from datetime import datetime
from pathlib import Path

from clipforge.db.database import Database
from clipforge.services.storage_service import ObjectStorage
from clipforge.services.video_service import VideoService

logger = logging.getLogger(__name__)


def sweep_orphaned_workspaces(
    temp_root: str | Path,
    prefix: str = "clipforge-",
    max_age_seconds: float = 3600,
    now: float = None,
) -> int:
    """
    Delete job workspaces left behind by crashed processes.

    Only directories named ``{prefix}*`` whose modification time is older
    than ``max_age_seconds`` are removed, so live jobs are never touched.

    Returns:
        Number of directories removed
    """
    temp_root = Path(temp_root)
    if not temp_root.exists():
        return 0

    now = now if now is not None else time.time()
    removed = 0

    for path in temp_root.iterdir():
        if not path.is_dir() or not path.name.startswith(prefix):
            continue
        try:
            age = now - path.stat().st_mtime
        except FileNotFoundError:
            continue
        if age <= max_age_seconds:
            continue

        try:
            shutil.rmtree(path)
            removed += 1
            logger.info(f"Removed orphaned workspace {path.name} (age {age:.0f}s)")
        except OSError as e:
            logger.warning(f"Failed to remove orphaned workspace {path}: {e}")

    return removed


async def purge_expired_clips(
    database: Database,
    storage: ObjectStorage,
    now: datetime = None,
) -> int:
    """
    Delete expired clips, storage object first, then the row.

    A clip whose object cannot be deleted keeps its row so the next sweep
    retries it.

    Returns:
        Number of clip rows deleted
    """
    now = now or datetime.utcnow()

    async with database.session() as session:
        expired = await VideoService(session).list_expired_clips(now)

    if not expired:
        return 0

    deletable = []
    for clip in expired:
        try:
            await storage.delete(clip.storage_key)
            deletable.append(clip.id)
        except Exception as e:
            logger.error(f"Failed to delete clip object {clip.storage_key}: {e}")

    async with database.session() as session:
        deleted = await VideoService(session).delete_clips(deletable)

    logger.info(f"Purged {deleted} expired clips ({len(expired) - len(deletable)} left for retry)")
    return deleted
