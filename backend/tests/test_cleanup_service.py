"""Tests for expired clip purging and orphaned workspace sweeping."""
import os
import time
from datetime import datetime, timedelta

import pytest
import pytest_asyncio

from clipforge.db.database import Database
from clipforge.models import Clip, CreditAccount
from clipforge.services.cleanup_service import purge_expired_clips, sweep_orphaned_workspaces
from clipforge.services.storage_service import LocalObjectStorage
from clipforge.services.video_service import VideoService


def _age(path, seconds):
    stamp = time.time() - seconds
    os.utime(path, (stamp, stamp))


def test_sweep_removes_only_old_prefixed_dirs(tmp_path):
    old = tmp_path / "clipforge-old"
    fresh = tmp_path / "clipforge-fresh"
    unrelated = tmp_path / "other-old"
    for path in (old, fresh, unrelated):
        path.mkdir()
        (path / "frame_000001.jpg").write_bytes(b"x")
    _age(old, 2 * 3600)
    _age(unrelated, 2 * 3600)

    removed = sweep_orphaned_workspaces(tmp_path, "clipforge-", 3600)

    assert removed == 1
    assert not old.exists()
    assert fresh.exists()
    assert unrelated.exists()


def test_sweep_missing_root(tmp_path):
    assert sweep_orphaned_workspaces(tmp_path / "nope") == 0


class _FlakyStorage(LocalObjectStorage):
    def __init__(self, root, broken_keys):
        super().__init__(root)
        self.broken_keys = set(broken_keys)

    async def delete(self, key):
        if key in self.broken_keys:
            raise OSError("bucket unavailable")
        await super().delete(key)


@pytest_asyncio.fixture
async def database(tmp_path):
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'cleanup.db'}")
    await database.init_schema()
    async with database.session() as session:
        session.add(CreditAccount(user_id="alice", balance=1))
        await session.commit()
        await VideoService(session).create_video("vid1", "alice", "a.mp4", "video/mp4", "videos/vid1.mp4")
    yield database
    await database.close()


async def _add_clip(database, storage, clip_id, expires_at):
    key = f"clips/vid1/{clip_id}.mp4"
    await storage.put(key, b"clip", "video/mp4")
    async with database.session() as session:
        VideoService(session).add_clip(
            clip_id=clip_id,
            video_id="vid1",
            filename=f"{clip_id}.mp4",
            timestamp=10,
            score=10,
            kill_type="single",
            confidence=0.9,
            storage_key=key,
            created_at=expires_at - timedelta(minutes=10),
            expires_at=expires_at,
        )
        await session.commit()
    return key


async def _clip_ids(database):
    async with database.session() as session:
        return sorted(c.id for c in await VideoService(session).list_clips("vid1"))


@pytest.mark.asyncio
async def test_purge_expired_clips(database, tmp_path):
    storage = LocalObjectStorage(tmp_path / "objects")
    now = datetime.utcnow()
    expired_key = await _add_clip(database, storage, "clip_expired", now - timedelta(minutes=1))
    live_key = await _add_clip(database, storage, "clip_live", now + timedelta(minutes=5))

    deleted = await purge_expired_clips(database, storage, now)

    assert deleted == 1
    assert await _clip_ids(database) == ["clip_live"]
    assert not storage.exists(expired_key)
    assert storage.exists(live_key)


@pytest.mark.asyncio
async def test_purge_keeps_row_when_object_delete_fails(database, tmp_path):
    now = datetime.utcnow()
    setup_storage = LocalObjectStorage(tmp_path / "objects")
    stuck_key = await _add_clip(database, setup_storage, "clip_stuck", now - timedelta(minutes=1))
    await _add_clip(database, setup_storage, "clip_gone", now - timedelta(minutes=2))

    storage = _FlakyStorage(tmp_path / "objects", broken_keys={stuck_key})
    deleted = await purge_expired_clips(database, storage, now)

    assert deleted == 1
    assert await _clip_ids(database) == ["clip_stuck"]


@pytest.mark.asyncio
async def test_expired_clip_reports_expiry(database, tmp_path):
    storage = LocalObjectStorage(tmp_path / "objects")
    now = datetime.utcnow()
    await _add_clip(database, storage, "clip_old", now - timedelta(seconds=1))

    async with database.session() as session:
        clip = await session.get(Clip, "clip_old")

    assert clip.is_expired(now)
    assert not clip.is_expired(now - timedelta(minutes=1))
