"""API routes."""
import asyncio
import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, File, Header, Request, UploadFile
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from clipforge.config import Settings
from clipforge.db.database import get_db
from clipforge.errors import (
    AuthenticationError,
    AuthorizationError,
    ClipExpiredError,
    ClipNotFoundError,
    InsufficientCreditsError,
    ProcessingError,
    ValidationError,
    VideoNotFoundError,
)
from clipforge.pipeline.orchestrator import JobConfig
from clipforge.services.cleanup_service import purge_expired_clips, sweep_orphaned_workspaces
from clipforge.services.credit_ledger import CreditLedger
from clipforge.services.storage_service import video_storage_key
from clipforge.services.video_service import VideoService
from clipforge.utils.ffmpeg import check_ffmpeg_available, check_ffprobe_available
from clipforge.api.schemas import (
    CleanupResponse,
    ClipResponse,
    CreditsResponse,
    HealthResponse,
    ProcessRequest,
    ProcessResponse,
    VideoStatusResponse,
    VideoUploadResponse,
)

router = APIRouter()
logger = logging.getLogger(__name__)

UPLOAD_CHUNK_BYTES = 1024 * 1024

CONTENT_TYPE_EXTENSIONS = {
    "video/mp4": "mp4",
    "video/quicktime": "mov",
    "video/x-msvideo": "avi",
}


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    """Authenticated user, as asserted by the upstream auth proxy."""
    if not x_user_id or not x_user_id.strip():
        raise AuthenticationError()
    return x_user_id.strip()


# =============================================================================
# Health & System
# =============================================================================

@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """Check API health and dependencies."""
    config = get_settings(request)
    ffmpeg_ok = check_ffmpeg_available(config)
    ffprobe_ok = check_ffprobe_available(config)
    templates = request.app.state.templates.available

    all_ok = ffmpeg_ok and ffprobe_ok and bool(templates)

    message = None
    if not all_ok:
        missing = []
        if not ffmpeg_ok:
            missing.append("ffmpeg")
        if not ffprobe_ok:
            missing.append("ffprobe")
        if not templates:
            missing.append("kill templates")
        message = f"Missing dependencies: {', '.join(missing)}"

    return HealthResponse(
        status="healthy" if all_ok else "degraded",
        ffmpeg_available=ffmpeg_ok,
        ffprobe_available=ffprobe_ok,
        templates=templates,
        running_jobs=request.app.state.job_runner.running_jobs,
        message=message,
    )


# =============================================================================
# Videos
# =============================================================================

def _extension_for(file: UploadFile) -> str:
    suffix = Path(file.filename or "").suffix.lower().lstrip(".")
    if suffix in CONTENT_TYPE_EXTENSIONS.values():
        return suffix
    return CONTENT_TYPE_EXTENSIONS.get(file.content_type, "mp4")


@router.post("/videos", response_model=VideoUploadResponse)
async def upload_video(
    request: Request,
    file: UploadFile = File(...),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Upload a gameplay video for later processing."""
    config = get_settings(request)
    storage = request.app.state.storage

    if file.content_type not in config.allowed_content_types:
        raise ValidationError(
            f"Rejected content type {file.content_type}",
            public_message="Unsupported file type. Use MP4, MOV or AVI.",
        )

    balance = await CreditLedger(db).get_balance(user_id)
    if balance <= 0:
        raise InsufficientCreditsError(1, balance, config.credits_redirect_url)

    video_id = uuid.uuid4().hex
    extension = _extension_for(file)
    storage_key = video_storage_key(video_id, extension)

    temp_path = Path(config.temp_root) / f"upload-{video_id}.{extension}"
    temp_path.parent.mkdir(parents=True, exist_ok=True)

    try:
        size = 0
        with open(temp_path, "wb") as f:
            while True:
                chunk = await file.read(UPLOAD_CHUNK_BYTES)
                if not chunk:
                    break
                size += len(chunk)
                if size > config.max_upload_bytes:
                    raise ValidationError(
                        f"Upload exceeds {config.max_upload_bytes} bytes",
                        public_message="File is too large",
                    )
                f.write(chunk)

        if size == 0:
            raise ValidationError("Empty upload", public_message="Uploaded file is empty")

        await storage.put_file(storage_key, temp_path, file.content_type)
    finally:
        temp_path.unlink(missing_ok=True)

    try:
        await VideoService(db).create_video(
            video_id=video_id,
            user_id=user_id,
            filename=file.filename or f"{video_id}.{extension}",
            content_type=file.content_type,
            storage_key=storage_key,
        )
    except Exception as e:
        logger.error(f"Failed to record upload {video_id}, deleting stored object: {e}")
        await storage.delete(storage_key)
        raise ProcessingError(str(e), public_message="Upload failed") from e

    logger.info(f"Uploaded video {video_id} for {user_id} ({size} bytes)")
    return VideoUploadResponse(
        video_id=video_id,
        filename=file.filename or f"{video_id}.{extension}",
        storage_key=storage_key,
        status="uploaded",
    )


@router.post("/process", response_model=ProcessResponse)
async def process_video(
    body: ProcessRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
):
    """Detect kills and generate clips. Runs to completion within the request."""
    # Owner check comes before the duplicate-job check
    async with request.app.state.database.session() as session:
        video = await VideoService(session).get_video(body.video_id)
    if not video:
        raise VideoNotFoundError()
    if video.user_id != user_id:
        raise AuthorizationError()

    orchestrator = request.app.state.orchestrator
    job_config = JobConfig(
        filter_mode=body.filter_mode,
        subtitle_enabled=body.subtitle_enabled,
        aspect_ratio=body.aspect_ratio,
    )

    result = await request.app.state.job_runner.run(
        body.video_id,
        lambda: orchestrator.run(body.video_id, user_id, job_config),
    )
    return result.to_dict()


@router.get("/status/{video_id}", response_model=VideoStatusResponse)
async def get_status(
    video_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Poll a video's status and its clips."""
    service = VideoService(db)
    video = await service.get_video(video_id)
    if not video:
        raise VideoNotFoundError()
    if video.user_id != user_id:
        raise AuthorizationError()

    clips = await service.list_clips(video_id)
    return VideoStatusResponse(
        video_id=video.id,
        status=video.status.value,
        filename=video.filename,
        duration=video.duration,
        filter_mode=video.filter_mode.value,
        subtitle_enabled=video.subtitle_enabled,
        aspect_ratio=video.aspect_ratio.value,
        credits_used=video.credits_used,
        clips=[
            ClipResponse(
                id=clip.id,
                filename=clip.filename,
                timestamp=clip.timestamp,
                score=clip.score,
                kill_type=clip.kill_type,
                download_url=f"/api/download/{clip.id}",
                created_at=clip.created_at,
                expires_at=clip.expires_at,
            )
            for clip in clips
        ],
    )


@router.get("/download/{clip_id}")
async def download_clip(
    clip_id: str,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Redirect to a short-lived signed URL for the clip."""
    config = get_settings(request)
    service = VideoService(db)

    clip = await service.get_clip(clip_id)
    if not clip:
        raise ClipNotFoundError()

    video = await service.get_video(clip.video_id)
    if not video or video.user_id != user_id:
        raise AuthorizationError(public_message="You do not have access to this clip")

    if clip.is_expired(datetime.utcnow()):
        raise ClipExpiredError()

    url = await request.app.state.storage.signed_download_url(
        clip.storage_key, config.download_url_ttl_seconds
    )
    return RedirectResponse(url, status_code=307)


# =============================================================================
# Credits
# =============================================================================

@router.get("/credits", response_model=CreditsResponse)
async def get_credits(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Credit balance of the requester."""
    balance = await CreditLedger(db).get_balance(user_id)
    return CreditsResponse(user_id=user_id, balance=balance)


# =============================================================================
# Maintenance
# =============================================================================

@router.post("/cron/cleanup", response_model=CleanupResponse)
async def cron_cleanup(request: Request, authorization: Optional[str] = Header(None)):
    """Purge expired clips and orphaned workspaces."""
    config = get_settings(request)
    if config.cron_secret and authorization != f"Bearer {config.cron_secret}":
        raise AuthenticationError()

    deleted = await purge_expired_clips(request.app.state.database, request.app.state.storage)
    removed = await asyncio.to_thread(
        sweep_orphaned_workspaces,
        config.temp_root,
        config.workspace_prefix,
        config.orphan_workspace_max_age_seconds,
    )
    return CleanupResponse(expired_clips_deleted=deleted, workspaces_removed=removed)
