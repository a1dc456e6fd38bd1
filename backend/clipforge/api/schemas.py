"""Pydantic schemas for API requests and responses."""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field

from clipforge.models.video import AspectRatio, FilterMode


# =============================================================================
# Video Schemas
# =============================================================================

class VideoUploadResponse(BaseModel):
    """Response for a successful upload."""
    video_id: str
    filename: str
    storage_key: str
    status: str


class ClipResponse(BaseModel):
    """A generated clip as shown to its owner."""
    id: str
    filename: str
    timestamp: int
    score: int
    kill_type: Optional[str]
    download_url: str
    created_at: datetime
    expires_at: datetime


class VideoStatusResponse(BaseModel):
    """Status polling response."""
    video_id: str
    status: str
    filename: str
    duration: Optional[float]
    filter_mode: str
    subtitle_enabled: bool
    aspect_ratio: str
    credits_used: int
    clips: List[ClipResponse] = []


# =============================================================================
# Processing Schemas
# =============================================================================

class ProcessRequest(BaseModel):
    """Request to run kill detection and clip generation."""
    video_id: str = Field(..., min_length=1, description="ID returned by the upload")
    filter_mode: FilterMode = Field(FilterMode.ALL, description="all, medium or highlight")
    subtitle_enabled: bool = Field(False, description="Burn transcribed captions into clips")
    aspect_ratio: AspectRatio = Field(AspectRatio.LANDSCAPE, description="16:9, 9:16 or 1:1")


class GeneratedClipResponse(BaseModel):
    """Clip entry in a processing result."""
    clip_id: str
    filename: str
    timestamp: int
    score: int
    kill_type: str


class ProcessResponse(BaseModel):
    """Result of a processing run."""
    success: bool = True
    video_id: str
    total_kills: int
    selected: int
    generated: int
    credits_used: int
    clips: List[GeneratedClipResponse] = []


# =============================================================================
# Credits & System Schemas
# =============================================================================

class CreditsResponse(BaseModel):
    """Credit balance of the requester."""
    user_id: str
    balance: int


class CleanupResponse(BaseModel):
    """Counts from a cleanup sweep."""
    expired_clips_deleted: int
    workspaces_removed: int


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    ffmpeg_available: bool
    ffprobe_available: bool
    templates: List[str]
    running_jobs: int = 0
    message: Optional[str] = None


class ErrorResponse(BaseModel):
    """Error body; ``redirect_url`` only for insufficient credits."""
    error: str
    required: Optional[int] = None
    balance: Optional[int] = None
    redirect_url: Optional[str] = None
