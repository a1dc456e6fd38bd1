"""Application configuration."""
from pathlib import Path
from typing import List, Literal
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from clipforge.pipeline.config import DetectionConfig


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    # App settings
    app_name: str = "ClipForge"
    debug: bool = False

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000

    # Database
    database_url: str = "sqlite+aiosqlite:///./data/clipforge.db"

    # Data directories
    data_dir: Path = Path("./data")
    temp_root: Path = Path("./data/tmp")  # Per-job workspaces live here
    templates_dir: Path = Path("./templates")  # kill.png, double_kill.png, triple_kill.png
    workspace_prefix: str = "clipforge-"
    orphan_workspace_max_age_seconds: int = 60 * 60

    # Job budget
    job_timeout_seconds: float = 50.0
    checkpoint_every_frames: int = 10
    sample_interval_seconds: int = 1

    # Upload limits
    max_upload_bytes: int = 5 * 1024 * 1024 * 1024  # 5 GiB
    allowed_content_types: List[str] = [
        "video/mp4",
        "video/quicktime",
        "video/x-msvideo",
    ]
    max_video_duration_seconds: float = 4 * 60 * 60

    # Clips
    clip_pre_roll_seconds: float = 10.0
    clip_post_roll_seconds: float = 5.0
    clip_ttl_minutes: int = 10
    download_url_ttl_seconds: int = 300
    credits_redirect_url: str = "/credits"

    # FFmpeg settings
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"

    # Export settings
    export_video_codec: str = "libx264"
    export_video_preset: str = "veryfast"
    export_video_crf: int = 20
    export_audio_codec: str = "aac"
    export_audio_bitrate: str = "192k"
    frame_jpeg_quality: int = 2
    subtitle_style: str = (
        "FontName=Noto Sans JP,FontSize=24,PrimaryColour=&HFFFFFF,"
        "OutlineColour=&H000000,BorderStyle=3,Outline=2"
    )

    # Object storage
    storage_backend: Literal["s3", "local"] = "local"
    storage_local_dir: Path = Path("./data/objects")
    s3_endpoint_url: str = ""
    s3_region: str = "auto"
    s3_bucket: str = "clipforge"
    s3_access_key_id: str = ""
    s3_secret_access_key: str = ""

    # Speech-to-text (Groq, OpenAI-compatible API)
    groq_api_key: str = ""
    groq_base_url: str = "https://api.groq.com/openai/v1"
    transcription_model: str = "whisper-large-v3"
    transcription_language: str = "ja"
    transcription_timeout_seconds: float = 60.0

    # Detection heuristics
    detection: DetectionConfig = Field(default_factory=DetectionConfig)

    # Scheduled cleanup; empty disables the bearer check
    cron_secret: str = ""

    # Frontend
    frontend_url: str = "http://localhost:3000"


def ensure_directories(config: Settings) -> None:
    """Create the data directories the application writes into."""
    config.data_dir.mkdir(parents=True, exist_ok=True)
    config.temp_root.mkdir(parents=True, exist_ok=True)
    if config.storage_backend == "local":
        config.storage_local_dir.mkdir(parents=True, exist_ok=True)


settings = Settings()
