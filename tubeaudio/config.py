"""Application configuration via environment variables."""

from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    # Artifact storage
    downloads_dir: str = "downloads"
    artifact_ttl_hours: int = 24

    # External tools
    ffmpeg_path: str = "ffmpeg"
    ytdlp_path: str = "yt-dlp"

    # Conversion
    audio_bitrate: int = 128
    audio_quality: str = "highestaudio"
    max_bulk_urls: int = 10
    max_concurrent_jobs: int = 4

    # Client contract
    poll_interval_seconds: float = 2.0

    # Server
    host: str = "0.0.0.0"
    port: int = 5000
    log_level: str = "INFO"
    cors_origins: List[str] = ["http://localhost:5173", "http://localhost:3000"]

    # Optional label shown in /health
    instance_name: Optional[str] = None

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "TUBEAUDIO_",
    }
