"""
Application Configuration

Settings are loaded from environment variables (and an optional .env file)
using pydantic-settings. Missing required values (DATABASE_URL) or
out-of-range compression settings fail at import time, which aborts
process startup rather than surfacing per request.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

MIB = 1024 * 1024


class Settings(BaseSettings):
    """Runtime configuration for the student registration API."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Environment
    python_env: str = "development"

    # Infrastructure
    database_url: str
    redis_url: str = "redis://localhost:6379/0"
    cors_origins: str = "http://localhost:3000"

    # Media storage root; uploads live under <media_root>/uploads/
    media_root: Path = Path("var/media")

    # Draft lifecycle
    draft_expiry_minutes: int = Field(default=30, ge=1)
    draft_sweep_interval_minutes: int = Field(default=10, ge=1)

    # Compression
    image_max_width: int = Field(default=1920, ge=1)
    image_max_height: int = Field(default=1080, ge=1)
    image_jpeg_quality: int = Field(default=85, ge=1, le=100)
    video_crf: int = Field(default=23, ge=0, le=51)
    ffmpeg_path: str | None = None

    # Request body cap for upload endpoints (100 MB video + 5 MB image + form)
    max_upload_request_bytes: int = 110 * MIB

    # Password hashing
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    @property
    def is_development(self) -> bool:
        return self.python_env.lower() == "development"

    @property
    def is_production(self) -> bool:
        return self.python_env.lower() == "production"

    @property
    def cors_origins_list(self) -> list[str]:
        """CORS origins as a list (comma-separated in the environment)."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def uploads_root(self) -> Path:
        """Directory containing the images/ and videos/ media subtrees."""
        return self.media_root / "uploads"


@lru_cache
def get_settings() -> Settings:
    """Get the cached settings instance."""
    return Settings()


settings = get_settings()
