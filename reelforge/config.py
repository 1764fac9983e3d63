from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional
import os
import tempfile
from pathlib import Path

class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Reelforge Render Queue"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = int(os.getenv("PORT", 8000))
    ALLOWED_ORIGINS: list = []  # Will be set dynamically

    # Database
    DATABASE_URL: str = "sqlite:///./reelforge.db"
    DB_ECHO: bool = False

    # Redis/Celery
    REDIS_URL: str = "redis://localhost:6379/0"
    CELERY_BROKER_URL: str = ""
    CELERY_RESULT_BACKEND: str = ""

    # Storage - "local" writes under BASE_STORAGE_PATH, "supabase" uses the bucket
    STORAGE_BACKEND: str = "local"
    BASE_STORAGE_PATH: Path = Path(os.getenv("STORAGE_PATH", "./storage"))
    PUBLIC_BASE_URL: str = "http://localhost:8000/storage"
    SUPABASE_URL: Optional[str] = None
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = None
    SLIDE_ASSETS_BUCKET: str = "slide-assets"

    # Video compilation
    FFMPEG_BINARY: str = "ffmpeg"
    TEMP_DIR: Path = Path(tempfile.gettempdir())
    VIDEO_WIDTH: int = 1080
    VIDEO_HEIGHT: int = 1920
    VIDEO_FPS: int = 30
    VIDEO_CRF: int = 23
    VIDEO_PRESET: str = "fast"
    SLIDE_DURATION_SECONDS: float = 4

    # Job scheduling / execution
    POSTS_PER_COMBINATION: int = 7
    JOB_TIMEOUT_SECONDS: float = 300
    DOWNLOAD_TIMEOUT_SECONDS: float = 60
    PROCESS_QUEUE_LIMIT: int = 5

    # Social platforms (posting is not implemented upstream yet)
    TIKTOK_CLIENT_KEY: Optional[str] = None
    TIKTOK_CLIENT_SECRET: Optional[str] = None
    INSTAGRAM_ACCESS_TOKEN: Optional[str] = None
    INSTAGRAM_BUSINESS_ACCOUNT_ID: Optional[str] = None

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = False

    def __init__(self, **kwargs):
        super().__init__(**kwargs)

        # Set Celery URLs if not provided
        if not self.CELERY_BROKER_URL:
            self.CELERY_BROKER_URL = self.REDIS_URL
        if not self.CELERY_RESULT_BACKEND:
            self.CELERY_RESULT_BACKEND = self.REDIS_URL

        if self.ENVIRONMENT == "production":
            frontend_url = os.getenv("FRONTEND_URL")
            if frontend_url and not frontend_url.startswith("http"):
                frontend_url = f"https://{frontend_url}"
            self.ALLOWED_ORIGINS = [frontend_url] if frontend_url else ["*"]
        else:
            self.ALLOWED_ORIGINS = ["http://localhost:5173", "http://localhost:3000", "http://localhost:8000"]


@lru_cache()
def get_settings() -> Settings:
    return Settings()
