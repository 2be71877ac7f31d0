import os
from typing import List, Tuple

from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    """Application settings"""
    APP_NAME: str = "PSD Mockup Compositor API"
    DEBUG: bool = os.getenv("DEBUG", "False").lower() == "true"
    API_PREFIX: str = "/api/v1"
    LOG_TO_FILE: bool = True

    # File storage settings
    OUTPUT_DIR: str = "output"
    MAX_UPLOAD_SIZE: int = 200 * 1024 * 1024  # 200 MB, layered PSDs are large

    # CORS settings
    CORS_ORIGINS: list = ["*"]

    # Compositing defaults
    DEFAULT_PLACEHOLDER_NAMES: List[str] = ["YOUR DESIGN HERE", "Design Here", "Design"]
    DEFAULT_EXPORT_FORMAT: str = "jpg"
    DEFAULT_EXPORT_QUALITY: int = 90
    DEFAULT_IMAGE_FIT: str = "cover"
    BASE_DPI: float = 72.0  # export_dpi is relative to this
    LETTERBOX_COLOR: Tuple[int, int, int] = (252, 252, 252)
    AVAILABLE_LAYER_NAMES_LIMIT: int = 20
    MAX_LAYER_DEPTH: int = 64

    # Each composite holds several full-canvas buffers at once
    MAX_CONCURRENT_MOCKUPS: int = 2

    class Config:
        env_file = ".env"

settings = Settings()
