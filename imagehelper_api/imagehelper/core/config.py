from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from functools import lru_cache
from typing import Optional

from imagehelper import __version__


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="IMAGEHELPER_", case_sensitive=False)

    # Application
    app_name: str = "ImageHelper"
    environment: str = "development"

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    # Output
    default_format: str = "png"
    jpeg_quality: int = Field(default=95, ge=1, le=100)

    # Watermark
    watermark_font_name: str = "DejaVuSans"
    watermark_font_size: int = Field(default=24, gt=0)
    watermark_offset_x: int = 10
    watermark_offset_y: int = 10
    watermark_color: str = "white"

    # QR code
    qr_border: int = Field(default=4, ge=0)

    # Fetcher
    fetch_timeout: Optional[float] = None  # seconds, None = no internal deadline
    max_download_bytes: Optional[int] = None
    user_agent: str = f"ImageHelper/{__version__}"

    @field_validator('default_format')
    @classmethod
    def validate_default_format(cls, v):
        if v.lower() not in ("png", "jpeg", "jpg", "bmp"):
            raise ValueError(f"default_format must be png, jpeg or bmp, got '{v}'")
        return v.lower()

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log level: {v}")
        return level

    @property
    def watermark_offset(self) -> tuple:
        return (self.watermark_offset_x, self.watermark_offset_y)

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance"""
    return Settings()


# Create global settings instance
settings = get_settings()
