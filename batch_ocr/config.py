"""
Configuration management using Pydantic Settings.
Supports environment variables and .env files.
"""

import json
from functools import lru_cache
from typing import Annotated, List, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class GeminiSettings(BaseSettings):
    """Gemini generateContent backend configuration."""

    model_config = SettingsConfigDict(env_prefix="GEMINI_")

    model: str = "gemini-1.5-flash"
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"


def _split_list(v):
    if isinstance(v, str):
        try:
            return json.loads(v)
        except json.JSONDecodeError:
            return [item.strip() for item in v.split(",")]
    return v


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Credentials
    api_keys: Annotated[List[str], NoDecode] = Field(
        default_factory=list,
        description="API keys rotated through when a key is rate limited"
    )

    # Remote OCR
    ocr_backend: Literal["gemini", "vision"] = "gemini"
    request_timeout_seconds: float = 60.0

    # API Server
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_debug: bool = False
    api_cors_origins: Annotated[List[str], NoDecode] = ["http://localhost:3000"]

    # Processing
    max_image_size_mb: int = 20
    max_batch_size: int = 15

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "console"] = "json"

    # Nested settings
    gemini: GeminiSettings = Field(default_factory=GeminiSettings)

    @field_validator("api_keys", "api_cors_origins", mode="before")
    @classmethod
    def parse_list(cls, v):
        return _split_list(v)

    @property
    def max_image_size_bytes(self) -> int:
        return self.max_image_size_mb * 1024 * 1024


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
