"""
Application configuration.

Settings come from environment variables, optionally loaded from a `.env`
file at the project root.
"""

import os
import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal, Tuple

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

# Path to .env file
ENV_PATH = Path(__file__).parent.parent / ".env"


class Settings(BaseModel):
    """Runtime settings for the viewer."""
    backend_url: str = "http://localhost:8080"
    request_timeout: float = Field(30.0, gt=0)
    ma_windows: Tuple[int, ...] = (5, 10, 20)
    ma_source: Literal['local', 'remote'] = 'local'
    refresh_concurrency: int = Field(4, ge=1)
    default_range_days: int = Field(365, ge=1)
    log_level: str = 'INFO'

    @field_validator('backend_url')
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip('/')

    @field_validator('ma_windows', mode='before')
    @classmethod
    def parse_windows(cls, v):
        """Accept a comma separated string such as "5,10,20"."""
        if isinstance(v, str):
            v = [part.strip() for part in v.split(',') if part.strip()]
        windows = tuple(int(part) for part in v)
        if any(w < 1 for w in windows):
            raise ValueError('Moving-average windows must be positive integers')
        return windows

    @field_validator('log_level')
    @classmethod
    def normalize_level(cls, v: str) -> str:
        return v.strip().upper()


def load_settings() -> Settings:
    """Build settings from the environment (and .env, if present)."""
    load_dotenv(ENV_PATH)

    return Settings(
        backend_url=os.getenv("BACKEND_URL", "http://localhost:8080"),
        request_timeout=float(os.getenv("REQUEST_TIMEOUT", "30")),
        ma_windows=os.getenv("MA_WINDOWS", "5,10,20"),
        ma_source=os.getenv("MA_SOURCE", "local").strip().lower(),
        refresh_concurrency=int(os.getenv("REFRESH_CONCURRENCY", "4")),
        default_range_days=int(os.getenv("DEFAULT_RANGE_DAYS", "365")),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance used by the web layer."""
    settings = load_settings()
    logger.debug(f"Loaded settings: backend={settings.backend_url}, "
                 f"windows={settings.ma_windows}, ma_source={settings.ma_source}")
    return settings
