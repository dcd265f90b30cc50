from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import AnyHttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """App configuration (env-friendly).

    Tip: put GEMINI_API_KEY into a local .env file, never into the source tree.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Seoul Bites API"
    version: str = "0.1.0"

    gemini_api_key: Optional[str] = None
    gemini_base_url: AnyHttpUrl = "https://generativelanguage.googleapis.com/v1beta"
    search_model: str = "gemini-2.5-flash"
    chat_model: str = "gemini-3-pro-preview"

    http_timeout_s: float = 60.0

    # Locale qualifier appended to search queries: "<query> in <city>, <country>"
    city: str = "Seoul"
    country: str = "Korea"

    default_center_lat: float = 37.5665
    default_center_lon: float = 126.9780
    default_zoom: int = 11

    directions_base_url: AnyHttpUrl = "https://www.google.com/maps/dir/"

    search_cache_ttl_s: float = 120.0
    search_cache_max_size: int = 128

    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings()
