from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application runtime configuration."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    app_name: str = "ELDFlow"
    environment: str = "development"
    host: str = os.getenv("ELDFLOW_HOST", "127.0.0.1")
    port: int = int(os.getenv("ELDFLOW_PORT", "3000"))
    log_level: str = os.getenv("ELDFLOW_LOG_LEVEL", "INFO")
    cors_origins: List[str] = Field(
        default_factory=lambda: [
            origin.strip()
            for origin in os.getenv("ELDFLOW_CORS_ORIGINS", "http://127.0.0.1:5173,http://localhost:5173").split(",")
            if origin.strip()
        ]
    )

    sqlite_path: Path = Path(os.getenv("ELDFLOW_SQLITE_PATH", "./data/eldflow.db"))

    token_secret: str = os.getenv("ELDFLOW_TOKEN_SECRET", "change-me")
    token_ttl_minutes: int = int(os.getenv("ELDFLOW_TOKEN_TTL", str(7 * 24 * 60)))

    google_maps_api_key: Optional[str] = os.getenv("GOOGLE_MAPS_API_KEY")
    unsplash_api_key: Optional[str] = os.getenv("UNSPLASH_API_KEY")
    gemini_api_key: Optional[str] = os.getenv("GEMINI_API_KEY")
    gemini_model: str = os.getenv("ELDFLOW_GEMINI_MODEL", "gemini-1.5-flash")
    http_timeout_seconds: float = float(os.getenv("ELDFLOW_HTTP_TIMEOUT", "15"))

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: str | List[str]) -> List[str]:
        if isinstance(value, list):
            return value
        if not value:
            return []
        return [origin.strip() for origin in value.split(",") if origin.strip()]


settings = Settings()

settings.sqlite_path.parent.mkdir(parents=True, exist_ok=True)
