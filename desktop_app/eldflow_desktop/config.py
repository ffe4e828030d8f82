"""Configuration helpers for the desktop client."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

DEFAULT_API_BASE_URL = "http://127.0.0.1:3000"
DEFAULT_NOTIFICATION_SECONDS = 4


@dataclass(slots=True)
class AppConfig:
    """Values the desktop client needs at start up."""

    api_base_url: str = DEFAULT_API_BASE_URL
    api_token: Optional[str] = None
    email: Optional[str] = None
    notification_seconds: int = DEFAULT_NOTIFICATION_SECONDS


def load_config(env_path: Optional[Path] = None) -> AppConfig:
    """Load configuration, reading an optional `.env` file next to the package."""

    env_path = env_path or Path(__file__).resolve().parent.parent / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    return AppConfig(
        api_base_url=os.getenv("ELDFLOW_API_BASE_URL", DEFAULT_API_BASE_URL),
        api_token=os.getenv("ELDFLOW_API_TOKEN") or None,
        email=os.getenv("ELDFLOW_EMAIL") or None,
        notification_seconds=int(os.getenv("ELDFLOW_NOTIFICATION_SECONDS", DEFAULT_NOTIFICATION_SECONDS)),
    )


__all__ = ["AppConfig", "load_config"]
