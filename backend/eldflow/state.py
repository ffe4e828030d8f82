from __future__ import annotations

import logging
from threading import RLock
from typing import Any, Callable, Dict, Optional

from .config import Settings
from .integrations import GeminiClient, GoogleMapsClient, UnsplashClient

logger = logging.getLogger(__name__)


class RuntimeState:
    """Process wide handles shared by all requests.

    External API clients are expensive to set up (HTTP connection pools), so
    each one is built on first use, exactly once, and handed out read-only
    afterwards. The instance lives on ``app.state.runtime_state``.
    """

    def __init__(self, base_settings: Settings):
        self._lock = RLock()
        self._settings = base_settings
        self._clients: Dict[str, Any] = {}
        self._factories: Dict[str, Callable[[], Any]] = {
            "google_maps": lambda: GoogleMapsClient(
                base_settings.google_maps_api_key, timeout=base_settings.http_timeout_seconds
            ),
            "unsplash": lambda: UnsplashClient(
                base_settings.unsplash_api_key, timeout=base_settings.http_timeout_seconds
            ),
            "gemini": lambda: GeminiClient(
                base_settings.gemini_api_key,
                model=base_settings.gemini_model,
                timeout=base_settings.http_timeout_seconds,
            ),
        }

    @property
    def settings(self) -> Settings:
        return self._settings

    def _client(self, name: str) -> Any:
        with self._lock:
            client = self._clients.get(name)
            if client is None:
                logger.info("Initialising %s client", name)
                client = self._factories[name]()
                self._clients[name] = client
            return client

    @property
    def google_maps(self) -> GoogleMapsClient:
        return self._client("google_maps")

    @property
    def unsplash(self) -> UnsplashClient:
        return self._client("unsplash")

    @property
    def gemini(self) -> GeminiClient:
        return self._client("gemini")

    def override(
        self,
        *,
        google_maps: Optional[Any] = None,
        unsplash: Optional[Any] = None,
        gemini: Optional[Any] = None,
    ) -> None:
        with self._lock:
            for name, client in (("google_maps", google_maps), ("unsplash", unsplash), ("gemini", gemini)):
                if client is not None:
                    self._clients[name] = client

    def reset(self) -> None:
        with self._lock:
            self._clients.clear()

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "google_maps_configured": bool(self._settings.google_maps_api_key),
                "unsplash_configured": bool(self._settings.unsplash_api_key),
                "gemini_configured": bool(self._settings.gemini_api_key),
                "gemini_model": self._settings.gemini_model,
                "initialised_clients": sorted(self._clients),
            }
