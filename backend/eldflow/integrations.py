"""Clients for the Google Maps, Unsplash and Gemini HTTP APIs."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

METERS_PER_MILE = 1609.34


class IntegrationError(RuntimeError):
    """An external API call failed or returned something unusable."""

    def __init__(self, service: str, message: str) -> None:
        super().__init__(f"{service}: {message}")
        self.service = service
        self.message = message


class IntegrationNotConfigured(IntegrationError):
    def __init__(self, service: str) -> None:
        super().__init__(service, "API key is not configured")


@dataclass(frozen=True)
class DistanceDuration:
    miles: float
    minutes: int


@dataclass(frozen=True)
class PlacePrediction:
    description: str
    place_id: str


class _HttpClient:
    service = "http"

    def __init__(self, api_key: Optional[str], *, timeout: float = 15, session: Optional[requests.Session] = None) -> None:
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _require_key(self) -> str:
        if not self.api_key:
            raise IntegrationNotConfigured(self.service)
        return self.api_key

    def _request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        kwargs.setdefault("timeout", self.timeout)
        try:
            response = self.session.request(method, url, **kwargs)
        except requests.exceptions.Timeout as exc:
            logger.error("%s request timed out", self.service)
            raise IntegrationError(self.service, "request timed out") from exc
        except requests.exceptions.RequestException as exc:
            logger.error("%s request failed: %s", self.service, exc)
            raise IntegrationError(self.service, "request failed") from exc
        if response.status_code >= 400:
            logger.error("%s API error: %s - %s", self.service, response.status_code, response.text)
            raise IntegrationError(self.service, f"API request failed with status {response.status_code}")
        try:
            return response.json()
        except ValueError as exc:
            logger.error("%s returned a non JSON body", self.service)
            raise IntegrationError(self.service, "error parsing response") from exc


class GoogleMapsClient(_HttpClient):
    service = "google_maps"
    autocomplete_url = "https://maps.googleapis.com/maps/api/place/autocomplete/json"
    distance_matrix_url = "https://maps.googleapis.com/maps/api/distancematrix/json"

    def autocomplete(self, text: str) -> List[PlacePrediction]:
        key = self._require_key()
        data = self._request("GET", self.autocomplete_url, params={"input": text, "key": key})
        predictions: List[PlacePrediction] = []
        for item in data.get("predictions") or []:
            if not isinstance(item, dict):
                continue
            predictions.append(
                PlacePrediction(description=str(item.get("description", "")), place_id=str(item.get("place_id", "")))
            )
        return predictions

    def distance_duration(self, origin: str, destination: str) -> DistanceDuration:
        key = self._require_key()
        data = self._request(
            "GET",
            self.distance_matrix_url,
            params={"origins": origin, "destinations": destination, "key": key},
        )
        try:
            element = data["rows"][0]["elements"][0]
            meters = float(element["distance"]["value"])
            seconds = int(element["duration"]["value"])
        except (KeyError, IndexError, TypeError, ValueError):
            logger.info("No distance matrix result for %r -> %r", origin, destination)
            return DistanceDuration(miles=0.0, minutes=0)
        return DistanceDuration(miles=meters / METERS_PER_MILE, minutes=seconds // 60)


class UnsplashClient(_HttpClient):
    service = "unsplash"
    search_url = "https://api.unsplash.com/search/photos"

    def __init__(self, api_key: Optional[str], *, rng: Optional[random.Random] = None, **kwargs) -> None:
        super().__init__(api_key, **kwargs)
        self.rng = rng or random.Random()

    def random_cover(self, topic: str) -> Optional[str]:
        key = self._require_key()
        data = self._request(
            "GET",
            self.search_url,
            params={"query": topic},
            headers={"Authorization": f"Client-ID {key}", "Accept-Version": "v1"},
        )
        urls = [
            photo["urls"]["regular"]
            for photo in data.get("results") or []
            if isinstance(photo, dict) and photo.get("urls", {}).get("regular")
        ]
        if not urls:
            return None
        return self.rng.choice(urls)


class GeminiClient(_HttpClient):
    service = "gemini"
    base_url = "https://generativelanguage.googleapis.com/v1beta/models"

    def __init__(self, api_key: Optional[str], model: str = "gemini-1.5-flash", **kwargs) -> None:
        super().__init__(api_key, **kwargs)
        self.model = model

    def generate_content(self, prompt: str) -> str:
        key = self._require_key()
        data = self._request(
            "POST",
            f"{self.base_url}/{self.model}:generateContent",
            params={"key": key},
            json={"contents": [{"role": "user", "parts": [{"text": prompt}]}]},
        )
        try:
            parts = data["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError) as exc:
            raise IntegrationError(self.service, "response contained no candidates") from exc
        text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
        if not text.strip():
            raise IntegrationError(self.service, "empty response")
        return text


def strip_html_fence(text: str) -> str:
    """Drop the markdown code fence Gemini likes to wrap HTML answers in."""
    cleaned = text.strip()
    if cleaned.startswith("```html"):
        cleaned = cleaned[len("```html"):]
    if cleaned.endswith("```"):
        cleaned = cleaned[: -len("```")]
    return cleaned.strip()
