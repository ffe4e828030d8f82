from __future__ import annotations

import random
from typing import Any, List

import pytest
import requests

from eldflow.integrations import (
    GeminiClient,
    GoogleMapsClient,
    IntegrationError,
    IntegrationNotConfigured,
    UnsplashClient,
    strip_html_fence,
)


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, text: str = "") -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class FakeSession:
    def __init__(self, response: Any) -> None:
        self.response = response
        self.calls: List[tuple[str, str, dict]] = []

    def request(self, method: str, url: str, **kwargs):
        self.calls.append((method, url, kwargs))
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def test_distance_matrix_converts_units():
    session = FakeSession(
        FakeResponse(
            payload={
                "rows": [{"elements": [{"distance": {"value": 160934}, "duration": {"value": 7259}}]}],
            }
        )
    )
    client = GoogleMapsClient("maps-key", session=session, timeout=3)
    result = client.distance_duration("Dallas, TX", "Tulsa, OK")
    assert result.miles == pytest.approx(100.0, abs=0.01)
    assert result.minutes == 120

    method, url, kwargs = session.calls[0]
    assert method == "GET"
    assert url.endswith("/distancematrix/json")
    assert kwargs["params"] == {"origins": "Dallas, TX", "destinations": "Tulsa, OK", "key": "maps-key"}
    assert kwargs["timeout"] == 3


def test_distance_matrix_without_rows_is_zero():
    client = GoogleMapsClient("maps-key", session=FakeSession(FakeResponse(payload={"rows": []})))
    result = client.distance_duration("A", "B")
    assert result.miles == 0.0
    assert result.minutes == 0


def test_autocomplete_parses_predictions():
    payload = {"predictions": [{"description": "Tulsa, OK, USA", "place_id": "abc"}, "junk"]}
    client = GoogleMapsClient("maps-key", session=FakeSession(FakeResponse(payload=payload)))
    predictions = client.autocomplete("Tul")
    assert [(p.description, p.place_id) for p in predictions] == [("Tulsa, OK, USA", "abc")]


def test_missing_key_raises_not_configured():
    client = GoogleMapsClient(None, session=FakeSession(FakeResponse(payload={})))
    assert client.configured is False
    with pytest.raises(IntegrationNotConfigured):
        client.autocomplete("Tul")


@pytest.mark.parametrize(
    "response,message",
    [
        (FakeResponse(status_code=500, payload={}, text="boom"), "API request failed with status 500"),
        (requests.exceptions.Timeout(), "request timed out"),
        (requests.exceptions.ConnectionError(), "request failed"),
        (FakeResponse(payload=None), "error parsing response"),
    ],
)
def test_transport_failures_become_integration_errors(response, message):
    client = GoogleMapsClient("maps-key", session=FakeSession(response))
    with pytest.raises(IntegrationError) as excinfo:
        client.autocomplete("Tul")
    assert excinfo.value.message == message
    assert excinfo.value.service == "google_maps"


def test_unsplash_picks_regular_url():
    payload = {
        "results": [
            {"urls": {"regular": "https://images.example/a.jpg"}},
            {"urls": {"regular": "https://images.example/b.jpg"}},
        ]
    }
    session = FakeSession(FakeResponse(payload=payload))
    client = UnsplashClient("unsplash-key", session=session, rng=random.Random(1))
    url = client.random_cover("Dallas")
    assert url in {"https://images.example/a.jpg", "https://images.example/b.jpg"}
    headers = session.calls[0][2]["headers"]
    assert headers["Authorization"] == "Client-ID unsplash-key"


def test_unsplash_without_results_returns_none():
    client = UnsplashClient("unsplash-key", session=FakeSession(FakeResponse(payload={"results": []})))
    assert client.random_cover("Nowhere") is None


def test_gemini_joins_candidate_parts():
    payload = {"candidates": [{"content": {"parts": [{"text": "<h1>Hi"}, {"text": "</h1>"}]}}]}
    session = FakeSession(FakeResponse(payload=payload))
    client = GeminiClient("gem-key", model="gemini-test", session=session)
    assert client.generate_content("hello") == "<h1>Hi</h1>"

    method, url, kwargs = session.calls[0]
    assert method == "POST"
    assert url.endswith("/models/gemini-test:generateContent")
    assert kwargs["params"] == {"key": "gem-key"}
    assert kwargs["json"]["contents"][0]["parts"][0]["text"] == "hello"


@pytest.mark.parametrize(
    "payload",
    [
        {"candidates": []},
        {"candidates": [{"content": {"parts": [{"text": "  "}]}}]},
    ],
)
def test_gemini_unusable_answers_raise(payload):
    client = GeminiClient("gem-key", session=FakeSession(FakeResponse(payload=payload)))
    with pytest.raises(IntegrationError):
        client.generate_content("hello")


def test_strip_html_fence():
    assert strip_html_fence("```html\n<p>ok</p>\n```") == "<p>ok</p>"
    assert strip_html_fence("<p>plain</p>") == "<p>plain</p>"
