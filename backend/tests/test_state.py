from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

from eldflow.config import Settings
from eldflow.integrations import GeminiClient, GoogleMapsClient
from eldflow.state import RuntimeState


def _settings(**overrides) -> Settings:
    values = {
        "google_maps_api_key": "maps-key",
        "unsplash_api_key": None,
        "gemini_api_key": "gem-key",
        "gemini_model": "gemini-test",
    }
    values.update(overrides)
    return Settings(**values)


def test_clients_are_built_once_and_shared():
    state = RuntimeState(_settings())
    with ThreadPoolExecutor(max_workers=8) as pool:
        clients = list(pool.map(lambda _: state.gemini, range(32)))
    assert all(client is clients[0] for client in clients)
    assert isinstance(clients[0], GeminiClient)
    assert clients[0].model == "gemini-test"
    assert state.google_maps is state.google_maps
    assert isinstance(state.google_maps, GoogleMapsClient)


def test_snapshot_reports_configuration():
    state = RuntimeState(_settings())
    snapshot = state.snapshot()
    assert snapshot["google_maps_configured"] is True
    assert snapshot["unsplash_configured"] is False
    assert snapshot["gemini_configured"] is True
    assert snapshot["initialised_clients"] == []

    assert state.unsplash.configured is False
    assert state.snapshot()["initialised_clients"] == ["unsplash"]


def test_override_and_reset():
    state = RuntimeState(_settings())
    marker = object()
    state.override(gemini=marker)
    assert state.gemini is marker
    state.reset()
    assert isinstance(state.gemini, GeminiClient)
