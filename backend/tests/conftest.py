from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Generator, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from eldflow import models
from eldflow.config import settings
from eldflow.database import get_db
from eldflow.integrations import DistanceDuration, IntegrationError, PlacePrediction
from eldflow.main import app
from eldflow.state import RuntimeState


class FakeMaps:
    service = "google_maps"

    def __init__(self, configured: bool = True, fail: bool = False) -> None:
        self.configured = configured
        self.fail = fail
        self.distance_calls: List[tuple[str, str]] = []

    def distance_duration(self, origin: str, destination: str) -> DistanceDuration:
        self.distance_calls.append((origin, destination))
        if self.fail:
            raise IntegrationError(self.service, "request failed")
        return DistanceDuration(miles=120.5, minutes=130)

    def autocomplete(self, text: str) -> List[PlacePrediction]:
        if self.fail:
            raise IntegrationError(self.service, "request failed")
        return [
            PlacePrediction(description=f"{text}, TX, USA", place_id="place-1"),
            PlacePrediction(description=f"{text}, OK, USA", place_id="place-2"),
        ]


class FakeUnsplash:
    service = "unsplash"

    def __init__(self, configured: bool = True, url: Optional[str] = "https://images.example/cover.jpg") -> None:
        self.configured = configured
        self.url = url

    def random_cover(self, topic: str) -> Optional[str]:
        return self.url


class FakeGemini:
    service = "gemini"

    def __init__(self, configured: bool = True, answer: str = "```html\n<h1>Route tips</h1>\n```", fail: bool = False) -> None:
        self.configured = configured
        self.answer = answer
        self.fail = fail
        self.prompts: List[str] = []

    def generate_content(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.fail:
            raise IntegrationError(self.service, "API request failed with status 500")
        return self.answer


@pytest.fixture(scope="session")
def temp_db_path() -> Generator[Path, None, None]:
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "test.db"
        yield path


@pytest.fixture(scope="session")
def engine(temp_db_path: Path):
    url = f"sqlite:///{temp_db_path}"
    engine = create_engine(url, connect_args={"check_same_thread": False}, future=True)
    models.Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture(scope="function")
def session(engine) -> Generator[Session, None, None]:
    connection = engine.connect()
    transaction = connection.begin()
    SessionTesting = sessionmaker(bind=connection, autoflush=False, autocommit=False, future=True)
    session = SessionTesting()
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture()
def fake_maps() -> FakeMaps:
    return FakeMaps()


@pytest.fixture()
def fake_unsplash() -> FakeUnsplash:
    return FakeUnsplash()


@pytest.fixture()
def fake_gemini() -> FakeGemini:
    return FakeGemini()


@pytest.fixture()
def runtime_state(fake_maps: FakeMaps, fake_unsplash: FakeUnsplash, fake_gemini: FakeGemini) -> Generator[RuntimeState, None, None]:
    state = RuntimeState(settings)
    state.override(google_maps=fake_maps, unsplash=fake_unsplash, gemini=fake_gemini)
    previous = app.state.runtime_state
    app.state.runtime_state = state
    try:
        yield state
    finally:
        app.state.runtime_state = previous


@pytest.fixture(scope="function")
def client(session: Session, runtime_state: RuntimeState) -> Generator[TestClient, None, None]:
    def override_get_db():
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def register_and_login(client: TestClient, email: str = "driver@example.com", password: str = "hunter2hunter2") -> dict[str, str]:
    resp = client.post("/auth/register", json={"email": email, "name": "Dana Driver", "password": password})
    assert resp.status_code == 201, resp.text
    login_resp = client.post("/auth/login", json={"email": email, "password": password})
    assert login_resp.status_code == 200, login_resp.text
    return {"Authorization": f"Bearer {login_resp.json()['token']}"}


@pytest.fixture()
def auth_headers(client: TestClient) -> dict[str, str]:
    return register_and_login(client)


@pytest.fixture()
def trip_id(client: TestClient, auth_headers: dict[str, str]) -> int:
    resp = client.post(
        "/trips",
        json={
            "current_location": "Dallas, TX",
            "pickup_location": "Fort Worth, TX",
            "dropoff_location": "Tulsa, OK",
            "cycle_used_hours": 12.5,
        },
        headers=auth_headers,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["id"]
