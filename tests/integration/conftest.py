"""Pytest fixtures for API integration tests.

Each client runs the application lifespan against a fresh snapshot file,
so every test starts from an empty store with a fresh rate limiter.
"""

from typing import Generator

import pytest
from fastapi.testclient import TestClient

from slopwatch.api.config import settings
from slopwatch.api.main import app, limiter


@pytest.fixture
def data_file(tmp_path, monkeypatch):
    """Point the service at a temporary snapshot file."""
    path = tmp_path / "data.json"
    monkeypatch.setattr(settings, "DATA_FILE", str(path))
    return path


@pytest.fixture
def api_client(data_file) -> Generator[TestClient, None, None]:
    """HTTP client for the running application."""
    limiter.reset()
    with TestClient(app) as client:
        yield client


@pytest.fixture
def vote(api_client: TestClient):
    """Helper posting a vote toggle and returning the response."""
    def _vote(tweet_id: str, user_id: str):
        return api_client.post("/vote", json={"tweetId": tweet_id, "userId": user_id})

    return _vote
