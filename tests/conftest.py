"""Shared test fixtures for stakesplit."""

import itertools

import pytest
from fastapi.testclient import TestClient

from stakesplit.main import app

_client_ips = itertools.count(1)


@pytest.fixture
def client() -> TestClient:
    """Test client with its own forwarded IP so rate-limit buckets never carry over."""
    ip = f"10.0.0.{next(_client_ips)}"
    return TestClient(app, headers={"x-forwarded-for": ip})


@pytest.fixture
def sample_request() -> dict:
    """Two evenly matched candidates paying double."""
    return {
        "budget": 100,
        "candidates": [
            {"name": "A", "p": 0.5, "m": "2"},
            {"name": "B", "p": 0.5, "m": "2"},
        ],
        "rounding": "floor",
        "mode": "all_weather_maximin",
        "params": {},
    }


@pytest.fixture
def five_runner_request() -> dict:
    """A heavy favourite with four long shots, budget 399."""
    return {
        "budget": 399,
        "candidates": [
            {"name": "A", "p": 0.90, "m": "1.2"},
            {"name": "B", "p": 0.01, "m": "50"},
            {"name": "C", "p": 0.04, "m": "20"},
            {"name": "D", "p": 0.01, "m": "50"},
            {"name": "E", "p": 0.04, "m": "20"},
        ],
        "rounding": "floor",
        "mode": "all_weather_maximin",
        "params": {},
    }
