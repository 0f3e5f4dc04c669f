"""
Shared fixtures: a clean environment per test, fresh process-wide singletons,
fake HTTP responses for the outbound clients and a TestClient bound to the app.
"""

from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from careerme.core import generation, record_store
from careerme.core.memory_store import get_memory_store
from careerme.core.rate_limit import RATE_LIMITER

ENV_VARS = [
    "AIRTABLE_BASE_ID",
    "AIRTABLE_API_KEY",
    "GEMINI_API_KEY",
    "VERCEL_ENV",
    "VERCEL_GIT_PULL_REQUEST_ID",
    "VERCEL_GIT_COMMIT_REF",
    "VERCEL_URL",
    "REPLACE_STRATEGY",
    "COOKIE_SECURE",
    "AIRTABLE_TABLE_RESUMES",
    "AIRTABLE_TABLE_EDUCATION",
    "AIRTABLE_TABLE_EXPERIENCE",
    "AIRTABLE_TABLE_WORK",
    "AIRTABLE_TABLE_LOOKUPS",
    "AIRTABLE_TABLE_CALENDAR_EVENTS",
    "AIRTABLE_TABLE_COMPANIES",
]


@pytest.fixture(autouse=True)
def clean_state(monkeypatch):
    """Memory mode, dev environment and empty in-process state for every test."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)

    monkeypatch.setattr(record_store, "_store", None)
    monkeypatch.setattr(generation, "_client", None)
    get_memory_store().clear()
    RATE_LIMITER.clear()

    yield

    get_memory_store().clear()
    RATE_LIMITER.clear()


@pytest.fixture
def store_env(monkeypatch):
    """Configure record store credentials so the data layer uses the external store."""
    monkeypatch.setenv("AIRTABLE_BASE_ID", "appTest")
    monkeypatch.setenv("AIRTABLE_API_KEY", "keyTest")


@pytest.fixture
def fake_response():
    """Factory for requests.Response stand-ins."""

    def make(status_code=200, payload=None, text=""):
        response = Mock()
        response.status_code = status_code
        if isinstance(payload, Exception):
            response.json.side_effect = payload
        else:
            response.json.return_value = payload if payload is not None else {}
        response.text = text
        response.reason = ""
        return response

    return make


@pytest.fixture
def client():
    """Test client for the API; cookies persist across requests like a browser."""
    from careerme.api.main import app
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def other_client():
    """A second browser without the first one's anonymous cookie."""
    from careerme.api.main import app
    with TestClient(app) as test_client:
        yield test_client
