"""Shared pytest fixtures for restpager tests.

Fixture Organization:
    - Settings isolation: cached ClientSettings reset around every test
    - Connection fixtures: a token-authenticated ConnectionContext
    - Response helpers: ResponseEnvelope / fake transport builders
"""

import os
from unittest.mock import AsyncMock, Mock

import httpx
import pytest

from restpager.config import reset_settings
from restpager.connection import create_connection
from restpager.transport import HttpTransport, ResponseEnvelope

BASE_URL = "https://gitlab.example.com/api/v4"


@pytest.fixture(autouse=True)
def _isolate_settings(monkeypatch):
    """Drop RESTPAGER_* env vars and the settings cache for each test."""
    for key in list(os.environ):
        if key.upper().startswith("RESTPAGER_"):
            monkeypatch.delenv(key, raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def context():
    """ConnectionContext rooted at BASE_URL with a personal token."""
    return create_connection(url="https://gitlab.example.com", token="glpat-test")


@pytest.fixture
def fake_transport():
    """HttpTransport stand-in whose execute() is an AsyncMock."""
    transport = Mock(spec=HttpTransport)
    transport.execute = AsyncMock()
    transport.close = AsyncMock()
    return transport


def envelope(body, headers: dict | None = None, status_code: int = 200) -> ResponseEnvelope:
    """Build a ResponseEnvelope with case-insensitive headers."""
    return ResponseEnvelope(
        body=body, headers=httpx.Headers(headers or {}), status_code=status_code
    )


def next_link(path: str) -> str:
    """Link header value pointing rel="next" at BASE_URL + path."""
    return f'<{BASE_URL}{path}>; rel="next"'
