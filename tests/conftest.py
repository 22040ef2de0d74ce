"""
Pytest configuration and fixtures for testing.
"""

import json
import os
from typing import Callable, Generator, List

import httpx
import pytest

from openam_api.auth.api_client import OpenAMApiClient
from openam_api.auth.users import UserOperations
from openam_api.config import OpenAMConfig

BASE_URL = "https://openam.example.com/openam"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch) -> Generator:
    """
    Clean environment variables before each test.

    This prevents tests from being affected by actual environment variables.
    """
    original_env = dict(os.environ)

    env_vars_to_clear = [
        "OPENAM_API_URL",
        "OPENAM_API_TIMEOUT",
        "OPENAM_API_USERNAME",
        "OPENAM_API_PASSWORD",
        "OPENAM_VERIFY_SSL",
        "OPENAM_DEBUG_RESPONSE",
        "OPENAM_DEBUG_EXCEPTION",
        "OPENAM_OPERATIONS_FILE",
        "OPENAM_PASSWORD",
        "LOG_LEVEL",
        "LOG_FORMAT",
        "LOG_FILE",
    ]

    for var in env_vars_to_clear:
        monkeypatch.delenv(var, raising=False)

    yield

    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def config() -> OpenAMConfig:
    """Provide a configuration with the default operations."""
    return OpenAMConfig(base_url=BASE_URL, timeout=5.0)


class RecordingTransport(httpx.MockTransport):
    """Mock transport that remembers every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.requests: List[httpx.Request] = []

        def record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(record)

    @property
    def last_request(self) -> httpx.Request:
        return self.requests[-1]

    def last_json(self):
        return json.loads(self.last_request.content)


@pytest.fixture
def make_transport() -> Callable[..., RecordingTransport]:
    """Build a recording transport answering with a fixed status and body."""

    def factory(status_code: int = 200, json_body=None, text: str = "") -> RecordingTransport:
        def handler(request: httpx.Request) -> httpx.Response:
            if json_body is not None:
                return httpx.Response(status_code, json=json_body)
            return httpx.Response(status_code, text=text)

        return RecordingTransport(handler)

    return factory


@pytest.fixture
def failing_transport() -> RecordingTransport:
    """Transport whose every request fails before a response is received."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    return RecordingTransport(handler)


@pytest.fixture
def make_operations(config) -> Callable[..., UserOperations]:
    """Build UserOperations over the given transport."""

    def factory(transport: httpx.BaseTransport, cfg: OpenAMConfig = None) -> UserOperations:
        return UserOperations(OpenAMApiClient(cfg or config, transport=transport))

    return factory
