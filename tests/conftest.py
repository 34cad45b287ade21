"""
Shared fixtures: settings, in-memory storage, fake providers, services.
"""

import httpx
import pytest

from config.settings import Settings
from core.services import Services, build_services
from database.memory import InMemoryStorage
from fakes import FakeProviders


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        discord_client_id="discord-app",
        discord_client_secret="discord-secret",
        fitbit_client_id="FB1234",
        fitbit_client_secret="fitbit-secret",
        fitbit_subscriber_verify="verify-me",
        cookie_secret="test-cookie-secret",
        token_encryption_key="",
        database_url="",
    )


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def fake() -> FakeProviders:
    return FakeProviders()


@pytest.fixture
def http_client(fake: FakeProviders) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(fake.handle))


@pytest.fixture
def services(settings, storage, http_client) -> Services:
    return build_services(settings, storage=storage, http_client=http_client)
