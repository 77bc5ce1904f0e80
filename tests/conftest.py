"""
Shared test fixtures.

Apps are built through create_app with explicit Settings, a fake identity
provider and in-memory storage, so no test touches Google or AWS.
"""
from datetime import datetime, UTC
from urllib.parse import urlencode

import pytest
from cryptography.fernet import Fernet
from fastapi.testclient import TestClient

from config import SESSION_COOKIE_NAME, Settings
from main import create_app
from models import User
from services.storage_service import InMemoryStorage

TEST_BASE_URL = "http://testserver"


class FakeIdentityProvider:
    """Records every call; behavior is set through attributes."""

    name = "google"

    def __init__(self):
        self.exchanged: list[str] = []
        self.verified: list[str] = []
        self.token_response: dict = {"access_token": "access-123", "id_token": "raw-id-token"}
        self.claims: dict = {
            "sub": "10001",
            "email": "ada@example.com",
            "name": "Ada Lovelace",
            "picture": "https://example.com/ada.png",
        }
        self.exchange_error: Exception | None = None
        self.verify_error: Exception | None = None

    def authorization_url(self, state: str) -> str:
        return "https://accounts.example.com/o/oauth2/auth?" + urlencode(
            {"state": state, "scope": "openid profile email", "response_type": "code"}
        )

    def exchange_code(self, code: str) -> dict:
        self.exchanged.append(code)
        if self.exchange_error:
            raise self.exchange_error
        return self.token_response

    def verify_id_token(self, raw_token: str) -> dict:
        self.verified.append(raw_token)
        if self.verify_error:
            raise self.verify_error
        return self.claims


def make_settings(**overrides) -> Settings:
    values = {
        "env": "test",
        "port_auth_server": 8081,
        "port_app_server": 8080,
        "aws_region": "ap-northeast-1",
        "s3_bucket_name": "test-bucket",
        "google_client_id": "client-id",
        "google_client_secret": "client-secret",
        "redirect_url": f"{TEST_BASE_URL}/auth/callback",
        "app_server_url": TEST_BASE_URL,
        "auth_server_url": TEST_BASE_URL,
        "session_secret": Fernet.generate_key().decode(),
        "storage_backend": "memory",
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage("test-bucket")


@pytest.fixture
def app(settings, provider, storage):
    return create_app(settings, identity_provider=provider, storage=storage)


@pytest.fixture
def client(app) -> TestClient:
    with TestClient(app, base_url=TEST_BASE_URL, follow_redirects=False) as test_client:
        yield test_client


@pytest.fixture
def user() -> User:
    return User(
        id="10001",
        name="Ada Lovelace",
        email="ada@example.com",
        picture="https://example.com/ada.png",
        created=datetime(2025, 1, 1, tzinfo=UTC),
    )


@pytest.fixture
def signed_in_client(client, app, user) -> TestClient:
    client.cookies.set(SESSION_COOKIE_NAME, app.state.session_codec.encode(user))
    return client
