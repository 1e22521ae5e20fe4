"""Shared pytest fixtures: settings, in-memory database, fake clock and HTTP."""

import base64
import os
from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest
import requests
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from seller_admin.config import Settings
from seller_admin.database import create_session_factory, init_db
from seller_admin.token_cipher import TokenCipher
from seller_admin.token_store import WalmartTokenStore
from seller_admin.walmart_client import WalmartClient
from seller_admin.walmart_token_service import WalmartTokenService

NOW = datetime(2026, 10, 18, 12, 0, 0)


class FakeClock:
    """Callable clock returning a fixed, manually advanced naive UTC time."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def make_response(status_code: int = 200, json_body=None, reason: str = "OK") -> MagicMock:
    """Build a stand-in for requests.Response."""
    response = MagicMock(spec=requests.Response)
    response.status_code = status_code
    response.ok = 200 <= status_code < 400
    response.reason = reason
    if json_body is None:
        response.json.side_effect = ValueError("Expecting value")
    else:
        response.json.return_value = json_body
    return response


def token_body(access_token="T1", refresh_token="R1", expires_in=3600, **extra) -> dict:
    body = {"access_token": access_token, "token_type": "Bearer", "expires_in": expires_in}
    if refresh_token is not None:
        body["refresh_token"] = refresh_token
    body.update(extra)
    return body


@pytest.fixture
def encryption_key() -> str:
    return base64.b64encode(os.urandom(32)).decode("ascii")


@pytest.fixture
def settings(encryption_key) -> Settings:
    return Settings(
        _env_file=None,
        database_url="sqlite://",
        walmart_client_id="test-client-id",
        walmart_client_secret="test-client-secret",
        walmart_client_auth="form",
        token_encryption_key=encryption_key,
    )


@pytest.fixture
def session_factory():
    """Session factory bound to a fresh in-memory SQLite database."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(NOW)


@pytest.fixture
def http() -> MagicMock:
    return MagicMock(spec=requests.Session)


@pytest.fixture
def cipher(settings) -> TokenCipher:
    return TokenCipher.from_settings(settings)


@pytest.fixture
def store(session_factory) -> WalmartTokenStore:
    return WalmartTokenStore(session_factory)


@pytest.fixture
def client(settings, http) -> WalmartClient:
    return WalmartClient(settings, http)


@pytest.fixture
def service(client, cipher, store, clock) -> WalmartTokenService:
    return WalmartTokenService(client=client, cipher=cipher, store=store, clock=clock)
